"""Package descriptor specification.

A directory is a package when it carries a ``typst.toml`` descriptor whose
``[package]`` table defines ``name``, ``version`` and ``entrypoint``.
"""
