"""Registry — the persistent name to source-path manifest.

The manifest lets packages be installed by name instead of by path, and
records an optional default package.
"""
