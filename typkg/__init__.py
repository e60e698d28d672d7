"""typkg — vendor local Typst packages into the Typst package directory."""

__version__ = "0.1.0"
