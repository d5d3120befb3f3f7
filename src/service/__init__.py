"""HTTP service exposing the Palette Cut pipeline."""

__version__ = "0.1.0"
