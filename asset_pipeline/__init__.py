"""Front-end asset pipeline built on `assetkit`."""

__version__ = "0.1.0"
