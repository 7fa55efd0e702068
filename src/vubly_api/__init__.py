"""HTTP API for the Vubly dubbing backend."""

__version__ = "0.1.0"
