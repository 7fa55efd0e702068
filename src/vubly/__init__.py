"""Vubly: YouTube dubbing backend."""

__version__ = "0.1.0"
