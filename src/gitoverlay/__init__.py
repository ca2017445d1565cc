"""Overlay files from a pinned upstream git repository onto a working tree."""

__version__ = "0.1.0"
