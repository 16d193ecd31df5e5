"""Hashdeck — terminal control shell for a local mining backend."""

__version__ = "0.4.0"
