"""Command-line interface for Hashdeck."""
