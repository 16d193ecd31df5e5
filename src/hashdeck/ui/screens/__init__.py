"""Textual screens for the launcher and dashboard surfaces."""
