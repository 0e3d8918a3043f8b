"""Rendering, history and diff core."""
