"""Textual terminal dashboard."""
