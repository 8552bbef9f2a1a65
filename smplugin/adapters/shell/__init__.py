"""Subprocess execution helpers."""
