"""Shared helpers for files and log formatting."""

__all__: list[str] = []
