"""Command-line interface for logto-client.

Provides commands for inspecting the stored session and obtaining tokens.
"""

from .main import cli, main

__all__ = ["cli", "main"]
