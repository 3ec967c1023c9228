"""Shared CLI helpers: client construction and error rendering."""

from __future__ import annotations

__all__ = [
    "CliState",
    "handle_logto_errors",
    "load_client_or_exit",
]

import functools
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeVar

import click

from logto_client.auth.storage import Storage, create_storage
from logto_client.client import LogtoClient
from logto_client.config import get_config_path, load_logto_config
from logto_client.exceptions import ConfigurationError, LogtoError

F = TypeVar("F", bound=Callable[..., Any])


@dataclass
class CliState:
    """Options shared by all commands (set by the root group).

    Attributes:
        config_path: Config file to load (None means the default location).
        storage: Storage override, used by tests; None means create_storage().
    """

    config_path: Path | None = None
    storage: Storage | None = None

    @property
    def resolved_config_path(self) -> Path:
        return self.config_path or get_config_path()


def load_client_or_exit(state: CliState) -> LogtoClient:
    """Build a LogtoClient from the configured file and storage.

    Raises:
        click.ClickException: If the config cannot be loaded.
    """
    try:
        config = load_logto_config(state.resolved_config_path)
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e

    storage = state.storage or create_storage()
    return LogtoClient(config, storage)


def handle_logto_errors(func: F) -> F:
    """Render LogtoError as a click error (exit code 1) instead of a traceback."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except LogtoError as e:
            raise click.ClickException(f"{e} [{e.failure_type}]") from e

    return wrapper  # type: ignore[return-value]
