"""CLI command implementations.

Each command builds its settings, configures logging and turns
:class:`~k3sbootstrap.exceptions.BootstrapError` into a process exit code.
"""
from pathlib import Path
from typing import Optional

import typer

from ..config import Settings
from ..console import Console
from ..exceptions import BootstrapError
from ..logging import get_logger, setup_logging

logger = get_logger("commands")

INTERRUPTED_EXIT_CODE = 130


def is_debug(ctx: typer.Context) -> bool:
    """Return the global ``--debug`` flag set by the CLI callback."""
    obj = ctx.find_root().obj or {}
    return bool(obj.get("debug", False))


def prepare(ctx: typer.Context, config: Optional[Path] = None) -> Settings:
    """Build settings for a command and configure logging from them."""
    settings = Settings.from_env(cluster_config=config)
    setup_logging(
        settings.log_file,
        debug=is_debug(ctx),
        max_size_mb=settings.log_max_size_mb,
        backup_count=settings.log_backup_count,
    )
    return settings


def fail(console: Console, error: BootstrapError) -> typer.Exit:
    """Report ``error`` in the log and on the operator channel.

    Returns the :class:`typer.Exit` to raise.
    """
    logger.error(f"❌ {error}")
    console.error(str(error))
    return typer.Exit(code=error.exit_code)


def interrupted(console: Console) -> typer.Exit:
    logger.warning("Interrupted by operator")
    console.warning("Interrupted")
    return typer.Exit(code=INTERRUPTED_EXIT_CODE)
