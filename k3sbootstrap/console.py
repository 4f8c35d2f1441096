"""Operator-facing output.

Stage banners and short status lines are written to the controlling
terminal so they stay visible while command output is kept in the log
file. When no terminal is attached (cron, CI) stderr is used instead.
"""
import sys
from typing import Optional, TextIO

import typer

RULE = "=" * 71


def _open_tty() -> TextIO:
    try:
        return open("/dev/tty", "w")
    except OSError:
        return sys.stderr


class Console:
    """Writes banners and status lines to the operator channel."""

    def __init__(self, stream: Optional[TextIO] = None):
        self._owned = stream is None
        self.stream = stream if stream is not None else _open_tty()

    def echo(self, message: str = "") -> None:
        typer.echo(message, file=self.stream)
        self.stream.flush()

    def header(self, title: str) -> None:
        self.echo(RULE)
        self.echo(typer.style(f"{title:^71}", fg=typer.colors.RED))
        self.echo(typer.style(RULE, fg=typer.colors.RED))

    def banner(self, index: int, title: str) -> None:
        """Print the banner announcing a stage."""
        self.echo(" ")
        self.echo(typer.style(RULE, fg=typer.colors.GREEN))
        self.echo(f">>> {typer.style(f'Stage {index}', fg=typer.colors.RED)} - {title}")
        self.echo(typer.style(RULE, fg=typer.colors.GREEN))
        self.echo(" ")

    def success(self, message: str) -> None:
        self.echo(typer.style(f"✅ {message}", fg=typer.colors.GREEN))

    def warning(self, message: str) -> None:
        self.echo(typer.style(f"⚠️  {message}", fg=typer.colors.YELLOW))

    def error(self, message: str) -> None:
        self.echo(typer.style(f"❌ {message}", fg=typer.colors.RED))

    def close(self) -> None:
        if self._owned and self.stream not in (sys.stderr, sys.stdout):
            self.stream.close()
