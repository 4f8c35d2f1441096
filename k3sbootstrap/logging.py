"""Logging configuration for the k3sbootstrap package.

Detailed output goes to a rotating log file only. The operator-facing
terminal is handled separately by :mod:`k3sbootstrap.console`.
"""
import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional

LOGGER_NAME = "k3sbootstrap"
LOG_FORMAT = "[%(asctime)s][%(node)s][%(role)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class NodeContextFilter(logging.Filter):
    """Stamp every record with the node name and role of this run."""

    def __init__(self, node: str = "-", role: str = "-"):
        super().__init__()
        self.node = node
        self.role = role

    def filter(self, record: logging.LogRecord) -> bool:
        record.node = self.node
        record.role = self.role
        return True


_context = NodeContextFilter()


def setup_logging(
    log_file: Path,
    debug: bool = False,
    max_size_mb: int = 20,
    backup_count: int = 3,
) -> logging.Logger:
    """Configure the package logger.

    Args:
        log_file: Path of the durable log file
        debug: Log at DEBUG level and mirror the log to stderr
        max_size_mb: Maximum log file size before rotation
        backup_count: Number of rotated files to keep

    Returns:
        The configured package logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if debug else logging.INFO)
    logger.propagate = False

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    log_file = Path(log_file).expanduser()
    file_error = None
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            filename=log_file,
            maxBytes=max_size_mb * 1024 * 1024,
            backupCount=backup_count,
        )
    except OSError as e:
        # Unprivileged operators cannot write under /var/log
        file_error = e
    else:
        file_handler.setFormatter(formatter)
        file_handler.addFilter(_context)
        logger.addHandler(file_handler)

    if debug or file_error is not None:
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setFormatter(formatter)
        stream_handler.addFilter(_context)
        if not debug:
            stream_handler.setLevel(logging.WARNING)
        logger.addHandler(stream_handler)

    if file_error is not None:
        logger.warning(f"⚠️  Cannot write log file {log_file} ({file_error}), logging to stderr only")

    if not debug:
        # Disable debug logging for noisy libraries
        logging.getLogger("paramiko").setLevel(logging.WARNING)
        logging.getLogger("urllib3").setLevel(logging.WARNING)
        logging.getLogger("kubernetes").setLevel(logging.WARNING)

    return logger


def bind_node(node: Optional[str], role: Optional[str]) -> None:
    """Attach the resolved node identity to all subsequent log records."""
    _context.node = node or "-"
    _context.role = role or "-"


def get_logger(name: str) -> logging.Logger:
    """Return a child of the package logger."""
    if name.startswith(LOGGER_NAME):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOGGER_NAME}.{name}")
