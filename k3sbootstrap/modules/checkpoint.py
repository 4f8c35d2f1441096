"""Persisted record of completed stages.

The run stops on purpose at some points (reboot after package install,
address change), so the runner is invoked several times per node. The
checkpoint lets a later invocation skip what an earlier one finished.
"""
from datetime import datetime, timezone
from pathlib import Path
from typing import List

from ..logging import get_logger
from ..utils import read_yaml_file, write_yaml_file

logger = get_logger("checkpoint")


class Checkpoint:
    """Completed stage keys for one node, stored as YAML."""

    def __init__(self, path: Path, node_name: str):
        self.path = Path(path)
        self.node_name = node_name
        self.completed: List[str] = []

    def load(self) -> 'Checkpoint':
        try:
            data = read_yaml_file(self.path)
        except FileNotFoundError:
            return self
        if data.get('node') != self.node_name:
            logger.warning(
                f"⚠️  Ignoring checkpoint {self.path} recorded for node {data.get('node')}"
            )
            return self
        self.completed = list(data.get('completed') or [])
        logger.info(f"Loaded checkpoint: completed stages {self.completed}")
        return self

    def save(self) -> None:
        write_yaml_file(self.path, {
            'node': self.node_name,
            'completed': self.completed,
            'updated': datetime.now(timezone.utc).isoformat(timespec='seconds'),
        }, mode=0o644)

    def is_done(self, key: str) -> bool:
        return key in self.completed

    def mark(self, key: str) -> None:
        if key not in self.completed:
            self.completed.append(key)
        self.save()

    def clear(self) -> None:
        self.completed = []
        if self.path.exists():
            self.path.unlink()
            logger.info(f"Removed checkpoint {self.path}")
