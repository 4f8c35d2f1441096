"""Utility functions and helpers for the k3sbootstrap application."""
import os
import subprocess
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence

import requests
import yaml

from ..exceptions import CommandError, format_command
from ..logging import get_logger

logger = get_logger("utils")

REDACT_KEYS = ("token", "password", "secret")


def redact_sensitive_data(data: Any) -> Any:
    """Recursively redact sensitive values from dictionaries and lists.

    Args:
        data: Input data that might contain sensitive information

    Returns:
        Data with sensitive values redacted
    """
    if isinstance(data, Mapping):
        return {
            k: "[REDACTED]" if any(key in str(k).lower() for key in REDACT_KEYS)
            else redact_sensitive_data(v)
            for k, v in data.items()
        }
    elif isinstance(data, (list, tuple)):
        return [redact_sensitive_data(item) for item in data]
    return data


class CommandRunner:
    """Runs local commands, sending their output to the log file only.

    A non-zero exit raises :class:`CommandError` unless ``check`` is False,
    which mirrors a strict-mode shell where only explicitly checked commands
    may fail.
    """

    def run(
        self,
        cmd: Sequence[str],
        *,
        env: Optional[Mapping[str, str]] = None,
        input: Optional[str] = None,
        check: bool = True,
        cwd: Optional[Path] = None,
    ) -> subprocess.CompletedProcess:
        cmd = [str(part) for part in cmd]
        cmd_str = format_command(cmd)
        if env:
            logger.debug(f"💻 Running: {cmd_str} (env: {redact_sensitive_data(dict(env))})")
        else:
            logger.debug(f"💻 Running: {cmd_str}")

        process_env = None
        if env is not None:
            process_env = os.environ.copy()
            process_env.update(env)

        result = subprocess.run(
            cmd,
            env=process_env,
            input=input,
            text=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            cwd=str(cwd) if cwd is not None else None,
        )
        if result.stdout:
            logger.info(result.stdout.rstrip())
        if result.stderr:
            logger.info(result.stderr.rstrip())

        if check and result.returncode != 0:
            logger.error(f"❌ Command failed: {cmd_str} (exit code: {result.returncode})")
            raise CommandError(cmd, result.returncode, stderr=result.stderr)
        return result

    def succeeds(self, cmd: Sequence[str]) -> bool:
        """Return True if the command exits with status 0."""
        return self.run(cmd, check=False).returncode == 0


def download_text(url: str, timeout: int = 60) -> str:
    """Fetch a text document such as an installer script."""
    logger.info(f"📥 Downloading {url}")
    response = requests.get(url, timeout=timeout)
    response.raise_for_status()
    return response.text


def write_yaml_file(path: Path, data: Dict[str, Any], mode: int = 0o600) -> None:
    """Write a YAML file with the given data.

    Args:
        path: Path to the YAML file
        data: Data to write as YAML
        mode: File permissions (default: 0o600)

    Raises:
        OSError: If the file cannot be written
    """
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
        os.chmod(path, mode)
    except OSError as e:
        logger.error(f"Failed to write YAML file {path}: {e}")
        raise


def read_yaml_file(path: Path) -> Dict[str, Any]:
    """Read a YAML file and return its contents as a dictionary.

    Raises:
        FileNotFoundError: If the file does not exist
        yaml.YAMLError: If the file is not valid YAML
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.debug(f"YAML file not found: {path}")
        raise
    except yaml.YAMLError as e:
        logger.error(f"Invalid YAML in {path}: {e}")
        raise
