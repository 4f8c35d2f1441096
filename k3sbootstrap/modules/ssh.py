"""
SSH access to other cluster nodes using paramiko.

Used by additional masters and workers to reach the init node: key trust
setup, the join token poll and the token read.
"""
import os
import shlex
import socket
from pathlib import Path
from typing import Callable, Optional, Tuple

import paramiko
import typer
from paramiko.ssh_exception import (
    AuthenticationException,
    BadHostKeyException,
    NoValidConnectionsError,
    SSHException,
)

from ..config import Settings
from ..exceptions import CommandError, RemoteAuthError, RemoteUnavailableError
from ..logging import get_logger
from .models import Node

logger = get_logger("ssh")

PasswordPrompt = Callable[[str], str]


def prompt_password(target: str) -> str:
    """Ask the operator for an SSH password on the terminal."""
    return typer.prompt(f"Password for {target}", hide_input=True)


class RemoteSession:
    """A lazily opened SSH connection to one node."""

    def __init__(
        self,
        host: str,
        username: str = 'root',
        key_path: Optional[Path] = None,
        port: int = 22,
        timeout: int = 10,
        password_prompt: Optional[PasswordPrompt] = None,
    ):
        """Initialize the session without connecting.

        Args:
            host: Remote host to connect to
            username: Username for authentication
            key_path: Path to SSH private key (optional, falls back to agent and default keys)
            port: SSH port (default: 22)
            timeout: Connection timeout in seconds
            password_prompt: Called for a password when key authentication is rejected
        """
        self.host = host
        self.username = username
        self.key_path = Path(os.path.expanduser(str(key_path))) if key_path else None
        self.port = port
        self.timeout = timeout
        self.password_prompt = password_prompt
        self._client: Optional[paramiko.SSHClient] = None

    @property
    def target(self) -> str:
        return f"{self.username}@{self.host}"

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def _new_client(self) -> paramiko.SSHClient:
        client = paramiko.SSHClient()
        # Nodes are freshly provisioned; their host keys are not known in advance
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        return client

    def _connect_kwargs(self) -> dict:
        kwargs = {
            'hostname': self.host,
            'port': self.port,
            'username': self.username,
            'timeout': self.timeout,
            'banner_timeout': self.timeout,
            'auth_timeout': self.timeout,
        }
        if self.key_path and self.key_path.exists():
            kwargs['key_filename'] = str(self.key_path)
        return kwargs

    def connect(self) -> paramiko.SSHClient:
        """Open the connection if it is not open yet.

        Raises:
            RemoteAuthError: If the node rejects our credentials
            RemoteUnavailableError: If the node cannot be reached
        """
        if self._client is not None:
            return self._client

        client = self._new_client()
        try:
            try:
                client.connect(**self._connect_kwargs())
            except AuthenticationException:
                if self.password_prompt is None:
                    raise
                logger.info(f"🔑 Key authentication to {self.target} rejected, asking for a password")
                client.close()
                client = self._new_client()
                client.connect(
                    **self._connect_kwargs(),
                    password=self.password_prompt(self.target),
                    look_for_keys=False,
                    allow_agent=False,
                )
        except (AuthenticationException, BadHostKeyException) as e:
            client.close()
            raise RemoteAuthError(f"SSH authentication to {self.target} failed: {e}")
        except (NoValidConnectionsError, SSHException, socket.error) as e:
            client.close()
            raise RemoteUnavailableError(f"Cannot reach {self.target}: {e}")

        logger.debug(f"Connected to {self.target}:{self.port}")
        self._client = client
        return client

    def execute(self, command: str, timeout: int = 60) -> Tuple[int, str, str]:
        """Execute a command on the remote host.

        Returns:
            tuple: (exit status, stdout, stderr)
        """
        client = self.connect()
        logger.debug(f"[{self.host}] $ {command}")
        try:
            _, stdout, stderr = client.exec_command(command, timeout=timeout)
            exit_status = stdout.channel.recv_exit_status()
            output = stdout.read().decode('utf-8', 'replace')
            error = stderr.read().decode('utf-8', 'replace')
        except (SSHException, socket.error) as e:
            self.close()
            raise RemoteUnavailableError(f"Lost connection to {self.target}: {e}")
        return exit_status, output, error

    def file_exists(self, path: str) -> bool:
        status, _, _ = self.execute(f"test -f {shlex.quote(path)}")
        return status == 0

    def read_file(self, path: str) -> str:
        """Return the contents of a remote file.

        Raises:
            CommandError: If the file cannot be read
        """
        status, output, error = self.execute(f"cat {shlex.quote(path)}")
        if status != 0:
            raise CommandError(['ssh', self.target, 'cat', path], status, stderr=error)
        return output

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None


def ensure_key_pair(key_path: Path, bits: int = 4096) -> str:
    """Create an RSA key pair unless one exists, and return the public key line."""
    key_path = Path(os.path.expanduser(str(key_path)))
    pub_path = key_path.with_name(key_path.name + '.pub')

    if key_path.exists():
        if pub_path.exists():
            return pub_path.read_text().strip()
        key = paramiko.RSAKey.from_private_key_file(str(key_path))
    else:
        logger.info(f"🔑 Generating {bits}-bit RSA key pair at {key_path}")
        key_path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        key = paramiko.RSAKey.generate(bits)
        key.write_private_key_file(str(key_path))
        os.chmod(key_path, 0o600)

    public_key = f"{key.get_name()} {key.get_base64()} {socket.gethostname()}"
    pub_path.write_text(public_key + '\n')
    return public_key


def authorize_key(session: RemoteSession, public_key: str) -> None:
    """Append a public key to the remote authorized_keys unless already present."""
    quoted = shlex.quote(public_key)
    command = (
        'umask 077; mkdir -p ~/.ssh && touch ~/.ssh/authorized_keys && '
        f'(grep -qxF {quoted} ~/.ssh/authorized_keys || echo {quoted} >> ~/.ssh/authorized_keys)'
    )
    status, _, error = session.execute(command)
    if status != 0:
        raise CommandError(['ssh', session.target, 'authorize-key'], status, stderr=error)
    logger.info(f"✅ Public key authorized on {session.target}")


def session_factory_for(settings: Settings) -> Callable[[Node], RemoteSession]:
    """Build sessions to other nodes using the configured SSH user and key."""
    def factory(node: Node) -> RemoteSession:
        return RemoteSession(
            host=node.address,
            username=settings.ssh_user,
            key_path=settings.ssh_key_path,
            port=settings.ssh_port,
            timeout=settings.ssh_connect_timeout,
            password_prompt=prompt_password,
        )
    return factory
