"""Node preparation, run once per node before the bootstrap.

Sets the hostname the inventory knows the node by, creates the ``k3s``
user, makes sure sshd is running and installs git with transactional-update.
A reboot is needed when git had to be installed.
"""
import shutil
from dataclasses import dataclass

from ..console import Console
from ..logging import get_logger
from ..utils import CommandRunner

logger = get_logger("prep")

DEFAULT_USER = "k3s"


@dataclass
class PrepResult:
    user_created: bool = False
    git_installed: bool = False

    @property
    def reboot_required(self) -> bool:
        return self.git_installed


def set_hostname(runner: CommandRunner, console: Console, node_name: str) -> None:
    console.echo(f"Setting hostname to '{node_name}'...")
    runner.run(["hostnamectl", "set-hostname", node_name])


def ensure_user(runner: CommandRunner, console: Console, user: str, password: str) -> bool:
    """Create ``user`` with ``password`` unless it exists. Returns True if created."""
    if runner.succeeds(["id", user]):
        console.echo(f"User '{user}' already exists. Skipping user creation.")
        return False
    console.echo(f"Creating user '{user}'...")
    runner.run(["useradd", "-m", "-s", "/bin/bash", user])
    runner.run(["chpasswd"], input=f"{user}:{password}\n")
    return True


def ensure_git(runner: CommandRunner, console: Console) -> bool:
    """Install git unless present. Returns True if it was installed."""
    if shutil.which("git"):
        console.echo("Git already installed.")
        return False
    console.echo("Git not found. Installing git using transactional-update...")
    runner.run(["transactional-update", "--non-interactive", "pkg", "install", "-y", "git"])
    console.echo("Git installation scheduled. Reboot required.")
    return True


def prepare_node(
    runner: CommandRunner,
    console: Console,
    node_name: str,
    user: str = DEFAULT_USER,
    password: str = "",
    reboot: bool = True,
) -> PrepResult:
    """Prepare this machine to join the cluster as ``node_name``."""
    logger.info(f"Preparing node {node_name}")
    set_hostname(runner, console, node_name)

    result = PrepResult()
    result.user_created = ensure_user(runner, console, user, password)
    runner.run(["systemctl", "enable", "--now", "sshd"])
    result.git_installed = ensure_git(runner, console)

    console.echo("Node preparation complete.")
    if result.reboot_required and reboot:
        console.echo("Rebooting system to complete setup...")
        runner.run(["reboot"])
    elif result.reboot_required:
        console.warning("Reboot required before running the bootstrap.")
    else:
        console.echo("No reboot required.")
    return result
