from typing import Optional

import typer

from ..console import Console
from ..exceptions import BootstrapError
from ..logging import bind_node
from ..modules.prep import DEFAULT_USER, prepare_node
from ..utils import CommandRunner
from . import fail, interrupted, prepare

USAGE = "Usage: k3s-bootstrap prep <node-name>"


def prep(
    ctx: typer.Context,
    node_name: Optional[str] = typer.Argument(None, help="Name of this node in the cluster config"),
    user: str = typer.Option(DEFAULT_USER, "--user", help="Local user to create"),
    password: Optional[str] = typer.Option(
        None, "--password", envvar="K3S_BOOTSTRAP_PREP_PASSWORD",
        help="Password for the created user (prompted if omitted)",
    ),
    no_reboot: bool = typer.Option(False, "--no-reboot", help="Do not reboot when a package was installed"),
):
    """Prepare this machine before its first bootstrap run."""
    if not node_name:
        typer.echo(USAGE, err=True)
        raise typer.Exit(code=1)

    prepare(ctx)
    bind_node(node_name, None)
    if password is None:
        password = typer.prompt(f"Password for user {user}", hide_input=True, confirmation_prompt=True)

    console = Console()
    try:
        prepare_node(
            CommandRunner(), console, node_name,
            user=user, password=password, reboot=not no_reboot,
        )
    except BootstrapError as e:
        raise fail(console, e)
    except KeyboardInterrupt:
        raise interrupted(console)
    finally:
        console.close()
