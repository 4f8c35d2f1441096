from pathlib import Path
from typing import Optional

import typer

from ..console import Console
from ..exceptions import BootstrapError
from ..modules import resolver
from ..modules.inventory import load_cluster_config
from . import fail, prepare


def validate(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to the cluster config file"),
):
    """Validate the cluster config and print the inventory."""
    settings = prepare(ctx, config)
    console = Console()
    try:
        cluster = load_cluster_config(settings.cluster_config)
    except BootstrapError as e:
        raise fail(console, e)
    finally:
        console.close()

    typer.echo(f"🔍 Validating cluster config: {settings.cluster_config}")
    for node in cluster.nodes:
        marker = " (init)" if node.name == cluster.init_node_name else ""
        typer.echo(f"  {node.name:<20} {node.address:<16} {node.role.value}{marker}")
    typer.echo(f"Server URL: {cluster.server_url}")
    typer.echo(f"Rancher:    https://{cluster.rancher_hostname} ({cluster.rancher_replicas} replica(s))")
    typer.echo("✅ Cluster config is valid")


def resolve(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to the cluster config file"),
    hostname: Optional[str] = typer.Option(None, "--hostname", help="Name to resolve (defaults to this machine)"),
):
    """Show which inventory entry a hostname resolves to."""
    settings = prepare(ctx, config)
    console = Console()
    try:
        cluster = load_cluster_config(settings.cluster_config)
        node = resolver.resolve_node(cluster, hostname or resolver.local_hostname())
    except BootstrapError as e:
        raise fail(console, e)
    finally:
        console.close()

    init = "yes" if node.name == cluster.init_node_name else "no"
    typer.echo(f"name={node.name} role={node.role.value} address={node.address} init={init}")
