"""K3s install and join.

The K3s installer script is fetched from ``get.k3s.io`` and piped into
``sh -s -`` with the mode flags and ``K3S_*`` variables for this node:

- init master: ``server --cluster-init`` (K3s generates the join token)
- additional master: ``server --server <url>`` with ``K3S_TOKEN``
- worker: ``K3S_URL`` and ``K3S_TOKEN``, no arguments
"""
from pathlib import Path
from typing import Dict, List, Optional

from ..logging import get_logger
from ..utils import download_text
from ..utils.kube import api_responding
from .models import ExecutionContext
from .polling import PollPolicy, wait_until
from .token import retrieve_token, setup_ssh_trust

logger = get_logger("k3s")


def run_installer(ctx: ExecutionContext, args: List[str], env: Optional[Dict[str, str]] = None) -> None:
    """Download the K3s installer and run it with ``args``."""
    script = download_text(ctx.settings.k3s_install_url, timeout=ctx.settings.download_timeout)
    ctx.runner.run(['sh', '-s', '-', *args], input=script, env=env or {})


def install_init_master(ctx: ExecutionContext) -> None:
    """Install the first control-plane node in cluster bootstrap mode."""
    logger.info(f"Installing INIT k3s control plane on node: {ctx.node.name}")
    ctx.console.echo(f"Installing INIT k3s control plane on {ctx.node.name}")
    run_installer(ctx, ['server', '--cluster-init'])


def join_master(ctx: ExecutionContext, token: str) -> None:
    """Join this node to the cluster as an additional control-plane node."""
    server_url = ctx.cluster.server_url
    logger.info(f"Joining {ctx.node.name} as control-plane via {server_url}")
    run_installer(ctx, ['server', '--server', server_url], env={'K3S_TOKEN': token})


def join_worker(ctx: ExecutionContext, token: str) -> None:
    """Join this node to the cluster as an agent."""
    server_url = ctx.cluster.server_url
    logger.info(f"Joining {ctx.node.name} as worker via {server_url}")
    run_installer(ctx, [], env={'K3S_URL': server_url, 'K3S_TOKEN': token})


def enable_service(ctx: ExecutionContext, service: str) -> None:
    logger.info(f"Enabling and starting the {service} service")
    ctx.runner.run(['systemctl', 'enable', service])
    ctx.runner.run(['systemctl', 'start', service])


def wait_for_file(ctx: ExecutionContext, path: Path, description: str) -> None:
    """Block until a local file exists, following the kubeconfig wait policy."""
    logger.info(f"Waiting for {description} at {path}...")
    policy = PollPolicy.from_settings(ctx.settings.kubeconfig_wait)
    wait_until(Path(path).exists, description, policy)


def persist_kubeconfig(ctx: ExecutionContext) -> None:
    """Export KUBECONFIG from the operator's shell rc file, once."""
    line = f"export KUBECONFIG={ctx.kubeconfig}"
    rc_file = Path(ctx.settings.shell_rc)
    existing = rc_file.read_text().splitlines() if rc_file.exists() else []
    if line not in existing:
        with open(rc_file, 'a') as f:
            if existing and existing[-1] != '':
                f.write('\n')
            f.write(line + '\n')
    logger.info("KUBECONFIG set and persisted")


def wait_for_api(ctx: ExecutionContext) -> None:
    """Block until the kubeconfig exists and the Kubernetes API answers."""
    ctx.console.echo("Waiting for kubeconfig")
    wait_for_file(ctx, ctx.kubeconfig, "kubeconfig")

    logger.info("Waiting for Kubernetes API")
    ctx.console.echo("Waiting for Kubernetes API")
    policy = PollPolicy.from_settings(ctx.settings.api_wait)
    wait_until(lambda: api_responding(ctx.kubeconfig), "Kubernetes API", policy)
    logger.info("✅ Kubernetes API is ready")


def install_master(ctx: ExecutionContext) -> None:
    """Install K3s on a master: bootstrap the cluster on the init node, join otherwise."""
    logger.info(f"Installing K3s on {ctx.node.name}")
    ctx.console.echo(f"Installing K3s on {ctx.node.name}")

    if ctx.is_init_node:
        install_init_master(ctx)
    else:
        setup_ssh_trust(ctx)
        token = retrieve_token(ctx)
        join_master(ctx, token)

    enable_service(ctx, ctx.service_name)
    ctx.console.echo("Waiting for kubeconfig to be created...")
    wait_for_file(ctx, ctx.kubeconfig, "kubeconfig")
    persist_kubeconfig(ctx)

    logger.info(f"K3s installation/join completed on {ctx.node.name}")
    ctx.console.echo(f"K3s installation/join completed on {ctx.node.name}")


def install_worker(ctx: ExecutionContext) -> None:
    """Join this node as a worker and wait for its agent credentials."""
    setup_ssh_trust(ctx)
    logger.info("Joining as worker")
    token = retrieve_token(ctx)
    join_worker(ctx, token)

    enable_service(ctx, ctx.service_name)
    wait_for_file(ctx, ctx.settings.agent_kubeconfig_path, "agent kubeconfig")
    logger.info(f"Worker join completed on {ctx.node.name}")
    ctx.console.echo(f"Worker join completed on {ctx.node.name}")
