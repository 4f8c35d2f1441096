"""Static network configuration of a node.

Changing the address drops the operator's SSH session. The connection
profile is modified first, the hostname and hosts file are written, and
only then is the profile re-activated, by default from a transient systemd
timer so this process can report and checkpoint before connectivity goes.
"""
from typing import List

from ..logging import get_logger
from .models import ClusterConfig, ExecutionContext, StageResult

logger = get_logger("network")

ACTIVATION_UNIT = "k3s-bootstrap-network"


def render_hosts(cluster: ClusterConfig) -> str:
    """Render /etc/hosts for every inventory node; the init node also answers for Rancher."""
    lines = ["127.0.0.1 localhost"]
    for node in cluster.nodes:
        names = [node.name]
        if node.name == cluster.init_node_name and cluster.rancher_hostname:
            names.append(cluster.rancher_hostname)
        lines.append(f"{node.address} {' '.join(names)}")
    return "\n".join(lines) + "\n"


def nmcli_modify_args(ctx: ExecutionContext) -> List[str]:
    net = ctx.cluster.network
    args = [
        'nmcli', 'con', 'mod', net.interface,
        'ipv4.method', 'manual',
        'ipv4.addresses', f"{ctx.node.address}/{net.prefix}",
    ]
    if net.gateway:
        args += ['ipv4.gateway', net.gateway]
    args += ['ipv4.dns', net.dns]
    return args


def configure_network(ctx: ExecutionContext) -> StageResult:
    """Apply the node's static address, hostname and hosts file."""
    net = ctx.cluster.network
    delay = ctx.settings.network_apply_delay
    logger.info(f"Configuring network on {net.interface}: {ctx.node.address}/{net.prefix}")
    ctx.console.echo("Configuring network with new IP Addresses ... ")

    ctx.runner.run(nmcli_modify_args(ctx))

    ctx.settings.hostname_file.write_text(ctx.node.name + "\n")
    ctx.settings.hosts_file.write_text(render_hosts(ctx.cluster))
    logger.info(f"Wrote {ctx.settings.hostname_file} and {ctx.settings.hosts_file}")

    if delay <= 0:
        ctx.runner.run(['nmcli', 'con', 'up', net.interface])
        return StageResult.DONE

    # Runs outside this process so the session drop cannot interrupt it
    ctx.runner.run([
        'systemd-run', f'--unit={ACTIVATION_UNIT}', '--collect', f'--on-active={delay}',
        'nmcli', 'con', 'up', net.interface,
    ])
    logger.info(f"Interface {net.interface} re-activation scheduled in {delay}s")
    ctx.console.echo(" ")
    ctx.console.echo(f"The network switches to {ctx.node.address} in {delay} seconds.")
    ctx.console.echo("SSH connection will no longer be valid.")
    ctx.console.echo(" ")
    ctx.console.echo(f"SSH to {ctx.node.address} ...")
    ctx.console.echo("... and run installation script to continue to Stage 3")
    return StageResult.PAUSE
