from pathlib import Path
from typing import Optional

import typer

from ..console import Console
from ..exceptions import BootstrapError
from ..logging import bind_node, get_logger
from ..modules import resolver, stages
from ..modules.checkpoint import Checkpoint
from ..modules.inventory import load_cluster_config
from ..modules.models import ExecutionContext, StageResult
from ..modules.ssh import session_factory_for
from ..utils import CommandRunner
from . import fail, interrupted, prepare

logger = get_logger("commands.install")


def install(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to the cluster config file"),
    fresh: bool = typer.Option(False, "--fresh", help="Discard the checkpoint and run every stage again"),
):
    """Bootstrap this node as described by the cluster config."""
    settings = prepare(ctx, config)
    console = Console()
    try:
        cluster = load_cluster_config(settings.cluster_config)
        node = resolver.resolve_node(cluster, resolver.local_hostname())
        bind_node(node.name, node.role.value)

        context = ExecutionContext(
            node=node,
            cluster=cluster,
            settings=settings,
            runner=CommandRunner(),
            console=console,
            session_factory=session_factory_for(settings),
        )
        checkpoint = Checkpoint(settings.checkpoint_file, node.name)
        if fresh:
            checkpoint.clear()
        else:
            checkpoint.load()

        outcome = stages.run_pipeline(context, checkpoint)
    except BootstrapError as e:
        raise fail(console, e)
    except KeyboardInterrupt:
        raise interrupted(console)
    finally:
        console.close()

    if outcome.result != StageResult.DONE:
        logger.info(f"Run stopped after stage {outcome.stopped_at} ({outcome.result.value})")
