"""Stage sequencer for the node bootstrap.

Stages run in a fixed order. A stage that raises aborts the run at that
point; nothing is rolled back and recovery is re-running the command, which
skips the stages recorded in the checkpoint and repeats the rest (each stage
is idempotent on its own).

    1  base-os            every node
    2  network            every node
    3  control-plane      masters (init node bootstraps, others join)
    3  worker-join        workers
    4  platform-services  init node only
    5  complete           every node, every run
"""
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from ..logging import get_logger
from ..utils.kube import KUBE_ERRORS, node_summary
from . import addons, host, k3s, network
from .checkpoint import Checkpoint
from .models import ExecutionContext, StageResult

logger = get_logger("stages")

TITLE = "Kubernetes Multi-Node Cluster Bootstrap Script"


@dataclass
class Stage:
    number: int
    key: str
    title: str
    action: Callable[[ExecutionContext], Optional[StageResult]]
    when: Callable[[ExecutionContext], bool] = lambda ctx: True
    # Runs on every invocation and is never checkpointed
    always: bool = False


@dataclass
class PipelineResult:
    result: StageResult = StageResult.DONE
    completed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    stopped_at: Optional[str] = None


def run_control_plane(ctx: ExecutionContext) -> None:
    host.enable_root_ssh(ctx)
    k3s.install_master(ctx)
    k3s.wait_for_api(ctx)


def run_platform_services(ctx: ExecutionContext) -> None:
    addons.install_platform_services(ctx)


def report_completion(ctx: ExecutionContext) -> None:
    logger.info("Node setup complete")
    console = ctx.console

    if ctx.node.is_master and ctx.kubeconfig.exists():
        try:
            summary = node_summary(ctx.kubeconfig)
        except KUBE_ERRORS as e:
            logger.warning(f"⚠️  Cannot list cluster nodes: {e}")
            console.warning("Cannot list cluster nodes right now, the API server is not answering")
        else:
            console.echo("Active Nodes")
            for name, status, roles in summary:
                console.echo(f"  {name:<20} {status:<10} {roles}")
        console.echo(" ")

    cluster = ctx.cluster
    console.echo("Once all the pods are running you may access Rancher by")
    console.echo(f"browsing to https://{cluster.rancher_hostname}")
    console.echo(f"The bootstrap password is {cluster.rancher_bootstrap_password}")
    console.echo(" ")
    console.echo("Give it a few minutes ... then have some fun!")


PIPELINE: List[Stage] = [
    Stage(1, "base-os", "Base OS preparation", host.install_base),
    Stage(2, "network", "Configuring network interfaces", network.configure_network),
    Stage(3, "control-plane", "Kubernetes control plane", run_control_plane,
          when=lambda ctx: ctx.node.is_master),
    Stage(3, "worker-join", "Kubernetes worker join", k3s.install_worker,
          when=lambda ctx: not ctx.node.is_master),
    Stage(4, "platform-services", "Platform services", run_platform_services,
          when=lambda ctx: ctx.is_init_node),
    Stage(5, "complete", "Installation of Kubernetes and Rancher completed!", report_completion,
          always=True),
]


def run_pipeline(
    ctx: ExecutionContext,
    checkpoint: Checkpoint,
    stages: Optional[List[Stage]] = None,
) -> PipelineResult:
    """Run the stages that apply to this node, in order.

    Returns when every stage ran or a stage asked the run to stop. Errors
    raised by a stage propagate unchanged.
    """
    stages = PIPELINE if stages is None else stages
    outcome = PipelineResult()
    ctx.console.header(TITLE)

    for stage in stages:
        if not stage.when(ctx):
            continue
        if not stage.always and checkpoint.is_done(stage.key):
            logger.info(f"⏭️  Stage {stage.number} ({stage.key}) already completed, skipping")
            ctx.console.echo(f"Stage {stage.number} - {stage.title}: already completed")
            outcome.skipped.append(stage.key)
            continue

        ctx.console.banner(stage.number, stage.title)
        logger.info(f"==> Stage {stage.number} - {stage.title} [{stage.key}]")
        result = stage.action(ctx) or StageResult.DONE

        if result == StageResult.REBOOT:
            logger.info(f"Stage {stage.key} needs a reboot before it can finish")
            outcome.result = result
            outcome.stopped_at = stage.key
            return outcome

        if not stage.always:
            checkpoint.mark(stage.key)
        outcome.completed.append(stage.key)
        logger.info(f"✅ Stage {stage.number} ({stage.key}) completed")

        if result == StageResult.PAUSE:
            outcome.result = result
            outcome.stopped_at = stage.key
            return outcome

    return outcome
