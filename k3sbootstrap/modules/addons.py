"""Platform services installed once per cluster from the init node.

Helm client, then the Flannel, Longhorn, cert-manager and Rancher charts.
Re-running the sequence is safe: a repository or release that already
exists is reported as such and the sequence moves on, while any other Helm
failure aborts the run.
"""
import shutil
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Sequence

from ..exceptions import CommandError
from ..logging import get_logger
from ..utils import download_text
from ..utils.kube import daemonsets_ready
from .models import ClusterConfig, ExecutionContext
from .polling import PollPolicy, wait_until

logger = get_logger("addons")

# Output that means the repo or release is already in place, per Helm verb
REPO_EXISTS_MARKER = "already exists"
RELEASE_EXISTS_MARKER = "cannot re-use a name that is still in use"


class HelmOutcome(str, Enum):
    APPLIED = "applied"
    ALREADY_EXISTS = "already_exists"


@dataclass
class ChartSpec:
    """A Helm release to install, with values derived from the cluster config."""
    release: str
    repo_name: str
    repo_url: str
    chart: str
    namespace: str
    values: Callable[[ClusterConfig, ExecutionContext], Dict[str, str]] = field(
        default=lambda cluster, ctx: {}
    )
    # Wait for DaemonSets with this label selector to be fully ready after install
    ready_selector: str = ""

    @property
    def chart_ref(self) -> str:
        return f"{self.repo_name}/{self.chart}"


CHARTS: List[ChartSpec] = [
    ChartSpec(
        release="flannel",
        repo_name="flannel",
        repo_url="https://flannel-io.github.io/flannel/",
        chart="flannel",
        namespace="kube-flannel",
        values=lambda cluster, ctx: {"podCidr": ctx.settings.pod_cidr},
        ready_selector="app=flannel",
    ),
    ChartSpec(
        release="longhorn",
        repo_name="longhorn",
        repo_url="https://charts.longhorn.io",
        chart="longhorn",
        namespace="longhorn",
    ),
    ChartSpec(
        release="cert-manager",
        repo_name="jetstack",
        repo_url="https://charts.jetstack.io",
        chart="cert-manager",
        namespace="cert-manager",
        values=lambda cluster, ctx: {"installCRDs": "true"},
    ),
    ChartSpec(
        release="rancher",
        repo_name="rancher-stable",
        repo_url="https://releases.rancher.com/server-charts/stable",
        chart="rancher",
        namespace="cattle-system",
        values=lambda cluster, ctx: {
            "hostname": cluster.rancher_hostname,
            "replicas": str(cluster.rancher_replicas),
            "bootstrapPassword": cluster.rancher_bootstrap_password,
        },
    ),
]


def _exists_marker(cmd: Sequence[str]) -> str:
    """Return the output marker that means "already in place" for this Helm verb."""
    args = list(cmd[1:])
    if args[:1] == ["--kubeconfig"]:
        args = args[2:]
    if args[:2] == ["repo", "add"]:
        return REPO_EXISTS_MARKER
    if args[:1] == ["install"]:
        return RELEASE_EXISTS_MARKER
    return ""


def classify_helm_result(cmd: Sequence[str], returncode: int, output: str) -> HelmOutcome:
    """Map a finished Helm command to an outcome.

    Raises:
        CommandError: For any failure other than an existing repo or release
    """
    marker = _exists_marker(cmd)
    found = bool(marker) and marker in (output or "").lower()
    if returncode == 0:
        return HelmOutcome.ALREADY_EXISTS if found else HelmOutcome.APPLIED
    if found:
        return HelmOutcome.ALREADY_EXISTS
    raise CommandError(cmd, returncode, stderr=output)


def helm(ctx: ExecutionContext, *args: str) -> HelmOutcome:
    cmd = ["helm", "--kubeconfig", str(ctx.kubeconfig), *args]
    result = ctx.runner.run(cmd, check=False)
    return classify_helm_result(cmd, result.returncode, (result.stdout or "") + (result.stderr or ""))


def install_helm(ctx: ExecutionContext) -> None:
    """Install the Helm 3 client unless it is already on PATH."""
    logger.info("Installing Helm")
    ctx.console.echo("Installing Helm")
    if shutil.which("helm"):
        logger.info("Helm already installed")
        return
    script = download_text(ctx.settings.helm_install_url, timeout=ctx.settings.download_timeout)
    ctx.runner.run(["bash", "-s", "-"], input=script)


def install_chart(ctx: ExecutionContext, spec: ChartSpec) -> HelmOutcome:
    """Register the chart repository and install the release."""
    logger.info(f"🚀 Installing Helm release '{spec.release}' in namespace '{spec.namespace}'")
    ctx.console.echo(f"Installing {spec.release}")

    if helm(ctx, "repo", "add", spec.repo_name, spec.repo_url) == HelmOutcome.ALREADY_EXISTS:
        logger.info(f"↪️ Helm repo '{spec.repo_name}' already registered")
    helm(ctx, "repo", "update")

    cmd = [
        "install", spec.release, spec.chart_ref,
        "--namespace", spec.namespace, "--create-namespace",
    ]
    for key, value in spec.values(ctx.cluster, ctx).items():
        cmd += ["--set", f"{key}={value}"]

    outcome = helm(ctx, *cmd)
    if outcome == HelmOutcome.ALREADY_EXISTS:
        logger.info(f"↪️ Helm release '{spec.release}' already installed")
    else:
        logger.info(f"✅ Helm release '{spec.release}' installed successfully.")

    if spec.ready_selector:
        wait_for_daemonsets(ctx, spec.namespace, spec.ready_selector, spec.release)
    return outcome


def wait_for_daemonsets(ctx: ExecutionContext, namespace: str, selector: str, name: str) -> None:
    logger.info(f"Waiting for {name} pods to be ready...")
    ctx.console.echo(f"Waiting for {name} pods to be ready...")
    policy = PollPolicy.from_settings(ctx.settings.workload_wait)
    wait_until(
        lambda: daemonsets_ready(ctx.kubeconfig, namespace, selector),
        f"{name} DaemonSets ({selector})",
        policy,
    )
    logger.info(f"✅ {name} is ready!")


def install_platform_services(ctx: ExecutionContext) -> Dict[str, HelmOutcome]:
    """Install the Helm client and every platform chart, in order."""
    install_helm(ctx)
    return {spec.release: install_chart(ctx, spec) for spec in CHARTS}
