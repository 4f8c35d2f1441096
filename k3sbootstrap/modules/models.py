"""Data models for the K3s bootstrap orchestrator."""
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Callable, List, Optional

if TYPE_CHECKING:
    from ..config import Settings
    from ..console import Console
    from ..utils import CommandRunner
    from .ssh import RemoteSession


class NodeRole(str, Enum):
    """Node roles in the K3s cluster."""
    MASTER = 'master'
    WORKER = 'worker'


class StageResult(str, Enum):
    """How a stage ended."""
    DONE = 'done'
    # Stage finished but the run must stop here (e.g. the address is about to change)
    PAUSE = 'pause'
    # Stage could not finish before a reboot; it runs again on the next invocation
    REBOOT = 'reboot'


@dataclass(frozen=True)
class Node:
    """A node of the static inventory."""
    name: str
    address: str
    role: NodeRole

    @property
    def is_master(self) -> bool:
        return self.role == NodeRole.MASTER


@dataclass
class NetworkConfig:
    """Static addressing applied to every node."""
    interface: str = 'ens33'
    prefix: int = 24
    gateway: Optional[str] = None
    dns: str = '1.1.1.1'


@dataclass
class ClusterConfig:
    """Cluster-wide settings read from the cluster config file."""
    nodes: List[Node]
    init_node_name: str
    server_port: int = 6443
    rancher_hostname: str = ''
    rancher_replicas: int = 1
    rancher_bootstrap_password: str = 'admin'
    network: NetworkConfig = field(default_factory=NetworkConfig)

    def find(self, name: str) -> Optional[Node]:
        """Return the first node called ``name``."""
        return next((node for node in self.nodes if node.name == name), None)

    @property
    def init_node(self) -> Node:
        node = self.find(self.init_node_name)
        if node is None:
            raise LookupError(f"Init node {self.init_node_name} is not in the inventory")
        return node

    @property
    def server_url(self) -> str:
        """URL other nodes use to join the cluster."""
        return f"https://{self.init_node.address}:{self.server_port}"

    @property
    def masters(self) -> List[Node]:
        return [node for node in self.nodes if node.is_master]

    @property
    def workers(self) -> List[Node]:
        return [node for node in self.nodes if not node.is_master]


@dataclass
class ExecutionContext:
    """Everything a stage needs, derived once at the start of a run.

    Stages read the kubeconfig location and node identity from here rather
    than from exported environment variables.
    """
    node: Node
    cluster: ClusterConfig
    settings: 'Settings'
    runner: 'CommandRunner'
    console: 'Console'
    session_factory: Callable[[Node], 'RemoteSession']

    @property
    def is_init_node(self) -> bool:
        return self.node.is_master and self.node.name == self.cluster.init_node_name

    @property
    def kubeconfig(self) -> Path:
        return self.settings.kubeconfig_path

    @property
    def service_name(self) -> str:
        return 'k3s' if self.node.is_master else 'k3s-agent'
