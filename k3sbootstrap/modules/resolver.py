"""Role resolution: which inventory entry is this machine?"""
import socket

from ..exceptions import NodeNotFoundError
from ..logging import get_logger
from .models import ClusterConfig, Node

logger = get_logger("resolver")


def local_hostname() -> str:
    """Return the machine's own name as reported by the OS."""
    return socket.gethostname()


def resolve_node(cluster: ClusterConfig, hostname: str) -> Node:
    """Match ``hostname`` against the inventory.

    An unregistered machine must never mutate cluster state, so a miss is
    fatal.

    Raises:
        NodeNotFoundError: If no inventory entry carries this name
    """
    node = cluster.find(hostname)
    if node is None:
        logger.error(f"❌ Node {hostname} not found in config")
        raise NodeNotFoundError(hostname)
    logger.info(f"🔍 Resolved {node.name} as {node.role.value} at {node.address}")
    return node
