from pathlib import Path
from typing import List, Tuple

from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException
from urllib3.exceptions import HTTPError

from ..logging import get_logger

logger = get_logger("kube")

# Failures of a single API call: server not answering, bad kubeconfig, API error
KUBE_ERRORS = (ApiException, ConfigException, HTTPError, OSError)


def new_api_client(kubeconfig: Path) -> client.ApiClient:
    """
    Build an API client bound to an explicit kubeconfig file.
    Nothing is loaded into the process-wide default configuration.
    """
    resolved = Path(kubeconfig).expanduser()
    if not resolved.exists():
        raise FileNotFoundError(f"❌ Kubeconfig not found: {resolved}")
    return config.new_client_from_config(config_file=str(resolved))


def api_responding(kubeconfig: Path) -> bool:
    """Return True once the API server answers a node list."""
    try:
        with new_api_client(kubeconfig) as api_client:
            client.CoreV1Api(api_client).list_node(_request_timeout=10)
        return True
    except KUBE_ERRORS as e:
        logger.debug(f"Kubernetes API not ready yet: {e}")
        return False


def node_summary(kubeconfig: Path) -> List[Tuple[str, str, str]]:
    """Return (name, status, roles) for each cluster node."""
    with new_api_client(kubeconfig) as api_client:
        nodes = client.CoreV1Api(api_client).list_node().items

    summary = []
    for node in nodes:
        ready = next(
            (c.status for c in (node.status.conditions or []) if c.type == "Ready"),
            "Unknown",
        )
        roles = sorted(
            label.split("/", 1)[1]
            for label in (node.metadata.labels or {})
            if label.startswith("node-role.kubernetes.io/")
        )
        status = "Ready" if ready == "True" else "NotReady"
        summary.append((node.metadata.name, status, ",".join(roles) or "<none>"))
    return summary


def daemonsets_ready(kubeconfig: Path, namespace: str, label_selector: str) -> bool:
    """True when every DaemonSet matching the selector has desired == ready pods."""
    try:
        with new_api_client(kubeconfig) as api_client:
            items = client.AppsV1Api(api_client).list_namespaced_daemon_set(
                namespace, label_selector=label_selector
            ).items
    except (ApiException, HTTPError, OSError) as e:
        logger.debug(f"Cannot list DaemonSets {label_selector} in {namespace}: {e}")
        return False

    if not items:
        return False
    for ds in items:
        desired = ds.status.desired_number_scheduled if ds.status else None
        ready = ds.status.number_ready if ds.status else None
        logger.debug(f"DaemonSet {ds.metadata.name}: {ready}/{desired} ready")
        if desired is None or ready != desired:
            return False
    return True
