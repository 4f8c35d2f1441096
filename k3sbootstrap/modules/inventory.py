"""Cluster configuration loader.

The cluster config is the shell-sourceable file shared by every node::

    NODES=(
      "Node-1:192.168.154.210:master"
      "Node-2:192.168.154.211:master"
      # "Node-5:192.168.154.214:worker"
    )
    K3S_CLUSTER_INIT_NODE="Node-1"
    K3S_SERVER_PORT=6443
    RANCHER_HOSTNAME="myrancher.org"
    RANCHER_REPLICAS=1

Scalars are read with python-dotenv, the ``NODES`` array with shlex so that
commented entries are excluded. Loading is all-or-nothing: any problem
raises :class:`ConfigError` and nothing is returned.
"""
import io
import ipaddress
import re
import shlex
from collections import Counter
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from dotenv import dotenv_values
from jsonschema import ValidationError, validate

from ..exceptions import ConfigError
from ..logging import get_logger
from .models import ClusterConfig, NetworkConfig, Node, NodeRole

logger = get_logger("inventory")

ARRAY_START = re.compile(r'^\s*(?:export\s+|declare\s+-a\s+)?NODES=\((?P<rest>.*)$')

CONFIG_SCHEMA = {
    "type": "object",
    "properties": {
        "NODES": {
            "type": "array",
            "minItems": 1,
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string", "minLength": 1},
                    "address": {"type": "string", "minLength": 1},
                    "role": {"enum": [role.value for role in NodeRole]},
                },
                "required": ["name", "address", "role"],
            },
        },
        "K3S_CLUSTER_INIT_NODE": {"type": "string", "minLength": 1},
        "K3S_SERVER_PORT": {"type": "integer", "minimum": 1, "maximum": 65535},
        "RANCHER_HOSTNAME": {"type": "string", "minLength": 1},
        "RANCHER_REPLICAS": {"type": "integer", "minimum": 1},
        "RANCHER_BOOTSTRAP_PASSWORD": {"type": "string", "minLength": 1},
        "NETWORK_INTERFACE": {"type": "string", "minLength": 1},
        "NETWORK_PREFIX": {"type": "integer", "minimum": 1, "maximum": 32},
        "NETWORK_GATEWAY": {"type": "string"},
        "NETWORK_DNS": {"type": "string", "minLength": 1},
    },
    "required": ["NODES", "K3S_CLUSTER_INIT_NODE", "RANCHER_HOSTNAME", "RANCHER_REPLICAS"],
}

INTEGER_KEYS = ("K3S_SERVER_PORT", "RANCHER_REPLICAS", "NETWORK_PREFIX")


def _closing_paren(line: str) -> int:
    """Index of the ``)`` closing the array on this line, ignoring quotes and comments."""
    quote = None
    for index, char in enumerate(line):
        if quote:
            if char == quote:
                quote = None
        elif char in ("'", '"'):
            quote = char
        elif char == "#" and (index == 0 or line[index - 1].isspace()):
            return -1
        elif char == ")":
            return index
    return -1


def split_nodes_array(text: str) -> Tuple[Optional[str], str]:
    """Separate the ``NODES=( ... )`` block from the scalar assignments.

    Returns:
        tuple: (array body or None if absent, remaining text)
    """
    rest: List[str] = []
    body: List[str] = []
    found = False
    in_array = False

    for line in text.splitlines():
        if not in_array:
            match = ARRAY_START.match(line) if not found else None
            if not match:
                rest.append(line)
                continue
            found = True
            line = match.group("rest")
            in_array = True

        close = _closing_paren(line)
        if close >= 0:
            body.append(line[:close])
            in_array = False
        else:
            body.append(line)

    if in_array:
        raise ConfigError("NODES array is not closed with ')'")
    return ("\n".join(body) if found else None), "\n".join(rest)


def parse_node_entry(entry: str) -> Dict[str, str]:
    """Split a ``name:ip:role`` triple."""
    parts = entry.split(":")
    if len(parts) != 3:
        raise ConfigError(f"Invalid node entry '{entry}', expected name:ip:role")
    name, address, role = (part.strip() for part in parts)
    return {"name": name, "address": address, "role": role}


def parse_config_text(text: str) -> Dict[str, Any]:
    """Parse config file text into a raw document keyed by variable name."""
    array_body, scalars = split_nodes_array(text)
    values: Dict[str, Any] = {
        key: value for key, value in dotenv_values(stream=io.StringIO(scalars)).items()
        if value is not None and value != ""
    }
    values.pop("NODES", None)

    if array_body is not None:
        try:
            entries = shlex.split(array_body, comments=True)
        except ValueError as e:
            raise ConfigError(f"Cannot parse NODES array: {e}")
        values["NODES"] = [parse_node_entry(entry) for entry in entries]

    for key in INTEGER_KEYS:
        if key in values:
            try:
                values[key] = int(values[key])
            except (TypeError, ValueError):
                raise ConfigError(f"{key} must be an integer, got '{values[key]}'")
    return values


def _check_ipv4(value: str, what: str) -> None:
    try:
        ipaddress.IPv4Address(value)
    except ValueError:
        raise ConfigError(f"Invalid IPv4 address for {what}: {value}")


def build_cluster_config(values: Dict[str, Any]) -> ClusterConfig:
    """Validate a raw document and turn it into a :class:`ClusterConfig`."""
    try:
        validate(instance=values, schema=CONFIG_SCHEMA)
    except ValidationError as ve:
        location = ".".join(str(p) for p in ve.absolute_path)
        prefix = f"{location}: " if location else ""
        raise ConfigError(f"Invalid cluster config: {prefix}{ve.message}")

    nodes = [
        Node(name=item["name"], address=item["address"], role=NodeRole(item["role"]))
        for item in values["NODES"]
    ]

    duplicates = [name for name, count in Counter(n.name for n in nodes).items() if count > 1]
    if duplicates:
        raise ConfigError(f"Duplicate node names in NODES: {', '.join(sorted(duplicates))}")

    for node in nodes:
        _check_ipv4(node.address, node.name)
    duplicate_ips = [ip for ip, count in Counter(n.address for n in nodes).items() if count > 1]
    if duplicate_ips:
        raise ConfigError(f"Duplicate IP addresses in NODES: {', '.join(sorted(duplicate_ips))}")

    init_name = values["K3S_CLUSTER_INIT_NODE"]
    init_matches = [node for node in nodes if node.name == init_name]
    if not init_matches:
        raise ConfigError(f"K3S_CLUSTER_INIT_NODE '{init_name}' is not listed in NODES")
    if not init_matches[0].is_master:
        raise ConfigError(f"K3S_CLUSTER_INIT_NODE '{init_name}' must have role master")

    network = NetworkConfig(
        interface=values.get("NETWORK_INTERFACE", NetworkConfig.interface),
        prefix=values.get("NETWORK_PREFIX", NetworkConfig.prefix),
        gateway=values.get("NETWORK_GATEWAY") or None,
        dns=values.get("NETWORK_DNS", NetworkConfig.dns),
    )
    if network.gateway:
        _check_ipv4(network.gateway, "NETWORK_GATEWAY")

    return ClusterConfig(
        nodes=nodes,
        init_node_name=init_name,
        server_port=values.get("K3S_SERVER_PORT", 6443),
        rancher_hostname=values["RANCHER_HOSTNAME"],
        rancher_replicas=values["RANCHER_REPLICAS"],
        rancher_bootstrap_password=values.get("RANCHER_BOOTSTRAP_PASSWORD", "admin"),
        network=network,
    )


def load_cluster_config(path: Path) -> ClusterConfig:
    """Load and validate the cluster config file.

    Raises:
        ConfigError: If the file is missing or invalid
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigError(f"Missing {path}")
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}")

    cluster = build_cluster_config(parse_config_text(text))
    logger.info(
        f"📄 Loaded config from {path}: {len(cluster.masters)} master(s), "
        f"{len(cluster.workers)} worker(s), init node {cluster.init_node_name}"
    )
    return cluster
