import os
import subprocess
import sys
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[2]
SCRIPT = REPO_ROOT / "scripts" / "validate-config.py"

BASE = """\
NODES=(
{nodes}
)
K3S_CLUSTER_INIT_NODE="{init}"
RANCHER_HOSTNAME="rancher.example.org"
RANCHER_REPLICAS={replicas}
{extra}
"""


def run(args, cwd=None):
    pythonpath = [str(REPO_ROOT), os.environ.get("PYTHONPATH", "")]
    env = {**os.environ, "PYTHONPATH": os.pathsep.join(filter(None, pythonpath)), "PYTHONIOENCODING": "utf-8"}
    return subprocess.run(
        [sys.executable, str(SCRIPT), *args],
        capture_output=True, text=True, encoding="utf-8", env=env, cwd=str(cwd) if cwd else None,
    )


def run_script(tmp_path, nodes, replicas=1, extra="", init="node-1"):
    config = tmp_path / "cluster-config.env"
    entries = "\n".join(f'  "{entry}"' for entry in nodes)
    config.write_text(BASE.format(nodes=entries, replicas=replicas, extra=extra, init=init))
    return run([str(config)], cwd=tmp_path)


def test_valid_config(tmp_path):
    result = run_script(tmp_path, ["node-1:10.0.0.1:master", "node-2:10.0.0.2:worker"])
    assert result.returncode == 0
    assert "validation passed" in result.stdout


def test_usage_without_argument():
    result = run([])
    assert result.returncode == 1
    assert "Usage" in result.stdout


def test_invalid_config_fails(tmp_path):
    result = run_script(tmp_path, ["node-1:10.0.0.1:master", "node-1:10.0.0.2:worker"])
    assert result.returncode == 1
    assert "Duplicate node names" in result.stdout


def test_nodes_in_different_subnets(tmp_path):
    result = run_script(tmp_path, ["node-1:10.0.0.1:master", "node-2:10.0.1.2:worker"])
    assert result.returncode == 1
    assert "same /24 subnet" in result.stdout


def test_wider_prefix_accepts_both_subnets(tmp_path):
    result = run_script(
        tmp_path, ["node-1:10.0.0.1:master", "node-2:10.0.1.2:worker"], extra="NETWORK_PREFIX=16",
    )
    assert result.returncode == 0


def test_gateway_outside_subnet(tmp_path):
    result = run_script(
        tmp_path, ["node-1:10.0.0.1:master", "node-2:10.0.0.2:worker"], extra="NETWORK_GATEWAY=192.168.1.1",
    )
    assert result.returncode == 1
    assert "Gateway 192.168.1.1" in result.stdout


@pytest.mark.parametrize("nodes,replicas,init,warning", [
    (["node-1:10.0.0.1:master", "node-2:10.0.0.2:master"], 1, "node-1", "even number of etcd members"),
    (["node-1:10.0.0.1:master", "node-2:10.0.0.2:worker"], 3, "node-1", "RANCHER_REPLICAS=3"),
    (["Node-1:10.0.0.1:master"], 1, "Node-1", "not lowercase"),
])
def test_policy_warnings(tmp_path, nodes, replicas, init, warning):
    result = run_script(tmp_path, nodes, replicas=replicas, init=init)
    assert result.returncode == 0
    assert warning in result.stdout
