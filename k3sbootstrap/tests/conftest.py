import io
import subprocess
import sys
from pathlib import Path

import pytest

from k3sbootstrap import console as console_module
from k3sbootstrap.config import Settings, WaitPolicy
from k3sbootstrap.console import Console
from k3sbootstrap.exceptions import CommandError
from k3sbootstrap.modules.inventory import parse_config_text, build_cluster_config
from k3sbootstrap.modules.models import ExecutionContext

CLUSTER_ENV = """\
# Cluster nodes: name:ip:role
NODES=(
  "node-1:10.0.0.1:master"
  "node-2:10.0.0.2:worker"
  # "node-3:10.0.0.3:worker"
)

K3S_CLUSTER_INIT_NODE="node-1"
K3S_SERVER_PORT=6443
RANCHER_HOSTNAME="rancher.example.org"
RANCHER_REPLICAS=1
"""

FAST_WAIT = WaitPolicy(interval=0.01, timeout=5, max_interval=0.01)


class FakeRunner:
    """Records commands instead of running them.

    ``handler(cmd, input, env)`` may return ``(returncode, stdout, stderr)``
    to script a response; anything unhandled succeeds with no output.
    """

    def __init__(self, handler=None):
        self.calls = []
        self.handler = handler

    def run(self, cmd, *, env=None, input=None, check=True, cwd=None):
        cmd = [str(part) for part in cmd]
        self.calls.append({"cmd": cmd, "env": dict(env or {}), "input": input})
        response = self.handler(cmd, input, env) if self.handler else None
        returncode, stdout, stderr = response or (0, "", "")
        if check and returncode != 0:
            raise CommandError(cmd, returncode, stderr=stderr)
        return subprocess.CompletedProcess(cmd, returncode, stdout, stderr)

    def succeeds(self, cmd):
        return self.run(cmd, check=False).returncode == 0

    def commands(self):
        return [call["cmd"] for call in self.calls]


class FakeSession:
    """Stands in for an SSH session to the init node."""

    def __init__(self, host="10.0.0.1", token="abc123\n", appears_after=1, errors=()):
        self.host = host
        self.target = f"root@{host}"
        self.token = token
        self.appears_after = appears_after
        self.errors = list(errors)
        self.polls = 0
        self.reads = 0
        self.executed = []

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def execute(self, command, timeout=60):
        self.executed.append(command)
        return 0, "", ""

    def file_exists(self, path):
        self.polls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.polls >= self.appears_after

    def read_file(self, path):
        self.reads += 1
        return self.token

    def close(self):
        pass


@pytest.fixture(autouse=True)
def no_tty(monkeypatch):
    monkeypatch.setattr(console_module, "_open_tty", lambda: sys.stderr)


@pytest.fixture
def cluster():
    return build_cluster_config(parse_config_text(CLUSTER_ENV))


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "cluster-config.env"
    path.write_text(CLUSTER_ENV)
    return path


@pytest.fixture
def settings(tmp_path):
    return Settings(
        cluster_config=tmp_path / "cluster-config.env",
        log_file=tmp_path / "k3s-bootstrap.log",
        checkpoint_file=tmp_path / "state" / "checkpoint.yaml",
        ssh_key_path=tmp_path / "id_rsa",
        kubeconfig_path=tmp_path / "k3s.yaml",
        agent_kubeconfig_path=tmp_path / "kubelet.kubeconfig",
        hostname_file=tmp_path / "hostname",
        hosts_file=tmp_path / "hosts",
        sshd_config=tmp_path / "sshd_config",
        vendor_sshd_config=tmp_path / "vendor_sshd_config",
        shell_rc=tmp_path / "bashrc",
        token_wait=FAST_WAIT,
        kubeconfig_wait=FAST_WAIT,
        api_wait=FAST_WAIT,
        workload_wait=FAST_WAIT,
    )


@pytest.fixture
def make_ctx(cluster, settings):
    """Build an execution context for one inventory node."""
    def factory(name="node-1", runner=None, session=None):
        return ExecutionContext(
            node=cluster.find(name),
            cluster=cluster,
            settings=settings,
            runner=runner or FakeRunner(),
            console=Console(stream=io.StringIO()),
            session_factory=lambda node: session or FakeSession(host=node.address),
        )
    return factory


def console_output(ctx) -> str:
    return ctx.console.stream.getvalue()


def touch(path: Path) -> Path:
    path.write_text("")
    return path
