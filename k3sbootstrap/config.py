"""Runtime settings for the k3sbootstrap application.

Settings are read from ``K3S_BOOTSTRAP_*`` environment variables, after
loading a ``.env`` file from the working directory if one exists. They
describe *how* the orchestrator runs on this machine (paths, SSH, wait
policies); the cluster itself is described by the cluster config file
parsed in :mod:`k3sbootstrap.modules.inventory`.
"""
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

# Load environment variables from .env file if it exists
load_dotenv()

ENV_PREFIX = "K3S_BOOTSTRAP_"

DEFAULT_CLUSTER_CONFIG = "/root/k3s-cluster-automation/configs/cluster-config.env"
DEFAULT_LOG_FILE = "/var/log/k3s-bootstrap.log"
DEFAULT_CHECKPOINT_FILE = "/var/lib/k3s-bootstrap/checkpoint.yaml"

K3S_INSTALL_URL = "https://get.k3s.io"
HELM_INSTALL_URL = "https://raw.githubusercontent.com/helm/helm/main/scripts/get-helm-3"


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.getenv(f"{ENV_PREFIX}{name}", default)


class WaitPolicy(BaseModel):
    """Polling parameters for one kind of wait. ``timeout`` of None waits forever."""
    interval: float = Field(default=5.0, gt=0)
    timeout: Optional[float] = Field(default=None)
    backoff: float = Field(default=1.0, ge=1.0)
    max_interval: float = Field(default=30.0, gt=0)

    @field_validator("timeout")
    @classmethod
    def zero_means_forever(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v <= 0:
            return None
        return v


class Settings(BaseModel):
    """Orchestrator settings with sensible defaults."""

    # Files
    cluster_config: Path = Path(DEFAULT_CLUSTER_CONFIG)
    log_file: Path = Path(DEFAULT_LOG_FILE)
    log_max_size_mb: int = 20
    log_backup_count: int = 3
    checkpoint_file: Path = Path(DEFAULT_CHECKPOINT_FILE)

    # SSH towards the init node
    ssh_user: str = "root"
    ssh_key_path: Path = Field(default=Path("~/.ssh/id_rsa"), validate_default=True)
    ssh_port: int = 22
    ssh_connect_timeout: int = 10

    # Installers
    k3s_install_url: str = K3S_INSTALL_URL
    helm_install_url: str = HELM_INSTALL_URL
    download_timeout: int = 60

    # K3s well-known paths
    token_path: str = "/var/lib/rancher/k3s/server/node-token"
    kubeconfig_path: Path = Path("/etc/rancher/k3s/k3s.yaml")
    agent_kubeconfig_path: Path = Path("/var/lib/rancher/k3s/agent/kubelet.kubeconfig")
    pod_cidr: str = "10.42.0.0/16"

    # Host files touched by the network and SSH stages
    hostname_file: Path = Path("/etc/hostname")
    hosts_file: Path = Path("/etc/hosts")
    sshd_config: Path = Path("/etc/ssh/sshd_config")
    vendor_sshd_config: Path = Path("/usr/etc/ssh/sshd_config")
    shell_rc: Path = Field(default=Path("~/.bashrc"), validate_default=True)

    # Seconds before the new network address is activated; 0 applies it in-process
    network_apply_delay: int = 5

    # Waits
    token_wait: WaitPolicy = Field(default_factory=lambda: WaitPolicy(timeout=1800))
    kubeconfig_wait: WaitPolicy = Field(default_factory=lambda: WaitPolicy(interval=3, timeout=600))
    api_wait: WaitPolicy = Field(default_factory=lambda: WaitPolicy(timeout=600))
    workload_wait: WaitPolicy = Field(default_factory=lambda: WaitPolicy(timeout=1200))

    @field_validator("ssh_key_path", "shell_rc")
    @classmethod
    def expand_home(cls, v: Path) -> Path:
        """Expand the user home directory in paths."""
        return Path(os.path.expanduser(str(v)))

    @classmethod
    def from_env(cls, **overrides) -> "Settings":
        """Build settings from the environment, applying explicit overrides last."""
        values = {}
        scalar_keys = {
            "CONFIG": "cluster_config",
            "LOG_FILE": "log_file",
            "CHECKPOINT": "checkpoint_file",
            "SSH_USER": "ssh_user",
            "SSH_KEY": "ssh_key_path",
            "SSH_PORT": "ssh_port",
            "SSH_CONNECT_TIMEOUT": "ssh_connect_timeout",
            "K3S_INSTALL_URL": "k3s_install_url",
            "HELM_INSTALL_URL": "helm_install_url",
            "NETWORK_APPLY_DELAY": "network_apply_delay",
        }
        for env_name, field_name in scalar_keys.items():
            value = _env(env_name)
            if value:
                values[field_name] = value

        interval = _env("POLL_INTERVAL")
        backoff = _env("POLL_BACKOFF")
        max_interval = _env("POLL_MAX_INTERVAL")
        defaults = cls()
        for wait in ("token", "kubeconfig", "api", "workload"):
            policy = getattr(defaults, f"{wait}_wait").model_dump()
            if interval:
                policy["interval"] = interval
            if backoff:
                policy["backoff"] = backoff
            if max_interval:
                policy["max_interval"] = max_interval
            timeout = _env(f"{wait.upper()}_TIMEOUT")
            if timeout is not None and timeout != "":
                policy["timeout"] = timeout
            values[f"{wait}_wait"] = policy

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
