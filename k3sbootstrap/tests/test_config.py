from pathlib import Path

from k3sbootstrap.config import Settings, WaitPolicy
from k3sbootstrap.utils import redact_sensitive_data


def test_defaults():
    settings = Settings()
    assert settings.cluster_config == Path("/root/k3s-cluster-automation/configs/cluster-config.env")
    assert settings.token_path == "/var/lib/rancher/k3s/server/node-token"
    assert settings.token_wait.timeout == 1800
    assert not str(settings.ssh_key_path).startswith("~")


def test_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("K3S_BOOTSTRAP_LOG_FILE", str(tmp_path / "run.log"))
    monkeypatch.setenv("K3S_BOOTSTRAP_SSH_USER", "admin")
    monkeypatch.setenv("K3S_BOOTSTRAP_POLL_INTERVAL", "2")
    monkeypatch.setenv("K3S_BOOTSTRAP_TOKEN_TIMEOUT", "0")
    monkeypatch.setenv("K3S_BOOTSTRAP_API_TIMEOUT", "90")

    settings = Settings.from_env()

    assert settings.log_file == tmp_path / "run.log"
    assert settings.ssh_user == "admin"
    assert settings.token_wait.timeout is None
    assert settings.api_wait.timeout == 90
    assert settings.api_wait.interval == 2
    assert settings.kubeconfig_wait.timeout == 600


def test_overrides_win_over_env(monkeypatch, tmp_path):
    monkeypatch.setenv("K3S_BOOTSTRAP_CONFIG", "/etc/from-env.env")
    override = tmp_path / "cli.env"
    assert Settings.from_env(cluster_config=override).cluster_config == override
    assert Settings.from_env(cluster_config=None).cluster_config == Path("/etc/from-env.env")


def test_zero_timeout_waits_forever():
    assert WaitPolicy(timeout=0).timeout is None


def test_redact_sensitive_data():
    data = {"K3S_URL": "https://10.0.0.1:6443", "K3S_TOKEN": "abc123", "nested": [{"password": "x"}]}
    assert redact_sensitive_data(data) == {
        "K3S_URL": "https://10.0.0.1:6443",
        "K3S_TOKEN": "[REDACTED]",
        "nested": [{"password": "[REDACTED]"}],
    }


def test_home_paths_expanded_for_defaults(monkeypatch, tmp_path):
    monkeypatch.setenv("HOME", str(tmp_path))
    settings = Settings()
    assert settings.ssh_key_path == tmp_path / ".ssh" / "id_rsa"
    assert settings.shell_rc == tmp_path / ".bashrc"
