import io

from k3sbootstrap.config import Settings
from k3sbootstrap.console import Console
from k3sbootstrap.modules import k3s, token
from k3sbootstrap.modules.models import ExecutionContext
from k3sbootstrap.tests.conftest import FakeRunner, FakeSession, console_output, touch


def installer_calls(runner):
    return [call for call in runner.calls if call["cmd"][:3] == ["sh", "-s", "-"]]


def test_worker_joins_with_token_from_init_node(make_ctx, settings, monkeypatch):
    monkeypatch.setattr(k3s, "download_text", lambda url, timeout=60: "#!/bin/sh\n")
    monkeypatch.setattr(token, "ensure_key_pair", lambda path: "ssh-rsa AAAA node-2")
    touch(settings.agent_kubeconfig_path)
    session = FakeSession(host="10.0.0.1", token="abc123\n", appears_after=3)
    runner = FakeRunner()
    ctx = make_ctx("node-2", runner=runner, session=session)

    k3s.install_worker(ctx)

    assert session.polls == 3
    assert session.reads == 1
    calls = installer_calls(runner)
    assert len(calls) == 1
    assert calls[0]["cmd"] == ["sh", "-s", "-"]
    assert calls[0]["env"] == {"K3S_URL": "https://10.0.0.1:6443", "K3S_TOKEN": "abc123"}
    assert calls[0]["input"] == "#!/bin/sh\n"
    assert ["systemctl", "enable", "k3s-agent"] in runner.commands()
    assert ["systemctl", "start", "k3s-agent"] in runner.commands()
    assert "Worker join completed on node-2" in console_output(ctx)


def test_init_master_bootstraps_without_token(make_ctx, settings, monkeypatch):
    monkeypatch.setattr(k3s, "download_text", lambda url, timeout=60: "script")
    touch(settings.kubeconfig_path)
    session = FakeSession()
    runner = FakeRunner()
    ctx = make_ctx("node-1", runner=runner, session=session)

    k3s.install_master(ctx)

    calls = installer_calls(runner)
    assert calls[0]["cmd"] == ["sh", "-s", "-", "server", "--cluster-init"]
    assert "K3S_TOKEN" not in calls[0]["env"]
    assert session.polls == 0
    assert ["systemctl", "start", "k3s"] in runner.commands()
    assert f"export KUBECONFIG={settings.kubeconfig_path}" in settings.shell_rc.read_text()


def test_persist_kubeconfig_once(make_ctx, settings):
    settings.shell_rc.write_text("alias k=kubectl")
    ctx = make_ctx("node-1")
    k3s.persist_kubeconfig(ctx)
    k3s.persist_kubeconfig(ctx)
    lines = settings.shell_rc.read_text().splitlines()
    assert lines == ["alias k=kubectl", f"export KUBECONFIG={settings.kubeconfig_path}"]


def test_join_master_passes_server_url(make_ctx, monkeypatch):
    monkeypatch.setattr(k3s, "download_text", lambda url, timeout=60: "script")
    runner = FakeRunner()
    ctx = make_ctx("node-1", runner=runner)
    k3s.join_master(ctx, "tok")
    call = installer_calls(runner)[0]
    assert call["cmd"] == ["sh", "-s", "-", "server", "--server", "https://10.0.0.1:6443"]
    assert call["env"] == {"K3S_TOKEN": "tok"}


def test_persist_kubeconfig_with_default_settings(cluster, monkeypatch, tmp_path):
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.chdir(tmp_path)
    settings = Settings()
    ctx = ExecutionContext(
        node=cluster.find("node-1"),
        cluster=cluster,
        settings=settings,
        runner=FakeRunner(),
        console=Console(stream=io.StringIO()),
        session_factory=lambda node: FakeSession(),
    )

    k3s.persist_kubeconfig(ctx)

    assert settings.shell_rc == tmp_path / ".bashrc"
    assert (tmp_path / ".bashrc").read_text() == "export KUBECONFIG=/etc/rancher/k3s/k3s.yaml\n"
    assert not (tmp_path / "~").exists()
