from k3sbootstrap.modules.models import StageResult
from k3sbootstrap.modules.network import ACTIVATION_UNIT, configure_network, render_hosts
from k3sbootstrap.tests.conftest import FakeRunner, console_output


def test_render_hosts(cluster):
    assert render_hosts(cluster) == (
        "127.0.0.1 localhost\n"
        "10.0.0.1 node-1 rancher.example.org\n"
        "10.0.0.2 node-2\n"
    )


def test_network_change_is_deferred(make_ctx, settings):
    runner = FakeRunner()
    ctx = make_ctx("node-2", runner=runner)

    assert configure_network(ctx) == StageResult.PAUSE

    commands = runner.commands()
    assert commands[0] == [
        "nmcli", "con", "mod", "ens33",
        "ipv4.method", "manual", "ipv4.addresses", "10.0.0.2/24", "ipv4.dns", "1.1.1.1",
    ]
    assert commands[1][:2] == ["systemd-run", f"--unit={ACTIVATION_UNIT}"]
    assert "--on-active=5" in commands[1]
    assert commands[1][-3:] == ["con", "up", "ens33"]
    assert settings.hostname_file.read_text() == "node-2\n"
    assert "10.0.0.1 node-1" in settings.hosts_file.read_text()
    assert "SSH to 10.0.0.2" in console_output(ctx)


def test_network_change_immediate(make_ctx, settings):
    settings.network_apply_delay = 0
    runner = FakeRunner()
    ctx = make_ctx("node-1", runner=runner)

    assert configure_network(ctx) == StageResult.DONE
    assert runner.commands()[-1] == ["nmcli", "con", "up", "ens33"]
    assert not any(cmd[0] == "systemd-run" for cmd in runner.commands())
