from pathlib import Path

import paramiko
import pytest
from typer.testing import CliRunner

from devnet.cli import app as cli

from fakes import FakeStorageNode, fake_toolbox, host_runner

runner = CliRunner()


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    f = tmp_path / "devnet.yaml"
    f.write_text("domain: example.test\ncontact_email: ops@example.test\nstorage_node_version: v0.28.0\n")
    return f


@pytest.fixture
def fake_host(monkeypatch):
    host = host_runner()
    made = {}

    def _toolbox(cfg, r, **kw):
        made["tools"] = fake_toolbox(cfg, runner=r, storage_node=made.get("storage_node"))
        return made["tools"]

    monkeypatch.setattr(cli, "connect", lambda cfg, ctx: host)
    monkeypatch.setattr(cli, "build_toolbox", _toolbox)
    return made


def test_render_proxy_prints_site(config_file):
    result = runner.invoke(cli.app, ["render-proxy", str(config_file)])
    assert result.exit_code == 0, result.output
    assert "server_name example.test;" in result.output
    assert "location /healthz" in result.output


def test_steps_lists_pipeline(config_file):
    result = runner.invoke(cli.app, ["steps", str(config_file)])
    assert result.exit_code == 0, result.output
    assert "preflight" in result.output
    assert "firewall" in result.output and "[best_effort]" in result.output
    assert "certificate" in result.output


def test_invalid_config_is_usage_error(tmp_path):
    f = tmp_path / "bad.yaml"
    f.write_text("domain: not a domain\ncontact_email: ops@example.test\n")
    result = runner.invoke(cli.app, ["render-proxy", str(f)])
    assert result.exit_code == 2


def test_provision_success(config_file, fake_host, tmp_path, reset_devnet_logger):
    result = runner.invoke(cli.app, ["provision", str(config_file), "--log-dir", str(tmp_path / "logs")])
    assert result.exit_code == 0, result.output
    assert "SUCCESS" in result.output
    assert sorted(fake_host["tools"].supervisor.procs) == ["hardhat-devnet", "ipfs"]
    assert list((tmp_path / "logs").glob("*.jsonl"))


def test_provision_failure_exits_non_zero(config_file, fake_host, tmp_path, reset_devnet_logger):
    fake_host["storage_node"] = FakeStorageNode(fail_install=True)
    result = runner.invoke(cli.app, ["provision", str(config_file), "--log-dir", str(tmp_path / "logs")])
    assert result.exit_code == 1
    assert "storage-node-binary" in result.output
    assert fake_host["tools"].supervisor.started == []


def test_skip_certificate_flag(config_file, fake_host, tmp_path, reset_devnet_logger):
    result = runner.invoke(
        cli.app,
        ["provision", str(config_file), "--skip-certificate", "--log-dir", str(tmp_path / "logs")],
    )
    assert result.exit_code == 0, result.output
    assert fake_host["tools"].certificates.issued == []


def test_provision_unreachable_host_fails_at_connect(config_file, monkeypatch, tmp_path, reset_devnet_logger):
    def refuse(cfg, ctx):
        raise paramiko.ssh_exception.NoValidConnectionsError({("203.0.113.7", 22): OSError("Connection refused")})

    monkeypatch.setattr(cli, "connect", refuse)
    result = runner.invoke(
        cli.app,
        ["provision", str(config_file), "--ssh-host", "203.0.113.7", "--log-dir", str(tmp_path / "logs")],
    )
    assert result.exit_code == 1
    assert isinstance(result.exception, SystemExit)
    assert "connect: FAILED" in result.output
    assert "Provisioning failed at step 'connect'" in result.output
    events = next((tmp_path / "logs").glob("*.jsonl")).read_text()
    assert '"connect"' in events


def test_verify_auth_failure_is_reported(config_file, monkeypatch):
    def reject(cfg, ctx):
        raise paramiko.AuthenticationException("Authentication failed.")

    monkeypatch.setattr(cli, "connect", reject)
    result = runner.invoke(cli.app, ["verify", str(config_file), "--ssh-host", "203.0.113.7"])
    assert result.exit_code == 1
    assert "Could not connect to 203.0.113.7: Authentication failed." in result.output
