import logging
import os
import shlex

import pytest
from typer.testing import CliRunner

from sshrun.adapters.cli import commands
from sshrun.adapters.cli.app import app
from sshrun.core.exceptions import ConfigError, ConnectionError, TransferError
from sshrun.domain.ssh.models import ExecResult, TransferEvent, TransferEventKind

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated(monkeypatch):
    """No ~/.ssh/config, no SSHRUN_* env, and root logging restored afterwards"""
    for name in list(os.environ):
        if name.startswith("SSHRUN_"):
            monkeypatch.delenv(name)

    def no_ssh_config(hostname, config_path=None):
        raise ConfigError("no ssh config")

    monkeypatch.setattr(commands, "load_ssh_config", no_ssh_config)

    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


class FakeSSH:
    """Records how the CLI drives the client"""

    instances = []
    exit_status = 0
    error = None

    def __init__(self, config):
        self.config = config
        self.calls = []
        FakeSSH.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.calls.append(("close",))

    def exec(self, command, silence=False):
        self.calls.append(("exec", command, silence))
        if self.error is not None:
            raise self.error
        return ExecResult(command=command, output=b"", exit_status=self.exit_status)

    def _transfer(self, name, src, dst, listener):
        self.calls.append((name, src, dst))
        if self.error is not None:
            raise self.error
        listener(TransferEvent(TransferEventKind.OPEN, src, dst, size=3))
        listener(TransferEvent(TransferEventKind.PUT, src, dst, size=3))
        return True

    def upload(self, local, remote, listener=None):
        return self._transfer("upload", local, remote, listener)

    def download(self, remote, local, listener=None):
        return self._transfer("download", remote, local, listener)


@pytest.fixture
def fake_ssh(monkeypatch):
    FakeSSH.instances = []
    FakeSSH.exit_status = 0
    FakeSSH.error = None
    monkeypatch.setattr(commands, "SSH", FakeSSH)
    return FakeSSH


class TestExec:
    def test_runs_command(self, fake_ssh):
        result = runner.invoke(app, ["exec", "alice@db:2222", "--silence", "--", "uname", "-a"])

        assert result.exit_code == 0, result.output
        ssh = fake_ssh.instances[0]
        assert ssh.config.host == "db"
        assert ssh.config.user == "alice"
        assert ssh.config.port == 2222
        assert ssh.calls == [("exec", "uname -a", True), ("close",)]

    def test_exit_status_is_propagated(self, fake_ssh):
        fake_ssh.exit_status = 3
        result = runner.invoke(app, ["exec", "db", "--", "false"])
        assert result.exit_code == 3

    def test_connection_error(self, fake_ssh):
        fake_ssh.error = ConnectionError("Failed to connect to db: refused")
        result = runner.invoke(app, ["exec", "db", "--", "true"])

        assert result.exit_code == 1
        assert "Connection error" in result.output

    def test_missing_config_file(self, fake_ssh, tmp_path):
        missing = tmp_path / "absent.toml"
        result = runner.invoke(app, ["exec", "db", "--config", str(missing), "--", "true"])

        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        assert "Configuration file not found" in result.output
        assert fake_ssh.instances == []

    def test_proxy_without_user(self, fake_ssh):
        result = runner.invoke(app, ["exec", "db", "--proxy-host", "jump", "--", "true"])

        assert result.exit_code == 1
        assert "proxy user" in result.output
        assert fake_ssh.instances == []


class TestTransfer:
    def test_upload(self, fake_ssh):
        result = runner.invoke(app, ["upload", "db", "a.txt", "/tmp/a.txt"])

        assert result.exit_code == 0, result.output
        assert fake_ssh.instances[0].calls[0] == ("upload", "a.txt", "/tmp/a.txt")
        assert "/tmp/a.txt" in result.output

    def test_download_quiet(self, fake_ssh):
        result = runner.invoke(app, ["download", "db", "/tmp/a.txt", "a.txt", "--quiet"])

        assert result.exit_code == 0
        assert fake_ssh.instances[0].calls[0] == ("download", "/tmp/a.txt", "a.txt")
        assert result.output == ""

    def test_transfer_error(self, fake_ssh):
        fake_ssh.error = TransferError("upload('a.txt' -> '/x') failed: denied")
        result = runner.invoke(app, ["upload", "db", "a.txt", "/x"])

        assert result.exit_code == 1
        assert "denied" in result.output


class TestConsole:
    def test_dry_run_prints_command(self):
        result = runner.invoke(
            app,
            [
                "console", "alice@db.internal", "-p", "2222", "-i", "/k/id",
                "--proxy-host", "jump", "--proxy-user", "bob", "--dry-run",
            ],
        )

        assert result.exit_code == 0, result.output
        argv = shlex.split(result.output.strip())
        assert argv[0] == "ssh"
        assert argv[-1] == "alice@db.internal"
        assert argv[argv.index("-p") + 1] == "2222"
        assert any(a.startswith("ProxyCommand=") and a.endswith("bob@jump nc %h %p") for a in argv)

    def test_replaces_process(self, monkeypatch):
        launched = []
        monkeypatch.setattr(os, "execvp", lambda file, argv: launched.append((file, argv)))

        result = runner.invoke(app, ["console", "alice@db"])

        assert result.exit_code == 0, result.output
        file, argv = launched[0]
        assert file == "ssh"
        assert argv[-1] == "alice@db"

    def test_proxy_without_user(self, monkeypatch):
        monkeypatch.setattr(os, "execvp", lambda file, argv: pytest.fail("must not exec"))

        result = runner.invoke(app, ["console", "db", "--proxy-host", "jump"])

        assert result.exit_code == 1
        assert "proxy user" in result.output
