"""
End-to-end checks against a real sshd.

Set SSHRUN_TEST_HOST (and optionally SSHRUN_TEST_USER, SSHRUN_TEST_PORT,
SSHRUN_TEST_IDENTITY) to run them.
"""
import io
import os
import uuid

import pytest

from sshrun import SSH, ConnectionConfig

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(not os.getenv("SSHRUN_TEST_HOST"), reason="SSHRUN_TEST_HOST not set"),
]


@pytest.fixture
def ssh():
    port = os.getenv("SSHRUN_TEST_PORT")
    config = ConnectionConfig(
        host=os.environ["SSHRUN_TEST_HOST"],
        user=os.getenv("SSHRUN_TEST_USER"),
        port=int(port) if port else None,
        identity_file=os.getenv("SSHRUN_TEST_IDENTITY"),
        forward_agent=False,
        stdout=io.StringIO(),
        stderr=io.StringIO(),
    )
    with SSH(config) as client:
        yield client


def test_exec_hostname(ssh):
    result = ssh.exec("hostname", silence=True)

    assert result.success
    assert result.text.strip()
    assert ssh.config.stdout.getvalue() == ""


def test_exec_reports_exit_status(ssh):
    assert ssh.exec("exit 7", silence=True).exit_status == 7


def test_upload_download_round_trip(ssh, tmp_path):
    payload = os.urandom(100_000)
    src = tmp_path / "payload.bin"
    src.write_bytes(payload)
    remote_dir = f"/tmp/sshrun-{uuid.uuid4().hex}"
    dst = tmp_path / "back" / "payload.bin"

    try:
        assert ssh.upload(str(src), f"{remote_dir}/nested/payload.bin")
        assert ssh.download(f"{remote_dir}/nested/payload.bin", str(dst))
        assert dst.read_bytes() == payload
    finally:
        ssh.exec(f"rm -rf {remote_dir}", silence=True)
