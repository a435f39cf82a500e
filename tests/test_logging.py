import logging

import pytest
from rich.logging import RichHandler

from sshrun.core.logging import get_logger, setup_logging


@pytest.fixture(autouse=True)
def restore_root():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    paramiko_level = logging.getLogger("paramiko").level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    logging.getLogger("paramiko").setLevel(paramiko_level)


def test_replaces_root_handlers():
    setup_logging("DEBUG")
    setup_logging("DEBUG")

    root = logging.getLogger()
    assert root.level == logging.DEBUG
    assert [type(h) for h in root.handlers] == [RichHandler]


def test_paramiko_kept_at_info_or_above():
    setup_logging("DEBUG")
    assert logging.getLogger("paramiko").level == logging.INFO

    setup_logging("ERROR")
    assert logging.getLogger("paramiko").level == logging.ERROR


def test_unknown_level_falls_back_to_info():
    setup_logging("chatty")
    assert logging.getLogger().level == logging.INFO


def test_log_file(tmp_path):
    log_file = tmp_path / "logs" / "sshrun.log"
    setup_logging("INFO", log_file=log_file)

    get_logger("sshrun.test").info("exec('uptime')")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert "sshrun.test - INFO - exec('uptime')" in log_file.read_text()
