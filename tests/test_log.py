import json
import logging
from collections.abc import Iterator
from pathlib import Path

import pytest
import structlog

from research_hubs.utils.log import get_logger, session_log_path, setup_logging


@pytest.fixture(autouse=True)
def restore_root_handlers() -> Iterator[None]:
    saved = list(logging.root.handlers)
    yield
    for handler in logging.root.handlers:
        handler.close()
    logging.root.handlers[:] = saved
    structlog.contextvars.clear_contextvars()


def test_session_log_path(tmp_path: Path) -> None:
    assert session_log_path(tmp_path, "abc") == tmp_path / "sync_abc.jsonl"
    assert session_log_path(tmp_path).name.startswith("sync_")


def test_events_written_as_json_lines(tmp_path: Path) -> None:
    log_file = setup_logging("run1", console_output=False, log_dir=tmp_path / "logs")

    get_logger("research_hubs.sync").info("hub_created", path="Research-Hubs/hub_x.md")
    for handler in logging.root.handlers:
        handler.flush()

    record = json.loads(log_file.read_text(encoding="utf-8").splitlines()[-1])
    assert record["event"] == "hub_created"
    assert record["path"] == "Research-Hubs/hub_x.md"
    assert record["session"] == "sync_run1"
    assert record["level"] == "info"


def test_http_client_loggers_quieted(tmp_path: Path) -> None:
    setup_logging("run2", log_level="DEBUG", console_output=False, log_dir=tmp_path)
    assert logging.getLogger("httpx").level == logging.WARNING
    assert logging.getLogger("httpcore").level == logging.WARNING
