"""Session logging for sync runs.

Every run writes a ``sync_<session>.jsonl`` file next to the vault settings;
the console gets the same events rendered for humans. Modules log through
``get_logger(__name__)`` and pass event names plus keyword fields.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, cast

import structlog

# libraries that log each OpenAlex request at INFO
NOISY_LOGGERS = ("httpx", "httpcore")

SHARED_PROCESSORS: list[Any] = [
    structlog.contextvars.merge_contextvars,
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
]


def session_log_path(log_dir: Path, session_id: str | None = None) -> Path:
    if session_id is None:
        session_id = datetime.now().strftime("%Y%m%d_%H%M%S")
    return log_dir / f"sync_{session_id}.jsonl"


def _attach(handler: logging.Handler, level: int, renderer: Any) -> None:
    handler.setLevel(level)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(processors=[*SHARED_PROCESSORS, renderer])
    )
    logging.root.addHandler(handler)


def setup_logging(
    session_id: str | None = None,
    log_level: str = "INFO",
    console_output: bool = True,
    log_dir: Path | None = None,
) -> Path:
    """
    Route structlog events to a JSONL session file and, optionally, the console.

    Args:
        session_id: Names the log file; a timestamp when omitted
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        console_output: Also render events on stderr
        log_dir: Directory receiving the session file (default: ./logs)

    Returns:
        The session log file Path.
    """
    log_dir = log_dir or Path("logs")
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = session_log_path(log_dir, session_id)

    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.root.handlers.clear()
    logging.root.setLevel(level)

    if console_output:
        _attach(logging.StreamHandler(), level, structlog.dev.ConsoleRenderer())
    _attach(
        logging.FileHandler(log_file, mode="a", encoding="utf-8"),
        level,
        structlog.processors.JSONRenderer(),
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # every event of the run carries the log file it belongs to
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(session=log_file.stem)

    return log_file


def get_logger(name: str) -> structlog.BoundLogger:
    return cast(structlog.BoundLogger, structlog.get_logger(name))
