"""Logging setup for matchmaker worker processes.

Modules log through `logging.getLogger(__name__)` with a bracketed area tag
(`[POOL]`, `[PASS]`, `[LEASE]`, `[NOTIFY]`, `[STARTUP]`). A worker calls
setup_logging() once before starting its scheduler.

Environment variables:
    LOG_LEVEL: console level name (default INFO)
    LOG_DIR: directory for rotating log files (default <project>/logs)
    LOG_FORMAT: "text" or "json" (default text)
"""

import json
import logging
import os
import sys
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

_configured = False

_PROJECT_ROOT = Path(__file__).parent.parent.parent
_MAX_BYTES = 10 * 1024 * 1024
_TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(threadName)s | %(name)s:%(lineno)d | %(message)s"


class JSONFormatter(logging.Formatter):
    """One JSON object per record, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "line": record.lineno,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def _resolve_level(name: str | None) -> int:
    name = (name or os.getenv("LOG_LEVEL") or "INFO").upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def _rotating(path: Path, level: int, backups: int, formatter: logging.Formatter):
    handler = RotatingFileHandler(path, maxBytes=_MAX_BYTES, backupCount=backups, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    log_level: str | None = None,
    log_dir: str | Path | None = None,
    use_json: bool | None = None,
    log_to_files: bool = True,
) -> None:
    """Route matchmaker logs to stdout and, optionally, rotating files.

    Files are matchmaker.log (everything) and matchmaker_errors.log
    (ERROR and above). Only the first call has any effect.
    """
    global _configured
    if _configured:
        return

    level = _resolve_level(log_level)
    if use_json is None:
        use_json = os.getenv("LOG_FORMAT", "text").lower() == "json"
    if use_json:
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(_TEXT_FORMAT, "%Y-%m-%d %H:%M:%S")

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    root.handlers.clear()
    root.addHandler(console)

    log_path = None
    if log_to_files:
        log_path = Path(log_dir or os.getenv("LOG_DIR") or _PROJECT_ROOT / "logs")
        log_path.mkdir(parents=True, exist_ok=True)
        root.addHandler(_rotating(log_path / "matchmaker.log", logging.DEBUG, 5, formatter))
        root.addHandler(_rotating(log_path / "matchmaker_errors.log", logging.ERROR, 3, formatter))

    _configured = True

    from matchmaker.config import VERSION

    logging.getLogger("matchmaker").info(
        "[STARTUP] Matchmaker %s logging at %s (%s, files: %s)",
        VERSION,
        logging.getLevelName(level),
        "json" if use_json else "text",
        log_path or "off",
    )
