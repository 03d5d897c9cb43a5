"""
Logging setup for the back office.

Two output shapes on stderr, picked from the app config:
    - JSON lines when neither DEBUG nor TESTING is set (production)
    - one readable line per record otherwise

Generator and scheduler code attach context through ``extra=``:

    logger.info("Template %s skipped", tid,
                extra={"tenant_id": 3, "template_id": tid})
    logger.info("Generation finished", extra={"summary": summary.to_dict()})

``tenant_id``, ``template_id`` and ``job_name`` tag the line; ``summary``
carries the counters of a generation run; the request timing middleware
adds ``request_id``, ``method``, ``path``, ``status`` and ``duration_ms``.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

DOMAIN_FIELDS = ("tenant_id", "template_id", "job_name")
REQUEST_FIELDS = ("request_id", "method", "path", "status", "duration_ms")

_NOISY_LOGGERS = ("werkzeug", "sqlalchemy.engine", "alembic.runtime.migration")


def _context(record: logging.LogRecord, fields) -> dict:
    return {f: getattr(record, f) for f in fields if getattr(record, f, None) is not None}


class JSONFormatter(logging.Formatter):
    """One JSON object per record; context fields are top-level keys."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        entry.update(_context(record, DOMAIN_FIELDS))
        entry.update(_context(record, REQUEST_FIELDS))
        summary = getattr(record, "summary", None)
        if summary:
            entry["summary"] = summary
        if record.exc_info and record.exc_info[0] is not None:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """``12:00:01 INFO  backoffice.services... [tenant=3 template=12] msg``

    Generation summaries are appended as ``key=value`` pairs, skipping zeros.
    """

    _TAGS = {"tenant_id": "tenant", "template_id": "template", "job_name": "job"}
    _LEVEL_COLOR = {"WARNING": "\033[33m", "ERROR": "\033[31m", "CRITICAL": "\033[31;1m"}

    def __init__(self, color: bool = True):
        super().__init__()
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        ctx = _context(record, DOMAIN_FIELDS)
        tags = " ".join(f"{self._TAGS[k]}={v}" for k, v in ctx.items())
        level = f"{record.levelname:<7}"
        if self.color and record.levelname in self._LEVEL_COLOR:
            level = f"{self._LEVEL_COLOR[record.levelname]}{level}\033[0m"

        parts = [datetime.now().strftime("%H:%M:%S"), level, record.name]
        if tags:
            parts.append(f"[{tags}]")
        parts.append(record.getMessage())

        summary = getattr(record, "summary", None)
        if summary:
            parts.append(" ".join(f"{k}={v}" for k, v in summary.items() if v))

        line = " ".join(parts)
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """Attach a single stderr handler to the root logger.

    LOG_LEVEL overrides the level (INFO in production, DEBUG otherwise).
    """
    testing = app.config.get("TESTING", False)
    production = not app.config.get("DEBUG", False) and not testing

    level_name = os.getenv("LOG_LEVEL", "INFO" if production else "DEBUG").upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(
        JSONFormatter() if production else ReadableFormatter(color=sys.stderr.isatty())
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    app.logger.setLevel(level)

    if not testing:
        app.logger.info("Logging configured (%s, %s)",
                        "json" if production else "readable", level_name)
