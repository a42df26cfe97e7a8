# logging_utils.py
"""Logging setup for campaign runs.

Two output shapes: one JSON object per line for deployed environments and a
compact colored line for a developer terminal. Campaign-scoped fields bound
with :class:`LogContext` ride along on every record emitted through a
:class:`ContextAdapter`, so interleaved runs stay attributable.
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:
    from .config import Config

ROOT_LOGGER_NAME = "leadflow"

# Attributes every LogRecord carries; anything else was passed as extra=
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {"message", "asctime"}

# Client libraries that log every request at INFO
_CHATTY_LIBRARIES = (
    "urllib3",
    "requests",
    "openai",
    "googlemaps",
    "firecrawl",
    "sqlalchemy.engine",
    "aiosqlite",
    "asyncpg",
)

_bound_fields: ContextVar[Dict[str, Any]] = ContextVar("leadflow_log_fields", default={})


def _record_extras(record: logging.LogRecord) -> Dict[str, Any]:
    extras = {}
    for key, value in vars(record).items():
        if key in _RECORD_ATTRS or key.startswith("_"):
            continue
        try:
            json.dumps(value)
        except (TypeError, ValueError):
            value = repr(value)
        extras[key] = value
    return extras


class StructuredFormatter(logging.Formatter):
    """Render each record as a single JSON document.

    Keys: ``timestamp``, ``service``, ``level``, ``logger``, ``message``,
    ``origin`` and, when present, ``extra`` (caller and context fields) and
    ``exception``.
    """

    def __init__(self, service_name: str = ROOT_LOGGER_NAME, with_extras: bool = True):
        super().__init__()
        self.service_name = service_name
        self.with_extras = with_extras

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "service": self.service_name,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "origin": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        extras = _record_extras(record) if self.with_extras else {}
        if extras:
            payload["extra"] = extras
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class HumanReadableFormatter(logging.Formatter):
    """One line per record for terminals, tagged with the campaign in scope."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[2m",
        logging.INFO: "\033[34m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[1;31m",
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True):
        super().__init__(datefmt="%H:%M:%S")
        self.use_colors = use_colors and sys.stderr.isatty()

    def _level_label(self, record: logging.LogRecord) -> str:
        label = record.levelname.ljust(8)
        if not self.use_colors:
            return label
        return f"{self.LEVEL_COLORS.get(record.levelno, '')}{label}{self.RESET}"

    def format(self, record: logging.LogRecord) -> str:
        when = self.formatTime(record, self.datefmt)
        campaign_id = getattr(record, "campaign_id", None)
        tag = f" [campaign={campaign_id}]" if campaign_id else ""
        line = f"{when} {self._level_label(record)} {record.name}{tag} {record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def setup_logging(
    cfg: Optional["Config"] = None,
    level: Optional[str] = None,
    structured: Optional[bool] = None,
) -> logging.Logger:
    """Install a single stderr handler on the root logger.

    ``level`` falls back to ``cfg.LOG_LEVEL`` and ``structured`` to "not a
    development environment". Calling it again replaces the handler rather
    than stacking a second one.
    """
    if cfg is None:
        from .config import config as cfg

    level_name = (level or cfg.LOG_LEVEL or "INFO").upper()
    numeric_level = logging.getLevelName(level_name)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO
    if structured is None:
        structured = not cfg.is_development()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(StructuredFormatter() if structured else HumanReadableFormatter())

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(numeric_level)

    quiet_level = max(numeric_level, logging.WARNING)
    for library in _CHATTY_LIBRARIES:
        logging.getLogger(library).setLevel(quiet_level)

    package_logger = logging.getLogger(ROOT_LOGGER_NAME)
    package_logger.debug(
        "Logging configured", extra={"log_level": level_name, "structured": structured}
    )
    return package_logger


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the ``leadflow`` namespace."""
    if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


class LogContext:
    """Bind fields to every adapter log call made inside a ``with`` block.

    Bindings live in a context variable: each asyncio task (each campaign run)
    sees its own, and nested blocks restore the outer bindings on exit.

        >>> with LogContext(campaign_id="c-123"):
        ...     logger.info("Scoring leads")
    """

    def __init__(self, **fields: Any):
        self.fields = fields
        self._token = None

    def __enter__(self) -> "LogContext":
        self._token = _bound_fields.set({**_bound_fields.get(), **self.fields})
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _bound_fields.reset(self._token)
            self._token = None

    @classmethod
    def get_context(cls) -> Dict[str, Any]:
        return dict(_bound_fields.get())


class ContextAdapter(logging.LoggerAdapter):
    """LoggerAdapter that merges adapter fields, LogContext bindings and
    per-call ``extra`` (in rising precedence) into each record."""

    def __init__(self, logger: logging.Logger, extra: Optional[Dict[str, Any]] = None):
        super().__init__(logger, extra or {})

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        kwargs["extra"] = {
            **(self.extra or {}),
            **LogContext.get_context(),
            **(kwargs.get("extra") or {}),
        }
        return msg, kwargs
