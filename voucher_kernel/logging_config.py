"""
Structured JSON logging for the voucher kernel.

Every record under the ``voucher_kernel`` logger tree is rendered as one JSON
line carrying:

* the desk operation context bound with ``LogContext.bind`` (correlation id,
  actor, organization, voucher, operation name);
* the ``extra`` fields of the call, with credentials redacted and e-mail
  addresses masked;
* for records logged with ``exc_info``, the error code and structured
  attributes of kernel exceptions.
"""

__all__ = [
    "CONTEXT_FIELDS",
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from contextvars import ContextVar
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping
from uuid import UUID

CONTEXT_FIELDS = (
    "correlation_id",
    "actor_id",
    "organization_id",
    "voucher_id",
    "operation",
)

_EMPTY: Mapping[str, str] = MappingProxyType({})
_context: ContextVar[Mapping[str, str]] = ContextVar("voucher_log_context", default=_EMPTY)


class LogContext:
    """Per-request fields stamped on every record; safe across threads and tasks."""

    @classmethod
    def bind(cls, **fields: str | None) -> "_Binding":
        """Layer ``fields`` over the current context for a ``with`` block.

        ``None`` values are skipped so callers can pass optional ids as-is.
        """
        unknown = set(fields) - set(CONTEXT_FIELDS)
        if unknown:
            raise TypeError(f"unknown log context fields: {sorted(unknown)}")
        return _Binding({k: str(v) for k, v in fields.items() if v is not None})

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return dict(_context.get())

    @classmethod
    def clear(cls) -> None:
        _context.set(_EMPTY)


class _Binding:

    def __init__(self, fields: dict[str, str]):
        self._fields = fields
        self._token = None

    def __enter__(self) -> type[LogContext]:
        merged = {**_context.get(), **self._fields}
        self._token = _context.set(MappingProxyType(merged))
        return LogContext

    def __exit__(self, *exc: Any) -> None:
        _context.reset(self._token)


# ---------------------------------------------------------------------------
# Formatter
# ---------------------------------------------------------------------------

_RESERVED_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}

REDACTED_KEYS = frozenset({"password", "password_hash"})
MASKED_KEYS = frozenset({"email"})


def mask_email(value: str) -> str:
    """``grace@acme.test`` -> ``g***@acme.test``."""
    local, sep, domain = str(value).partition("@")
    if not sep:
        return "***"
    return f"{local[:1]}***@{domain}"


def _scrub(key: str, value: Any) -> Any:
    if key in REDACTED_KEYS:
        return "[redacted]"
    if key in MASKED_KEYS and value is not None:
        return mask_email(value)
    return value


def _to_json(obj: Any) -> Any:
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (UUID, Decimal)):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    return str(obj)


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_context.get(),
        }

        for key, value in vars(record).items():
            if key not in _RESERVED_KEYS and key not in payload:
                payload[key] = _scrub(key, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(self._exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_to_json)

    @staticmethod
    def _exception_fields(exc: BaseException) -> dict[str, Any]:
        fields: dict[str, Any] = {
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
        }
        code = getattr(exc, "code", None)
        if code is not None:
            fields["exc_code"] = code
            # kernel errors keep their context (ids, statuses) as attributes
            for key, value in vars(exc).items():
                if not key.startswith("_"):
                    fields[f"exc_{key}"] = _scrub(key, value)
        return fields


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------

_ROOT = "voucher_kernel"
_lock = threading.Lock()
_handler: logging.Handler | None = None


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``voucher_kernel`` tree."""
    return logging.getLogger(f"{_ROOT}.{name}")


def configure_logging(
    *,
    level: int | str = logging.INFO,
    handler: logging.Handler | None = None,
) -> None:
    """Install the JSON handler once; the level is applied on every call."""
    global _handler
    root = logging.getLogger(_ROOT)
    with _lock:
        if _handler is None:
            _handler = handler if handler is not None else logging.StreamHandler(sys.stderr)
            _handler.setFormatter(StructuredFormatter())
            root.addHandler(_handler)
            root.propagate = False
        root.setLevel(level)


def reset_logging() -> None:
    """Detach the handler installed by ``configure_logging``.  Tests only."""
    global _handler
    root = logging.getLogger(_ROOT)
    with _lock:
        if _handler is not None:
            root.removeHandler(_handler)
            _handler = None
        root.setLevel(logging.WARNING)
