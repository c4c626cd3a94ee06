"""Structured JSON Lines logging for toggle-analysis."""

import json
import uuid
from contextvars import ContextVar
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from filelock import FileLock

DEFAULT_LOG_PATH = Path("data/logs/toggle_analysis.jsonl")

_scope: ContextVar[str | None] = ContextVar("scope", default=None)
_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)


def generate_request_id() -> str:
    """Generate a request ID, falling back to a timestamp when no entropy is available.

    Example:
        >>> request_id = generate_request_id()
        >>> isinstance(request_id, str) and len(request_id) > 0
        True
    """
    try:
        return str(uuid.uuid4())
    except OSError:
        return datetime.now(tz=UTC).isoformat()


def set_scope(scope: str | None) -> None:
    """Set the analysis scope (``project/environment/toggle``) for the current context.

    Example:
        >>> set_scope("shop/online/checkout")
        >>> get_scope()
        'shop/online/checkout'
    """
    _scope.set(scope)


def get_scope() -> str | None:
    """Get the analysis scope for the current context."""
    return _scope.get()


def set_request_id(request_id: str | None) -> None:
    """Set the request ID for the current context."""
    _request_id.set(request_id)


def get_request_id() -> str | None:
    """Get the request ID for the current context."""
    return _request_id.get()


class JSONLogger:
    """Logger that appends JSON Lines to a file with scope and request metadata."""

    def __init__(self, name: str, log_path: str | Path = DEFAULT_LOG_PATH):
        self.name = name
        self.log_path = log_path

    @property
    def log_path(self) -> Path:
        """Get the log file path."""
        return self._log_path

    @log_path.setter
    def log_path(self, value: str | Path) -> None:
        """Set the log file path, creating its parent directory."""
        self._log_path = Path(value)
        self._log_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock_path = self._log_path.with_suffix(self._log_path.suffix + ".lock")

    def _serialize_value(self, value: Any) -> Any:
        """Convert non-serializable values to a JSON-friendly representation.

        Args:
            value: Value to serialize

        Returns:
            JSON-serializable value
        """
        if isinstance(value, (str, int, float, bool, type(None))):
            return value
        if isinstance(value, (list, tuple)):
            return [self._serialize_value(v) for v in value]
        if isinstance(value, dict):
            return {str(k): self._serialize_value(v) for k, v in value.items()}
        if hasattr(value, "model_dump"):
            return self._serialize_value(value.model_dump(mode="json"))
        return str(value)

    def _log(self, level: str, message: str, metadata: dict[str, Any] | None = None) -> None:
        entry: dict[str, Any] = {
            "timestamp": datetime.now(tz=UTC).isoformat(),
            "level": level,
            "logger": self.name,
            "message": message,
        }

        scope = get_scope()
        if scope:
            entry["scope"] = scope

        request_id = get_request_id()
        if request_id:
            entry["request_id"] = request_id

        if metadata:
            entry["metadata"] = self._serialize_value(metadata)

        json_line = json.dumps(entry, ensure_ascii=False)

        with FileLock(self._lock_path):
            with self._log_path.open("a", encoding="utf-8") as f:
                f.write(json_line + "\n")

    def info(self, message: str, metadata: dict[str, Any] | None = None) -> None:
        self._log("info", message, metadata)

    def error(self, message: str, metadata: dict[str, Any] | None = None) -> None:
        self._log("error", message, metadata)

    def warning(self, message: str, metadata: dict[str, Any] | None = None) -> None:
        self._log("warning", message, metadata)

    def debug(self, message: str, metadata: dict[str, Any] | None = None) -> None:
        self._log("debug", message, metadata)


_loggers: dict[str, JSONLogger] = {}


def get_logger(name: str) -> JSONLogger:
    """Get or create a logger with the given name.

    Args:
        name: Logger name (typically the module name, e.g. "results.controller")

    Returns:
        JSONLogger instance
    """
    if name not in _loggers:
        _loggers[name] = JSONLogger(name, DEFAULT_LOG_PATH)
    return _loggers[name]


def configure_log_path(log_path: str | Path) -> None:
    """Point every existing and future logger at ``log_path``."""
    global DEFAULT_LOG_PATH

    DEFAULT_LOG_PATH = Path(log_path)
    for logger in _loggers.values():
        logger.log_path = DEFAULT_LOG_PATH
