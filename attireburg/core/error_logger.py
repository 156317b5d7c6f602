"""
Centralized error logger.

Every entry is forwarded to the standard ``logging`` module and kept in a
bounded in-memory buffer so that the admin tooling can show recent failures
without a log aggregator.
"""
import logging
import threading
from collections import Counter, deque
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List


logger = logging.getLogger("attireburg.errors")

MAX_ENTRIES = 500


@dataclass
class LogEntry:
    """A single recorded event."""
    level: str
    message: str
    context: Dict[str, Any] = field(default_factory=dict)
    error_type: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return data


class ErrorLogger:
    """Records errors, warnings and info events with request context."""

    def __init__(self, max_entries: int = MAX_ENTRIES):
        self._entries: deque[LogEntry] = deque(maxlen=max_entries)
        self._lock = threading.Lock()

    def _record(self, entry: LogEntry) -> LogEntry:
        with self._lock:
            self._entries.append(entry)
        return entry

    @staticmethod
    def _format(message: str, context: Dict[str, Any]) -> str:
        if not context:
            return message
        details = ", ".join(f"{key}={value}" for key, value in context.items())
        return f"{message} [{details}]"

    def error(
        self,
        message: str,
        error: Optional[BaseException] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> LogEntry:
        context = context or {}
        entry = LogEntry(
            level="error",
            message=message if error is None else f"{message}: {error}",
            context=context,
            error_type=type(error).__name__ if error is not None else None,
        )
        logger.error(self._format(entry.message, context), exc_info=error)
        return self._record(entry)

    def warn(self, message: str, context: Optional[Dict[str, Any]] = None) -> LogEntry:
        context = context or {}
        logger.warning(self._format(message, context))
        return self._record(LogEntry(level="warning", message=message, context=context))

    def info(self, message: str, context: Optional[Dict[str, Any]] = None) -> LogEntry:
        context = context or {}
        logger.info(self._format(message, context))
        return self._record(LogEntry(level="info", message=message, context=context))

    # ==================== HELPERS ====================

    def log_api_error(
        self,
        endpoint: str,
        method: str,
        error: BaseException,
        user_id: Optional[str] = None,
        **context: Any,
    ) -> LogEntry:
        return self.error(
            f"API error on {method} {endpoint}",
            error,
            {"endpoint": endpoint, "method": method, "user_id": user_id, **context},
        )

    def log_payment_error(
        self,
        provider: str,
        error: BaseException,
        order_id: Optional[str] = None,
        amount: Optional[Any] = None,
        **context: Any,
    ) -> LogEntry:
        return self.error(
            f"Payment error ({provider})",
            error,
            {"provider": provider, "order_id": order_id, "amount": amount, **context},
        )

    def log_database_error(
        self,
        operation: str,
        error: BaseException,
        **context: Any,
    ) -> LogEntry:
        return self.error(f"Database error during {operation}", error, {"operation": operation, **context})

    # ==================== STATS ====================

    def get_recent(self, limit: int = 20, level: Optional[str] = None) -> List[Dict[str, Any]]:
        with self._lock:
            entries = list(self._entries)
        if level:
            entries = [e for e in entries if e.level == level]
        return [e.to_dict() for e in reversed(entries[-limit:])]

    def get_error_stats(self) -> Dict[str, Any]:
        with self._lock:
            entries = list(self._entries)
        by_level = Counter(e.level for e in entries)
        by_type = Counter(e.error_type for e in entries if e.error_type)
        return {
            "total": len(entries),
            "errors": by_level.get("error", 0),
            "warnings": by_level.get("warning", 0),
            "info": by_level.get("info", 0),
            "by_type": dict(by_type),
            "recent_errors": self.get_recent(limit=10, level="error"),
        }

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


error_logger = ErrorLogger()
