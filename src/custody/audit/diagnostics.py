"""
Side channel for absorbed audit failures.

When a non-critical audit write fails the caller carries on, so the gap
would be invisible without this channel. Every failure is counted per
category, kept in a bounded recent-failures buffer, logged on the
``custody.audit.diagnostics`` logger and passed to an optional alert hook.
"""

import logging
from collections import Counter, deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

from custody.exceptions import NonCriticalLoggingFailure

logger = logging.getLogger("custody.audit.diagnostics")

AlertHook = Callable[[NonCriticalLoggingFailure], None]


@dataclass
class FailureRecord:
    """One absorbed failure."""

    event_type: str
    category: str
    error: str
    occurred_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_type": self.event_type,
            "category": self.category,
            "error": self.error,
            "occurred_at": self.occurred_at.isoformat(),
        }


class AuditDiagnostics:
    """Failure counters and alerting for the audit recorder."""

    def __init__(self, alert_hook: Optional[AlertHook] = None, max_recent: int = 100):
        self.alert_hook = alert_hook
        self.failures_by_category: Counter[str] = Counter()
        self.recent: deque[FailureRecord] = deque(maxlen=max_recent)

    @property
    def total_failures(self) -> int:
        return sum(self.failures_by_category.values())

    def record_failure(self, failure: NonCriticalLoggingFailure) -> None:
        """Count, remember and raise an alert for an absorbed failure."""
        self.failures_by_category[failure.category] += 1
        self.recent.append(
            FailureRecord(
                event_type=failure.event_type,
                category=failure.category,
                error=f"{type(failure.cause).__name__}: {failure.cause}",
            )
        )
        logger.error(
            f"Audit gap: {failure.event_type} ({failure.category}) was not recorded; "
            f"{self.failures_by_category[failure.category]} failures in this category"
        )

        if self.alert_hook is not None:
            try:
                self.alert_hook(failure)
            except Exception as e:
                # The hook must not turn an absorbed failure into a raised one
                logger.exception(f"Audit alert hook failed: {e}")

    def snapshot(self) -> dict[str, Any]:
        """Current counters for health endpoints and operators."""
        return {
            "total_failures": self.total_failures,
            "failures_by_category": dict(self.failures_by_category),
            "recent": [r.to_dict() for r in self.recent],
        }

    def reset(self) -> None:
        self.failures_by_category.clear()
        self.recent.clear()
