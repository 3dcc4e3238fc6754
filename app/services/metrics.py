"""
In-process counters for lifecycle health.

Tracks:
- Applied transitions per (from_status, action)
- Rejected transitions
- Persistence failures (rolled-back operations)
- External collaborator failures (calendar, notifications)
"""
import logging
from collections import defaultdict
from datetime import datetime, timezone
from threading import Lock
from typing import Dict

logger = logging.getLogger(__name__)

_metrics_lock = Lock()
_metrics: Dict[str, int] = defaultdict(int)
_metrics_timestamps: Dict[str, datetime] = {}


def _increment(key: str) -> None:
    with _metrics_lock:
        _metrics[key] += 1
        _metrics_timestamps[f"{key}.last"] = datetime.now(timezone.utc)


def record_transition(from_status: str, action: str, to_status: str) -> None:
    _increment(f"transition.{from_status}.{action}")
    _increment(f"status_entered.{to_status}")


def record_rejected_transition(from_status: str, action: str) -> None:
    _increment(f"transition_rejected.{from_status}.{action}")


def record_persistence_failure(operation: str) -> None:
    _increment(f"persistence_failure.{operation}")


def record_external_failure(dependency: str) -> None:
    _increment(f"external_failure.{dependency}")
    logger.info(f"External dependency failure recorded: {dependency}")


def get_metrics() -> Dict[str, int]:
    """Snapshot of all counters."""
    with _metrics_lock:
        return dict(_metrics)


def get_metrics_summary() -> Dict[str, object]:
    """Aggregated totals plus last-seen timestamps."""
    with _metrics_lock:
        def total(prefix: str) -> int:
            return sum(v for k, v in _metrics.items() if k.startswith(prefix))

        return {
            "transitions": total("transition."),
            "rejected_transitions": total("transition_rejected."),
            "persistence_failures": total("persistence_failure."),
            "external_failures": total("external_failure."),
            "last_seen": {k: v.isoformat() for k, v in _metrics_timestamps.items()},
        }


def reset_metrics() -> None:
    """Clear all counters (tests)."""
    with _metrics_lock:
        _metrics.clear()
        _metrics_timestamps.clear()
