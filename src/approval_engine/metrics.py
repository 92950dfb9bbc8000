"""Approval workflow metrics.

In-process counters for monitoring transitions, errors and notification
delivery.

Metric names:
- approval_transitions_total{operation, status}
- approval_errors_total{operation, kind}
- approval_notifications_total{event, outcome}

Usage:
    metrics = ApprovalMetrics()
    metrics.inc("approval_transitions_total", operation="submit", status="submitted")

    # For Prometheus export
    print(metrics.to_prometheus())
"""

from __future__ import annotations

import json
import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone

HELP_TEXT = {
    "approval_transitions_total": "Successful report and line transitions",
    "approval_errors_total": "Failed approval operations by error kind",
    "approval_notifications_total": "Notification deliveries by outcome",
}


@dataclass
class Counter:
    """A counter metric (monotonically increasing)."""

    name: str
    value: int
    labels: dict[str, str] = field(default_factory=dict)
    help_text: str = ""


class ApprovalMetrics:
    """Thread-safe registry of labelled counters."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: dict[tuple[str, tuple[tuple[str, str], ...]], Counter] = {}
        self.started_at = datetime.now(timezone.utc)

    def inc(self, name: str, amount: int = 1, **labels: str) -> None:
        """Increment a counter, creating it on first use."""
        key = (name, tuple(sorted((k, str(v)) for k, v in labels.items())))
        with self._lock:
            counter = self._counters.get(key)
            if counter is None:
                counter = Counter(
                    name=name,
                    value=0,
                    labels=dict(key[1]),
                    help_text=HELP_TEXT.get(name, ""),
                )
                self._counters[key] = counter
            counter.value += amount

    def get(self, name: str, **labels: str) -> int:
        """Current value of one counter (0 if never incremented)."""
        key = (name, tuple(sorted((k, str(v)) for k, v in labels.items())))
        with self._lock:
            counter = self._counters.get(key)
            return counter.value if counter else 0

    def counters(self) -> list[Counter]:
        with self._lock:
            return [Counter(**asdict(c)) for c in self._counters.values()]

    def to_prometheus(self) -> str:
        """Convert to Prometheus text format."""
        lines: list[str] = []
        seen: set[str] = set()

        for metric in sorted(self.counters(), key=lambda c: c.name):
            if metric.name not in seen:
                seen.add(metric.name)
                if metric.help_text:
                    lines.append(f"# HELP {metric.name} {metric.help_text}")
                lines.append(f"# TYPE {metric.name} counter")

            labels = ""
            if metric.labels:
                label_parts = [f'{k}="{v}"' for k, v in metric.labels.items()]
                labels = "{" + ",".join(label_parts) + "}"
            lines.append(f"{metric.name}{labels} {metric.value}")

        return "\n".join(lines) + "\n"

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(
            {
                "started_at": self.started_at.isoformat(),
                "counters": [asdict(c) for c in self.counters()],
            },
            indent=2,
        )
