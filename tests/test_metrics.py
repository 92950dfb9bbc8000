"""Tests for approval metrics export."""

import json

from approval_engine.metrics import ApprovalMetrics


class TestApprovalMetrics:
    def test_inc_and_get(self):
        metrics = ApprovalMetrics()
        metrics.inc("approval_transitions_total", operation="submit", status="submitted")
        metrics.inc("approval_transitions_total", 2, operation="submit", status="submitted")

        assert metrics.get(
            "approval_transitions_total", operation="submit", status="submitted"
        ) == 3
        assert metrics.get("approval_transitions_total", operation="finalize") == 0

    def test_label_order_does_not_matter(self):
        metrics = ApprovalMetrics()
        metrics.inc("approval_errors_total", operation="submit", kind="conflict")

        assert metrics.get("approval_errors_total", kind="conflict", operation="submit") == 1

    def test_prometheus_format(self):
        metrics = ApprovalMetrics()
        metrics.inc("approval_errors_total", operation="finalize", kind="validation")

        text = metrics.to_prometheus()

        assert "# HELP approval_errors_total" in text
        assert "# TYPE approval_errors_total counter" in text
        assert 'approval_errors_total{kind="validation",operation="finalize"} 1' in text

    def test_json_export(self):
        metrics = ApprovalMetrics()
        metrics.inc("approval_notifications_total", event="approved", outcome="sent")

        data = json.loads(metrics.to_json())

        assert data["counters"][0]["name"] == "approval_notifications_total"
        assert data["counters"][0]["value"] == 1
