"""Unit tests for the audit log."""

import logging

from diagramai_mcp.audit import AuditLog
from diagramai_mcp.tools import AuditSink


def test_audit_log_is_an_audit_sink():
    assert isinstance(AuditLog(), AuditSink)


def test_counts_outcomes():
    audit = AuditLog()
    audit.log_operation("create_diagram", "new", {"title": "Flow"}, {"uuid": "abc"}, True, 12)
    audit.log_operation("read_diagram", "unknown", {}, None, False, 3)

    assert audit.stats() == {"total": 2, "succeeded": 1, "failed": 1}


def test_recent_entries():
    audit = AuditLog()
    for i in range(5):
        audit.log_operation("delete_node", f"d-{i}", {}, None, True, i)

    recent = audit.recent(limit=2)

    assert [e["target"] for e in recent] == ["d-3", "d-4"]
    assert recent[-1]["tool"] == "delete_node"
    assert "timestamp" in recent[-1]
    assert audit.recent(limit=0) == []


def test_buffer_is_bounded():
    audit = AuditLog(max_entries=3)
    for i in range(10):
        audit.log_operation("add_edge", f"d-{i}", {}, None, True, 1)

    assert len(audit.recent(limit=100)) == 3
    assert audit.stats()["total"] == 10


def test_failures_log_warnings(caplog):
    audit = AuditLog()

    with caplog.at_level(logging.INFO, logger="diagramai_mcp.audit"):
        audit.log_operation("add_node", "d-1", {}, None, False, 7)

    assert caplog.records[-1].levelno == logging.WARNING
    assert "add_node on d-1 failed after 7ms" in caplog.text
