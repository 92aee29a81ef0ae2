# CUI // SP-CTI
"""Tests for shinobi.audit.audit_logger."""

import logging
import sqlite3

import pytest

from shinobi.audit.audit_logger import AuditTrail, VALID_EVENT_TYPES, log_event, query_events
from shinobi.core.correlation import set_correlation_id


class TestRecord:
    def test_in_memory_only_by_default(self):
        trail = AuditTrail()
        event = trail.record("config_resolved", "tester", "resolved api", component="api")
        assert trail.events == [event]
        assert trail.db_path is None

    def test_invalid_event_type(self):
        with pytest.raises(ValueError, match="Invalid event_type"):
            AuditTrail().record("config_deleted", "tester", "nope")

    def test_run_id_from_correlation(self):
        set_correlation_id("run000000001")
        event = AuditTrail().record("synthesis_completed", "tester", "done")
        assert event.run_id == "run000000001"

    def test_to_dict_drops_empty_fields(self):
        event = AuditTrail().record("binding_applied", "tester", "bound", run_id="r1")
        assert event.to_dict() == {"event_type": "binding_applied", "actor": "tester",
                                   "action": "bound", "run_id": "r1"}

    def test_rejections_logged_as_warning(self, caplog):
        with caplog.at_level(logging.INFO, logger="shinobi.audit"):
            trail = AuditTrail()
            trail.record("binding_rejected", "tester", "rejected")
            trail.record("binding_applied", "tester", "applied")
        levels = {r.getMessage(): r.levelno for r in caplog.records}
        assert levels["[binding_rejected] rejected"] == logging.WARNING
        assert levels["[binding_applied] applied"] == logging.INFO

    def test_of_type(self):
        trail = AuditTrail()
        for event_type in VALID_EVENT_TYPES:
            trail.record(event_type, "tester", event_type)
        assert len(trail.of_type("config_rejected")) == 1
        assert len(trail.to_list()) == len(VALID_EVENT_TYPES)


class TestPersistence:
    def test_append_and_query(self, tmp_path):
        db = tmp_path / "audit.db"
        trail = AuditTrail(db_path=db)
        trail.record("config_resolved", "tester", "a", run_id="r1", details={"type": "lambda-api"})
        trail.record("binding_applied", "tester", "b", run_id="r2")
        rows = query_events(db, run_id="r1")
        assert len(rows) == 1
        assert rows[0]["details"] == {"type": "lambda-api"}
        assert rows[0]["classification"] == "CUI"
        assert [r["action"] for r in query_events(db)] == ["b", "a"]

    def test_filter_by_event_type(self, tmp_path):
        db = tmp_path / "audit.db"
        log_event("config_rejected", "tester", "x", db_path=db, component="api")
        log_event("config_resolved", "tester", "y", db_path=db)
        rows = query_events(db, event_type="config_rejected")
        assert [r["component"] for r in rows] == ["api"]

    def test_table_is_append_only(self, tmp_path):
        db = tmp_path / "audit.db"
        AuditTrail(db_path=db).record("config_resolved", "tester", "a")
        conn = sqlite3.connect(str(db))
        try:
            with pytest.raises(sqlite3.DatabaseError, match="append-only"):
                conn.execute("UPDATE audit_trail SET action = 'tampered'")
            with pytest.raises(sqlite3.DatabaseError, match="append-only"):
                conn.execute("DELETE FROM audit_trail")
        finally:
            conn.close()

    def test_query_missing_database(self, tmp_path):
        assert query_events(tmp_path / "absent.db") == []
