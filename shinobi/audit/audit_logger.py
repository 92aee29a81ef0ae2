#!/usr/bin/env python3
# CUI // SP-CTI
"""Append-only audit trail for synthesis runs. Satisfies NIST 800-53 AU controls.

Events are kept in memory for the run report, written to the
``shinobi.audit`` logger, and optionally appended to a SQLite table that
refuses UPDATE and DELETE.

Usage:
    trail = AuditTrail(db_path=Path("data/audit.db"))
    trail.record("binding_applied", actor="planner", action="api->orders:queue:sqs",
                 component="api", capability="queue:sqs", access="write",
                 framework="fedramp-high")
"""

import argparse
import json
import logging
import sqlite3
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from shinobi.core.correlation import get_correlation_id

logger = logging.getLogger("shinobi.audit")

BASE_DIR = Path(__file__).resolve().parent.parent.parent
DB_PATH = BASE_DIR / "data" / "shinobi_audit.db"

VALID_EVENT_TYPES = (
    "config_resolved", "config_rejected",
    "binding_applied", "binding_rejected",
    "synthesis_completed",
)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS audit_trail (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    run_id TEXT,
    event_type TEXT NOT NULL,
    actor TEXT NOT NULL,
    action TEXT NOT NULL,
    component TEXT,
    capability TEXT,
    access TEXT,
    compliance_framework TEXT,
    details TEXT,
    classification TEXT DEFAULT 'CUI',
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
CREATE TRIGGER IF NOT EXISTS audit_trail_no_update
BEFORE UPDATE ON audit_trail
BEGIN SELECT RAISE(ABORT, 'audit_trail is append-only'); END;
CREATE TRIGGER IF NOT EXISTS audit_trail_no_delete
BEFORE DELETE ON audit_trail
BEGIN SELECT RAISE(ABORT, 'audit_trail is append-only'); END;
"""


@dataclass
class AuditEvent:
    event_type: str
    actor: str
    action: str
    run_id: Optional[str] = None
    component: Optional[str] = None
    capability: Optional[str] = None
    access: Optional[str] = None
    compliance_framework: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {k: v for k, v in asdict(self).items() if v not in (None, {})}


def _connect(db_path: Path) -> sqlite3.Connection:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path))
    conn.executescript(_SCHEMA)
    return conn


class AuditTrail:
    """Collects the audit events of one or more synthesis runs."""

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = Path(db_path) if db_path else None
        self.events: List[AuditEvent] = []

    def record(self, event_type: str, actor: str, action: str, component: str = None,
               capability: str = None, access: str = None, framework: str = None,
               details: dict = None, run_id: str = None) -> AuditEvent:
        """Record one event. Raises ValueError for unknown event types."""
        if event_type not in VALID_EVENT_TYPES:
            raise ValueError(f"Invalid event_type '{event_type}'. Valid: {VALID_EVENT_TYPES}")

        event = AuditEvent(
            event_type=event_type,
            actor=actor,
            action=action,
            run_id=run_id or get_correlation_id(),
            component=component,
            capability=capability,
            access=access,
            compliance_framework=framework,
            details=dict(details or {}),
        )
        self.events.append(event)
        level = logging.WARNING if event_type.endswith("_rejected") else logging.INFO
        logger.log(level, "[%s] %s", event_type, action, extra={"audit": event.to_dict()})
        if self.db_path is not None:
            self._append(event)
        return event

    def _append(self, event: AuditEvent) -> int:
        conn = _connect(self.db_path)
        try:
            c = conn.cursor()
            c.execute(
                """INSERT INTO audit_trail
                   (run_id, event_type, actor, action, component, capability, access,
                    compliance_framework, details)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    event.run_id,
                    event.event_type,
                    event.actor,
                    event.action,
                    event.component,
                    event.capability,
                    event.access,
                    event.compliance_framework,
                    json.dumps(event.details, sort_keys=True) if event.details else None,
                ),
            )
            conn.commit()
            return c.lastrowid
        finally:
            conn.close()

    def of_type(self, event_type: str) -> List[AuditEvent]:
        return [e for e in self.events if e.event_type == event_type]

    def to_list(self) -> List[dict]:
        return [e.to_dict() for e in self.events]


def log_event(event_type: str, actor: str, action: str, db_path: Path = None, **kwargs) -> AuditEvent:
    """Write a single event straight to the audit database."""
    return AuditTrail(db_path=db_path or DB_PATH).record(event_type, actor, action, **kwargs)


def query_events(db_path: Path = None, run_id: str = None, event_type: str = None,
                 limit: int = 100) -> List[dict]:
    """Read events back from the audit database, newest first."""
    path = Path(db_path or DB_PATH)
    if not path.exists():
        return []
    clauses, params = [], []
    if run_id:
        clauses.append("run_id = ?")
        params.append(run_id)
    if event_type:
        clauses.append("event_type = ?")
        params.append(event_type)
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row
    try:
        rows = conn.execute(
            f"SELECT * FROM audit_trail {where} ORDER BY id DESC LIMIT ?", (*params, limit)
        ).fetchall()
    finally:
        conn.close()
    results = []
    for row in rows:
        entry = dict(row)
        entry["details"] = json.loads(entry["details"]) if entry["details"] else {}
        results.append(entry)
    return results


def main():
    parser = argparse.ArgumentParser(description="Show Shinobi audit trail events")
    parser.add_argument("--db", type=Path, default=DB_PATH, help="Audit database path")
    parser.add_argument("--run-id", help="Filter by synthesis run id")
    parser.add_argument("--event", choices=VALID_EVENT_TYPES, help="Filter by event type")
    parser.add_argument("--limit", type=int, default=100)
    parser.add_argument("--json", action="store_true", dest="json_output", help="JSON output")
    args = parser.parse_args()

    events = query_events(args.db, run_id=args.run_id, event_type=args.event, limit=args.limit)
    if args.json_output:
        print(json.dumps(events, indent=2, default=str))
        return
    for entry in events:
        print(f"#{entry['id']} [{entry['event_type']}] {entry['action']} (run {entry['run_id']})")


if __name__ == "__main__":
    main()
