"""Report store: persists and retrieves Report entities in SQLite."""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime

from competitor_intel.db.database import Database
from competitor_intel.db.migrations import run_migrations
from competitor_intel.errors import PersistenceError
from competitor_intel.models import Report, ReportSummary

logger = logging.getLogger(__name__)


class ReportStore:
    """save / mark_sent / get / list / delete_all over a lazily opened Database.

    Every sqlite3 failure surfaces as PersistenceError.
    """

    def __init__(self, db_path: str):
        self.db = Database(db_path)

    def _connected(self) -> Database:
        if self.db.conn is None:
            try:
                self.db.connect()
                run_migrations(self.db)
            except sqlite3.Error as e:
                self.db.close()
                raise PersistenceError(f"cannot open report store {self.db.db_path}: {e}") from e
        return self.db

    def close(self) -> None:
        self.db.close()

    def save(self, report: Report, timeout: float | None = None) -> str:
        """Insert a new report. With ``timeout`` a slow write is rolled back, never committed late."""
        db = self._connected()
        try:
            db.write(
                "INSERT INTO reports (id, source_url, company_name, company_summary, created_at, "
                "competitors_json, market_intelligence_json, recommendations_json, "
                "market_overview_json, report_sent, recipient_email, incomplete) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    report.id,
                    report.source_url,
                    report.company_name,
                    report.company_summary,
                    report.created_at.isoformat(),
                    json.dumps([c.model_dump(mode="json") for c in report.competitors]),
                    json.dumps(report.market_intelligence),
                    json.dumps([r.model_dump(mode="json") for r in report.recommendations]),
                    report.market_overview.model_dump_json() if report.market_overview else None,
                    int(report.report_sent),
                    report.recipient_email,
                    int(report.incomplete),
                ),
                timeout=timeout,
            )
        except sqlite3.Error as e:
            raise PersistenceError(f"failed to save report {report.id}: {e}") from e
        logger.info("Saved report %s for %s", report.id, report.company_name)
        return report.id

    def mark_sent(self, report_id: str, email: str) -> None:
        """Flag a report as emailed. Safe to repeat."""
        db = self._connected()
        try:
            db.write(
                "UPDATE reports SET report_sent = 1, recipient_email = ? WHERE id = ?",
                (email, report_id),
            )
        except sqlite3.Error as e:
            raise PersistenceError(f"failed to mark report {report_id} sent: {e}") from e

    def get(self, report_id: str) -> Report | None:
        db = self._connected()
        try:
            row = db.fetchone("SELECT * FROM reports WHERE id = ?", (report_id,))
        except sqlite3.Error as e:
            raise PersistenceError(f"failed to load report {report_id}: {e}") from e
        if row is None:
            return None
        return _row_to_report(row)

    def list(self, limit: int = 20, newest_first: bool = True) -> list[ReportSummary]:
        db = self._connected()
        order = "DESC" if newest_first else "ASC"
        try:
            rows = db.fetchall(
                f"SELECT id, company_name, created_at FROM reports "
                f"ORDER BY created_at {order} LIMIT ?",
                (limit,),
            )
        except sqlite3.Error as e:
            raise PersistenceError(f"failed to list reports: {e}") from e
        return [
            ReportSummary(
                id=r["id"],
                company_name=r["company_name"] or "Unknown",
                created_at=datetime.fromisoformat(r["created_at"]),
            )
            for r in rows
        ]

    def delete_all(self) -> int:
        db = self._connected()
        try:
            return db.write("DELETE FROM reports")
        except sqlite3.Error as e:
            raise PersistenceError(f"failed to delete reports: {e}") from e


def _row_to_report(row: sqlite3.Row) -> Report:
    overview = row["market_overview_json"]
    return Report.model_validate({
        "id": row["id"],
        "source_url": row["source_url"],
        "company_name": row["company_name"],
        "company_summary": row["company_summary"],
        "created_at": row["created_at"],
        "competitors": json.loads(row["competitors_json"]),
        "market_intelligence": json.loads(row["market_intelligence_json"]),
        "recommendations": json.loads(row["recommendations_json"]),
        "market_overview": json.loads(overview) if overview else None,
        "report_sent": bool(row["report_sent"]),
        "recipient_email": row["recipient_email"],
        "incomplete": bool(row["incomplete"]),
    })
