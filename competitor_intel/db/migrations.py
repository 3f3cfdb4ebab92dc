"""Simple sequential migration runner for SQLite."""

from __future__ import annotations

import logging
from pathlib import Path

from competitor_intel.db.database import Database

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "sql"


def run_migrations(db: Database) -> list[str]:
    """Run all pending SQL migrations in order. Returns the filenames applied."""
    db.executescript("""
        CREATE TABLE IF NOT EXISTS _migrations (
            id INTEGER PRIMARY KEY,
            filename TEXT NOT NULL UNIQUE,
            applied_at TEXT NOT NULL DEFAULT (datetime('now'))
        );
    """)

    applied = {
        row["filename"]
        for row in db.fetchall("SELECT filename FROM _migrations")
    }

    newly_applied = []
    for mf in sorted(MIGRATIONS_DIR.glob("*.sql")):
        if mf.name in applied:
            continue
        logger.info("Applying migration: %s", mf.name)
        db.executescript(mf.read_text(encoding="utf-8"))
        db.write("INSERT INTO _migrations (filename) VALUES (?)", (mf.name,))
        newly_applied.append(mf.name)
    return newly_applied
