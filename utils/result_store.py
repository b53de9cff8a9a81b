"""
Result store: the persistence collaborator boundary.

The scoring engine does not own a storage schema. It hands each finished
assessment to a ResultStore as a flat record (EnrichmentResult.to_record()).

Shipped implementation:
- SQLiteResultStore: one JSON record per assessment keyed by id, plus the
  few columns needed to list and query results (type, created_at, score)
"""

import json
import logging
import sqlite3
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class ResultStore(ABC):
    """Interface for persistence collaborators."""

    @abstractmethod
    def save(self, record: Dict[str, Any]) -> None:
        """
        Persist one assessment record.

        Args:
            record: Dict with at least `assessment_id`
        """
        pass


class SQLiteResultStore(ResultStore):
    """
    SQLite-backed result store.

    Usage:
        store = SQLiteResultStore("data/results/assessments.db")
        store.save(result.to_record())
        record = store.get("assessment-id")
    """

    def __init__(self, db_path: str = "data/results/assessments.db"):
        """
        Initialize result store.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._init_database()

        logger.info(f"Result store initialized: {self.db_path}")

    def _init_database(self):
        """Create the results table if it doesn't exist."""
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS assessment_results (
                    assessment_id TEXT PRIMARY KEY,
                    assessment_type TEXT,
                    created_at TEXT,
                    final_score INTEGER,
                    confidence REAL,
                    record TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_results_created
                ON assessment_results(created_at)
            """)

            conn.commit()

    def save(self, record: Dict[str, Any]) -> None:
        assessment_id = record.get('assessment_id')
        if not assessment_id:
            raise ValueError("Record has no assessment_id")

        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute("""
                INSERT OR REPLACE INTO assessment_results (
                    assessment_id, assessment_type, created_at, final_score, confidence, record
                ) VALUES (?, ?, ?, ?, ?, ?)
            """, (
                assessment_id,
                record.get('assessment_type'),
                record.get('created_at'),
                record.get('final_score'),
                record.get('confidence'),
                json.dumps(record)
            ))
            conn.commit()

        logger.info(f"Assessment result saved: {assessment_id}")

    def get(self, assessment_id: str) -> Optional[Dict[str, Any]]:
        """Retrieve a stored record, or None if not found."""
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT record FROM assessment_results WHERE assessment_id = ?",
                (assessment_id,)
            )
            row = cursor.fetchone()

        return json.loads(row[0]) if row else None

    def list_results(self, limit: int = 100, offset: int = 0) -> List[Dict[str, Any]]:
        """
        List recent results (summary columns only), newest first.
        """
        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            cursor = conn.cursor()
            cursor.execute("""
                SELECT assessment_id, assessment_type, created_at, final_score, confidence
                FROM assessment_results
                ORDER BY created_at DESC
                LIMIT ? OFFSET ?
            """, (limit, offset))

            return [dict(row) for row in cursor.fetchall()]
