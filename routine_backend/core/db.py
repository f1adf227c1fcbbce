"""
SQLite database wrapper
Provides connection handling plus record and identity operations
"""

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from routine_backend.core.logger import get_logger
from routine_backend.core.sqls import queries, schema

logger = get_logger(__name__)


class DatabaseManager:
    """Database manager"""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._init_database()

    def _init_database(self):
        """Initialize database"""
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._create_tables()
        logger.info(f"Database initialization completed: {self.db_path}")

    def _create_tables(self):
        """Create database tables"""
        with self.get_connection() as conn:
            cursor = conn.cursor()

            for table_sql in schema.ALL_TABLES:
                cursor.execute(table_sql)

            for index_sql in schema.ALL_INDEXES:
                cursor.execute(index_sql)

            conn.commit()

    @contextmanager
    def get_connection(self):
        """Get database connection context manager"""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row  # Enable column name access for results
        try:
            yield conn
        finally:
            conn.close()

    def execute_query(self, query: str, params: Tuple = ()) -> List[Dict[str, Any]]:
        """Execute query and return results"""
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            rows = cursor.fetchall()
            return [dict(row) for row in rows]

    def execute_update(self, query: str, params: Tuple = ()) -> int:
        """Execute statement and return affected row count"""
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            conn.commit()
            return cursor.rowcount

    # ==================== Routine records ====================

    def get_record(
        self, namespace: str, identity: str, date: str
    ) -> Optional[Dict[str, Any]]:
        """Get the stored document of a date

        Returns:
            {"document": dict, "revision": int, "updated_at": str} or None
        """
        rows = self.execute_query(
            queries.SELECT_ROUTINE_RECORD, (namespace, identity, date)
        )
        if not rows:
            return None

        row = rows[0]
        return {
            "document": json.loads(row["document"]),
            "revision": row["revision"],
            "updated_at": row["updated_at"],
        }

    def put_record(
        self, namespace: str, identity: str, date: str, document: Dict[str, Any]
    ) -> int:
        """Overwrite the document of a date

        Returns:
            Revision of the date record after the write
        """
        payload = json.dumps(document, ensure_ascii=False)
        now = datetime.now().isoformat()

        with self.get_connection() as conn:
            conn.execute(
                queries.UPSERT_ROUTINE_RECORD,
                (namespace, identity, date, payload, now),
            )
            row = conn.execute(
                queries.SELECT_ROUTINE_RECORD, (namespace, identity, date)
            ).fetchone()
            conn.commit()

        revision = row["revision"]
        logger.debug(f"Stored record {identity}/{date} revision {revision}")
        return revision

    # ==================== Session identities ====================

    def get_session_identity(self, namespace: str) -> Optional[Dict[str, Any]]:
        """Identity saved by a previous session of the namespace"""
        rows = self.execute_query(queries.SELECT_SESSION_IDENTITY, (namespace,))
        return rows[0] if rows else None

    def set_session_identity(self, namespace: str, identity: str, kind: str) -> None:
        self.execute_update(
            queries.INSERT_OR_REPLACE_SESSION_IDENTITY, (namespace, identity, kind)
        )
        logger.debug(f"Saved {kind} session identity for namespace {namespace}")

    def clear_session_identity(self, namespace: str) -> int:
        return self.execute_update(queries.DELETE_SESSION_IDENTITY, (namespace,))
