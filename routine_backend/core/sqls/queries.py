"""
Database query SQL statements
Contains all SELECT, INSERT, UPDATE, DELETE statements
"""

# Routine record queries
SELECT_ROUTINE_RECORD = """
    SELECT document, revision, updated_at FROM routine_records
    WHERE namespace = ? AND identity = ? AND date = ?
"""

# Whole-document overwrite, the revision counts writes per date
UPSERT_ROUTINE_RECORD = """
    INSERT INTO routine_records (namespace, identity, date, document, revision, updated_at)
    VALUES (?, ?, ?, ?, 1, ?)
    ON CONFLICT(namespace, identity, date) DO UPDATE SET
        document = excluded.document,
        revision = routine_records.revision + 1,
        updated_at = excluded.updated_at
"""

# Session identity queries
SELECT_SESSION_IDENTITY = """
    SELECT identity, kind, created_at FROM session_identities
    WHERE namespace = ?
"""

INSERT_OR_REPLACE_SESSION_IDENTITY = """
    INSERT OR REPLACE INTO session_identities (namespace, identity, kind, created_at)
    VALUES (?, ?, ?, CURRENT_TIMESTAMP)
"""

DELETE_SESSION_IDENTITY = """
    DELETE FROM session_identities WHERE namespace = ?
"""
