"""
Database schema definitions
Contains all CREATE TABLE and CREATE INDEX statements
"""

# One full document per (namespace, identity, date)
CREATE_ROUTINE_RECORDS_TABLE = """
    CREATE TABLE IF NOT EXISTS routine_records (
        namespace TEXT NOT NULL,
        identity TEXT NOT NULL,
        date TEXT NOT NULL,
        document TEXT NOT NULL,
        revision INTEGER NOT NULL DEFAULT 1,
        updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
        PRIMARY KEY (namespace, identity, date)
    )
"""

# Identity reused by the next session of the same namespace
CREATE_SESSION_IDENTITIES_TABLE = """
    CREATE TABLE IF NOT EXISTS session_identities (
        namespace TEXT PRIMARY KEY,
        identity TEXT NOT NULL,
        kind TEXT NOT NULL CHECK(kind IN ('anonymous', 'token')),
        created_at TEXT DEFAULT CURRENT_TIMESTAMP
    )
"""

CREATE_ROUTINE_RECORDS_IDENTITY_INDEX = """
    CREATE INDEX IF NOT EXISTS idx_routine_records_identity
    ON routine_records(namespace, identity)
"""

ALL_TABLES = [
    CREATE_ROUTINE_RECORDS_TABLE,
    CREATE_SESSION_IDENTITIES_TABLE,
]

ALL_INDEXES = [
    CREATE_ROUTINE_RECORDS_IDENTITY_INDEX,
]
