"""SQLite schema definitions for SecureStore."""

# SQL schema definitions
SCHEMA_VERSION = 1

CREATE_TABLES = [
    # Wrapped data keys, one row per (namespace, purpose)
    """
    CREATE TABLE IF NOT EXISTS keysets (
        namespace TEXT NOT NULL,
        purpose TEXT NOT NULL, -- 'name', 'value'
        scheme TEXT NOT NULL,
        master_key_alias TEXT NOT NULL,
        wrapped_key BLOB NOT NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        PRIMARY KEY (namespace, purpose)
    )
    """,
    # Preferences: both columns are ciphertext
    """
    CREATE TABLE IF NOT EXISTS prefs (
        namespace TEXT NOT NULL,
        name_ct BLOB NOT NULL,
        value_ct BLOB NOT NULL,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        PRIMARY KEY (namespace, name_ct)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS schema_version (
        version INTEGER PRIMARY KEY,
        applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
]


def get_init_schema():
    """Return all statements needed to initialize the schema."""
    return CREATE_TABLES + [
        f"INSERT OR IGNORE INTO schema_version (version) VALUES ({SCHEMA_VERSION})"
    ]
