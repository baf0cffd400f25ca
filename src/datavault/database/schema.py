"""SQLite schema definitions for DataVault."""

# SQL schema definitions
SCHEMA_VERSION = 1

CREATE_TABLES = [
    # Users table
    # password_hash holds "salt:hash" for combined records, salt is only set for legacy records.
    # record_format is the persisted discriminator between the two.
    """
    CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        username TEXT UNIQUE NOT NULL,
        password_hash TEXT NOT NULL,
        salt TEXT,
        record_format TEXT NOT NULL DEFAULT 'combined',
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        last_login TIMESTAMP
    )
    """,
    # Secrets table - secret_value is base64(IV || ciphertext)
    """
    CREATE TABLE IF NOT EXISTS vault_data (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL,
        key_name TEXT NOT NULL,
        secret_value TEXT NOT NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE,
        UNIQUE(user_id, key_name)
    )
    """,
    # Files table - encrypted_data is the raw envelope, file_size the original length
    """
    CREATE TABLE IF NOT EXISTS vault_files (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL,
        file_name TEXT NOT NULL,
        file_type TEXT,
        file_size INTEGER NOT NULL,
        encrypted_data BLOB NOT NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE,
        UNIQUE(user_id, file_name)
    )
    """,
    # Access log table
    """
    CREATE TABLE IF NOT EXISTS access_logs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL,
        action TEXT NOT NULL,
        key_name TEXT,
        timestamp TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        ip_address TEXT,
        FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
    )
    """,
    # Schema version table
    """
    CREATE TABLE IF NOT EXISTS schema_version (
        version INTEGER PRIMARY KEY,
        applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
]

# Index definitions for optimization
CREATE_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_vault_data_user_id ON vault_data(user_id)",
    "CREATE INDEX IF NOT EXISTS idx_vault_files_user_id ON vault_files(user_id)",
    "CREATE INDEX IF NOT EXISTS idx_access_logs_user_id ON access_logs(user_id)",
]

# Triggers for automatic timestamp updates
CREATE_TRIGGERS = [
    """
    CREATE TRIGGER IF NOT EXISTS update_vault_data_timestamp
    AFTER UPDATE OF key_name, secret_value ON vault_data
    FOR EACH ROW
    BEGIN
        UPDATE vault_data SET updated_at = CURRENT_TIMESTAMP
        WHERE id = NEW.id;
    END
    """,
]


def get_init_schema():
    """
    Get complete schema initialization SQL

    Returns:
        List of SQL statements to execute
    """
    statements = []
    statements.extend(CREATE_TABLES)
    statements.extend(CREATE_INDEXES)
    statements.extend(CREATE_TRIGGERS)
    statements.append(
        f"INSERT OR IGNORE INTO schema_version (version) VALUES ({SCHEMA_VERSION})"
    )
    return statements


def get_drop_schema():
    """
    Get SQL statements to drop all tables for testing

    Returns:
        List of DROP TABLE statements
    """
    return [
        "DROP TABLE IF EXISTS access_logs",
        "DROP TABLE IF EXISTS vault_files",
        "DROP TABLE IF EXISTS vault_data",
        "DROP TABLE IF EXISTS users",
        "DROP TABLE IF EXISTS schema_version",
    ]
