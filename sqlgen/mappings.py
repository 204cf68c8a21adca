"""Dialect lookup tables for quoting, literals, transactions and catalog queries."""

from typing import Dict, Tuple

# Canonical dialect tags (SQLAlchemy dialect names)
MYSQL = 'mysql'
POSTGRESQL = 'postgresql'
SQLITE = 'sqlite'
MSSQL = 'mssql'

dialect_aliases = {
    'mysql': MYSQL, 'mariadb': MYSQL,
    'postgres': POSTGRESQL, 'postgresql': POSTGRESQL, 'pgsql': POSTGRESQL,
    'sqlite': SQLITE, 'sqlite3': SQLITE,
    'mssql': MSSQL, 'sqlserver': MSSQL, 'sqlsrv': MSSQL,
}

# Identifier delimiters: (open, close)
quote_chars: Dict[str, Tuple[str, str]] = {
    MYSQL: ('`', '`'),
    POSTGRESQL: ('"', '"'),
    SQLITE: ('"', '"'),
    MSSQL: ('[', ']'),
}

bool_literals: Dict[str, Tuple[str, str]] = {
    MYSQL: ('0', '1'),
    POSTGRESQL: ('FALSE', 'TRUE'),
    SQLITE: ('0', '1'),
    MSSQL: ('0', '1'),
}

transaction_start = {
    SQLITE: 'BEGIN TRANSACTION',
    POSTGRESQL: 'BEGIN',
}
default_transaction_start = 'START TRANSACTION'

# (disable, enable) statements for foreign key enforcement
foreign_key_toggles: Dict[str, Tuple[str, str]] = {
    MYSQL: ('SET FOREIGN_KEY_CHECKS = 0', 'SET FOREIGN_KEY_CHECKS = 1'),
    SQLITE: ('PRAGMA foreign_keys = OFF', 'PRAGMA foreign_keys = ON'),
    POSTGRESQL: ('SET CONSTRAINTS ALL DEFERRED', 'SET CONSTRAINTS ALL IMMEDIATE'),
    MSSQL: (
        'EXEC sp_MSforeachtable "ALTER TABLE ? NOCHECK CONSTRAINT all"',
        'EXEC sp_MSforeachtable "ALTER TABLE ? WITH CHECK CHECK CONSTRAINT all"',
    ),
}

# Foreign key toggles that only take effect inside an open transaction
fk_toggle_in_transaction = {POSTGRESQL}

# Dialects that understand backslash escapes inside string literals
backslash_escapes = {MYSQL}

table_list_sql = {
    MYSQL: ("SELECT TABLE_NAME AS name FROM information_schema.TABLES "
            "WHERE TABLE_SCHEMA = DATABASE() AND TABLE_TYPE = 'BASE TABLE' ORDER BY TABLE_NAME"),
    POSTGRESQL: ("SELECT tablename AS name FROM pg_catalog.pg_tables "
                 "WHERE schemaname = current_schema() ORDER BY tablename"),
    SQLITE: ("SELECT name FROM sqlite_master "
             "WHERE type = 'table' AND name NOT LIKE 'sqlite_%' ORDER BY name"),
    MSSQL: ("SELECT TABLE_NAME AS name FROM INFORMATION_SCHEMA.TABLES "
            "WHERE TABLE_TYPE = 'BASE TABLE' ORDER BY TABLE_NAME"),
}

# Native CREATE TABLE introspection; None means no native source exists
create_table_sql = {
    MYSQL: 'SHOW CREATE TABLE {table}',
    SQLITE: "SELECT sql FROM sqlite_master WHERE type = 'table' AND name = ?",
    POSTGRESQL: None,
    MSSQL: None,
}


def normalize_dialect(name: str) -> str:
    """Map a driver or adapter name onto a canonical dialect tag."""
    key = (name or '').lower().split('+')[0]
    return dialect_aliases.get(key, key)


def start_transaction_keyword(dialect: str) -> str:
    """Keyword used to open a transaction in a generated SQL script."""
    return transaction_start.get(dialect, default_transaction_start)
