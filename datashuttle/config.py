"""Connection settings and option defaults.

Connection settings are read from the environment so the same code runs
locally and inside containers.
"""

import os
from typing import Any, Dict, Optional
from .errors import ValidationError

DB_CONFIG = {
    'url': os.getenv('DATASHUTTLE_DB_URL', 'sqlite:///datashuttle.db'),
    'pool_size': int(os.getenv('DATASHUTTLE_POOL_SIZE', 5)),
    'pool_timeout': int(os.getenv('DATASHUTTLE_POOL_TIMEOUT', 30)),
    'echo': os.getenv('DATASHUTTLE_ECHO', 'false').lower() in ('1', 'true', 'yes'),
    'migration_table': os.getenv('DATASHUTTLE_MIGRATION_TABLE', 'phinx_log'),
}

# Rows above this count are read page by page
STREAMING_THRESHOLD = 10000

# Rows per INSERT statement in SQL dumps
SQL_INSERT_CHUNK = 100

CSV_MANIFEST = 'export_metadata.json'
CSV_NULL = '\\N'

EXPORT_DEFAULTS: Dict[str, Any] = {
    'format': 'sql',
    'tables': None,
    'exclude': [],
    'where': {},
    'limit': None,
    'batch_size': 1000,
    'compress': False,
    'use_transaction': True,
    'include_schema': True,
    'drop_tables': True,
}

IMPORT_DEFAULTS: Dict[str, Any] = {
    'format': 'sql',
    'tables': None,
    'exclude': [],
    'clear_tables': False,
    'disable_foreign_keys': True,
    'use_transaction': True,
    'batch_size': 1000,
    'conflict_mode': 'replace',
    'stop_on_error': True,
    'progress_callback': None,
}


def merge_options(defaults: Dict[str, Any], options: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Overlay user options on defaults, rejecting keys the operation does not know."""
    options = options or {}
    unknown = sorted(set(options) - set(defaults))
    if unknown:
        raise ValidationError(f'Unknown option(s): {", ".join(unknown)}')
    merged = dict(defaults)
    merged.update(options)
    return merged
