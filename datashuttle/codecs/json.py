"""JSON document writer and loader."""

import json
from datetime import datetime
from typing import Any, Dict, TextIO
from ..errors import ValidationError
from ..models import RowBatch


def _metadata(dialect: str, table_count: int) -> Dict[str, Any]:
    return {
        'exported_at': datetime.now().isoformat(sep=' ', timespec='seconds'),
        'database_type': dialect,
        'tables_count': table_count,
    }


class JsonWriter:
    """Streams ``{"metadata": ..., "data": {table: {"rows": [...]}}}`` one row at a time."""
    def __init__(self, handle: TextIO, dialect: str):
        self.handle = handle
        self.dialect = dialect
        self._tables = 0
        self._rows = 0

    def begin(self, table_count: int = 0):
        meta = json.dumps(_metadata(self.dialect, table_count), indent=4)
        self.handle.write('{\n    "metadata": ' + meta.replace('\n', '\n    ') + ',\n    "data": {')

    def begin_table(self, table: str):
        sep = ',' if self._tables else ''
        self.handle.write(f'{sep}\n        {json.dumps(table, ensure_ascii=False)}: {{\n            "rows": [')
        self._tables += 1
        self._rows = 0

    def write_batch(self, batch: RowBatch):
        for row in batch.rows:
            sep = ',' if self._rows else ''
            self.handle.write(f'{sep}\n                {json.dumps(row, ensure_ascii=False)}')
            self._rows += 1

    def end_table(self, table: str, rows: int):
        close = '\n            ]' if self._rows else ']'
        self.handle.write(f'{close},\n            "rows_count": {rows}\n        }}')

    def finish(self):
        self.handle.write('\n    }\n}\n' if self._tables else '}\n}\n')


def load_json(text: str) -> Dict[str, Any]:
    """Parse a JSON export and return its ``data`` mapping."""
    try:
        doc = json.loads(text)
    except ValueError as e:
        raise ValidationError(f'Invalid JSON: {e}') from e
    if not isinstance(doc, dict) or 'data' not in doc:
        raise ValidationError('Invalid JSON structure: missing "data" key')
    return doc['data']
