"""YAML document writer and loader (PyYAML safe dumper/loader)."""

import json
from datetime import datetime
from typing import Any, Dict, TextIO
import yaml
from ..errors import ValidationError
from ..models import RowBatch

_INDENT = '    '


def _indent(text: str, prefix: str) -> str:
    return ''.join(prefix + line for line in text.splitlines(True))


class YamlWriter:
    """Streams the same document shape as the JSON writer, one batch per dump call."""
    def __init__(self, handle: TextIO, dialect: str):
        self.handle = handle
        self.dialect = dialect
        self._tables = 0
        self._rows = 0

    def begin(self, table_count: int = 0):
        meta = {
            'metadata': {
                'exported_at': datetime.now().strftime('%Y-%m-%d %H:%M:%S'),
                'database_type': self.dialect,
                'tables_count': table_count,
            }
        }
        self.handle.write(yaml.safe_dump(meta, default_flow_style=False, sort_keys=False))
        self.handle.write('data:')

    def begin_table(self, table: str):
        # JSON string syntax is valid YAML double-quoted scalar syntax
        self.handle.write(f'\n  {json.dumps(table)}:\n{_INDENT}rows:')
        self._tables += 1
        self._rows = 0

    def write_batch(self, batch: RowBatch):
        if not batch.rows:
            return
        if not self._rows:
            self.handle.write('\n')
        dumped = yaml.safe_dump(batch.rows, default_flow_style=False, sort_keys=False, allow_unicode=True)
        self.handle.write(_indent(dumped, _INDENT))
        self._rows += len(batch.rows)

    def end_table(self, table: str, rows: int):
        if not self._rows:
            self.handle.write(' []\n')
        self.handle.write(f'{_INDENT}rows_count: {rows}')

    def finish(self):
        self.handle.write('\n' if self._tables else ' {}\n')


def load_yaml(text: str) -> Dict[str, Any]:
    """Parse a YAML export and return its ``data`` mapping."""
    try:
        doc = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ValidationError(f'Invalid YAML: {e}') from e
    if not isinstance(doc, dict) or 'data' not in doc:
        raise ValidationError('Invalid YAML structure: missing "data" key')
    return doc['data']
