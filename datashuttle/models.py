"""Value objects shared by the reader, codecs, exporter and importer."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Set
from sqlgen.conditions import ParsedPredicate
from .config import DB_CONFIG


class Format(str, Enum):
    SQL = 'sql'
    JSON = 'json'
    YAML = 'yaml'
    CSV = 'csv'


class ConflictMode(str, Enum):
    """What to do with a target table that already holds rows."""
    REPLACE = 'replace'
    APPEND = 'append'
    SKIP = 'skip'


@dataclass
class TableFilter:
    """Which tables to process and how to read them.

    Explicit inclusion wins over exclusion; the migration table is left out
    unless it is named in ``tables``.
    """
    tables: Optional[Set[str]] = None
    exclude: Set[str] = field(default_factory=set)
    where: Dict[str, str] = field(default_factory=dict)
    limit: Optional[int] = None
    batch_size: int = 1000
    migration_table: str = DB_CONFIG['migration_table']

    def __post_init__(self):
        if self.tables is not None:
            self.tables = set(self.tables)
        self.exclude = set(self.exclude or ())
        self.where = dict(self.where or {})

    def selects(self, table: str) -> bool:
        if self.tables is not None:
            return table in self.tables
        if table == self.migration_table:
            return False
        return table not in self.exclude

    def apply(self, tables: List[str]) -> List[str]:
        return [t for t in tables if self.selects(t)]


@dataclass
class RowBatch:
    table: str
    columns: List[str]
    rows: List[Dict[str, Any]]

    def __len__(self):
        return len(self.rows)


@dataclass
class ExportManifest:
    """Contents of export_metadata.json written next to CSV files."""
    exported_at: str
    database_type: str
    tables: List[str] = field(default_factory=list)

    @classmethod
    def now(cls, database_type: str) -> 'ExportManifest':
        return cls(datetime.now().isoformat(timespec='seconds'), database_type)

    def to_dict(self) -> Dict[str, Any]:
        return {'exported_at': self.exported_at, 'database_type': self.database_type, 'tables': list(self.tables)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ExportManifest':
        return cls(str(data.get('exported_at', '')), str(data.get('database_type', '')), list(data.get('tables') or []))


@dataclass
class ImportStatistics:
    rows_imported: int = 0
    tables_imported: int = 0
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def reset(self):
        self.rows_imported = 0
        self.tables_imported = 0
        self.errors = []
        self.warnings = []

    def to_dict(self) -> Dict[str, Any]:
        return {
            'rows_imported': self.rows_imported,
            'tables_imported': self.tables_imported,
            'errors': list(self.errors),
            'warnings': list(self.warnings),
        }


__all__ = ['Format', 'ConflictMode', 'TableFilter', 'ParsedPredicate', 'RowBatch', 'ExportManifest', 'ImportStatistics']
