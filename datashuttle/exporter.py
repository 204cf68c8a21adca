"""Export table data to SQL, JSON, YAML or CSV."""

import gzip
import io
import logging
import os
import zlib
from typing import Any, Dict, List, Optional, TextIO
from sqlgen.conditions import ParsedPredicate
from .codecs import CsvTableWriter, JsonWriter, SqlWriter, YamlWriter, write_manifest
from .config import DB_CONFIG, EXPORT_DEFAULTS, merge_options
from .errors import TransferIOError, ValidationError
from .models import ExportManifest, Format, TableFilter
from .reader import TableReader, build_predicate

logger = logging.getLogger(__name__)


def _positive_int(name: str, value: Any, allow_none: bool = False) -> Optional[int]:
    if value is None and allow_none:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f'{name} must be a positive integer, got {value!r}')
    return value


class DataExporter:
    """Streams the selected tables of one database into a portable format.

    The adapter is connected on construction when needed and disconnected by
    :meth:`close`. WHERE clauses are validated and parsed up front, so a
    rejected clause never reaches the database.
    """
    def __init__(self, adapter, options: Optional[Dict[str, Any]] = None, migration_table: Optional[str] = None):
        self.options = merge_options(EXPORT_DEFAULTS, options)
        try:
            self.format = Format(self.options['format'])
        except ValueError:
            raise ValidationError(f"Unsupported format: {self.options['format']}") from None
        batch_size = _positive_int('batch_size', self.options['batch_size'])
        limit = _positive_int('limit', self.options['limit'], allow_none=True)
        where = self.options['where'] or {}
        if not isinstance(where, dict):
            raise ValidationError(f'where must map table names to clauses, got {type(where).__name__}')
        self.adapter = adapter
        self.adapter_type = adapter.adapter_type
        self.filter = TableFilter(
            tables=self.options['tables'], exclude=self.options['exclude'], where=where,
            limit=limit, batch_size=batch_size, migration_table=migration_table or DB_CONFIG['migration_table']
        )
        self._predicates: Dict[str, Optional[ParsedPredicate]] = {
            table: build_predicate(table, clause, self.adapter_type) for table, clause in where.items()
        }
        if adapter.connection is None:
            adapter.connect()
        self.reader = TableReader(adapter)

    def get_table_list(self) -> List[str]:
        """Tables to export after include/exclude and migration-table filtering."""
        return self.filter.apply(self.adapter.list_tables())

    def get_table_row_count(self, table: str) -> int:
        """Row count honouring the table's WHERE filter."""
        return self.reader.count(table, self._predicates.get(table))

    def _writer(self, handle: TextIO):
        if self.format == Format.SQL:
            return SqlWriter(
                handle, self.adapter_type, quote=self.adapter.quote_literal,
                use_transaction=self.options['use_transaction'], drop_tables=self.options['drop_tables'],
                include_schema=self.options['include_schema'], create_statement=self.adapter.create_table_statement
            )
        if self.format == Format.JSON:
            return JsonWriter(handle, self.adapter_type)
        if self.format == Format.YAML:
            return YamlWriter(handle, self.adapter_type)
        raise ValidationError('CSV exports are written per table; use export_csv_to_directory()')

    def _stream(self, writer) -> Dict[str, int]:
        tables = self.get_table_list()
        counts: Dict[str, int] = {}
        writer.begin(len(tables))
        for table in tables:
            writer.begin_table(table)
            rows = 0
            for batch in self.reader.read(table, self._predicates.get(table), self.filter.limit, self.filter.batch_size):
                writer.write_batch(batch)
                rows += len(batch)
            writer.end_table(table, rows)
            counts[table] = rows
            logger.info(f'Exported {rows} rows from {table}')
        writer.finish()
        logger.info(f'Exported {len(tables)} tables, {sum(counts.values())} rows as {self.format.value}')
        return counts

    def _csv_summary(self) -> str:
        lines = [f'Table: {t} - {self.get_table_row_count(t)} rows' for t in self.get_table_list()]
        return (
            'CSV Export Metadata\n'
            '===================\n'
            + '\n'.join(lines)
            + '\n\nNote: Use export_csv_to_directory() for the actual CSV export'
        )

    def export(self) -> str:
        """Whole export as a string; for CSV a per-table row count summary."""
        if self.format == Format.CSV:
            return self._csv_summary()
        buf = io.StringIO()
        self._stream(self._writer(buf))
        return buf.getvalue()

    def export_to_file(self, path: str) -> str:
        """Stream the export to ``path`` and return the path written.

        With ``compress`` the output is gzip-compressed and ``.gz`` is appended
        to the path when missing. A partially written file is removed on failure.
        """
        if self.format == Format.CSV:
            raise ValidationError('CSV exports are written per table; use export_csv_to_directory()')
        compress = bool(self.options['compress'])
        if compress and not path.endswith('.gz'):
            path += '.gz'
        parent = os.path.dirname(path)
        try:
            if parent:
                os.makedirs(parent, exist_ok=True)
            if compress:
                handle = gzip.open(path, 'wt', encoding='utf-8')
            else:
                handle = open(path, 'w', encoding='utf-8', newline='')
            with handle:
                self._stream(self._writer(handle))
        except (OSError, zlib.error) as e:
            self._remove_partial(path)
            raise TransferIOError(f'Failed to write export ({e})', path) from e
        except Exception:
            self._remove_partial(path)
            raise
        logger.info(f'Export written to {path}')
        return path

    @staticmethod
    def _remove_partial(path: str):
        if os.path.exists(path):
            os.remove(path)
            logger.warning(f'Removed partial export {path}')

    def export_csv_to_directory(self, directory: str) -> List[str]:
        """Write ``<table>.csv`` per table plus ``export_metadata.json``; return the paths written."""
        try:
            os.makedirs(directory, exist_ok=True)
        except OSError as e:
            raise TransferIOError(f'Cannot create export directory ({e})', directory) from e
        manifest = ExportManifest.now(self.adapter_type)
        written: List[str] = []
        for table in self.get_table_list():
            path = os.path.join(directory, f'{table}.csv')
            try:
                with open(path, 'w', encoding='utf-8', newline='') as f:
                    writer = CsvTableWriter(f, table)
                    for batch in self.reader.read(table, self._predicates.get(table), self.filter.limit,
                                                  self.filter.batch_size):
                        writer.write_batch(batch)
            except OSError as e:
                raise TransferIOError(f'Failed to write CSV for {table} ({e})', path) from e
            logger.info(f'Exported {writer.rows} rows from {table} to {path}')
            manifest.tables.append(os.path.basename(path))
            written.append(path)
        written.append(write_manifest(directory, manifest))
        return written

    def close(self):
        self.adapter.disconnect()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
