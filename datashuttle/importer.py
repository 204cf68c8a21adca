"""Import SQL, JSON, YAML or CSV exports into a database."""

import glob
import gzip
import json
import logging
import os
import zlib
from contextlib import nullcontext
from typing import Any, Callable, Dict, Iterable, List, Optional
import yaml
from sqlalchemy.exc import SQLAlchemyError
from sqlgen.mappings import backslash_escapes, fk_toggle_in_transaction, foreign_key_toggles
from sqlgen.query_builder import SQLBuilder
from sqlgen.splitter import estimate_insert_rows, is_transaction_control, split_statements, statement_table
from .codecs import load_json, load_yaml, read_csv_batches, read_manifest
from .config import DB_CONFIG, IMPORT_DEFAULTS, merge_options
from .errors import RowLevelError, TransferIOError, ValidationError
from .models import ConflictMode, Format, ImportStatistics, TableFilter

logger = logging.getLogger(__name__)

_EXTENSIONS = {'.sql': Format.SQL, '.json': Format.JSON, '.yaml': Format.YAML, '.yml': Format.YAML, '.csv': Format.CSV}


def detect_format(path: Optional[str], content: str) -> Format:
    """Guess the format from the file extension, then from the content; SQL when unsure."""
    if path:
        base = path[:-3] if path.endswith('.gz') else path
        ext = os.path.splitext(base)[1].lower()
        if ext in _EXTENSIONS:
            return _EXTENSIONS[ext]
    trimmed = content.strip()
    if trimmed[:1] in ('{', '[') and trimmed[-1:] in ('}', ']'):
        try:
            json.loads(trimmed)
            return Format.JSON
        except ValueError:
            pass
    if '\n' in trimmed and (':' in trimmed or '- ' in trimmed):
        try:
            if isinstance(yaml.safe_load(trimmed), dict):
                return Format.YAML
        except yaml.YAMLError:
            pass
    return Format.SQL


def _kind(value: Any) -> str:
    return 'null' if value is None else type(value).__name__


def structured_tables(data: Any, selects: Callable[[str], bool]) -> Dict[str, List[Dict[str, Any]]]:
    """Validate the ``data`` section of a JSON/YAML export and return rows per selected table.

    A table value may be a list of rows or a mapping with a ``rows`` list.
    """
    if not isinstance(data, dict):
        raise ValidationError(f'"data" must be a mapping of table names, got {_kind(data)}')
    tables: Dict[str, List[Dict[str, Any]]] = {}
    for table, value in data.items():
        table = str(table)
        if not selects(table):
            continue
        if isinstance(value, dict):
            if 'rows' not in value:
                raise ValidationError(f'Table {table}: mapping has no "rows" key')
            rows = value['rows']
        elif isinstance(value, list):
            rows = value
        else:
            raise ValidationError(f'Table {table}: expected a list of rows or a mapping with "rows", got {_kind(value)}')
        if not isinstance(rows, list):
            raise ValidationError(f'Table {table}: "rows" must be a list, got {_kind(rows)}')
        for i, row in enumerate(rows):
            if not isinstance(row, dict):
                raise ValidationError(f'Table {table}: row {i} must be a mapping, got {_kind(row)}')
        tables[table] = rows
    return tables


def _chunks(rows: List[Dict[str, Any]], size: int) -> Iterable[List[Dict[str, Any]]]:
    for start in range(0, len(rows), size):
        yield rows[start:start + size]


class DataImporter:
    """Loads exported data with conflict handling, foreign key and transaction control.

    ``format`` may be None to detect it per file. Statistics are reset at the
    start of every import and describe the last one.
    """
    def __init__(self, adapter, options: Optional[Dict[str, Any]] = None, migration_table: Optional[str] = None):
        self.options = merge_options(IMPORT_DEFAULTS, options)
        fmt = self.options['format']
        if fmt is not None:
            try:
                self.options['format'] = Format(fmt)
            except ValueError:
                raise ValidationError(f'Unsupported format: {fmt}') from None
        batch_size = self.options['batch_size']
        if isinstance(batch_size, bool) or not isinstance(batch_size, int) or batch_size <= 0:
            raise ValidationError(f'batch_size must be a positive integer, got {batch_size!r}')
        try:
            self.conflict_mode = ConflictMode(self.options['conflict_mode'])
        except ValueError:
            raise ValidationError(f"Invalid conflict mode: {self.options['conflict_mode']}") from None
        callback = self.options['progress_callback']
        if callback is not None and not callable(callback):
            raise ValidationError('progress_callback must be callable')
        self.progress_callback: Optional[Callable[[int, Optional[int]], Any]] = callback
        self.migration_table = migration_table or DB_CONFIG['migration_table']
        self.filter = TableFilter(
            tables=self.options['tables'], exclude=self.options['exclude'],
            batch_size=batch_size, migration_table=self.migration_table
        )
        self.adapter = adapter
        if adapter.connection is None:
            adapter.connect()
        self.dialect = adapter.adapter_type
        self.builder = SQLBuilder(self.dialect)
        self.stats = ImportStatistics()
        self._progress = 0
        self._progress_total: Optional[int] = None

    @property
    def statistics(self) -> ImportStatistics:
        return self.stats

    def get_statistics(self) -> Dict[str, Any]:
        return self.stats.to_dict()

    # -- foreign keys and error policy -------------------------------------------------

    def _set_foreign_keys(self, enabled: bool):
        toggle = foreign_key_toggles.get(self.dialect)
        if toggle:
            self.adapter.execute_raw(toggle[int(enabled)])

    def _record(self, message: str, table: Optional[str], exc: Optional[Exception] = None):
        self.stats.errors.append(message)
        logger.warning(message)
        if self.options['stop_on_error']:
            raise RowLevelError(message, table) from exc

    def _tick(self, amount: int):
        self._progress += amount
        if self.progress_callback is not None:
            self.progress_callback(self._progress, self._progress_total)

    def _guarded(self):
        """Savepoint around one statement or batch so a recorded failure leaves no partial rows.

        Without a transaction each statement is committed or rolled back on its own.
        """
        if self.options['use_transaction'] and not self.options['stop_on_error']:
            return self.adapter.savepoint()
        return nullcontext()

    def _run(self, work: Callable[[], None], total: Optional[int] = None) -> bool:
        """Run ``work`` inside the foreign key and transaction envelope.

        Outside PostgreSQL the order is: checks off, clear, begin, work,
        commit, checks on. PostgreSQL only defers constraints inside a
        transaction, so there checks are deferred and tables cleared after
        begin and made immediate again before commit.
        """
        use_tx = self.options['use_transaction']
        disable_fk = self.options['disable_foreign_keys']
        fk_in_tx = use_tx and self.dialect in fk_toggle_in_transaction
        fk_off = False
        self._progress = 0
        self._progress_total = total
        try:
            if disable_fk and not fk_in_tx:
                self._set_foreign_keys(False)
                fk_off = True
            if self.options['clear_tables'] and not fk_in_tx:
                self._clear_tables()
            if use_tx:
                self.adapter.begin_transaction()
            if disable_fk and fk_in_tx:
                self._set_foreign_keys(False)
                fk_off = True
            if self.options['clear_tables'] and fk_in_tx:
                self._clear_tables()
            work()
            if fk_off and fk_in_tx:
                self._set_foreign_keys(True)
                fk_off = False
            if use_tx:
                self.adapter.commit_transaction()
        except Exception:
            if use_tx and self.adapter.in_transaction():
                self.adapter.rollback_transaction()
                fk_off = fk_off and not fk_in_tx
            self.stats.rows_imported = 0
            self.stats.tables_imported = 0
            if fk_off:
                try:
                    self._set_foreign_keys(True)
                except SQLAlchemyError as fk_error:
                    logger.warning(f'Could not re-enable foreign key checks: {fk_error}')
            raise
        if fk_off:
            self._set_foreign_keys(True)
        logger.info(
            f'Imported {self.stats.rows_imported} rows into {self.stats.tables_imported} tables '
            f'({len(self.stats.errors)} errors)'
        )
        return not self.stats.errors

    # -- table level --------------------------------------------------------------------

    def _clear_tables(self):
        for table in self.filter.apply(self.adapter.list_tables()):
            self.adapter.execute(self.builder.delete(table, allow_full=True))
            logger.info(f'Cleared {table}')

    def _prepare_table(self, table: str) -> bool:
        """Apply the conflict mode; False means the table is not imported."""
        if not self.adapter.has_table(table):
            self._record(f'Table {table} does not exist', table)
            return False
        if self.conflict_mode == ConflictMode.REPLACE:
            self.adapter.execute(self.builder.delete(table, allow_full=True))
        elif self.conflict_mode == ConflictMode.SKIP:
            sql, bindings = self.builder.count(table)
            row = self.adapter.fetch_row(sql, bindings)
            if row and int(row['cnt']) > 0:
                logger.info(f'Skipping {table}: already holds {row["cnt"]} rows')
                return False
        return True

    def _insert_batch(self, table: str, rows: List[Dict[str, Any]]) -> bool:
        """Insert one batch atomically; False when it failed and was recorded."""
        if not rows:
            return True
        columns: List[str] = []
        for row in rows:
            for key in row:
                if key not in columns:
                    columns.append(key)
        sql = self.builder.insert_bulk(table, columns)
        params = self.builder.bulk_params(columns, rows)
        try:
            with self._guarded():
                self.adapter.execute(sql, params)
        except SQLAlchemyError as e:
            self._record(f'Error importing {len(rows)} rows into {table}: {e}', table, e)
            return False
        self.stats.rows_imported += len(rows)
        self._tick(len(rows))
        return True

    def _import_table(self, table: str, batches: Iterable[List[Dict[str, Any]]]):
        try:
            with self._guarded():
                prepared = self._prepare_table(table)
        except SQLAlchemyError as e:
            self._record(f'Error importing table {table}: {e}', table, e)
            return
        if not prepared:
            return
        inserted = failed = 0
        for rows in batches:
            if self._insert_batch(table, rows):
                inserted += 1
            else:
                failed += 1
        if inserted or not failed:
            self.stats.tables_imported += 1
            logger.info(f'Imported table {table} ({failed} failed batches)' if failed else f'Imported table {table}')

    # -- formats ------------------------------------------------------------------------

    def _import_sql(self, script: str) -> bool:
        statements = split_statements(script, backslash_escapes=self.dialect in backslash_escapes)

        def work():
            touched = set()
            for statement in statements:
                if self.options['use_transaction'] and is_transaction_control(statement):
                    continue
                table = statement_table(statement)
                if table is not None and not self.filter.selects(table):
                    continue
                try:
                    with self._guarded():
                        self.adapter.execute_raw(statement)
                except SQLAlchemyError as e:
                    self._record(f'SQL Error: {e} in statement: {statement[:100]}...', table, e)
                    continue
                if statement[:6].upper() == 'INSERT':
                    self.stats.rows_imported += estimate_insert_rows(statement, self.dialect in backslash_escapes)
                    touched.add(table)
                    self.stats.tables_imported = len(touched)
                self._tick(1)

        logger.info(f'Importing {len(statements)} SQL statements')
        return self._run(work, total=len(statements))

    def _import_structured(self, data: Any) -> bool:
        tables = structured_tables(data, self.filter.selects)
        size = self.filter.batch_size

        def work():
            for table, rows in tables.items():
                if not rows:
                    continue
                self._import_table(table, _chunks(rows, size))

        return self._run(work, total=sum(len(rows) for rows in tables.values()))

    def _import_text(self, text: str, fmt: Format) -> bool:
        self.stats.reset()
        if fmt == Format.SQL:
            return self._import_sql(text)
        if fmt == Format.JSON:
            return self._import_structured(load_json(text))
        if fmt == Format.YAML:
            return self._import_structured(load_yaml(text))
        raise ValidationError('CSV imports read files; use import_file() or import_csv_directory()')

    def import_data(self, text: str) -> bool:
        """Import an export held in memory; True when no errors were recorded."""
        fmt = self.options['format'] or detect_format(None, text)
        return self._import_text(text, fmt)

    @staticmethod
    def _read_text(path: str) -> str:
        try:
            if path.endswith('.gz'):
                with gzip.open(path, 'rt', encoding='utf-8') as f:
                    return f.read()
            with open(path, 'r', encoding='utf-8') as f:
                return f.read()
        except (OSError, EOFError, zlib.error) as e:
            raise TransferIOError(f'Failed to read file ({e})', path) from e

    def import_file(self, path: str) -> bool:
        """Import a file (``.gz`` allowed) or a CSV export directory.

        Format detection for this file never changes the configured format.
        """
        if os.path.isdir(path):
            return self.import_csv_directory(path)
        if not os.path.isfile(path):
            raise TransferIOError('File not found', path)
        configured = self.options['format']
        if configured == Format.CSV or (configured is None and detect_format(path, '') == Format.CSV):
            self.stats.reset()
            table = os.path.basename(path).split('.')[0]
            return self._import_csv_files([(table, path)])
        text = self._read_text(path)
        fmt = configured or detect_format(path, text)
        logger.info(f'Importing {path} as {fmt.value}')
        return self._import_text(text, fmt)

    def _import_csv_files(self, files: List[tuple]) -> bool:
        size = self.filter.batch_size

        def work():
            for table, path in files:
                self._import_table(table, (batch.rows for batch in read_csv_batches(path, table, size)))

        return self._run(work)

    def import_csv_directory(self, directory: str) -> bool:
        """Import ``<table>.csv`` files in manifest order, or sorted by name without a manifest."""
        if not os.path.isdir(directory):
            raise TransferIOError('Directory not found', directory)
        self.stats.reset()
        manifest = read_manifest(directory)
        if manifest is not None:
            paths = []
            for name in manifest.tables:
                path = os.path.join(directory, name)
                if os.path.isfile(path):
                    paths.append(path)
                else:
                    message = f'File listed in manifest not found: {name}'
                    self.stats.warnings.append(message)
                    logger.warning(message)
        else:
            paths = sorted(glob.glob(os.path.join(directory, '*.csv')))
            if not paths:
                raise TransferIOError('No CSV files found in directory', directory)
        files = []
        for path in paths:
            table = os.path.splitext(os.path.basename(path))[0]
            if self.filter.selects(table):
                files.append((table, path))
        return self._import_csv_files(files)

    # -- maintenance --------------------------------------------------------------------

    def clear_all_data(self, include_migration_table: bool = False) -> bool:
        """Delete every row of every selected table with foreign key checks off."""
        fk_off = False
        try:
            self._set_foreign_keys(False)
            fk_off = True
            for table in self.adapter.list_tables():
                if table == self.migration_table:
                    if not include_migration_table:
                        continue
                elif not self.filter.selects(table):
                    continue
                self.adapter.execute(self.builder.delete(table, allow_full=True))
                logger.info(f'Cleared {table}')
        except SQLAlchemyError as e:
            message = f'Error clearing data: {e}'
            self.stats.errors.append(message)
            logger.error(message)
            return False
        finally:
            if fk_off:
                self._set_foreign_keys(True)
        return True

    def _count(self, table: str) -> int:
        sql, bindings = self.builder.count(table)
        row = self.adapter.fetch_row(sql, bindings)
        return int(row['cnt']) if row else 0

    def get_table_row_counts(self) -> Dict[str, int]:
        counts = {}
        for table in self.adapter.list_tables():
            try:
                counts[table] = self._count(table)
            except SQLAlchemyError as e:
                logger.warning(f'Cannot count rows of {table}: {e}')
                counts[table] = 0
        return counts

    def verify_import(self, expected_counts: Dict[str, int]) -> Dict[str, Dict[str, Any]]:
        """Compare actual row counts with ``expected_counts`` per table."""
        results: Dict[str, Dict[str, Any]] = {}
        for table, expected in expected_counts.items():
            try:
                actual = self._count(table) if self.adapter.has_table(table) else 0
                results[table] = {'expected': expected, 'actual': actual, 'match': actual == expected}
            except SQLAlchemyError as e:
                results[table] = {'expected': expected, 'actual': 0, 'match': False, 'error': str(e)}
        return results

    def close(self):
        self.adapter.disconnect()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
