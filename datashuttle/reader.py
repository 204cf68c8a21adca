"""Streaming reads of table rows in bounded pages."""

import logging
from typing import Iterator, Optional
from sqlgen.conditions import ParsedPredicate, is_valid, parse_where
from sqlgen.query_builder import SQLBuilder
from .codecs.base import normalize_row
from .config import STREAMING_THRESHOLD
from .errors import ConfigurationError, SecurityRejection, WhereClauseError
from .models import RowBatch

logger = logging.getLogger(__name__)


def validate_where(table: str, clause: Optional[str]):
    """Raise SecurityRejection naming ``table`` when the clause fails validation."""
    if not is_valid(clause):
        raise SecurityRejection(table, clause)


def build_predicate(table: str, clause: Optional[str], dialect: str) -> Optional[ParsedPredicate]:
    """Validate and parse a user WHERE clause; None when there is no filter."""
    if clause is None or not str(clause).strip():
        return None
    validate_where(table, clause)
    try:
        return parse_where(clause, dialect)
    except ValueError as e:
        raise WhereClauseError(f'Cannot parse WHERE clause for table {table}: {e}') from e


class TableReader:
    """Yields RowBatch objects for one table at a time.

    Small tables are read in a single query. Tables above ``threshold`` rows,
    or any read with a ``limit``, are paged with LIMIT/OFFSET so at most one
    page is held in memory.
    """
    def __init__(self, adapter, threshold: int = STREAMING_THRESHOLD):
        self.adapter = adapter
        self.threshold = threshold
        self.builder = SQLBuilder(adapter.adapter_type)

    def _check_binding(self, predicate: Optional[ParsedPredicate]):
        if predicate is not None and predicate.bindings and self.adapter.connection is None:
            raise ConfigurationError('Filtered reads need a live connection for parameter binding')

    def count(self, table: str, predicate: Optional[ParsedPredicate] = None) -> int:
        self._check_binding(predicate)
        sql, bindings = self.builder.count(table, predicate)
        row = self.adapter.fetch_row(sql, bindings)
        return int(row['cnt']) if row else 0

    def _batch(self, table: str, rows) -> RowBatch:
        columns = list(rows[0].keys())
        return RowBatch(table, columns, [normalize_row(r) for r in rows])

    def read(self, table: str, predicate: Optional[ParsedPredicate] = None,
             limit: Optional[int] = None, batch_size: int = 1000) -> Iterator[RowBatch]:
        if batch_size <= 0:
            raise ConfigurationError(f'batch_size must be positive, got {batch_size}')
        total = self.count(table, predicate)
        if limit is None and total <= self.threshold:
            sql, bindings = self.builder.select(table, predicate)
            rows = self.adapter.fetch_all(sql, bindings)
            logger.info(f'Read {len(rows)} rows from {table}')
            if rows:
                yield self._batch(table, rows)
            return
        fetched = 0
        while True:
            size = batch_size if limit is None else min(batch_size, limit - fetched)
            if size <= 0:
                break
            sql, bindings = self.builder.select(table, predicate, limit=size, offset=fetched)
            rows = self.adapter.fetch_all(sql, bindings)
            if rows:
                yield self._batch(table, rows)
            fetched += len(rows)
            logger.debug(f'{table}: {fetched}/{total if limit is None else min(total, limit)} rows read')
            if len(rows) < size:
                break
        logger.info(f'Read {fetched} rows from {table} in pages of {batch_size}')
