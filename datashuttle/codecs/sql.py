"""SQL script writer."""

import logging
from datetime import datetime
from typing import Callable, Optional, TextIO
from sqlalchemy.exc import SQLAlchemyError
from sqlgen.mappings import fk_toggle_in_transaction, foreign_key_toggles, start_transaction_keyword
from sqlgen.query_builder import SQLBuilder
from sqlgen.quoting import quote_identifier
from ..config import SQL_INSERT_CHUNK
from ..models import RowBatch

logger = logging.getLogger(__name__)


class SqlWriter:
    """Writes a replayable dump: header, optional DDL, DELETE and chunked INSERTs per table."""
    def __init__(
        self, handle: TextIO, dialect: str, quote: Optional[Callable[[str], str]] = None,
        use_transaction: bool = True, drop_tables: bool = True, include_schema: bool = True,
        create_statement: Optional[Callable[[str], Optional[str]]] = None
    ):
        self.handle = handle
        self.dialect = dialect
        self.quote = quote
        self.use_transaction = use_transaction
        self.drop_tables = drop_tables
        self.include_schema = include_schema
        self.create_statement = create_statement
        self.builder = SQLBuilder(dialect)
        self.fk_toggle = foreign_key_toggles.get(dialect)

    def _fk_line(self, enable: bool):
        if self.fk_toggle:
            self.handle.write(f'{self.fk_toggle[int(enable)]};\n')

    def begin(self, table_count: int = 0):
        self.handle.write('-- Database Data Dump\n')
        self.handle.write(f'-- Generated: {datetime.now():%Y-%m-%d %H:%M:%S}\n')
        self.handle.write(f'-- Database Type: {self.dialect}\n\n')
        in_tx = self.dialect in fk_toggle_in_transaction
        if not in_tx:
            self._fk_line(False)
        if self.use_transaction:
            self.handle.write(f'\n{start_transaction_keyword(self.dialect)};\n\n')
        if in_tx:
            self._fk_line(False)

    def _create_sql(self, table: str) -> str:
        placeholder = f'-- CREATE TABLE statement not available for {table}'
        if self.create_statement is None:
            return placeholder
        try:
            ddl = self.create_statement(table)
        except SQLAlchemyError as e:
            logger.warning(f'Cannot introspect {table}: {e}')
            return placeholder
        if not ddl:
            return placeholder
        ddl = ddl.strip()
        return ddl if ddl.endswith(';') else ddl + ';'

    def begin_table(self, table: str):
        qt = quote_identifier(table, self.dialect)
        self.handle.write(f'-- Table: {table}\n')
        if self.drop_tables:
            self.handle.write(f'DROP TABLE IF EXISTS {qt};\n')
        if self.include_schema:
            self.handle.write(self._create_sql(table) + '\n')
        self.handle.write(f'DELETE FROM {qt};\n')

    def write_batch(self, batch: RowBatch):
        for start in range(0, len(batch.rows), SQL_INSERT_CHUNK):
            chunk = batch.rows[start:start + SQL_INSERT_CHUNK]
            self.handle.write(self.builder.insert_values(batch.table, batch.columns, chunk, self.quote) + '\n')

    def end_table(self, table: str, rows: int):
        self.handle.write('\n')

    def finish(self):
        if self.dialect in fk_toggle_in_transaction:
            self._fk_line(True)
        if self.use_transaction:
            self.handle.write('COMMIT;\n')
        if self.dialect not in fk_toggle_in_transaction:
            self.handle.write('\n')
            self._fk_line(True)
