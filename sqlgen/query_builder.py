"""SQL text builder for the statements the transfer engine issues."""

from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
from .adapt_sql import escape_colons
from .conditions import ParsedPredicate
from .mappings import MSSQL, normalize_dialect
from .quoting import format_literal, quote_identifier, quote_identifiers


class SQLBuilder:
    """Builds COUNT, paged SELECT, INSERT and DELETE statements for one dialect.

    Statements returned by :meth:`count`, :meth:`select`, :meth:`insert_bulk`
    and :meth:`delete` are meant for SQLAlchemy ``text()``: placeholders are
    '?' (or ``:cN`` for bulk inserts) and colons in identifiers are escaped.
    :meth:`insert_values` renders plain literal SQL for script files.
    """
    def __init__(self, dialect: str = 'default'):
        self.dialect = normalize_dialect(dialect)

    def ident(self, name: str) -> str:
        return escape_colons(quote_identifier(name, self.dialect))

    def _where(self, predicate: Optional[ParsedPredicate]) -> Tuple[str, List[Any]]:
        if predicate is None or not predicate.sql:
            return '', []
        return f' WHERE {escape_colons(predicate.sql)}', list(predicate.bindings)

    def count(self, table: str, predicate: Optional[ParsedPredicate] = None) -> Tuple[str, List[Any]]:
        """Generate SELECT COUNT(*) query."""
        where, bindings = self._where(predicate)
        return f'SELECT COUNT(*) AS cnt FROM {self.ident(table)}{where}', bindings

    def select(self, table: str, predicate: Optional[ParsedPredicate] = None,
               limit: Optional[int] = None, offset: int = 0) -> Tuple[str, List[Any]]:
        """Generate SELECT * query, paged when ``limit`` is given."""
        where, bindings = self._where(predicate)
        sql = f'SELECT * FROM {self.ident(table)}{where}'
        if limit is None:
            return sql, bindings
        if self.dialect == MSSQL:
            sql += f' ORDER BY (SELECT NULL) OFFSET {int(offset)} ROWS FETCH NEXT {int(limit)} ROWS ONLY'
        else:
            sql += f' LIMIT {int(limit)}'
            if offset:
                sql += f' OFFSET {int(offset)}'
        return sql, bindings

    def insert_bulk(self, table: str, columns: Sequence[str]) -> str:
        """Generate one-row INSERT with ``:c0..:cN`` binds, executed once per row."""
        if not columns:
            raise ValueError(f'No columns provided for insert into {table}')
        phs = ', '.join(f':c{i}' for i in range(len(columns)))
        cols = escape_colons(quote_identifiers(columns, self.dialect))
        return f'INSERT INTO {self.ident(table)} ({cols}) VALUES ({phs})'

    @staticmethod
    def bulk_params(columns: Sequence[str], rows: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Parameter dicts matching :meth:`insert_bulk`; missing keys bind NULL."""
        return [{f'c{i}': row.get(c) for i, c in enumerate(columns)} for row in rows]

    def delete(self, table: str, allow_full: bool = False) -> str:
        """Generate DELETE of all rows."""
        if not allow_full:
            raise ValueError('DELETE without WHERE refused; use allow_full=True if intended')
        return f'DELETE FROM {self.ident(table)}'

    def insert_values(self, table: str, columns: Sequence[str], rows: Sequence[Dict[str, Any]],
                      quote: Optional[Callable[[str], str]] = None) -> str:
        """Generate a literal multi-row INSERT for a SQL script."""
        if not rows:
            raise ValueError('No rows provided for insert')
        col_list = quote_identifiers(columns, self.dialect)
        values = [
            '(' + ', '.join(format_literal(row.get(c), self.dialect, quote) for c in columns) + ')'
            for row in rows
        ]
        return f'INSERT INTO {quote_identifier(table, self.dialect)} ({col_list}) VALUES\n' + ',\n'.join(values) + ';'
