"""SQLAlchemy connection wrapper used by the exporter and importer."""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence, Union
from sqlalchemy import MetaData, String, Table, create_engine, literal, text, inspect as sa_inspect
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.pool import QueuePool, StaticPool
from sqlalchemy.schema import CreateTable
from sqlgen.adapt_sql import bind_positional, escape_colons
from sqlgen.mappings import SQLITE, create_table_sql, normalize_dialect, table_list_sql
from sqlgen.quoting import quote_identifier
from .config import DB_CONFIG
from .errors import ConfigurationError
from .retry import retry

logger = logging.getLogger(__name__)

Params = Union[None, Dict[str, Any], Sequence[Any], List[Dict[str, Any]]]


class SqlAdapter:
    """Single-connection database adapter with explicit transaction control.

    Statements issued outside :meth:`begin_transaction` are committed
    immediately. ``params`` may be a dict of named binds, a sequence of
    values for '?' placeholders, or a list of dicts for executemany.
    """
    def __init__(
        self, conn: Union[str, Engine], pool_size: int = 5, pool_timeout: int = 30,
        echo: bool = False, debug: bool = False
    ):
        if isinstance(conn, Engine):
            self.engine = conn
        else:
            url = make_url(conn)
            if url.get_backend_name() == 'sqlite':
                kwargs: Dict[str, Any] = {'echo': echo}
                if url.database in (None, '', ':memory:'):
                    kwargs.update(poolclass=StaticPool, connect_args={'check_same_thread': False})
            else:
                kwargs = dict(
                    poolclass=QueuePool, pool_size=pool_size, pool_timeout=pool_timeout,
                    pool_recycle=3600, echo=echo
                )
            self.engine = create_engine(url, **kwargs)
        self.url = self.engine.url
        self.debug = debug
        self._conn: Optional[Connection] = None
        self._tx = None
        # fresh dialect instance so literals are rendered without %-doubling
        self._literal_dialect = type(self.engine.dialect)(paramstyle='named')

    @classmethod
    def from_url(cls, url: Optional[str] = None, **kwargs) -> 'SqlAdapter':
        """Build an adapter from a URL, defaulting to DB_CONFIG."""
        kwargs.setdefault('pool_size', DB_CONFIG['pool_size'])
        kwargs.setdefault('pool_timeout', DB_CONFIG['pool_timeout'])
        kwargs.setdefault('echo', DB_CONFIG['echo'])
        return cls(url or DB_CONFIG['url'], **kwargs)

    def _log(self, sql: str, params: Any):
        """Log SQL and params if debug enabled."""
        if self.debug:
            logger.debug(f'SQL: {sql} | Params: {params}')

    @retry()
    def connect(self) -> 'SqlAdapter':
        """Open the connection if it is not open yet."""
        if self._conn is None or self._conn.closed:
            self._conn = self.engine.connect()
            logger.info(f'Connected to {self.adapter_type} database')
        return self

    def disconnect(self):
        if self._conn is not None:
            if self.in_transaction():
                logger.warning('Closing connection with an open transaction; rolling back')
                self.rollback_transaction()
            self._conn.close()
            self._conn = None

    def close(self):
        """Close the connection and dispose of engine resources."""
        self.disconnect()
        self.engine.dispose()

    @property
    def connection(self) -> Optional[Connection]:
        """Live connection used for parameter binding, or None when disconnected."""
        if self._conn is None or self._conn.closed:
            return None
        return self._conn

    @property
    def adapter_type(self) -> str:
        return normalize_dialect(self.engine.dialect.name)

    def _require(self) -> Connection:
        conn = self.connection
        if conn is None:
            raise ConfigurationError('Adapter is not connected; call connect() first')
        return conn

    @contextmanager
    def _statement(self) -> Iterator[Connection]:
        """Yield the connection; outside an explicit transaction, commit or roll back afterwards."""
        conn = self._require()
        try:
            yield conn
        except Exception:
            if self._tx is None and conn.in_transaction():
                conn.rollback()
            raise
        if self._tx is None and conn.in_transaction():
            conn.commit()

    @staticmethod
    def _prepare(sql: str, params: Params):
        if params is None:
            return text(sql), {}
        if isinstance(params, dict):
            return text(sql), params
        if params and all(isinstance(p, dict) for p in params):
            return text(sql), list(params)
        named_sql, named = bind_positional(sql, list(params))
        return text(named_sql), named

    def execute(self, sql: str, params: Params = None) -> int:
        """Execute a statement and return the affected row count."""
        stmt, bound = self._prepare(sql, params)
        self._log(sql, params)
        with self._statement() as conn:
            return conn.execute(stmt, bound).rowcount

    def execute_raw(self, sql: str) -> int:
        """Execute driver-level SQL (script statements) without bind parsing."""
        self._log(sql, None)
        with self._statement() as conn:
            return conn.exec_driver_sql(sql, execution_options={'no_parameters': True}).rowcount

    def fetch_all(self, sql: str, params: Params = None) -> List[Dict[str, Any]]:
        """Execute SQL query and return results as list of dicts."""
        stmt, bound = self._prepare(sql, params)
        self._log(sql, params)
        with self._statement() as conn:
            return [dict(row) for row in conn.execute(stmt, bound).mappings().all()]

    def fetch_row(self, sql: str, params: Params = None) -> Optional[Dict[str, Any]]:
        """First row as a dict, or None when the query returns nothing."""
        stmt, bound = self._prepare(sql, params)
        self._log(sql, params)
        with self._statement() as conn:
            row = conn.execute(stmt, bound).mappings().first()
        return dict(row) if row is not None else None

    def has_table(self, table: str) -> bool:
        with self._statement() as conn:
            return sa_inspect(conn).has_table(table)

    def list_tables(self) -> List[str]:
        """Base tables of the current database, sorted by name."""
        sql = table_list_sql.get(self.adapter_type)
        if sql is None:
            with self._statement() as conn:
                return sorted(sa_inspect(conn).get_table_names())
        return [row['name'] for row in self.fetch_all(sql)]

    def begin_transaction(self):
        conn = self._require()
        if self._tx is not None:
            raise ConfigurationError('A transaction is already open')
        if conn.in_transaction():
            conn.commit()
        self._tx = conn.begin()
        self._log('BEGIN', None)

    def commit_transaction(self):
        if self._tx is None:
            raise ConfigurationError('No open transaction to commit')
        tx, self._tx = self._tx, None
        tx.commit()
        self._log('COMMIT', None)

    def rollback_transaction(self):
        if self._tx is None:
            return
        tx, self._tx = self._tx, None
        if tx.is_active:
            tx.rollback()
        self._log('ROLLBACK', None)

    def in_transaction(self) -> bool:
        return self._tx is not None and self._tx.is_active

    @contextmanager
    def savepoint(self) -> Iterator[None]:
        """Nested transaction; rolled back alone if the block raises."""
        conn = self._require()
        if self._tx is not None and self.adapter_type == SQLITE:
            # pysqlite emits BEGIN only before DML; without it the outermost RELEASE commits
            if not conn.connection.dbapi_connection.in_transaction:
                conn.exec_driver_sql('BEGIN')
        with conn.begin_nested():
            yield

    def quote_literal(self, value: str) -> str:
        """Render a string literal with the dialect's own compiler."""
        expr = literal(value, String())
        return str(expr.compile(dialect=self._literal_dialect, compile_kwargs={'literal_binds': True}))

    def create_table_statement(self, table: str) -> Optional[str]:
        """CREATE TABLE text from native introspection, or reflected metadata."""
        dialect = self.adapter_type
        native = create_table_sql.get(dialect)
        if native is None:
            with self._statement() as conn:
                reflected = Table(table, MetaData(), autoload_with=conn)
            return str(CreateTable(reflected).compile(dialect=self.engine.dialect)).strip()
        if '{table}' in native:
            row = self.fetch_row(native.format(table=escape_colons(quote_identifier(table, dialect))))
            if row is None:
                return None
            return list(row.values())[-1]
        row = self.fetch_row(native, [table])
        return row['sql'] if row else None

    def __enter__(self):
        return self.connect()

    def __exit__(self, *args):
        self.close()
