"""Shared fixtures: in-memory SQLite databases behind a recording adapter."""

import pytest

from datashuttle.conn import SqlAdapter

USERS_DDL = 'CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT, code TEXT, note TEXT)'
ORDERS_DDL = 'CREATE TABLE orders (id INTEGER PRIMARY KEY, user_id INTEGER REFERENCES users(id), total TEXT)'
MIGRATIONS_DDL = 'CREATE TABLE phinx_log (version INTEGER)'

USERS = [
    {'id': 1, 'name': "O'Brien", 'code': '00123', 'note': None},
    {'id': 2, 'name': 'NULL', 'code': '0', 'note': ''},
    {'id': 3, 'name': 'plain', 'code': '42', 'note': 'NULL'},
    {'id': 4, 'name': 'back\\slash', 'code': '007', 'note': 'semi;colon -- dash'},
]

ORDERS = [
    {'id': 10, 'user_id': 1, 'total': '19.99'},
    {'id': 11, 'user_id': 3, 'total': '5.00'},
]


class RecordingAdapter(SqlAdapter):
    """SqlAdapter that remembers every statement and transaction call in order."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.statements = []

    def execute(self, sql, params=None):
        self.statements.append(sql)
        return super().execute(sql, params)

    def execute_raw(self, sql):
        self.statements.append(sql)
        return super().execute_raw(sql)

    def fetch_all(self, sql, params=None):
        self.statements.append(sql)
        return super().fetch_all(sql, params)

    def fetch_row(self, sql, params=None):
        self.statements.append(sql)
        return super().fetch_row(sql, params)

    def begin_transaction(self):
        self.statements.append('BEGIN')
        super().begin_transaction()

    def commit_transaction(self):
        self.statements.append('COMMIT')
        super().commit_transaction()

    def rollback_transaction(self):
        self.statements.append('ROLLBACK')
        super().rollback_transaction()


def create_schema(adapter, with_migrations=True):
    adapter.execute(USERS_DDL)
    adapter.execute(ORDERS_DDL)
    if with_migrations:
        adapter.execute(MIGRATIONS_DDL)


def seed(adapter):
    adapter.execute('INSERT INTO users (id, name, code, note) VALUES (:id, :name, :code, :note)', USERS)
    adapter.execute('INSERT INTO orders (id, user_id, total) VALUES (:id, :user_id, :total)', ORDERS)
    adapter.execute('INSERT INTO phinx_log (version) VALUES (:version)', [{'version': 20240101}])


def seed_numbers(adapter, count, table='numbers'):
    adapter.execute(f'CREATE TABLE {table} (id INTEGER PRIMARY KEY, label TEXT)')
    adapter.execute(
        f'INSERT INTO {table} (id, label) VALUES (:id, :label)',
        [{'id': i, 'label': f'row {i}'} for i in range(1, count + 1)]
    )


def rows_of(adapter, table):
    return adapter.fetch_all(f'SELECT * FROM {table} ORDER BY 1')


def _adapter():
    adapter = RecordingAdapter('sqlite://')
    adapter.connect()
    return adapter


@pytest.fixture
def source():
    """Seeded database with users, orders and the migration table."""
    adapter = _adapter()
    create_schema(adapter)
    seed(adapter)
    adapter.statements.clear()
    yield adapter
    adapter.close()


@pytest.fixture
def target():
    """Database with the same schema as ``source`` and no rows."""
    adapter = _adapter()
    create_schema(adapter)
    adapter.statements.clear()
    yield adapter
    adapter.close()


@pytest.fixture
def empty_db():
    """Database without any tables."""
    adapter = _adapter()
    yield adapter
    adapter.close()
