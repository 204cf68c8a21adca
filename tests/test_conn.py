"""SqlAdapter behaviour against an in-memory SQLite database."""

import pytest
from sqlalchemy.exc import IntegrityError

from datashuttle.conn import SqlAdapter
from datashuttle.errors import ConfigurationError

from .conftest import rows_of


def test_adapter_type_and_tables(source):
    assert source.adapter_type == 'sqlite'
    assert source.list_tables() == ['orders', 'phinx_log', 'users']
    assert source.has_table('users')
    assert not source.has_table('ghost')


def test_fetch_row_returns_none_when_empty(target):
    assert target.fetch_row('SELECT * FROM users') is None


def test_positional_and_named_params(source):
    assert source.fetch_row('SELECT name FROM users WHERE id = ?', [1]) == {'name': "O'Brien"}
    assert source.fetch_row('SELECT name FROM users WHERE id = :id', {'id': 3}) == {'name': 'plain'}


def test_executemany_with_list_of_dicts(target):
    target.execute('INSERT INTO phinx_log (version) VALUES (:v)', [{'v': 1}, {'v': 2}])
    assert target.fetch_row('SELECT COUNT(*) AS cnt FROM phinx_log') == {'cnt': 2}


def test_rollback_discards_work(target):
    target.begin_transaction()
    assert target.in_transaction()
    target.execute('INSERT INTO phinx_log (version) VALUES (1)')
    target.rollback_transaction()
    assert not target.in_transaction()
    assert rows_of(target, 'phinx_log') == []


def test_commit_keeps_work(target):
    target.begin_transaction()
    target.execute('INSERT INTO phinx_log (version) VALUES (7)')
    target.commit_transaction()
    assert rows_of(target, 'phinx_log') == [{'version': 7}]


def test_nested_begin_is_rejected(target):
    target.begin_transaction()
    with pytest.raises(ConfigurationError):
        target.begin_transaction()
    target.rollback_transaction()


def test_savepoint_rolls_back_only_its_block(target):
    target.begin_transaction()
    with pytest.raises(IntegrityError):
        with target.savepoint():
            target.execute('INSERT INTO users (id) VALUES (:id)', [{'id': 1}, {'id': 2}, {'id': 1}])
    with target.savepoint():
        target.execute('INSERT INTO users (id) VALUES (3)')
    target.commit_transaction()
    assert [r['id'] for r in rows_of(target, 'users')] == [3]


def test_savepoint_as_first_statement_stays_inside_transaction(target):
    target.begin_transaction()
    with target.savepoint():
        target.execute('INSERT INTO users (id) VALUES (1)')
    target.rollback_transaction()
    assert rows_of(target, 'users') == []


def test_failed_statement_outside_transaction_leaves_connection_usable(source):
    with pytest.raises(IntegrityError):
        source.execute("INSERT INTO users (id, name) VALUES (1, 'dup')")
    assert source.fetch_row('SELECT COUNT(*) AS cnt FROM users') == {'cnt': 4}


def test_quote_literal_uses_dialect_rules(source):
    assert source.quote_literal("O'Brien") == "'O''Brien'"
    assert source.quote_literal('50%') == "'50%'"


def test_create_table_statement(source):
    assert source.create_table_statement('users').startswith('CREATE TABLE users')
    assert source.create_table_statement('ghost') is None


def test_disconnected_adapter_refuses_queries():
    adapter = SqlAdapter('sqlite://')
    assert adapter.connection is None
    with pytest.raises(ConfigurationError):
        adapter.fetch_all('SELECT 1')
    adapter.connect()
    assert adapter.fetch_row('SELECT 1 AS one') == {'one': 1}
    adapter.close()
    assert adapter.connection is None


def test_from_url_and_context_manager():
    with SqlAdapter.from_url('sqlite://') as adapter:
        assert adapter.connection is not None
        assert adapter.list_tables() == []
    assert adapter.connection is None
