"""DataExporter against in-memory SQLite."""

import gzip
import json
import os

import pytest
import yaml

from datashuttle.errors import SecurityRejection, TransferIOError, ValidationError, WhereClauseError
from datashuttle.exporter import DataExporter
from datashuttle.models import RowBatch

from .conftest import ORDERS, USERS


def test_table_list_excludes_migration_table(source):
    assert DataExporter(source).get_table_list() == ['orders', 'users']


def test_explicit_tables_win_over_exclude(source):
    exporter = DataExporter(source, {'tables': ['users', 'phinx_log'], 'exclude': ['users']})
    assert exporter.get_table_list() == ['phinx_log', 'users']


def test_exclude_list(source):
    assert DataExporter(source, {'exclude': ['orders']}).get_table_list() == ['users']


@pytest.mark.parametrize('options', [
    {'format': 'xml'},
    {'batch_size': 0},
    {'batch_size': True},
    {'limit': -1},
    {'where': "id = 1"},
    {'compression': True},
])
def test_invalid_options(source, options):
    with pytest.raises(ValidationError):
        DataExporter(source, options)


def test_dangerous_where_is_rejected_before_any_query(source):
    with pytest.raises(SecurityRejection) as exc:
        DataExporter(source, {'where': {'users': "1=1; DROP TABLE users"}})
    assert exc.value.table == 'users'
    assert source.statements == []


def test_unparseable_where(source):
    with pytest.raises(WhereClauseError):
        DataExporter(source, {'where': {'users': 'name'}})


def test_where_filters_rows_and_counts(source):
    exporter = DataExporter(source, {'format': 'json', 'where': {'users': "code = '00123'"}})
    assert exporter.get_table_row_count('users') == 1
    assert exporter.get_table_row_count('orders') == 2
    doc = json.loads(exporter.export())
    assert doc['data']['users']['rows'] == USERS[:1]
    assert doc['data']['orders']['rows_count'] == 2


def test_json_export(source):
    doc = json.loads(DataExporter(source, {'format': 'json'}).export())
    assert doc['metadata']['database_type'] == 'sqlite'
    assert doc['metadata']['tables_count'] == 2
    assert list(doc['data']) == ['orders', 'users']
    assert doc['data']['users']['rows'] == USERS
    assert doc['data']['orders']['rows'] == ORDERS


def test_yaml_export_with_limit(source):
    doc = yaml.safe_load(DataExporter(source, {'format': 'yaml', 'limit': 2}).export())
    assert doc['data']['users']['rows'] == USERS[:2]
    assert doc['data']['users']['rows_count'] == 2


def test_sql_export(source):
    text = DataExporter(source).export()
    assert 'BEGIN TRANSACTION;' in text
    assert 'DROP TABLE IF EXISTS "users";' in text
    assert 'CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT, code TEXT, note TEXT);' in text
    assert "(1, 'O''Brien', '00123', NULL)" in text
    assert "(2, 'NULL', 0, '')" in text
    assert "(4, 'back\\slash', '007', 'semi;colon -- dash')" in text
    assert 'phinx_log' not in text


def test_sql_export_without_schema_or_transaction(source):
    text = DataExporter(source, {'include_schema': False, 'drop_tables': False, 'use_transaction': False}).export()
    assert 'CREATE TABLE' not in text
    assert 'DROP TABLE' not in text
    assert 'BEGIN TRANSACTION' not in text
    assert 'DELETE FROM "users";' in text


def test_export_to_file(source, tmp_path):
    path = DataExporter(source, {'format': 'json'}).export_to_file(str(tmp_path / 'out' / 'dump.json'))
    assert path == str(tmp_path / 'out' / 'dump.json')
    with open(path, encoding='utf-8') as f:
        assert json.load(f)['data']['users']['rows'] == USERS


def test_compressed_export_appends_suffix(source, tmp_path):
    path = DataExporter(source, {'compress': True}).export_to_file(str(tmp_path / 'dump.sql'))
    assert path.endswith('dump.sql.gz')
    with gzip.open(path, 'rt', encoding='utf-8') as f:
        assert 'INSERT INTO "users"' in f.read()


def test_unwritable_path_raises_transfer_error(source, tmp_path):
    blocker = tmp_path / 'blocker'
    blocker.write_text('x')
    target = str(blocker / 'dump.json')
    with pytest.raises(TransferIOError) as exc:
        DataExporter(source, {'format': 'json'}).export_to_file(target)
    assert exc.value.path == target


def test_failed_export_removes_partial_file(source, tmp_path):
    exporter = DataExporter(source, {'format': 'json'})

    def broken(table, *args):
        yield RowBatch(table, ['id'], [{'id': 1}])
        raise RuntimeError('connection lost')

    exporter.reader.read = broken
    path = tmp_path / 'dump.json'
    with pytest.raises(RuntimeError):
        exporter.export_to_file(str(path))
    assert not path.exists()


def test_csv_export_returns_summary(source):
    summary = DataExporter(source, {'format': 'csv'}).export()
    assert 'Table: orders - 2 rows' in summary
    assert 'Table: users - 4 rows' in summary
    assert 'export_csv_to_directory()' in summary


def test_csv_export_to_single_file_is_refused(source, tmp_path):
    with pytest.raises(ValidationError):
        DataExporter(source, {'format': 'csv'}).export_to_file(str(tmp_path / 'x.csv'))


def test_csv_directory_export(source, tmp_path):
    paths = DataExporter(source, {'format': 'csv'}).export_csv_to_directory(str(tmp_path / 'csv'))
    names = [os.path.basename(p) for p in paths]
    assert names == ['orders.csv', 'users.csv', 'export_metadata.json']
    with open(paths[-1], encoding='utf-8') as f:
        manifest = json.load(f)
    assert manifest['tables'] == ['orders.csv', 'users.csv']
    assert manifest['database_type'] == 'sqlite'
    with open(paths[1], encoding='utf-8') as f:
        lines = f.read().splitlines()
    assert lines[0] == '# Table: users'
    assert lines[1] == 'id,name,code,note'
    assert lines[2] == "1,O'Brien,00123,\\N"


def test_context_manager_disconnects(source):
    with DataExporter(source) as exporter:
        assert exporter.get_table_list()
    assert source.connection is None


def test_exporter_connects_adapter(source):
    source.disconnect()
    DataExporter(source).get_table_list()
    assert source.connection is not None
