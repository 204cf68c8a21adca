"""Format writers and loaders."""

import io
import json
import uuid
from datetime import date, datetime
from decimal import Decimal

import pytest
import yaml
from sqlalchemy.exc import OperationalError

from datashuttle.codecs import (
    CsvTableWriter, JsonWriter, SqlWriter, YamlWriter, load_json, load_yaml, normalize_value,
    read_csv_batches, read_manifest, write_manifest
)
from datashuttle.errors import ValidationError
from datashuttle.models import ExportManifest, RowBatch

from .conftest import USERS

COLUMNS = ['id', 'name', 'code', 'note']


def _write(writer, tables):
    writer.begin(len(tables))
    for table, rows in tables.items():
        writer.begin_table(table)
        if rows:
            writer.write_batch(RowBatch(table, COLUMNS, rows))
        writer.end_table(table, len(rows))
    writer.finish()


@pytest.mark.parametrize('value, expected', [
    (Decimal('10.50'), '10.50'),
    (datetime(2024, 1, 2, 3, 4, 5), '2024-01-02 03:04:05'),
    (date(2024, 1, 2), '2024-01-02'),
    (b'abc', 'abc'),
    (b'\xff\x00', 'ff00'),
    (uuid.UUID(int=1), '00000000-0000-0000-0000-000000000001'),
    (True, True),
    (None, None),
    ('00123', '00123'),
])
def test_normalize_value(value, expected):
    assert normalize_value(value) == expected


def test_json_writer_round_trips_values():
    buf = io.StringIO()
    _write(JsonWriter(buf, 'sqlite'), {'users': USERS, 'empty': []})
    doc = json.loads(buf.getvalue())
    assert doc['metadata']['database_type'] == 'sqlite'
    assert doc['metadata']['tables_count'] == 2
    assert doc['data']['users']['rows'] == USERS
    assert doc['data']['users']['rows_count'] == 4
    assert doc['data']['empty'] == {'rows': [], 'rows_count': 0}
    assert load_json(buf.getvalue())['users']['rows'] == USERS


def test_json_writer_without_tables():
    buf = io.StringIO()
    _write(JsonWriter(buf, 'mysql'), {})
    assert json.loads(buf.getvalue())['data'] == {}


def test_yaml_writer_round_trips_values():
    buf = io.StringIO()
    writer = YamlWriter(buf, 'postgresql')
    writer.begin(2)
    writer.begin_table('users')
    writer.write_batch(RowBatch('users', COLUMNS, USERS[:2]))
    writer.write_batch(RowBatch('users', COLUMNS, USERS[2:]))
    writer.end_table('users', 4)
    writer.begin_table('odd: "name"')
    writer.end_table('odd: "name"', 0)
    writer.finish()
    doc = yaml.safe_load(buf.getvalue())
    assert doc['metadata']['tables_count'] == 2
    assert doc['data']['users']['rows'] == USERS
    assert doc['data']['odd: "name"'] == {'rows': [], 'rows_count': 0}
    assert load_yaml(buf.getvalue())['users']['rows_count'] == 4


def test_yaml_writer_without_tables():
    buf = io.StringIO()
    _write(YamlWriter(buf, 'sqlite'), {})
    assert yaml.safe_load(buf.getvalue())['data'] == {}


@pytest.mark.parametrize('loader, text', [
    (load_json, '{"data": '),
    (load_json, '{"meta": {}}'),
    (load_json, '[1, 2]'),
    (load_yaml, 'data: [unclosed'),
    (load_yaml, 'just a string'),
])
def test_loaders_reject_bad_documents(loader, text):
    with pytest.raises(ValidationError):
        loader(text)


def test_sql_writer_layout():
    buf = io.StringIO()
    rows = [{'id': i, 'name': f'n{i}', 'code': '007', 'note': None} for i in range(250)]
    writer = SqlWriter(buf, 'sqlite', create_statement=lambda table: f'CREATE TABLE {table} (id INTEGER)')
    _write(writer, {'users': rows})
    text = buf.getvalue()
    assert text.startswith('-- Database Data Dump')
    assert text.index('PRAGMA foreign_keys = OFF;') < text.index('BEGIN TRANSACTION;')
    assert '-- Table: users\nDROP TABLE IF EXISTS "users";\nCREATE TABLE users (id INTEGER);\nDELETE FROM "users";' in text
    assert text.count('INSERT INTO "users"') == 3
    assert "'007'" in text and 'NULL)' in text
    assert text.index('COMMIT;') < text.index('PRAGMA foreign_keys = ON;')


def test_sql_writer_postgres_defers_constraints_inside_transaction():
    buf = io.StringIO()
    _write(SqlWriter(buf, 'postgresql', include_schema=False), {})
    text = buf.getvalue()
    assert text.index('BEGIN;') < text.index('SET CONSTRAINTS ALL DEFERRED;')
    assert text.index('SET CONSTRAINTS ALL IMMEDIATE;') < text.index('COMMIT;')


def test_sql_writer_placeholder_when_introspection_fails():
    def broken(table):
        raise OperationalError('SHOW CREATE TABLE', {}, Exception('denied'))

    buf = io.StringIO()
    _write(SqlWriter(buf, 'mysql', use_transaction=False, create_statement=broken), {'users': []})
    text = buf.getvalue()
    assert '-- CREATE TABLE statement not available for users' in text
    assert 'START TRANSACTION' not in text
    assert 'DELETE FROM `users`;' in text


def test_csv_round_trip(tmp_path):
    path = tmp_path / 'users.csv'
    with open(path, 'w', encoding='utf-8', newline='') as f:
        writer = CsvTableWriter(f, 'users')
        writer.write_batch(RowBatch('users', COLUMNS, USERS[:3]))
        writer.write_batch(RowBatch('users', COLUMNS, USERS[3:]))
    assert path.read_text(encoding='utf-8').startswith('# Table: users\nid,name,code,note\n')
    batches = list(read_csv_batches(str(path), 'users', batch_size=3))
    assert [len(b) for b in batches] == [3, 1]
    rows = [row for batch in batches for row in batch.rows]
    expected = [{k: (str(v) if isinstance(v, int) else v) for k, v in row.items()} for row in USERS]
    assert rows == expected


def test_csv_writes_booleans_as_digits(tmp_path):
    path = tmp_path / 'flags.csv'
    with open(path, 'w', encoding='utf-8', newline='') as f:
        CsvTableWriter(f, 'flags').write_batch(RowBatch('flags', ['on'], [{'on': True}, {'on': False}]))
    rows = next(read_csv_batches(str(path), 'flags')).rows
    assert rows == [{'on': '1'}, {'on': '0'}]


def test_csv_without_rows_yields_nothing(tmp_path):
    path = tmp_path / 'empty.csv'
    with open(path, 'w', encoding='utf-8', newline='') as f:
        CsvTableWriter(f, 'empty')
    assert list(read_csv_batches(str(path), 'empty')) == []


def test_manifest_helpers(tmp_path):
    assert read_manifest(str(tmp_path)) is None
    write_manifest(str(tmp_path), ExportManifest('now', 'sqlite', ['b.csv', 'a.csv']))
    assert read_manifest(str(tmp_path)).tables == ['b.csv', 'a.csv']
    (tmp_path / 'export_metadata.json').write_text('{broken', encoding='utf-8')
    with pytest.raises(ValidationError):
        read_manifest(str(tmp_path))
