"""Options merging, filters, statistics and the retry decorator."""

import pytest
from sqlalchemy.exc import OperationalError

from datashuttle.config import EXPORT_DEFAULTS, IMPORT_DEFAULTS, merge_options
from datashuttle.errors import ValidationError
from datashuttle.models import ConflictMode, ExportManifest, ImportStatistics, TableFilter
from datashuttle.retry import retry


def test_merge_options_overlays_defaults():
    merged = merge_options(IMPORT_DEFAULTS, {'batch_size': 50})
    assert merged['batch_size'] == 50
    assert merged['conflict_mode'] == 'replace'
    assert IMPORT_DEFAULTS['batch_size'] == 1000


def test_merge_options_rejects_unknown_keys():
    with pytest.raises(ValidationError, match='bogus'):
        merge_options(EXPORT_DEFAULTS, {'bogus': 1})


def test_table_filter_rules():
    default = TableFilter(exclude=['orders'], migration_table='phinx_log')
    assert default.apply(['orders', 'phinx_log', 'users']) == ['users']
    explicit = TableFilter(tables=['phinx_log', 'orders'], exclude=['orders'], migration_table='phinx_log')
    assert explicit.apply(['orders', 'phinx_log', 'users']) == ['orders', 'phinx_log']


def test_conflict_mode_values():
    assert ConflictMode('skip') is ConflictMode.SKIP
    with pytest.raises(ValueError):
        ConflictMode('merge')


def test_statistics_reset():
    stats = ImportStatistics(rows_imported=3, tables_imported=1, errors=['x'], warnings=['y'])
    stats.reset()
    assert stats.to_dict() == {'rows_imported': 0, 'tables_imported': 0, 'errors': [], 'warnings': []}


def test_manifest_round_trip():
    manifest = ExportManifest('2024-01-01T00:00:00', 'sqlite', ['a.csv'])
    assert ExportManifest.from_dict(manifest.to_dict()) == manifest


def _operational_error():
    return OperationalError('SELECT 1', {}, Exception('server gone'))


def test_retry_recovers_from_transient_errors():
    calls = []

    @retry(tries=3, delay=0)
    def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise _operational_error()
        return 'ok'

    assert flaky() == 'ok'
    assert len(calls) == 3


def test_retry_gives_up_after_last_attempt():
    calls = []

    @retry(tries=2, delay=0)
    def broken():
        calls.append(1)
        raise _operational_error()

    with pytest.raises(OperationalError):
        broken()
    assert len(calls) == 2


def test_retry_does_not_catch_other_errors():
    @retry(tries=5, delay=0)
    def bad():
        raise KeyError('x')

    with pytest.raises(KeyError):
        bad()
