from .base import normalize_value, normalize_row
from .sql import SqlWriter
from .json import JsonWriter, load_json
from .yaml import YamlWriter, load_yaml
from .csv import CsvTableWriter, read_csv_batches, read_manifest, write_manifest

__all__ = [
    'normalize_value', 'normalize_row', 'SqlWriter', 'JsonWriter', 'load_json',
    'YamlWriter', 'load_yaml', 'CsvTableWriter', 'read_csv_batches', 'read_manifest', 'write_manifest'
]
