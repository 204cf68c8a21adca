from .conn import SqlAdapter
from .config import DB_CONFIG, EXPORT_DEFAULTS, IMPORT_DEFAULTS, STREAMING_THRESHOLD, merge_options
from .errors import (
    DataTransferError, ValidationError, ConfigurationError, WhereClauseError,
    SecurityRejection, TransferIOError, RowLevelError
)
from .models import Format, ConflictMode, TableFilter, ParsedPredicate, RowBatch, ExportManifest, ImportStatistics
from .reader import TableReader, build_predicate, validate_where
from .exporter import DataExporter
from .importer import DataImporter, detect_format
from .retry import retry

__all__ = [
    'SqlAdapter', 'DB_CONFIG', 'EXPORT_DEFAULTS', 'IMPORT_DEFAULTS', 'STREAMING_THRESHOLD', 'merge_options',
    'DataTransferError', 'ValidationError', 'ConfigurationError', 'WhereClauseError', 'SecurityRejection',
    'TransferIOError', 'RowLevelError', 'Format', 'ConflictMode', 'TableFilter', 'ParsedPredicate', 'RowBatch',
    'ExportManifest', 'ImportStatistics', 'TableReader', 'build_predicate', 'validate_where', 'DataExporter',
    'DataImporter', 'detect_format', 'retry'
]
