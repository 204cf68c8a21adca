"""Per-table CSV files and the export manifest.

NULL is written as ``\\N`` and read back as None; an empty field is the
empty string. A literal string ``\\N`` is therefore read back as NULL.
"""

import gzip
import json
import logging
import os
from typing import Iterator, List, Optional, TextIO
import pandas as pd
from ..config import CSV_MANIFEST, CSV_NULL
from ..errors import TransferIOError, ValidationError
from ..models import ExportManifest, RowBatch

logger = logging.getLogger(__name__)


def _csv_cell(value):
    if isinstance(value, bool):
        return int(value)
    return value


class CsvTableWriter:
    """Writes one table: a ``# Table:`` comment line, the header, then rows batch by batch."""
    def __init__(self, handle: TextIO, table: str):
        self.handle = handle
        self.table = table
        self.columns: Optional[List[str]] = None
        self.rows = 0
        handle.write(f'# Table: {table}\n')

    def write_batch(self, batch: RowBatch):
        if not batch.rows:
            return
        first = self.columns is None
        if first:
            self.columns = list(batch.columns)
        records = [[_csv_cell(row.get(c)) for c in self.columns] for row in batch.rows]
        df = pd.DataFrame(records, columns=self.columns, dtype=object)
        df.to_csv(self.handle, header=first, index=False, na_rep=CSV_NULL, lineterminator='\n')
        self.rows += len(batch.rows)


def _open_text(path: str):
    if path.endswith('.gz'):
        return gzip.open(path, 'rt', encoding='utf-8', newline='')
    return open(path, 'r', encoding='utf-8', newline='')


def _leading_comment_lines(path: str) -> int:
    count = 0
    with _open_text(path) as f:
        for line in f:
            if not line.startswith('#'):
                break
            count += 1
    return count


def read_csv_batches(path: str, table: str, batch_size: int = 1000) -> Iterator[RowBatch]:
    """Yield the rows of one CSV file in chunks of ``batch_size``; every value is a str or None."""
    try:
        skip = _leading_comment_lines(path)
    except OSError as e:
        raise TransferIOError(f'Cannot open CSV file ({e})', path) from e
    try:
        reader = pd.read_csv(
            path, dtype=str, keep_default_na=False, na_values=[CSV_NULL],
            chunksize=batch_size, skiprows=skip, encoding='utf-8'
        )
    except pd.errors.EmptyDataError:
        logger.info(f'{path} holds no header or rows')
        return
    except pd.errors.ParserError as e:
        raise ValidationError(f'Malformed CSV file {path}: {e}') from e
    with reader:
        try:
            for chunk in reader:
                columns = [str(c) for c in chunk.columns]
                rows = [
                    {c: (None if pd.isna(v) else v) for c, v in zip(columns, record)}
                    for record in chunk.itertuples(index=False, name=None)
                ]
                yield RowBatch(table, columns, rows)
        except pd.errors.ParserError as e:
            raise ValidationError(f'Malformed CSV file {path}: {e}') from e


def write_manifest(directory: str, manifest: ExportManifest) -> str:
    path = os.path.join(directory, CSV_MANIFEST)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(manifest.to_dict(), f, indent=4)
    return path


def read_manifest(directory: str) -> Optional[ExportManifest]:
    """Manifest of a CSV export directory, or None when there is none."""
    path = os.path.join(directory, CSV_MANIFEST)
    if not os.path.isfile(path):
        return None
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except OSError as e:
        raise TransferIOError(f'Cannot read manifest ({e})', path) from e
    except ValueError as e:
        raise ValidationError(f'Invalid manifest {path}: {e}') from e
    if not isinstance(data, dict):
        raise ValidationError(f'Invalid manifest {path}: expected an object, got {type(data).__name__}')
    return ExportManifest.from_dict(data)
