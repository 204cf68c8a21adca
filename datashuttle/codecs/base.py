"""Value normalization shared by all codecs."""

import uuid
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Dict, Mapping


def normalize_value(value: Any) -> Any:
    """Map a driver value onto None, bool, int, float or str.

    Decimals keep their exact text, temporal values use ISO format with a
    space separator, and binary values are decoded as UTF-8 or hex encoded.
    """
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat(sep=' ')
    if isinstance(value, (date, time)):
        return value.isoformat()
    if isinstance(value, timedelta):
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        raw = bytes(value)
        try:
            return raw.decode('utf-8')
        except UnicodeDecodeError:
            return raw.hex()
    if isinstance(value, uuid.UUID):
        return str(value)
    return str(value)


def normalize_row(row: Mapping[str, Any]) -> Dict[str, Any]:
    return {str(k): normalize_value(v) for k, v in row.items()}
