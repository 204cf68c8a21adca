"""Identifier quoting and literal rendering per dialect."""

import re
from decimal import Decimal
from typing import Any, Callable, Optional
from .mappings import quote_chars, bool_literals, backslash_escapes

_NUMERIC = re.compile(r'^-?\d+(\.\d+)?([eE][+-]?\d+)?$')
_LEADING_ZEROS = re.compile(r'^0\d+$')


def quote_identifier(identifier: str, dialect: str) -> str:
    """Wrap a table or column name in the dialect delimiter.

    Any embedded closing delimiter is doubled, so a hostile name such as
    ``a`; DROP TABLE x; --`` stays a single identifier.
    """
    open_q, close_q = quote_chars.get(dialect, ('"', '"'))
    return f'{open_q}{str(identifier).replace(close_q, close_q * 2)}{close_q}'


def quote_identifiers(identifiers, dialect: str) -> str:
    """Comma-separated list of quoted identifiers."""
    return ', '.join(quote_identifier(i, dialect) for i in identifiers)


def has_leading_zeros(value: str) -> bool:
    """True for strings like '007': a leading zero followed only by digits."""
    return bool(_LEADING_ZEROS.match(value))


def is_numeric_string(value: str) -> bool:
    return bool(_NUMERIC.match(value))


def quote_string(value: str, dialect: str) -> str:
    """Manual string literal quoting, used when no native primitive is available."""
    if dialect in backslash_escapes:
        value = value.replace('\\', '\\\\')
    return "'" + value.replace("'", "''") + "'"


def format_literal(value: Any, dialect: str, quote: Optional[Callable[[str], str]] = None) -> str:
    """Render a Python value as a SQL literal.

    None becomes the bare keyword NULL while the string 'NULL' is quoted, and
    digit strings with leading zeros are quoted so '00123' survives a reload.
    ``quote`` is the connection's native string quoting function; it must
    return the literal including its surrounding quotes.
    """
    if value is None:
        return 'NULL'
    if isinstance(value, bool):
        return bool_literals.get(dialect, ('0', '1'))[int(value)]
    if isinstance(value, (int, Decimal)):
        return str(value)
    if isinstance(value, float):
        return repr(value)
    text = value if isinstance(value, str) else str(value)
    if is_numeric_string(text) and not has_leading_zeros(text):
        return text
    if quote is not None:
        return quote(text)
    return quote_string(text, dialect)
