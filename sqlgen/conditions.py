"""Validation and parameterized parsing of user-supplied WHERE clauses.

Only a restricted grammar is accepted::

    condition (AND|OR condition)*
    condition := column op value
               | column IS [NOT] NULL
               | column [NOT] BETWEEN value AND value
               | column [NOT] IN value, value, ...

Parentheses are rejected outright, so there is no grouping and the AND/OR
sequence of the input is reproduced verbatim in the generated SQL.
"""

import re
from typing import List, NamedTuple, Tuple
from .quoting import quote_identifier

_DANGEROUS_PATTERNS = [
    # Comments
    re.compile(r'--'),
    re.compile(r'/\*'),
    re.compile(r'\*/'),
    re.compile(r'#'),
    # Stacked statements
    re.compile(r';'),
    # Data and schema modification
    re.compile(r'\b(UNION|DROP|DELETE|INSERT|UPDATE|TRUNCATE|ALTER|CREATE|GRANT|REVOKE|EXEC|EXECUTE)\b', re.I),
    # Subqueries
    re.compile(r'\bSELECT\b', re.I),
    # Timing and file access functions
    re.compile(r'\b(SLEEP|BENCHMARK|LOAD_FILE|OUTFILE|DUMPFILE|WAITFOR)\b', re.I),
    re.compile(r'\b(INFORMATION_SCHEMA|PERFORMANCE_SCHEMA)\b', re.I),
    # Hexadecimal literals
    re.compile(r'\b0x[0-9a-f]+', re.I),
    # No grouping or function calls
    re.compile(r'[()]'),
]

_CONNECTIVE = re.compile(r'\s+(AND|OR)\s+', re.I)
_BETWEEN_HEAD = re.compile(r'^\s*\w+\s+(?:NOT\s+)?BETWEEN\s', re.I)

_CONDITION = re.compile(
    r'^(?P<column>\w+)\s*(?:'
    r'(?P<null>\bIS\s+NOT\s+NULL|\bIS\s+NULL)'
    r'|(?P<between>\bNOT\s+BETWEEN|\bBETWEEN)\s+(?P<low>.+?)\s+AND\s+(?P<high>.+)'
    r'|(?P<list>\bNOT\s+IN|\bIN)\s+(?P<items>.+)'
    r'|(?P<op>\bNOT\s+LIKE\b|\bLIKE\b|<=|>=|<>|!=|=|<|>)\s*(?P<value>.+)'
    r')$',
    re.I | re.S,
)

_UNQUOTED_VALUE = re.compile(r'^[^\s\'"`,]+$')
_LIST_SEPARATOR = re.compile(r'\s*,\s*')


class ParsedPredicate(NamedTuple):
    """Dialect-neutral predicate: SQL with '?' placeholders plus ordered bindings."""
    sql: str
    bindings: List[str]


def _quotes_balanced(text: str) -> bool:
    """Walk the text tracking quoted regions.

    Inside a quoted region a quote character ends the string only when it is
    preceded by an even number of backslashes and is not doubled ('' or "").
    """
    quote = None
    i, n = 0, len(text)
    while i < n:
        ch = text[i]
        if quote is None:
            if ch in ('"', "'"):
                quote = ch
        elif ch == quote:
            backslashes = 0
            j = i - 1
            while j >= 0 and text[j] == '\\':
                backslashes += 1
                j -= 1
            if backslashes % 2 == 1:
                pass
            elif i + 1 < n and text[i + 1] == quote:
                i += 1
            else:
                quote = None
        i += 1
    return quote is None


def is_valid(clause: str) -> bool:
    """Return False for any clause that could smuggle SQL past the parser."""
    if clause is None or not clause.strip():
        return True
    for pattern in _DANGEROUS_PATTERNS:
        if pattern.search(clause):
            return False
    return _quotes_balanced(clause)


def _split_top_level(text: str, separators: re.Pattern, between_aware: bool = False) -> Tuple[List[str], List[str]]:
    """Split on a separator pattern outside quoted regions.

    Returns the pieces and the matched separators (uppercased first group or
    the raw match) in source order.
    """
    pieces, seps = [], []
    quote = None
    start = i = 0
    n = len(text)
    between_and_taken = False
    while i < n:
        ch = text[i]
        if quote is not None:
            if ch == '\\':
                i += 2
                continue
            if ch == quote:
                if i + 1 < n and text[i + 1] == quote:
                    i += 2
                    continue
                quote = None
            i += 1
            continue
        if ch in ('"', "'"):
            quote = ch
            i += 1
            continue
        m = separators.match(text, i)
        if m:
            sep = m.group(1).upper() if m.groups() else m.group(0)
            piece = text[start:i]
            if (between_aware and sep == 'AND' and not between_and_taken
                    and _BETWEEN_HEAD.match(piece)):
                between_and_taken = True
                i = m.end()
                continue
            pieces.append(piece.strip())
            seps.append(sep)
            between_and_taken = False
            start = i = m.end()
            continue
        i += 1
    pieces.append(text[start:].strip())
    return pieces, seps


def unquote_value(raw: str) -> str:
    """Turn a literal from the clause into its binding value.

    Quoted values lose their delimiters and have doubled or backslash-escaped
    quotes collapsed; unquoted values are passed through unchanged.
    """
    raw = raw.strip()
    if len(raw) >= 2 and raw[0] in ('"', "'") and raw[-1] == raw[0]:
        quote = raw[0]
        body = raw[1:-1]
        out = []
        i, n = 0, len(body)
        while i < n:
            ch = body[i]
            if ch == '\\' and i + 1 < n:
                out.append(body[i + 1])
                i += 2
                continue
            if ch == quote:
                if i + 1 < n and body[i + 1] == quote:
                    out.append(quote)
                    i += 2
                    continue
                raise ValueError(f'Unexpected quote inside value: {raw}')
            out.append(ch)
            i += 1
        return ''.join(out)
    if not _UNQUOTED_VALUE.match(raw):
        raise ValueError(f'Invalid unquoted value: {raw!r}')
    return raw


class Condition:
    """A single parsed ``column operator value`` term."""
    __slots__ = ('field', 'op', 'values')

    def __init__(self, field: str, op: str, values: List[str]):
        self.field = field
        self.op = ' '.join(op.upper().split())
        self.values = values

    def to_sql(self, dialect: str) -> str:
        """Render with a quoted column and one '?' per bound value."""
        col = quote_identifier(self.field, dialect)
        if self.op in ('IS NULL', 'IS NOT NULL'):
            return f'{col} {self.op}'
        if self.op in ('BETWEEN', 'NOT BETWEEN'):
            return f'{col} {self.op} ? AND ?'
        if self.op in ('IN', 'NOT IN'):
            return f'{col} {self.op} ({", ".join("?" for _ in self.values)})'
        return f'{col} {self.op} ?'

    @classmethod
    def from_string(cls, text: str) -> 'Condition':
        """Parse one condition (e.g. ``age >= 18``)."""
        m = _CONDITION.match(text.strip())
        if not m:
            raise ValueError(f'Cannot parse condition: {text}')
        field = m.group('column')
        if m.group('null'):
            return cls(field, m.group('null'), [])
        if m.group('between'):
            return cls(field, m.group('between'), [unquote_value(m.group('low')), unquote_value(m.group('high'))])
        if m.group('list'):
            items, _ = _split_top_level(m.group('items'), _LIST_SEPARATOR)
            if any(not item for item in items):
                raise ValueError(f'Empty item in IN list: {text}')
            return cls(field, m.group('list'), [unquote_value(item) for item in items])
        return cls(field, m.group('op'), [unquote_value(m.group('value'))])

    def __repr__(self):
        return f'Condition({self.field!r}, {self.op!r}, {self.values!r})'


def split_conditions(clause: str) -> Tuple[List[str], List[str]]:
    """Split a clause into condition texts and the AND/OR connectives between them."""
    return _split_top_level(clause, _CONNECTIVE, between_aware=True)


def parse_where(clause: str, dialect: str) -> ParsedPredicate:
    """Convert a validated clause into parameterized SQL.

    ``name = 'O''Brien' OR age > 30 AND active = 1`` becomes
    ``"name" = ? OR "age" > ? AND "active" = ?`` with bindings
    ``["O'Brien", "30", "1"]``. Call :func:`is_valid` first.
    """
    if clause is None or not clause.strip():
        return ParsedPredicate('', [])
    pieces, connectives = split_conditions(clause)
    sql_parts: List[str] = []
    bindings: List[str] = []
    for idx, piece in enumerate(pieces):
        if not piece:
            raise ValueError(f'Empty condition in WHERE clause: {clause}')
        cond = Condition.from_string(piece)
        if idx:
            sql_parts.append(connectives[idx - 1])
        sql_parts.append(cond.to_sql(dialect))
        bindings.extend(cond.values)
    return ParsedPredicate(' '.join(sql_parts), bindings)
