"""Split SQL scripts into statements without breaking string literals."""

import re
from typing import Iterator, List, Optional

_TABLE_TARGETS = [
    re.compile(r'^INSERT\s+INTO\s+[`"\[]?([^`"\]\s(]+)', re.I),
    re.compile(r'^DELETE\s+FROM\s+[`"\[]?([^`"\]\s]+)', re.I),
    re.compile(r'^UPDATE\s+[`"\[]?([^`"\]\s]+)', re.I),
    re.compile(r'^DROP\s+TABLE\s+(?:IF\s+EXISTS\s+)?[`"\[]?([^`"\]\s;]+)', re.I),
    re.compile(r'^CREATE\s+TABLE\s+(?:IF\s+NOT\s+EXISTS\s+)?[`"\[]?([^`"\]\s(]+)', re.I),
    re.compile(r'^ALTER\s+TABLE\s+[`"\[]?([^`"\]\s]+)', re.I),
    re.compile(r'^TRUNCATE\s+(?:TABLE\s+)?[`"\[]?([^`"\]\s]+)', re.I),
]

_TRANSACTION_CONTROL = re.compile(
    r'^(BEGIN(\s+TRANSACTION|\s+WORK)?|START\s+TRANSACTION|COMMIT(\s+WORK)?|ROLLBACK(\s+WORK)?|END(\s+TRANSACTION)?)$',
    re.I,
)

_QUOTES = {"'": "'", '"': '"', '`': '`'}


def iter_statements(sql: str, backslash_escapes: bool = True) -> Iterator[str]:
    """Yield statements terminated by ';' outside quotes and comments.

    ``--`` and ``/* */`` comments are dropped, as are lines whose first
    non-blank character is ``#``; comment-like text inside string literals
    is kept intact.
    """
    buf: List[str] = []
    quote: Optional[str] = None
    i, n = 0, len(sql)
    at_line_start = True
    while i < n:
        ch = sql[i]
        if quote is not None:
            buf.append(ch)
            if backslash_escapes and ch == '\\' and quote != '`' and i + 1 < n:
                buf.append(sql[i + 1])
                i += 2
                continue
            if ch == quote:
                if i + 1 < n and sql[i + 1] == quote:
                    buf.append(sql[i + 1])
                    i += 2
                    continue
                quote = None
            i += 1
            continue
        if at_line_start and ch in ' \t':
            buf.append(ch)
            i += 1
            continue
        if at_line_start and ch == '#':
            end = sql.find('\n', i)
            i = n if end == -1 else end
            continue
        at_line_start = False
        if ch == '\n':
            at_line_start = True
            buf.append(ch)
            i += 1
            continue
        if ch == '-' and sql.startswith('--', i):
            end = sql.find('\n', i)
            i = n if end == -1 else end
            continue
        if ch == '/' and sql.startswith('/*', i):
            end = sql.find('*/', i + 2)
            i = n if end == -1 else end + 2
            continue
        if ch in _QUOTES:
            quote = _QUOTES[ch]
            buf.append(ch)
            i += 1
            continue
        if ch == ';':
            stmt = ''.join(buf).strip()
            if stmt:
                yield stmt
            buf = []
            i += 1
            continue
        buf.append(ch)
        i += 1
    stmt = ''.join(buf).strip()
    if stmt:
        yield stmt


def split_statements(sql: str, backslash_escapes: bool = True) -> List[str]:
    return list(iter_statements(sql, backslash_escapes))


def statement_table(statement: str) -> Optional[str]:
    """Table targeted by a DML/DDL statement, or None for SET, PRAGMA and the like."""
    for pattern in _TABLE_TARGETS:
        m = pattern.match(statement)
        if m:
            return m.group(1)
    return None


def is_transaction_control(statement: str) -> bool:
    return bool(_TRANSACTION_CONTROL.match(' '.join(statement.split())))


def estimate_insert_rows(statement: str, backslash_escapes: bool = True) -> int:
    """Number of row tuples in a multi-row INSERT ... VALUES statement."""
    m = re.search(r'\bVALUES\b', statement, re.I)
    if not m:
        return 1
    depth = 0
    rows = 0
    quote = None
    body = statement[m.end():]
    i, n = 0, len(body)
    while i < n:
        ch = body[i]
        if quote is not None:
            if backslash_escapes and ch == '\\' and i + 1 < n:
                i += 2
                continue
            if ch == quote:
                if i + 1 < n and body[i + 1] == quote:
                    i += 2
                    continue
                quote = None
        elif ch in ("'", '"'):
            quote = ch
        elif ch == '(':
            if depth == 0:
                rows += 1
            depth += 1
        elif ch == ')':
            depth -= 1
        i += 1
    return max(rows, 1)
