"""Placeholder adaptation between '?' style SQL and SQLAlchemy named binds."""

from typing import Any, Dict, Sequence, Tuple

_CLOSERS = {"'": "'", '"': '"', '`': '`', '[': ']'}


def bind_positional(sql: str, bindings: Sequence[Any], prefix: str = 'p') -> Tuple[str, Dict[str, Any]]:
    """Rewrite each '?' outside quoted text as ``:p0``, ``:p1``... and pair it with its value."""
    out = []
    params: Dict[str, Any] = {}
    closer = None
    idx = 0
    for ch in sql:
        if closer is not None:
            if ch == closer:
                closer = None
            out.append(ch)
            continue
        if ch in _CLOSERS:
            closer = _CLOSERS[ch]
            out.append(ch)
            continue
        if ch == '?':
            if idx >= len(bindings):
                raise ValueError(f'More placeholders than bindings in: {sql}')
            name = f'{prefix}{idx}'
            params[name] = bindings[idx]
            out.append(f':{name}')
            idx += 1
            continue
        out.append(ch)
    if idx != len(bindings):
        raise ValueError(f'Expected {idx} bindings, got {len(bindings)}')
    return ''.join(out), params


def escape_colons(sql: str) -> str:
    """Escape ':' so SQLAlchemy text() does not mistake ``a:b`` for a bind."""
    return sql.replace(':', '\\:')
