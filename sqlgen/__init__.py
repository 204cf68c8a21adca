"""Dialect-aware SQL text helpers: quoting, literals, WHERE parsing and statement building."""

from .query_builder import SQLBuilder
from .conditions import Condition, ParsedPredicate, is_valid, parse_where, split_conditions, unquote_value
from .quoting import quote_identifier, quote_identifiers, format_literal, has_leading_zeros, quote_string
from .adapt_sql import bind_positional, escape_colons
from .splitter import split_statements, iter_statements, statement_table, is_transaction_control, estimate_insert_rows
from .mappings import normalize_dialect, start_transaction_keyword

__all__ = [
    'SQLBuilder',
    'Condition',
    'ParsedPredicate',
    'is_valid',
    'parse_where',
    'split_conditions',
    'unquote_value',
    'quote_identifier',
    'quote_identifiers',
    'format_literal',
    'has_leading_zeros',
    'quote_string',
    'bind_positional',
    'escape_colons',
    'split_statements',
    'iter_statements',
    'statement_table',
    'is_transaction_control',
    'estimate_insert_rows',
    'normalize_dialect',
    'start_transaction_keyword',
]
