"""
Parser Package

This package turns extracted document text into structured data.
It includes:
- Field mapping from text to tax form fields (per-form regex templates)
- Table detection in free text
- Normalization of matched values to canonical formats

Usage:
    from parser import FieldMapper, parse_unstructured_text

    # Extract form fields from text
    mapper = FieldMapper()
    fields = mapper.extract_fields(text, 'w2')

    # Detect a table in free text
    table = parse_unstructured_text("Name,Age\\nAlice,30")
"""

from .field_mapper import (
    FieldMapper,
    extract_fields_from_text,
)

from .text_parser import (
    ParsedTable,
    TextTableParser,
    ColumnType,
    parse_unstructured_text,
    detect_column_type,
    is_date_like,
)

from .normalizers import (
    CurrencyNormalizer,
    IdentifierNormalizer,
    StateNormalizer,
    normalize_currency,
    normalize_ein,
    normalize_state,
)

__all__ = [
    # Field mapping
    'FieldMapper',
    'extract_fields_from_text',
    # Text tables
    'ParsedTable',
    'TextTableParser',
    'ColumnType',
    'parse_unstructured_text',
    'detect_column_type',
    'is_date_like',
    # Normalizers
    'CurrencyNormalizer',
    'IdentifierNormalizer',
    'StateNormalizer',
    'normalize_currency',
    'normalize_ein',
    'normalize_state',
]
