"""
Tax Form Type Definition

Defines the enumerated tax form types and the structure of the per-form
field pattern templates.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Pattern, Union


class TaxFormType(Enum):
    """Tax document categories. Values are the stable string tags."""

    W2 = 'w2'
    W2C = 'w2c'
    NEC1099 = '1099_nec'
    INT1099 = '1099_int'
    DIV1099 = '1099_div'
    MISC1099 = '1099_misc'
    R1099 = '1099_r'
    K1099 = '1099_k'
    G1099 = '1099_g'
    SSA1099 = 'ssa_1099'
    MORTGAGE1098 = '1098'
    E1098 = '1098_e'
    T1098 = '1098_t'
    ACA1095A = '1095_a'
    W9 = 'w9'

    @property
    def label(self) -> str:
        return FORM_LABELS[self]

    @classmethod
    def coerce(cls, value: Union['TaxFormType', str]) -> Optional['TaxFormType']:
        """
        Accept an enum member, a tag ('1099_nec') or a label ('1099-NEC').

        Returns None for anything unrecognised.
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None

        text = value.strip()
        for member in cls:
            if text.lower() == member.value or text.upper() == member.label.upper():
                return member
        return None


FORM_LABELS = {
    TaxFormType.W2: 'W-2',
    TaxFormType.W2C: 'W-2c',
    TaxFormType.NEC1099: '1099-NEC',
    TaxFormType.INT1099: '1099-INT',
    TaxFormType.DIV1099: '1099-DIV',
    TaxFormType.MISC1099: '1099-MISC',
    TaxFormType.R1099: '1099-R',
    TaxFormType.K1099: '1099-K',
    TaxFormType.G1099: '1099-G',
    TaxFormType.SSA1099: 'SSA-1099',
    TaxFormType.MORTGAGE1098: '1098',
    TaxFormType.E1098: '1098-E',
    TaxFormType.T1098: '1098-T',
    TaxFormType.ACA1095A: '1095-A',
    TaxFormType.W9: 'W-9',
}


class FieldType(Enum):
    """How a matched value is post-processed and scored."""

    CURRENCY = 'currency'   # Monetary amount, always 2 decimals
    TEXT = 'text'           # Free text (names, identifiers, codes)
    EIN = 'ein'             # Employer / taxpayer identification number
    STATE = 'state'         # Two-letter state code

    @property
    def default_value(self) -> str:
        """Value reported when nothing was found."""
        return '0.00' if self is FieldType.CURRENCY else ''


@dataclass(frozen=True)
class FieldPattern:
    """
    One field of a form template.

    Patterns are tried in order against the full document text; the first
    one whose capture group matches wins.
    """

    key: str
    field_type: FieldType
    patterns: List[Pattern] = field(default_factory=list)

    @property
    def default_value(self) -> str:
        return self.field_type.default_value

    def to_dict(self) -> dict:
        return {
            'key': self.key,
            'type': self.field_type.value,
            'patterns': [p.pattern for p in self.patterns],
        }


def field_pattern(key: str, field_type: FieldType, *patterns: Union[str, Pattern]) -> FieldPattern:
    """
    Helper for building template tables.

    String patterns are compiled case-insensitive; pass a pre-compiled
    pattern to control flags yourself.
    """
    compiled = [
        p if isinstance(p, re.Pattern) else re.compile(p, re.IGNORECASE)
        for p in patterns
    ]
    return FieldPattern(key=key, field_type=field_type, patterns=compiled)


# Ordered: the more specific 1098 variants must come before plain 1098
FILENAME_PATTERNS = [
    (re.compile(r'w[_-]?2', re.IGNORECASE), TaxFormType.W2),
    (re.compile(r'1099[_-]?nec', re.IGNORECASE), TaxFormType.NEC1099),
    (re.compile(r'1099[_-]?int', re.IGNORECASE), TaxFormType.INT1099),
    (re.compile(r'1099[_-]?div', re.IGNORECASE), TaxFormType.DIV1099),
    (re.compile(r'1099[_-]?misc', re.IGNORECASE), TaxFormType.MISC1099),
    (re.compile(r'1099[_-]?r(?![a-z])', re.IGNORECASE), TaxFormType.R1099),
    (re.compile(r'1099[_-]?k(?![a-z])', re.IGNORECASE), TaxFormType.K1099),
    (re.compile(r'1098[_-]?e(?![a-z])', re.IGNORECASE), TaxFormType.E1098),
    (re.compile(r'1098[_-]?t(?![a-z])', re.IGNORECASE), TaxFormType.T1098),
    (re.compile(r'1098', re.IGNORECASE), TaxFormType.MORTGAGE1098),
    (re.compile(r'1095[_-]?a', re.IGNORECASE), TaxFormType.ACA1095A),
    (re.compile(r'w[_-]?9', re.IGNORECASE), TaxFormType.W9),
]


def detect_form_type(filename: str) -> TaxFormType:
    """Guess the form type from an upload's filename. Defaults to W-2."""
    for pattern, form_type in FILENAME_PATTERNS:
        if pattern.search(filename or ''):
            return form_type
    return TaxFormType.W2
