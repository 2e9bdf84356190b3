"""
Normalizers Module

This module handles normalization of matched field values to the formats
reported in extraction results.

What normalization does:
- Currency → plain decimal string with exactly 2 places ("50,000" → "50000.00")
- EIN / TIN → "NN-NNNNNNN"
- State → upper-case two-letter code

Why this matters:
Tax documents print the same number as "$85,000.00", "85000" or "85,000.",
and identification numbers with or without the dash. Downstream review and
filing code compares values as strings, so every variant must collapse to a
single canonical form.
"""

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

from loguru import logger


ZERO_AMOUNT = '0.00'

# Leading numeric prefix, the way a lenient float parser reads it
NUMERIC_PREFIX = re.compile(r'^\s*[+-]?(?:\d+\.?\d*|\.\d+)')
EIN_FORMAT = re.compile(r'^\d{2}-?\d{7}$')


class CurrencyNormalizer:
    """Normalizes monetary amounts."""

    @staticmethod
    def parse(value: str) -> Optional[float]:
        """
        Parse an amount after dropping "$" and "," characters.

        Trailing garbage after the number is ignored ("12.5abc" → 12.5).
        Returns None when no number starts the string.
        """
        if not value:
            return None

        cleaned = value.replace('$', '').replace(',', '').strip()
        match = NUMERIC_PREFIX.match(cleaned)
        if not match:
            return None

        return float(match.group(0))

    @classmethod
    def normalize(cls, value: str) -> str:
        """
        Canonical 2-decimal string for an amount; "0.00" when unparsable.

        Halves round away from zero.
        """
        amount = cls.parse(value)
        if amount is None:
            logger.debug(f"Could not parse amount '{value}'")
            return ZERO_AMOUNT

        try:
            quantized = Decimal(amount).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)
        except InvalidOperation:
            # Infinite, or more digits than the decimal context holds
            return f"{amount:.2f}"
        if quantized == 0:
            return ZERO_AMOUNT
        return f"{quantized:f}"


class IdentifierNormalizer:
    """Normalizes EIN / TIN values."""

    @staticmethod
    def normalize_ein(value: str) -> Optional[str]:
        """
        "12 3456789", "123456789" and "12-3456789" all become "12-3456789".

        Returns None when the value is not nine digits in EIN layout.
        """
        compact = re.sub(r'\s', '', value or '')
        if not EIN_FORMAT.match(compact):
            return None
        if '-' in compact:
            return compact
        return f"{compact[:2]}-{compact[2:]}"


class StateNormalizer:
    """Normalizes state codes."""

    @staticmethod
    def normalize(value: str) -> str:
        return (value or '').strip().upper()


def normalize_currency(value: str) -> str:
    return CurrencyNormalizer.normalize(value)


def normalize_ein(value: str) -> Optional[str]:
    return IdentifierNormalizer.normalize_ein(value)


def normalize_state(value: str) -> str:
    return StateNormalizer.normalize(value)
