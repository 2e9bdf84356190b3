"""
Field Mapper Module

This module maps raw document text (from the PDF content parser or OCR) to
the structured fields of a tax form.

Architecture:
1. Look up the ordered field patterns for the form type
2. For each field, try its regex alternatives in order; first capture wins
3. Normalize the captured value by field type
4. Assign a confidence level from how the value was found

Confidence policy:
- currency: non-zero amount → HIGH, matched but zero → MEDIUM
- ein: valid NN-NNNNNNN layout → HIGH, anything else → MEDIUM
- state: HIGH
- text: longer than one character → HIGH, otherwise MEDIUM
- nothing matched → LOW, value "" (or "0.00" for currency)

A matched zero is kept at MEDIUM rather than LOW: a real zero is plausible
("Federal income tax withheld 0.00") but less certain than a real amount.
"""

from typing import Optional, Tuple, Union

from loguru import logger

from doctypes.document_type import FieldPattern, FieldType, TaxFormType
from doctypes.registry import FormTemplateRegistry
from doctypes.results import Confidence, ExtractionField

from .normalizers import ZERO_AMOUNT, normalize_currency, normalize_ein, normalize_state


class FieldMapper:
    """
    Maps extracted text to tax form fields using the form's regex templates.

    Usage:
        mapper = FieldMapper()
        fields = mapper.extract_fields(text, TaxFormType.W2)
        for f in fields:
            print(f"{f.key}: {f.value} ({f.confidence.value})")

    The mapper holds no per-call state and can be shared between threads.
    """

    def __init__(self, registry: Optional[FormTemplateRegistry] = None):
        self.registry = registry or FormTemplateRegistry.get_instance()

    def extract_fields(
        self,
        text: str,
        form_type: Union[TaxFormType, str, None],
    ) -> list[ExtractionField]:
        """
        One ExtractionField per template entry of the form type.

        Returns an empty list when the form type has no template.
        """
        patterns = self.registry.get(form_type)
        if not patterns:
            logger.debug(f"No field template for form type {form_type!r}")
            return []

        text = text or ""
        results = []

        for field_pattern in patterns:
            value, confidence = self.match_field(text, field_pattern)
            results.append(ExtractionField(
                key=field_pattern.key,
                value=value or field_pattern.default_value,
                confidence=confidence,
                confirmed=False,
            ))
            logger.debug(f"Field '{field_pattern.key}': '{value}' ({confidence.value})")

        return results

    def match_field(self, text: str, field_pattern: FieldPattern) -> Tuple[str, Confidence]:
        """Try each alternative in order; the first non-empty capture wins."""
        for pattern in field_pattern.patterns:
            match = pattern.search(text)
            if match and match.group(1):
                return self._score(match.group(1).strip(), field_pattern.field_type)

        return "", Confidence.LOW

    def _score(self, raw_value: str, field_type: FieldType) -> Tuple[str, Confidence]:
        """Normalize a captured value and pick its confidence."""
        if field_type is FieldType.CURRENCY:
            cleaned = normalize_currency(raw_value)
            if cleaned != ZERO_AMOUNT:
                return cleaned, Confidence.HIGH
            return cleaned, Confidence.MEDIUM

        if field_type is FieldType.EIN:
            formatted = normalize_ein(raw_value)
            if formatted:
                return formatted, Confidence.HIGH
            return raw_value, Confidence.MEDIUM

        if field_type is FieldType.STATE:
            return normalize_state(raw_value), Confidence.HIGH

        if len(raw_value) > 1:
            return raw_value, Confidence.HIGH
        return raw_value, Confidence.MEDIUM


def extract_fields_from_text(
    text: str,
    form_type: Union[TaxFormType, str, None],
) -> list[ExtractionField]:
    """
    Convenience function to extract fields with the built-in templates.

    Args:
        text: Document text
        form_type: Form type enum or tag (e.g. "w2", "1099_nec")

    Returns:
        List of ExtractionField, empty for unsupported form types
    """
    return FieldMapper().extract_fields(text, form_type)
