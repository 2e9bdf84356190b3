"""
Extraction Result Model

Data structures handed back to callers after a document is extracted.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Pattern, Union

from .document_type import TaxFormType


class Confidence(Enum):
    """Three-level trust tag attached to an extracted field."""

    HIGH = 'high'
    MEDIUM = 'medium'
    LOW = 'low'

    @property
    def weight(self) -> float:
        """Contribution to the overall confidence score."""
        return CONFIDENCE_WEIGHTS[self]


CONFIDENCE_WEIGHTS = {
    Confidence.HIGH: 1.0,
    Confidence.MEDIUM: 0.7,
    Confidence.LOW: 0.3,
}


@dataclass(frozen=True)
class ExtractionField:
    """
    One extracted key/value pair.

    `confirmed` is only ever set by the caller (see confirm_field);
    extraction always produces unconfirmed fields.
    """

    key: str
    value: str
    confidence: Confidence
    confirmed: bool = False

    @property
    def is_missing(self) -> bool:
        """Empty or zero values count as "not detected"."""
        return self.value == '' or self.value == '0.00'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'key': self.key,
            'value': self.value,
            'confidence': self.confidence.value,
            'confirmed': self.confirmed,
        }


@dataclass(frozen=True)
class ExtractionStep:
    """A progress-reporting unit. `duration` (seconds) only paces the simulated path."""

    label: str
    duration: float


@dataclass(frozen=True)
class StepEvent:
    """Progress notification for one step of one job."""

    index: int
    step: ExtractionStep
    job_id: Optional[str] = None

    @property
    def label(self) -> str:
        return self.step.label


@dataclass(frozen=True)
class ExtractionResult:
    """
    Snapshot of one extraction attempt.

    `overall_confidence` is the weighted aggregate computed by the engine,
    always within [0, 100].
    """

    fields: List[ExtractionField]
    overall_confidence: int
    form_type: Optional[Union[TaxFormType, str]]
    warnings: List[str] = field(default_factory=list)
    extracted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def empty(cls, form_type: Optional[Union[TaxFormType, str]] = None) -> 'ExtractionResult':
        """Placeholder for a document whose extraction has not finished."""
        return cls(fields=[], overall_confidence=0, form_type=form_type)

    def get_field(self, key: str) -> Optional[ExtractionField]:
        for extracted in self.fields:
            if extracted.key == key:
                return extracted
        return None

    def get_field_value(self, pattern: Union[str, Pattern]) -> str:
        """Value of the first field whose key matches the regex, or ''."""
        regex = pattern if isinstance(pattern, re.Pattern) else re.compile(pattern, re.IGNORECASE)
        for extracted in self.fields:
            if regex.search(extracted.key):
                return extracted.value
        return ''

    def get_numeric_value(self, pattern: Union[str, Pattern]) -> float:
        """Numeric value of the first matching field; 0.0 when absent or unparsable."""
        raw = self.get_field_value(pattern).replace('$', '').replace(',', '').strip()
        try:
            return float(raw)
        except ValueError:
            return 0.0

    @property
    def form_type_tag(self) -> Optional[str]:
        if isinstance(self.form_type, TaxFormType):
            return self.form_type.value
        return self.form_type

    def to_dict(self) -> Dict[str, Any]:
        return {
            'fields': [f.to_dict() for f in self.fields],
            'overall_confidence': self.overall_confidence,
            'form_type': self.form_type_tag,
            'warnings': list(self.warnings),
            'extracted_at': self.extracted_at.isoformat(),
        }


def confirm_field(result: ExtractionResult, key: str, confirmed: bool = True) -> ExtractionResult:
    """
    Copy of `result` with the named field's confirmation flag set.

    Raises:
        KeyError: If the result has no field with that key
    """
    if result.get_field(key) is None:
        raise KeyError(key)

    fields = [
        replace(f, confirmed=confirmed) if f.key == key else f
        for f in result.fields
    ]
    return replace(result, fields=fields)
