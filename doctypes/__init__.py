"""
Tax Form Types

Form type enumeration, filename detection, field pattern templates and the
extraction result model.
"""

from .document_type import (
    TaxFormType,
    FieldType,
    FieldPattern,
    FORM_LABELS,
    detect_form_type,
    field_pattern,
)
from .registry import (
    FormTemplateRegistry,
    get_field_patterns,
    get_supported_extraction_types,
)
from .results import (
    Confidence,
    ExtractionField,
    ExtractionResult,
    ExtractionStep,
    StepEvent,
    confirm_field,
)

__all__ = [
    'TaxFormType',
    'FieldType',
    'FieldPattern',
    'FORM_LABELS',
    'detect_form_type',
    'field_pattern',
    'FormTemplateRegistry',
    'get_field_patterns',
    'get_supported_extraction_types',
    'Confidence',
    'ExtractionField',
    'ExtractionResult',
    'ExtractionStep',
    'StepEvent',
    'confirm_field',
]
