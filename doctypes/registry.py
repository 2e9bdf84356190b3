"""
Form Template Registry

Central lookup from form type to its ordered field patterns.
"""

from __future__ import annotations

from typing import Optional, List, Dict, Union

from loguru import logger

from .builtin_types import BUILTIN_FIELD_PATTERNS
from .document_type import FieldPattern, TaxFormType


class FormTemplateRegistry:
    """
    Registry of field templates per form type.

    Usage:
        registry = FormTemplateRegistry.with_builtin_types()
        patterns = registry.get('w2')
        supported = registry.supported_types()
    """

    _instance: Optional['FormTemplateRegistry'] = None

    def __init__(self):
        """Initialize empty registry."""
        self._templates: Dict[TaxFormType, List[FieldPattern]] = {}

    @classmethod
    def with_builtin_types(cls) -> 'FormTemplateRegistry':
        registry = cls()
        for form_type, patterns in BUILTIN_FIELD_PATTERNS.items():
            registry.register(form_type, patterns)
        return registry

    @classmethod
    def get_instance(cls) -> 'FormTemplateRegistry':
        """Get the shared registry holding the built-in templates."""
        if cls._instance is None:
            cls._instance = cls.with_builtin_types()
        return cls._instance

    def register(
        self,
        form_type: TaxFormType,
        patterns: List[FieldPattern],
        overwrite: bool = False,
    ) -> None:
        """
        Register the template for a form type.

        Raises:
            ValueError: If a template already exists and overwrite=False
        """
        if form_type in self._templates and not overwrite:
            raise ValueError(f"Template for '{form_type.value}' already registered")

        self._templates[form_type] = list(patterns)
        logger.debug(f"Registered template: {form_type.value} ({len(patterns)} fields)")

    def get(self, form_type: Union[TaxFormType, str, None]) -> List[FieldPattern]:
        """
        Field patterns for a form type.

        Unknown or template-less form types give an empty list.
        """
        if form_type is None:
            return []
        member = TaxFormType.coerce(form_type)
        if member is None:
            return []
        return list(self._templates.get(member, []))

    def supports(self, form_type: Union[TaxFormType, str]) -> bool:
        return bool(self.get(form_type))

    def supported_types(self) -> List[TaxFormType]:
        """Form types that have a template, in registration order."""
        return [form_type for form_type, patterns in self._templates.items() if patterns]


def get_field_patterns(form_type: Union[TaxFormType, str, None]) -> List[FieldPattern]:
    """Field patterns from the shared registry."""
    return FormTemplateRegistry.get_instance().get(form_type)


def get_supported_extraction_types() -> List[TaxFormType]:
    """Form types that have an extraction template."""
    return FormTemplateRegistry.get_instance().supported_types()
