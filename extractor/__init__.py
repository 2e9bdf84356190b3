"""
Extractor Package

This package turns uploaded document bytes into raw text.

The extractor package exposes:
- PDFContentParser: Text from PDF content streams (no PDF library needed)
- OCRExtractor: Text from images and scanned PDFs via Tesseract
- DocumentSource: Bytes plus the filename/content type used for routing

Usage:
    from extractor import PDFContentParser, OCRExtractor, DocumentSource

    source = DocumentSource.from_path(Path("W-2_Acme.pdf"))
    text = PDFContentParser().extract_text(source.data)
"""

from .pdf_text import PDFContentParser, decode_pdf_string, extract_text_from_pdf_bytes
from .ocr import OCRExtractor, OCRConfig, OCRUnavailableError, check_tesseract_installed
from .utils import (
    DocumentSource,
    ExtractionMethod,
    decode_bytes,
)

__all__ = [
    # Main extractors
    'PDFContentParser',
    'OCRExtractor',
    'OCRConfig',
    'OCRUnavailableError',

    # Data structures
    'DocumentSource',
    'ExtractionMethod',

    # Utility functions
    'decode_bytes',
    'decode_pdf_string',

    # Convenience functions
    'extract_text_from_pdf_bytes',
    'check_tesseract_installed',
]
