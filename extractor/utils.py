"""
Utility functions shared across the document extraction pipeline.

This module provides common functionality needed by multiple extraction strategies:
- Byte to text decoding for content-stream scanning
- Document source description (filename / content type sniffing)
- Common data structures

Why this exists:
Uploaded tax documents arrive as raw bytes with, at best, a filename and a
declared content type. Every extractor needs the same answers: is this a PDF,
is this an image, and what does the byte stream look like as text.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Union


IMAGE_EXTENSIONS = {'.png', '.jpg', '.jpeg', '.gif', '.bmp', '.tif', '.tiff', '.webp'}


class ExtractionMethod(Enum):
    """
    Tracks which method produced the document text.
    Useful for logging and for explaining low-quality results.
    """
    TEXT_LAYER = "text_layer"       # PDF content stream parsing
    OCR = "ocr"                      # Optical character recognition


def decode_bytes(data: Union[bytes, bytearray, memoryview]) -> str:
    """
    Map every byte to the code point with the same numeric value.

    No UTF-8 interpretation is done. PDF operators are ASCII, so keeping one
    character per byte preserves operator syntax even when the embedded
    strings use some other encoding.
    """
    if not data:
        return ""
    return bytes(data).decode('latin-1')


@dataclass
class DocumentSource:
    """
    Raw document bytes plus the metadata used to pick an extraction path.

    Only the filename extension and the declared content type are consulted.
    """
    data: bytes
    filename: str = ""
    content_type: str = ""

    @property
    def extension(self) -> str:
        return Path(self.filename).suffix.lower() if self.filename else ""

    @property
    def is_pdf(self) -> bool:
        return self.extension == '.pdf' or self.content_type.lower() == 'application/pdf'

    @property
    def is_image(self) -> bool:
        return (
            self.extension in IMAGE_EXTENSIONS
            or self.content_type.lower().startswith('image/')
        )

    @classmethod
    def from_path(cls, path: Path, content_type: str = "") -> 'DocumentSource':
        """Read a document from disk."""
        path = Path(path)
        return cls(data=path.read_bytes(), filename=path.name, content_type=content_type)

    @classmethod
    def coerce(cls, document: Optional[Union['DocumentSource', bytes, bytearray]]) -> Optional['DocumentSource']:
        """Wrap bare bytes as an unnamed source; pass sources and None through."""
        if document is None or isinstance(document, DocumentSource):
            return document
        return cls(data=bytes(document))

    def __len__(self) -> int:
        return len(self.data)
