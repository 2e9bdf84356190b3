"""
OCR (Optical Character Recognition) Module

This module handles text extraction from photographed/scanned tax documents
and from PDFs whose content streams carry no usable text, using Tesseract.

The extraction engine treats this as an opaque service:
    extract_text_from_image(bytes) -> text

Dependencies:
- pytesseract: Python wrapper for Tesseract OCR engine
- Pillow: Image loading
- PyMuPDF: Rendering PDF pages to images for scanned PDFs

IMPORTANT: Tesseract must be installed separately:
- Windows: Download from https://github.com/UB-Mannheim/tesseract/wiki
- Linux: apt-get install tesseract-ocr
- macOS: brew install tesseract
"""

import io
from dataclasses import dataclass
from typing import Optional

from loguru import logger


class OCRUnavailableError(RuntimeError):
    """Raised when Tesseract or one of its Python bindings cannot be used."""


@dataclass
class OCRConfig:
    """Tesseract settings."""
    language: str = 'eng'
    dpi: int = 300
    tesseract_cmd: Optional[str] = None
    # PSM 3 = Fully automatic page segmentation (default)
    tesseract_config: str = '--psm 3 --oem 3'


class OCRExtractor:
    """
    Extracts text from image bytes (and scanned PDF bytes) with Tesseract.

    Usage:
        ocr = OCRExtractor(OCRConfig(language='eng'))
        text = ocr.extract_text_from_image(png_bytes)
    """

    def __init__(self, config: Optional[OCRConfig] = None):
        self.config = config or OCRConfig()
        self._check_dependencies()

    def _check_dependencies(self):
        """Verify OCR dependencies are available."""
        try:
            import pytesseract
            self.pytesseract = pytesseract

            if self.config.tesseract_cmd:
                pytesseract.pytesseract.tesseract_cmd = self.config.tesseract_cmd

            try:
                version = pytesseract.get_tesseract_version()
                logger.debug(f"Tesseract version: {version}")
            except Exception as e:
                raise OCRUnavailableError(
                    f"Tesseract is not installed or not in PATH: {e}"
                ) from e

        except ImportError as e:
            raise OCRUnavailableError(
                "pytesseract not installed. Run: pip install pytesseract"
            ) from e

        try:
            from PIL import Image
            self.Image = Image
        except ImportError as e:
            raise OCRUnavailableError(
                "Pillow not installed. Run: pip install Pillow"
            ) from e

        self.has_pymupdf = False
        try:
            import fitz  # PyMuPDF
            self.fitz = fitz
            self.has_pymupdf = True
        except ImportError:
            logger.warning("PyMuPDF not available - scanned PDF pages cannot be rendered for OCR")

    def extract_text_from_image(self, data: bytes) -> str:
        """
        Recognize text in a document image.

        PDF bytes are rendered page by page first. Failures are logged and
        yield an empty string; an empty result is a valid answer.
        """
        if data[:5] == b'%PDF-':
            return self._extract_pdf(data)

        try:
            image = self.Image.open(io.BytesIO(data))
            return self._recognize(image)
        except Exception as e:
            logger.error(f"OCR extraction failed: {e}")
            return ""

    def _recognize(self, image) -> str:
        text = self.pytesseract.image_to_string(
            image,
            lang=self.config.language,
            config=self.config.tesseract_config,
        )
        return text.strip()

    def _extract_pdf(self, data: bytes) -> str:
        """Render each page with PyMuPDF at the configured DPI and OCR it."""
        if not self.has_pymupdf:
            logger.warning("Cannot OCR PDF bytes without PyMuPDF")
            return ""

        texts = []
        try:
            doc = self.fitz.open(stream=data, filetype="pdf")
        except Exception as e:
            logger.error(f"PDF OCR extraction failed: {e}")
            return ""

        try:
            # zoom = DPI / 72 (default PDF resolution)
            zoom = self.config.dpi / 72
            matrix = self.fitz.Matrix(zoom, zoom)

            for idx, page in enumerate(doc, start=1):
                try:
                    pix = page.get_pixmap(matrix=matrix)
                    image = self.Image.open(io.BytesIO(pix.tobytes("png")))
                    text = self._recognize(image)
                    if text:
                        texts.append(text)
                    else:
                        logger.debug(f"Page {idx} OCR returned no text")
                except Exception as e:
                    logger.warning(f"OCR failed for page {idx}: {e}")
        finally:
            doc.close()

        return "\n\n".join(texts)


def check_tesseract_installed() -> bool:
    """Quick check if Tesseract is installed and accessible."""
    try:
        import pytesseract
        pytesseract.get_tesseract_version()
        return True
    except Exception:
        return False
