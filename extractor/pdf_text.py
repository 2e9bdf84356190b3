"""
PDF Content Stream Text Extraction Module

This module pulls human-readable text out of the raw bytes of a PDF without
any PDF library. It only understands a minimal content-stream dialect:
text objects (BT ... ET) and the two show-text operators (Tj and TJ).

Three strategies are tried in order, each one a fallback for the previous:
1. Text-object scan  - Tj / TJ operators inside BT ... ET blocks
2. Parenthesis scan  - any "(...)" string literal in the whole file
3. Printable scan    - runs of printable ASCII, one per line

Why hand-rolled?
Uploads are often small, uncompressed, generated PDFs (payroll exports,
bank statements) where the text sits in plain content streams. Parsing them
directly is fast, has no native dependencies, and never throws. Scanned or
compressed PDFs produce little or no text here, and the engine then hands
the bytes to OCR.
"""

import re
from typing import Union

from loguru import logger

from .utils import decode_bytes


TJ_PATTERN = re.compile(r'\(([^)]*)\)\s*Tj')
TJ_ARRAY_PATTERN = re.compile(r'\[([^\]]*)\]\s*TJ')
LITERAL_PATTERN = re.compile(r'\(([^)]*)\)')
PAREN_PATTERN = re.compile(r'\(([^)]{2,})\)')
OCTAL_ESCAPE = re.compile(r'\\(\d{3})')
ESCAPED_PAREN = re.compile(r'\\([()])')
ALNUM = re.compile(r'[a-zA-Z0-9]')


def decode_pdf_string(literal: str) -> str:
    """
    Decode the escapes in a PDF string literal.

    Order matters: control escapes first, then escaped parentheses,
    then three-digit octal escapes.
    """
    decoded = (
        literal
        .replace('\\n', '\n')
        .replace('\\r', '\r')
        .replace('\\t', '\t')
        .replace('\\\\', '\\')
    )
    decoded = ESCAPED_PAREN.sub(r'\1', decoded)
    decoded = OCTAL_ESCAPE.sub(lambda m: chr(_octal_prefix(m.group(1))), decoded)
    return decoded


def _octal_prefix(digits: str) -> int:
    """Value of the leading octal digits; 8 and 9 end the number, none gives 0."""
    value = 0
    for digit in digits:
        if digit not in '01234567':
            break
        value = value * 8 + int(digit)
    return value


class PDFContentParser:
    """
    Extracts text from raw PDF bytes.

    Usage:
        parser = PDFContentParser()
        text = parser.extract_text(pdf_bytes)

    The parser keeps no state between calls and is safe to share between
    concurrently running extraction jobs.
    """

    def extract_text(self, data: Union[bytes, bytearray]) -> str:
        """
        Best-effort text from a PDF byte buffer.

        Returns an empty string when nothing readable is found; never raises.
        """
        text = decode_bytes(data)

        extracted = self._scan_text_objects(text)
        if extracted:
            logger.debug(f"Text-object scan found {len(extracted)} text blocks")
            return '\n'.join(extracted).strip()

        literals = self._scan_parenthesized(text)
        if literals:
            logger.debug(f"Parenthesis scan found {len(literals)} string literals")
            return '\n'.join(literals).strip()

        logger.debug("Falling back to printable ASCII scan")
        return self._scan_printable(text)

    def _scan_text_objects(self, text: str) -> list[str]:
        """Strategy 1: walk every BT ... ET pair by plain substring search."""
        blocks = []
        pos = 0

        while pos < len(text):
            bt_idx = text.find('BT', pos)
            if bt_idx == -1:
                break

            et_idx = text.find('ET', bt_idx + 2)
            if et_idx == -1:
                break

            fragments = self._extract_from_block(text[bt_idx + 2:et_idx])
            if fragments:
                blocks.append(''.join(fragments))

            pos = et_idx + 2

        return blocks

    def _extract_from_block(self, block: str) -> list[str]:
        """Run the Tj extractor, then the TJ extractor, over one text object."""
        fragments = [decode_pdf_string(m.group(1)) for m in TJ_PATTERN.finditer(block)]

        # Kerning numbers between the literals are ignored
        for array_match in TJ_ARRAY_PATTERN.finditer(block):
            for literal in LITERAL_PATTERN.finditer(array_match.group(1)):
                fragments.append(decode_pdf_string(literal.group(1)))

        return fragments

    def _scan_parenthesized(self, text: str) -> list[str]:
        """Strategy 2: every "(...)" literal that decodes to something readable."""
        results = []
        for match in PAREN_PATTERN.finditer(text):
            decoded = decode_pdf_string(match.group(1))
            if ALNUM.search(decoded) and len(decoded) > 1:
                results.append(decoded)
        return results

    def _scan_printable(self, text: str) -> str:
        """Strategy 3: printable ASCII runs, split on CR/LF, short lines dropped."""
        lines = []
        current = []

        for char in text:
            code = ord(char)
            if 32 <= code <= 126:
                current.append(char)
            elif code in (10, 13):
                line = ''.join(current).strip()
                if len(line) > 3:
                    lines.append(line)
                current = []

        line = ''.join(current).strip()
        if len(line) > 3:
            lines.append(line)

        return '\n'.join(lines)


def extract_text_from_pdf_bytes(data: Union[bytes, bytearray]) -> str:
    """
    Convenience function for one-off extraction.

    Args:
        data: Raw PDF bytes

    Returns:
        Extracted text (possibly empty)
    """
    return PDFContentParser().extract_text(data)
