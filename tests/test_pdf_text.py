"""
Tests for PDF content stream text extraction.

Run with: pytest tests/ -v
"""

import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from extractor.pdf_text import PDFContentParser, decode_pdf_string, extract_text_from_pdf_bytes
from extractor.utils import DocumentSource, decode_bytes


class TestDecodeBytes:
    """Tests for byte to text decoding."""

    def test_one_char_per_byte(self):
        data = bytes([0x42, 0x54, 0xe9, 0xff])
        text = decode_bytes(data)
        assert len(text) == 4
        assert [ord(c) for c in text] == [0x42, 0x54, 0xe9, 0xff]

    def test_empty(self):
        assert decode_bytes(b"") == ""

    def test_invalid_utf8_does_not_raise(self):
        assert decode_bytes(b"\xc3\x28") == "\xc3("


class TestDecodePdfString:
    """Tests for string literal escape decoding."""

    def test_control_escapes(self):
        assert decode_pdf_string(r"line\nnext\ttab") == "line\nnext\ttab"

    def test_escaped_parentheses(self):
        assert decode_pdf_string(r"Box 1 \(wages\)") == "Box 1 (wages)"

    def test_octal_escape(self):
        assert decode_pdf_string(r"\101BC") == "ABC"

    def test_double_backslash(self):
        assert decode_pdf_string(r"a\\b") == "a\\b"

    def test_non_octal_digits_do_not_raise(self):
        # 8 and 9 stop the octal number
        assert decode_pdf_string(r"\089") == "\x00"


class TestPDFContentParser:
    """Tests for the three extraction strategies."""

    def setup_method(self):
        self.parser = PDFContentParser()

    def test_tj_operator(self):
        assert self.parser.extract_text(b"BT /F1 12 Tf (Hello) Tj ET") == "Hello"

    def test_tj_array_ignores_kerning(self):
        data = b"BT [(Wor) -120 (ld)] TJ ET"
        assert self.parser.extract_text(data) == "World"

    def test_fragments_joined_per_block(self):
        data = b"BT (Employer) Tj ( name) Tj ET"
        assert self.parser.extract_text(data) == "Employer name"

    def test_blocks_joined_with_newline(self):
        data = b"%PDF-1.4\nBT (First) Tj ET\nBT (Second) Tj ET\n%%EOF"
        assert self.parser.extract_text(data) == "First\nSecond"

    def test_empty_blocks_skipped(self):
        data = b"BT 1 0 0 1 72 700 Tm ET BT (Only) Tj ET"
        assert self.parser.extract_text(data) == "Only"

    def test_escapes_inside_operators(self):
        data = b"BT (Wages \\(Box 1\\)) Tj ET"
        # The escaped ")" ends the Tj literal, so the parenthesis scan picks it up
        assert self.parser.extract_text(data).startswith("Wages (Box 1")

    def test_parenthesis_fallback(self):
        data = b"%PDF-1.4 1 0 obj << /Title (Tax Statement) >> (x) endobj"
        assert self.parser.extract_text(data) == "Tax Statement"

    def test_parenthesis_fallback_requires_alphanumeric(self):
        data = b"obj (--) (~~~) (ok) endobj\n"
        assert self.parser.extract_text(data) == "ok"

    def test_printable_fallback(self):
        data = b"\x00\x01Hello World\nab\n\xff\xfeLonger line here"
        assert self.parser.extract_text(data) == "Hello World\nLonger line here"

    def test_printable_fallback_handles_carriage_returns(self):
        data = b"first line\r\nsecond line\r"
        assert self.parser.extract_text(data) == "first line\nsecond line"

    def test_unclosed_text_object_falls_through(self):
        data = b"BT (Dangling text) Tj"
        assert self.parser.extract_text(data) == "Dangling text"

    def test_empty_input(self):
        assert self.parser.extract_text(b"") == ""

    def test_arbitrary_bytes_never_raise(self):
        data = bytes(range(256)) * 8
        assert isinstance(self.parser.extract_text(data), str)

    def test_convenience_function(self):
        assert extract_text_from_pdf_bytes(b"BT (Hi there) Tj ET") == "Hi there"


class TestDocumentSource:
    """Tests for PDF / image detection."""

    def test_pdf_by_extension(self):
        source = DocumentSource(b"", filename="W2_2024.PDF")
        assert source.is_pdf
        assert not source.is_image

    def test_pdf_by_content_type(self):
        assert DocumentSource(b"", content_type="application/pdf").is_pdf

    def test_image_by_extension(self):
        for name in ("scan.png", "scan.jpg", "scan.jpeg", "scan.tiff", "scan.webp"):
            assert DocumentSource(b"", filename=name).is_image

    def test_image_by_content_type(self):
        assert DocumentSource(b"", content_type="image/heic").is_image

    def test_bare_bytes_are_neither(self):
        source = DocumentSource.coerce(b"data")
        assert source.data == b"data"
        assert not source.is_pdf
        assert not source.is_image

    def test_coerce_passes_none_and_sources_through(self):
        source = DocumentSource(b"x", filename="a.pdf")
        assert DocumentSource.coerce(source) is source
        assert DocumentSource.coerce(None) is None

    def test_from_path(self, tmp_path):
        path = tmp_path / "1099-nec.pdf"
        path.write_bytes(b"%PDF-1.4")
        source = DocumentSource.from_path(path)
        assert source.filename == "1099-nec.pdf"
        assert len(source) == 8
