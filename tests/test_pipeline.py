"""
Tests for the extraction engine.

OCR is injected, so no Tesseract install is needed.
Run with: pytest tests/ -v
"""

import random
import sys
from pathlib import Path

import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from doctypes import Confidence, ExtractionField, TaxFormType, confirm_field, get_field_patterns
from extractor import DocumentSource, ExtractionMethod, OCRUnavailableError
from pipeline import (
    DOCUMENT_STEPS,
    EXTRACTION_STEPS,
    EngineConfig,
    ExtractionEngine,
    compute_overall_confidence,
    extract_document,
    generate_warnings,
    get_supported_extraction_types,
    load_settings,
)


TEXT_PDF = (
    b"%PDF-1.4\n"
    b"BT (Employer's name: Acme Corporation) Tj ET\n"
    b"BT (Wages, tips, other compensation 85,000.00) Tj ET\n"
    b"%%EOF"
)

OCR_TEXT = "Employer's name: Scanned Industries\nWages, tips, other compensation 42,000.00"


class FakeOCR:
    """Records the bytes it is asked to read."""

    def __init__(self, text=OCR_TEXT):
        self.text = text
        self.calls = []

    def __call__(self, data):
        self.calls.append(data)
        return self.text


class FixedRandom:
    """random.Random stand-in returning a fixed sequence."""

    def __init__(self, values):
        self.values = list(values)

    def random(self):
        return self.values.pop(0)


def _field(confidence, value="1.00"):
    return ExtractionField(key="k", value=value, confidence=confidence)


class TestConfidenceAndWarnings:
    """Tests for aggregate confidence and warning text."""

    def test_empty_fields(self):
        assert compute_overall_confidence([]) == 0

    def test_weighted_mean(self):
        assert compute_overall_confidence([_field(Confidence.HIGH), _field(Confidence.LOW)]) == 65
        assert compute_overall_confidence([_field(Confidence.MEDIUM)]) == 70
        assert compute_overall_confidence([_field(Confidence.HIGH)] * 3) == 100
        assert compute_overall_confidence([_field(Confidence.LOW)] * 2) == 30

    def test_always_in_range(self):
        rng = random.Random(7)
        for _ in range(50):
            fields = [_field(rng.choice(list(Confidence))) for _ in range(rng.randint(1, 12))]
            assert 0 <= compute_overall_confidence(fields) <= 100

    def test_no_warnings(self):
        assert generate_warnings([_field(Confidence.HIGH)]) == []

    def test_singular_warnings(self):
        warnings = generate_warnings([_field(Confidence.LOW, value="")])
        assert warnings == [
            "1 field has low confidence and may need manual review.",
            "1 field was not detected. Please fill in manually.",
        ]

    def test_plural_warnings(self):
        warnings = generate_warnings([
            _field(Confidence.LOW, value="0.00"),
            _field(Confidence.LOW, value=""),
            _field(Confidence.HIGH),
        ])
        assert warnings == [
            "2 fields have low confidence and may need manual review.",
            "2 fields were not detected. Please fill in manually.",
        ]

    def test_zero_value_counts_as_missing(self):
        warnings = generate_warnings([_field(Confidence.HIGH, value="0.00")])
        assert warnings == ["1 field was not detected. Please fill in manually."]


class TestRealExtraction:
    """Tests for extraction from document bytes."""

    def setup_method(self):
        self.ocr = FakeOCR()
        self.engine = ExtractionEngine(EngineConfig(simulate_delays=False), ocr=self.ocr)

    def test_text_pdf_skips_ocr(self):
        source = DocumentSource(TEXT_PDF, filename="w2.pdf", content_type="application/pdf")
        result = self.engine.extract(TaxFormType.W2, source)

        assert self.ocr.calls == []
        assert result.form_type == TaxFormType.W2
        assert result.get_field_value("Employer Name") == "Acme Corporation"
        assert result.get_field("Wages (Box 1)").value == "85000.00"
        assert result.get_field("Wages (Box 1)").confidence == Confidence.HIGH
        assert len(result.fields) == 11

    def test_short_pdf_text_falls_back_to_ocr(self):
        source = DocumentSource(b"%PDF-1.4 BT (Short) Tj ET", filename="scan.pdf")
        result = self.engine.extract(TaxFormType.W2, source)

        assert self.ocr.calls == [source.data]
        assert result.get_field("Employer Name").value == "Scanned Industries"
        assert result.get_numeric_value("Wages") == 42000.0

    def test_image_goes_straight_to_ocr(self):
        source = DocumentSource(b"\x89PNG\r\n", filename="w2.png", content_type="image/png")
        self.engine.extract(TaxFormType.W2, source)
        assert self.ocr.calls == [source.data]

    def test_image_with_text_layer_still_uses_ocr(self):
        # Images never go through the PDF parser, whatever the bytes contain
        source = DocumentSource(TEXT_PDF, filename="photo.jpg")
        result = self.engine.extract(TaxFormType.W2, source)
        assert len(self.ocr.calls) == 1
        assert result.get_field("Employer Name").value == "Scanned Industries"

    def test_raw_bytes_try_pdf_first(self):
        result = self.engine.extract("w2", TEXT_PDF)
        assert self.ocr.calls == []
        assert result.get_field("Employer Name").value == "Acme Corporation"

    def test_min_text_chars_is_configurable(self):
        engine = ExtractionEngine(EngineConfig(min_text_chars=500), ocr=self.ocr)
        engine.extract(TaxFormType.W2, DocumentSource(TEXT_PDF, filename="w2.pdf"))
        assert len(self.ocr.calls) == 1

    def test_steps_reported_in_order(self):
        events = []
        source = DocumentSource(TEXT_PDF, filename="w2.pdf")
        self.engine.extract(TaxFormType.W2, source, on_step=events.append, job_id="doc-1")

        assert [e.index for e in events] == [0, 1, 2, 3]
        assert [e.step for e in events] == DOCUMENT_STEPS
        assert [e.label for e in events] == [
            "Reading document...",
            "Extracting text...",
            "Identifying fields...",
            "Validating extracted data...",
        ]
        assert all(e.job_id == "doc-1" for e in events)

    def test_text_method_reported(self):
        text, method = self.engine.extract_text(DocumentSource(TEXT_PDF, filename="w2.pdf"))
        assert method == ExtractionMethod.TEXT_LAYER
        assert "Acme Corporation" in text

        _, method = self.engine.extract_text(DocumentSource(b"\x89PNG", filename="w2.png"))
        assert method == ExtractionMethod.OCR

        _, method = self.engine.extract_text(DocumentSource(b"%PDF-1.4 BT (Short) Tj ET", filename="scan.pdf"))
        assert method == ExtractionMethod.OCR

    def test_unsupported_form_type(self):
        ocr = FakeOCR(text="")
        engine = ExtractionEngine(EngineConfig(simulate_delays=False), ocr=ocr)
        result = engine.extract(TaxFormType.W2C, b"nothing useful here")

        assert result.fields == []
        assert result.overall_confidence == 0
        assert result.warnings == []

    def test_ocr_unavailable_propagates(self):
        def broken_ocr(data):
            raise OCRUnavailableError("tesseract missing")

        engine = ExtractionEngine(ocr=broken_ocr)
        with pytest.raises(OCRUnavailableError):
            engine.extract(TaxFormType.W2, DocumentSource(b"\x89PNG", filename="w2.png"))

    def test_empty_ocr_text_is_valid(self):
        engine = ExtractionEngine(ocr=FakeOCR(text=""))
        result = engine.extract(TaxFormType.NEC1099, DocumentSource(b"", filename="x.png"))
        assert len(result.fields) == 4
        assert all(f.confidence == Confidence.LOW for f in result.fields)
        assert result.overall_confidence == 30

    def test_result_to_dict(self):
        result = self.engine.extract(TaxFormType.W2, DocumentSource(TEXT_PDF, filename="w2.pdf"))
        data = result.to_dict()
        assert data["form_type"] == "w2"
        assert len(data["fields"]) == 11
        assert data["fields"][0]["confirmed"] is False
        assert "extracted_at" in data

    def test_confirm_field_returns_copy(self):
        result = self.engine.extract(TaxFormType.W2, DocumentSource(TEXT_PDF, filename="w2.pdf"))
        confirmed = confirm_field(result, "Employer Name")

        assert confirmed.get_field("Employer Name").confirmed
        assert not result.get_field("Employer Name").confirmed
        with pytest.raises(KeyError):
            confirm_field(result, "No Such Field")


class TestSimulatedExtraction:
    """Tests for the no-document path."""

    def setup_method(self):
        self.sleeps = []

    def test_template_defaults(self):
        engine = ExtractionEngine(rng=random.Random(1), sleep=self.sleeps.append)
        result = engine.extract(TaxFormType.NEC1099)

        template = get_field_patterns(TaxFormType.NEC1099)
        assert [f.key for f in result.fields] == [p.key for p in template]
        assert [f.value for f in result.fields] == [p.default_value for p in template]
        assert all(not f.confirmed for f in result.fields)

    def test_step_delays(self):
        engine = ExtractionEngine(sleep=self.sleeps.append)
        engine.simulate(TaxFormType.W2)
        assert self.sleeps == [0.5, 0.4, 0.8, 0.3]

    def test_delay_scale(self):
        engine = ExtractionEngine(EngineConfig(step_delay_scale=0.0), sleep=self.sleeps.append)
        engine.simulate(TaxFormType.W2)
        assert self.sleeps == [0.0, 0.0, 0.0, 0.0]

    def test_delays_disabled(self):
        engine = ExtractionEngine(EngineConfig(simulate_delays=False), sleep=self.sleeps.append)
        engine.simulate(TaxFormType.W2)
        assert self.sleeps == []

    def test_simulated_steps_have_own_labels(self):
        events = []
        engine = ExtractionEngine(EngineConfig(simulate_delays=False))
        engine.extract(TaxFormType.W2, on_step=events.append)

        assert [e.step for e in events] == EXTRACTION_STEPS
        assert events[0].label == "Analyzing document format..."
        assert [e.label for e in events] != [s.label for s in DOCUMENT_STEPS]

    def test_step_emitted_before_wait(self):
        timeline = []
        engine = ExtractionEngine(sleep=lambda seconds: timeline.append(("sleep", seconds)))
        engine.simulate(TaxFormType.W2, on_step=lambda e: timeline.append(("step", e.index)))
        assert timeline == [
            ("step", 0), ("sleep", 0.5),
            ("step", 1), ("sleep", 0.4),
            ("step", 2), ("sleep", 0.8),
            ("step", 3), ("sleep", 0.3),
        ]

    def test_random_confidence_buckets(self):
        rng = FixedRandom([0.0, 0.59, 0.6, 0.89, 0.9, 0.99] + [0.0] * 20)
        engine = ExtractionEngine(EngineConfig(simulate_delays=False), rng=rng)
        result = engine.simulate(TaxFormType.W2)

        confidences = [f.confidence for f in result.fields[:6]]
        assert confidences == [
            Confidence.HIGH, Confidence.HIGH,
            Confidence.MEDIUM, Confidence.MEDIUM,
            Confidence.LOW, Confidence.LOW,
        ]

    def test_unsupported_form_type(self):
        engine = ExtractionEngine(EngineConfig(simulate_delays=False))
        result = engine.extract("w9")
        assert result.fields == []
        assert result.overall_confidence == 0
        assert result.warnings == []

    def test_defaults_always_warn_missing(self):
        engine = ExtractionEngine(EngineConfig(simulate_delays=False))
        result = engine.simulate(TaxFormType.E1098)
        assert "2 fields were not detected. Please fill in manually." in result.warnings


class TestSettings:
    """Tests for YAML settings loading."""

    def test_defaults_without_file(self):
        settings = load_settings(None)
        assert settings.engine.min_text_chars == 50
        assert settings.queue.concurrency == 2
        assert settings.queue.max_retries == 3
        assert settings.queue.base_delay == 1.0

    def test_load_yaml(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text(
            "engine:\n"
            "  simulate_delays: false\n"
            "  ocr_language: deu\n"
            "queue:\n"
            "  concurrency: 4\n"
            "  base_delay: 0.25\n"
        )
        settings = load_settings(path)
        assert settings.engine.simulate_delays is False
        assert settings.engine.ocr_language == "deu"
        assert settings.engine.min_text_chars == 50
        assert settings.queue.concurrency == 4
        assert settings.queue.base_delay == 0.25
        assert settings.queue.max_retries == 3

    def test_empty_yaml(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("")
        assert load_settings(path).engine.ocr_dpi == 300

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "missing.yaml")


def test_extract_document_with_default_engine():
    result = extract_document(TaxFormType.W2, TEXT_PDF)
    assert result.get_field_value("Employer Name") == "Acme Corporation"
    assert result.form_type == TaxFormType.W2


def test_supported_extraction_types():
    supported = get_supported_extraction_types()
    assert TaxFormType.W2 in supported
    assert TaxFormType.ACA1095A in supported
    assert TaxFormType.SSA1099 not in supported
