"""
Tests for the document store and batch extraction.

Run with: pytest tests/ -v
"""

import sys
from pathlib import Path

import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from doctypes import Confidence, TaxFormType
from documents import FALLBACK_WARNING, READING_PLACEHOLDER, DocumentStore, UnknownDocumentError
from extractor import DocumentSource, OCRUnavailableError
from performance import QueueConfig
from pipeline import EngineConfig, ExtractionEngine


W2_PDF = (
    b"%PDF-1.4\n"
    b"BT (Employer's name: Acme Corporation) Tj ET\n"
    b"BT (Wages, tips, other compensation 85,000.00) Tj ET\n"
    b"%%EOF"
)

NEC_TEXT = "Payer's name: Design Studio LLC\nNonemployee compensation 12,000.00"


def _quiet_engine(ocr):
    return ExtractionEngine(EngineConfig(simulate_delays=False), ocr=ocr)


class TestStoreBasics:
    """Tests for adding, looking up and removing documents."""

    def setup_method(self):
        self.store = DocumentStore()

    def test_form_type_detected_from_filename(self):
        self.store.add("d1", DocumentSource(b"", filename="acme_1099-NEC.pdf"))
        assert self.store.form_type("d1") == TaxFormType.NEC1099

    def test_unnamed_document_defaults_to_w2(self):
        self.store.add("d1", b"raw bytes")
        assert self.store.form_type("d1") == TaxFormType.W2
        assert self.store.get_source("d1").data == b"raw bytes"

    def test_explicit_form_type(self):
        self.store.add("d1", DocumentSource(b"", filename="w2.pdf"), form_type="1098_t")
        assert self.store.form_type("d1") == TaxFormType.T1098

    def test_invalid_form_type(self):
        with pytest.raises(ValueError):
            self.store.add("d1", b"", form_type="form-42")

    def test_unknown_document(self):
        with pytest.raises(UnknownDocumentError) as exc_info:
            self.store.get("missing")
        assert "missing" in str(exc_info.value)
        assert isinstance(exc_info.value, KeyError)

    def test_remove(self):
        self.store.add("d1", b"")
        assert self.store.remove("d1")
        assert not self.store.remove("d1")
        assert "d1" not in self.store
        assert len(self.store) == 0

    def test_add_replaces_same_id(self):
        self.store.add("d1", DocumentSource(b"", filename="w2.pdf"))
        self.store.add("d1", DocumentSource(b"", filename="1098.pdf"))
        assert len(self.store) == 1
        assert self.store.form_type("d1") == TaxFormType.MORTGAGE1098

    def test_no_result_before_extraction(self):
        self.store.add("d1", b"")
        assert self.store.result("d1") is None
        with pytest.raises(KeyError):
            self.store.confirm("d1", "Employer Name")


class TestBatchExtraction:
    """Tests for queue-driven extraction of stored documents."""

    def setup_method(self):
        self.store = DocumentStore()
        self.sleeps = []

    def test_extracts_every_document(self):
        self.store.add("w2", DocumentSource(W2_PDF, filename="w2_2024.pdf"))
        self.store.add("nec", DocumentSource(b"\x89PNG", filename="1099-nec.png"))
        engine = _quiet_engine(lambda data: NEC_TEXT)

        results = self.store.run_batch(engine, sleep=self.sleeps.append)

        assert set(results) == {"w2", "nec"}
        assert results["w2"].get_field_value("Employer Name") == "Acme Corporation"
        assert results["nec"].get_field_value("Payer Name") == "Design Studio LLC"
        assert results["nec"].form_type == TaxFormType.NEC1099
        assert self.store.result("w2") is results["w2"]
        assert self.sleeps == []

    def test_placeholder_while_running(self):
        seen = []

        def ocr(data):
            seen.append(self.store.result("scan").warnings)
            return ""

        self.store.add("scan", DocumentSource(b"", filename="w2.png"))
        self.store.run_batch(_quiet_engine(ocr))

        assert seen == [[READING_PLACEHOLDER]]
        assert READING_PLACEHOLDER not in self.store.result("scan").warnings

    def test_failed_job_gets_template_fallback(self):
        calls = []

        def broken_ocr(data):
            calls.append(data)
            raise OCRUnavailableError("tesseract missing")

        self.store.add("scan", DocumentSource(b"img", filename="1098-E navient.png"))
        config = QueueConfig(concurrency=1, max_retries=2, base_delay=0.5)

        results = self.store.run_batch(_quiet_engine(broken_ocr), queue_config=config, sleep=self.sleeps.append)

        fallback = results["scan"]
        assert len(calls) == 2
        assert self.sleeps == [0.5]
        assert [f.key for f in fallback.fields] == ["Lender Name", "Student Loan Interest (Box 1)"]
        assert [f.value for f in fallback.fields] == ["", "0.00"]
        assert fallback.warnings[-1] == FALLBACK_WARNING
        assert self.store.result("scan") is fallback

    def test_unknown_id_runs_nothing(self):
        calls = []
        self.store.add("d1", DocumentSource(b"", filename="w2.png"))
        engine = _quiet_engine(lambda data: calls.append(data) or "")

        with pytest.raises(UnknownDocumentError):
            self.store.run_batch(engine, ["d1", "ghost"])
        assert calls == []
        assert self.store.result("d1") is None

    def test_subset_of_documents(self):
        self.store.add("a", DocumentSource(W2_PDF, filename="w2.pdf"))
        self.store.add("b", DocumentSource(W2_PDF, filename="w2.pdf"))

        results = self.store.run_batch(_quiet_engine(lambda data: ""), ["b"])

        assert list(results) == ["b"]
        assert self.store.result("a") is None

    def test_steps_in_order_per_document(self):
        events = []
        for i in range(3):
            self.store.add(f"doc-{i}", DocumentSource(W2_PDF, filename="w2.pdf"))

        self.store.run_batch(
            _quiet_engine(lambda data: ""),
            queue_config=QueueConfig(concurrency=3),
            on_step=events.append,
        )

        for i in range(3):
            indices = [e.index for e in events if e.job_id == f"doc-{i}"]
            assert indices == [0, 1, 2, 3]
        assert self.store.progress("doc-0") is None

    def test_empty_store(self):
        assert self.store.run_batch(_quiet_engine(lambda data: "")) == {}

    def test_document_removed_while_extracting(self):
        self.store.add("a", DocumentSource(W2_PDF, filename="w2.pdf"))
        self.store.add("b", DocumentSource(W2_PDF, filename="w2.pdf"))

        def on_step(event):
            if event.job_id == "a" and event.index == 0:
                self.store.remove("a")

        results = self.store.run_batch(
            _quiet_engine(lambda data: ""),
            queue_config=QueueConfig(concurrency=1),
            on_step=on_step,
        )

        assert set(results) == {"a", "b"}
        assert results["a"].get_field_value("Employer Name") == "Acme Corporation"
        assert results["b"].get_field_value("Employer Name") == "Acme Corporation"
        assert "a" not in self.store
        assert self.store.result("b") is results["b"]

    def test_removed_document_still_gets_fallback(self):
        def broken_ocr(data):
            self.store.remove("scan")
            raise OCRUnavailableError("tesseract missing")

        self.store.add("scan", DocumentSource(b"img", filename="1099-nec.png"))
        config = QueueConfig(concurrency=1, max_retries=1)

        results = self.store.run_batch(_quiet_engine(broken_ocr), queue_config=config)

        assert results["scan"].form_type == TaxFormType.NEC1099
        assert results["scan"].warnings[-1] == FALLBACK_WARNING
        assert "scan" not in self.store

    def test_replaced_document_keeps_new_state(self):
        def ocr(data):
            self.store.add("scan", DocumentSource(b"", filename="1098.pdf"))
            return NEC_TEXT

        self.store.add("scan", DocumentSource(b"", filename="1099-nec.png"))

        results = self.store.run_batch(_quiet_engine(ocr))

        assert results["scan"].get_field_value("Payer Name") == "Design Studio LLC"
        assert self.store.form_type("scan") == TaxFormType.MORTGAGE1098
        assert self.store.result("scan") is None


class TestConfirmation:
    """Tests for user confirmation of extracted fields."""

    def setup_method(self):
        self.store = DocumentStore()
        self.store.add("w2", DocumentSource(W2_PDF, filename="w2.pdf"))
        self.store.run_batch(_quiet_engine(lambda data: ""))

    def test_confirm_single_field(self):
        updated = self.store.confirm("w2", "Employer Name")
        assert updated.get_field("Employer Name").confirmed
        assert not updated.get_field("Wages (Box 1)").confirmed
        assert self.store.result("w2") is updated

    def test_confirm_keeps_value_and_confidence(self):
        before = self.store.result("w2").get_field("Wages (Box 1)")
        after = self.store.confirm("w2", "Wages (Box 1)").get_field("Wages (Box 1)")
        assert after.value == before.value == "85000.00"
        assert after.confidence == before.confidence == Confidence.HIGH

    def test_unconfirm(self):
        self.store.confirm("w2", "Employer Name")
        updated = self.store.confirm("w2", "Employer Name", confirmed=False)
        assert not updated.get_field("Employer Name").confirmed

    def test_confirm_unknown_field(self):
        with pytest.raises(KeyError):
            self.store.confirm("w2", "Not A Field")

    def test_confirm_all(self):
        updated = self.store.confirm_all("w2")
        assert all(f.confirmed for f in updated.fields)
        assert updated.overall_confidence == self.store.result("w2").overall_confidence
