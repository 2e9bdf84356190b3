"""
Extraction Pipeline

Main orchestration module: turns one tax document into a confidence-scored
ExtractionResult.

Flow:
    DocumentSource -> (PDF content parser | OCR) -> FieldMapper -> result

Every extraction reports four progress steps, in order: DOCUMENT_STEPS when
it runs on real bytes, EXTRACTION_STEPS on the simulated path (no bytes,
template defaults with randomized confidence).
"""

import math
import random
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

import yaml
from loguru import logger

from doctypes.document_type import TaxFormType
from doctypes.registry import FormTemplateRegistry
from doctypes.results import (
    Confidence,
    ExtractionField,
    ExtractionResult,
    ExtractionStep,
    StepEvent,
)
from extractor.ocr import OCRConfig, OCRExtractor
from extractor.pdf_text import PDFContentParser
from extractor.utils import DocumentSource, ExtractionMethod
from parser.field_mapper import FieldMapper
from performance.extraction_queue import QueueConfig


EXTRACTION_STEPS: List[ExtractionStep] = [
    ExtractionStep('Analyzing document format...', 0.5),
    ExtractionStep('Identifying form type...', 0.4),
    ExtractionStep('Reading field values...', 0.8),
    ExtractionStep('Validating extracted data...', 0.3),
]

# Real documents report their own steps; durations are unused there
DOCUMENT_STEPS: List[ExtractionStep] = [
    ExtractionStep('Reading document...', 0.5),
    ExtractionStep('Extracting text...', 0.4),
    ExtractionStep('Identifying fields...', 0.8),
    ExtractionStep('Validating extracted data...', 0.3),
]

StepSink = Callable[[StepEvent], None]
OCRFunction = Callable[[bytes], str]
Document = Union[DocumentSource, bytes, bytearray, None]


@dataclass
class EngineConfig:
    """Configuration for the extraction engine."""

    # Below this many stripped characters a PDF text layer counts as scanned
    min_text_chars: int = 50

    # Simulated path pacing
    simulate_delays: bool = True
    step_delay_scale: float = 1.0

    # OCR settings
    ocr_language: str = 'eng'
    ocr_dpi: int = 300

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'EngineConfig':
        data = data or {}
        return cls(
            min_text_chars=int(data.get('min_text_chars', cls.min_text_chars)),
            simulate_delays=bool(data.get('simulate_delays', cls.simulate_delays)),
            step_delay_scale=float(data.get('step_delay_scale', cls.step_delay_scale)),
            ocr_language=str(data.get('ocr_language', cls.ocr_language)),
            ocr_dpi=int(data.get('ocr_dpi', cls.ocr_dpi)),
        )

    def to_dict(self) -> dict:
        return {
            'min_text_chars': self.min_text_chars,
            'simulate_delays': self.simulate_delays,
            'step_delay_scale': self.step_delay_scale,
            'ocr_language': self.ocr_language,
            'ocr_dpi': self.ocr_dpi,
        }


@dataclass
class Settings:
    """Engine and queue settings loaded together from one YAML file."""

    engine: EngineConfig = field(default_factory=EngineConfig)
    queue: QueueConfig = field(default_factory=QueueConfig)


def load_settings(config_path: Optional[Union[str, Path]] = None) -> Settings:
    """
    Load settings from a YAML file with `engine:` and `queue:` sections.

    Missing file argument gives the defaults; missing keys keep their
    defaults.
    """
    if config_path is None:
        return Settings()

    logger.info(f"Loading settings from: {config_path}")
    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
    except Exception as e:
        logger.error(f"Failed to load settings: {e}")
        raise

    return Settings(
        engine=EngineConfig.from_dict(data.get('engine')),
        queue=QueueConfig.from_dict(data.get('queue')),
    )


def compute_overall_confidence(fields: List[ExtractionField]) -> int:
    """
    Weighted mean of field confidences scaled to 0-100.

    HIGH=1.0, MEDIUM=0.7, LOW=0.3; halves round up. Empty list gives 0.
    """
    if not fields:
        return 0
    total = sum(f.confidence.weight for f in fields)
    return int(math.floor(total / len(fields) * 100 + 0.5))


def generate_warnings(fields: List[ExtractionField]) -> List[str]:
    """At most two warnings: low-confidence fields and undetected fields."""
    warnings = []

    low = sum(1 for f in fields if f.confidence == Confidence.LOW)
    if low:
        verb = 's have' if low > 1 else ' has'
        warnings.append(f"{low} field{verb} low confidence and may need manual review.")

    missing = sum(1 for f in fields if f.is_missing)
    if missing:
        verb = 's were' if missing > 1 else ' was'
        warnings.append(f"{missing} field{verb} not detected. Please fill in manually.")

    return warnings


class ExtractionEngine:
    """
    Extracts structured fields from one tax document.

    Usage:
        engine = ExtractionEngine()
        result = engine.extract('w2', DocumentSource.from_path(Path('w2.pdf')))
        print(result.overall_confidence, result.warnings)

    The engine holds no per-document state, so one instance can serve many
    concurrent jobs. The OCR collaborator is created on first use unless one
    is injected; creating it raises OCRUnavailableError when Tesseract is
    missing.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        ocr: Optional[OCRFunction] = None,
        registry: Optional[FormTemplateRegistry] = None,
        rng: Optional[random.Random] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        self.config = config or EngineConfig()
        self.registry = registry or FormTemplateRegistry.get_instance()
        self.mapper = FieldMapper(self.registry)
        self.pdf_parser = PDFContentParser()

        self._ocr = ocr
        self._ocr_lock = threading.Lock()
        self._rng = rng or random.Random()
        self._sleep = sleep or time.sleep

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def extract(
        self,
        form_type: Union[TaxFormType, str],
        document: Document = None,
        on_step: Optional[StepSink] = None,
        job_id: Optional[str] = None,
    ) -> ExtractionResult:
        """
        Extract fields for `form_type` from `document`.

        Without a document the simulated path runs instead.

        Raises:
            OCRUnavailableError: If OCR is needed and Tesseract is missing
        """
        source = DocumentSource.coerce(document)
        if source is None:
            return self.simulate(form_type, on_step=on_step, job_id=job_id)

        logger.info(f"Extracting {self._form_label(form_type)} from {source.filename or 'unnamed document'} ({len(source)} bytes)")

        self._emit(on_step, DOCUMENT_STEPS, 0, job_id)

        self._emit(on_step, DOCUMENT_STEPS, 1, job_id)
        text, method = self.extract_text(source)

        self._emit(on_step, DOCUMENT_STEPS, 2, job_id)
        fields = self.mapper.extract_fields(text, form_type)

        self._emit(on_step, DOCUMENT_STEPS, 3, job_id)
        result = self._build_result(form_type, fields)

        logger.info(
            f"Extracted {len(fields)} field(s) via {method.value}, "
            f"confidence {result.overall_confidence}%"
        )
        return result

    def simulate(
        self,
        form_type: Union[TaxFormType, str],
        on_step: Optional[StepSink] = None,
        job_id: Optional[str] = None,
    ) -> ExtractionResult:
        """
        Template defaults with randomized confidence (60% HIGH, 30% MEDIUM,
        10% LOW), paced by the step durations.
        """
        for index, step in enumerate(EXTRACTION_STEPS):
            self._emit(on_step, EXTRACTION_STEPS, index, job_id)
            if self.config.simulate_delays:
                self._sleep(step.duration * self.config.step_delay_scale)

        fields = [
            ExtractionField(
                key=pattern.key,
                value=pattern.default_value,
                confidence=self._random_confidence(),
            )
            for pattern in self.registry.get(form_type)
        ]

        logger.debug(f"Simulated {len(fields)} field(s) for {self._form_label(form_type)}")
        return self._build_result(form_type, fields)

    def extract_text(self, source: DocumentSource):
        """
        Document text and the method that produced it.

        Images go straight to OCR. Everything else tries the PDF content
        parser first and falls back to OCR when the text layer is too short.
        """
        if source.is_image:
            return self._run_ocr(source.data), ExtractionMethod.OCR

        text = self.pdf_parser.extract_text(source.data)
        if len(text.strip()) >= self.config.min_text_chars:
            return text, ExtractionMethod.TEXT_LAYER

        logger.info(
            f"Text layer has {len(text.strip())} chars (< {self.config.min_text_chars}); "
            f"treating as scanned and running OCR"
        )
        return self._run_ocr(source.data), ExtractionMethod.OCR

    def supported_types(self) -> List[TaxFormType]:
        return self.registry.supported_types()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @property
    def ocr(self) -> OCRFunction:
        with self._ocr_lock:
            if self._ocr is None:
                extractor = OCRExtractor(OCRConfig(
                    language=self.config.ocr_language,
                    dpi=self.config.ocr_dpi,
                ))
                self._ocr = extractor.extract_text_from_image
            return self._ocr

    def _run_ocr(self, data: bytes) -> str:
        return self.ocr(data) or ''

    def _random_confidence(self) -> Confidence:
        roll = self._rng.random()
        if roll < 0.6:
            return Confidence.HIGH
        if roll < 0.9:
            return Confidence.MEDIUM
        return Confidence.LOW

    def _build_result(self, form_type, fields: List[ExtractionField]) -> ExtractionResult:
        if not self.registry.supports(form_type):
            logger.warning(f"No field template for {self._form_label(form_type)}; result is empty")

        return ExtractionResult(
            fields=fields,
            overall_confidence=compute_overall_confidence(fields),
            form_type=TaxFormType.coerce(form_type) or form_type,
            warnings=generate_warnings(fields),
        )

    @staticmethod
    def _emit(
        on_step: Optional[StepSink],
        steps: List[ExtractionStep],
        index: int,
        job_id: Optional[str],
    ) -> None:
        if on_step is not None:
            on_step(StepEvent(index=index, step=steps[index], job_id=job_id))

    @staticmethod
    def _form_label(form_type) -> str:
        member = TaxFormType.coerce(form_type) if form_type is not None else None
        return member.label if member else str(form_type)


# Convenience functions

_default_engine: Optional[ExtractionEngine] = None


def _get_default_engine() -> ExtractionEngine:
    global _default_engine
    if _default_engine is None:
        _default_engine = ExtractionEngine()
    return _default_engine


def extract_document(
    form_type: Union[TaxFormType, str],
    document: Document = None,
    on_step: Optional[StepSink] = None,
) -> ExtractionResult:
    """
    Extract one document with a shared default engine.

    Args:
        form_type: Form type enum or tag
        document: DocumentSource or raw bytes; None runs the simulated path
        on_step: Receives one StepEvent per step, in order

    Returns:
        ExtractionResult
    """
    return _get_default_engine().extract(form_type, document, on_step=on_step)


def get_supported_extraction_types() -> List[TaxFormType]:
    """Form types that have an extraction template."""
    return _get_default_engine().supported_types()
