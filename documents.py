"""
Document Store

Owns the lifecycle of uploaded tax documents: their raw bytes, detected form
type, latest extraction result and progress, and user confirmation of
extracted fields.

Batch extraction runs through the ExtractionQueue. Each job raises on engine
failure so the queue can retry it; once retries are exhausted the store
substitutes the simulated template result so the user still gets fields to
fill in.
"""

import threading
from dataclasses import dataclass, replace
from typing import Callable, Dict, Iterable, List, Optional, Union

from loguru import logger

from doctypes.document_type import TaxFormType, detect_form_type
from doctypes.results import ExtractionResult, StepEvent, confirm_field
from extractor.utils import DocumentSource
from performance.extraction_queue import ExtractionQueue, QueueConfig
from pipeline import ExtractionEngine


READING_PLACEHOLDER = 'Reading document...'
FALLBACK_WARNING = 'Automatic extraction failed; showing template values.'


class UnknownDocumentError(KeyError):
    """Raised when a document id is not in the store."""

    def __init__(self, doc_id: str):
        super().__init__(doc_id)
        self.doc_id = doc_id

    def __str__(self) -> str:
        return f"Unknown document: {self.doc_id}"


@dataclass
class StoredDocument:
    doc_id: str
    source: DocumentSource
    form_type: TaxFormType
    result: Optional[ExtractionResult] = None
    progress: Optional[str] = None


class DocumentStore:
    """
    In-memory registry of documents keyed by id.

    Usage:
        store = DocumentStore()
        store.add('doc-1', DocumentSource.from_path(Path('w2_2024.pdf')))
        results = store.run_batch(ExtractionEngine(), ['doc-1'])
        store.confirm('doc-1', 'Wages (Box 1)')

    All methods are safe to call from queue worker threads.
    """

    def __init__(self):
        self._docs: Dict[str, StoredDocument] = {}
        self._lock = threading.Lock()

    def add(
        self,
        doc_id: str,
        source: Union[DocumentSource, bytes],
        form_type: Optional[Union[TaxFormType, str]] = None,
    ) -> StoredDocument:
        """
        Register a document, replacing any previous one with the same id.

        The form type defaults to the one detected from the filename.
        """
        source = DocumentSource.coerce(source)
        if form_type is None:
            member = detect_form_type(source.filename)
        else:
            member = TaxFormType.coerce(form_type)
            if member is None:
                raise ValueError(f"Unknown form type: {form_type!r}")

        stored = StoredDocument(doc_id=doc_id, source=source, form_type=member)
        with self._lock:
            self._docs[doc_id] = stored

        logger.debug(f"Stored {doc_id} ({source.filename or 'unnamed'}, {member.label})")
        return stored

    def get(self, doc_id: str) -> StoredDocument:
        with self._lock:
            stored = self._docs.get(doc_id)
        if stored is None:
            raise UnknownDocumentError(doc_id)
        return stored

    def get_source(self, doc_id: str) -> DocumentSource:
        return self.get(doc_id).source

    def form_type(self, doc_id: str) -> TaxFormType:
        return self.get(doc_id).form_type

    def remove(self, doc_id: str) -> bool:
        """Drop the document's bytes and results. False if it was not stored."""
        with self._lock:
            return self._docs.pop(doc_id, None) is not None

    def doc_ids(self) -> List[str]:
        with self._lock:
            return list(self._docs)

    def result(self, doc_id: str) -> Optional[ExtractionResult]:
        return self.get(doc_id).result

    def progress(self, doc_id: str) -> Optional[str]:
        """Label of the last step reported for the document's extraction."""
        return self.get(doc_id).progress

    def set_result(self, doc_id: str, result: ExtractionResult) -> None:
        stored = self.get(doc_id)
        with self._lock:
            stored.result = result
            stored.progress = None

    def confirm(self, doc_id: str, key: str, confirmed: bool = True) -> ExtractionResult:
        """
        Mark one extracted field as confirmed by the user.

        Raises:
            UnknownDocumentError: If the document is not stored
            KeyError: If there is no result yet or it lacks that field
        """
        stored = self.get(doc_id)
        if stored.result is None:
            raise KeyError(f"No extraction result for {doc_id}")

        updated = confirm_field(stored.result, key, confirmed)
        with self._lock:
            stored.result = updated
        return updated

    def confirm_all(self, doc_id: str, confirmed: bool = True) -> ExtractionResult:
        stored = self.get(doc_id)
        if stored.result is None:
            raise KeyError(f"No extraction result for {doc_id}")

        updated = replace(
            stored.result,
            fields=[replace(f, confirmed=confirmed) for f in stored.result.fields],
        )
        with self._lock:
            stored.result = updated
        return updated

    def clear(self) -> None:
        with self._lock:
            self._docs.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._docs)

    def __contains__(self, doc_id: str) -> bool:
        with self._lock:
            return doc_id in self._docs

    # ------------------------------------------------------------------
    # Batch extraction
    # ------------------------------------------------------------------

    def run_batch(
        self,
        engine: ExtractionEngine,
        doc_ids: Optional[Iterable[str]] = None,
        queue_config: Optional[QueueConfig] = None,
        on_step: Optional[Callable[[StepEvent], None]] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> Dict[str, ExtractionResult]:
        """
        Extract the given documents (all stored ones by default).

        Returns:
            Result per document id; documents whose jobs failed get the
            simulated fallback result. Documents removed or replaced while
            the batch runs still appear here but are not written back.

        Raises:
            UnknownDocumentError: If any id is not stored (nothing is run)
        """
        ids = list(doc_ids) if doc_ids is not None else self.doc_ids()
        targets = {doc_id: self.get(doc_id) for doc_id in ids}

        def track(event: StepEvent) -> None:
            stored = targets.get(event.job_id)
            with self._lock:
                if stored is not None and self._docs.get(event.job_id) is stored:
                    stored.progress = event.label
            if on_step is not None:
                on_step(event)

        def run_job(doc_id: str) -> ExtractionResult:
            stored = targets[doc_id]
            placeholder = replace(ExtractionResult.empty(stored.form_type), warnings=[READING_PLACEHOLDER])
            self._store_result(doc_id, stored, placeholder, progress=stored.progress)
            result = engine.extract(stored.form_type, stored.source, on_step=track, job_id=doc_id)
            self._store_result(doc_id, stored, result)
            return result

        with ExtractionQueue(run_job, queue_config, sleep=sleep) as queue:
            outcomes = queue.enqueue(ids).result()

        results: Dict[str, ExtractionResult] = {}
        for outcome in outcomes:
            if outcome.success:
                results[outcome.job_id] = outcome.result
                continue

            logger.warning(
                f"Extraction of {outcome.job_id} failed after {outcome.attempts} attempt(s) "
                f"({outcome.error}); using template values"
            )
            stored = targets[outcome.job_id]
            fallback = engine.simulate(stored.form_type, job_id=outcome.job_id)
            fallback = replace(fallback, warnings=fallback.warnings + [FALLBACK_WARNING])
            self._store_result(outcome.job_id, stored, fallback)
            results[outcome.job_id] = fallback

        logger.info(
            f"Batch finished: {sum(1 for o in outcomes if o.success)}/{len(outcomes)} extracted"
        )
        return results

    def _store_result(
        self,
        doc_id: str,
        stored: StoredDocument,
        result: ExtractionResult,
        progress: Optional[str] = None,
    ) -> bool:
        """Write a batch result unless the document was removed or replaced meanwhile."""
        with self._lock:
            if self._docs.get(doc_id) is not stored:
                logger.debug(f"Document {doc_id} left the store during extraction; result not kept")
                return False
            stored.result = result
            stored.progress = progress
        return True
