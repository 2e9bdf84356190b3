"""
Extraction Scheduling

Bounded-concurrency queue for running many document extractions, with
retry and exponential backoff for transient failures.
"""

from .extraction_queue import (
    ExtractionQueue,
    QueueConfig,
    JobOutcome,
    JobStatus,
)
from .retry import (
    ExponentialBackoff,
)

__all__ = [
    'ExtractionQueue',
    'QueueConfig',
    'JobOutcome',
    'JobStatus',
    'ExponentialBackoff',
]
