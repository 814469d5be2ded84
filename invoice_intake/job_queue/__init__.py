"""
Job Queue Module.

Persisted OCR job queue with atomic claims, exponential backoff and
lease recovery.
"""

from .queue import ClaimedJob, OcrJobQueue, compute_backoff

__all__ = ['ClaimedJob', 'OcrJobQueue', 'compute_backoff']
