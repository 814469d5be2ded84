"""
Worker Module.

OCR pipeline for a single invoice and the worker loop that drives it
from the job queue.
"""

from .pipeline import InvoiceOcrPipeline
from .worker import OcrWorker

__all__ = ['InvoiceOcrPipeline', 'OcrWorker']
