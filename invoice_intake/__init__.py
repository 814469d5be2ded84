"""
Invoice Intake System.

Uploads invoice documents, runs them through OCR from a persisted job
queue, extracts and validates their fields, classifies them by company
and routes low-confidence results to human review.
"""

__version__ = "1.0.0"
