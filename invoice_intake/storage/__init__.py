"""
Storage Module for the Invoice Intake System.

This module provides:
    - SQLAlchemy models for invoices, OCR jobs and vendor contacts
    - Database handler with transactional sessions
    - Invoice repository and vendor directory
    - On-disk document store
"""

from .database import DatabaseHandler
from .document_store import DocumentStore
from .models import Base, Invoice, OcrJob, VendorContact
from .repository import InvoiceRepository, VendorDirectory

__all__ = [
    'DatabaseHandler',
    'DocumentStore',
    'Base',
    'Invoice',
    'OcrJob',
    'VendorContact',
    'InvoiceRepository',
    'VendorDirectory',
]
