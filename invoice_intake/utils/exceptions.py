"""
Error types raised by the invoice intake system.

Callers catch the narrowest class they can act on. The worker treats
any exception from the pipeline as a retryable job failure, the service
lets InvoiceNotFoundError and InvalidStatusTransitionError reach its
caller, and main.py turns InvoiceIntakeError into exit code 1.

    InvoiceIntakeError
    ├── InputError
    │   ├── DocumentNotFoundError
    │   └── UnsupportedFileTypeError
    ├── OCRError
    │   ├── OCREngineNotAvailableError
    │   └── OCRProcessingError
    ├── StorageError
    │   ├── DatabaseError
    │   ├── InvoiceNotFoundError
    │   └── JobClaimContentionError
    ├── InvalidStatusTransitionError
    └── ConfigurationError
"""

from typing import Any, Dict, Optional


class InvoiceIntakeError(Exception):
    """
    Root of the hierarchy.

    Attributes:
        message: Short description, also used as ``str(error)`` prefix.
        details: Structured context (ids, reasons) for logs.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = {k: v for k, v in (details or {}).items() if v is not None}

    def __str__(self) -> str:
        reason = self.details.get('reason')
        return f"{self.message}: {reason}" if reason else self.message


class InputError(InvoiceIntakeError):
    """Problem with an uploaded or stored document."""


class DocumentNotFoundError(InputError):

    def __init__(self, filepath: str, reason: Optional[str] = None):
        super().__init__(f"Document not found: {filepath}", {'filepath': filepath, 'reason': reason})


class UnsupportedFileTypeError(InputError):
    """Upload extension outside ``storage.allowed_extensions``."""

    def __init__(self, file_type: str, supported_types: list):
        super().__init__(
            f"Unsupported file type '{file_type}' (accepted: {', '.join(supported_types)})",
            {'file_type': file_type, 'supported_types': list(supported_types)},
        )


class OCRError(InvoiceIntakeError):
    """OCR backend failure."""


class OCREngineNotAvailableError(OCRError):
    """The selected backend is missing a binary, a package or credentials."""

    def __init__(self, engine_name: str):
        super().__init__(f"OCR backend unavailable: {engine_name}", {'engine': engine_name})


class OCRProcessingError(OCRError):

    def __init__(self, filename: str, reason: Optional[str] = None):
        super().__init__(f"OCR failed for {filename}", {'filename': filename, 'reason': reason})


class StorageError(InvoiceIntakeError):
    """Record store failure."""


class DatabaseError(StorageError):

    def __init__(self, operation: str, reason: Optional[str] = None):
        super().__init__(f"Database {operation} failed", {'operation': operation, 'reason': reason})


class InvoiceNotFoundError(StorageError):

    def __init__(self, invoice_id: str):
        super().__init__(f"Invoice {invoice_id} not found", {'invoice_id': invoice_id})


class JobClaimContentionError(StorageError):
    """Every claim attempt lost its race; eligible jobs may remain."""

    def __init__(self, worker_id: str, attempts: int):
        super().__init__(
            f"Worker {worker_id} lost {attempts} claim race(s) in a row",
            {'worker_id': worker_id, 'attempts': attempts},
        )


class InvalidStatusTransitionError(InvoiceIntakeError):
    """Requested status change is not in the transition table."""

    def __init__(self, invoice_id: str, current: str, target: str):
        super().__init__(
            f"Invoice {invoice_id} cannot go from {current} to {target}",
            {'invoice_id': invoice_id, 'current': current, 'target': target},
        )


class ConfigurationError(InvoiceIntakeError):

    def __init__(self, key: str, reason: Optional[str] = None):
        super().__init__(f"Bad setting '{key}'", {'key': key, 'reason': reason})
