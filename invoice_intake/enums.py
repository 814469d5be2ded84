"""
Shared enumerations for invoices, companies and OCR jobs.
"""

from enum import Enum
from typing import Dict, FrozenSet


class InvoiceStatus(str, Enum):
    """Lifecycle status of an uploaded invoice."""

    TO_PROCESS = "TO_PROCESS"
    PROCESSING = "PROCESSING"
    PROCESSED = "PROCESSED"
    ERROR = "ERROR"
    VALIDATED = "VALIDATED"


class InvoiceCompany(str, Enum):
    """Business entity an invoice is filed under."""

    SOFIA_TRANSPORT = "SOFIA_TRANSPORT"
    SOFIANE_TRANSPORT = "SOFIANE_TRANSPORT"
    GARAGE_EXPERTISE = "GARAGE_EXPERTISE"
    UNKNOWN = "UNKNOWN"


class JobStatus(str, Enum):
    """Status of a persisted OCR job."""

    PENDING = "PENDING"
    RUNNING = "RUNNING"
    DONE = "DONE"
    FAILED = "FAILED"


# Transitions driven by the OCR pipeline, plus manual validation and retry.
# VALIDATED and ERROR are never left automatically; ERROR only goes back to
# PROCESSING through an explicit re-enqueue.
INVOICE_STATUS_TRANSITIONS: Dict[InvoiceStatus, FrozenSet[InvoiceStatus]] = {
    InvoiceStatus.PROCESSING: frozenset({
        InvoiceStatus.PROCESSED,
        InvoiceStatus.TO_PROCESS,
        InvoiceStatus.ERROR,
    }),
    InvoiceStatus.TO_PROCESS: frozenset({InvoiceStatus.VALIDATED, InvoiceStatus.PROCESSING}),
    InvoiceStatus.PROCESSED: frozenset({InvoiceStatus.VALIDATED, InvoiceStatus.PROCESSING}),
    InvoiceStatus.ERROR: frozenset({InvoiceStatus.PROCESSING}),
    InvoiceStatus.VALIDATED: frozenset(),
}

LIVE_JOB_STATUSES = (JobStatus.PENDING, JobStatus.RUNNING)


def can_transition(current: InvoiceStatus, target: InvoiceStatus) -> bool:
    """True if an invoice may move from current to target."""
    return target in INVOICE_STATUS_TRANSITIONS.get(InvoiceStatus(current), frozenset())
