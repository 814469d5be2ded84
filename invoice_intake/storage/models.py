"""
ORM Models.

SQLAlchemy declarative models for the record store:
    - Invoice: one row per uploaded document
    - OcrJob: one row per OCR attempt cycle of an invoice
    - VendorContact: denormalized vendor directory, one row per
      (vendor name, cabinet)
"""

import uuid

from sqlalchemy import (
    JSON,
    Column,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

from invoice_intake.enums import InvoiceCompany, InvoiceStatus, JobStatus
from invoice_intake.utils.helpers import utcnow

Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(String(36), primary_key=True, default=_new_id)
    filename = Column(String(255), nullable=False)
    original_name = Column(String(255), nullable=False)
    mime_type = Column(String(100))
    size = Column(Integer)
    cabinet_id = Column(String(64), index=True)

    ocr_text = Column(Text)
    vendor = Column(String(255))
    client_name = Column(String(255))
    invoice_number = Column(String(100))
    amount = Column(Float)
    vat_amount = Column(Float)
    date = Column(Date)
    iban = Column(String(34))
    email = Column(String(255))
    phone = Column(String(50))
    siret = Column(String(14))
    address = Column(String(255))

    confidence = Column(Integer)
    company = Column(
        Enum(InvoiceCompany, native_enum=False, length=32),
        nullable=False,
        default=InvoiceCompany.UNKNOWN,
    )
    status = Column(
        Enum(InvoiceStatus, native_enum=False, length=16),
        nullable=False,
        default=InvoiceStatus.PROCESSING,
        index=True,
    )
    category = Column(String(100))
    ocr_data = Column(JSON)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    jobs = relationship("OcrJob", back_populates="invoice", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<Invoice {self.id} {self.status.value if self.status else None} {self.original_name!r}>"


class OcrJob(Base):
    __tablename__ = "ocr_jobs"

    id = Column(String(36), primary_key=True, default=_new_id)
    invoice_id = Column(
        String(36),
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status = Column(
        Enum(JobStatus, native_enum=False, length=16),
        nullable=False,
        default=JobStatus.PENDING,
    )
    priority = Column(Integer, nullable=False, default=0)
    attempts = Column(Integer, nullable=False, default=0)
    max_attempts = Column(Integer, nullable=False, default=3)
    available_at = Column(DateTime, nullable=False, default=utcnow)
    locked_at = Column(DateTime)
    locked_by = Column(String(100))
    last_error = Column(Text)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    invoice = relationship("Invoice", back_populates="jobs")

    __table_args__ = (
        Index("ix_ocr_jobs_claim", "status", "available_at", "priority", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<OcrJob {self.id} invoice={self.invoice_id} {self.status.value} attempts={self.attempts}>"


class VendorContact(Base):
    __tablename__ = "vendor_contacts"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(255), nullable=False)
    cabinet_id = Column(String(64), nullable=False)
    email = Column(String(255))
    phone = Column(String(50))
    siret = Column(String(14))
    address = Column(String(255))

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("name", "cabinet_id", name="uq_vendor_contact_name_cabinet"),
    )
