"""
Record Store Repositories.

Query helpers for invoices and the vendor directory. Every method opens
its own transactional session through DatabaseHandler.session_scope(),
and returns detached ORM objects (sessions do not expire on commit).
"""

from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError

from invoice_intake.enums import InvoiceCompany, InvoiceStatus, can_transition
from invoice_intake.utils.exceptions import InvalidStatusTransitionError, InvoiceNotFoundError
from invoice_intake.utils.helpers import utcnow
from invoice_intake.utils.logger import get_logger

from .database import DatabaseHandler
from .models import Invoice, VendorContact

# Initialize module logger
logger = get_logger(__name__)

# Fields a user may correct by hand.
EDITABLE_FIELDS = frozenset({
    'vendor', 'client_name', 'invoice_number', 'amount', 'vat_amount', 'date',
    'iban', 'email', 'phone', 'siret', 'address', 'company', 'category',
})


class InvoiceRepository:
    """
    CRUD and workflow queries on invoice records.

    Example:
        >>> repo = InvoiceRepository(DatabaseHandler())
        >>> invoice = repo.create("a1b2.pdf", "facture.pdf", "application/pdf", 1024)
        >>> repo.get_status(invoice.id)
        <InvoiceStatus.PROCESSING: 'PROCESSING'>
    """

    def __init__(self, database: DatabaseHandler):
        self.database = database

    def create(
        self,
        filename: str,
        original_name: str,
        mime_type: Optional[str] = None,
        size: Optional[int] = None,
        cabinet_id: Optional[str] = None,
    ) -> Invoice:
        """Insert a new invoice in PROCESSING."""
        invoice = Invoice(
            filename=filename,
            original_name=original_name,
            mime_type=mime_type,
            size=size,
            cabinet_id=cabinet_id,
            status=InvoiceStatus.PROCESSING,
            company=InvoiceCompany.UNKNOWN,
        )
        with self.database.session_scope() as session:
            session.add(invoice)
        logger.info(f"Created invoice {invoice.id} for {original_name!r}")
        return invoice

    def get(self, invoice_id: str) -> Invoice:
        """
        Fetch an invoice.

        Raises:
            InvoiceNotFoundError: If no invoice has this id.
        """
        with self.database.session_scope() as session:
            invoice = session.get(Invoice, invoice_id)
            if invoice is None:
                raise InvoiceNotFoundError(invoice_id)
            return invoice

    def get_status(self, invoice_id: str) -> InvoiceStatus:
        return self.get(invoice_id).status

    def apply_ocr_result(
        self,
        invoice_id: str,
        ocr_text: str,
        fields: Dict[str, Any],
        confidence: int,
        company: InvoiceCompany,
        status: InvoiceStatus,
        ocr_data: Dict[str, Any],
    ) -> Invoice:
        """
        Write the outcome of a successful OCR pass.

        Args:
            invoice_id: Invoice to update.
            ocr_text: Normalized OCR text.
            fields: Extracted field values keyed by column name.
            confidence: Extractor confidence.
            company: Classified company.
            status: TO_PROCESS or PROCESSED.
            ocr_data: Review flag and per-field confidence.

        Raises:
            InvoiceNotFoundError: If the invoice was deleted meanwhile.
            InvalidStatusTransitionError: If the invoice is no longer
                PROCESSING.
        """
        with self.database.session_scope() as session:
            invoice = session.get(Invoice, invoice_id)
            if invoice is None:
                raise InvoiceNotFoundError(invoice_id)
            self._check_transition(invoice, status)

            invoice.ocr_text = ocr_text
            for name, value in fields.items():
                setattr(invoice, name, value)
            invoice.confidence = confidence
            invoice.company = company
            invoice.status = status
            invoice.ocr_data = ocr_data
            return invoice

    def set_status(self, invoice_id: str, status: InvoiceStatus) -> Invoice:
        """
        Move an invoice to a new status.

        Raises:
            InvoiceNotFoundError: If no invoice has this id.
            InvalidStatusTransitionError: If the move is not allowed.
        """
        with self.database.session_scope() as session:
            invoice = session.get(Invoice, invoice_id)
            if invoice is None:
                raise InvoiceNotFoundError(invoice_id)
            self._check_transition(invoice, status)
            invoice.status = status
            return invoice

    def mark_error(self, invoice_id: str) -> bool:
        """
        Set an invoice to ERROR after its OCR job failed for good.

        Returns:
            False if the invoice is gone or not in PROCESSING.
        """
        with self.database.session_scope() as session:
            invoice = session.get(Invoice, invoice_id)
            if invoice is None:
                logger.warning(f"Cannot mark missing invoice {invoice_id} as ERROR")
                return False
            if not can_transition(invoice.status, InvoiceStatus.ERROR):
                logger.warning(
                    f"Invoice {invoice_id} is {invoice.status.value}, not marking it ERROR"
                )
                return False
            invoice.status = InvoiceStatus.ERROR
            return True

    def validate(self, invoice_ids: Iterable[str]) -> Tuple[List[str], List[str]]:
        """
        Bulk-validate invoices.

        Returns:
            Tuple of (validated ids, skipped ids). Missing invoices and
            invoices not in TO_PROCESS or PROCESSED are skipped.
        """
        validated, skipped = [], []
        with self.database.session_scope() as session:
            for invoice_id in invoice_ids:
                invoice = session.get(Invoice, invoice_id)
                if invoice is None or not can_transition(invoice.status, InvoiceStatus.VALIDATED):
                    skipped.append(invoice_id)
                    continue
                invoice.status = InvoiceStatus.VALIDATED
                validated.append(invoice_id)
        logger.info(f"Validated {len(validated)} invoice(s), skipped {len(skipped)}")
        return validated, skipped

    def categorize(self, invoice_ids: Iterable[str], category: Optional[str]) -> int:
        """Set the free-form category on invoices; returns the number updated."""
        ids = list(invoice_ids)
        with self.database.session_scope() as session:
            updated = (
                session.query(Invoice)
                .filter(Invoice.id.in_(ids))
                .update({Invoice.category: category}, synchronize_session=False)
            )
        return updated

    def update_fields(self, invoice_id: str, **fields: Any) -> Invoice:
        """
        Manual correction of extracted fields (last write wins).

        Raises:
            InvoiceNotFoundError: If no invoice has this id.
            ValueError: If a field is not editable.
        """
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields not editable: {sorted(unknown)}")

        if isinstance(fields.get('date'), str):
            fields['date'] = date.fromisoformat(fields['date'])
        if 'company' in fields and fields['company'] is not None:
            fields['company'] = InvoiceCompany(fields['company'])

        with self.database.session_scope() as session:
            invoice = session.get(Invoice, invoice_id)
            if invoice is None:
                raise InvoiceNotFoundError(invoice_id)
            for name, value in fields.items():
                setattr(invoice, name, value)
            return invoice

    def delete(self, invoice_ids: Iterable[str]) -> List[str]:
        """
        Delete invoices and their jobs.

        Returns:
            Stored filenames of the deleted invoices, for file cleanup.
        """
        filenames = []
        with self.database.session_scope() as session:
            for invoice_id in invoice_ids:
                invoice = session.get(Invoice, invoice_id)
                if invoice is None:
                    continue
                filenames.append(invoice.filename)
                session.delete(invoice)
        logger.info(f"Deleted {len(filenames)} invoice(s)")
        return filenames

    def list_unclassified(self) -> List[Invoice]:
        """Invoices whose company is UNKNOWN, newest first."""
        with self.database.session_scope() as session:
            return (
                session.query(Invoice)
                .filter(Invoice.company == InvoiceCompany.UNKNOWN)
                .order_by(Invoice.created_at.desc())
                .all()
            )

    def list_with_ocr_text(self, known_company_only: bool = False) -> List[Invoice]:
        """Invoices that already went through OCR."""
        with self.database.session_scope() as session:
            query = session.query(Invoice).filter(Invoice.ocr_text.isnot(None))
            if known_company_only:
                query = query.filter(Invoice.company != InvoiceCompany.UNKNOWN)
            return query.order_by(Invoice.created_at.asc()).all()

    @staticmethod
    def _check_transition(invoice: Invoice, target: InvoiceStatus) -> None:
        if not can_transition(invoice.status, target):
            raise InvalidStatusTransitionError(invoice.id, invoice.status.value, InvoiceStatus(target).value)


class VendorDirectory:
    """
    Denormalized vendor contacts, keyed by (vendor name, cabinet).

    Example:
        >>> directory = VendorDirectory(DatabaseHandler())
        >>> directory.upsert("SOFIANE TRANSPORT SARL", "cab-1", email="contact@sofiane.fr")
    """

    def __init__(self, database: DatabaseHandler):
        self.database = database

    def upsert(
        self,
        name: str,
        cabinet_id: str,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        siret: Optional[str] = None,
        address: Optional[str] = None,
    ) -> VendorContact:
        """
        Insert or update a vendor contact.

        Only non-empty contact values overwrite stored ones, so running
        the same upsert twice leaves the row unchanged.
        """
        contact_fields = {'email': email, 'phone': phone, 'siret': siret, 'address': address}
        try:
            return self._upsert_once(name, cabinet_id, contact_fields)
        except IntegrityError:
            # A concurrent insert won the unique key; the row exists now.
            logger.debug(f"Vendor {name!r} inserted concurrently, updating instead")
            return self._upsert_once(name, cabinet_id, contact_fields)

    def _upsert_once(self, name: str, cabinet_id: str, contact_fields: Dict[str, Any]) -> VendorContact:
        session = self.database.SessionLocal()
        try:
            contact = (
                session.query(VendorContact)
                .filter(VendorContact.name == name, VendorContact.cabinet_id == cabinet_id)
                .one_or_none()
            )
            if contact is None:
                contact = VendorContact(name=name, cabinet_id=cabinet_id)
                session.add(contact)
            for field_name, value in contact_fields.items():
                if value:
                    setattr(contact, field_name, value)
            contact.updated_at = utcnow()
            session.commit()
            return contact
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def get(self, name: str, cabinet_id: str) -> Optional[VendorContact]:
        with self.database.session_scope() as session:
            return (
                session.query(VendorContact)
                .filter(VendorContact.name == name, VendorContact.cabinet_id == cabinet_id)
                .one_or_none()
            )
