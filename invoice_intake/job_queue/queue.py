"""
Persisted OCR Job Queue.

Jobs live in the ``ocr_jobs`` table. Any number of workers, in any
number of processes, may claim concurrently: a job is handed to exactly
one of them.

Claim protocol, in one transaction:
    1. Select the oldest highest-priority PENDING job whose available_at
       has passed, with FOR UPDATE SKIP LOCKED where the dialect has it.
    2. Conditionally update it to RUNNING (WHERE status = 'PENDING'),
       stamping the lease and incrementing attempts.
    3. If the update touched no row another worker won the race; try
       the next candidate, up to ``queue.claim_retries`` times, then
       raise JobClaimContentionError.

Failed attempts are retried after min(cap, base ** attempts) seconds
until max_attempts is reached.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple

from config import get_config
from invoice_intake.enums import LIVE_JOB_STATUSES, JobStatus
from invoice_intake.storage.database import DatabaseHandler
from invoice_intake.storage.models import OcrJob
from invoice_intake.utils.exceptions import JobClaimContentionError
from invoice_intake.utils.helpers import utcnow
from invoice_intake.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)

MAX_ERROR_LENGTH = 2000


def compute_backoff(attempts: int, base: int = 2, cap: int = 300) -> int:
    """
    Delay in seconds before a failed job may be claimed again.

    Example:
        >>> [compute_backoff(n) for n in (1, 2, 3, 8, 9)]
        [2, 4, 8, 256, 300]
    """
    return min(cap, base ** attempts)


@dataclass(frozen=True)
class ClaimedJob:
    """Snapshot of a job at claim time, safe to pass between threads."""
    id: str
    invoice_id: str
    attempts: int
    max_attempts: int
    locked_by: str

    @property
    def is_last_attempt(self) -> bool:
        return self.attempts >= self.max_attempts


class OcrJobQueue:
    """
    Storage-backed queue of OCR jobs.

    Example:
        >>> queue = OcrJobQueue(DatabaseHandler())
        >>> queue.enqueue(invoice.id)
        '5f0c...'
        >>> job = queue.claim_next("worker-1")
        >>> queue.complete(job.id)
    """

    def __init__(
        self,
        database: DatabaseHandler,
        max_attempts: Optional[int] = None,
        backoff_base: Optional[int] = None,
        backoff_cap: Optional[int] = None,
        claim_retries: Optional[int] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.database = database
        self.max_attempts = max_attempts or get_config("queue.max_attempts", 3)
        self.backoff_base = backoff_base or get_config("queue.backoff_base", 2)
        self.backoff_cap = backoff_cap or get_config("queue.backoff_cap_seconds", 300)
        self.claim_retries = max(1, claim_retries or get_config("queue.claim_retries", 5))
        self.clock = clock

    def enqueue(self, invoice_id: str, priority: int = 0) -> Optional[str]:
        """
        Add a PENDING job for an invoice.

        Does nothing when the invoice already has a PENDING or RUNNING
        job. The check and the insert are not atomic, so two concurrent
        enqueues for one invoice can both insert.

        Returns:
            The new job id, or None when a live job already exists.
        """
        now = self.clock()
        with self.database.session_scope() as session:
            existing = (
                session.query(OcrJob.id)
                .filter(OcrJob.invoice_id == invoice_id, OcrJob.status.in_(LIVE_JOB_STATUSES))
                .first()
            )
            if existing is not None:
                logger.debug(f"Invoice {invoice_id} already has live job {existing.id}")
                return None

            job = OcrJob(
                invoice_id=invoice_id,
                status=JobStatus.PENDING,
                priority=priority,
                attempts=0,
                max_attempts=self.max_attempts,
                available_at=now,
                created_at=now,
                updated_at=now,
            )
            session.add(job)
            session.flush()
            job_id = job.id

        logger.info(f"Enqueued OCR job {job_id} for invoice {invoice_id} (priority {priority})")
        return job_id

    def claim_next(self, worker_id: str) -> Optional[ClaimedJob]:
        """
        Atomically claim the next eligible job.

        Args:
            worker_id: Identifier stored in ``locked_by``.

        Returns:
            ClaimedJob, or None when no job is eligible.

        Raises:
            JobClaimContentionError: If every attempt lost its race to
                another worker; jobs may still be eligible.
        """
        for _ in range(self.claim_retries):
            now = self.clock()
            with self.database.session_scope() as session:
                query = (
                    session.query(OcrJob)
                    .filter(OcrJob.status == JobStatus.PENDING, OcrJob.available_at <= now)
                    .order_by(OcrJob.priority.desc(), OcrJob.created_at.asc())
                )
                if self.database.supports_skip_locked:
                    query = query.with_for_update(skip_locked=True)

                candidate = query.first()
                if candidate is None:
                    return None

                updated = (
                    session.query(OcrJob)
                    .filter(OcrJob.id == candidate.id, OcrJob.status == JobStatus.PENDING)
                    .update(
                        {
                            OcrJob.status: JobStatus.RUNNING,
                            OcrJob.locked_at: now,
                            OcrJob.locked_by: worker_id,
                            OcrJob.attempts: OcrJob.attempts + 1,
                            OcrJob.updated_at: now,
                        },
                        synchronize_session=False,
                    )
                )
                if updated != 1:
                    logger.debug(f"Worker {worker_id} lost the claim on job {candidate.id}, retrying")
                    continue

                attempts, max_attempts = (
                    session.query(OcrJob.attempts, OcrJob.max_attempts)
                    .filter(OcrJob.id == candidate.id)
                    .one()
                )
                claimed = ClaimedJob(
                    id=candidate.id,
                    invoice_id=candidate.invoice_id,
                    attempts=attempts,
                    max_attempts=max_attempts,
                    locked_by=worker_id,
                )

            logger.info(
                f"Worker {worker_id} claimed job {claimed.id} for invoice {claimed.invoice_id} "
                f"(attempt {claimed.attempts}/{claimed.max_attempts})"
            )
            return claimed

        logger.warning(f"Worker {worker_id} gave up claiming after {self.claim_retries} lost races")
        raise JobClaimContentionError(worker_id, self.claim_retries)

    def complete(self, job_id: str) -> bool:
        """Mark a RUNNING job DONE and clear its lease and error."""
        now = self.clock()
        with self.database.session_scope() as session:
            updated = (
                session.query(OcrJob)
                .filter(OcrJob.id == job_id, OcrJob.status == JobStatus.RUNNING)
                .update(
                    {
                        OcrJob.status: JobStatus.DONE,
                        OcrJob.locked_at: None,
                        OcrJob.locked_by: None,
                        OcrJob.last_error: None,
                        OcrJob.updated_at: now,
                    },
                    synchronize_session=False,
                )
            )
        if updated:
            logger.info(f"Job {job_id} done")
        else:
            logger.warning(f"Job {job_id} was not RUNNING when completed")
        return bool(updated)

    def fail(self, job: ClaimedJob, error: str) -> bool:
        """
        Record a failed attempt.

        The job goes back to PENDING with a backoff delay while attempts
        remain, otherwise it becomes FAILED.

        Returns:
            True if a retry was scheduled, False if the job is FAILED.
        """
        now = self.clock()
        error = (error or "unknown error")[:MAX_ERROR_LENGTH]

        with self.database.session_scope() as session:
            row = session.get(OcrJob, job.id)
            if row is None:
                logger.warning(f"Job {job.id} vanished before its failure was recorded")
                return False

            row.locked_at = None
            row.locked_by = None
            row.last_error = error
            row.updated_at = now

            if row.attempts < row.max_attempts:
                delay = compute_backoff(row.attempts, self.backoff_base, self.backoff_cap)
                row.status = JobStatus.PENDING
                row.available_at = now + timedelta(seconds=delay)
                logger.warning(
                    f"Job {job.id} attempt {row.attempts}/{row.max_attempts} failed, "
                    f"retrying in {delay}s: {error}"
                )
                return True

            row.status = JobStatus.FAILED
            logger.error(f"Job {job.id} failed after {row.attempts} attempt(s): {error}")
            return False

    def release_expired_leases(self, timeout_seconds: Optional[int] = None) -> Tuple[int, List[str]]:
        """
        Recover jobs left RUNNING by a crashed worker.

        Leases older than the timeout go back to PENDING, or to FAILED
        when the job has no attempts left.

        Args:
            timeout_seconds: Lease age limit; defaults to
                ``queue.lease_timeout_seconds``.

        Returns:
            Tuple of (requeued job count, invoice ids of jobs that failed).
        """
        timeout_seconds = timeout_seconds or get_config("queue.lease_timeout_seconds", 600)
        now = self.clock()
        cutoff = now - timedelta(seconds=timeout_seconds)

        requeued = 0
        failed_invoices = []
        with self.database.session_scope() as session:
            expired = (
                session.query(OcrJob)
                .filter(OcrJob.status == JobStatus.RUNNING, OcrJob.locked_at < cutoff)
                .all()
            )
            for row in expired:
                row.last_error = f"lease held by {row.locked_by} expired"
                row.locked_at = None
                row.locked_by = None
                row.updated_at = now
                if row.attempts < row.max_attempts:
                    row.status = JobStatus.PENDING
                    row.available_at = now
                    requeued += 1
                else:
                    row.status = JobStatus.FAILED
                    failed_invoices.append(row.invoice_id)

        if expired:
            logger.warning(
                f"Released {len(expired)} expired lease(s): {requeued} requeued, "
                f"{len(failed_invoices)} failed"
            )
        return requeued, failed_invoices

    def jobs_for_invoice(self, invoice_id: str) -> List[OcrJob]:
        with self.database.session_scope() as session:
            return (
                session.query(OcrJob)
                .filter(OcrJob.invoice_id == invoice_id)
                .order_by(OcrJob.created_at.asc())
                .all()
            )

    def get_job(self, job_id: str) -> Optional[OcrJob]:
        with self.database.session_scope() as session:
            return session.get(OcrJob, job_id)

    def pending_count(self) -> int:
        with self.database.session_scope() as session:
            return session.query(OcrJob).filter(OcrJob.status == JobStatus.PENDING).count()
