"""
OCR Worker Loop.

Pulls jobs from the queue and runs the pipeline on each. A failure of
one job never stops the batch: every pipeline exception is caught at
the single-job boundary and handed to the queue, which decides between
a delayed retry and terminal failure.

A worker owns a lock that allows one batch in flight per worker object
(per process, in practice). It only saves redundant scheduling; the
queue's atomic claim is what keeps two workers off the same job.
"""

import threading
from typing import Optional

from invoice_intake.job_queue.queue import OcrJobQueue
from invoice_intake.storage.repository import InvoiceRepository
from invoice_intake.utils.exceptions import InvoiceIntakeError, JobClaimContentionError
from invoice_intake.utils.logger import get_logger

from .pipeline import InvoiceOcrPipeline

# Initialize module logger
logger = get_logger(__name__)


class OcrWorker:
    """
    Processes queued OCR jobs.

    Example:
        >>> worker = OcrWorker(queue, pipeline, repository)
        >>> worker.run_batch("api-runner", max_jobs=10)
        4
    """

    def __init__(
        self,
        queue: OcrJobQueue,
        pipeline: InvoiceOcrPipeline,
        repository: InvoiceRepository,
        batch_lock: Optional[threading.Lock] = None,
    ):
        self.queue = queue
        self.pipeline = pipeline
        self.repository = repository
        self.batch_lock = batch_lock or threading.Lock()

    def process_single_job(self, worker_id: str) -> bool:
        """
        Claim and process one job.

        Args:
            worker_id: Identifier recorded on the job lease.

        Returns:
            True if a job was claimed (whatever its outcome), False if
            the queue had no eligible job.

        Raises:
            JobClaimContentionError: If the claim kept losing races.
        """
        job = self.queue.claim_next(worker_id)
        if job is None:
            return False

        try:
            self.pipeline.process_invoice(job.invoice_id)
        except InvoiceIntakeError as e:
            self._handle_failure(job, str(e))
        except Exception as e:
            logger.exception(f"Unexpected error processing job {job.id}")
            self._handle_failure(job, f"{type(e).__name__}: {e}")
        else:
            self.queue.complete(job.id)

        return True

    def _handle_failure(self, job, message: str) -> None:
        retry_scheduled = self.queue.fail(job, message)
        if not retry_scheduled:
            self.repository.mark_error(job.invoice_id)

    def run_batch(self, worker_id: str, max_jobs: int = 5) -> int:
        """
        Process up to ``max_jobs`` jobs, stopping early when the queue is empty.

        Returns immediately with 0 when another batch of this worker is
        already running. A claim that loses every race uses up one slot
        but does not end the batch.

        Returns:
            Number of jobs processed.
        """
        if not self.batch_lock.acquire(blocking=False):
            logger.debug(f"Batch already in flight, {worker_id} skipped")
            return 0

        processed = 0
        try:
            for _ in range(max_jobs):
                try:
                    found = self.process_single_job(worker_id)
                except JobClaimContentionError as e:
                    # Other workers hold the candidates; the queue is not empty.
                    logger.debug(f"{e}, continuing batch")
                    continue
                if not found:
                    break
                processed += 1
        finally:
            self.batch_lock.release()

        if processed:
            logger.info(f"Worker {worker_id} processed {processed} job(s)")
        return processed

    def trigger_in_background(self, worker_id: str = "web", max_jobs: int = 3) -> threading.Thread:
        """
        Start a batch on a daemon thread and return immediately.

        Returns:
            The started thread.
        """
        thread = threading.Thread(
            target=self._run_batch_logged,
            args=(worker_id, max_jobs),
            name=f"ocr-{worker_id}",
            daemon=True,
        )
        thread.start()
        return thread

    def _run_batch_logged(self, worker_id: str, max_jobs: int) -> None:
        try:
            self.run_batch(worker_id, max_jobs)
        except InvoiceIntakeError as e:
            logger.error(f"Background batch {worker_id} aborted: {e}")
