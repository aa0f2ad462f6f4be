"""
Timeout Manager - reclaims media jobs stuck in 'processing'

A run that crashes or is killed after claiming a job leaves it in 'processing'.
Each pipeline run first sweeps jobs whose last attempt started more than
processing_timeout_seconds ago:
- retries left: back to 'uploaded' with retry_count + 1 (backoff applies)
- retries exhausted: 'failed' with max_retries_exceeded
"""
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..database.media_job_store import MediaJobStore
from ..database.models import OwnerProcessingStatus
from ..utils.config import PipelineSettings
from ..utils.logger import setup_worker_logger
from ..utils.time_utils import utc_now

logger = setup_worker_logger('timeout_manager')

REQUEUED = 'requeued'
FAILED = 'failed'


class StaleJobReclaimer:
    """Requeues or fails media jobs that exceeded the processing timeout"""

    def __init__(self, settings: PipelineSettings, reflector):
        self.settings = settings
        self.reflector = reflector

    def get_cutoff(self, now: datetime) -> datetime:
        return now - timedelta(seconds=self.settings.processing_timeout_seconds)

    def _handle_stale_job(self, store: MediaJobStore, session: Session, job, now: datetime) -> str:
        timeout = self.settings.processing_timeout_seconds
        if int(job.retry_count or 0) >= self.settings.max_retries:
            store.fail_max_retries(
                job,
                f"Processing exceeded timeout ({timeout}s) after {job.retry_count} retries.",
                now,
            )
            self.reflector.set_processing_status(
                session, job.owner_type, job.owner_id, OwnerProcessingStatus.FAILED
            )
            return FAILED

        store.requeue_after_timeout(job, timeout, now)
        self.reflector.set_processing_status(
            session, job.owner_type, job.owner_id, OwnerProcessingStatus.PROCESSING
        )
        return REQUEUED

    def reclaim(self, session: Session, media_type: str,
                now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """Sweep stale 'processing' jobs of one media type.

        Each job is committed on its own; a failure on one job is rolled back
        and the sweep moves on.
        """
        now = now or utc_now()
        store = MediaJobStore(session)
        stale_jobs = store.find_stale_processing(media_type, self.get_cutoff(now))
        if stale_jobs:
            logger.warning(f"Found {len(stale_jobs)} stale {media_type} jobs in processing")

        reclaimed = []
        for job in stale_jobs:
            job_id = job.id
            try:
                action = self._handle_stale_job(store, session, job, now)
                session.commit()
                reclaimed.append({'id': job_id, 'action': action})
                logger.info(f"Stale {media_type} job {job_id} {action} (retry_count={job.retry_count})")
            except Exception as e:
                session.rollback()
                logger.error(f"Error reclaiming stale job {job_id}: {str(e)}")
                continue

        return reclaimed
