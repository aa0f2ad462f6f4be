"""
Media Job Store - reads and status transitions for feedback_media rows.

Methods mutate rows through the caller's session and never commit; the caller
decides the transaction boundary so a job transition and the matching owner
update land together.
"""
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from .models import MediaJob, MediaJobStatus
from ..utils.error_codes import ErrorCode
from ..utils.time_utils import utc_now


class MediaJobStore:
    """Job-row access for one session."""

    def __init__(self, session: Session):
        self.session = session

    # ---------- Creation ----------
    def upsert_media_job(
        self,
        *,
        owner_type: str,
        owner_id: str,
        media_type: str,
        storage_key: str,
        storage_provider: str = 'vercel_blob',
        mime_type: Optional[str] = None,
        size_bytes: Optional[int] = None,
        duration_ms: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> MediaJob:
        """Insert a job unless (owner_type, owner_id, storage_key) already exists."""
        existing = self.session.query(MediaJob).filter(
            MediaJob.owner_type == owner_type,
            MediaJob.owner_id == owner_id,
            MediaJob.storage_key == storage_key,
        ).first()
        if existing:
            return existing

        now = now or utc_now()
        job = MediaJob(
            owner_type=owner_type,
            owner_id=owner_id,
            media_type=media_type,
            storage_provider=storage_provider,
            storage_key=storage_key,
            mime_type=mime_type,
            size_bytes=size_bytes,
            duration_ms=duration_ms,
            status=MediaJobStatus.UPLOADED,
            retry_count=0,
            created_at=now,
            updated_at=now,
        )
        self.session.add(job)
        self.session.flush()
        return job

    # ---------- Reads ----------
    def get(self, job_id: str) -> Optional[MediaJob]:
        return self.session.get(MediaJob, job_id)

    def find_stale_processing(self, media_type: str, cutoff: datetime) -> List[MediaJob]:
        """Jobs in 'processing' whose last attempt started before cutoff."""
        return self.session.query(MediaJob).filter(
            MediaJob.media_type == media_type,
            MediaJob.status == MediaJobStatus.PROCESSING,
            MediaJob.last_attempt_at.isnot(None),
            MediaJob.last_attempt_at < cutoff,
        ).order_by(MediaJob.last_attempt_at.asc()).all()

    def fetch_candidates(self, media_type: str, limit: int) -> List[MediaJob]:
        """Jobs waiting in 'uploaded' for this media type, oldest first."""
        return self.session.query(MediaJob).filter(
            MediaJob.media_type == media_type,
            MediaJob.status == MediaJobStatus.UPLOADED,
        ).order_by(MediaJob.created_at.asc(), MediaJob.id.asc()).limit(limit).all()

    # ---------- Transitions ----------
    def claim(self, job: MediaJob, now: Optional[datetime] = None) -> bool:
        """Atomically move uploaded -> processing.

        Returns False when another run changed the row first.
        """
        now = now or utc_now()
        updated = self.session.query(MediaJob).filter(
            MediaJob.id == job.id,
            MediaJob.status == MediaJobStatus.UPLOADED,
        ).update({
            'status': MediaJobStatus.PROCESSING,
            'last_attempt_at': now,
            'updated_at': now,
        }, synchronize_session=False)
        if updated == 1:
            self.session.refresh(job)
            return True
        return False

    def requeue_after_timeout(self, job: MediaJob, timeout_seconds: int,
                              now: Optional[datetime] = None) -> MediaJob:
        now = now or utc_now()
        job.status = MediaJobStatus.UPLOADED
        job.error_code = ErrorCode.PROCESSING_TIMEOUT_REQUEUED.value
        job.error_detail = f"Processing exceeded timeout ({timeout_seconds}s). Re-queued with backoff."
        job.retry_count = int(job.retry_count or 0) + 1
        job.last_error_at = now
        job.updated_at = now
        return job

    def fail_max_retries(self, job: MediaJob, detail: str,
                         now: Optional[datetime] = None) -> MediaJob:
        now = now or utc_now()
        job.status = MediaJobStatus.FAILED
        job.error_code = ErrorCode.MAX_RETRIES_EXCEEDED.value
        job.error_detail = detail
        job.last_error_at = now
        job.updated_at = now
        return job

    def record_failure(self, job: MediaJob, error_code: str, error_detail: str,
                       now: Optional[datetime] = None) -> MediaJob:
        now = now or utc_now()
        job.status = MediaJobStatus.FAILED
        job.error_code = error_code
        job.error_detail = error_detail
        job.retry_count = int(job.retry_count or 0) + 1
        job.last_error_at = now
        job.updated_at = now
        return job

    def record_success(self, job: MediaJob, transcript_text: str,
                       original_language: Optional[str],
                       now: Optional[datetime] = None) -> MediaJob:
        now = now or utc_now()
        job.status = MediaJobStatus.READY
        job.transcript_text = transcript_text
        job.original_language = original_language
        job.error_code = None
        job.error_detail = None
        job.last_error_at = None
        job.updated_at = now
        return job

    def reset_for_manual_retry(self, job: MediaJob, now: Optional[datetime] = None) -> MediaJob:
        """Re-queue a job by hand; clearing last_error_at lets it skip the backoff gate."""
        now = now or utc_now()
        job.status = MediaJobStatus.UPLOADED
        job.error_code = None
        job.error_detail = None
        job.transcript_text = None
        job.original_language = None
        job.last_error_at = None
        job.updated_at = now
        return job
