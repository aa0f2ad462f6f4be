"""
Pipeline Manager - batch driver for pending feedback media jobs.

One invocation handles one media type:

    1. Reclaim jobs stuck in 'processing' (StaleJobReclaimer)
    2. Fetch 'uploaded' candidates, over-fetching limit * 5
    3. Per candidate: retry-exhaustion check, backoff gate, atomic claim,
       transcription, then job + owner bookkeeping
    4. Stop once `limit` results are recorded

Skipped candidates (backoff not elapsed, claim lost to another run) are not
counted. Each job is isolated: an unexpected error is rolled back, recorded as
processing_error and the loop moves on; a job left in 'processing' this way is
picked up by the next reclaimer sweep.

Usage:
    from feedback_media.processing.pipeline_manager import process_pending_audio_feedback_media
    summary = process_pending_audio_feedback_media(limit=10)
"""
import time
from typing import Any, Callable, Dict, List, Optional

from ..database import get_session
from ..database.media_job_store import MediaJobStore
from ..database.models import MediaType, OwnerProcessingStatus
from ..orchestration.timeout_manager import StaleJobReclaimer
from ..processing_steps.transcribe import OpenAITranscriptionAdapter, TranscriptionAdapter
from ..utils.backoff import RetryBackoff
from ..utils.config import PipelineSettings, load_pipeline_settings
from ..utils.error_codes import ErrorCode, get_error_category
from ..utils.logger import log_job_completion, setup_worker_logger
from ..utils.time_utils import utc_now
from .owner_reflector import OwnerReflector

logger = setup_worker_logger('pipeline_manager')

# Upload filename and fallback content type handed to the transcription adapter
MEDIA_FILES = {
    MediaType.AUDIO: ('voice.webm', 'audio/webm'),
    MediaType.VIDEO: ('video.webm', 'video/webm'),
}

CANDIDATE_OVERFETCH = 5


class FeedbackMediaPipeline:
    """Drives uploaded media jobs through transcription and owner reflection."""

    def __init__(
        self,
        settings: Optional[PipelineSettings] = None,
        adapter: Optional[TranscriptionAdapter] = None,
        reflector: Optional[OwnerReflector] = None,
        reclaimer: Optional[StaleJobReclaimer] = None,
        backoff: Optional[RetryBackoff] = None,
        session_factory: Callable = get_session,
        clock: Callable = utc_now,
    ):
        """
        Args:
            settings: Pipeline tunables; read from the environment when omitted
            adapter: Transcription/normalization adapter (OpenAI by default)
            reflector: Owner reflector shared with the reclaimer
            reclaimer: Stale-job reclaimer run at the start of each batch
            backoff: Retry gate; base comes from settings.backoff_base_seconds
            session_factory: Zero-arg callable returning a session context manager
            clock: Zero-arg callable returning an aware UTC datetime
        """
        self.settings = settings or load_pipeline_settings()
        self.adapter = adapter or OpenAITranscriptionAdapter(self.settings)
        self.reflector = reflector or OwnerReflector()
        self.reclaimer = reclaimer or StaleJobReclaimer(self.settings, self.reflector)
        self.backoff = backoff or RetryBackoff(base=self.settings.backoff_base_seconds)
        self.session_factory = session_factory
        self.clock = clock

    # =========================================================================
    # Per-job steps
    # =========================================================================

    def _fail_exhausted(self, session, store: MediaJobStore, job) -> Dict[str, Any]:
        store.fail_max_retries(job, f"Exceeded max retries ({self.settings.max_retries}).", self.clock())
        self.reflector.set_processing_status(
            session, job.owner_type, job.owner_id, OwnerProcessingStatus.FAILED
        )
        session.commit()
        logger.warning(f"Job {job.id} failed permanently after {job.retry_count} retries")
        return {'id': job.id, 'success': False, 'error': ErrorCode.MAX_RETRIES_EXCEEDED.value}

    def _claim(self, session, store: MediaJobStore, job) -> bool:
        if not store.claim(job, self.clock()):
            session.rollback()
            logger.info(f"Job {job.id} was claimed by another run, skipping")
            return False
        self.reflector.set_processing_status(
            session, job.owner_type, job.owner_id, OwnerProcessingStatus.PROCESSING
        )
        session.commit()
        return True

    def _run_job(self, session, store: MediaJobStore, job, media_type: str) -> Dict[str, Any]:
        filename, content_type = MEDIA_FILES[media_type]
        result = self.adapter.transcribe_and_normalize(job.storage_key, filename, content_type)

        if not result.ok:
            store.record_failure(job, result.error_code, result.error_detail, self.clock())
            self.reflector.set_processing_status(
                session, job.owner_type, job.owner_id, OwnerProcessingStatus.FAILED
            )
            session.commit()
            logger.warning(
                f"Job {job.id} failed ({get_error_category(result.error_code) or 'unknown'} error): "
                f"{result.error_code} - {result.error_detail}"
            )
            return {'id': job.id, 'success': False, 'error': result.error_code}

        store.record_success(job, result.transcript_text, result.original_language, self.clock())
        outcome = self.reflector.propagate_success(
            session,
            job.owner_type,
            job.owner_id,
            result,
            only_if_empty=(media_type == MediaType.VIDEO),
        )
        session.commit()
        logger.debug(f"Job {job.id} ready, owner update: {outcome}")
        return {'id': job.id, 'success': True}

    # =========================================================================
    # Batch
    # =========================================================================

    def process_pending(self, media_type: str, limit: int = 10) -> Dict[str, Any]:
        """Process up to `limit` pending jobs of one media type."""
        if media_type not in MEDIA_FILES:
            raise ValueError(f"Unsupported media type: {media_type}")

        results: List[Dict[str, Any]] = []
        with self.session_factory() as session:
            reclaimed = self.reclaimer.reclaim(session, media_type, self.clock())
            if reclaimed:
                logger.info(f"Reclaimed {len(reclaimed)} stale {media_type} jobs")

            store = MediaJobStore(session)
            candidates = store.fetch_candidates(media_type, limit * CANDIDATE_OVERFETCH)
            # Commit so the fetch doesn't hold a transaction open across claims
            session.commit()

            for job in candidates:
                if len(results) >= limit:
                    break

                job_id = job.id
                owner_id = job.owner_id
                started = time.monotonic()
                try:
                    if int(job.retry_count or 0) >= self.settings.max_retries:
                        result = self._fail_exhausted(session, store, job)
                    else:
                        now = self.clock()
                        if not self.backoff.is_eligible(job.last_error_at, job.retry_count, now):
                            remaining = self.backoff.remaining_seconds(job.last_error_at, job.retry_count, now)
                            logger.debug(f"Job {job_id} in backoff for another {remaining:.0f}s")
                            continue

                        if not self._claim(session, store, job):
                            continue

                        result = self._run_job(session, store, job, media_type)
                except Exception as e:
                    session.rollback()
                    logger.error(f"Unexpected error processing job {job_id}: {str(e)}", exc_info=True)
                    result = {'id': job_id, 'success': False, 'error': ErrorCode.PROCESSING_ERROR.value}

                results.append(result)
                log_job_completion(
                    media_type,
                    job_id,
                    owner_id,
                    time.monotonic() - started,
                    success=result['success'],
                    error=result.get('error'),
                )

        logger.info(f"Processed {len(results)} {media_type} jobs")
        return {'success': True, 'processed': len(results), 'results': results}


def process_pending_audio_feedback_media(limit: int = 10) -> Dict[str, Any]:
    return FeedbackMediaPipeline().process_pending(MediaType.AUDIO, limit=limit)


def process_pending_video_feedback_media(limit: int = 10) -> Dict[str, Any]:
    return FeedbackMediaPipeline().process_pending(MediaType.VIDEO, limit=limit)
