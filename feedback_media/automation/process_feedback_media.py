#!/usr/bin/env python3
"""
Feedback Media Processor
========================

Scheduled task that drains pending feedback media jobs: audio first, then
video. Meant to be run by cron or the platform scheduler every few minutes.

Usage:
    # Default batch (10 audio, 5 video)
    feedback-media-process

    # Custom limits
    python -m feedback_media.automation.process_feedback_media --audio-limit 20 --video-limit 10

    # Manually re-queue a failed job (clears the owner's analytics)
    feedback-media-process --retry 6c1f0a9e-...

    # Create tables in the configured database
    feedback-media-process --init-db
"""

import argparse
import json
import sys
from typing import Any, Dict, Optional

from ..database.media_job_store import MediaJobStore
from ..database.session import get_session, init_db
from ..processing.owner_reflector import OwnerReflector
from ..processing.pipeline_manager import (
    process_pending_audio_feedback_media,
    process_pending_video_feedback_media,
)
from ..utils.error_codes import is_terminal
from ..utils.logger import setup_worker_logger
from ..utils.time_utils import utc_now

logger = setup_worker_logger('process_feedback_media')


def run_feedback_media_batch(audio_limit: int = 10, video_limit: int = 5) -> Dict[str, Any]:
    """Run one audio batch then one video batch."""
    timestamp = utc_now().isoformat()
    try:
        audio = process_pending_audio_feedback_media(limit=audio_limit)
        video = process_pending_video_feedback_media(limit=video_limit)
    except Exception as e:
        logger.error(f"Feedback media batch failed: {str(e)}", exc_info=True)
        return {'success': False, 'error': str(e), 'timestamp': timestamp}

    logger.info(f"Batch done: {audio['processed']} audio, {video['processed']} video")
    return {
        'success': True,
        'timestamp': timestamp,
        'audio': {'processed': audio['processed'], 'results': audio['results']},
        'video': {'processed': video['processed'], 'results': video['results']},
    }


def retry_media_job(job_id: str, reflector: Optional[OwnerReflector] = None) -> bool:
    """Put a job back in the queue and clear its owner's analytics.

    Returns False when the job does not exist.
    """
    reflector = reflector or OwnerReflector()
    with get_session() as session:
        store = MediaJobStore(session)
        job = store.get(job_id)
        if job is None:
            logger.warning(f"Retry requested for unknown job {job_id}")
            return False
        if is_terminal(job.error_code):
            logger.info(f"Job {job_id} had exhausted its retries, resetting anyway")
        try:
            store.reset_for_manual_retry(job)
            reflector.clear_analytics(session, job.owner_type, job.owner_id)
            session.commit()
        except Exception:
            session.rollback()
            raise
    logger.info(f"Job {job_id} re-queued for manual retry")
    return True


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description='Process pending audio and video feedback media'
    )
    parser.add_argument(
        '--audio-limit',
        type=int,
        default=10,
        help='Maximum audio jobs to process (default: 10)'
    )
    parser.add_argument(
        '--video-limit',
        type=int,
        default=5,
        help='Maximum video jobs to process (default: 5)'
    )
    parser.add_argument(
        '--retry',
        metavar='JOB_ID',
        help='Re-queue a single media job instead of running a batch'
    )
    parser.add_argument(
        '--init-db',
        action='store_true',
        help='Create the feedback_media and owner tables before running'
    )

    args = parser.parse_args(argv)

    if args.init_db:
        init_db()

    if args.retry:
        retried = retry_media_job(args.retry)
        summary = {'success': retried, 'job_id': args.retry}
        if not retried:
            summary['error'] = 'Media not found'
    else:
        summary = run_feedback_media_batch(audio_limit=args.audio_limit, video_limit=args.video_limit)

    # Output JSON summary for the scheduler
    print(f"__TASK_SUMMARY__: {json.dumps(summary)}")
    return 0 if summary['success'] else 1


if __name__ == '__main__':
    sys.exit(main())
