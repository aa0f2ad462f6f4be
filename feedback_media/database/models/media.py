"""
Media job model.

Contains:
- MediaJob: one row per uploaded audio/video attachment (table feedback_media)
"""

import uuid

from sqlalchemy import Column, Integer, String, DateTime, Text, Index, text

from .base import Base, MediaJobStatus
from ...utils.time_utils import utc_now


def _uuid() -> str:
    return str(uuid.uuid4())


class MediaJob(Base):
    """
    A media attachment awaiting or having undergone transcription.

    Attributes:
        id: UUID string primary key
        owner_type: 'survey_response' or 'feedback'
        owner_id: ID of the owning row in that table
        media_type: 'audio' or 'video'
        storage_provider: Where the blob lives ('vercel_blob', 's3', ...)
        storage_key: Fetchable blob URL; the pipeline never deletes it
        status: 'uploaded', 'processing', 'ready' or 'failed'
        retry_count: Failed attempts + stale-timeout requeues (never decreases)
        last_attempt_at: Set when the job is claimed
        last_error_at: Set on failure/requeue, cleared on success
        error_code / error_detail: Most recent failure
        transcript_text / original_language: Populated on success

    Job Lifecycle:
        1. Created as 'uploaded' by the upload endpoint
        2. Driver claims it atomically, status -> 'processing'
        3. On success: status -> 'ready', transcript stored
        4. On failure: status -> 'failed', retry_count += 1
        5. Stuck in 'processing' past the timeout: back to 'uploaded'
           (retry_count += 1) or 'failed' with max_retries_exceeded
    """
    __tablename__ = 'feedback_media'

    id = Column(String(36), primary_key=True, default=_uuid)

    owner_type = Column(String(32), nullable=False)
    owner_id = Column(String(64), nullable=False)

    media_type = Column(String(16), nullable=False)
    storage_provider = Column(String(32), nullable=False, default='vercel_blob')
    storage_key = Column(Text, nullable=False)
    mime_type = Column(String(128))
    size_bytes = Column(Integer)
    duration_ms = Column(Integer)

    status = Column(String(16), nullable=False, default=MediaJobStatus.UPLOADED,
                    server_default=text("'uploaded'"))
    retry_count = Column(Integer, nullable=False, default=0, server_default=text("0"))
    last_attempt_at = Column(DateTime(timezone=True))
    last_error_at = Column(DateTime(timezone=True))

    error_code = Column(String(64))
    error_detail = Column(Text)

    transcript_text = Column(Text)
    original_language = Column(String(16))

    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    __table_args__ = (
        Index('idx_feedback_media_owner', 'owner_type', 'owner_id'),
        Index('idx_feedback_media_status', 'status'),
        Index('idx_feedback_media_type_status', 'media_type', 'status'),
    )

    def __repr__(self):
        return (f"<MediaJob(id={self.id}, media_type={self.media_type}, "
                f"status={self.status}, retry_count={self.retry_count})>")
