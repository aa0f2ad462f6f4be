"""
Base module for database models.

Contains the SQLAlchemy declarative base and the string status vocabularies
shared by the media job table and the owner tables.
"""

from sqlalchemy.orm import declarative_base


Base = declarative_base()


class MediaJobStatus:
    """Lifecycle of a feedback_media row."""
    UPLOADED = "uploaded"        # Waiting for (re)processing (DEFAULT)
    PROCESSING = "processing"    # Claimed by a driver run
    READY = "ready"              # Transcript stored, owner updated
    FAILED = "failed"            # Last attempt failed (or retries exhausted)

    @classmethod
    def all(cls) -> list:
        return [cls.UPLOADED, cls.PROCESSING, cls.READY, cls.FAILED]


class OwnerType:
    """Which table a job's results propagate to."""
    SURVEY_RESPONSE = "survey_response"
    FEEDBACK = "feedback"

    @classmethod
    def all(cls) -> list:
        return [cls.SURVEY_RESPONSE, cls.FEEDBACK]


class MediaType:
    AUDIO = "audio"
    VIDEO = "video"

    @classmethod
    def all(cls) -> list:
        return [cls.AUDIO, cls.VIDEO]


class OwnerProcessingStatus:
    """Owner-side "is analytics ready" flag read by dashboards."""
    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"

    @classmethod
    def all(cls) -> list:
        return [cls.PROCESSING, cls.READY, cls.FAILED]


class Sentiment:
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"

    @classmethod
    def all(cls) -> list:
        return [cls.POSITIVE, cls.NEUTRAL, cls.NEGATIVE]
