"""
Shared fixtures: in-memory SQLite database, fixed clock and a scripted
transcription adapter.
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.pool import StaticPool

from feedback_media.database.media_job_store import MediaJobStore
from feedback_media.database.models import MediaJobStatus, MediaType, OwnerType, SurveyResponse
from feedback_media.database.session import configure_database, get_session, init_db
from feedback_media.processing_steps.transcribe import (
    TranscriptionAdapter,
    TranscriptionFailure,
    TranscriptionSuccess,
)

NOW = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class FixedClock:
    """Callable clock that only moves when a test advances it."""

    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now = self.now + timedelta(seconds=seconds)


class FakeAdapter(TranscriptionAdapter):
    """Returns scripted results in order; repeats the last one when exhausted."""

    def __init__(self, *results):
        self.results = list(results) or [success()]
        self.calls = []

    def transcribe_and_normalize(self, blob_ref, filename, fallback_content_type):
        self.calls.append((blob_ref, filename, fallback_content_type))
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return result


def success(text="I love this product", sentiment="positive", original_language="en",
            normalized_text=None):
    return TranscriptionSuccess(
        transcript_text=text,
        original_language=original_language,
        normalized_text=normalized_text or text,
        normalized_language="en",
        sentiment=sentiment,
    )


def failure(code="processing_error", detail="boom"):
    return TranscriptionFailure(code, detail)


@pytest.fixture
def db():
    """Fresh in-memory database per test, installed as the global session manager."""
    manager = configure_database("sqlite://", poolclass=StaticPool)
    init_db()
    yield manager
    manager.dispose()


@pytest.fixture
def session(db):
    with get_session() as s:
        yield s


@pytest.fixture
def clock():
    return FixedClock()


def add_owner(session, model=SurveyResponse, owner_id="resp-1", **fields):
    owner = model(id=owner_id, **fields)
    session.add(owner)
    session.commit()
    return owner


def add_job(session, owner_id="resp-1", owner_type=OwnerType.SURVEY_RESPONSE,
            media_type=MediaType.AUDIO, storage_key=None, created_at=NOW, **fields):
    job = MediaJobStore(session).upsert_media_job(
        owner_type=owner_type,
        owner_id=owner_id,
        media_type=media_type,
        storage_key=storage_key or f"https://blob.example.com/{owner_id}/{media_type}-{created_at.timestamp()}.webm",
        now=created_at,
    )
    fields.setdefault('status', MediaJobStatus.UPLOADED)
    for name, value in fields.items():
        setattr(job, name, value)
    session.commit()
    return job
