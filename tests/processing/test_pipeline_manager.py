"""
Tests for FeedbackMediaPipeline (the batch driver).
"""

from datetime import timedelta
from unittest.mock import patch

import pytest

from conftest import NOW, FakeAdapter, add_job, add_owner, failure, success
from feedback_media.database.media_job_store import MediaJobStore
from feedback_media.database.models import (
    Feedback,
    MediaJob,
    MediaJobStatus,
    MediaType,
    OwnerType,
    SurveyResponse,
)
from feedback_media.processing.pipeline_manager import FeedbackMediaPipeline
from feedback_media.utils.config import PipelineSettings
from feedback_media.utils.time_utils import ensure_utc


def make_pipeline(adapter, clock, **settings):
    return FeedbackMediaPipeline(settings=PipelineSettings(**settings), adapter=adapter, clock=clock)


def load_job(session, job_id):
    session.expire_all()
    return session.get(MediaJob, job_id)


def load_owner(session, owner_id="resp-1", model=SurveyResponse):
    session.expire_all()
    return session.get(model, owner_id)


class TestSuccessfulProcessing:
    """Tests for jobs the adapter transcribes successfully."""

    def test_audio_success(self, session, clock):
        add_owner(session, processing_status="processing")
        job = add_job(session, storage_key="https://blob.example.com/a.webm")
        adapter = FakeAdapter(success(text="Hola", original_language="es",
                                      normalized_text="Hello", sentiment="neutral"))

        summary = make_pipeline(adapter, clock).process_pending(MediaType.AUDIO, limit=10)

        assert summary == {'success': True, 'processed': 1, 'results': [{'id': job.id, 'success': True}]}
        assert adapter.calls == [("https://blob.example.com/a.webm", "voice.webm", "audio/webm")]

        job = load_job(session, job.id)
        assert job.status == MediaJobStatus.READY
        assert job.transcript_text == "Hola"
        assert job.original_language == "es"
        assert job.retry_count == 0
        assert ensure_utc(job.last_attempt_at) == NOW

        owner = load_owner(session)
        assert owner.processing_status == "ready"
        assert owner.transcript_text == "Hola"
        assert owner.normalized_text == "Hello"
        assert owner.normalized_language == "en"
        assert owner.original_language == "es"
        assert owner.sentiment == "neutral"

    def test_video_uses_video_filename(self, session, clock):
        add_owner(session, model=Feedback, owner_id="fb-1")
        add_job(session, owner_id="fb-1", owner_type=OwnerType.FEEDBACK, media_type=MediaType.VIDEO)
        adapter = FakeAdapter(success(text="from video"))

        make_pipeline(adapter, clock).process_pending(MediaType.VIDEO)

        assert adapter.calls[0][1:] == ("video.webm", "video/webm")
        assert load_owner(session, "fb-1", Feedback).transcript_text == "from video"

    def test_video_does_not_overwrite_typed_answer(self, session, clock):
        typed = dict(transcript_text=None, normalized_text="Typed answer", normalized_language="en",
                     original_language="en", sentiment="negative")
        add_owner(session, processing_status="processing", **typed)
        job = add_job(session, media_type=MediaType.VIDEO)

        summary = make_pipeline(FakeAdapter(success(text="great video")), clock).process_pending(MediaType.VIDEO)

        assert summary['results'] == [{'id': job.id, 'success': True}]
        assert load_job(session, job.id).status == MediaJobStatus.READY
        owner = load_owner(session)
        assert owner.analytics_payload() == typed
        assert owner.processing_status == "ready"

    def test_audio_then_video_keeps_audio_sentiment(self, session, clock):
        """The later video result must not clobber the audio analytics."""
        add_owner(session)
        add_job(session, storage_key="https://blob.example.com/voice.webm")
        add_job(session, media_type=MediaType.VIDEO, storage_key="https://blob.example.com/video.webm")

        make_pipeline(FakeAdapter(success(text="I love it", sentiment="positive")), clock) \
            .process_pending(MediaType.AUDIO)
        make_pipeline(FakeAdapter(success(text="This is terrible", sentiment="negative")), clock) \
            .process_pending(MediaType.VIDEO)

        owner = load_owner(session)
        assert owner.sentiment == "positive"
        assert owner.transcript_text == "I love it"
        assert owner.processing_status == "ready"


class TestFailures:
    """Tests for adapter failures, retries and backoff."""

    def test_empty_transcript(self, session, clock):
        add_owner(session, processing_status="processing")
        job = add_job(session)

        summary = make_pipeline(FakeAdapter(failure("empty_transcript", "no speech")), clock) \
            .process_pending(MediaType.AUDIO)

        assert summary['results'] == [{'id': job.id, 'success': False, 'error': 'empty_transcript'}]
        job = load_job(session, job.id)
        assert job.status == MediaJobStatus.FAILED
        assert job.retry_count == 1
        assert job.error_code == "empty_transcript"
        assert job.error_detail == "no speech"
        assert ensure_utc(job.last_error_at) == NOW
        assert load_owner(session).processing_status == "failed"

    def test_failed_job_is_not_reselected(self, session, clock):
        job = add_job(session)
        adapter = FakeAdapter(failure())
        pipeline = make_pipeline(adapter, clock)

        pipeline.process_pending(MediaType.AUDIO)
        clock.advance(3600)
        summary = pipeline.process_pending(MediaType.AUDIO)

        assert summary['processed'] == 0
        assert len(adapter.calls) == 1
        assert load_job(session, job.id).status == MediaJobStatus.FAILED

    def test_backoff_gate_skips_until_elapsed(self, session, clock):
        """retry_count=1 with base 60 waits 120s after the last error."""
        job = add_job(session, retry_count=1, last_error_at=NOW - timedelta(seconds=30),
                      error_code="processing_timeout_requeued")
        adapter = FakeAdapter(failure())
        pipeline = make_pipeline(adapter, clock, backoff_base_seconds=60)

        summary = pipeline.process_pending(MediaType.AUDIO)
        assert summary == {'success': True, 'processed': 0, 'results': []}
        assert adapter.calls == []
        assert load_job(session, job.id).status == MediaJobStatus.UPLOADED

        clock.advance(90)
        summary = pipeline.process_pending(MediaType.AUDIO)
        assert summary['processed'] == 1
        job = load_job(session, job.id)
        assert job.status == MediaJobStatus.FAILED
        assert job.retry_count == 2

    def test_retries_exhausted(self, session, clock):
        add_owner(session, processing_status="processing")
        job = add_job(session, retry_count=3, last_error_at=NOW - timedelta(days=1))
        adapter = FakeAdapter()

        summary = make_pipeline(adapter, clock, max_retries=3).process_pending(MediaType.AUDIO)

        assert summary['results'] == [{'id': job.id, 'success': False, 'error': 'max_retries_exceeded'}]
        assert adapter.calls == []
        job = load_job(session, job.id)
        assert job.status == MediaJobStatus.FAILED
        assert job.error_code == "max_retries_exceeded"
        assert job.retry_count == 3
        assert load_owner(session).processing_status == "failed"

    def test_unexpected_exception_is_contained(self, session, clock):
        """An adapter that raises is recorded as processing_error and the loop continues."""
        first = add_job(session, owner_id="r1", created_at=NOW - timedelta(minutes=2))
        second = add_job(session, owner_id="r2", created_at=NOW - timedelta(minutes=1))
        adapter = FakeAdapter(RuntimeError("adapter bug"), success())
        pipeline = make_pipeline(adapter, clock)

        summary = pipeline.process_pending(MediaType.AUDIO)

        assert summary['results'] == [
            {'id': first.id, 'success': False, 'error': 'processing_error'},
            {'id': second.id, 'success': True},
        ]
        assert load_job(session, first.id).status == MediaJobStatus.PROCESSING
        assert load_job(session, second.id).status == MediaJobStatus.READY

        # The stranded job is recovered by a later sweep
        clock.advance(901)
        pipeline.process_pending(MediaType.AUDIO)
        job = load_job(session, first.id)
        assert job.status == MediaJobStatus.UPLOADED
        assert job.retry_count == 1
        assert job.error_code == "processing_timeout_requeued"

    def test_lost_claim_is_skipped(self, session, clock):
        add_job(session)
        adapter = FakeAdapter()

        with patch.object(MediaJobStore, 'claim', return_value=False):
            summary = make_pipeline(adapter, clock).process_pending(MediaType.AUDIO)

        assert summary['processed'] == 0
        assert adapter.calls == []


class TestBatching:
    """Tests for limits and the stale-job sweep at the start of a batch."""

    def test_stops_at_limit(self, session, clock):
        jobs = [add_job(session, owner_id=f"r{i}", created_at=NOW - timedelta(minutes=10 - i))
                for i in range(3)]

        summary = make_pipeline(FakeAdapter(), clock).process_pending(MediaType.AUDIO, limit=2)

        assert [r['id'] for r in summary['results']] == [jobs[0].id, jobs[1].id]
        assert load_job(session, jobs[2].id).status == MediaJobStatus.UPLOADED

    def test_skipped_jobs_do_not_count(self, session, clock):
        for i in range(2):
            add_job(session, owner_id=f"wait{i}", retry_count=1, last_error_at=NOW,
                    created_at=NOW - timedelta(minutes=20 - i))
        ready = [add_job(session, owner_id=f"go{i}", created_at=NOW - timedelta(minutes=10 - i))
                 for i in range(2)]

        summary = make_pipeline(FakeAdapter(), clock).process_pending(MediaType.AUDIO, limit=2)

        assert [r['id'] for r in summary['results']] == [j.id for j in ready]

    def test_stale_job_requeued_then_held_by_backoff(self, session, clock):
        """A crashed run's job is requeued (not lost) and waits out its backoff."""
        add_owner(session, processing_status="processing")
        job = add_job(session, status=MediaJobStatus.PROCESSING,
                      last_attempt_at=NOW - timedelta(minutes=20))
        adapter = FakeAdapter()

        summary = make_pipeline(adapter, clock).process_pending(MediaType.AUDIO)

        assert summary['processed'] == 0
        assert adapter.calls == []
        job = load_job(session, job.id)
        assert job.status == MediaJobStatus.UPLOADED
        assert job.retry_count == 1

    def test_video_run_ignores_audio_jobs(self, session, clock):
        add_job(session)
        adapter = FakeAdapter()

        summary = make_pipeline(adapter, clock).process_pending(MediaType.VIDEO)

        assert summary['processed'] == 0
        assert adapter.calls == []

    def test_unsupported_media_type(self, db, clock):
        with pytest.raises(ValueError):
            make_pipeline(FakeAdapter(), clock).process_pending("image")
