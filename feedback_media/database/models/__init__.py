"""
Database Models for the Feedback Media Processing Pipeline
==========================================================

## Processing Flow:

1. **Upload** (outside this package)
   - An audio/video attachment is stored as a blob and a MediaJob row is
     created in 'uploaded' state for its owner (survey response or feedback)

2. **Reclaim** (orchestration/timeout_manager.py)
   - Jobs stuck in 'processing' past the timeout are requeued or failed

3. **Transcribe + normalize** (processing_steps/transcribe.py)
   - Fetch blob, speech-to-text, translate to the analytics language, sentiment

4. **Reflect** (processing/owner_reflector.py)
   - Owner processing_status and analytics fields are updated under the
     audio-over-video merge policy

## Models:
- **MediaJob**: one row per attachment (table feedback_media)
- **SurveyResponse** / **Feedback**: owner records (pipeline-owned columns only)
"""

from .base import (
    Base,
    MediaJobStatus,
    OwnerType,
    MediaType,
    OwnerProcessingStatus,
    Sentiment,
)
from .media import MediaJob
from .owners import AnalyticsFieldsMixin, SurveyResponse, Feedback

OWNER_MODELS = {
    OwnerType.SURVEY_RESPONSE: SurveyResponse,
    OwnerType.FEEDBACK: Feedback,
}

__all__ = [
    "Base",
    # Vocabularies
    "MediaJobStatus",
    "OwnerType",
    "MediaType",
    "OwnerProcessingStatus",
    "Sentiment",
    # Jobs
    "MediaJob",
    # Owners
    "AnalyticsFieldsMixin",
    "SurveyResponse",
    "Feedback",
    "OWNER_MODELS",
]
