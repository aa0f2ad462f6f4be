"""
Owner models: the records a media job writes its analytics back onto.

Only the columns the pipeline reads or writes are mapped here; the rest of
the survey/feedback data model belongs to the surrounding application.
"""

from sqlalchemy import Column, String, Text, text

from .base import Base, OwnerProcessingStatus


class AnalyticsFieldsMixin:
    """Processing status plus the canonical analytics payload."""
    processing_status = Column(String(16), nullable=False, default=OwnerProcessingStatus.READY,
                               server_default=text("'ready'"))
    transcript_text = Column(Text)
    normalized_text = Column(Text)
    normalized_language = Column(String(16))
    original_language = Column(String(16))
    sentiment = Column(String(16))

    ANALYTICS_FIELDS = (
        'transcript_text',
        'normalized_text',
        'normalized_language',
        'original_language',
        'sentiment',
    )

    def analytics_payload(self) -> dict:
        return {name: getattr(self, name) for name in self.ANALYTICS_FIELDS}


class SurveyResponse(AnalyticsFieldsMixin, Base):
    __tablename__ = 'survey_responses'

    id = Column(String(64), primary_key=True)


class Feedback(AnalyticsFieldsMixin, Base):
    __tablename__ = 'feedback'

    id = Column(String(64), primary_key=True)
