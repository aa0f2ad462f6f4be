"""
Owner Reflector - mirrors media job outcomes onto the owning record.

Merge policy:
- Audio is authoritative: a successful audio job overwrites all five analytics
  fields.
- Video only fills empty owners: if any analytics field is already populated
  the owner is marked ready and its fields are left untouched.

All methods run inside the caller's transaction and never commit.
"""
from sqlalchemy.orm import Session

from ..database.models import OWNER_MODELS, OwnerProcessingStatus
from ..utils.logger import setup_worker_logger

logger = setup_worker_logger('owner_reflector')

WRITTEN = 'written'
STATUS_ONLY = 'status_only'
MISSING_OWNER = 'missing_owner'


def _has_value(value) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


class OwnerReflector:
    """Writes processing status and analytics back onto survey responses and feedback."""

    def _model_for(self, owner_type: str):
        model = OWNER_MODELS.get(owner_type)
        if model is None:
            logger.warning(f"Unknown owner type '{owner_type}', skipping owner update")
        return model

    def _load_owner(self, session: Session, owner_type: str, owner_id: str, lock: bool = False):
        model = self._model_for(owner_type)
        if model is None:
            return None
        query = session.query(model).filter(model.id == owner_id)
        if lock:
            query = query.with_for_update()
        owner = query.first()
        if owner is None:
            logger.warning(f"Owner {owner_type}:{owner_id} not found")
        return owner

    @staticmethod
    def has_analytics(owner) -> bool:
        """True when any analytics field on the owner carries a value."""
        return any(_has_value(getattr(owner, name)) for name in owner.ANALYTICS_FIELDS)

    def set_processing_status(self, session: Session, owner_type: str, owner_id: str,
                              status: str) -> str:
        owner = self._load_owner(session, owner_type, owner_id)
        if owner is None:
            return MISSING_OWNER
        owner.processing_status = status
        return STATUS_ONLY

    def propagate_success(self, session: Session, owner_type: str, owner_id: str,
                          success, only_if_empty: bool) -> str:
        """
        Apply a successful transcription to the owner.

        Args:
            session: Open session; the owner row is locked FOR UPDATE until the caller commits
            owner_type: 'survey_response' or 'feedback'
            owner_id: Owner primary key
            success: TranscriptionSuccess carrying the analytics payload
            only_if_empty: Video policy; skip field writes when the owner already has analytics

        Returns:
            'written', 'status_only' or 'missing_owner'
        """
        owner = self._load_owner(session, owner_type, owner_id, lock=True)
        if owner is None:
            return MISSING_OWNER

        if only_if_empty and self.has_analytics(owner):
            owner.processing_status = OwnerProcessingStatus.READY
            logger.debug(f"Owner {owner_type}:{owner_id} already has analytics, marked ready only")
            return STATUS_ONLY

        owner.transcript_text = success.transcript_text
        owner.normalized_text = success.normalized_text
        owner.normalized_language = success.normalized_language
        owner.original_language = success.original_language
        owner.sentiment = success.sentiment
        owner.processing_status = OwnerProcessingStatus.READY
        return WRITTEN

    def clear_analytics(self, session: Session, owner_type: str, owner_id: str) -> str:
        """Null the analytics fields and put the owner back into processing."""
        owner = self._load_owner(session, owner_type, owner_id, lock=True)
        if owner is None:
            return MISSING_OWNER
        for name in owner.ANALYTICS_FIELDS:
            setattr(owner, name, None)
        owner.processing_status = OwnerProcessingStatus.PROCESSING
        return WRITTEN
