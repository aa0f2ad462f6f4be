"""
Transcription/Normalization Adapter

Turns a stored media blob into analytics text:
- Fetch the blob (requests)
- Speech-to-text in the original language (OpenAI audio transcriptions)
- Translate to the normalized analytics language
- Keyword sentiment on the normalized text

Adapters never raise. Every failure comes back as a TranscriptionFailure so the
pipeline's retry bookkeeping sees it.
"""

import re
from dataclasses import dataclass
from typing import Callable, Optional, Tuple, Union

import requests
from openai import OpenAI

from ..utils.config import PipelineSettings, get_credential, load_pipeline_settings
from ..utils.error_codes import ErrorCode
from ..utils.logger import setup_worker_logger
from .sentiment import analyze_sentiment

logger = setup_worker_logger('transcribe')


@dataclass(frozen=True)
class TranscriptionSuccess:
    transcript_text: str
    original_language: Optional[str]
    normalized_text: str
    normalized_language: str
    sentiment: str

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class TranscriptionFailure:
    error_code: str
    error_detail: str

    @property
    def ok(self) -> bool:
        return False


TranscriptionResult = Union[TranscriptionSuccess, TranscriptionFailure]


class CredentialsMissingError(RuntimeError):
    """Raised internally when OPENAI_API_KEY is not configured."""


# Whisper's verbose_json reports language names ("english"); analytics store ISO-639-1.
LANGUAGE_CODES = {
    'english': 'en',
    'spanish': 'es',
    'portuguese': 'pt',
    'french': 'fr',
    'italian': 'it',
    'german': 'de',
    'catalan': 'ca',
    'galician': 'gl',
    'basque': 'eu',
    'dutch': 'nl',
    'swedish': 'sv',
    'norwegian': 'no',
    'danish': 'da',
    'finnish': 'fi',
    'russian': 'ru',
    'polish': 'pl',
    'ukrainian': 'uk',
    'turkish': 'tr',
    'arabic': 'ar',
    'hebrew': 'he',
    'persian': 'fa',
    'hindi': 'hi',
    'bengali': 'bn',
    'tamil': 'ta',
    'telugu': 'te',
    'chinese': 'zh',
    'japanese': 'ja',
    'korean': 'ko',
    'romanian': 'ro',
    'czech': 'cs',
    'greek': 'el',
    'hungarian': 'hu',
    'vietnamese': 'vi',
    'indonesian': 'id',
    'malay': 'ms',
}


def normalize_language_code(language: Optional[str]) -> Optional[str]:
    """Map 'English' / 'en-US' / 'pt_BR' to ISO-639-1; unknown names pass through lowercased."""
    if not language:
        return None
    value = language.strip().lower()
    if not value:
        return None
    if value in LANGUAGE_CODES:
        return LANGUAGE_CODES[value]
    base = re.split(r'[-_]', value, maxsplit=1)[0]
    if re.fullmatch(r'[a-z]{2}', base):
        return base
    return value


class TranscriptionAdapter:
    """Interface consumed by the pipeline driver."""

    def transcribe_and_normalize(self, blob_ref: str, filename: str,
                                 fallback_content_type: str) -> TranscriptionResult:
        raise NotImplementedError


class OpenAITranscriptionAdapter(TranscriptionAdapter):
    """Whisper transcription + translation through the OpenAI API."""

    def __init__(self, settings: Optional[PipelineSettings] = None,
                 client_factory: Callable[..., OpenAI] = OpenAI):
        self.settings = settings or load_pipeline_settings()
        self.client_factory = client_factory

    def _get_client(self) -> OpenAI:
        api_key = get_credential('OPENAI_API_KEY')
        if not api_key:
            raise CredentialsMissingError("OPENAI_API_KEY is not set")
        return self.client_factory(
            api_key=api_key,
            timeout=float(self.settings.transcription_timeout_seconds),
        )

    def _fetch_blob(self, url: str, fallback_content_type: str) -> Tuple[bytes, str]:
        response = requests.get(url, timeout=self.settings.fetch_timeout_seconds)
        if not response.ok:
            raise RuntimeError(f"Failed to fetch media: {response.status_code}")
        content_type = response.headers.get('content-type') or fallback_content_type
        return response.content, content_type

    def _translate_text(self, client: OpenAI, text: str, target_language: str) -> str:
        system = "You are a precise translator. Preserve meaning, tone and proper nouns."
        user = f"Translate to {target_language}. Output only the translation, no explanations.\n\nText:\n{text}"
        resp = client.chat.completions.create(
            model=self.settings.translation_model,
            messages=[{"role": "system", "content": system}, {"role": "user", "content": user}],
            temperature=0.1,
        )
        return (resp.choices[0].message.content or "").strip()

    def transcribe_and_normalize(self, blob_ref: str, filename: str,
                                 fallback_content_type: str) -> TranscriptionResult:
        try:
            client = self._get_client()
            data, content_type = self._fetch_blob(blob_ref, fallback_content_type)
            media_file = (filename, data, content_type)

            # 1) Transcribe (original language)
            transcription = client.audio.transcriptions.create(
                model=self.settings.stt_model,
                file=media_file,
                response_format="verbose_json",
            )
            transcript_text = getattr(transcription, 'text', None) or ''
            original_language = normalize_language_code(getattr(transcription, 'language', None))

            if not transcript_text.strip():
                return TranscriptionFailure(
                    ErrorCode.EMPTY_TRANSCRIPT.value,
                    "Transcription returned empty text",
                )

            # 2) Translate to normalized language
            target = self.settings.normalized_language
            normalized_text = transcript_text
            if original_language and original_language != target:
                if target == 'en':
                    # Whisper's translation endpoint only targets English
                    translation = client.audio.translations.create(
                        model=self.settings.stt_model,
                        file=media_file,
                    )
                    translated = (getattr(translation, 'text', None) or '').strip()
                else:
                    translated = self._translate_text(client, transcript_text, target)
                if translated:
                    normalized_text = translated

            # 3) Sentiment on normalized text
            sentiment = analyze_sentiment(normalized_text)

            return TranscriptionSuccess(
                transcript_text=transcript_text,
                original_language=original_language,
                normalized_text=normalized_text,
                normalized_language=target,
                sentiment=sentiment.sentiment,
            )
        except CredentialsMissingError as e:
            logger.error(f"Cannot transcribe {filename}: {e}")
            return TranscriptionFailure(ErrorCode.MISSING_CREDENTIALS.value, str(e))
        except Exception as e:
            logger.warning(f"Transcription failed for {filename}: {e}")
            return TranscriptionFailure(ErrorCode.PROCESSING_ERROR.value, str(e) or e.__class__.__name__)
