"""
Tests for configuration loading and pipeline settings.
"""

import pytest

from feedback_media.utils import config as config_module
from feedback_media.utils.config import PipelineSettings, _as_int, load_config, load_pipeline_settings

SETTING_VARS = [
    'FEEDBACK_MEDIA_MAX_RETRIES',
    'FEEDBACK_MEDIA_RETRY_BACKOFF_BASE_SECONDS',
    'FEEDBACK_MEDIA_PROCESSING_TIMEOUT_SECONDS',
    'NORMALIZED_LANGUAGE',
    'OPENAI_STT_MODEL',
    'OPENAI_TRANSLATION_MODEL',
    'FEEDBACK_MEDIA_FETCH_TIMEOUT_SECONDS',
    'FEEDBACK_MEDIA_TRANSCRIPTION_TIMEOUT_SECONDS',
]


@pytest.fixture
def clean_env(monkeypatch):
    monkeypatch.setattr(config_module, '_env_loaded', True)
    for name in SETTING_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestAsInt:
    """Tests for integer env parsing."""

    @pytest.mark.parametrize("raw,expected", [
        (None, 7),
        ("", 7),
        ("  ", 7),
        ("abc", 7),
        ("nan", 7),
        ("inf", 7),
        ("5", 5),
        ("5.9", 5),
        ("-2.5", -2),
    ])
    def test_parsing(self, raw, expected):
        assert _as_int(raw, 7) == expected


class TestPipelineSettings:
    """Tests for load_pipeline_settings."""

    def test_defaults(self, clean_env):
        assert load_pipeline_settings() == PipelineSettings()

    def test_reads_environment(self, clean_env):
        clean_env.setenv('FEEDBACK_MEDIA_MAX_RETRIES', '5')
        clean_env.setenv('FEEDBACK_MEDIA_RETRY_BACKOFF_BASE_SECONDS', '30')
        clean_env.setenv('FEEDBACK_MEDIA_PROCESSING_TIMEOUT_SECONDS', '600.7')
        clean_env.setenv('NORMALIZED_LANGUAGE', ' ES ')
        clean_env.setenv('OPENAI_STT_MODEL', 'gpt-4o-transcribe')

        settings = load_pipeline_settings()

        assert settings.max_retries == 5
        assert settings.backoff_base_seconds == 30
        assert settings.processing_timeout_seconds == 600
        assert settings.normalized_language == 'es'
        assert settings.stt_model == 'gpt-4o-transcribe'
        assert settings.translation_model == 'gpt-4o-mini'

    def test_invalid_values_fall_back(self, clean_env):
        clean_env.setenv('FEEDBACK_MEDIA_MAX_RETRIES', 'lots')

        assert load_pipeline_settings().max_retries == 3


class TestLoadConfig:
    """Tests for YAML loading."""

    def test_missing_file_uses_defaults(self, clean_env, tmp_path):
        config = load_config(tmp_path / 'missing.yaml')

        assert config['database']['url'] == 'sqlite:///feedback_media.db'
        assert config['logging']['base_path'] == ''

    def test_env_substitution_and_merge(self, clean_env, tmp_path):
        path = tmp_path / 'config.yaml'
        path.write_text(
            "database:\n"
            "  url: ${TEST_FEEDBACK_DB}\n"
            "logging:\n"
            "  level: DEBUG\n"
        )
        clean_env.setenv('TEST_FEEDBACK_DB', 'postgresql://localhost/feedback')

        config = load_config(path)

        assert config['database']['url'] == 'postgresql://localhost/feedback'
        assert config['database']['echo'] is False
        assert config['logging']['level'] == 'DEBUG'

    def test_unset_variable_falls_back_to_default(self, clean_env, tmp_path):
        path = tmp_path / 'config.yaml'
        path.write_text("database:\n  url: ${TEST_FEEDBACK_DB_UNSET}\n")
        clean_env.delenv('TEST_FEEDBACK_DB_UNSET', raising=False)

        assert load_config(path)['database']['url'] == 'sqlite:///feedback_media.db'
