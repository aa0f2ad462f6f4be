"""
Configuration utilities for loading and managing config files.

This module provides centralized configuration loading with:
- YAML config file parsing
- Environment variable substitution (${VAR} syntax)
- Automatic .env file loading
- Pipeline knobs read from the environment (retries, backoff, timeouts)

Usage:
    from feedback_media.utils.config import load_config, get_credential, load_pipeline_settings

    config = load_config()  # Loads config with env substitution
    api_key = get_credential('OPENAI_API_KEY')  # Get credential from .env
    settings = load_pipeline_settings()
"""
from dataclasses import dataclass
from pathlib import Path
import yaml
import os
import re
from typing import Dict, Optional, Any
import logging
from dotenv import load_dotenv

# Use standard logging to avoid circular import
logger = logging.getLogger(__name__)

# Track if .env has been loaded
_env_loaded = False

DEFAULT_CONFIG: Dict[str, Any] = {
    'database': {
        'url': 'sqlite:///feedback_media.db',
        'echo': False,
    },
    'logging': {
        'base_path': '',
        'level': 'INFO',
    },
}


def _ensure_env_loaded():
    """Ensure .env file is loaded (once)."""
    global _env_loaded
    if not _env_loaded:
        from .paths import get_env_path
        env_path = get_env_path()
        if env_path.exists():
            load_dotenv(env_path, override=False)
            logger.debug(f"Loaded environment from {env_path}")
        _env_loaded = True


def _substitute_env_vars(value: Any) -> Any:
    """Recursively substitute ${VAR} patterns with environment variables."""
    if isinstance(value, str):
        # Match ${VAR} pattern
        pattern = r'\$\{([^}]+)\}'
        matches = re.findall(pattern, value)
        for var_name in matches:
            env_value = os.getenv(var_name, '')
            value = value.replace(f'${{{var_name}}}', env_value)
        return value
    elif isinstance(value, dict):
        return {k: _substitute_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_substitute_env_vars(item) for item in value]
    return value


def _deep_merge(default: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge two dictionaries."""
    result = default.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def _drop_empty(value: Any) -> Any:
    """Remove empty-string leaves so unset ${VAR}s fall back to defaults."""
    if isinstance(value, dict):
        return {k: _drop_empty(v) for k, v in value.items() if v != ''}
    return value


def load_config(config_path: Optional[Path] = None, substitute_env: bool = True) -> Dict:
    """Load configuration from yaml file with optional env variable substitution.

    Args:
        config_path: Optional path to config file. If not provided, will look in default location.
        substitute_env: If True, substitute ${VAR} patterns with environment variables.

    Returns:
        Dict containing configuration settings merged over DEFAULT_CONFIG.
    """
    # Ensure .env is loaded before reading config
    _ensure_env_loaded()

    if config_path is None:
        from .paths import get_config_path
        config_path = get_config_path()

    config: Dict[str, Any] = {}
    if Path(config_path).exists():
        with open(config_path) as f:
            config = yaml.safe_load(f) or {}
    else:
        logger.debug(f"Config file {config_path} not found, using defaults")

    if substitute_env:
        config = _substitute_env_vars(config)

    return _deep_merge(DEFAULT_CONFIG, _drop_empty(config))


def get_credential(name: str, default: Optional[str] = None) -> Optional[str]:
    """Get a credential from environment variables.

    This is the preferred way to access credentials. It ensures .env is loaded.

    Args:
        name: Environment variable name (e.g., 'OPENAI_API_KEY')
        default: Default value if not found

    Returns:
        Credential value or default
    """
    _ensure_env_loaded()
    return os.getenv(name, default)


def get_database_url() -> str:
    """Get the SQLAlchemy database URL from config."""
    return load_config()['database']['url']


def _as_int(value: Optional[str], fallback: int) -> int:
    """Parse an integer env value; non-numeric or missing values use the fallback."""
    if value is None or value.strip() == '':
        return fallback
    try:
        number = float(value)
    except ValueError:
        logger.warning(f"Ignoring non-numeric setting value {value!r}, using {fallback}")
        return fallback
    if number != number or number in (float('inf'), float('-inf')):
        return fallback
    return int(number)


@dataclass(frozen=True)
class PipelineSettings:
    """Tunables for the feedback media pipeline."""
    max_retries: int = 3
    backoff_base_seconds: int = 60
    processing_timeout_seconds: int = 15 * 60
    normalized_language: str = 'en'
    stt_model: str = 'whisper-1'
    translation_model: str = 'gpt-4o-mini'
    fetch_timeout_seconds: int = 60
    transcription_timeout_seconds: int = 300


def load_pipeline_settings() -> PipelineSettings:
    """Build PipelineSettings from the environment (after loading .env)."""
    _ensure_env_loaded()
    defaults = PipelineSettings()
    return PipelineSettings(
        max_retries=_as_int(os.getenv('FEEDBACK_MEDIA_MAX_RETRIES'), defaults.max_retries),
        backoff_base_seconds=_as_int(
            os.getenv('FEEDBACK_MEDIA_RETRY_BACKOFF_BASE_SECONDS'), defaults.backoff_base_seconds
        ),
        processing_timeout_seconds=_as_int(
            os.getenv('FEEDBACK_MEDIA_PROCESSING_TIMEOUT_SECONDS'), defaults.processing_timeout_seconds
        ),
        normalized_language=(os.getenv('NORMALIZED_LANGUAGE') or defaults.normalized_language).strip().lower(),
        stt_model=os.getenv('OPENAI_STT_MODEL') or defaults.stt_model,
        translation_model=os.getenv('OPENAI_TRANSLATION_MODEL') or defaults.translation_model,
        fetch_timeout_seconds=_as_int(
            os.getenv('FEEDBACK_MEDIA_FETCH_TIMEOUT_SECONDS'), defaults.fetch_timeout_seconds
        ),
        transcription_timeout_seconds=_as_int(
            os.getenv('FEEDBACK_MEDIA_TRANSCRIPTION_TIMEOUT_SECONDS'), defaults.transcription_timeout_seconds
        ),
    )
