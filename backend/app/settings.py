from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


def _strip_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
        return value[1:-1]
    return value


def load_env_file(env_path: Path) -> None:
    if not env_path.exists():
        return

    for raw_line in env_path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue

        if line.startswith("export "):
            line = line[len("export ") :]

        key, separator, value = line.partition("=")
        if not separator:
            continue

        env_key = key.strip()
        if not env_key:
            continue

        env_value = _strip_quotes(value.strip())
        os.environ.setdefault(env_key, env_value)


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_mode(
    key: str,
    default: str,
    allowed: tuple[str, ...],
) -> str:
    value = os.getenv(key, default).strip().lower()
    if value not in allowed:
        allowed_csv = ", ".join(allowed)
        raise ValueError(f"{key} must be one of: {allowed_csv}")
    return value


def _env_optional(key: str) -> str | None:
    value = os.getenv(key)
    if value is None or not value.strip():
        return None
    return value.strip()


@dataclass(frozen=True)
class Settings:
    service_name: str
    service_version: str
    environment: str
    log_level: str
    host: str = "127.0.0.1"
    port: int = 8000
    translation_mode: str = "openai"
    translation_timeout_seconds: float = 15.0
    translation_temperature: float = 0.2
    translation_output_max_tokens: int = 1024
    openai_model: str = "gpt-4o-mini"
    openai_api_base_url: str = "https://api.openai.com/v1"
    openai_api_key: str | None = None
    gemini_model: str = "gemini-2.5-flash"
    gemini_api_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_api_key: str | None = None
    rate_limit_enabled: bool = True
    rate_limit_max_requests: int = 20
    rate_limit_window_seconds: float = 60.0
    rate_limit_max_buckets: int = 0
    session_debounce_seconds: float = 0.6
    session_client_queue_maxsize: int = 128
    session_default_source_lang: str = "en"
    session_default_target_lang: str = "es"
    recognition_mode: str = "accumulating"
    recognition_restart_delay_seconds: float = 0.2
    recognition_restart_backoff_multiplier: float = 2.0
    recognition_restart_max_delay_seconds: float = 3.0
    recognition_max_restart_attempts: int = 5
    speech_mode: str = "elevenlabs"
    speech_voices: str | None = None
    speech_max_text_chars: int = 1000
    speech_timeout_seconds: float = 20.0
    elevenlabs_api_key: str | None = None
    elevenlabs_api_base_url: str = "https://api.elevenlabs.io/v1"
    elevenlabs_voice_id: str = "21m00Tcm4TlvDq8ikWAM"
    elevenlabs_model_id: str = "eleven_multilingual_v2"

    @property
    def translation_key_configured(self) -> bool:
        if self.translation_mode == "openai":
            return bool(self.openai_api_key)
        if self.translation_mode == "gemini":
            return bool(self.gemini_api_key)
        return True

    @property
    def speech_key_configured(self) -> bool:
        if self.speech_mode == "elevenlabs":
            return bool(self.elevenlabs_api_key)
        return True

    def redacted(self) -> dict[str, str | int | float | bool | None]:
        return {
            "service_name": self.service_name,
            "service_version": self.service_version,
            "environment": self.environment,
            "log_level": self.log_level,
            "host": self.host,
            "port": self.port,
            "translation_mode": self.translation_mode,
            "translation_timeout_seconds": self.translation_timeout_seconds,
            "translation_temperature": self.translation_temperature,
            "translation_output_max_tokens": self.translation_output_max_tokens,
            "translation_key_configured": self.translation_key_configured,
            "openai_model": self.openai_model,
            "openai_api_base_url": self.openai_api_base_url,
            "gemini_model": self.gemini_model,
            "gemini_api_base_url": self.gemini_api_base_url,
            "rate_limit_enabled": self.rate_limit_enabled,
            "rate_limit_max_requests": self.rate_limit_max_requests,
            "rate_limit_window_seconds": self.rate_limit_window_seconds,
            "rate_limit_max_buckets": self.rate_limit_max_buckets,
            "session_debounce_seconds": self.session_debounce_seconds,
            "session_client_queue_maxsize": self.session_client_queue_maxsize,
            "session_default_source_lang": self.session_default_source_lang,
            "session_default_target_lang": self.session_default_target_lang,
            "recognition_mode": self.recognition_mode,
            "recognition_restart_delay_seconds": self.recognition_restart_delay_seconds,
            "recognition_restart_backoff_multiplier": self.recognition_restart_backoff_multiplier,
            "recognition_restart_max_delay_seconds": self.recognition_restart_max_delay_seconds,
            "recognition_max_restart_attempts": self.recognition_max_restart_attempts,
            "speech_mode": self.speech_mode,
            "speech_voices_configured": bool((self.speech_voices or "").strip()),
            "speech_max_text_chars": self.speech_max_text_chars,
            "speech_timeout_seconds": self.speech_timeout_seconds,
            "speech_key_configured": self.speech_key_configured,
            "elevenlabs_api_base_url": self.elevenlabs_api_base_url,
            "elevenlabs_voice_id": self.elevenlabs_voice_id,
            "elevenlabs_model_id": self.elevenlabs_model_id,
        }


def build_settings(project_root: Path) -> Settings:
    load_env_file(project_root / ".env")

    return Settings(
        service_name=os.getenv("BACKEND_SERVICE_NAME", "hct-backend"),
        service_version=os.getenv("BACKEND_SERVICE_VERSION", "0.1.0"),
        environment=os.getenv("BACKEND_ENV", "development"),
        log_level=os.getenv("BACKEND_LOG_LEVEL", "INFO").upper(),
        host=os.getenv("BACKEND_HOST", "127.0.0.1"),
        port=int(os.getenv("BACKEND_PORT", "8000")),
        translation_mode=_env_mode(
            "TRANSLATION_MODE",
            "openai",
            ("openai", "gemini", "mock"),
        ),
        translation_timeout_seconds=float(
            os.getenv("TRANSLATION_TIMEOUT_SECONDS", "15.0")
        ),
        translation_temperature=float(os.getenv("TRANSLATION_TEMPERATURE", "0.2")),
        translation_output_max_tokens=int(
            os.getenv("TRANSLATION_OUTPUT_MAX_TOKENS", "1024")
        ),
        openai_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
        openai_api_base_url=os.getenv(
            "OPENAI_API_BASE_URL",
            "https://api.openai.com/v1",
        ).rstrip("/"),
        openai_api_key=_env_optional("OPENAI_API_KEY"),
        gemini_model=os.getenv("GEMINI_MODEL", "gemini-2.5-flash"),
        gemini_api_base_url=os.getenv(
            "GEMINI_API_BASE_URL",
            "https://generativelanguage.googleapis.com/v1beta",
        ).rstrip("/"),
        gemini_api_key=_env_optional("GEMINI_API_KEY"),
        rate_limit_enabled=_env_bool("RATE_LIMIT_ENABLED", True),
        rate_limit_max_requests=int(os.getenv("RATE_LIMIT_MAX_REQUESTS", "20")),
        rate_limit_window_seconds=float(
            os.getenv("RATE_LIMIT_WINDOW_SECONDS", "60.0")
        ),
        rate_limit_max_buckets=int(os.getenv("RATE_LIMIT_MAX_BUCKETS", "0")),
        session_debounce_seconds=float(os.getenv("SESSION_DEBOUNCE_SECONDS", "0.6")),
        session_client_queue_maxsize=int(
            os.getenv("SESSION_CLIENT_QUEUE_MAXSIZE", "128")
        ),
        session_default_source_lang=os.getenv("SESSION_DEFAULT_SOURCE_LANG", "en").strip(),
        session_default_target_lang=os.getenv("SESSION_DEFAULT_TARGET_LANG", "es").strip(),
        recognition_mode=_env_mode(
            "RECOGNITION_MODE",
            "accumulating",
            ("accumulating", "conservative"),
        ),
        recognition_restart_delay_seconds=float(
            os.getenv("RECOGNITION_RESTART_DELAY_SECONDS", "0.2")
        ),
        recognition_restart_backoff_multiplier=float(
            os.getenv("RECOGNITION_RESTART_BACKOFF_MULTIPLIER", "2.0")
        ),
        recognition_restart_max_delay_seconds=float(
            os.getenv("RECOGNITION_RESTART_MAX_DELAY_SECONDS", "3.0")
        ),
        recognition_max_restart_attempts=int(
            os.getenv("RECOGNITION_MAX_RESTART_ATTEMPTS", "5")
        ),
        speech_mode=_env_mode("SPEECH_MODE", "elevenlabs", ("elevenlabs", "mock")),
        speech_voices=_env_optional("SPEECH_VOICES"),
        speech_max_text_chars=int(os.getenv("SPEECH_MAX_TEXT_CHARS", "1000")),
        speech_timeout_seconds=float(os.getenv("SPEECH_TIMEOUT_SECONDS", "20.0")),
        elevenlabs_api_key=_env_optional("ELEVENLABS_API_KEY"),
        elevenlabs_api_base_url=os.getenv(
            "ELEVENLABS_API_BASE_URL",
            "https://api.elevenlabs.io/v1",
        ).rstrip("/"),
        elevenlabs_voice_id=os.getenv("ELEVENLABS_VOICE_ID", "21m00Tcm4TlvDq8ikWAM").strip(),
        elevenlabs_model_id=os.getenv("ELEVENLABS_MODEL_ID", "eleven_multilingual_v2").strip(),
    )
