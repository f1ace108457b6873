"""Application settings and configuration

Loads `.env` once, then reads every value through os.getenv so that real
environment variables always win over the file.
"""

import os
import logging
from typing import Dict, Any, Optional

from dotenv import load_dotenv

from persona_engine.infrastructure.constants.llm_constants import (
    DEFAULT_LLM_PROVIDER,
    OPENAI_MODEL_NAME,
    OPENAI_TEMPERATURE,
    OPENAI_MAX_TOKENS,
    OPENAI_DEFAULT_TIMEOUT,
    GEMINI_MODEL_NAME,
    GEMINI_TEMPERATURE,
    GEMINI_MAX_TOKENS,
    GEMINI_TOP_P,
    GEMINI_TOP_K,
    GEMINI_DEFAULT_TIMEOUT,
    ENV_LLM_PROVIDER,
    ENV_OPENAI_API_KEY,
    ENV_OPENAI_MODEL,
    ENV_OPENAI_MAX_TOKENS,
    ENV_GEMINI_API_KEY,
    ENV_GEMINI_MODEL,
    ENV_GEMINI_MAX_TOKENS,
    ENV_GEMINI_TOP_P,
    ENV_GEMINI_TOP_K,
)
from persona_engine.infrastructure.constants.pipeline_constants import (
    QUALITY_THRESHOLD,
    MAX_QUALITY_RETRIES,
    STAGE_TIMEOUT_SECONDS,
    RUN_TIMEOUT_SECONDS,
    ENV_MAX_QUALITY_RETRIES,
    ENV_QUALITY_THRESHOLD,
    ENV_QUALITY_GATE_POLICY,
    ENV_MINER_FEEDBACK,
    ENV_STAGE_TIMEOUT,
    ENV_RUN_TIMEOUT,
)
from persona_engine.infrastructure.data.config import (
    LLMConfig,
    PipelineConfig,
    QualityGatePolicy,
    ConfigurationError,
)

load_dotenv(override=False)


def _get_bool(key: str, default: bool = False) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _get_optional_float(key: str, default: Optional[float]) -> Optional[float]:
    """Read a positive float; "0", "none" or "off" disable the value."""
    value = os.getenv(key)
    if value is None or not value.strip():
        return default
    if value.strip().lower() in ("0", "none", "off"):
        return None
    try:
        return float(value)
    except ValueError:
        raise ConfigurationError(f"{key} must be a number, got {value!r}")


class Settings:
    """Manages application settings and configuration"""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

        # Database configuration
        self.database_url = os.getenv("DATABASE_URL", "sqlite:///./persona_engine.db")
        self.db_echo = _get_bool("DB_ECHO", False)

        # LLM Provider Configurations
        self.default_llm_provider = (
            os.getenv(ENV_LLM_PROVIDER, DEFAULT_LLM_PROVIDER).strip().lower()
        )
        self.llm_providers = {
            "openai": {
                "api_key": os.getenv(ENV_OPENAI_API_KEY),
                "model": os.getenv(ENV_OPENAI_MODEL, OPENAI_MODEL_NAME),
                "temperature": OPENAI_TEMPERATURE,
                "max_tokens": int(os.getenv(ENV_OPENAI_MAX_TOKENS, str(OPENAI_MAX_TOKENS))),
                "timeout": float(os.getenv("OPENAI_API_TIMEOUT", str(OPENAI_DEFAULT_TIMEOUT))),
            },
            "gemini": {
                "api_key": os.getenv(ENV_GEMINI_API_KEY) or os.getenv("GOOGLE_API_KEY"),
                "model": os.getenv(ENV_GEMINI_MODEL, GEMINI_MODEL_NAME),
                "temperature": GEMINI_TEMPERATURE,
                "max_tokens": int(os.getenv(ENV_GEMINI_MAX_TOKENS, str(GEMINI_MAX_TOKENS))),
                "top_p": float(os.getenv(ENV_GEMINI_TOP_P, str(GEMINI_TOP_P))),
                "top_k": int(os.getenv(ENV_GEMINI_TOP_K, str(GEMINI_TOP_K))),
                "timeout": float(os.getenv("GEMINI_API_TIMEOUT", str(GEMINI_DEFAULT_TIMEOUT))),
            },
        }

        # Pipeline configuration
        self.max_quality_retries = int(
            os.getenv(ENV_MAX_QUALITY_RETRIES, str(MAX_QUALITY_RETRIES))
        )
        self.quality_threshold = float(
            os.getenv(ENV_QUALITY_THRESHOLD, str(QUALITY_THRESHOLD))
        )
        self.quality_gate_policy = QualityGatePolicy.parse(os.getenv(ENV_QUALITY_GATE_POLICY))
        self.miner_feedback_on_retry = _get_bool(ENV_MINER_FEEDBACK, False)
        self.stage_timeout = _get_optional_float(ENV_STAGE_TIMEOUT, STAGE_TIMEOUT_SECONDS)
        self.run_timeout = _get_optional_float(ENV_RUN_TIMEOUT, RUN_TIMEOUT_SECONDS)

        # Set default log level for httpx and httpcore to reduce debug noise
        logging.getLogger("httpx").setLevel(logging.INFO)
        logging.getLogger("httpcore").setLevel(logging.INFO)

    def get_llm_config(self, provider: Optional[str] = None) -> Dict[str, Any]:
        """Get LLM configuration for specific provider"""
        provider = (provider or self.default_llm_provider).lower()
        if provider not in self.llm_providers:
            raise ConfigurationError(f"Unknown LLM provider: {provider}")
        return self.llm_providers[provider].copy()

    def get_llm_settings(self, provider: Optional[str] = None) -> LLMConfig:
        """Typed view of the provider configuration"""
        provider = (provider or self.default_llm_provider).lower()
        config = self.get_llm_config(provider)
        return LLMConfig(
            provider=provider,
            model=config.get("model"),
            api_key=config.get("api_key"),
            max_tokens=config.get("max_tokens"),
            timeout=config.get("timeout", 120.0),
        )

    def get_pipeline_config(self) -> PipelineConfig:
        """Build a validated pipeline configuration"""
        return PipelineConfig(
            quality_threshold=self.quality_threshold,
            max_quality_retries=self.max_quality_retries,
            quality_gate_policy=self.quality_gate_policy,
            miner_feedback_on_retry=self.miner_feedback_on_retry,
            stage_timeout=self.stage_timeout,
            run_timeout=self.run_timeout,
        )

    def validate_llm_config(self, provider: Optional[str] = None) -> bool:
        """Check that the provider has an API key configured"""
        provider = (provider or self.default_llm_provider).lower()
        config = self.llm_providers.get(provider)
        if config is None:
            self.logger.warning(f"Unknown LLM provider: {provider}")
            return False
        if not config.get("api_key"):
            self.logger.warning(f"No API key configured for LLM provider: {provider}")
            return False
        return True


# Create a global settings instance
settings = Settings()
