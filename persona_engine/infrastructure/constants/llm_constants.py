"""
Constants for LLM configuration.

This module defines constants for LLM configuration to ensure consistency
across the application. These constants are used as defaults in settings.py
and by the providers when no explicit value is configured.
"""

# OpenAI model constants (the pipeline was originally tuned on gpt-4o)
OPENAI_MODEL_NAME = "gpt-4o"
OPENAI_TEMPERATURE = 0.7
OPENAI_MAX_TOKENS = 16384

# Gemini model constants
GEMINI_MODEL_NAME = "models/gemini-2.5-flash"
GEMINI_TEMPERATURE = 0.7
GEMINI_MAX_TOKENS = 65536
GEMINI_TOP_P = 0.95
GEMINI_TOP_K = 40

# Common constants
DEFAULT_LLM_PROVIDER = "openai"
DEFAULT_TOP_P = 0.95

# Appended to the system prompt whenever JSON mode is requested
JSON_MODE_INSTRUCTION = "Respond ONLY with valid JSON."

# Timeout constants (seconds) for a single gateway call
OPENAI_DEFAULT_TIMEOUT = 120
GEMINI_DEFAULT_TIMEOUT = 120

# Environment variable names
ENV_LLM_PROVIDER = "LLM_PROVIDER"

ENV_OPENAI_API_KEY = "OPENAI_API_KEY"
ENV_OPENAI_MODEL = "OPENAI_MODEL"
ENV_OPENAI_MAX_TOKENS = "OPENAI_MAX_TOKENS"

ENV_GEMINI_API_KEY = "GEMINI_API_KEY"
ENV_GEMINI_MODEL = "GEMINI_MODEL"
ENV_GEMINI_MAX_TOKENS = "GEMINI_MAX_TOKENS"
ENV_GEMINI_TOP_P = "GEMINI_TOP_P"
ENV_GEMINI_TOP_K = "GEMINI_TOP_K"

# Task-specific parameters: sampling temperature per pipeline stage
MINER_TEMPERATURE = 0.7
JUDGE_TEMPERATURE = 0.3
PSYCHOLOGIST_TEMPERATURE = 0.6
SHADOW_ANALYST_TEMPERATURE = 0.8
SYNTHESIZER_TEMPERATURE = 0.7
