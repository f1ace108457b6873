class LLMServiceError(Exception):
    """Base exception for LLM services."""
    pass


class LLMTransportError(LLMServiceError):
    """Exception for errors during LLM API calls (network, auth, provider)."""
    pass


class LLMMalformedOutputError(LLMServiceError):
    """Exception for responses that do not parse into the expected shape."""
    pass


class LLMConfigurationError(LLMServiceError):
    """Exception for providers that cannot be constructed from their config."""
    pass
