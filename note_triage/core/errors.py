from typing import Dict, Optional


class TriageError(Exception):
    """
    Base class for every error raised by the classification pipeline.
    """


class ConfigError(TriageError):
    """Raised when config.yaml or the environment holds an invalid value."""


class InvalidRequestError(TriageError):
    """Malformed caller input. Never reaches the router."""


class ProviderError(TriageError):
    """
    A failure local to one LLM provider.

    The router treats every ProviderError as recoverable and moves on to the
    next configured provider.
    """

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"[{provider}] {message}")
        self.provider = provider


class MissingCredentialError(ProviderError):
    def __init__(self, provider: str, env_var: str) -> None:
        super().__init__(provider, f"missing credential ({env_var} is not set)")
        self.env_var = env_var


class ProviderTimeoutError(ProviderError):
    def __init__(self, provider: str, timeout: float) -> None:
        super().__init__(provider, f"request timed out after {timeout:g}s")
        self.timeout = timeout


class UpstreamError(ProviderError):
    def __init__(self, provider: str, status: Optional[int], detail: str) -> None:
        super().__init__(provider, f"upstream error (status={status}): {detail}")
        self.status = status
        self.detail = detail


class UnparseableResponseError(ProviderError):
    def __init__(self, raw_text: str, provider: str = "model") -> None:
        snippet = (raw_text or "")[:80].replace("\n", " ")
        super().__init__(provider, f"unparseable model output: '{snippet}'")
        self.raw_text = raw_text


class NoProviderAvailableError(TriageError):
    """
    Terminal router failure: every configured provider failed, or none is configured.
    """

    def __init__(self, failures: Optional[Dict[str, str]] = None) -> None:
        self.failures = failures or {}
        if self.failures:
            summary = "; ".join(f"{name}: {reason}" for name, reason in self.failures.items())
            message = f"All providers failed ({summary})"
        else:
            message = "No provider configured (set GEMINI_API_KEY or OPENAI_API_KEY)"
        super().__init__(message)
