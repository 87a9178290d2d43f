from __future__ import annotations

from typing import List, Optional


class RouterError(Exception):
    """Base error for the orchestration core."""


class ConfigurationError(RouterError):
    pass


class ProviderUnavailable(ConfigurationError):
    """One or more configured providers have no credential. Fatal at startup."""

    def __init__(self, model_ids: List[str]):
        super().__init__(
            "Missing credential for provider(s): " + ", ".join(model_ids)
        )
        self.model_ids = list(model_ids)


class ProviderNotFound(RouterError):
    def __init__(self, model_id: str):
        super().__init__(f"Invalid model specified: {model_id}")
        self.model_id = model_id


class RateLimited(RouterError):
    def __init__(self, retry_after_s: Optional[float] = None, message: str = "Rate limited"):
        super().__init__(message)
        self.retry_after_s = retry_after_s


class InvocationTimeout(RouterError):
    """A single provider call exceeded its deadline."""


class InvocationFailed(RouterError):
    """Any other per-call failure: transport, HTTP status, malformed body."""


class AllProvidersFailed(RouterError):
    def __init__(self, message: str = "All models failed to respond"):
        super().__init__(message)
