"""Typed errors raised by the routing core.

Provider-level failures (`ProviderError`) are recovered inside the router by
moving to the next candidate. Request-level failures are surfaced to callers
as distinct types so they can tell "try again later" (`ExhaustedError`) from
"misconfigured task type" (`NoCandidatesError`).
"""

from dataclasses import dataclass
from typing import Optional, Sequence

from app.polyroute.core.types import ErrorKind


class RoutingError(Exception):
    """Base class for every error raised by the routing core."""


class ProviderError(RoutingError):
    """A single provider invocation failed.

    Args:
        provider_id: Provider that failed.
        message: Human-readable failure detail.
        kind: ``provider_error`` (network, 5xx, malformed payload),
            ``rejected`` (4xx, missing credentials) or ``timeout``.
    """

    def __init__(self, provider_id: str, message: str, kind: ErrorKind = "provider_error"):
        super().__init__(f"{provider_id}: {message}")
        self.provider_id = provider_id
        self.message = message
        self.kind = kind


@dataclass(frozen=True)
class AttemptFailure:
    """Diagnosis of one failed attempt, attached to `ExhaustedError`."""
    provider: str
    kind: ErrorKind
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"provider": self.provider, "kind": self.kind, "message": self.message}


class NoCandidatesError(RoutingError):
    """No registered provider declares support for the requested task type."""

    def __init__(self, task_type: str):
        super().__init__(f"No provider supports task type '{task_type}'")
        self.task_type = task_type


class ExhaustedError(RoutingError):
    """Every candidate provider was attempted and failed."""

    def __init__(self, request_id: str, failures: Sequence[AttemptFailure]):
        tried = ", ".join(f.provider for f in failures) or "none"
        super().__init__(f"All providers failed for request {request_id} (tried: {tried})")
        self.request_id = request_id
        self.failures: list[AttemptFailure] = list(failures)


class RequestCancelledError(RoutingError):
    """The caller cancelled the request between two candidate attempts."""

    def __init__(self, request_id: str, attempts: int = 0):
        super().__init__(f"Request {request_id} cancelled after {attempts} attempt(s)")
        self.request_id = request_id
        self.attempts = attempts


class LoggingFailure(RoutingError):
    """Internal to the metrics logger; never escapes it."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause
