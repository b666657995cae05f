"""Exception hierarchy for the citation tracker.

Call sites catch the narrow kinds they can degrade from (a missing
credential, a failed upstream call, an unusable generation reply) and let
anything else propagate as a genuine bug.
"""
from __future__ import annotations


class SeogenixError(Exception):
    """Base class for all expected, classified failures."""


class ConfigAbsentError(SeogenixError):
    """A credential or endpoint needed for a call is not configured."""


class TransportError(SeogenixError):
    """An upstream call failed: network error, timeout, non-2xx or bad payload."""

    def __init__(self, message: str, *, provider: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


class ValidationFailure(SeogenixError):
    """Caller-supplied input is unusable."""


class InvalidSiteURLError(ValidationFailure):
    def __init__(self, url: str):
        super().__init__(f"Invalid URL format: {url!r}")
        self.url = url


class GenerationError(SeogenixError):
    """The text-generation service returned something we cannot use."""


class ResponseParseError(GenerationError):
    """The reply body is not parseable JSON."""


class ResponseValidationError(GenerationError):
    """The reply is well-formed JSON but violates the completion contract."""


class PersistenceError(SeogenixError):
    """A read or write against the store failed."""

    def __init__(self, message: str, *, table: str | None = None):
        super().__init__(message)
        self.table = table
