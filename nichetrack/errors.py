"""
Error types for NicheTrack.

Every failure the ingestion run can hit is one of a small closed set of
exception classes. Each carries a ``stage`` tag so the orchestrator can turn
it into a structured failure record without inspecting messages.

    ConfigError      fatal, aborts the run before any subscription is touched
    AuthError        fatal, rejects the request
    FetchError       per subscription: Reddit unreachable, bad status, empty listing
    UpstreamShapeError
                     per subscription: Reddit answered but not with the expected shape
    EnrichmentError  per subscription: chat-completion call failed
    PersistError     per subscription: Supabase insert/update/select failed
"""

from typing import Optional


class NicheTrackError(Exception):
    """Base class for all NicheTrack errors."""

    stage = "internal"
    fatal = False

    def __init__(
        self,
        message: str,
        subreddit: Optional[str] = None,
        status_code: Optional[int] = None,
        detail: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.subreddit = subreddit
        self.status_code = status_code
        self.detail = detail

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"{self.message} (HTTP {self.status_code})"
        return self.message


class ConfigError(NicheTrackError):
    """Required configuration or credentials are missing."""

    stage = "config"
    fatal = True

    def __init__(self, message: str, missing: Optional[list] = None):
        super().__init__(message)
        self.missing = list(missing or [])


class AuthError(NicheTrackError):
    """The caller's bearer token was missing or wrong."""

    stage = "auth"
    fatal = True


class FetchError(NicheTrackError):
    """Content source could not deliver posts for a subreddit."""

    stage = "fetch"


class UpstreamShapeError(FetchError):
    """An upstream response was readable but not in the expected shape."""


class EnrichmentError(NicheTrackError):
    """The text-generation call failed or returned an unusable body."""

    stage = "enrich"


class PersistError(NicheTrackError):
    """A read or write against the datastore failed."""

    stage = "persist"


def classify_error(exc: BaseException) -> str:
    """
    Map an exception to the pipeline stage it belongs to.

    Exceptions outside the NicheTrack taxonomy are reported as "internal".
    """
    if isinstance(exc, NicheTrackError):
        return exc.stage
    return "internal"


def describe_error(exc: BaseException) -> str:
    """Human-readable reason for a failure record."""
    if isinstance(exc, NicheTrackError):
        return str(exc)
    return f"{type(exc).__name__}: {exc}"
