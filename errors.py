"""
Exceptions raised by the consent analyzer.

Every error carries a message that can be shown to the user as-is.
"""

from typing import Optional


class ConsentAnalyzerError(Exception):
    """Base exception for all consent analyzer errors."""

    default_message = "Analysis failed. Please try again."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class ValidationError(ConsentAnalyzerError):
    """Input text is not a plausible terms / privacy document."""

    default_message = "The provided text is not a valid terms and conditions document."


class InvalidDecisionError(ConsentAnalyzerError):
    """Consent decision outside allow / partial / deny."""

    default_message = "Consent decision must be one of: allow, partial, deny."


# ── Remote analysis ──────────────────────────────────────────────────────────

class RemoteError(ConsentAnalyzerError):
    """Base for failures of the remote generative analysis."""


class RemoteUnavailableError(RemoteError):
    """Network, HTTP or backend failure."""

    default_message = "Analysis failed. The analysis service is currently unavailable."


class MalformedRemoteResponseError(RemoteUnavailableError):
    """The backend answered but the content could not be parsed."""

    default_message = "Analysis failed. The analysis service returned an unreadable result."


class RemoteRateLimitedError(RemoteError):
    default_message = "Rate limit exceeded. Please try again in a moment."


class RemoteQuotaExceededError(RemoteError):
    default_message = "AI credits depleted. Please add credits to continue."


class DocumentRejectedError(RemoteError):
    """The backend's own legal-document check refused the input."""

    default_message = ("This document does not appear to contain Terms & Conditions or a "
                       "Privacy Policy. Please provide a valid legal document for analysis.")

    def __init__(self, message: Optional[str] = None, validation_info: Optional[dict] = None):
        super().__init__(message)
        self.validation_info = validation_info or {}
