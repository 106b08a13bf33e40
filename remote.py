"""
remote.py: client for the generative analysis backend.

Posts one request body per analysis and returns a tagged outcome instead of
raising, so the caller decides what a failure means for its payload.
"""

import os
import logging
from dataclasses import dataclass
from typing import Optional, Union

import requests

from analyzer import AnalysisResult
from errors import (
    RemoteError, RemoteUnavailableError, MalformedRemoteResponseError,
    RemoteRateLimitedError, RemoteQuotaExceededError, DocumentRejectedError,
)

logger = logging.getLogger(__name__)

# ── Config (overridable via environment variables) ────────────────────────────
ANALYSIS_BACKEND_URL    = os.environ.get("ANALYSIS_BACKEND_URL", "http://localhost:5050/api/analyze-consent")
REMOTE_ANALYSIS_TIMEOUT = int(os.environ.get("REMOTE_ANALYSIS_TIMEOUT", "180"))   # seconds
REMOTE_ANALYSIS_ENABLED = os.environ.get("REMOTE_ANALYSIS_ENABLED", "true").lower() != "false"


# ─────────────────────────────────────────────────────────────────────────────
# Outcomes
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class RemoteSucceeded:
    result: AnalysisResult


@dataclass(frozen=True)
class RemoteFailed:
    error: RemoteError


RemoteOutcome = Union[RemoteSucceeded, RemoteFailed]


# ─────────────────────────────────────────────────────────────────────────────
# Adapter
# ─────────────────────────────────────────────────────────────────────────────

def _error_message(resp: requests.Response) -> Optional[str]:
    try:
        body = resp.json()
    except ValueError:
        return None
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return None


class RemoteAnalysisAdapter:
    """Wraps the HTTP analysis backend. One outstanding request per call."""

    def __init__(
        self,
        base_url: str = ANALYSIS_BACKEND_URL,
        timeout: int = REMOTE_ANALYSIS_TIMEOUT,
        enabled: bool = REMOTE_ANALYSIS_ENABLED,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self.enabled = enabled
        self.session = session or requests.Session()

    def analyze(self, body: dict) -> RemoteOutcome:
        if not self.enabled:
            logger.info("Remote analysis disabled via REMOTE_ANALYSIS_ENABLED=false")
            return RemoteFailed(RemoteUnavailableError("Remote analysis is disabled."))

        try:
            resp = self.session.post(self.base_url, json=body, timeout=self.timeout)
        except requests.exceptions.Timeout:
            logger.warning("Analysis backend timed out after %ds", self.timeout)
            return RemoteFailed(RemoteUnavailableError())
        except requests.exceptions.RequestException as e:
            logger.warning("Analysis backend unreachable: %s", e)
            return RemoteFailed(RemoteUnavailableError())

        if resp.status_code == 400:
            info = {}
            try:
                info = resp.json().get("validationInfo") or {}
            except (ValueError, AttributeError):
                pass
            return RemoteFailed(DocumentRejectedError(_error_message(resp), validation_info=info))
        if resp.status_code == 429:
            return RemoteFailed(RemoteRateLimitedError(_error_message(resp)))
        if resp.status_code == 402:
            return RemoteFailed(RemoteQuotaExceededError(_error_message(resp)))
        if not resp.ok:
            logger.warning("Analysis backend error: HTTP %d", resp.status_code)
            return RemoteFailed(RemoteUnavailableError(_error_message(resp)))

        try:
            result = AnalysisResult.from_dict(resp.json())
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Unparseable analysis backend response: %s", e)
            return RemoteFailed(MalformedRemoteResponseError())

        return RemoteSucceeded(result)
