"""
orchestrator.py: entry point for analysing a submitted document.

Remote generative analysis first; plain text falls back to the local
heuristic pipeline when the remote call fails. Image / PDF / Word payloads
have no local fallback.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import analyzer
from analyzer import AnalysisResult
from errors import ValidationError
from remote import RemoteAnalysisAdapter, RemoteSucceeded

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Payload tagging
# ─────────────────────────────────────────────────────────────────────────────

TEXT_PREFIX  = "TEXT_DATA:"
IMAGE_PREFIX = "IMAGE_DATA:"
PDF_PREFIX   = "PDF_DATA:"
DOC_PREFIX   = "DOC_DATA:"

DEFAULT_PDF_NAME = "document.pdf"
DEFAULT_DOC_NAME = "document"


@dataclass(frozen=True)
class AnalysisPayload:
    kind:      str                   # text | image | pdf | document
    data:      str
    file_name: Optional[str] = None

    @property
    def is_binary(self) -> bool:
        return self.kind != "text"

    def to_request_body(self) -> dict:
        if self.kind == "image":
            return {"imageData": self.data, "type": "image"}
        if self.kind == "pdf":
            return {"pdfData": self.data, "fileName": self.file_name, "type": "pdf"}
        if self.kind == "document":
            return {"docData": self.data, "fileName": self.file_name, "type": "document"}
        return {"text": self.data}


def _split_file(rest: str, default_name: str) -> tuple:
    parts = rest.split(":")
    name = parts[1] if len(parts) > 1 and parts[1] else default_name
    return parts[0], name

def parse_payload(raw: str) -> AnalysisPayload:
    """Strip the upload tag from a raw submission."""
    if raw.startswith(IMAGE_PREFIX):
        return AnalysisPayload("image", raw[len(IMAGE_PREFIX):])
    if raw.startswith(PDF_PREFIX):
        data, name = _split_file(raw[len(PDF_PREFIX):], DEFAULT_PDF_NAME)
        return AnalysisPayload("pdf", data, name)
    if raw.startswith(DOC_PREFIX):
        data, name = _split_file(raw[len(DOC_PREFIX):], DEFAULT_DOC_NAME)
        return AnalysisPayload("document", data, name)
    if raw.startswith(TEXT_PREFIX):
        return AnalysisPayload("text", raw[len(TEXT_PREFIX):])
    return AnalysisPayload("text", raw)


# ─────────────────────────────────────────────────────────────────────────────
# Orchestrator
# ─────────────────────────────────────────────────────────────────────────────

class AnalysisOrchestrator:
    """
    Validating → remote attempt → (success | fallback | rejected).

    Holds no per-request state, so one instance serves concurrent requests.
    """

    def __init__(self, adapter: Optional[RemoteAnalysisAdapter] = None):
        self.adapter = adapter or RemoteAnalysisAdapter()

    def analyze(self, raw: str) -> AnalysisResult:
        """
        Analyse a raw (possibly tagged) submission.

        Raises ValidationError for plain text that is not a legal document, and
        the remote error for binary payloads the backend could not analyse.
        """
        payload = parse_payload(raw)

        if not payload.is_binary:
            verdict = analyzer.classify_document(payload.data)
            if not verdict.is_valid:
                raise ValidationError(verdict.reason)

        outcome = self.adapter.analyze(payload.to_request_body())

        if isinstance(outcome, RemoteSucceeded):
            return outcome.result

        if payload.is_binary:
            logger.error("Remote analysis of %s payload failed: %s", payload.kind, outcome.error)
            raise outcome.error

        logger.warning("Remote analysis failed (%s), falling back to basic analysis",
                       type(outcome.error).__name__)
        return analyzer.analyze(payload.data)
