"""
llm.py: generative consent analysis backed by an LLM gateway.

Talks to any OpenAI-compatible /chat/completions endpoint (a hosted gateway,
or a local Ollama instance via its /v1 API) over plain REST.

This is the server side of the remote analysis contract: it takes one of the
request bodies built by orchestrator.AnalysisPayload and returns an
AnalysisResult, or raises one of the RemoteError subclasses that app.py turns
into the matching HTTP status.
"""

import hashlib
import json
import os
import re
import logging
from typing import Optional

import requests

from analyzer import AnalysisResult
from errors import (
    RemoteUnavailableError, MalformedRemoteResponseError,
    RemoteRateLimitedError, RemoteQuotaExceededError, DocumentRejectedError,
)

logger = logging.getLogger(__name__)

# ── Config (overridable via environment variables) ────────────────────────────
LLM_BASE_URL = os.environ.get("LLM_BASE_URL", "http://ollama:11434/v1")
LLM_MODEL    = os.environ.get("LLM_MODEL",    "llama3.2")
LLM_API_KEY  = os.environ.get("LLM_API_KEY",  "")
LLM_TIMEOUT  = int(os.environ.get("LLM_TIMEOUT", "120"))   # seconds
LLM_ENABLED  = os.environ.get("LLM_ENABLED", "true").lower() != "false"

# Low temperature keeps repeated analyses of one document close together
TEMPERATURE = 0.05

HASH_CHARS          = 5000
VALIDATION_CHARS    = 3000
MIN_OCR_CHARS       = 50
MIN_CONFIDENCE      = 60


# ─────────────────────────────────────────────────────────────────────────────
# Gateway client
# ─────────────────────────────────────────────────────────────────────────────

def _headers() -> dict:
    headers = {"Content-Type": "application/json"}
    if LLM_API_KEY:
        headers["Authorization"] = f"Bearer {LLM_API_KEY}"
    return headers


def _chat(messages: list, max_tokens: int) -> str:
    """
    Call /chat/completions and return the message content.
    Raises a RemoteError subclass on any failure.
    """
    payload = {
        "model":       LLM_MODEL,
        "messages":    messages,
        "temperature": TEMPERATURE,
        "max_tokens":  max_tokens,
        "stream":      False,
    }

    try:
        resp = requests.post(
            f"{LLM_BASE_URL}/chat/completions",
            json=payload,
            headers=_headers(),
            timeout=LLM_TIMEOUT,
        )
    except requests.exceptions.Timeout:
        logger.warning("LLM gateway timed out after %ds", LLM_TIMEOUT)
        raise RemoteUnavailableError()
    except requests.exceptions.RequestException as e:
        logger.warning("LLM gateway error: %s", e)
        raise RemoteUnavailableError()

    if resp.status_code == 429:
        raise RemoteRateLimitedError()
    if resp.status_code == 402:
        raise RemoteQuotaExceededError()
    if not resp.ok:
        logger.error("LLM gateway error: %d %s", resp.status_code, resp.text[:500])
        raise RemoteUnavailableError(f"AI gateway error: {resp.status_code}")

    try:
        content = resp.json()["choices"][0]["message"]["content"]
    except (ValueError, KeyError, IndexError, TypeError):
        raise MalformedRemoteResponseError("No content in AI response")
    if not content:
        raise MalformedRemoteResponseError("No content in AI response")
    return content.strip()


def _parse_json_response(text: str) -> Optional[dict]:
    """Extract JSON from model output, handling markdown fences and stray text."""
    if not text:
        return None
    text = re.sub(r"```(?:json)?", "", text).strip()
    match = re.search(r"\{.*\}", text, re.DOTALL)
    if not match:
        return None
    try:
        return json.loads(match.group())
    except json.JSONDecodeError:
        return None


def document_hash(text: str) -> str:
    """Fingerprint passed to the model so repeated runs of a document line up."""
    normalized = text.strip().lower()[:HASH_CHARS]
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()[:32]


# ─────────────────────────────────────────────────────────────────────────────
# Prompts
# ─────────────────────────────────────────────────────────────────────────────

OCR_PROMPT = (
    "Extract ALL text from this image in its ORIGINAL LANGUAGE. This is a legal document "
    "(Terms and Conditions, Privacy Policy, etc.). Extract every sentence, clause and section "
    "line by line, keeping the original structure, headings and order. Do NOT translate."
)


def _prompt_validation(text: str) -> str:
    return f"""You are a multilingual document classifier. Decide whether the text below is a \
Terms and Conditions, Privacy Policy, Terms of Service, User Agreement, EULA or similar legal \
document, and which language it is written in.

Respond with ONLY a JSON object in this exact format:
{{
  "isLegalDocument": boolean,
  "documentType": "terms_of_service" | "privacy_policy" | "user_agreement" | "eula" | "other" | "not_legal",
  "confidence": number (0-100),
  "detectedLanguage": "language name",
  "reason": "short explanation"
}}

Text to classify:
{text[:VALIDATION_CHARS]}"""


def _system_prompt(doc_hash: str, language: str) -> str:
    return f"""You are an expert multilingual legal and privacy analyst. Your analysis must be \
consistent: the same document must always receive the same risk score. Document hash: {doc_hash}.
Analyze the document in its original language ({language}) and answer in that language.

RISK SCORE (0-100), add points per factor:
DATA COLLECTION: basic info +5, behavioral data +10, location tracking +8, biometric data +15, \
sells data to third parties +15, shares with affiliates +10, no retention limit +7.
USER RIGHTS: easy deletion -5, portability -5, clear opt-out -5, no deletion rights +10, \
hard to exercise rights +8, must write to request data +5.
LEGAL PROTECTIONS: forced arbitration +12, class action waiver +8, broad liability limits +10, \
terms change without notice +8, no breach notification +10.
TRANSPARENCY: vague data use +10, undefined "partners" +8, no privacy contact +5, buried changes +7.
COMPLIANCE & SECURITY: GDPR -5, CCPA -3, encryption -5, ISO/SOC2 -5, no security measures +10, \
no compliance mentioned +8.
Bands: 0-30 low, 31-60 medium, 61-100 high.

Identify the exact company or service name. Compare practices to well-known services. \
Give specific, practical recommendations.

Return ONLY a JSON object with this exact structure (no markdown, no extra text):
{{
  "documentTitle": "string",
  "companyName": "string",
  "riskScore": number,
  "riskItems": [{{"clause": "string", "risk": "string", "impact": "string",
                  "recommendation": "string", "severity": "low" | "medium" | "high"}}],
  "summaryData": [{{"title": "string", "content": "4-5 bullet points, one per line",
                    "riskLevel": "low" | "medium" | "high"}}],
  "individualTerms": [{{"id": "string", "title": "string", "description": "string",
                        "risk": "low" | "medium" | "high", "isRequired": boolean}}],
  "safetyInsights": {{"comparisonToSafeServices": "string", "recommendedUsage": "string",
                      "trustScore": number, "keyWarnings": ["string"]}}
}}"""


def _prompt_analysis(text: str, doc_hash: str, doc_type: str, language: str) -> str:
    return f"""Analyze this {doc_type} document written in {language}. Read every clause, \
apply the scoring formula objectively and return the JSON object.
Document hash: {doc_hash}

Document to analyze:
{text}"""


# ─────────────────────────────────────────────────────────────────────────────
# Pipeline steps
# ─────────────────────────────────────────────────────────────────────────────

def extract_image_text(image_data: str) -> str:
    """Run the vision model over a data-URL image and return its text."""
    logger.info("Extracting text from uploaded image")
    content = _chat([{
        "role": "user",
        "content": [
            {"type": "text", "text": OCR_PROMPT},
            {"type": "image_url", "image_url": {"url": image_data}},
        ],
    }], max_tokens=12000)
    if len(content) < MIN_OCR_CHARS:
        raise RemoteUnavailableError(
            "Could not extract readable text from the image. Please ensure the image is clear, "
            "well-lit, and contains Terms & Conditions or Privacy Policy text.")
    logger.info("Extracted %d characters from image", len(content))
    return content


def validate_document(text: str) -> dict:
    """
    Ask the model whether this is a legal document.

    Returns the parsed verdict (possibly empty). Raises DocumentRejectedError
    when the model is confident it is not one.
    """
    try:
        content = _chat([{"role": "user", "content": _prompt_validation(text)}], max_tokens=500)
    except RemoteUnavailableError as e:
        logger.warning("Validation step failed, proceeding with analysis: %s", e)
        return {}

    verdict = _parse_json_response(content)
    if not verdict:
        logger.warning("Could not parse validation response, proceeding with analysis")
        return {}

    logger.info("Document validated: %s, language %s, confidence %s",
                verdict.get("documentType"), verdict.get("detectedLanguage"), verdict.get("confidence"))

    try:
        confidence = float(verdict.get("confidence", 100))
    except (TypeError, ValueError):
        confidence = 100.0
    if (not verdict.get("isLegalDocument", True)
            or verdict.get("documentType") == "not_legal"
            or confidence < MIN_CONFIDENCE):
        raise DocumentRejectedError(validation_info=verdict)
    return verdict


def analyze_text(text: str) -> AnalysisResult:
    doc_hash = document_hash(text)
    logger.info("Document hash for consistency: %s", doc_hash)

    verdict = validate_document(text)
    language = verdict.get("detectedLanguage") or "English"
    doc_type = verdict.get("documentType") or "terms_of_service"

    content = _chat([
        {"role": "system", "content": _system_prompt(doc_hash, language)},
        {"role": "user",   "content": _prompt_analysis(text, doc_hash, doc_type, language)},
    ], max_tokens=8000)

    data = _parse_json_response(content)
    if data is None:
        logger.error("Failed to parse AI response: %s", content[:500])
        raise MalformedRemoteResponseError("Failed to parse AI analysis result")
    try:
        return AnalysisResult.from_dict(data)
    except (KeyError, TypeError, ValueError) as e:
        logger.error("AI response does not match the result schema: %s", e)
        raise MalformedRemoteResponseError("Failed to parse AI analysis result")


# ─────────────────────────────────────────────────────────────────────────────
# Main public function
# ─────────────────────────────────────────────────────────────────────────────

def run_consent_analysis(body: dict) -> AnalysisResult:
    """Analyse one remote request body: {text}, {imageData}, {pdfData} or {docData}."""
    if not LLM_ENABLED:
        raise RemoteUnavailableError("AI analysis is disabled.")

    kind = body.get("type")
    if kind in ("pdf", "document") and (body.get("pdfData") or body.get("docData")):
        logger.info("Rejecting %s upload %s", kind, body.get("fileName"))
        raise RemoteUnavailableError(
            "PDF and Word document analysis is coming soon. For now, please either:\n"
            "1. Copy and paste the text from the document, or\n"
            "2. Take a screenshot/photo of each page and upload as images")

    if kind == "image" and body.get("imageData"):
        text = extract_image_text(body["imageData"])
    else:
        text = body.get("text") or ""

    if not isinstance(text, str) or not text.strip():
        raise RemoteUnavailableError("No document text provided.")

    logger.info("Starting AI analysis of %d characters", len(text))
    result = analyze_text(text)
    logger.info("AI analysis completed successfully")
    return result


# ─────────────────────────────────────────────────────────────────────────────
# Status helper  (used by the health endpoint)
# ─────────────────────────────────────────────────────────────────────────────

def llm_status() -> dict:
    """Return gateway connectivity info."""
    if not LLM_ENABLED:
        return {"available": False, "reason": "Disabled via LLM_ENABLED=false", "model": LLM_MODEL}

    try:
        r = requests.get(f"{LLM_BASE_URL}/models", headers=_headers(), timeout=4)
        if r.status_code != 200:
            return {"available": False, "reason": f"HTTP {r.status_code}", "model": LLM_MODEL}

        models = r.json().get("data", [])
        model_names = [m.get("id", "") for m in models]
        return {
            "available":    True,
            "model":        LLM_MODEL,
            "model_loaded": any(LLM_MODEL in n for n in model_names),
            "all_models":   model_names,
            "base_url":     LLM_BASE_URL,
        }
    except Exception as e:
        return {"available": False, "reason": str(e), "model": LLM_MODEL}
