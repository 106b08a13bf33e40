"""
Tests for the analysis backend client.
"""

import pytest
import requests

from helpers import FakeResponse, FakeSession
from errors import (
    RemoteUnavailableError, MalformedRemoteResponseError, RemoteRateLimitedError,
    RemoteQuotaExceededError, DocumentRejectedError,
)
from remote import RemoteAnalysisAdapter, RemoteSucceeded, RemoteFailed


def _adapter(*responses):
    session = FakeSession(*responses)
    return RemoteAnalysisAdapter("http://backend/api/analyze-consent", timeout=5, session=session), session


def test_success_parses_result(remote_result):
    adapter, session = _adapter(FakeResponse(200, remote_result.to_dict()))

    outcome = adapter.analyze({"text": "Terms"})

    assert isinstance(outcome, RemoteSucceeded)
    assert outcome.result == remote_result
    assert session.calls == [{"url": "http://backend/api/analyze-consent",
                              "json": {"text": "Terms"}, "timeout": 5}]


@pytest.mark.parametrize("status,error_type", [
    (429, RemoteRateLimitedError),
    (402, RemoteQuotaExceededError),
    (500, RemoteUnavailableError),
    (503, RemoteUnavailableError),
])
def test_status_codes_map_to_errors(status, error_type):
    adapter, _ = _adapter(FakeResponse(status, {"error": "backend says no"}))

    outcome = adapter.analyze({"text": "Terms"})

    assert isinstance(outcome, RemoteFailed)
    assert type(outcome.error) is error_type
    assert str(outcome.error) == "backend says no"


def test_rate_limit_default_message():
    adapter, _ = _adapter(FakeResponse(429))
    outcome = adapter.analyze({"text": "Terms"})
    assert "try again in a moment" in str(outcome.error)


def test_validation_rejection_keeps_info():
    info = {"isLegalDocument": False, "confidence": 95}
    adapter, _ = _adapter(FakeResponse(400, {"error": "Not a legal document", "validationInfo": info}))

    outcome = adapter.analyze({"text": "Terms"})

    assert isinstance(outcome.error, DocumentRejectedError)
    assert outcome.error.validation_info == info


def test_non_json_success_is_malformed():
    adapter, _ = _adapter(FakeResponse(200, None, text="<html>oops</html>"))
    outcome = adapter.analyze({"text": "Terms"})
    assert isinstance(outcome.error, MalformedRemoteResponseError)
    assert isinstance(outcome.error, RemoteUnavailableError)


def test_schema_mismatch_is_malformed():
    adapter, _ = _adapter(FakeResponse(200, {"documentTitle": "x", "riskScore": "very high"}))
    outcome = adapter.analyze({"text": "Terms"})
    assert isinstance(outcome.error, MalformedRemoteResponseError)


@pytest.mark.parametrize("exc", [
    requests.exceptions.Timeout("read timed out"),
    requests.exceptions.ConnectionError("refused"),
])
def test_transport_errors_do_not_raise(exc):
    adapter, _ = _adapter(exc)
    outcome = adapter.analyze({"text": "Terms"})
    assert isinstance(outcome, RemoteFailed)
    assert isinstance(outcome.error, RemoteUnavailableError)


def test_disabled_adapter_makes_no_call():
    session = FakeSession()
    adapter = RemoteAnalysisAdapter("http://backend", enabled=False, session=session)

    outcome = adapter.analyze({"text": "Terms"})

    assert isinstance(outcome.error, RemoteUnavailableError)
    assert session.calls == []


@pytest.mark.parametrize("body", [
    {"documentTitle": "x", "riskScore": 50, "safetyInsights": "not an object"},
    {"documentTitle": "x", "riskScore": float("inf")},
    {"documentTitle": "x", "riskScore": 50, "riskItems": "none"},
])
def test_ill_typed_success_body_is_malformed(body):
    adapter, _ = _adapter(FakeResponse(200, body))
    outcome = adapter.analyze({"text": "Terms"})
    assert isinstance(outcome, RemoteFailed)
    assert isinstance(outcome.error, MalformedRemoteResponseError)
