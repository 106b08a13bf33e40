"""
Fixtures for consent analyzer tests.
"""

import pytest
import requests

from analyzer import AnalysisResult, RiskItem, SummarySection, IndividualTerm, SafetyInsights
from errors import RemoteUnavailableError
from helpers import FakeAdapter
from remote import RemoteSucceeded, RemoteFailed

# Well-formed policy with no high-risk keywords and explicit user rights
SAMPLE_POLICY = """Privacy Policy
Last updated: January 1, 2024
This policy explains how Example Service collects and uses information.
We collect your name and email address when you create an account.
We use cookies to keep you signed in and remember your preferences.
You have the right to access and delete your data at any time.
Contact our privacy team if you have questions about this policy.
"""

# Location + biometric collection, sale to third parties, indefinite retention
RISKY_POLICY = """Privacy Policy
We collect your location and biometric data when you use the app.
We may sell data to third parties without further notice.
This retention is indefinitely; we retain records after closure.
By using the service you agree to these terms and conditions.
Contact support with any questions about this document.
"""


@pytest.fixture
def sample_policy():
    return SAMPLE_POLICY


@pytest.fixture
def risky_policy():
    return RISKY_POLICY


@pytest.fixture
def remote_result():
    """A result as the generative backend would return it."""
    return AnalysisResult(
        document_title="Example Terms of Service",
        company_name="Example Inc.",
        risk_score=42,
        risk_items=[RiskItem("Forced Arbitration", "Disputes go to arbitration",
                             "No class actions", "Look for an opt-out window", "high")],
        summary_data=[SummarySection("Overview", "• Arbitration clause\n• GDPR compliant", "medium")],
        individual_terms=[IndividualTerm("essential-service", "Essential Service Operations",
                                         "Core features", "low", True)],
        safety_insights=SafetyInsights("Safer than most social networks",
                                       "Use with a dedicated email address", 64,
                                       ["Arbitration is mandatory"]),
    )


@pytest.fixture
def succeeding_adapter(remote_result):
    return FakeAdapter(RemoteSucceeded(remote_result))


@pytest.fixture
def failing_adapter():
    return FakeAdapter(RemoteFailed(RemoteUnavailableError()))


@pytest.fixture
def timeout_error():
    return requests.exceptions.Timeout("read timed out")
