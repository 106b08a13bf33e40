"""
Tests for the heuristic analysis pipeline.
"""

import pytest

import analyzer
from analyzer import (
    AnalysisResult, RiskItem, classify_document, detect_risk_items, compute_risk_score,
    extract_individual_terms, build_summary, extract_document_title, risk_band,
    REASON_TOO_SHORT, REASON_PLACEHOLDER, REASON_NOT_LEGAL, REASON_INCOMPLETE,
)

VARIED_TEXTS = [
    "",
    "x" * 150,
    "We collect data.",
    "Terms of Service\nWe share everything with partners and sell it.",
    "Our cookie policy covers analytics, tracking and advertising for minors and children.",
]


def _lines(*lines):
    return "\n".join(lines)


# ── Classification ───────────────────────────────────────────────────────────

def test_classify_accepts_policy(sample_policy):
    verdict = classify_document(sample_policy)
    assert verdict.is_valid
    assert verdict.reason is None


def test_classify_rejects_short_text():
    verdict = classify_document("Privacy Policy. We collect data.")
    assert not verdict.is_valid
    assert verdict.reason == REASON_TOO_SHORT


def test_classify_rejects_padded_short_text():
    assert classify_document("   short   " + " " * 200).reason == REASON_TOO_SHORT


def test_classify_rejects_placeholder():
    text = "[Image uploaded: screenshot.png] " + "Privacy Policy terms of service " * 5
    assert classify_document(text).reason == REASON_PLACEHOLDER


def test_classify_rejects_lorem_ipsum():
    text = _lines(*["Lorem ipsum dolor sit amet, privacy policy line"] * 6)
    assert classify_document(text).reason == REASON_PLACEHOLDER


def test_classify_rejects_unrelated_text():
    # Scenario A
    verdict = classify_document("x" * 150)
    assert not verdict.is_valid
    assert verdict.reason == REASON_NOT_LEGAL
    assert verdict.reason.startswith("This doesn't appear to be a terms and conditions")


def test_classify_accepts_keywords_without_title():
    text = _lines(
        "By continuing you agree that we collect personal information.",
        "We process your data to provide the service to every user.",
        "Security and protection measures are described below in detail.",
        "Disclosure happens only when required by applicable jurisdiction.",
        "Liability is limited to the amount you paid in the last year.",
    )
    assert classify_document(text).is_valid


def test_classify_rejects_four_keywords_without_title():
    # agree, data, user, service: one short of the threshold
    text = _lines(*["Every user must agree before the service stores any data here."] * 6)
    assert classify_document(text).reason == REASON_NOT_LEGAL


def test_classify_rejects_unstructured_document():
    text = "Terms of Service. " + "We collect data and share it with partners. " * 5
    assert classify_document(text).reason == REASON_INCOMPLETE


def test_classify_counts_only_long_lines():
    long_lines = ["This privacy policy line is long enough."] * 4
    short_lines = ["short line"] * 20
    text = _lines(*(long_lines + short_lines))
    assert classify_document(text).reason == REASON_INCOMPLETE
    assert classify_document(_lines(*(long_lines * 2))).is_valid


# ── Risk item detection ──────────────────────────────────────────────────────

def test_detect_risky_policy(risky_policy):
    # Scenario B
    items = detect_risk_items(risky_policy)
    assert [i.clause for i in items] == [
        "Data Collection and Usage",
        "Third-Party Data Sharing",
        "Data Retention and Deletion",
    ]
    assert all(i.severity == "high" for i in items)
    assert items[0].impact == "High privacy impact with potential data sharing"
    assert items[2].impact == "High risk of permanent data storage"


def test_detect_medium_collection_without_sensitive_data(sample_policy):
    items = detect_risk_items(sample_policy)
    by_clause = {i.clause: i for i in items}
    assert by_clause["Data Collection and Usage"].severity == "medium"
    assert by_clause["Data Collection and Usage"].impact == "Medium privacy impact from data collection"
    assert by_clause["Cookies and Tracking"].severity == "medium"
    assert by_clause["Data Retention and Deletion"].severity == "medium"
    assert "Third-Party Data Sharing" not in by_clause


def test_detect_collect_needs_data_or_information():
    items = detect_risk_items("We collect stamps.")
    assert items == [analyzer.GENERAL_PRIVACY_ITEM]


def test_detect_marketing_and_tracking():
    items = detect_risk_items("We send PROMOTIONAL mail and use Analytics.")
    assert [i.clause for i in items] == ["Marketing and Advertising", "Cookies and Tracking"]
    assert [i.severity for i in items] == ["medium", "medium"]


def test_detect_retention_permanent_changes_impact_not_severity():
    item = detect_risk_items("Records are kept in permanent storage.")[0]
    assert item.clause == "Data Retention and Deletion"
    assert item.severity == "medium"
    assert item.impact == "High risk of permanent data storage"


def test_detect_falls_back_to_general_item():
    items = detect_risk_items("Nothing relevant here at all.")
    assert len(items) == 1
    assert items[0].clause == "General Privacy Terms"
    assert items[0].severity == "low"


@pytest.mark.parametrize("text", VARIED_TEXTS)
def test_detect_never_empty(text):
    assert detect_risk_items(text)


# ── Scoring ──────────────────────────────────────────────────────────────────

def test_score_risky_policy_is_clamped(risky_policy):
    items = detect_risk_items(risky_policy)
    assert compute_risk_score(items, risky_policy) == 100


def test_score_sample_policy(sample_policy):
    # base 30 + three medium items, no keyword bonuses
    items = detect_risk_items(sample_policy)
    assert compute_risk_score(items, sample_policy) == 60


def test_score_keywords_count_once():
    items = [RiskItem("c", "r", "i", "x", "low")]
    assert compute_risk_score(items, "nothing") == 35
    assert compute_risk_score(items, "We may MONETIZE.") == 55
    assert compute_risk_score(items, "monetize monetize monetize") == 55


def test_score_empty_items_is_base():
    assert compute_risk_score([], "") == 30


@pytest.mark.parametrize("text", VARIED_TEXTS)
def test_score_is_deterministic_and_bounded(text):
    items = detect_risk_items(text)
    first = compute_risk_score(items, text)
    second = compute_risk_score(detect_risk_items(text), text)
    assert first == second
    assert 30 <= first <= 100


@pytest.mark.parametrize("score,band", [(0, "low"), (30, "low"), (31, "medium"), (60, "medium"), (61, "high"), (100, "high")])
def test_risk_band(score, band):
    assert risk_band(score) == band


# ── Individual terms ─────────────────────────────────────────────────────────

@pytest.mark.parametrize("text", VARIED_TEXTS)
def test_terms_start_with_single_essential_term(text):
    terms = extract_individual_terms(text)
    assert terms[0].id == "essential-service"
    assert terms[0].is_required
    assert [t.id for t in terms].count("essential-service") == 1
    assert len({t.id for t in terms}) == len(terms)


def test_terms_all_rules():
    text = ("We collect sensitive data, send marketing, use tracking, "
            "share with third parties, read GPS and set a cookie.")
    terms = extract_individual_terms(text)
    assert [t.id for t in terms] == [
        "essential-service", "data-collection", "marketing", "analytics",
        "third-party-sharing", "location-data", "cookies",
    ]
    assert terms[1].risk == "high"
    assert all(not t.is_required for t in terms[1:])


def test_terms_data_collection_medium_without_sensitive(sample_policy):
    terms = {t.id: t for t in extract_individual_terms(sample_policy)}
    assert terms["data-collection"].risk == "medium"
    assert set(terms) == {"essential-service", "data-collection", "cookies"}


# ── Summary ──────────────────────────────────────────────────────────────────

def test_summary_mentions_user_rights(sample_policy):
    # Scenario C
    sections = build_summary(sample_policy, detect_risk_items(sample_policy))
    assert len(sections) == 1
    content = sections[0].content
    assert "• Provides user rights for data access and control" in content
    assert "Limited information about user data rights" not in content
    assert sections[0].title == "Document Analysis Summary"
    assert sections[0].risk_level == "medium"


def test_summary_risky_policy(risky_policy):
    sections = build_summary(risky_policy, detect_risk_items(risky_policy))
    assert sections[0].content.splitlines() == [
        "• Collects personal data and shares with third parties",
        "• Limited information about user data rights",
        "• 3 high-risk privacy concerns identified",
        "• Review all terms carefully before accepting",
    ]
    assert sections[0].risk_level == "high"


def test_summary_singular_concern():
    items = [RiskItem("c", "r", "i", "x", "high")]
    content = build_summary("nothing", items)[0].content
    assert "• 1 high-risk privacy concern identified" in content


def test_summary_caps_at_five_bullets():
    text = "We collect data, share it, use cookies, send marketing and let you delete it."
    items = [RiskItem("c", "r", "i", "x", "high")] * 2
    lines = build_summary(text, items)[0].content.splitlines()
    assert len(lines) == 5
    assert lines[-1] == "• 2 high-risk privacy concerns identified"


@pytest.mark.parametrize("text", VARIED_TEXTS)
def test_summary_bullet_shape(text):
    lines = build_summary(text, detect_risk_items(text))[0].content.splitlines()
    assert 1 <= len(lines) <= 5
    assert all(line.startswith("• ") for line in lines)


def test_summary_low_risk_level():
    sections = build_summary("nothing", detect_risk_items("nothing"))
    assert sections[0].risk_level == "low"


# ── Title + pipeline ─────────────────────────────────────────────────────────

def test_title_capitalises_match():
    assert extract_document_title("please read our terms of service carefully") == "Terms of service"
    assert extract_document_title("our privacy policy") == "Privacy policy"
    assert extract_document_title("nothing here") is None


def test_title_pattern_order():
    assert extract_document_title("Privacy Policy and Terms of Use") == "Terms of Use"


def test_analyze_is_deterministic(risky_policy):
    assert analyzer.analyze(risky_policy) == analyzer.analyze(risky_policy)


def test_analyze_fallback_shape(sample_policy):
    result = analyzer.analyze(sample_policy)
    assert result.document_title == "Privacy Policy"
    assert result.company_name is None
    assert result.safety_insights is None
    assert result.risk_score == 60


def test_analyze_uses_fallback_title():
    assert analyzer.analyze("We collect data.").document_title == analyzer.FALLBACK_TITLE


def test_result_round_trip_through_wire_format(remote_result):
    wire = remote_result.to_dict()
    assert wire["documentTitle"] == "Example Terms of Service"
    assert wire["individualTerms"][0]["isRequired"] is True
    assert wire["safetyInsights"]["trustScore"] == 64
    assert AnalysisResult.from_dict(wire) == remote_result


def test_fallback_wire_format_omits_remote_only_keys(sample_policy):
    wire = analyzer.analyze(sample_policy).to_dict()
    assert "companyName" not in wire
    assert "safetyInsights" not in wire


@pytest.mark.parametrize("bad", [
    {},
    {"documentTitle": "x"},
    {"documentTitle": "x", "riskScore": "high"},
    {"documentTitle": "x", "riskScore": 140},
    {"documentTitle": "x", "riskScore": 10, "riskItems": [{"clause": "c"}]},
    {"documentTitle": "x", "riskScore": 10, "riskItems": [
        {"clause": "c", "risk": "r", "impact": "i", "recommendation": "x", "severity": "extreme"}]},
    ["not", "an", "object"],
    {"documentTitle": "x", "riskScore": float("inf")},
    {"documentTitle": "x", "riskScore": float("nan")},
    {"documentTitle": "x", "riskScore": 50, "safetyInsights": "not an object"},
    {"documentTitle": "x", "riskScore": 50, "safetyInsights": ["a", "b"]},
    {"documentTitle": "x", "riskScore": 50, "safetyInsights": {"trustScore": float("inf")}},
])
def test_from_dict_rejects_malformed(bad):
    with pytest.raises((KeyError, TypeError, ValueError)):
        AnalysisResult.from_dict(bad)
