"""
Rule-based consent document analyzer.
No AI / ML: keyword tables, regex title detection and an additive point score.

The functions here are pure. The same text always yields the same result,
which is what makes this pipeline usable as the fallback when the remote
generative analysis is unavailable.
"""

import math
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple


SEVERITIES = ("low", "medium", "high")
SEVERITY_RANK = {"low": 0, "medium": 1, "high": 2}

FALLBACK_TITLE = "Terms of Service Document"


# ─────────────────────────────────────────────────────────────────────────────
# Data classes
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class RiskItem:
    clause:         str
    risk:           str
    impact:         str
    recommendation: str
    severity:       str    # low | medium | high

    def to_dict(self) -> dict:
        return {
            "clause":         self.clause,
            "risk":           self.risk,
            "impact":         self.impact,
            "recommendation": self.recommendation,
            "severity":       self.severity,
        }


@dataclass(frozen=True)
class SummarySection:
    title:      str
    content:    str        # newline-joined "• " bullets
    risk_level: str

    def to_dict(self) -> dict:
        return {"title": self.title, "content": self.content, "riskLevel": self.risk_level}


@dataclass(frozen=True)
class IndividualTerm:
    id:          str
    title:       str
    description: str
    risk:        str
    is_required: bool      # required terms cannot be declined

    def to_dict(self) -> dict:
        return {
            "id":          self.id,
            "title":       self.title,
            "description": self.description,
            "risk":        self.risk,
            "isRequired":  self.is_required,
        }


@dataclass(frozen=True)
class SafetyInsights:
    """Only produced by the remote analysis."""
    comparison_to_safe_services: str
    recommended_usage:           str
    trust_score:                 int
    key_warnings:                List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "comparisonToSafeServices": self.comparison_to_safe_services,
            "recommendedUsage":         self.recommended_usage,
            "trustScore":               self.trust_score,
            "keyWarnings":              list(self.key_warnings),
        }


@dataclass(frozen=True)
class ClassificationResult:
    is_valid: bool
    reason:   Optional[str] = None


@dataclass(frozen=True)
class AnalysisResult:
    document_title:   str
    risk_score:       int
    risk_items:       List[RiskItem]       = field(default_factory=list)
    summary_data:     List[SummarySection] = field(default_factory=list)
    individual_terms: List[IndividualTerm] = field(default_factory=list)
    company_name:     Optional[str]            = None
    safety_insights:  Optional[SafetyInsights] = None

    def to_dict(self) -> dict:
        """Serialize to the camelCase wire format shared with the remote backend."""
        d = {
            "documentTitle":   self.document_title,
            "riskScore":       self.risk_score,
            "riskItems":       [ri.to_dict() for ri in self.risk_items],
            "summaryData":     [s.to_dict() for s in self.summary_data],
            "individualTerms": [t.to_dict() for t in self.individual_terms],
        }
        if self.company_name is not None:
            d["companyName"] = self.company_name
        if self.safety_insights is not None:
            d["safetyInsights"] = self.safety_insights.to_dict()
        return d

    @classmethod
    def from_dict(cls, d: dict) -> "AnalysisResult":
        """
        Rebuild a result from the wire format.

        Raises KeyError / TypeError / ValueError when the payload does not fit
        the schema, so callers can tell a malformed response apart.
        """
        if not isinstance(d, dict):
            raise TypeError(f"expected an object, got {type(d).__name__}")

        score = _score(d["riskScore"], "riskScore")

        insights = None
        si = d.get("safetyInsights")
        if si:
            if not isinstance(si, dict):
                raise TypeError("safetyInsights must be an object")
            insights = SafetyInsights(
                comparison_to_safe_services=si.get("comparisonToSafeServices", ""),
                recommended_usage=si.get("recommendedUsage", ""),
                trust_score=_score(si.get("trustScore", 0), "trustScore"),
                key_warnings=[str(w) for w in si.get("keyWarnings", [])],
            )

        return cls(
            document_title=str(d["documentTitle"]),
            company_name=d.get("companyName"),
            risk_score=score,
            risk_items=[
                RiskItem(
                    clause=ri["clause"], risk=ri["risk"], impact=ri["impact"],
                    recommendation=ri["recommendation"],
                    severity=_severity(ri["severity"]),
                )
                for ri in d.get("riskItems", [])
            ],
            summary_data=[
                SummarySection(s["title"], s["content"], _severity(s["riskLevel"]))
                for s in d.get("summaryData", [])
            ],
            individual_terms=[
                IndividualTerm(
                    id=t["id"], title=t["title"], description=t["description"],
                    risk=_severity(t["risk"]), is_required=bool(t["isRequired"]),
                )
                for t in d.get("individualTerms", [])
            ],
            safety_insights=insights,
        )


def _score(value, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"{name} must be a number")
    if not math.isfinite(value):
        raise ValueError(f"{name} must be finite")
    score = int(round(value))
    if not 0 <= score <= 100:
        raise ValueError(f"{name} out of range: {score}")
    return score


def _severity(value: str) -> str:
    level = str(value).lower()
    if level not in SEVERITY_RANK:
        raise ValueError(f"unknown severity: {value!r}")
    return level


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────

def _has(t: str, *keywords: str) -> bool:
    """True if any keyword is a substring of the already-lowercased text."""
    return any(k in t for k in keywords)

def _all_groups(t: str, groups: Tuple[Tuple[str, ...], ...]) -> bool:
    return all(_has(t, *g) for g in groups)


# ─────────────────────────────────────────────────────────────────────────────
# Document classification
# ─────────────────────────────────────────────────────────────────────────────

MIN_DOCUMENT_CHARS   = 100
MIN_KEYWORD_MATCHES  = 5
MIN_STRUCTURED_LINES = 5
MIN_LINE_CHARS       = 20

PLACEHOLDER_PATTERNS = [
    re.compile(r'\[image uploaded:', re.IGNORECASE),
    re.compile(r'\[document uploaded:', re.IGNORECASE),
    re.compile(r'\Atest\Z', re.IGNORECASE),
    re.compile(r'\Asample\Z', re.IGNORECASE),
    re.compile(r'lorem ipsum', re.IGNORECASE),
]

LEGAL_TITLE_PATTERNS = [
    re.compile(r'terms?\s+(?:of\s+)?(?:service|use)', re.IGNORECASE),
    re.compile(r'privacy\s+policy', re.IGNORECASE),
    re.compile(r'user\s+agreement', re.IGNORECASE),
    re.compile(r'end\s+user\s+license\s+agreement', re.IGNORECASE),
    re.compile(r'cookie\s+policy', re.IGNORECASE),
    re.compile(r'data\s+(?:protection|processing)\s+(?:policy|agreement)', re.IGNORECASE),
    re.compile(r'acceptable\s+use\s+policy', re.IGNORECASE),
    re.compile(r'conditions?\s+of\s+use', re.IGNORECASE),
    re.compile(r'legal\s+(?:notice|agreement)', re.IGNORECASE),
]

LEGAL_KEYWORDS = (
    "agree", "rights", "obligation", "liability", "consent",
    "data", "privacy", "collect", "process", "information",
    "service", "user", "personal", "policy", "compliance",
    "protection", "security", "disclosure", "jurisdiction",
)

REASON_TOO_SHORT = ("The provided text is too short to be valid terms and conditions. "
                    "Please provide a complete document.")
REASON_PLACEHOLDER = ("Please provide actual terms and conditions text, "
                      "not file names or placeholder content.")
REASON_NOT_LEGAL = ("This doesn't appear to be a terms and conditions or privacy policy document. "
                    "Please provide proper legal terms, privacy policy, or user agreement text.")
REASON_INCOMPLETE = ("The document appears incomplete. Please provide a complete terms and conditions "
                     "or privacy policy with proper sections and content.")


def classify_document(text: str) -> ClassificationResult:
    """Decide whether text is plausibly a legal / consent document worth scoring."""
    if len(text.strip()) < MIN_DOCUMENT_CHARS:
        return ClassificationResult(False, REASON_TOO_SHORT)

    if any(p.search(text) for p in PLACEHOLDER_PATTERNS):
        return ClassificationResult(False, REASON_PLACEHOLDER)

    has_legal_title = any(p.search(text) for p in LEGAL_TITLE_PATTERNS)
    t = text.lower()
    keyword_matches = sum(1 for k in LEGAL_KEYWORDS if k in t)
    if not has_legal_title and keyword_matches < MIN_KEYWORD_MATCHES:
        return ClassificationResult(False, REASON_NOT_LEGAL)

    structured = [line for line in text.split("\n") if len(line.strip()) > MIN_LINE_CHARS]
    if len(structured) < MIN_STRUCTURED_LINES:
        return ClassificationResult(False, REASON_INCOMPLETE)

    return ClassificationResult(True)


# ─────────────────────────────────────────────────────────────────────────────
# Title extraction
# ─────────────────────────────────────────────────────────────────────────────

TITLE_PATTERNS = [
    re.compile(r'terms?\s+(?:of\s+)?(?:service|use)', re.IGNORECASE),
    re.compile(r'privacy\s+policy', re.IGNORECASE),
    re.compile(r'user\s+agreement', re.IGNORECASE),
    re.compile(r'end\s+user\s+license\s+agreement', re.IGNORECASE),
    re.compile(r'cookie\s+policy', re.IGNORECASE),
    re.compile(r'data\s+protection\s+policy', re.IGNORECASE),
]

def extract_document_title(text: str) -> Optional[str]:
    for pattern in TITLE_PATTERNS:
        m = pattern.search(text)
        if m:
            title = m.group(0)
            return title[:1].upper() + title[1:]
    return None


# ─────────────────────────────────────────────────────────────────────────────
# Risk item detection
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class RiskRule:
    """
    One row of the detector table.

    ``when`` is a tuple of keyword groups: every group needs at least one hit.
    ``high_if`` raises the severity to high; ``impact_alt`` replaces the impact
    text when any ``impact_alt_if`` keyword is present.
    """
    when:           Tuple[Tuple[str, ...], ...]
    clause:         str
    risk:           str
    impact:         str
    recommendation: str
    severity:       str
    high_if:        Tuple[str, ...] = ()
    impact_alt:     str = ""
    impact_alt_if:  Tuple[str, ...] = ()

    def apply(self, t: str) -> Optional[RiskItem]:
        if not _all_groups(t, self.when):
            return None
        severity = "high" if self.high_if and _has(t, *self.high_if) else self.severity
        impact = self.impact_alt if self.impact_alt_if and _has(t, *self.impact_alt_if) else self.impact
        return RiskItem(self.clause, self.risk, impact, self.recommendation, severity)


RISK_RULES = [
    RiskRule(
        when=(("collect",), ("data", "information")),
        clause="Data Collection and Usage",
        risk="The document indicates collection of personal data which may include sensitive information",
        impact="Medium privacy impact from data collection",
        impact_alt="High privacy impact with potential data sharing",
        impact_alt_if=("share", "third"),
        recommendation="Review what specific data is collected and how it's used",
        severity="medium",
        high_if=("location", "biometric"),
    ),
    RiskRule(
        when=(("share", "third", "partner"),),
        clause="Third-Party Data Sharing",
        risk="Data may be shared with third-party partners or service providers",
        impact="Loss of control over personal information with external entities",
        recommendation="Request transparency about third-party partners and sharing purposes",
        severity="high",
    ),
    RiskRule(
        when=(("marketing", "advertis", "promotional"),),
        clause="Marketing and Advertising",
        risk="Personal data may be used for marketing purposes and targeted advertising",
        impact="Increased exposure to unwanted communications and profiling",
        recommendation="Look for opt-out options for marketing communications",
        severity="medium",
    ),
    RiskRule(
        when=(("cookie", "tracking", "analytics"),),
        clause="Cookies and Tracking",
        risk="Website uses cookies and tracking technologies to monitor user behavior",
        impact="Digital footprint creation and behavioral profiling across websites",
        recommendation="Check cookie preferences and opt-out mechanisms",
        severity="medium",
    ),
    RiskRule(
        when=(("retain", "delete", "storage"),),
        clause="Data Retention and Deletion",
        risk="Unclear or extended data retention periods may apply",
        impact="Medium risk from data retention practices",
        impact_alt="High risk of permanent data storage",
        impact_alt_if=("indefinitely", "permanent"),
        recommendation="Understand data deletion rights and retention periods",
        severity="medium",
        high_if=("indefinitely",),
    ),
]

GENERAL_PRIVACY_ITEM = RiskItem(
    clause="General Privacy Terms",
    risk="Standard privacy terms that may affect your personal data",
    impact="Basic privacy implications from service usage",
    recommendation="Review the complete terms to understand your privacy rights",
    severity="low",
)

def detect_risk_items(text: str) -> List[RiskItem]:
    t = text.lower()
    items = [r for r in (rule.apply(t) for rule in RISK_RULES) if r is not None]
    return items or [GENERAL_PRIVACY_ITEM]


# ─────────────────────────────────────────────────────────────────────────────
# Risk scoring
# ─────────────────────────────────────────────────────────────────────────────

BASE_RISK_SCORE = 30
MAX_RISK_SCORE  = 100

SEVERITY_POINTS = {"high": 20, "medium": 10, "low": 5}

# Added once per keyword present, not per occurrence.
SCORE_KEYWORDS = [
    (15, "indefinitely"),
    (15, "permanent"),
    (10, "irrevocable"),
    (20, "biometric"),
    (10, "location"),
    (15, "children"),
    (15, "minor"),
    (25, "sell"),
    (20, "monetize"),
]

def compute_risk_score(items: List[RiskItem], text: str) -> int:
    t = text.lower()
    score = BASE_RISK_SCORE
    score += sum(SEVERITY_POINTS.get(item.severity, 0) for item in items)
    score += sum(w for w, k in SCORE_KEYWORDS if k in t)
    return min(score, MAX_RISK_SCORE)

def risk_band(score: int) -> str:
    if score <= 30:
        return "low"
    elif score <= 60:
        return "medium"
    return "high"


# ─────────────────────────────────────────────────────────────────────────────
# Individually consentable terms
# ─────────────────────────────────────────────────────────────────────────────

ESSENTIAL_TERM = IndividualTerm(
    id="essential-service",
    title="Essential Service Operations",
    description="Basic functionality and core service features",
    risk="low",
    is_required=True,
)

# (triggers, id, title, description, risk, high_if)
TERM_RULES = [
    (("collect",),              "data-collection",     "Personal Data Collection",
        "Collection of your personal information for service provision",           "medium", ("sensitive",)),
    (("marketing", "promotional"), "marketing",        "Marketing Communications",
        "Receiving promotional emails and marketing materials",                    "low",    ()),
    (("analytics", "tracking"), "analytics",           "Analytics and Tracking",
        "Usage analytics and behavioral tracking for service improvement",         "medium", ()),
    (("share", "third"),        "third-party-sharing", "Third-Party Data Sharing",
        "Sharing your data with partner organizations and service providers",      "high",   ()),
    (("location", "gps"),       "location-data",       "Location Data Collection",
        "Accessing and storing your device location information",                 "high",   ()),
    (("cookie",),               "cookies",             "Cookie Usage",
        "Storing cookies on your device for functionality and tracking",           "medium", ()),
]

def extract_individual_terms(text: str) -> List[IndividualTerm]:
    t = text.lower()
    terms = [ESSENTIAL_TERM]
    for triggers, term_id, title, description, risk, high_if in TERM_RULES:
        if not _has(t, *triggers):
            continue
        if high_if and _has(t, *high_if):
            risk = "high"
        terms.append(IndividualTerm(term_id, title, description, risk, is_required=False))
    return terms


# ─────────────────────────────────────────────────────────────────────────────
# Summary
# ─────────────────────────────────────────────────────────────────────────────

SUMMARY_TITLE = "Document Analysis Summary"
MAX_SUMMARY_BULLETS = 5
MIN_SUMMARY_BULLETS = 4
BULLET = "• "

SUMMARY_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "collect":     ("collect",),
    "personal":    ("data", "information"),
    "sharing":     ("share", "third"),
    "tracking":    ("cookie", "tracking"),
    "marketing":   ("marketing", "promotional"),
    "user_rights": ("right", "access", "delete"),
}

def max_severity(items: List[RiskItem]) -> str:
    if not items:
        return "low"
    return max((i.severity for i in items), key=lambda s: SEVERITY_RANK[s])

def _summary_points(t: str, items: List[RiskItem]) -> List[str]:
    kw = SUMMARY_KEYWORDS
    points = []
    if _has(t, *kw["collect"]) and _has(t, *kw["personal"]):
        if _has(t, *kw["sharing"]):
            points.append("Collects personal data and shares with third parties")
        else:
            points.append("Collects personal data for service operations")
    if _has(t, *kw["tracking"]):
        points.append("Uses cookies and tracking technologies for analytics")
    if _has(t, *kw["marketing"]):
        points.append("May use data for marketing and promotional communications")
    if _has(t, *kw["user_rights"]):
        points.append("Provides user rights for data access and control")
    else:
        points.append("Limited information about user data rights")

    high = sum(1 for i in items if i.severity == "high")
    if high > 0:
        points.append(f"{high} high-risk privacy concern{'s' if high > 1 else ''} identified")

    if len(points) < MIN_SUMMARY_BULLETS:
        points.append("Review all terms carefully before accepting")
    return points[:MAX_SUMMARY_BULLETS]

def build_summary(text: str, items: List[RiskItem]) -> List[SummarySection]:
    content = "\n".join(BULLET + p for p in _summary_points(text.lower(), items))
    return [SummarySection(SUMMARY_TITLE, content, max_severity(items))]


# ─────────────────────────────────────────────────────────────────────────────
# Main entry point
# ─────────────────────────────────────────────────────────────────────────────

def analyze(text: str) -> AnalysisResult:
    """
    Run the local heuristic pipeline.

    Never raises; validation is the caller's job (see classify_document).
    """
    items = detect_risk_items(text)
    return AnalysisResult(
        document_title=extract_document_title(text) or FALLBACK_TITLE,
        risk_score=compute_risk_score(items, text),
        risk_items=items,
        summary_data=build_summary(text, items),
        individual_terms=extract_individual_terms(text),
    )
