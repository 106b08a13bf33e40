"""
Consent decisions and per-user statistics.

In-memory stand-in for the analyses / user_stats tables: one record per saved
decision, one stats row per user updated by read-modify-write.
"""

import json
import logging
import threading
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional

from analyzer import AnalysisResult
from errors import InvalidDecisionError

logger = logging.getLogger(__name__)

CONSENT_DECISIONS = ("allow", "partial", "deny")
HIGH_RISK_THRESHOLD = 70   # scores above this count as high-risk analyses


@dataclass(frozen=True)
class ConsentRecord:
    id:                         str
    user_id:                    str
    document_title:             str
    risk_score:                 int
    consent_decision:           str
    risk_items:                 str    # serialized JSON
    summary_sections:           str    # serialized JSON
    original_text:              str
    individual_terms_decisions: str    # serialized JSON
    analyzed_at:                str

    def to_dict(self) -> dict:
        return {
            "id":                         self.id,
            "user_id":                    self.user_id,
            "document_title":             self.document_title,
            "risk_score":                 self.risk_score,
            "consent_decision":           self.consent_decision,
            "risk_items":                 json.loads(self.risk_items),
            "summary_sections":           json.loads(self.summary_sections),
            "individual_terms_decisions": json.loads(self.individual_terms_decisions),
            "analyzed_at":                self.analyzed_at,
        }


@dataclass(frozen=True)
class UserStats:
    user_id:                 str
    total_analyses:          int = 0
    high_risk_analyses:      int = 0
    average_risk_score:      int = 0
    consent_decisions_count: int = 0
    last_active:             Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "user_id":                 self.user_id,
            "total_analyses":          self.total_analyses,
            "high_risk_analyses":      self.high_risk_analyses,
            "average_risk_score":      self.average_risk_score,
            "consent_decisions_count": self.consent_decisions_count,
            "last_active":             self.last_active,
        }


def _round_half_up(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def next_user_stats(current: UserStats, risk_score: int, now: str) -> UserStats:
    """Stats row after one more saved analysis."""
    total = current.total_analyses + 1
    average = _round_half_up(
        (current.average_risk_score * current.total_analyses + risk_score) / total)
    return replace(
        current,
        total_analyses=total,
        high_risk_analyses=current.high_risk_analyses + (1 if risk_score > HIGH_RISK_THRESHOLD else 0),
        average_risk_score=average,
        consent_decisions_count=current.consent_decisions_count + 1,
        last_active=now,
    )


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ConsentStore:
    """Thread-safe in-memory store for consent records and user stats."""

    def __init__(self):
        self._records: List[ConsentRecord] = []
        self._stats: Dict[str, UserStats] = {}
        self._lock = threading.Lock()

    def save_decision(
        self,
        user_id: str,
        result: AnalysisResult,
        decision: str,
        original_text: str = "",
        term_decisions: Optional[list] = None,
    ) -> ConsentRecord:
        if decision not in CONSENT_DECISIONS:
            raise InvalidDecisionError()

        now = _now()
        record = ConsentRecord(
            id=str(uuid.uuid4()),
            user_id=user_id,
            document_title=result.document_title,
            risk_score=result.risk_score,
            consent_decision=decision,
            risk_items=json.dumps([ri.to_dict() for ri in result.risk_items]),
            summary_sections=json.dumps([s.to_dict() for s in result.summary_data]),
            original_text=original_text,
            individual_terms_decisions=json.dumps(term_decisions or []),
            analyzed_at=now,
        )

        with self._lock:
            self._records.append(record)
            current = self._stats.get(user_id) or UserStats(user_id)
            self._stats[user_id] = next_user_stats(current, result.risk_score, now)

        logger.info("Saved consent decision %s for user %s (score %d)",
                    decision, user_id, result.risk_score)
        return record

    def records_for(self, user_id: str) -> List[ConsentRecord]:
        """Newest first."""
        with self._lock:
            return [r for r in reversed(self._records) if r.user_id == user_id]

    def stats_for(self, user_id: str) -> UserStats:
        with self._lock:
            return self._stats.get(user_id) or UserStats(user_id)

    def platform_stats(self) -> dict:
        with self._lock:
            return {
                "total_analyses":   len(self._records),
                "total_risk_issues": sum(len(json.loads(r.risk_items)) for r in self._records),
                "total_users":      len({r.user_id for r in self._records}),
            }
