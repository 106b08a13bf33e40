"""
Tests for consent records and the per-user statistics update.
"""

import threading

import pytest

import analyzer
from consent_store import ConsentStore, UserStats, next_user_stats
from errors import InvalidDecisionError

NOW = "2024-05-01T12:00:00+00:00"


def test_first_analysis_sets_stats():
    stats = next_user_stats(UserStats("u1"), 81, NOW)
    assert stats == UserStats("u1", total_analyses=1, high_risk_analyses=1,
                              average_risk_score=81, consent_decisions_count=1, last_active=NOW)


def test_weighted_average_and_high_risk_count():
    current = UserStats("u1", total_analyses=2, high_risk_analyses=0, average_risk_score=50,
                        consent_decisions_count=2)
    stats = next_user_stats(current, 81, NOW)
    # (50 * 2 + 81) / 3 = 60.33
    assert stats.average_risk_score == 60
    assert stats.high_risk_analyses == 1
    assert stats.total_analyses == 3
    assert stats.consent_decisions_count == 3


def test_average_rounds_half_up():
    current = UserStats("u1", total_analyses=1, average_risk_score=45, consent_decisions_count=1)
    assert next_user_stats(current, 50, NOW).average_risk_score == 48


def test_threshold_is_exclusive():
    assert next_user_stats(UserStats("u1"), 70, NOW).high_risk_analyses == 0
    assert next_user_stats(UserStats("u1"), 71, NOW).high_risk_analyses == 1


def test_save_decision(sample_policy):
    store = ConsentStore()
    result = analyzer.analyze(sample_policy)

    record = store.save_decision("u1", result, "partial", original_text=sample_policy,
                                 term_decisions=[{"id": "cookies", "accepted": False}])

    assert record.consent_decision == "partial"
    assert record.risk_score == result.risk_score
    wire = record.to_dict()
    assert wire["risk_items"] == [ri.to_dict() for ri in result.risk_items]
    assert wire["individual_terms_decisions"] == [{"id": "cookies", "accepted": False}]
    assert "original_text" not in wire
    assert store.stats_for("u1").total_analyses == 1


@pytest.mark.parametrize("decision", ["", "maybe", "ALLOW", None])
def test_invalid_decision(sample_policy, decision):
    store = ConsentStore()
    with pytest.raises(InvalidDecisionError):
        store.save_decision("u1", analyzer.analyze(sample_policy), decision)
    assert store.records_for("u1") == []
    assert store.stats_for("u1") == UserStats("u1")


def test_records_newest_first_and_per_user(sample_policy, risky_policy):
    store = ConsentStore()
    store.save_decision("u1", analyzer.analyze(sample_policy), "allow")
    store.save_decision("u2", analyzer.analyze(sample_policy), "deny")
    store.save_decision("u1", analyzer.analyze(risky_policy), "deny")

    records = store.records_for("u1")
    assert [r.consent_decision for r in records] == ["deny", "allow"]
    assert store.stats_for("u1").average_risk_score == 80
    assert store.stats_for("u1").high_risk_analyses == 1


def test_platform_stats(sample_policy, risky_policy):
    store = ConsentStore()
    assert store.platform_stats() == {"total_analyses": 0, "total_risk_issues": 0, "total_users": 0}

    store.save_decision("u1", analyzer.analyze(sample_policy), "allow")
    store.save_decision("u2", analyzer.analyze(risky_policy), "deny")

    assert store.platform_stats() == {"total_analyses": 2, "total_risk_issues": 6, "total_users": 2}


def test_concurrent_saves_keep_counts(sample_policy):
    store = ConsentStore()
    result = analyzer.analyze(sample_policy)

    threads = [threading.Thread(target=store.save_decision, args=("u1", result, "allow"))
               for _ in range(20)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    stats = store.stats_for("u1")
    assert stats.total_analyses == 20
    assert stats.consent_decisions_count == 20
    assert stats.average_risk_score == result.risk_score
