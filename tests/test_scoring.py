import pytest
from hypothesis import given, strategies as st

from guardnomad.config import SCORE_SUMMARIES
from guardnomad.models import ALERT_TYPES, SEVERITIES, Alert, Location
from guardnomad.scoring import (
    alert_stats, compute_safety_score, default_safety_document, derive_common_scams,
    merge_alerts, risk_level_from_score, summary_for_score,
)

from conftest import make_alert

alerts_st = st.lists(
    st.builds(
        Alert,
        id=st.text(alphabet="abcdef", min_size=1, max_size=4),
        type=st.sampled_from(ALERT_TYPES),
        severity=st.sampled_from(SEVERITIES),
        title=st.just("t"),
    ),
    max_size=15,
)


@given(ai_score=st.one_of(st.none(), st.integers(0, 100)), scams=alerts_st, news=alerts_st)
def test_score_is_clamped_and_band_consistent(ai_score, scams, news):
    score, risk = compute_safety_score(ai_score, scams, news)
    assert 0 <= score <= 100
    if risk == "elevated":
        assert risk_level_from_score(score) == "medium"
    else:
        assert risk == risk_level_from_score(score)


@pytest.mark.parametrize("score,expected", [
    (100, "low"), (85, "low"), (80, "low"), (79, "medium"), (60, "medium"),
    (59, "high"), (50, "high"), (40, "high"), (39, "critical"), (10, "critical"), (0, "critical"),
])
def test_risk_bands(score, expected):
    assert risk_level_from_score(score) == expected


def test_summary_strings_follow_bands():
    assert summary_for_score(88) == SCORE_SUMMARIES["low"]
    assert summary_for_score(48) == SCORE_SUMMARIES["high"]
    assert summary_for_score(5) == SCORE_SUMMARIES["critical"]


def test_ai_baseline_without_deductions():
    assert compute_safety_score(88) == (88, "low")


def test_two_scams_and_one_crime_from_ai_baseline():
    scams = [make_alert("s1", "scam"), make_alert("s2", "scam")]
    news = [make_alert("c1", "crime", "high")]
    assert compute_safety_score(88, scams, news) == (48, "high")


def test_duplicate_ids_are_deducted_once():
    scam = make_alert("s1", "scam")
    assert compute_safety_score(None, [scam, scam], [scam]) == (65, "medium")


def test_deduction_weights():
    breaking = make_alert("b", "news", "critical")
    other_medium = make_alert("w", "weather", "medium")
    low_news = make_alert("n", "news", "low")
    score, _ = compute_safety_score(None, [], [breaking, other_medium, low_news])
    assert score == 80 - 10 - 5


def test_news_only_signal_is_elevated_without_ai_baseline():
    assert compute_safety_score(None, [], [make_alert("c", "crime")]) == (70, "elevated")
    # with an AI baseline the plain band is used
    assert compute_safety_score(75, [], [make_alert("c", "crime")]) == (65, "medium")
    # scam deductions make it a plain medium
    assert compute_safety_score(None, [make_alert("s", "scam")], []) == (65, "medium")


def test_score_never_negative():
    scams = [make_alert(f"s{i}", "scam") for i in range(10)]
    assert compute_safety_score(20, scams) == (0, "critical")


def test_merge_keeps_first_position_last_value():
    a1 = make_alert("a", title="first")
    b = make_alert("b")
    a2 = make_alert("a", title="second")
    merged = merge_alerts([a1, b], [a2])
    assert [x.id for x in merged] == ["a", "b"]
    assert merged[0].title == "second"


def test_common_scams_from_ai_then_scam_alerts():
    alerts = [
        make_alert("1", "scam", title="Fake police"),
        make_alert("2", "crime", title="Robbery"),
        make_alert("3", "scam", title="Bar touts"),
    ]
    assert derive_common_scams(["Bar touts", "Taxi overcharging"], alerts) == [
        "Bar touts", "Taxi overcharging", "Fake police",
    ]


def test_default_document_shape():
    doc = default_safety_document(Location(city="Somewhere"))
    assert doc.safetyScore == 75
    assert doc.riskLevel == "medium"
    assert doc.commonScams and doc.emergencyNumbers
    assert doc.country == "Unknown"
    assert len(doc.activeAlerts) == 1


def test_alert_stats_counts_synthesized():
    alerts = [
        make_alert("1", "scam", "high"),
        make_alert("2", "scam", "low", source="Synthesized - France scam warnings"),
        make_alert("3", "crime", "high"),
    ]
    stats = alert_stats(alerts)
    assert stats.total == 3
    assert stats.bySeverity["high"] == 2 and stats.bySeverity["critical"] == 0
    assert stats.byType["scam"] == 2 and stats.byType["crime"] == 1
    assert stats.synthesized == 1
