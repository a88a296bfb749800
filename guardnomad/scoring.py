"""Guard Nomad Backend - Safety Scoring Logic"""

import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from guardnomad.config import (
    BASELINE_SCORE, DEFAULT_SCORE, SCAM_PENALTY, CRIME_PENALTY, OTHER_PENALTY,
    SCORE_SUMMARIES, DEFAULT_COMMON_SCAMS, DEFAULT_EMERGENCY_NUMBERS, SYNTHESIZED_SOURCE,
)
from guardnomad.models import (
    Alert, AlertStats, Coordinates, Location, SafetyDocument, ALERT_TYPES, SEVERITIES,
)

logger = logging.getLogger("guardnomad.scoring")

_AT_LEAST_MEDIUM = ("medium", "high", "critical")


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def clamp_score(score: float) -> int:
    return int(max(0, min(100, round(score))))


def risk_level_from_score(score: int) -> str:
    """Map a 0-100 safety score onto the four risk bands.

      >= 80  → low
      60-79  → medium
      40-59  → high
      < 40   → critical
    """
    if score >= 80:
        return "low"
    elif score >= 60:
        return "medium"
    elif score >= 40:
        return "high"
    else:
        return "critical"


def summary_for_score(score: int) -> str:
    return SCORE_SUMMARIES[risk_level_from_score(score)]


def is_breaking_news(alert: Alert) -> bool:
    return alert.type == "news" and alert.severity in ("high", "critical")


def alert_penalty(alert: Alert) -> int:
    if alert.type == "scam":
        return SCAM_PENALTY
    if alert.type == "crime" or is_breaking_news(alert):
        return CRIME_PENALTY
    if alert.severity in _AT_LEAST_MEDIUM:
        return OTHER_PENALTY
    return 0


def compute_safety_score(
    ai_score: Optional[int],
    scam_alerts: Iterable[Alert] = (),
    news_alerts: Iterable[Alert] = (),
) -> tuple[int, str]:
    """Derive the document score and risk level from sourced signals.

    The AI assessor's own score is the baseline when available (it already
    prices in the AI's alerts); otherwise the baseline is 80. Each distinct
    alert from the scam aggregator or news search is then deducted:
    15 per scam, 10 per crime or breaking-news alert, 5 per other alert of
    medium severity or above.

    Returns (score, risk_level). ``risk_level`` is ``"elevated"`` instead of
    ``"medium"`` when no AI baseline exists and news alerts alone moved the score.
    """
    baseline = BASELINE_SCORE if ai_score is None else ai_score

    seen: set[str] = set()
    scam_penalty = 0
    news_penalty = 0
    for alert in scam_alerts:
        if alert.id not in seen:
            seen.add(alert.id)
            scam_penalty += alert_penalty(alert)
    for alert in news_alerts:
        if alert.id not in seen:
            seen.add(alert.id)
            news_penalty += alert_penalty(alert)

    score = clamp_score(baseline - scam_penalty - news_penalty)
    risk_level = risk_level_from_score(score)
    if risk_level == "medium" and ai_score is None and news_penalty > 0 and scam_penalty == 0:
        risk_level = "elevated"
    return score, risk_level


def merge_alerts(*groups: Iterable[Alert]) -> list[Alert]:
    """Concatenate alert groups; a repeated id keeps its first position but the last value."""
    merged: dict[str, Alert] = {}
    for group in groups:
        for alert in group:
            merged[alert.id] = alert
    return list(merged.values())


def derive_common_scams(ai_scams: Iterable[str], alerts: Iterable[Alert]) -> list[str]:
    scams: list[str] = []
    for text in list(ai_scams) + [a.title or a.description for a in alerts if a.type == "scam"]:
        text = (text or "").strip()
        if text and text not in scams:
            scams.append(text)
    return scams


def default_safety_document(location: Location) -> SafetyDocument:
    """Static location-agnostic picture for when nothing better is available."""
    label = location.label or "your destination"
    return SafetyDocument(
        location=label,
        country=location.country or "Unknown",
        coordinates=Coordinates(lat=location.lat or 0.0, lng=location.lng or 0.0),
        safetyScore=DEFAULT_SCORE,
        riskLevel=risk_level_from_score(DEFAULT_SCORE),
        activeAlerts=[
            Alert(
                id="default-general-safety",
                type="safety",
                severity="low",
                title=f"General Safety Awareness for {label}",
                description="Stay aware of your surroundings and follow standard travel safety practices.",
                actionRequired="Exercise normal precautions",
                affectedAreas=(label,),
                source="Guard Nomad Safety",
                validUntil=(datetime.now(timezone.utc) + timedelta(days=7)).isoformat(),
            )
        ],
        commonScams=list(DEFAULT_COMMON_SCAMS),
        emergencyNumbers=list(DEFAULT_EMERGENCY_NUMBERS),
        lastUpdated=utc_now_iso(),
    )


def is_synthesized(alert: Alert) -> bool:
    return alert.source.startswith(SYNTHESIZED_SOURCE)


def alert_stats(alerts: list[Alert]) -> AlertStats:
    """Tally alerts by severity and type for analytics."""
    severity_counts = Counter(a.severity for a in alerts)
    type_counts = Counter(a.type for a in alerts)
    return AlertStats(
        total=len(alerts),
        bySeverity={s: severity_counts.get(s, 0) for s in SEVERITIES},
        byType={t: type_counts.get(t, 0) for t in ALERT_TYPES},
        synthesized=sum(1 for a in alerts if is_synthesized(a)),
    )
