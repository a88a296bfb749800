"""
Test configuration and shared fixtures.

Upstreams are never contacted: Gemini is replaced by an injected
``generate`` callable and GNews/Exa by httpx.MockTransport.
"""

import json
from typing import Optional
from unittest.mock import AsyncMock, Mock

import httpx
import pytest

from guardnomad.aggregator import SafetyAggregator
from guardnomad.cache import ResponseCache
from guardnomad.config import Settings
from guardnomad.models import Alert, Location, SourceResult, SourceStatus


class FakeClock:
    """Manually advanced replacement for time.time."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return Settings(
        gemini_api_key="test-gemini",
        gnews_api_key="test-gnews",
        exa_api_key="test-exa",
        upstream_timeout_sec=2.0,
    )


@pytest.fixture
def tokyo():
    return Location(lat=35.6762, lng=139.6503, city="Tokyo", country="Japan")


def make_alert(alert_id: str, alert_type: str = "safety", severity: str = "medium",
               title: Optional[str] = None, areas: tuple = ("Tokyo, Japan",),
               source: str = "Test Source") -> Alert:
    return Alert(
        id=alert_id,
        type=alert_type,
        severity=severity,
        title=title or f"{alert_type} alert {alert_id}",
        description="test",
        actionRequired="none",
        affectedAreas=areas,
        source=source,
    )


def make_adapter(name: str, result=None, error: Optional[BaseException] = None) -> AsyncMock:
    adapter = AsyncMock()
    adapter.name = name
    adapter.available = Mock(return_value=True)
    if error is not None:
        adapter.fetch.side_effect = error
    else:
        adapter.fetch.return_value = result or SourceResult(source=name, status=SourceStatus.STATIC)
    return adapter


def make_aggregator(ai=None, scams=None, news=None, clock=None) -> SafetyAggregator:
    """Aggregator over AsyncMock adapters; unspecified adapters answer with a static result."""
    cache_kw = {"clock": clock} if clock is not None else {}
    return SafetyAggregator(
        ai if ai is not None else make_adapter("ai"),
        scams if scams is not None else make_adapter("scams"),
        news if news is not None else make_adapter("news"),
        ResponseCache(1800, 50, name="documents", **cache_kw),
        ai_doc_ttl=1800,
        news_doc_ttl=300,
    )


def ai_result(score: int = 88, risk: str = "low", alerts=(), scams=("Bar touts in nightlife districts",),
              numbers=("Police: 110", "Fire/Medical: 119"), status=SourceStatus.LIVE) -> SourceResult:
    return SourceResult(
        source="ai",
        status=status,
        alerts=list(alerts),
        safetyScore=score,
        riskLevel=risk,
        commonScams=list(scams),
        emergencyNumbers=list(numbers),
        recordCount=1,
    )


def alerts_result(name: str, alerts, status=SourceStatus.LIVE) -> SourceResult:
    return SourceResult(source=name, status=status, alerts=list(alerts), recordCount=max(1, len(alerts)))


def ai_json(score: int = 88, **extra) -> str:
    payload = {
        "safetyScore": score,
        "riskLevel": "low",
        "activeAlerts": [],
        "commonScams": ["Bar touts in nightlife districts"],
        "emergencyNumbers": ["Police: 110", "Fire/Medical: 119"],
    }
    payload.update(extra)
    return json.dumps(payload)


class Upstream:
    """Routes GNews and Exa requests to canned handlers and counts calls."""

    def __init__(self, gnews=None, exa=None):
        self.gnews = gnews or (lambda request: httpx.Response(200, json={"totalArticles": 0, "articles": []}))
        self.exa = exa or (lambda request: httpx.Response(200, json={"results": []}))
        self.calls: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        host = request.url.host
        self.calls.append(host)
        if host == "gnews.io":
            return self.gnews(request)
        if host == "api.exa.ai":
            return self.exa(request)
        return httpx.Response(404)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))

    def count(self, host: str) -> int:
        return sum(1 for h in self.calls if h == host)
