"""Guard Nomad Backend - Safety aggregation.

Fans out to the three source adapters, merges their alerts, scores the
result and caches one SafetyDocument per location bucket.
"""

import asyncio
import logging
from typing import Optional

from guardnomad.ai_assessor import AISafetyAssessor
from guardnomad.cache import ResponseCache
from guardnomad.config import GENERIC_EMERGENCY_NUMBERS, Settings
from guardnomad.data_fetchers import NewsSearchAdapter, ScamNewsAdapter
from guardnomad.fallback import SourceAdapter
from guardnomad.models import Coordinates, Location, SafetyDocument, SourceResult, SourceStatus
from guardnomad.rate_limit import RateLimiter
from guardnomad.scoring import (
    compute_safety_score, default_safety_document, derive_common_scams, merge_alerts, utc_now_iso,
)

logger = logging.getLogger("guardnomad.aggregator")


class SafetyAggregator:
    """Top-level orchestrator; ``aggregate`` never raises."""

    def __init__(
        self,
        ai: SourceAdapter,
        scams: SourceAdapter,
        news: SourceAdapter,
        cache: ResponseCache,
        *,
        ai_doc_ttl: float,
        news_doc_ttl: float,
    ):
        self.ai = ai
        self.scams = scams
        self.news = news
        self.cache = cache
        self.ai_doc_ttl = ai_doc_ttl
        self.news_doc_ttl = news_doc_ttl

    @staticmethod
    def bucket_key(location: Location) -> Optional[str]:
        return location.bucket_key()

    async def aggregate(self, location: Location, refresh: bool = False) -> SafetyDocument:
        if not location.has_coordinates and not location.country.strip():
            logger.info("No coordinates or country; serving default safety data")
            return default_safety_document(location)

        key = self.bucket_key(location)
        if not refresh:
            cached = self.cache.get(key)
            if cached is not None:
                logger.info(f"Safety document cache hit for {key}")
                return cached.model_copy(deep=True)

        logger.info(f"Aggregating safety data for {key} ({location.label or 'no place name'})")
        settled = await asyncio.gather(
            self.ai.fetch(location),
            self.scams.fetch(location),
            self.news.fetch(location),
            return_exceptions=True,
        )
        ai_result, scam_result, news_result = (
            self._usable(adapter.name, outcome)
            for adapter, outcome in zip((self.ai, self.scams, self.news), settled)
        )

        if ai_result is None and scam_result is None and news_result is None:
            logger.warning(f"No source produced data for {key}; caching default document")
            doc = default_safety_document(location)
            self.cache.set(key, doc, ttl=self.news_doc_ttl)
            return doc.model_copy(deep=True)

        doc, news_derived = self._build_document(location, ai_result, scam_result, news_result)
        ttl = self.news_doc_ttl if news_derived else self.ai_doc_ttl
        self.cache.set(key, doc, ttl=ttl)
        logger.info(
            f"{key}: score={doc.safetyScore} risk={doc.riskLevel} "
            f"alerts={len(doc.activeAlerts)} ttl={ttl:.0f}s"
        )
        return doc.model_copy(deep=True)

    async def refresh(self, location: Location) -> SafetyDocument:
        return await self.aggregate(location, refresh=True)

    def clear_cache(self) -> None:
        self.cache.clear()

    async def aclose(self) -> None:
        for adapter in (self.ai, self.scams, self.news):
            close = getattr(adapter, "aclose", None)
            if close is not None:
                await close()

    # ── internals ──

    @staticmethod
    def _usable(name: str, outcome) -> Optional[SourceResult]:
        """Drop failures and static-tier results; they contribute nothing to the merge."""
        if isinstance(outcome, BaseException):
            logger.error(f"{name} adapter raised past its boundary: {outcome!r}")
            return None
        if outcome.status == SourceStatus.STATIC:
            logger.info(f"{name}: only static data available, excluded from merge")
            return None
        return outcome

    @staticmethod
    def _build_document(
        location: Location,
        ai_result: Optional[SourceResult],
        scam_result: Optional[SourceResult],
        news_result: Optional[SourceResult],
    ) -> tuple[SafetyDocument, bool]:
        """Merge and score. Returns the document and whether sourced news/scam alerts went into it."""
        ai_alerts = ai_result.alerts if ai_result else []
        scam_alerts = scam_result.alerts if scam_result else []
        news_alerts = news_result.alerts if news_result else []

        sourced_scams = scam_alerts if scam_result and scam_result.status.sourced else []
        sourced_news = news_alerts if news_result and news_result.status.sourced else []

        ai_score = ai_result.safetyScore if ai_result else None
        score, risk_level = compute_safety_score(ai_score, sourced_scams, sourced_news)

        alerts = merge_alerts(ai_alerts, scam_alerts, news_alerts)
        ai_scams = ai_result.commonScams if ai_result else []
        emergency = (ai_result.emergencyNumbers if ai_result else []) or list(GENERIC_EMERGENCY_NUMBERS)

        doc = SafetyDocument(
            location=location.label or f"{location.lat:.4f}, {location.lng:.4f}",
            country=location.country or "Unknown",
            coordinates=Coordinates(lat=location.lat or 0.0, lng=location.lng or 0.0),
            safetyScore=score,
            riskLevel=risk_level,
            activeAlerts=alerts,
            commonScams=derive_common_scams(ai_scams, alerts),
            emergencyNumbers=emergency,
            lastUpdated=utc_now_iso(),
        )
        return doc, bool(sourced_scams or sourced_news)


def build_aggregator(
    settings: Optional[Settings] = None,
    *,
    generate=None,
    http_client=None,
    clock=None,
) -> SafetyAggregator:
    """Wire adapters, per-adapter caches and rate limiters from settings.

    ``generate`` replaces the Gemini call and ``http_client`` the httpx
    client shared by the news and Exa adapters; both exist for tests.
    """
    settings = settings or Settings()
    clock_kw = {"clock": clock} if clock is not None else {}

    def _limiter() -> RateLimiter:
        return RateLimiter(settings.rate_limit, settings.rate_window_sec, **clock_kw)

    def _cache(name: str, ttl: float) -> ResponseCache:
        return ResponseCache(ttl, settings.cache_max_size, name=name, **clock_kw)

    ai = AISafetyAssessor(
        _cache("ai", settings.ai_cache_ttl), _limiter(), settings.ai_cache_ttl,
        settings.upstream_timeout_sec,
        api_key=settings.gemini_api_key, model_name=settings.gemini_model, generate=generate,
    )
    scams = ScamNewsAdapter(
        _cache("scams", settings.scam_cache_ttl), _limiter(), settings.scam_cache_ttl,
        settings.upstream_timeout_sec,
        api_key=settings.exa_api_key, retry_after_sec=settings.exa_retry_after_sec,
        client=http_client, **clock_kw,
    )
    news = NewsSearchAdapter(
        _cache("news", settings.news_cache_ttl), _limiter(), settings.news_cache_ttl,
        settings.upstream_timeout_sec,
        api_key=settings.gnews_api_key, client=http_client,
    )
    return SafetyAggregator(
        ai, scams, news,
        _cache("documents", settings.ai_cache_ttl),
        ai_doc_ttl=settings.ai_cache_ttl,
        news_doc_ttl=settings.news_cache_ttl,
    )
