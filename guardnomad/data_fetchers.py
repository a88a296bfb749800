"""Guard Nomad Backend - External data fetchers (GNews, Exa).

Both adapters talk to their upstream with httpx and normalize records into
Alerts locally; categories and severities come from classify.py.
"""

import asyncio
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Optional

import httpx

from guardnomad.cache import ResponseCache
from guardnomad.classify import (
    action_required, alert_type_from_text, article_severity, categorize_article,
    categorize_local_news, extract_location, extract_source_name, sanitize_description,
    sanitize_text, scam_kind, scam_severity, stable_id,
)
from guardnomad.config import (
    EXA_API_KEY, EXA_BASE, EXA_RETRY_AFTER_SEC, FALLBACK_ARTICLES, GNEWS_API_KEY, GNEWS_BASE,
    NEWS_CACHE_TTL, SCAM_CACHE_TTL, SECURITY_DOMAINS, SYNTHESIZED_SOURCE, UPSTREAM_TIMEOUT_SEC,
    country_profile,
)
from guardnomad.errors import MalformedResponse, RateLimited, UpstreamUnavailable
from guardnomad.fallback import SourceAdapter
from guardnomad.models import Alert, ArticleSource, Location, NewsArticle, SourceResult, SourceStatus
from guardnomad.rate_limit import RateLimiter

logger = logging.getLogger("guardnomad.fetchers")


def _iso_in(delta: timedelta) -> str:
    return (datetime.now(timezone.utc) + delta).isoformat()


def _raise_for_status(source: str, r: httpx.Response) -> None:
    if r.status_code in (403, 429):
        raise RateLimited(source, f"upstream refused request ({r.status_code})")
    if r.status_code != 200:
        raise UpstreamUnavailable(source, f"HTTP {r.status_code}")


def _json_body(source: str, r: httpx.Response) -> dict:
    try:
        data = r.json()
    except ValueError as e:
        raise MalformedResponse(source, f"response is not JSON: {e}") from e
    if not isinstance(data, dict):
        raise MalformedResponse(source, "response JSON is not an object")
    return data


# ─────────────────────────── GNews search ───────────────────────

def normalize_article(raw) -> Optional[NewsArticle]:
    """One GNews article → NewsArticle with local category/severity, or None."""
    if not isinstance(raw, dict):
        return None
    title = sanitize_text(raw.get("title"))
    if not title:
        return None
    description = sanitize_text(raw.get("description"))
    content = sanitize_text(raw.get("content"))

    src = raw.get("source") if isinstance(raw.get("source"), dict) else {}
    return NewsArticle(
        title=title,
        description=description,
        content=content,
        url=raw.get("url") or "",
        image=raw.get("image") or "",
        publishedAt=raw.get("publishedAt") or datetime.now(timezone.utc).isoformat(),
        source=ArticleSource(name=src.get("name") or "Unknown", url=src.get("url") or ""),
        category=categorize_article(title, description),
        severity=article_severity(title, description),
        location=extract_location(f"{title}. {description}"),
    )


def article_to_alert(article: NewsArticle, location: Location) -> Optional[Alert]:
    """Safety/weather articles and high-severity articles become alerts."""
    if article.category not in ("safety", "weather") and article.severity != "high":
        return None

    text = f"{article.title} {article.description}"
    if alert_type_from_text(article.title, article.description) == "crime":
        alert_type = "crime"
    elif article.category == "weather":
        alert_type = "weather"
    else:
        alert_type = "news"

    return Alert(
        id=stable_id("news", article.url, article.title),
        type=alert_type,
        severity=article.severity,
        title=article.title,
        description=sanitize_description(article.description or article.content),
        actionRequired=action_required(text),
        affectedAreas=(article.location or location.label or "Global",),
        source=article.source.name,
        validUntil=_iso_in(timedelta(days=1)),
    )


class NewsSearchAdapter(SourceAdapter):
    """GNews ``/search`` for location safety news."""

    name = "news"
    requires_place = True

    def __init__(
        self,
        cache: ResponseCache,
        rate_limiter: RateLimiter,
        cache_ttl: float = NEWS_CACHE_TTL,
        timeout_sec: float = UPSTREAM_TIMEOUT_SEC,
        *,
        api_key: str = GNEWS_API_KEY,
        base_url: str = GNEWS_BASE,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(cache, rate_limiter, cache_ttl, timeout_sec)
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout_sec)

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    def available(self) -> bool:
        return bool(self.api_key)

    @staticmethod
    def build_query(location: Location) -> str:
        place = location.city or location.country
        return f'"{place}" AND (safety OR travel OR weather OR crime OR alert)'

    async def search_articles(self, query: str, max_results: int = 10) -> list[NewsArticle]:
        try:
            r = await self.client.get(f"{self.base_url}/search", params={
                "q": query,
                "token": self.api_key,
                "lang": "en",
                "max": str(max_results),
                "sortby": "publishedAt",
            })
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(self.name, f"request failed: {e}") from e

        _raise_for_status(self.name, r)
        data = _json_body(self.name, r)
        raw_articles = data.get("articles", [])
        if not isinstance(raw_articles, list):
            raise MalformedResponse(self.name, "'articles' is not a list")

        articles = [a for a in (normalize_article(raw) for raw in raw_articles) if a is not None]
        if len(articles) < len(raw_articles):
            logger.debug(f"Dropped {len(raw_articles) - len(articles)} malformed GNews articles")
        return articles

    async def _fetch_live(self, location: Location) -> SourceResult:
        articles = await self.search_articles(self.build_query(location))
        alerts = [a for a in (article_to_alert(art, location) for art in articles) if a is not None]
        logger.info(f"GNews: {len(articles)} articles, {len(alerts)} alerts for {location.label}")
        return SourceResult(
            source=self.name,
            status=SourceStatus.LIVE,
            alerts=alerts,
            recordCount=len(articles),
        )

    def _static(self, location: Location) -> SourceResult:
        articles = fallback_articles()
        alerts = [a for a in (article_to_alert(art, location) for art in articles) if a is not None]
        return SourceResult(
            source=self.name,
            status=SourceStatus.STATIC,
            alerts=alerts,
            recordCount=len(articles),
        )


def fallback_articles() -> list[NewsArticle]:
    now = datetime.now(timezone.utc)
    articles = []
    for i, raw in enumerate(FALLBACK_ARTICLES):
        article = normalize_article({**raw, "publishedAt": (now - timedelta(days=i + 1)).isoformat()})
        if article is not None:
            articles.append(article.model_copy(update={"location": "Global"}))
    return articles


# ─────────────────────────── Exa scam / local news ──────────────

def security_domains(location: Location) -> list[str]:
    text = f"{location.label} {location.country}".lower()
    for region, domains in SECURITY_DOMAINS.items():
        if region != "default" and region in text:
            return domains
    return SECURITY_DOMAINS["default"]


def _result_text(result: dict) -> str:
    highlights = result.get("highlights")
    if isinstance(highlights, list) and highlights and isinstance(highlights[0], str):
        return highlights[0]
    text = result.get("text")
    return text if isinstance(text, str) else ""


def scam_result_to_alert(result, location: Location) -> Optional[Alert]:
    if not isinstance(result, dict) or not result.get("url"):
        return None
    raw_title = result.get("title") if isinstance(result.get("title"), str) else ""
    body = _result_text(result)
    title = sanitize_text(raw_title) or "Scam Alert"
    kind = scam_kind(raw_title, body)

    return Alert(
        id=stable_id("scam", result["url"]),
        type="scam",
        severity=scam_severity(raw_title, body),
        title=title,
        description=sanitize_description(body),
        actionRequired=action_required(body) if kind != "phishing" else "Do not click unknown links or share credentials",
        affectedAreas=(location.label or "Global",),
        source=extract_source_name(result["url"]),
        validUntil=_iso_in(timedelta(days=30)),
    )


def local_news_to_alert(result, location: Location) -> Optional[Alert]:
    """Only crime and breaking local news become alerts."""
    if not isinstance(result, dict) or not result.get("url"):
        return None
    raw_title = result.get("title") if isinstance(result.get("title"), str) else ""
    body = _result_text(result)
    category = categorize_local_news(raw_title, body)
    if category not in ("crime", "breaking"):
        return None

    title = sanitize_text(raw_title) or "Local News"
    if category == "crime":
        alert_type = "crime"
        severity = "high" if article_severity(raw_title, body) == "high" else "medium"
    else:
        alert_type = "news"
        severity = "high"

    return Alert(
        id=stable_id("local", result["url"]),
        type=alert_type,
        severity=severity,
        title=title,
        description=sanitize_description(body),
        actionRequired=action_required(body),
        affectedAreas=(location.label or "Local area",),
        source=extract_source_name(result["url"]),
        validUntil=_iso_in(timedelta(days=2)),
    )


class ScamNewsAdapter(SourceAdapter):
    """Exa neural search for scam warnings and local crime/breaking news.

    A failed scam search suspends live calls for ``retry_after_sec``; a failed
    local-news search only drops that half of the result.
    """

    name = "scams"
    requires_place = True

    def __init__(
        self,
        cache: ResponseCache,
        rate_limiter: RateLimiter,
        cache_ttl: float = SCAM_CACHE_TTL,
        timeout_sec: float = UPSTREAM_TIMEOUT_SEC,
        *,
        api_key: str = EXA_API_KEY,
        base_url: str = EXA_BASE,
        retry_after_sec: float = EXA_RETRY_AFTER_SEC,
        client: Optional[httpx.AsyncClient] = None,
        clock=time.time,
    ):
        super().__init__(cache, rate_limiter, cache_ttl, timeout_sec)
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.retry_after_sec = retry_after_sec
        self._clock = clock
        self._suspended_until = 0.0
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout_sec)

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    @property
    def suspended(self) -> bool:
        return self._clock() < self._suspended_until

    def available(self) -> bool:
        if not self.api_key:
            return False
        if self.suspended:
            logger.info(f"Exa suspended for another {self._suspended_until - self._clock():.0f}s")
            return False
        return True

    def _trip(self, reason: str) -> None:
        self._suspended_until = self._clock() + self.retry_after_sec
        logger.warning(f"Exa failed ({reason}); suspending live calls for {self.retry_after_sec:.0f}s")

    async def _search(self, query: str, num_results: int, days: int,
                      include_domains: Optional[list[str]] = None) -> list[dict]:
        start = (datetime.now(timezone.utc) - timedelta(days=days)).strftime("%Y-%m-%dT%H:%M:%S.000Z")
        body = {
            "query": query,
            "type": "neural",
            "numResults": num_results,
            "startPublishedDate": start,
            "contents": {
                "text": {"maxCharacters": 1000},
                "highlights": {"numSentences": 2, "highlightsPerUrl": 1},
            },
        }
        if include_domains:
            body["includeDomains"] = include_domains

        try:
            r = await self.client.post(
                f"{self.base_url}/search",
                json=body,
                headers={"x-api-key": self.api_key, "Content-Type": "application/json"},
            )
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(self.name, f"request failed: {e}") from e

        _raise_for_status(self.name, r)
        results = _json_body(self.name, r).get("results", [])
        if not isinstance(results, list):
            raise MalformedResponse(self.name, "'results' is not a list")
        return results

    async def _fetch_live(self, location: Location) -> SourceResult:
        label = location.label
        outcomes = await asyncio.gather(
            self._search(f"{label} tourist scam alert fraud warning", 10, 30, security_domains(location)),
            self._search(f"{label} local news current events today", 10, 7),
            return_exceptions=True,
        )
        scam_results, news_results = outcomes
        if isinstance(scam_results, Exception):
            self._trip(str(scam_results))
            raise scam_results
        if isinstance(news_results, Exception):
            logger.warning(f"Exa local news search failed for {label}: {news_results}; keeping scam results")
            news_results = []

        scam_alerts = [a for a in (scam_result_to_alert(r, location) for r in scam_results) if a is not None]
        news_alerts = [a for a in (local_news_to_alert(r, location) for r in news_results) if a is not None]
        logger.info(
            f"Exa: {len(scam_alerts)} scam alerts, {len(news_alerts)} local crime/breaking "
            f"alerts for {label} (from {len(scam_results) + len(news_results)} results)"
        )
        return SourceResult(
            source=self.name,
            status=SourceStatus.LIVE,
            alerts=scam_alerts + news_alerts,
            commonScams=[a.title for a in scam_alerts],
            recordCount=len(scam_results) + len(news_results),
        )

    async def _synthesize(self, location: Location) -> Optional[SourceResult]:
        profile = country_profile(location.country)
        if profile is None or not profile["scams"]:
            return None
        country = location.country.strip()
        alerts = [
            Alert(
                id=stable_id("kb-scam", country.lower(), scam),
                type="scam",
                severity="medium",
                title=scam,
                description=f"Commonly reported scam for travelers in {country}.",
                actionRequired="Stay alert and follow local guidance",
                affectedAreas=(location.label or country,),
                source=f"{SYNTHESIZED_SOURCE} - {country} scam warnings",
                validUntil=_iso_in(timedelta(days=30)),
            )
            for scam in profile["scams"]
        ]
        return SourceResult(
            source=self.name,
            status=SourceStatus.SYNTHESIZED,
            alerts=alerts,
            commonScams=list(profile["scams"]),
            recordCount=len(alerts),
        )

    def _static(self, location: Location) -> SourceResult:
        alert = Alert(
            id="scam-general-awareness",
            type="scam",
            severity="low",
            title="General Fraud Awareness",
            description="Be cautious of unsolicited offers, fake officials and pressure to pay in cash.",
            actionRequired="Verify identities and never share payment details with strangers",
            affectedAreas=("Global",),
            source="Guard Nomad Safety",
        )
        return SourceResult(source=self.name, status=SourceStatus.STATIC, alerts=[alert], recordCount=1)
