"""Guard Nomad Backend - AI safety assessment via Gemini.

Gemini is asked for a JSON safety picture of a location. Its answer is
validated in one place (``parse_assessment``); anything that does not fit
the shape raises MalformedResponse and the fallback chain moves on to the
country knowledge base, then to generic data.
"""

import asyncio
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from guardnomad.cache import ResponseCache
from guardnomad.classify import sanitize_text, stable_id
from guardnomad.config import (
    AI_CACHE_TTL, DEFAULT_COMMON_SCAMS, DEFAULT_EMERGENCY_NUMBERS,
    DEFAULT_SCORE, GEMINI_API_KEY, GEMINI_MODEL, SYNTHESIZED_SOURCE, UPSTREAM_TIMEOUT_SEC,
    country_profile,
)
from guardnomad.errors import MalformedResponse, UpstreamUnavailable
from guardnomad.fallback import SourceAdapter
from guardnomad.models import ALERT_TYPES, SEVERITIES, Alert, Location, SourceResult, SourceStatus
from guardnomad.rate_limit import RateLimiter
from guardnomad.scoring import clamp_score, risk_level_from_score

logger = logging.getLogger("guardnomad.ai")

# prompt in, raw model text out
GenerateFn = Callable[[str], str]

AI_SOURCE = "AI Safety Assessment"


def _valid_until(days: int = 7) -> str:
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


def build_prompt(location: Location) -> str:
    coords = ""
    if location.has_coordinates:
        coords = f"\nCoordinates: {location.lat:.4f}, {location.lng:.4f}"
    region = f"\nRegion: {location.region}" if location.region else ""

    return f"""You are a travel safety analyst. Assess current safety conditions for a traveler.

Location: {location.label or 'Unknown'}
Country: {location.country or 'Unknown'}{region}{coords}

Return ONLY valid JSON with this exact shape:
{{
  "safetyScore": <integer 0-100, higher is safer>,
  "riskLevel": "low" | "medium" | "high" | "critical",
  "activeAlerts": [
    {{
      "type": "scam" | "crime" | "weather" | "political" | "health" | "transport" | "safety",
      "severity": "low" | "medium" | "high" | "critical",
      "title": "short title",
      "description": "one or two sentences",
      "actionRequired": "what the traveler should do",
      "affectedAreas": ["district or landmark"],
      "source": "where this information comes from"
    }}
  ],
  "commonScams": ["short description of a scam seen in this area"],
  "emergencyNumbers": ["Service: number"]
}}

Include at most 5 alerts. Do not invent street addresses."""


def _string_list(value, limit: int = 10) -> list[str]:
    if not isinstance(value, list):
        return []
    items = [sanitize_text(v) for v in value if isinstance(v, str)]
    return [v for v in items if v][:limit]


def _normalize_alert(record, location: Location) -> Optional[Alert]:
    """One AI alert record → Alert, or None when it cannot be used."""
    if not isinstance(record, dict):
        return None
    title = sanitize_text(record.get("title") if isinstance(record.get("title"), str) else "")
    if not title:
        return None
    severity = str(record.get("severity", "")).lower()
    if severity not in SEVERITIES:
        return None

    alert_type = str(record.get("type", "")).lower()
    if alert_type not in ALERT_TYPES:
        alert_type = "safety"

    areas = _string_list(record.get("affectedAreas"), limit=5) or [location.label or location.country]
    source = record.get("source") if isinstance(record.get("source"), str) else ""

    return Alert(
        id=stable_id("ai", location.bucket_key() or "", title),
        type=alert_type,
        severity=severity,
        title=title,
        description=sanitize_text(record.get("description") if isinstance(record.get("description"), str) else ""),
        actionRequired=sanitize_text(record.get("actionRequired") if isinstance(record.get("actionRequired"), str) else "")
        or "Stay alert and follow local guidance",
        affectedAreas=tuple(areas),
        source=sanitize_text(source) or AI_SOURCE,
        validUntil=_valid_until(),
    )


def parse_assessment(text: str, location: Location, source: str = "ai") -> SourceResult:
    """Validate raw model output into a SourceResult.

    Raises MalformedResponse when the text is not a JSON object or has no
    usable numeric ``safetyScore``. Individual alert records that do not
    validate are dropped.
    """
    text = (text or "").strip()
    start_idx = text.find('{')
    end_idx = text.rfind('}')
    if start_idx == -1 or end_idx == -1:
        raise MalformedResponse(source, "no JSON object in model output")
    text = text[start_idx:end_idx + 1]

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedResponse(source, f"invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise MalformedResponse(source, "top-level JSON is not an object")

    raw_score = data.get("safetyScore")
    if isinstance(raw_score, bool) or not isinstance(raw_score, (int, float)):
        raise MalformedResponse(source, f"safetyScore missing or not numeric: {raw_score!r}")
    score = clamp_score(raw_score)

    risk_level = str(data.get("riskLevel", "")).lower()
    if risk_level not in SEVERITIES:
        risk_level = risk_level_from_score(score)

    raw_alerts = data.get("activeAlerts", [])
    if not isinstance(raw_alerts, list):
        raw_alerts = []
    alerts = []
    for record in raw_alerts:
        alert = _normalize_alert(record, location)
        if alert is None:
            logger.debug(f"Dropping unusable AI alert record: {record!r}")
            continue
        alerts.append(alert)

    return SourceResult(
        source=source,
        status=SourceStatus.LIVE,
        alerts=alerts,
        safetyScore=score,
        riskLevel=risk_level,
        commonScams=_string_list(data.get("commonScams")),
        emergencyNumbers=_string_list(data.get("emergencyNumbers")),
        recordCount=1,
    )


class AISafetyAssessor(SourceAdapter):
    """Gemini-backed safety assessment with a country knowledge-base fallback."""

    name = "ai"

    def __init__(
        self,
        cache: ResponseCache,
        rate_limiter: RateLimiter,
        cache_ttl: float = AI_CACHE_TTL,
        timeout_sec: float = UPSTREAM_TIMEOUT_SEC,
        *,
        api_key: str = GEMINI_API_KEY,
        model_name: str = GEMINI_MODEL,
        generate: Optional[GenerateFn] = None,
    ):
        super().__init__(cache, rate_limiter, cache_ttl, timeout_sec)
        self.api_key = api_key
        self.model_name = model_name
        self._generate = generate

    def available(self) -> bool:
        return self._generate is not None or bool(self.api_key)

    def _gemini_generate(self, prompt: str) -> str:
        import google.generativeai as genai
        genai.configure(api_key=self.api_key)
        model = genai.GenerativeModel(self.model_name)
        result = model.generate_content(
            prompt,
            generation_config=genai.types.GenerationConfig(
                response_mime_type="application/json",
            ),
            request_options={"timeout": self.timeout_sec},
        )
        return result.text

    async def _fetch_live(self, location: Location) -> SourceResult:
        generate = self._generate or self._gemini_generate
        try:
            text = await asyncio.to_thread(generate, build_prompt(location))
        except Exception as e:
            raise UpstreamUnavailable(self.name, f"Gemini call failed: {e}") from e

        result = parse_assessment(text, location, source=self.name)
        logger.info(
            f"AI assessment for {location.label}: score={result.safetyScore}, "
            f"{len(result.alerts)} alerts"
        )
        return result

    async def _synthesize(self, location: Location) -> Optional[SourceResult]:
        profile = country_profile(location.country)
        if profile is None:
            return None

        country = location.country.strip()
        label = location.label or country
        advisory = Alert(
            id=stable_id("kb", country.lower(), "advisory"),
            type="safety",
            severity=profile["riskLevel"],
            title=f"{country} Travel Safety Advisory",
            description=profile["riskDescription"],
            actionRequired=profile["advice"][0],
            affectedAreas=(label,),
            source=f"{SYNTHESIZED_SOURCE} - {country} safety profile",
            validUntil=_valid_until(),
        )
        logger.info(f"Using built-in safety profile for {country}")
        return SourceResult(
            source=self.name,
            status=SourceStatus.SYNTHESIZED,
            alerts=[advisory],
            safetyScore=profile["safetyScore"],
            riskLevel=profile["riskLevel"],
            commonScams=list(profile["scams"]),
            emergencyNumbers=list(profile["emergencyNumbers"]),
            recordCount=1,
        )

    def _static(self, location: Location) -> SourceResult:
        return SourceResult(
            source=self.name,
            status=SourceStatus.STATIC,
            safetyScore=DEFAULT_SCORE,
            riskLevel=risk_level_from_score(DEFAULT_SCORE),
            commonScams=list(DEFAULT_COMMON_SCAMS),
            emergencyNumbers=list(DEFAULT_EMERGENCY_NUMBERS),
            recordCount=0,
        )
