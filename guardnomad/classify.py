"""Guard Nomad Backend - Keyword classification and text clean-up for upstream records.

Categories and severities are derived locally from titles and descriptions;
upstream sources are never trusted to label their own records.
"""

import hashlib
import html
import re
from urllib.parse import urlparse

# ─────────────────────────── Text clean-up ──────────────────────

_TAG_RE = re.compile(r"<[^>]*>")
_DATA_URL_RE = re.compile(r"data:image/[^;]+;base64,[A-Za-z0-9+/=]+")
_WS_RE = re.compile(r"\s+")
_CTRL_RE = re.compile(r"[\x00-\x1f\x7f]")


def sanitize_text(text: str | None) -> str:
    """Strip HTML tags, inline images, entities and runs of whitespace."""
    if not text:
        return ""
    cleaned = _TAG_RE.sub("", text)
    cleaned = _DATA_URL_RE.sub("", cleaned)
    cleaned = html.unescape(cleaned)
    cleaned = _CTRL_RE.sub(" ", cleaned)
    return _WS_RE.sub(" ", cleaned).strip()


def sanitize_description(text: str | None, limit: int = 150) -> str:
    cleaned = sanitize_text(text)
    if not cleaned:
        return "No description available"
    if len(cleaned) < 10:
        return "Local news and safety information"
    if len(cleaned) > limit:
        cleaned = cleaned[:limit]
        last_space = cleaned.rfind(" ")
        if last_space > 100:
            cleaned = cleaned[:last_space]
        cleaned += "..."
    return cleaned


def stable_id(prefix: str, *parts: str) -> str:
    """Deterministic id so the same upstream record dedupes across calls."""
    digest = hashlib.sha1("|".join(p or "" for p in parts).encode("utf-8")).hexdigest()
    return f"{prefix}-{digest[:12]}"


def extract_source_name(url: str) -> str:
    try:
        host = urlparse(url).hostname or ""
    except ValueError:
        host = ""
    if not host:
        return "News Source"
    return host.removeprefix("www.").split(".")[0].upper()


def _contains_any(text: str, keywords) -> bool:
    return any(k in text for k in keywords)


# ─────────────────────────── News search articles ───────────────

_HIGH_URGENCY = ("emergency", "urgent", "breaking", "alert", "warning", "danger", "critical", "evacuation")
_MEDIUM_URGENCY = ("caution", "advisory", "notice", "update", "change", "disruption")


def categorize_article(title: str, description: str) -> str:
    """travel | safety | weather | general, first match wins."""
    text = f"{title} {description}".lower()
    if _contains_any(text, ("travel", "tourism", "flight", "airport")):
        return "travel"
    if _contains_any(text, ("safety", "security", "crime", "alert")):
        return "safety"
    if _contains_any(text, ("weather", "storm", "hurricane", "flood")):
        return "weather"
    return "general"


def article_severity(title: str, description: str) -> str:
    text = f"{title} {description}".lower()
    if _contains_any(text, _HIGH_URGENCY):
        return "high"
    if _contains_any(text, _MEDIUM_URGENCY):
        return "medium"
    return "low"


_LOCATION_PATTERNS = (
    re.compile(r"in ([A-Z][a-z]+ [A-Z][a-z]+)"),
    re.compile(r"([A-Z][a-z]+, [A-Z][a-z]+)"),
)


def extract_location(text: str) -> str | None:
    for pattern in _LOCATION_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1)
    return None


# ─────────────────────────── Local news (aggregator) ────────────

def categorize_local_news(title: str, content: str) -> str:
    text = f"{title} {content}".lower()
    if _contains_any(text, ("breaking", "urgent")):
        return "breaking"
    if _contains_any(text, ("crime", "arrest", "police")):
        return "crime"
    if _contains_any(text, ("weather", "storm", "temperature")):
        return "weather"
    if _contains_any(text, ("traffic", "road", "highway")):
        return "traffic"
    if _contains_any(text, ("business", "economy", "market")):
        return "business"
    if _contains_any(text, ("sport", "game", "team")):
        return "sports"
    if _contains_any(text, ("politic", "election", "government")):
        return "politics"
    return "community"


# ─────────────────────────── Scam / advisory records ────────────

def scam_severity(title: str, content: str) -> str:
    text = f"{title} {content}".lower()
    if _contains_any(text, ("critical", "urgent", "immediate")):
        return "critical"
    if _contains_any(text, ("warning", "alert", "danger")):
        return "high"
    if _contains_any(text, ("caution", "beware", "notice")):
        return "medium"
    return "low"


def scam_kind(title: str, content: str) -> str:
    text = f"{title} {content}".lower()
    if _contains_any(text, ("phishing", "email", "link")):
        return "phishing"
    if _contains_any(text, ("romance", "dating", "relationship")):
        return "romance"
    if _contains_any(text, ("investment", "crypto", "stock")):
        return "investment"
    if _contains_any(text, ("travel", "vacation", "booking")):
        return "travel"
    if _contains_any(text, ("theft", "steal", "rob")):
        return "theft"
    return "fraud"


def alert_type_from_text(title: str, content: str) -> str:
    text = f"{title} {content}".lower()
    if _contains_any(text, ("scam", "fraud")):
        return "scam"
    if _contains_any(text, ("crime", "robbery", "theft")):
        return "crime"
    if _contains_any(text, ("weather", "storm", "flood")):
        return "weather"
    if _contains_any(text, ("political", "protest", "unrest")):
        return "political"
    if _contains_any(text, ("health", "disease", "medical")):
        return "health"
    if _contains_any(text, ("transport", "traffic", "airport")):
        return "transport"
    return "safety"


def action_required(content: str) -> str:
    text = content.lower()
    if "avoid" in text:
        return "Avoid the affected area"
    if "exercise caution" in text:
        return "Exercise increased caution"
    if "stay informed" in text:
        return "Stay informed and monitor updates"
    if "contact" in text:
        return "Contact local authorities if needed"
    return "Stay alert and follow local guidance"

