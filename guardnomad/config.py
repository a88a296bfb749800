"""Guard Nomad Backend - Configuration & Constants"""

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel

# Load .env from project root (one level up from guardnomad/)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path)


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "")
    try:
        return float(raw) if raw else default
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    return int(_env_float(name, default))


# ── API Keys ──
GEMINI_API_KEY = os.environ.get("GEMINI_API_KEY") or os.environ.get("VITE_GEMINI_API_KEY", "")
GNEWS_API_KEY = os.environ.get("GNEWS_API_KEY") or os.environ.get("VITE_GNEWS_API_KEY", "")
EXA_API_KEY = os.environ.get("EXA_API_KEY") or os.environ.get("VITE_EXA_API_KEY", "")

GNEWS_BASE = "https://gnews.io/api/v4"
EXA_BASE = "https://api.exa.ai"
GEMINI_MODEL = os.environ.get("GEMINI_MODEL", "gemini-2.0-flash")

# ── Cache TTLs (seconds) ──
AI_CACHE_TTL = _env_int("AI_CACHE_TTL", 30 * 60)          # AI-derived documents
NEWS_CACHE_TTL = _env_int("NEWS_CACHE_TTL", 5 * 60)       # news-derived documents
SCAM_CACHE_TTL = _env_int("SCAM_CACHE_TTL", 15 * 60)       # scam/local news search
CACHE_MAX_SIZE = _env_int("CACHE_MAX_SIZE", 50)

# ── Rate limiting ──
RATE_LIMIT_PER_WINDOW = _env_int("RATE_LIMIT_PER_WINDOW", 10)
RATE_WINDOW_SEC = _env_float("RATE_WINDOW_SEC", 60.0)

# ── Upstream behaviour ──
UPSTREAM_TIMEOUT_SEC = _env_float("UPSTREAM_TIMEOUT_SEC", 15.0)
EXA_RETRY_AFTER_SEC = _env_float("EXA_RETRY_AFTER_SEC", 5 * 60)

# ── User location tracking ──
LOCATION_TTL_SEC = _env_float("LOCATION_TTL_SEC", 5 * 60)
SIGNIFICANT_MOVE_KM = _env_float("SIGNIFICANT_MOVE_KM", 5.0)
EARTH_RADIUS_KM = 6371.0

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

# Per-client HTTP budget on the public API
API_RATE_LIMIT = _env_int("API_RATE_LIMIT", 30)
API_RATE_WINDOW_SEC = _env_float("API_RATE_WINDOW_SEC", 60.0)


class Settings(BaseModel):
    """Snapshot of the tunables above; tests build isolated copies with overrides."""

    gemini_api_key: str = GEMINI_API_KEY
    gnews_api_key: str = GNEWS_API_KEY
    exa_api_key: str = EXA_API_KEY
    gemini_model: str = GEMINI_MODEL

    ai_cache_ttl: float = AI_CACHE_TTL
    news_cache_ttl: float = NEWS_CACHE_TTL
    scam_cache_ttl: float = SCAM_CACHE_TTL
    cache_max_size: int = CACHE_MAX_SIZE

    rate_limit: int = RATE_LIMIT_PER_WINDOW
    rate_window_sec: float = RATE_WINDOW_SEC

    upstream_timeout_sec: float = UPSTREAM_TIMEOUT_SEC
    exa_retry_after_sec: float = EXA_RETRY_AFTER_SEC

    location_ttl_sec: float = LOCATION_TTL_SEC
    significant_move_km: float = SIGNIFICANT_MOVE_KM

    api_rate_limit: int = API_RATE_LIMIT
    api_rate_window_sec: float = API_RATE_WINDOW_SEC


# ── Scoring policy ──
BASELINE_SCORE = 80
DEFAULT_SCORE = 75
SCAM_PENALTY = 15
CRIME_PENALTY = 10
OTHER_PENALTY = 5

GENERIC_EMERGENCY_NUMBERS = ["112", "911"]

# Source label prefix for generated (not sourced) alerts
SYNTHESIZED_SOURCE = "Synthesized"

# Four fixed summaries keyed to the risk bands (>=80, 60-79, 40-59, <40)
SCORE_SUMMARIES = {
    "low": "Generally safe area with standard precautions recommended",
    "medium": "Moderate risk area - stay alert and follow safety guidelines",
    "high": "Higher risk area - exercise increased caution",
    "critical": "High risk area - consider avoiding or take extra precautions",
}

# Static default picture used when no source produced anything usable
DEFAULT_COMMON_SCAMS = [
    "Pickpocketing in crowded tourist areas",
    "Overcharging by taxi drivers",
    "Fake police or authority figures",
]

DEFAULT_EMERGENCY_NUMBERS = [
    "Emergency: 112",
    "Police: Local emergency services",
    "Tourist Assistance: Contact local tourism office",
]

DEFAULT_TIPS = [
    "Stay aware of your surroundings",
    "Keep important documents secure",
    "Stay connected with family/friends",
]

# Country safety profiles. Keys are lower-case country names.
COUNTRY_PROFILES: dict[str, dict] = {
    "france": {
        "safetyScore": 72,
        "riskLevel": "medium",
        "riskDescription": "Generally safe with standard tourist precautions needed",
        "advice": [
            "Be aware of pickpockets in tourist areas and public transport",
            "Avoid protests and large gatherings",
            "Keep valuables secure in popular destinations",
            "Use hotel safes for important documents",
        ],
        "scams": [
            "Friendship bracelet and petition scams near major landmarks",
            "Pickpocketing on metro lines serving tourist sites",
        ],
        "emergencyNumbers": ["Emergency: 112", "Police: 17", "Fire: 18", "Medical: 15"],
    },
    "spain": {
        "safetyScore": 72,
        "riskLevel": "medium",
        "riskDescription": "Popular destination with typical urban safety concerns",
        "advice": [
            "Watch for pickpockets in crowded areas",
            "Be cautious with bag snatching in tourist zones",
            "Avoid displaying expensive items openly",
            "Stay in well-lit areas at night",
        ],
        "scams": [
            "Bag snatching distraction tricks in busy squares",
            "Fake flower or rosemary sellers demanding payment",
        ],
        "emergencyNumbers": ["Emergency: 112", "National Police: 091"],
    },
    "italy": {
        "safetyScore": 72,
        "riskLevel": "medium",
        "riskDescription": "Generally safe with awareness needed in tourist areas",
        "advice": [
            "Be alert for pickpockets near major attractions",
            "Avoid unofficial tour guides and street vendors",
            "Keep copies of important documents separate",
            "Use official taxi services",
        ],
        "scams": [
            "Unofficial tour guides charging inflated fees",
            "Unlicensed taxis overcharging at stations",
        ],
        "emergencyNumbers": ["Emergency: 112", "Police: 113"],
    },
    "united kingdom": {
        "safetyScore": 84,
        "riskLevel": "low",
        "riskDescription": "Low crime rates with standard urban precautions",
        "advice": [
            "Be aware of petty theft in busy areas",
            "Mind the gap on public transport",
            "Carry umbrella for unpredictable weather",
        ],
        "scams": ["Phone snatching from cyclists in busy streets"],
        "emergencyNumbers": ["Emergency: 999", "Non-emergency Police: 101"],
    },
    "germany": {
        "safetyScore": 85,
        "riskLevel": "low",
        "riskDescription": "Very safe with excellent infrastructure",
        "advice": [
            "Follow strict traffic rules",
            "Carry cash as cards not always accepted",
            "Watch for bicycle theft near stations",
        ],
        "scams": ["Fake parking ticket scams in city centers"],
        "emergencyNumbers": ["Police: 110", "Fire/Medical: 112"],
    },
    "japan": {
        "safetyScore": 90,
        "riskLevel": "low",
        "riskDescription": "Extremely safe with unique cultural considerations",
        "advice": [
            "Remove shoes when entering homes",
            "Avoid eating while walking",
            "Follow strict recycling rules",
        ],
        "scams": ["Bar touts in nightlife districts presenting inflated bills"],
        "emergencyNumbers": ["Police: 110", "Fire/Medical: 119"],
    },
    "thailand": {
        "safetyScore": 68,
        "riskLevel": "medium",
        "riskDescription": "Popular destination requiring cultural sensitivity",
        "advice": [
            "Dress modestly at temples and religious sites",
            "Be cautious of tourist scams",
            "Drink bottled or purified water",
        ],
        "scams": [
            "Gem shop scams after 'closed temple' detours",
            "Jet ski damage claims on beaches",
        ],
        "emergencyNumbers": ["Police: 191", "Tourist Police: 1155"],
    },
    "india": {
        "safetyScore": 58,
        "riskLevel": "high",
        "riskDescription": "Complex destination requiring heightened awareness",
        "advice": [
            "Be extremely cautious with food and water",
            "Use prepaid taxis or ride-sharing apps",
            "Avoid isolated areas, especially after dark",
        ],
        "scams": [
            "Fake tourist offices near railway stations",
            "Taxi drivers claiming hotels are closed",
        ],
        "emergencyNumbers": ["Emergency: 112", "Police: 100", "Medical: 108"],
    },
    "brazil": {
        "safetyScore": 55,
        "riskLevel": "high",
        "riskDescription": "Beautiful country with significant safety concerns",
        "advice": [
            "Avoid displaying wealth or expensive items",
            "Use official transportation services",
            "Be extremely cautious at night",
        ],
        "scams": ["Card skimming at ATMs in tourist areas"],
        "emergencyNumbers": ["Police: 190", "Medical: 192"],
    },
    "united states": {
        "safetyScore": 70,
        "riskLevel": "medium",
        "riskDescription": "Varies significantly by region and city",
        "advice": [
            "Research specific city safety conditions",
            "Be aware of varying state laws",
            "Carry ID at all times",
        ],
        "scams": ["Fake ticket resellers outside venues"],
        "emergencyNumbers": ["Emergency: 911"],
    },
}


def country_profile(country: str) -> dict | None:
    return COUNTRY_PROFILES.get((country or "").strip().lower())


# Generic articles served when the news search is unavailable
FALLBACK_ARTICLES = [
    {
        "title": "Travel Safety Advisory: General Guidelines for International Travel",
        "description": "Stay informed about current travel conditions and safety recommendations.",
        "content": "Travel safety remains a top priority for international travelers. Stay updated with local conditions.",
        "url": "#",
        "image": "",
        "source": {"name": "Travel Safety Network", "url": "#"},
    },
    {
        "title": "Weather Update: Monitor Conditions Before Traveling",
        "description": "Check weather conditions and forecasts for your destination.",
        "content": "Weather conditions can significantly impact travel plans. Always check forecasts before departure.",
        "url": "#",
        "image": "",
        "source": {"name": "Weather Central", "url": "#"},
    },
    {
        "title": "Travel Tips: Essential Safety Measures for Modern Travelers",
        "description": "Important safety tips and best practices for international travel.",
        "content": "Modern travel requires awareness of various safety considerations and preventive measures.",
        "url": "#",
        "image": "",
        "source": {"name": "Travel Guide Network", "url": "#"},
    },
]

# Scam alert search domains, keyed by a region hint found in the location string
SECURITY_DOMAINS = {
    "germany": ["bka.de", "bsi.bund.de", "polizei.de", "verbraucherzentrale.de", "europol.europa.eu"],
    "united kingdom": ["actionfraud.police.uk", "ncsc.gov.uk", "citizensadvice.org.uk", "which.co.uk"],
    "united states": ["ftc.gov", "fbi.gov", "ic3.gov", "consumer.ftc.gov", "bbb.org"],
    "default": [
        "interpol.int", "europol.europa.eu", "consumer.ftc.gov",
        "scamwatch.gov.au", "actionfraud.police.uk", "bbb.org",
    ],
}
