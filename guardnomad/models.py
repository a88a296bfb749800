"""Guard Nomad Backend - Pydantic Models"""

from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

AlertType = Literal["scam", "crime", "weather", "political", "health", "transport", "safety", "news"]
Severity = Literal["low", "medium", "high", "critical"]
RiskLevel = Literal["low", "medium", "elevated", "high", "critical"]

ALERT_TYPES = ("scam", "crime", "weather", "political", "health", "transport", "safety", "news")
SEVERITIES = ("low", "medium", "high", "critical")


class Location(BaseModel):
    model_config = ConfigDict(frozen=True)

    lat: Optional[float] = Field(default=None, ge=-90, le=90)
    lng: Optional[float] = Field(default=None, ge=-180, le=180)
    city: Optional[str] = None
    country: str = ""
    region: Optional[str] = None

    @property
    def has_coordinates(self) -> bool:
        return self.lat is not None and self.lng is not None

    def bucket_key(self) -> Optional[str]:
        """Shared cache identity: coordinates on a 0.01° grid (~1.1 km), else "city,country".

        None when there is nothing to key on.
        """
        if self.has_coordinates:
            # + 0.0 folds -0.00 into 0.00
            return f"geo:{round(self.lat, 2) + 0.0:.2f},{round(self.lng, 2) + 0.0:.2f}"
        place = ",".join(p.strip().lower() for p in (self.city, self.country) if p and p.strip())
        return f"place:{place}" if place else None

    @property
    def label(self) -> str:
        """Human-readable "City, Country" string used in upstream queries."""
        if self.city and self.country:
            return f"{self.city}, {self.country}"
        return self.city or self.country or ""


class Coordinates(BaseModel):
    lat: float = 0.0
    lng: float = 0.0


class Alert(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    type: AlertType
    severity: Severity
    title: str
    description: str = ""
    actionRequired: str = ""
    affectedAreas: tuple[str, ...] = ()
    source: str = ""
    validUntil: Optional[str] = None


class SafetyDocument(BaseModel):
    location: str
    country: str
    coordinates: Coordinates
    safetyScore: int = Field(ge=0, le=100)
    riskLevel: RiskLevel
    activeAlerts: list[Alert] = []
    commonScams: list[str] = []
    emergencyNumbers: list[str] = []
    lastUpdated: str


class SourceStatus(str, Enum):
    LIVE = "live"
    CACHED = "cached"
    SYNTHESIZED = "synthesized"
    STATIC = "static"

    @property
    def sourced(self) -> bool:
        return self in (SourceStatus.LIVE, SourceStatus.CACHED)


class SourceResult(BaseModel):
    """Normalized output shared by every source adapter."""

    source: str
    status: SourceStatus = SourceStatus.LIVE
    alerts: list[Alert] = []
    safetyScore: Optional[int] = Field(default=None, ge=0, le=100)
    riskLevel: Optional[str] = None
    commonScams: list[str] = []
    emergencyNumbers: list[str] = []
    recordCount: int = 0

    @property
    def synthesized(self) -> bool:
        return self.status == SourceStatus.SYNTHESIZED


class ArticleSource(BaseModel):
    name: str = "Unknown"
    url: str = ""


class NewsArticle(BaseModel):
    title: str
    description: str = ""
    content: str = ""
    url: str = ""
    image: str = ""
    publishedAt: str
    source: ArticleSource = Field(default_factory=ArticleSource)
    category: Literal["travel", "safety", "weather", "general"] = "general"
    severity: Literal["low", "medium", "high"] = "low"
    location: Optional[str] = None


class SafetyScoreSummary(BaseModel):
    score: int
    riskLevel: str
    summary: str
    location: str


class EmergencyInfo(BaseModel):
    emergencyNumbers: list[str]
    nearestHospital: str = "Contact local emergency services"
    nearestPoliceStation: str = "Contact local police"
    embassyContact: str = "Contact your country's embassy"


class AlertStats(BaseModel):
    total: int
    bySeverity: dict[str, int]
    byType: dict[str, int]
    synthesized: int
