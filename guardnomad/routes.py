"""Guard Nomad Backend - FastAPI Routes"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from guardnomad.aggregator import build_aggregator
from guardnomad.config import Settings
from guardnomad.location_tracker import LocationTracker
from guardnomad.models import (
    Alert, AlertStats, EmergencyInfo, Location, SafetyDocument, SafetyScoreSummary,
)
from guardnomad.rate_limit import RateLimiter
from guardnomad.safety_service import LocationSafetyService

logger = logging.getLogger("guardnomad")

_allowed_origins = [
    f"http://{host}:{p}"
    for host in ("localhost", "127.0.0.1")
    for p in [*range(3000, 3010), *range(5173, 5180), *range(8080, 8090)]
]

_MAX_TRACKED_CLIENTS = 1024


def build_service(settings: Settings) -> LocationSafetyService:
    tracker = LocationTracker(ttl_sec=settings.location_ttl_sec, threshold_km=settings.significant_move_km)
    return LocationSafetyService(build_aggregator(settings), tracker)


def create_app(service: Optional[LocationSafetyService] = None,
               settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings()
    service = service or build_service(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await service.aclose()

    app = FastAPI(title="Guard Nomad Safety API", version="1.0.0", lifespan=lifespan)
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ─────────────────────────── Rate Limiting ──────────────────

    client_limiter = RateLimiter(settings.api_rate_limit, settings.api_rate_window_sec)

    @app.middleware("http")
    async def rate_limit_middleware(request: Request, call_next):
        client_ip = request.client.host if request.client else "unknown"
        if len(client_limiter) > _MAX_TRACKED_CLIENTS:
            client_limiter.evict_stale()
        if not client_limiter.try_acquire(f"client:{client_ip}"):
            return JSONResponse(
                status_code=429,
                content={"detail": "Rate limit exceeded. Try again in a minute."},
            )
        return await call_next(request)

    # ─────────────────────────── Safety ─────────────────────────

    @app.post("/api/safety", response_model=SafetyDocument)
    async def get_safety_data(location: Location, refresh: bool = False):
        logger.info(f"Safety request: {location.label or location.bucket_key() or 'no location'}")
        return await service.aggregate(location, refresh=refresh)

    # ─────────────────────────── Per-user location ──────────────

    @app.put("/api/users/{user_id}/location")
    async def update_location(user_id: str, location: Location):
        moved = await service.update_user_location(user_id, location)
        return {"status": "ok", "movedSignificantly": moved}

    @app.delete("/api/users/{user_id}/location")
    async def clear_location(user_id: str):
        service.clear_user_location(user_id)
        return {"status": "cleared"}

    @app.get("/api/users/{user_id}/alerts", response_model=list[Alert])
    async def user_alerts(user_id: str, nearby: bool = False, radius_km: float = 10):
        if nearby:
            return await service.get_nearby_alerts(user_id, radius_km)
        return await service.get_user_location_alerts(user_id)

    @app.get("/api/users/{user_id}/alerts/stats", response_model=AlertStats)
    async def user_alert_stats(user_id: str):
        return await service.get_alert_stats(user_id)

    @app.get("/api/users/{user_id}/safety-score", response_model=SafetyScoreSummary)
    async def user_safety_score(user_id: str):
        summary = await service.get_user_location_safety_score(user_id)
        if summary is None:
            raise HTTPException(status_code=404, detail="No current location for user")
        return summary

    @app.get("/api/users/{user_id}/emergency", response_model=EmergencyInfo)
    async def user_emergency_info(user_id: str):
        info = await service.get_emergency_info(user_id)
        if info is None:
            raise HTTPException(status_code=404, detail="No current location for user")
        return info

    @app.get("/api/users/{user_id}/tips")
    async def user_tips(user_id: str):
        return {"tips": await service.get_location_tips(user_id)}

    # ─────────────────────────── Utility ────────────────────────

    @app.get("/api/health")
    async def health():
        aggregator = service.aggregator
        return {
            "status": "ok",
            "version": app.version,
            "cachedDocuments": len(aggregator.cache),
            "sources": {a.name: a.available() for a in (aggregator.ai, aggregator.scams, aggregator.news)},
        }

    return app
