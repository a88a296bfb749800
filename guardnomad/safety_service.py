"""Guard Nomad Backend - Location safety service.

Per-user facade over the aggregator: remembers where each user is,
re-aggregates in the background when they move, and answers the
alert/score/tips questions the app asks.
"""

import asyncio
import logging
from typing import Optional

from guardnomad.aggregator import SafetyAggregator
from guardnomad.config import DEFAULT_TIPS
from guardnomad.location_tracker import LocationTracker
from guardnomad.models import (
    Alert, AlertStats, EmergencyInfo, Location, SafetyDocument, SafetyScoreSummary,
)
from guardnomad.scoring import alert_stats, summary_for_score

logger = logging.getLogger("guardnomad.service")


class LocationSafetyService:
    def __init__(self, aggregator: SafetyAggregator, tracker: Optional[LocationTracker] = None):
        self.aggregator = aggregator
        self.tracker = tracker or LocationTracker()
        self._tasks: set[asyncio.Task] = set()

    # ─────────────────────────── Background work ────────────────

    def _dispatch(self, coro, label: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=label)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if task.cancelled():
            logger.info(f"Background task {task.get_name()} cancelled")
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Background task {task.get_name()} failed: {exc!r}")

    @property
    def pending_tasks(self) -> int:
        return len(self._tasks)

    async def drain(self):
        """Wait for every in-flight background re-aggregation."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self):
        await self.drain()
        await self.aggregator.aclose()

    # ─────────────────────────── Location lifecycle ─────────────

    async def aggregate(self, location: Location, refresh: bool = False) -> SafetyDocument:
        return await self.aggregator.aggregate(location, refresh=refresh)

    async def update_user_location(self, user_id: str, location: Location) -> bool:
        """Record the user's location; returns True if it triggered a re-aggregation."""
        moved = self.tracker.has_moved_significantly(user_id, location)
        self.tracker.update_location(user_id, location)
        logger.info(f"Updated location for user {user_id}: {location.label or location.bucket_key()}")
        if moved:
            self._dispatch(self.aggregator.aggregate(location), f"aggregate:{user_id}")
        return moved

    def get_user_location(self, user_id: str) -> Optional[Location]:
        return self.tracker.get_location(user_id)

    def clear_user_location(self, user_id: str):
        self.tracker.clear_location(user_id)
        logger.info(f"Cleared location data for user {user_id}")

    async def get_user_location_safety_data(self, user_id: str) -> Optional[SafetyDocument]:
        location = self.tracker.get_location(user_id)
        if location is None:
            logger.warning(f"No location data available for user {user_id}")
            return None
        return await self.aggregator.aggregate(location)

    # ─────────────────────────── Queries ────────────────────────

    async def get_user_location_alerts(self, user_id: str) -> list[Alert]:
        doc = await self.get_user_location_safety_data(user_id)
        return list(doc.activeAlerts) if doc else []

    async def get_user_location_safety_score(self, user_id: str) -> Optional[SafetyScoreSummary]:
        doc = await self.get_user_location_safety_data(user_id)
        if doc is None:
            return None
        return SafetyScoreSummary(
            score=doc.safetyScore,
            riskLevel=doc.riskLevel,
            summary=summary_for_score(doc.safetyScore),
            location=doc.location,
        )

    async def get_nearby_alerts(self, user_id: str, radius_km: float = 10) -> list[Alert]:
        """Alerts whose affected areas mention the user's city or country."""
        location = self.tracker.get_location(user_id)
        if location is None:
            return []
        logger.debug(f"Searching for alerts within {radius_km}km of user {user_id}")

        needles = [n.strip().lower() for n in (location.city, location.country) if n and n.strip()]
        alerts = await self.get_user_location_alerts(user_id)
        return [
            alert for alert in alerts
            if any(needle in area.lower() for area in alert.affectedAreas for needle in needles)
        ]

    async def get_emergency_info(self, user_id: str) -> Optional[EmergencyInfo]:
        doc = await self.get_user_location_safety_data(user_id)
        if doc is None:
            return None
        return EmergencyInfo(emergencyNumbers=doc.emergencyNumbers)

    async def get_location_tips(self, user_id: str) -> list[str]:
        doc = await self.get_user_location_safety_data(user_id)
        if doc is None:
            return list(DEFAULT_TIPS)
        return [
            f"Current safety score: {doc.safetyScore}/100 ({doc.riskLevel} risk)",
            *(f"Watch out for: {scam}" for scam in doc.commonScams),
            "Keep emergency numbers handy",
            "Stay informed about local conditions",
        ]

    async def get_alert_stats(self, user_id: str) -> AlertStats:
        return alert_stats(await self.get_user_location_alerts(user_id))
