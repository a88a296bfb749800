"""Guard Nomad Backend - Per-user last known location"""

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Optional

from guardnomad.config import EARTH_RADIUS_KM, LOCATION_TTL_SEC, SIGNIFICANT_MOVE_KM
from guardnomad.models import Location

logger = logging.getLogger("guardnomad.tracker")


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two points in kilometres (R = 6371 km)."""
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)
    a = (math.sin(dlat / 2) ** 2 +
         math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) *
         math.sin(dlng / 2) ** 2)
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


@dataclass
class UserLocationRecord:
    location: Location
    timestamp: float


class LocationTracker:
    def __init__(self, ttl_sec: float = LOCATION_TTL_SEC,
                 threshold_km: float = SIGNIFICANT_MOVE_KM,
                 clock: Callable[[], float] = time.time):
        self.ttl_sec = ttl_sec
        self.threshold_km = threshold_km
        self._clock = clock
        self._records: dict[str, UserLocationRecord] = {}

    def update_location(self, user_id: str, location: Location):
        self._records[user_id] = UserLocationRecord(location=location, timestamp=self._clock())

    def get_location(self, user_id: str) -> Optional[Location]:
        record = self._records.get(user_id)
        if record is None:
            return None
        if self._clock() - record.timestamp > self.ttl_sec:
            del self._records[user_id]
            logger.debug(f"Location for {user_id} expired")
            return None
        return record.location

    def clear_location(self, user_id: str):
        self._records.pop(user_id, None)

    def has_moved_significantly(self, user_id: str, new_location: Location,
                                threshold_km: Optional[float] = None) -> bool:
        """True when there is no live record or the user moved past the threshold.

        Without coordinates on both sides the place keys are compared instead.
        """
        previous = self.get_location(user_id)
        if previous is None:
            return True
        threshold = self.threshold_km if threshold_km is None else threshold_km

        if previous.has_coordinates and new_location.has_coordinates:
            distance = haversine_km(previous.lat, previous.lng, new_location.lat, new_location.lng)
            return distance > threshold
        return previous.bucket_key() != new_location.bucket_key()

    def __len__(self) -> int:
        return len(self._records)
