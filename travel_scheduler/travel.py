"""
Travel-time lookup.

The engine never talks to a provider directly: it goes through
``TravelTimeService``, which memoises answers for the duration of one run,
short-circuits the ``normal`` mode and falls back to a Haversine /
average-speed estimate whenever the provider fails.
"""

import logging
from typing import Awaitable, Callable, Dict, Optional, Tuple

import aiohttp

from models import Location, TravelLeg, TravelMode
from .constants import AVERAGE_SPEED_KMH, DEFAULT_SPEED_KMH
from .errors import TravelTimeError
from .routing import haversine_km
from .timeutils import ceil_to_slot

logger = logging.getLogger(__name__)

TravelTimeProvider = Callable[[Location, Location, TravelMode], Awaitable[TravelLeg]]

DISTANCE_MATRIX_URL = "https://maps.googleapis.com/maps/api/distancematrix/json"


def estimate_leg(origin: Location, destination: Location, mode: TravelMode) -> TravelLeg:
    """Straight-line distance at the mode's average speed."""
    distance_km = haversine_km(origin, destination)
    speed = AVERAGE_SPEED_KMH.get(TravelMode(mode).value, DEFAULT_SPEED_KMH)
    seconds = distance_km / speed * 3600
    return TravelLeg(
        duration_seconds=round(seconds),
        distance_meters=round(distance_km * 1000),
        is_estimate=True,
    )


class GoogleDistanceMatrixProvider:
    """
    Google Distance Matrix provider. Any non-OK answer raises
    ``TravelTimeError``; ``TravelTimeService`` turns that into an estimate.
    """

    def __init__(self, api_key: str, timeout: float = 15):
        if not api_key:
            raise ValueError("GOOGLE_MAPS_API_KEY is required for the Distance Matrix provider")
        self.api_key = api_key
        self.timeout = timeout

    async def __call__(self, origin: Location, destination: Location, mode: TravelMode) -> TravelLeg:
        params = {
            "origins": f"{origin.lat},{origin.lng}",
            "destinations": f"{destination.lat},{destination.lng}",
            "mode": TravelMode(mode).value,
            "key": self.api_key,
        }
        client_timeout = aiohttp.ClientTimeout(total=self.timeout)

        async with aiohttp.ClientSession(timeout=client_timeout) as session:
            async with session.get(DISTANCE_MATRIX_URL, params=params) as response:
                if response.status != 200:
                    raise TravelTimeError(f"Distance Matrix HTTP {response.status}")
                data = await response.json()

        return self.parse_response(data)

    @staticmethod
    def parse_response(data: dict) -> TravelLeg:
        if data.get("status") != "OK":
            raise TravelTimeError(f"Distance Matrix status {data.get('status')}")

        try:
            element = data["rows"][0]["elements"][0]
        except (KeyError, IndexError) as e:
            raise TravelTimeError("Distance Matrix answer has no elements") from e

        if element.get("status") != "OK":
            raise TravelTimeError(f"Distance Matrix element status {element.get('status')}")

        return TravelLeg(
            duration_seconds=element["duration"]["value"],
            distance_meters=element.get("distance", {}).get("value", 0),
        )


LegKey = Tuple[float, float, float, float, str]


class TravelTimeService:
    """
    Per-run wrapper around a provider. Create one per recalculation; the
    cache is not shared between runs.
    """

    def __init__(self, provider: Optional[TravelTimeProvider] = None):
        self.provider = provider
        self._cache: Dict[LegKey, TravelLeg] = {}
        self.provider_calls = 0
        self.fallbacks = 0

    async def leg(self, origin: Location, destination: Location, mode: TravelMode) -> TravelLeg:
        mode = TravelMode(mode)
        if mode == TravelMode.NORMAL:
            return TravelLeg(duration_seconds=0)

        key = (origin.lat, origin.lng, destination.lat, destination.lng, mode.value)
        if key in self._cache:
            return self._cache[key]

        leg = await self._fetch(origin, destination, mode)
        self._cache[key] = leg
        return leg

    async def minutes(self, origin: Location, destination: Location, mode: TravelMode) -> int:
        """Leg duration rounded up to whole 10-minute slots."""
        leg = await self.leg(origin, destination, mode)
        return ceil_to_slot(leg.duration_seconds)

    async def _fetch(self, origin: Location, destination: Location, mode: TravelMode) -> TravelLeg:
        if self.provider is None:
            return estimate_leg(origin, destination, mode)

        self.provider_calls += 1
        try:
            leg = await self.provider(origin, destination, mode)
        except Exception as e:
            logger.warning(f"Travel provider failed for {origin.display_name} -> {destination.display_name} "
                           f"({mode.value}): {e}; using estimate")
            self.fallbacks += 1
            return estimate_leg(origin, destination, mode)

        if leg is None:
            logger.warning(f"Travel provider returned nothing for {origin.display_name} -> "
                           f"{destination.display_name}; using estimate")
            self.fallbacks += 1
            return estimate_leg(origin, destination, mode)
        return leg
