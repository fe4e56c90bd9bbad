import asyncio
import concurrent.futures
import logging
from typing import Dict, Optional

import googlemaps

from .models import Coordinate, TransportMode, Venue


logger = logging.getLogger(__name__)

# --- Module-level constants ---
DEFAULT_TIMEOUT_S = 10.0
DEFAULT_MAX_WORKERS = 10
DEFAULT_SEARCH_RADIUS_M = 1500
UNKNOWN_PLACE_ADDRESS = "Address not available"


class GoogleMapsService:
    """Service for interacting with Google Maps APIs.

    Every public call degrades to None (absent location, unreachable
    destination, no venue) instead of raising.
    """

    def __init__(self, api_key: str, timeout: float = DEFAULT_TIMEOUT_S,
                 max_workers: int = DEFAULT_MAX_WORKERS, client=None):
        if client is None:
            if not api_key or api_key == "your_api_key_here":
                raise ValueError("Valid Google Maps API key is required")
            client = googlemaps.Client(key=api_key, timeout=timeout, retry_timeout=timeout)
        self.client = client
        self.timeout = timeout
        self.executor = concurrent.futures.ThreadPoolExecutor(max_workers=max_workers)

    def close(self):
        """Clean up resources"""
        if hasattr(self, 'executor'):
            self.executor.shutdown(wait=True)

    def geocode(self, address: str) -> Optional[Coordinate]:
        """
        Geocode an address using Google Maps Geocoding API
        Returns the first match's coordinates
        """
        try:
            result = self.client.geocode(address)
            if result:
                location = result[0]['geometry']['location']
                return Coordinate(float(location['lat']), float(location['lng']))
            logger.info("No geocoding result for %r", address)
            return None
        except Exception as e:
            logger.warning("Geocoding error for %r: %s", address, e)
            return None

    def travel_time(self, origin: str, destination: Coordinate, mode: TransportMode) -> Optional[int]:
        """
        Get the travel duration in seconds from an address to a coordinate
        using the Distance Matrix API. None means unreachable.
        """
        try:
            dm = self.client.distance_matrix(
                origins=origin,
                destinations=destination.as_param(),
                mode=TransportMode.parse(mode).value,
            )
            element = dm['rows'][0]['elements'][0]
            status = element.get('status')
            duration = element.get('duration', {}).get('value')
            if status != 'OK' or duration is None:
                logger.debug("No route %s -> %s (%s): status=%s", origin, destination.as_param(), mode, status)
                return None
            return int(duration)
        except Exception as e:
            logger.warning("Travel time error %s -> %s (%s): %s", origin, destination.as_param(), mode, e)
            return None

    def nearby_search(self, location: Coordinate, keyword: str,
                      radius: int = DEFAULT_SEARCH_RADIUS_M) -> Optional[Venue]:
        """
        Find the top-ranked place near a location matching keyword.
        The provider's ranking is kept as-is.
        """
        try:
            places_result = self.client.places_nearby(
                location=location.as_tuple(),
                radius=radius,
                keyword=keyword,
            )
            results = places_result.get('results', [])
            if not results:
                return None
            return self._to_venue(results[0])
        except Exception as e:
            logger.warning("Places search error near %s: %s", location.as_param(), e)
            return None

    @staticmethod
    def _to_venue(place: Dict) -> Venue:
        location = place['geometry']['location']
        return Venue(
            name=place['name'],
            display_address=place.get('vicinity') or place.get('formatted_address') or UNKNOWN_PLACE_ADDRESS,
            coordinate=Coordinate(float(location['lat']), float(location['lng'])),
            external_id=place.get('place_id'),
        )

    # Async wrappers for parallel execution, each bounded by self.timeout
    async def _run_bounded(self, what: str, func, *args):
        loop = asyncio.get_event_loop()
        started = asyncio.Event()

        def call():
            loop.call_soon_threadsafe(started.set)
            return func(*args)

        future = loop.run_in_executor(self.executor, call)
        # Time spent queued behind other lookups does not count against the timeout
        try:
            await started.wait()
        except asyncio.CancelledError:
            future.cancel()
            raise
        try:
            return await asyncio.wait_for(future, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("%s timed out after %.1fs: %s", what, self.timeout, args)
            return None

    async def geocode_async(self, address: str) -> Optional[Coordinate]:
        """Async wrapper for geocode"""
        return await self._run_bounded("geocode", self.geocode, address)

    async def travel_time_async(self, origin: str, destination: Coordinate, mode: TransportMode) -> Optional[int]:
        """Async wrapper for travel_time"""
        return await self._run_bounded("travel_time", self.travel_time, origin, destination, mode)

    async def nearby_search_async(self, location: Coordinate, keyword: str,
                                  radius: int = DEFAULT_SEARCH_RADIUS_M) -> Optional[Venue]:
        """Async wrapper for nearby_search"""
        return await self._run_bounded("nearby_search", self.nearby_search, location, keyword, radius)
