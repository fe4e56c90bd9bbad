import asyncio
import logging
from typing import List, Optional, Sequence

from geopy.distance import geodesic

from .maps_service import DEFAULT_SEARCH_RADIUS_M
from .models import (
    Candidate,
    Coordinate,
    Epicenter,
    MeetingResult,
    Participant,
    Venue,
    mean_travel_time,
)


logger = logging.getLogger(__name__)

# --- Module-level constants ---
GRID_DELTA_DEG = 0.005
GRID_OFFSETS = (-1, 0, 1)
DEFAULT_SEARCH_KEYWORD = "bar, café, restaurant"
FALLBACK_VENUE_NAME = "Meeting Point"
FALLBACK_VENUE_ADDRESS = "No venue found"


class MeetingPointError(Exception):
    """Base class for failures reported to the caller"""


class EpicenterUnavailable(MeetingPointError):
    """None of the addresses could be geocoded"""

    def __init__(self, addresses: Sequence[str] = ()):
        super().__init__("Unable to compute epicenter.")
        self.addresses = list(addresses)


class NoReachableCandidate(MeetingPointError):
    """No grid candidate had a travel time for any participant"""

    def __init__(self):
        super().__init__("Unable to compute best meeting point.")


async def _travel_times_to(maps_service, destination: Coordinate,
                           participants: Sequence[Participant]) -> List[Optional[int]]:
    # gather keeps participant order regardless of completion order
    tasks = [
        maps_service.travel_time_async(p.address, destination, p.transport_mode)
        for p in participants
    ]
    return list(await asyncio.gather(*tasks))


def _offset_m(a: Coordinate, b: Coordinate) -> Optional[float]:
    """Geodesic distance in metres, or None when either latitude is out of range"""
    if abs(a.lat) > 90 or abs(b.lat) > 90:
        return None
    return geodesic(a.as_tuple(), b.as_tuple()).meters


class EpicenterCalculator:
    """Geocodes every address and averages the successes"""

    def __init__(self, maps_service):
        self.maps_service = maps_service

    @staticmethod
    def centroid(points: Sequence[Coordinate]) -> Coordinate:
        """Unweighted mean of latitude and longitude"""
        lat = sum(p.lat for p in points) / len(points)
        lng = sum(p.lng for p in points) / len(points)
        return Coordinate(lat, lng)

    async def compute(self, addresses: Sequence[str]) -> Epicenter:
        results = await asyncio.gather(*[self.maps_service.geocode_async(a) for a in addresses])

        located = [loc for loc in results if loc is not None]
        unresolved = [a for a, loc in zip(addresses, results) if loc is None]
        if unresolved:
            logger.warning("Could not geocode %d of %d addresses: %s", len(unresolved), len(addresses), unresolved)
        if not located:
            raise EpicenterUnavailable(addresses)

        return Epicenter(self.centroid(located), unresolved)


class GridSearchOptimizer:
    """
    Scores a 3x3 neighbourhood around the epicenter by mean travel time
    and keeps the lowest. Candidates are generated row-major (latitude
    offset outer, longitude offset inner); that order breaks ties.
    """

    def __init__(self, maps_service, delta: float = GRID_DELTA_DEG):
        self.maps_service = maps_service
        self.delta = delta

    def generate_candidates(self, center: Coordinate) -> List[Coordinate]:
        return [
            center.offset(i * self.delta, j * self.delta)
            for i in GRID_OFFSETS
            for j in GRID_OFFSETS
        ]

    async def score(self, coordinate: Coordinate, participants: Sequence[Participant]) -> Candidate:
        travel_times = await _travel_times_to(self.maps_service, coordinate, participants)
        return Candidate(coordinate, travel_times, mean_travel_time(travel_times))

    async def optimize(self, center: Coordinate, participants: Sequence[Participant]) -> Candidate:
        candidates = await asyncio.gather(*[
            self.score(c, participants) for c in self.generate_candidates(center)
        ])

        reachable = [c for c in candidates if c.reachable]
        if not reachable:
            raise NoReachableCandidate()
        # min() returns the first of equal keys, so generation order wins ties
        return min(reachable, key=lambda c: c.mean_travel_time)


class VenueResolver:
    """Turns the winning grid point into a venue and re-times the trip to it"""

    def __init__(self, maps_service, keyword: str = DEFAULT_SEARCH_KEYWORD,
                 radius: int = DEFAULT_SEARCH_RADIUS_M):
        self.maps_service = maps_service
        self.keyword = keyword
        self.radius = radius

    async def find_venue(self, candidate: Coordinate) -> Venue:
        venue = await self.maps_service.nearby_search_async(candidate, self.keyword, self.radius)
        if venue is not None:
            logger.info("Found venue: %s", venue.name)
            return venue
        logger.info("No venue found near candidate. Falling back to candidate coordinate.")
        return Venue(FALLBACK_VENUE_NAME, FALLBACK_VENUE_ADDRESS, candidate, None)

    async def resolve(self, candidate: Coordinate, participants: Sequence[Participant]) -> MeetingResult:
        venue = await self.find_venue(candidate)
        # The venue can sit a few hundred metres off the grid point, so re-query
        travel_times = await _travel_times_to(self.maps_service, venue.coordinate, participants)

        return MeetingResult(
            name=venue.name,
            address=venue.display_address,
            coordinate=venue.coordinate,
            travel_times=travel_times,
            mean_travel_time=mean_travel_time(travel_times),
            external_id=venue.external_id,
            candidate=candidate,
            venue_offset_m=_offset_m(candidate, venue.coordinate),
        )


class MeetingPointFinder:
    """Main service for finding a fair meeting point for a group"""

    def __init__(self, maps_service, delta: float = GRID_DELTA_DEG,
                 keyword: str = DEFAULT_SEARCH_KEYWORD, radius: int = DEFAULT_SEARCH_RADIUS_M):
        self.maps_service = maps_service
        self.epicenter_calculator = EpicenterCalculator(maps_service)
        self.optimizer = GridSearchOptimizer(maps_service, delta=delta)
        self.venue_resolver = VenueResolver(maps_service, keyword=keyword, radius=radius)

    def find_meeting_point(self, participants: Sequence[Participant]) -> MeetingResult:
        """
        Synchronous entry point for the Flask views.
        Raises EpicenterUnavailable or NoReachableCandidate.
        """
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        try:
            return loop.run_until_complete(self.find_meeting_point_async(participants))
        finally:
            loop.close()

    async def find_meeting_point_async(self, participants: Sequence[Participant]) -> MeetingResult:
        epicenter = await self.epicenter_calculator.compute([p.address for p in participants])
        logger.info("Calculated epicenter: %s", epicenter.coordinate.as_param())

        best = await self.optimizer.optimize(epicenter.coordinate, participants)
        logger.info("Best grid candidate: %s avg time (s): %.1f", best.coordinate.as_param(), best.mean_travel_time)

        result = await self.venue_resolver.resolve(best.coordinate, participants)
        result.epicenter = epicenter.coordinate
        result.unresolved_addresses = epicenter.unresolved_addresses
        logger.info("Final meeting point: %s (%s), avg time (s): %s",
                    result.name, result.coordinate.as_param(), result.mean_travel_time)
        return result
