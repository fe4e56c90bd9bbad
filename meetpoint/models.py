from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


class TransportMode(str, Enum):
    """Travel modes understood by the Distance Matrix API"""
    DRIVING = "driving"
    WALKING = "walking"
    BICYCLING = "bicycling"
    TRANSIT = "transit"

    @classmethod
    def parse(cls, value) -> "TransportMode":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unsupported transport mode: {value!r}")


@dataclass(frozen=True)
class Participant:
    address: str
    transport_mode: TransportMode = TransportMode.DRIVING


@dataclass(frozen=True)
class Coordinate:
    """Latitude/longitude in degrees. Values are passed through unvalidated."""
    lat: float
    lng: float

    def offset(self, dlat: float, dlng: float) -> "Coordinate":
        return Coordinate(self.lat + dlat, self.lng + dlng)

    def as_param(self) -> str:
        return f"{self.lat},{self.lng}"

    def as_tuple(self):
        return (self.lat, self.lng)

    def to_dict(self) -> Dict:
        return {'lat': self.lat, 'lng': self.lng}


def mean_travel_time(travel_times: List[Optional[int]]) -> Optional[float]:
    """Mean over reachable entries only; None when nothing is reachable"""
    reachable = [t for t in travel_times if t is not None]
    if not reachable:
        return None
    return sum(reachable) / len(reachable)


@dataclass
class Candidate:
    coordinate: Coordinate
    travel_times: List[Optional[int]]
    mean_travel_time: Optional[float]

    @property
    def reachable(self) -> bool:
        return self.mean_travel_time is not None


@dataclass(frozen=True)
class Venue:
    name: str
    display_address: str
    coordinate: Coordinate
    external_id: Optional[str] = None


@dataclass
class Epicenter:
    coordinate: Coordinate
    unresolved_addresses: List[str] = field(default_factory=list)


@dataclass
class MeetingResult:
    name: str
    address: str
    coordinate: Coordinate
    travel_times: List[Optional[int]]
    mean_travel_time: Optional[float]
    external_id: Optional[str]
    epicenter: Optional[Coordinate] = None
    candidate: Optional[Coordinate] = None
    venue_offset_m: Optional[float] = None
    unresolved_addresses: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        """JSON payload; unreachable times serialize as null"""
        return {
            'name': self.name,
            'address': self.address,
            'location': self.coordinate.to_dict(),
            'travelTimes': list(self.travel_times),
            'averageTime': self.mean_travel_time,
            'placeId': self.external_id,
            'epicenter': self.epicenter.to_dict() if self.epicenter else None,
            'gridCandidate': self.candidate.to_dict() if self.candidate else None,
            'venueOffsetMeters': round(self.venue_offset_m, 1) if self.venue_offset_m is not None else None,
            'unresolvedAddresses': list(self.unresolved_addresses),
        }
