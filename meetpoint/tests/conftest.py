import asyncio
import os

import pytest

# Keep the app from writing app.log or picking up a real key during tests
os.environ["LOG_FILE"] = ""
# An empty value also stops load_dotenv() from filling in a key from .env
os.environ["GOOGLE_MAPS_API_KEY"] = ""

from meetpoint.models import Coordinate, Participant, TransportMode, Venue  # noqa: E402


class FakeMapsService:
    """In-memory stand-in for GoogleMapsService that records every call"""

    def __init__(self, locations=None, travel_time=None, venue=None, delays=None):
        self.locations = locations or {}
        self.travel_time_fn = travel_time or (lambda origin, destination, mode: None)
        self.venue = venue
        self.delays = delays or {}
        self.geocode_calls = []
        self.travel_time_calls = []
        self.nearby_calls = []

    def geocode(self, address):
        self.geocode_calls.append(address)
        return self.locations.get(address)

    async def geocode_async(self, address):
        return self.geocode(address)

    async def travel_time_async(self, origin, destination, mode):
        self.travel_time_calls.append((origin, destination, mode))
        delay = self.delays.get(origin)
        if delay:
            await asyncio.sleep(delay)
        return self.travel_time_fn(origin, destination, mode)

    async def nearby_search_async(self, location, keyword, radius=1500):
        self.nearby_calls.append((location, keyword, radius))
        return self.venue


@pytest.fixture
def make_maps():
    return FakeMapsService


@pytest.fixture
def pair():
    return [
        Participant("A", TransportMode.DRIVING),
        Participant("B", TransportMode.WALKING),
    ]


@pytest.fixture
def pair_locations():
    return {"A": Coordinate(10.0, 20.0), "B": Coordinate(10.01, 20.01)}


@pytest.fixture
def joes_cafe():
    return Venue("Joe's Café", "1 Main St", Coordinate(10.006, 20.004), "xyz123")
