"""
Lookup Service - Place Data Providers
=====================================
Data sources used by the specialist agents. Every lookup takes a place name
and returns a descriptive sentence, or fails with LookupFailed.

Features:
- Semi-real weather via WeatherAPI.com (httpx) when a key is configured
- Mocked coordinates / population / traffic tables
- Injectable failure simulation for the unstable population lookup
- Injectable confidence scoring for the confidence-checked geography agent
- City extraction from free-text queries
"""

import asyncio
import logging
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

import httpx

from ..core.exceptions import LookupFailed

logger = logging.getLogger(__name__)


LookupFunc = Callable[[str], Awaitable[str]]


# Mock tables keyed by lower-case canonical city name
MOCK_COORDINATES: Dict[str, str] = {
    "moscow": "55.7558° N, 37.6173° E",
    "paris": "48.8566° N, 2.3522° E",
    "london": "51.5074° N, 0.1278° W",
    "tokyo": "35.6895° N, 139.6917° E",
}

MOCK_POPULATION: Dict[str, str] = {
    "moscow": "12.6 million",
    "paris": "2.1 million",
    "london": "8.9 million",
    "tokyo": "14.0 million",
}

MOCK_TRAFFIC: Dict[str, str] = {
    "moscow": "8 points, congestion in the center",
    "paris": "6 points, slow traffic on the ring road",
    "london": "7 points, heavy traffic in the City",
    "tokyo": "5 points, traffic is normal",
}

CITY_ALIASES: Dict[str, str] = {
    "москва": "moscow",
    "москве": "moscow",
    "париж": "paris",
    "париже": "paris",
    "лондон": "london",
    "лондоне": "london",
    "токио": "tokyo",
}

CITY_ABBREVIATIONS: Dict[str, str] = {
    "sf": "San Francisco",
    "spb": "Saint Petersburg",
    "msk": "Moscow",
    "ny": "New York",
    "la": "Los Angeles",
}

COMMON_WORDS = {
    "weather", "in", "the", "what", "what's", "is", "of", "for", "and", "how",
    "many", "people", "live", "lives", "traffic", "population", "coordinates",
    "where", "tell", "about", "today", "like", "now", "are", "there",
    "погода", "в", "какая", "координаты", "у", "население", "сколько",
    "людей", "живет", "пробки", "траффик",
}


def extract_city_from_query(query: str) -> Optional[str]:
    """
    Pull a city name out of a free-text query.

    Known abbreviations win ("msk" -> "Moscow"); otherwise the first word
    longer than two characters that is not a common query word is used,
    capitalized. Returns None when nothing qualifies.
    """
    words = [w.strip(".,!?;:\"'()") for w in query.lower().split()]
    words = [w for w in words if w]

    for word in words:
        if word in CITY_ABBREVIATIONS:
            return CITY_ABBREVIATIONS[word]

    for word in words:
        if len(word) > 2 and word not in COMMON_WORDS:
            return word[0].upper() + word[1:]

    return None


def _table_key(place: str) -> str:
    key = place.strip().lower()
    return CITY_ALIASES.get(key, key)


class FailureSimulator(ABC):
    """Decides whether a lookup call should fail artificially"""

    @abstractmethod
    def should_fail(self, lookup: str, place: str) -> bool:
        pass


class NoFailures(FailureSimulator):
    def should_fail(self, lookup: str, place: str) -> bool:
        return False


class RandomFailures(FailureSimulator):
    """Fails with the given probability; seed it for reproducible runs"""

    def __init__(self, rate: float = 0.5, seed: Optional[int] = None):
        if not 0.0 <= rate <= 1.0:
            raise ValueError("rate must be between 0 and 1")
        self.rate = rate
        self._random = random.Random(seed)

    def should_fail(self, lookup: str, place: str) -> bool:
        return self._random.random() < self.rate


class ScriptedFailures(FailureSimulator):
    """Replays a fixed outcome sequence (True = fail); succeeds once exhausted"""

    def __init__(self, outcomes: Iterable[bool]):
        self._outcomes = list(outcomes)
        self.calls = 0

    def should_fail(self, lookup: str, place: str) -> bool:
        self.calls += 1
        if self._outcomes:
            return self._outcomes.pop(0)
        return False


class ConfidenceScorer(ABC):
    @abstractmethod
    def score(self, lookup: str, content: str) -> float:
        pass


class RandomConfidence(ConfidenceScorer):
    def __init__(self, seed: Optional[int] = None):
        self._random = random.Random(seed)

    def score(self, lookup: str, content: str) -> float:
        return round(self._random.random(), 2)


class FixedConfidence(ConfidenceScorer):
    def __init__(self, value: float):
        if not 0.0 <= value <= 1.0:
            raise ValueError("confidence must be between 0 and 1")
        self.value = value

    def score(self, lookup: str, content: str) -> float:
        return self.value


@dataclass
class Lookup:
    """A named data source callable with a place name"""
    name: str
    description: str
    func: LookupFunc
    timeout: Optional[float] = None

    async def __call__(self, place: str) -> str:
        if not place:
            raise LookupFailed(self.name, place, "no place name given")
        try:
            if self.timeout:
                return await asyncio.wait_for(self.func(place), timeout=self.timeout)
            return await self.func(place)
        except asyncio.TimeoutError:
            raise LookupFailed(self.name, place, f"timed out after {self.timeout}s")


class WeatherClient:
    """Current weather from WeatherAPI.com, or a mock sentence without a key"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = "https://api.weatherapi.com/v1",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def current(self, city: str) -> str:
        if not self.api_key:
            logger.info("WeatherAPI key not configured, returning mock weather", extra={"city": city})
            return f"Mock data: in {city} it is currently 22°C, partly cloudy."

        params = {"key": self.api_key, "q": city, "aqi": "no"}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(f"{self.base_url}/current.json", params=params)
        except httpx.HTTPError as e:
            logger.error(f"Weather request failed for {city}: {e}", exc_info=True)
            raise LookupFailed("get_weather", city, str(e))

        if response.status_code >= 400:
            try:
                message = response.json().get("error", {}).get("message", "unknown API error")
            except ValueError:
                message = f"HTTP {response.status_code}"
            logger.error(f"WeatherAPI error for {city}: {message}", extra={"status": response.status_code})
            raise LookupFailed("get_weather", city, message)

        data = response.json()
        location = data.get("location", {})
        current = data.get("current", {})
        condition = current.get("condition", {}).get("text", "unknown conditions")
        return f"Weather in {location.get('name', city)}: {current.get('temp_c')}°C, {condition}."


async def lookup_coordinates(place: str) -> str:
    found = MOCK_COORDINATES.get(_table_key(place), "not found")
    return f"Coordinates of {place}: {found}"


async def lookup_population(place: str) -> str:
    found = MOCK_POPULATION.get(_table_key(place))
    return f"Population of {place}: ~{found or 'unknown'}"


async def lookup_traffic(place: str) -> str:
    found = MOCK_TRAFFIC.get(_table_key(place), "no data")
    return f"Traffic in {place}: {found}"


def with_failure_simulation(name: str, func: LookupFunc, simulator: FailureSimulator) -> LookupFunc:
    """Wrap a lookup so the simulator can make it fail"""

    async def unstable(place: str) -> str:
        if simulator.should_fail(name, place):
            raise LookupFailed(name, place, "simulated outage")
        return await func(place)

    return unstable


def build_lookups(
    weather_client: WeatherClient,
    failure_simulator: Optional[FailureSimulator] = None,
    timeout: Optional[float] = None
) -> Dict[str, Lookup]:
    """Assemble the lookup registry used by the specialists"""
    simulator = failure_simulator or NoFailures()
    lookups: List[Lookup] = [
        Lookup(
            name="get_weather",
            description="Current weather in the given city",
            func=weather_client.current,
            timeout=timeout
        ),
        Lookup(
            name="get_coordinates",
            description="Geographic coordinates of the given city",
            func=lookup_coordinates,
            timeout=timeout
        ),
        Lookup(
            name="get_population",
            description="Approximate population of the given city",
            func=with_failure_simulation("get_population", lookup_population, simulator),
            timeout=timeout
        ),
        Lookup(
            name="get_traffic_info",
            description="Current traffic situation in the given city",
            func=lookup_traffic,
            timeout=timeout
        ),
    ]
    return {lookup.name: lookup for lookup in lookups}
