"""Tests for lookups, failure simulation and city extraction."""

import asyncio

import httpx
import pytest

from multiagent_sandbox.core.exceptions import LookupFailed
from multiagent_sandbox.services.lookup_service import (
    FixedConfidence,
    Lookup,
    RandomConfidence,
    RandomFailures,
    ScriptedFailures,
    WeatherClient,
    build_lookups,
    extract_city_from_query,
    lookup_coordinates,
    lookup_population,
    lookup_traffic,
)


class TestExtractCity:
    @pytest.mark.parametrize(
        "query, expected",
        [
            ("weather in Moscow", "Moscow"),
            ("What is the weather in Paris?", "Paris"),
            ("msk traffic", "Moscow"),
            ("weather in ny", "New York"),
            ("population of tokyo", "Tokyo"),
            ("какая погода в москве", "Москве"),
            ("what is the weather", None),
            ("", None),
        ],
    )
    def test_extracts_city(self, query, expected):
        assert extract_city_from_query(query) == expected


class TestMockLookups:
    @pytest.mark.asyncio
    async def test_known_cities(self):
        assert await lookup_coordinates("Paris") == "Coordinates of Paris: 48.8566° N, 2.3522° E"
        assert await lookup_population("London") == "Population of London: ~8.9 million"
        assert await lookup_traffic("Tokyo") == "Traffic in Tokyo: 5 points, traffic is normal"

    @pytest.mark.asyncio
    async def test_russian_city_names_resolve(self):
        assert "12.6 million" in await lookup_population("Москва")

    @pytest.mark.asyncio
    async def test_unknown_city(self):
        assert await lookup_population("Atlantis") == "Population of Atlantis: ~unknown"
        assert await lookup_coordinates("Atlantis") == "Coordinates of Atlantis: not found"
        assert await lookup_traffic("Atlantis") == "Traffic in Atlantis: no data"


class TestWeatherClient:
    @pytest.mark.asyncio
    async def test_without_key_returns_mock_weather(self):
        result = await WeatherClient(api_key=None).current("Paris")
        assert result == "Mock data: in Paris it is currently 22°C, partly cloudy."

    @pytest.mark.asyncio
    async def test_with_key_calls_weatherapi(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={
                "location": {"name": "Paris"},
                "current": {"temp_c": 18.0, "condition": {"text": "Sunny"}},
            })

        client = WeatherClient(api_key="secret", transport=httpx.MockTransport(handler))

        assert await client.current("Paris") == "Weather in Paris: 18.0°C, Sunny."
        assert seen["path"] == "/v1/current.json"
        assert seen["params"]["key"] == "secret"
        assert seen["params"]["q"] == "Paris"

    @pytest.mark.asyncio
    async def test_api_error_raises_lookup_failed(self):
        def handler(request):
            return httpx.Response(400, json={"error": {"code": 1006, "message": "No matching location found."}})

        client = WeatherClient(api_key="secret", transport=httpx.MockTransport(handler))

        with pytest.raises(LookupFailed) as exc_info:
            await client.current("Atlantis")
        assert exc_info.value.reason == "No matching location found."
        assert exc_info.value.lookup == "get_weather"

    @pytest.mark.asyncio
    async def test_transport_error_raises_lookup_failed(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = WeatherClient(api_key="secret", transport=httpx.MockTransport(handler))

        with pytest.raises(LookupFailed):
            await client.current("Paris")


class TestLookup:
    @pytest.mark.asyncio
    async def test_timeout_becomes_lookup_failed(self):
        async def hangs(place):
            await asyncio.sleep(10)
            return "never"

        lookup = Lookup(name="get_slow", description="slow", func=hangs, timeout=0.01)

        with pytest.raises(LookupFailed) as exc_info:
            await lookup("Paris")
        assert "timed out" in exc_info.value.reason

    @pytest.mark.asyncio
    async def test_missing_place_fails(self):
        lookup = Lookup(name="get_population", description="", func=lookup_population)

        with pytest.raises(LookupFailed):
            await lookup("")

    @pytest.mark.asyncio
    async def test_population_lookup_runs_behind_failure_simulator(self):
        simulator = ScriptedFailures([True, False])
        lookups = build_lookups(WeatherClient(), simulator)

        with pytest.raises(LookupFailed) as exc_info:
            await lookups["get_population"]("Paris")
        assert exc_info.value.reason == "simulated outage"

        assert "2.1 million" in await lookups["get_population"]("Paris")
        # Only the population lookup is unstable
        assert "48.8566" in await lookups["get_coordinates"]("Paris")
        assert simulator.calls == 2

    def test_registry_contains_all_lookups(self):
        lookups = build_lookups(WeatherClient())
        assert set(lookups) == {"get_weather", "get_coordinates", "get_population", "get_traffic_info"}


class TestSimulationStrategies:
    def test_seeded_random_failures_are_reproducible(self):
        first = RandomFailures(0.5, seed=7)
        second = RandomFailures(0.5, seed=7)
        assert [first.should_fail("x", "y") for _ in range(20)] == [second.should_fail("x", "y") for _ in range(20)]

    def test_rate_bounds(self):
        assert not any(RandomFailures(0.0).should_fail("x", "y") for _ in range(50))
        assert all(RandomFailures(1.0).should_fail("x", "y") for _ in range(50))
        with pytest.raises(ValueError):
            RandomFailures(1.5)

    def test_confidence_scorers(self):
        assert FixedConfidence(0.42).score("get_population", "x") == 0.42
        scores = [RandomConfidence(seed=3).score("get_population", "x") for _ in range(3)]
        assert len(set(scores)) == 1
        assert 0.0 <= scores[0] <= 1.0
        with pytest.raises(ValueError):
            FixedConfidence(-0.1)
