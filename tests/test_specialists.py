"""Tests for the weather and geography specialists."""

from typing import Optional, get_type_hints

import pytest

from multiagent_sandbox.core.flow_controller import RetryConfig, SleepFunc
from multiagent_sandbox.models.conversation_state import ConfidenceEnvelope, Speaker, Turn
from multiagent_sandbox.nodes.geography import ConfidenceCheckedGeographyAgent, GeographyAgent, select_lookups
from multiagent_sandbox.nodes.weather import WeatherAgent
from multiagent_sandbox.services.lookup_service import FixedConfidence, ScriptedFailures, WeatherClient, build_lookups


async def no_sleep(delay):
    return None


def user(text):
    return [Turn(speaker=Speaker.USER, text=text)]


@pytest.fixture
def retry():
    return RetryConfig(max_attempts=3, initial_delay=0.0)


class TestWeatherAgent:
    @pytest.mark.asyncio
    async def test_answers_latest_user_turn(self, retry):
        agent = WeatherAgent(build_lookups(WeatherClient()), retry, sleep=no_sleep)
        history = user("weather in London") + [
            Turn(speaker=Speaker.SPECIALIST, text="earlier", source_agent="WeatherAgent")
        ] + user("and weather in Paris?")

        turn = await agent.respond(history)

        assert turn.speaker == Speaker.SPECIALIST
        assert turn.source_agent == "WeatherAgent"
        assert turn.text == "Mock data: in Paris it is currently 22°C, partly cloudy."

    @pytest.mark.asyncio
    async def test_explicit_query_overrides_history(self, retry):
        agent = WeatherAgent(build_lookups(WeatherClient()), retry, sleep=no_sleep)

        turn = await agent.respond(user("ignored"), query="weather in Tokyo")

        assert "Tokyo" in turn.text

    @pytest.mark.asyncio
    async def test_unknown_place_gets_apology(self, retry):
        agent = WeatherAgent(build_lookups(WeatherClient()), retry, sleep=no_sleep)

        turn = await agent.respond(user("what is the weather"))

        assert turn.text.startswith("Sorry")


class TestGeographyAgent:
    @pytest.mark.parametrize(
        "query, expected",
        [
            ("population of Paris", ["get_population"]),
            ("coordinates and traffic in Tokyo", ["get_coordinates", "get_traffic_info"]),
            ("tell me about London", ["get_coordinates", "get_population", "get_traffic_info"]),
            ("пробки в москве", ["get_traffic_info"]),
        ],
    )
    def test_selects_lookups_from_query(self, query, expected):
        assert select_lookups(query) == expected

    @pytest.mark.asyncio
    async def test_flaky_population_recovers_within_retry_budget(self, retry):
        simulator = ScriptedFailures([True, True])
        agent = GeographyAgent(build_lookups(WeatherClient(), simulator), retry, sleep=no_sleep)

        turn = await agent.respond(user("population of Paris"))

        assert turn.text == "Population of Paris: ~2.1 million"
        assert simulator.calls == 3

    @pytest.mark.asyncio
    async def test_exhausted_retries_degrade_to_apology(self, retry):
        simulator = ScriptedFailures([True, True, True])
        agent = GeographyAgent(build_lookups(WeatherClient(), simulator), retry, sleep=no_sleep)

        turn = await agent.respond(user("population and coordinates of Paris"))

        assert "Sorry, I could not get population for Paris right now (simulated outage)." in turn.text
        assert "48.8566" in turn.text

    @pytest.mark.asyncio
    async def test_all_lookups_when_query_is_generic(self, retry):
        agent = GeographyAgent(build_lookups(WeatherClient()), retry, sleep=no_sleep)

        turn = await agent.respond(user("tell me about Tokyo"))

        assert turn.text.splitlines() == [
            "Coordinates of Tokyo: 35.6895° N, 139.6917° E",
            "Population of Tokyo: ~14.0 million",
            "Traffic in Tokyo: 5 points, traffic is normal",
        ]


class TestConfidenceCheckedGeographyAgent:
    @pytest.mark.asyncio
    async def test_population_answer_is_wrapped_in_envelope(self, retry):
        agent = ConfidenceCheckedGeographyAgent(
            build_lookups(WeatherClient()), retry, scorer=FixedConfidence(0.42), sleep=no_sleep
        )

        turn = await agent.respond(user("population of Paris"))
        envelope = ConfidenceEnvelope.parse(turn.text)

        assert agent.checks_confidence
        assert envelope is not None
        assert envelope.tool == "get_population"
        assert envelope.confidence == 0.42
        assert envelope.content == "Population of Paris: ~2.1 million"

    @pytest.mark.asyncio
    async def test_answers_without_population_stay_plain(self, retry):
        agent = ConfidenceCheckedGeographyAgent(
            build_lookups(WeatherClient()), retry, scorer=FixedConfidence(0.1), sleep=no_sleep
        )

        turn = await agent.respond(user("coordinates of Paris"))

        assert ConfidenceEnvelope.parse(turn.text) is None
        assert turn.text == "Coordinates of Paris: 48.8566° N, 2.3522° E"


class TestSleepInjection:
    @pytest.mark.parametrize("agent_class", [WeatherAgent, GeographyAgent, ConfidenceCheckedGeographyAgent])
    def test_sleep_is_typed_as_sleep_func(self, agent_class):
        assert get_type_hints(agent_class.__init__)["sleep"] == Optional[SleepFunc]

    @pytest.mark.asyncio
    async def test_injected_sleep_paces_retries(self):
        delays = []

        async def record(delay):
            delays.append(delay)

        simulator = ScriptedFailures([True, True, False])
        lookups = build_lookups(WeatherClient(), simulator)
        agent = GeographyAgent(lookups, RetryConfig(max_attempts=3, initial_delay=0.5), sleep=record)

        turn = await agent.respond(user("population of Paris"))

        assert turn.text == "Population of Paris: ~2.1 million"
        assert delays == [0.5, 1.0]
