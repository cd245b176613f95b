"""Tests for the console REPL."""

import builtins

import pytest

from multiagent_sandbox import cli
from multiagent_sandbox.core.config import get_settings
from multiagent_sandbox.models.conversation_state import ConfidenceEnvelope, ResumeDecision


def feed_input(monkeypatch, lines):
    answers = iter(lines)

    def fake_input(prompt=""):
        try:
            return next(answers)
        except StopIteration:
            raise EOFError

    monkeypatch.setattr(builtins, "input", fake_input)


@pytest.fixture
def offline_env(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("WEATHERAPI_COM_KEY", raising=False)
    monkeypatch.setenv("POPULATION_FAILURE_RATE", "0")
    monkeypatch.setenv("RETRY_INITIAL_DELAY", "0")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestReviewParsing:
    @pytest.mark.parametrize(
        "answer, expected",
        [
            ("approve", (ResumeDecision.APPROVE, None)),
            ("  REJECT  ", (ResumeDecision.REJECT, None)),
            ("reject looks wrong", (ResumeDecision.REJECT, "looks wrong")),
            ("edit Berlin: 10°C", (ResumeDecision.EDIT, "Berlin: 10°C")),
        ],
    )
    def test_parse_review(self, answer, expected):
        assert cli.parse_review(answer) == expected

    @pytest.mark.parametrize("answer", ["edit", "maybe", ""])
    def test_parse_review_rejects(self, answer):
        with pytest.raises(ValueError):
            cli.parse_review(answer)

    def test_display_unwraps_envelopes(self):
        envelope = ConfidenceEnvelope(tool="get_population", content="Population of Paris: ~2.1 million", confidence=0.9)
        assert cli.display_text(envelope.to_text()) == "Population of Paris: ~2.1 million"
        assert cli.display_text("plain answer") == "plain answer"
        assert cli.display_text(None) == ""


class TestRepl:
    def test_answers_until_exit(self, monkeypatch, capsys, offline_env):
        feed_input(monkeypatch, ["weather in Paris", "exit"])

        assert cli.main(["--strategy", "reactive", "--session", "cli-1"]) == 0

        output = capsys.readouterr().out
        assert "Assistant: Mock data: in Paris it is currently 22°C, partly cloudy." in output
        assert "Bye!" in output

    def test_strategy_prompt_accepts_menu_number(self, monkeypatch, capsys, offline_env):
        feed_input(monkeypatch, ["9", "3", "weather in Tokyo", "exit"])

        assert cli.main(["--session", "cli-2"]) == 0

        output = capsys.readouterr().out
        assert "Unknown strategy '9'" in output
        assert "using 'planner'" in output
        assert "Tokyo" in output

    def test_invalid_strategy_flag(self, offline_env, capsys):
        assert cli.main(["--strategy", "telepathy"]) == 2
        assert "Unknown strategy" in capsys.readouterr().err
