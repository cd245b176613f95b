"""Tests for confidence-based suspension."""

import json

import pytest

from multiagent_sandbox.core.interrupt_gate import InterruptGate
from multiagent_sandbox.models.conversation_state import ConfidenceEnvelope, Speaker, Turn


def envelope_turn(confidence, tool="get_population"):
    text = json.dumps({"tool": tool, "content": "Population of Paris: ~2.1 million", "confidence": confidence})
    return Turn(speaker=Speaker.SPECIALIST, text=text, source_agent="GeographyAgent")


class TestInterruptGate:
    def test_confidence_below_threshold_suspends(self):
        verdict = InterruptGate().check(envelope_turn(0.69))

        assert verdict.suspend
        assert verdict.envelope.confidence == 0.69
        assert verdict.envelope.tool == "get_population"

    def test_confidence_at_threshold_continues(self):
        verdict = InterruptGate().check(envelope_turn(0.70))

        assert not verdict.suspend
        assert verdict.envelope is not None

    def test_plain_text_continues(self):
        turn = Turn(speaker=Speaker.SPECIALIST, text="Paris is at 48.8566° N", source_agent="GeographyAgent")

        verdict = InterruptGate().check(turn)

        assert not verdict.suspend
        assert verdict.envelope is None

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "[0.1, 0.2]",
            '{"tool": "get_population", "confidence": 0.1}',
            '{"tool": "get_population", "content": "x", "confidence": 1.5}',
            '{"tool": "get_population", "content": "x", "confidence": "low"}',
            "{not json",
        ],
    )
    def test_malformed_envelopes_continue(self, text):
        turn = Turn(speaker=Speaker.SPECIALIST, text=text)
        assert not InterruptGate().check(turn).suspend

    def test_threshold_is_configurable(self):
        gate = InterruptGate(threshold=0.5)

        assert not gate.check(envelope_turn(0.6)).suspend
        assert gate.check(envelope_turn(0.49)).suspend

    def test_rejects_threshold_out_of_range(self):
        with pytest.raises(ValueError):
            InterruptGate(threshold=1.2)


class TestConfidenceEnvelope:
    def test_text_round_trip_keeps_non_ascii(self):
        envelope = ConfidenceEnvelope(tool="get_population", content="Население: 12.6 млн", confidence=0.4)

        text = envelope.to_text()

        assert "Население" in text
        assert ConfidenceEnvelope.parse(text) == envelope

    def test_parse_none(self):
        assert ConfidenceEnvelope.parse(None) is None
