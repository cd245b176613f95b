"""Shared fixtures and deterministic stand-ins for the decision capability and specialists."""

from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

import pytest

from multiagent_sandbox.core.config import Settings
from multiagent_sandbox.core.context import build_context
from multiagent_sandbox.core.exceptions import DecisionUnavailable
from multiagent_sandbox.core.flow_controller import RetryConfig
from multiagent_sandbox.core.routing_engine import Router
from multiagent_sandbox.models.conversation_state import (
    FINISH,
    PlanStep,
    RoutingDecision,
    StepResult,
    Turn,
)
from multiagent_sandbox.nodes.base import SpecialistAgent
from multiagent_sandbox.services.llm_manager import DecisionProvider
from multiagent_sandbox.services.lookup_service import FixedConfidence, NoFailures


FAIL = object()


class ScriptedDecisionProvider(DecisionProvider):
    """Replays scripted choices; FAIL entries raise DecisionUnavailable.

    Once the script runs out the last entry repeats.
    """

    def __init__(
        self,
        choices: Sequence[Any] = (FINISH,),
        plan: Optional[List[Dict[str, str]]] = None,
        synthesis: Optional[Union[str, Callable[[str, Sequence[StepResult]], str]]] = None,
        name: str = "scripted",
    ):
        self.choices = list(choices)
        self.plan = plan or []
        self.synthesis = synthesis
        self.name = name
        self.choose_calls: List[Sequence[str]] = []
        self.histories: List[List[Turn]] = []
        self.plan_calls: List[str] = []
        self.synthesize_calls: List[List[StepResult]] = []

    async def choose(self, history, options):
        self.choose_calls.append(list(options))
        self.histories.append(list(history))
        index = min(len(self.choose_calls) - 1, len(self.choices) - 1)
        choice = self.choices[index]
        if choice is FAIL:
            raise DecisionUnavailable(f"{self.name} is unavailable")
        return choice

    async def plan_objective(self, objective, agents):
        self.plan_calls.append(objective)
        return [PlanStep(**step) for step in self.plan]

    async def synthesize(self, objective, step_results):
        self.synthesize_calls.append(list(step_results))
        if callable(self.synthesis):
            return self.synthesis(objective, step_results)
        if self.synthesis is not None:
            return self.synthesis
        return " | ".join(result.result for result in step_results)


class FailingDecisionProvider(ScriptedDecisionProvider):
    def __init__(self, name: str = "failing"):
        super().__init__(choices=[FAIL], name=name)


class StubRouter(Router):
    """Returns scripted targets; the last one repeats"""

    def __init__(self, targets: Sequence[str]):
        self.targets = list(targets)
        self.calls = 0

    async def decide(self, state: Mapping[str, Any]) -> RoutingDecision:
        target = self.targets[min(self.calls, len(self.targets) - 1)]
        self.calls += 1
        return RoutingDecision(next=target)


class AlternatingRouter(Router):
    """Never finishes: cycles through the given specialists"""

    def __init__(self, targets: Sequence[str]):
        self.targets = list(targets)
        self.calls = 0

    async def decide(self, state: Mapping[str, Any]) -> RoutingDecision:
        target = self.targets[self.calls % len(self.targets)]
        self.calls += 1
        return RoutingDecision(next=target)


class EchoSpecialist(SpecialistAgent):
    """Specialist that answers with a fixed reply and records its queries"""

    def __init__(self, name: str, reply: str, checks_confidence: bool = False):
        super().__init__(name=name, description=f"{name} test double", lookups={})
        self.reply = reply
        self.checks_confidence = checks_confidence
        self.queries: List[str] = []

    async def process(self, query, history):
        self.queries.append(query)
        return self.reply


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        openai_api_key=None,
        weatherapi_com_key=None,
        population_failure_rate=0.0,
        retry_initial_delay=0.0,
        max_cycles=20,
    )


@pytest.fixture
def fast_retry() -> RetryConfig:
    return RetryConfig(max_attempts=3, initial_delay=0.0, backoff_multiplier=2.0)


@pytest.fixture
def make_context(settings, fast_retry):
    """Factory for contexts with deterministic collaborators"""

    def _make(**overrides):
        options = {
            "failure_simulator": NoFailures(),
            "confidence_scorer": FixedConfidence(0.9),
            "retry_config": fast_retry,
        }
        options.update(overrides)
        return build_context(settings, **options)

    return _make
