"""
Routing Logic for the Execution Graphs

This module implements the supervisor strategies that decide, cycle by
cycle, which specialist handles the conversation next, plus the planner
that decides the whole sequence up front.

Features:
- Reactive routing through a single decision capability
- Structural "finish once a specialist answered" rule (switchable)
- Primary/secondary model fallback that persists for the rest of a run
- Up-front planning with validation against the known specialist set
- Routing decision logging
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping

from .exceptions import DecisionUnavailable, PlanStepAgentNotFound
from ..models.conversation_state import (
    FINISH,
    PlanStep,
    RoutingDecision,
    specialist_answered_since_user,
    turns_from_state,
)
from ..services.llm_manager import DecisionProvider

logger = logging.getLogger(__name__)


PRIMARY = "primary"
SECONDARY = "secondary"


class Router(ABC):
    """Per-cycle routing strategy"""

    @abstractmethod
    async def decide(self, state: Mapping[str, Any]) -> RoutingDecision:
        pass


class ReactiveRouter(Router):
    """
    Routes with one call to the decision capability over the full history.

    With finish_after_specialist enabled, a specialist turn after the latest
    user turn yields FINISH without consulting the decision capability, so
    each user query gets exactly one specialist round-trip. An unavailable
    decision capability also yields FINISH, with the error recorded.
    """

    def __init__(
        self,
        provider: DecisionProvider,
        members: List[str],
        finish_after_specialist: bool = True,
        label: str = PRIMARY
    ):
        if not members:
            raise ValueError("ReactiveRouter needs at least one member")
        self.provider = provider
        self.members = list(members)
        self.finish_after_specialist = finish_after_specialist
        self.label = label

    @property
    def options(self) -> List[str]:
        return [*self.members, FINISH]

    async def select(self, state: Mapping[str, Any]) -> RoutingDecision:
        """Route through the decision capability; DecisionUnavailable propagates"""
        turns = turns_from_state(state)

        if self.finish_after_specialist and specialist_answered_since_user(turns):
            logger.info("Specialist already answered, finishing", extra={"router": self.label})
            return RoutingDecision(next=FINISH, model=self.label)

        start_time = time.time()
        choice = await self.provider.choose(turns, self.options)
        if choice not in self.options:
            raise DecisionUnavailable(f"decision capability returned unknown option {choice!r}")

        logger.info(
            f"Routing decision: {choice}",
            extra={
                "router": self.label,
                "provider": self.provider.name,
                "decision_time_ms": round((time.time() - start_time) * 1000, 2)
            }
        )
        return RoutingDecision(next=choice, model=self.label)

    async def decide(self, state: Mapping[str, Any]) -> RoutingDecision:
        try:
            return await self.select(state)
        except DecisionUnavailable as e:
            logger.error(f"Decision capability failed, forcing FINISH: {e}", extra={"router": self.label})
            return RoutingDecision(next=FINISH, model=self.label, error=str(e))


class FallbackRouter(Router):
    """
    Two reactive routers bound to a primary and a secondary decision capability.

    The tier in use is read from state["current_model"]. A primary failure
    downgrades to the secondary for the rest of the run and retries the same
    decision once; a secondary failure forces FINISH and records the error.
    """

    def __init__(self, primary: ReactiveRouter, secondary: ReactiveRouter):
        self.primary = primary
        self.secondary = secondary

    async def decide(self, state: Mapping[str, Any]) -> RoutingDecision:
        current_model = state.get("current_model") or PRIMARY
        primary_error = None

        if current_model == PRIMARY:
            try:
                return await self.primary.select(state)
            except DecisionUnavailable as e:
                primary_error = str(e)
                logger.warning(
                    f"Primary decision capability failed, switching to secondary: {e}",
                    extra={"from_model": PRIMARY, "to_model": SECONDARY}
                )

        try:
            decision = await self.secondary.select(state)
        except DecisionUnavailable as e:
            logger.error(f"Secondary decision capability failed, forcing FINISH: {e}", exc_info=True)
            return RoutingDecision(next=FINISH, model=SECONDARY, error=str(e))

        return RoutingDecision(next=decision.next, model=SECONDARY, error=primary_error)


class PlannerRouter:
    """Decomposes an objective into a fixed, validated execution plan"""

    def __init__(self, provider: DecisionProvider, agents: Dict[str, str]):
        self.provider = provider
        self.agents = dict(agents)

    async def plan(self, objective: str) -> List[PlanStep]:
        steps = await self.provider.plan_objective(objective, self.agents)
        self.validate(steps)
        logger.info(
            f"Planned {len(steps)} step(s)",
            extra={"plan": [f"{s.agent}: {s.query}" for s in steps]}
        )
        return steps

    def validate(self, steps: List[PlanStep]) -> None:
        """Every planned agent must be a known specialist"""
        for step in steps:
            if step.agent not in self.agents:
                raise PlanStepAgentNotFound(step.agent, self.agents)
