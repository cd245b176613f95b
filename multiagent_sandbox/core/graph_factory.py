"""
Graph Factory
=============
Builds the execution graph for each routing strategy from an
OrchestratorContext. All graphs built from one context share its
checkpointer, so sessions survive across graph instances.
"""

import logging
from enum import Enum
from typing import Dict, List, Union

from .context import OrchestratorContext
from .conversation_graph import ConversationGraph
from .planner_graph import PlannerGraph
from .routing_engine import PRIMARY, SECONDARY, FallbackRouter, PlannerRouter, ReactiveRouter
from ..nodes.base import SpecialistAgent
from ..nodes.geography import ConfidenceCheckedGeographyAgent, GeographyAgent
from ..nodes.weather import WeatherAgent

logger = logging.getLogger(__name__)


ExecutionGraph = Union[ConversationGraph, PlannerGraph]


class RoutingStrategy(str, Enum):
    """Routing strategies selectable from the REPL and the REST API"""
    REACTIVE = "reactive"
    FALLBACK = "fallback"
    PLANNER = "planner"
    HITL = "hitl"

    @classmethod
    def parse(cls, value: str) -> "RoutingStrategy":
        """Accept a strategy name or its 1-based menu number"""
        text = (value or "").strip().lower()
        members = list(cls)
        if text.isdigit() and 1 <= int(text) <= len(members):
            return members[int(text) - 1]
        try:
            return cls(text)
        except ValueError:
            raise ValueError(
                f"Unknown strategy '{value}'. Choose one of: {', '.join(m.value for m in members)}"
            )


STRATEGY_DESCRIPTIONS: Dict[RoutingStrategy, str] = {
    RoutingStrategy.REACTIVE: "Supervisor picks a specialist each cycle",
    RoutingStrategy.FALLBACK: "Supervisor with primary/secondary model fallback",
    RoutingStrategy.PLANNER: "Plan all steps up front, execute, then respond",
    RoutingStrategy.HITL: "Supervisor with human review of low-confidence answers",
}


def _standard_specialists(context: OrchestratorContext) -> List[SpecialistAgent]:
    return [
        WeatherAgent(context.lookups, context.retry_config, sleep=context.sleep),
        GeographyAgent(context.lookups, context.retry_config, sleep=context.sleep),
    ]


def create_graph(strategy: RoutingStrategy, context: OrchestratorContext) -> ExecutionGraph:
    """Factory function for the execution graph of a routing strategy"""
    strategy = RoutingStrategy(strategy)
    max_cycles = context.settings.max_cycles
    logger.info(f"Creating execution graph for strategy: {strategy.value}")

    if strategy == RoutingStrategy.PLANNER:
        specialists = _standard_specialists(context)
        planner = PlannerRouter(context.primary, {s.name: s.description for s in specialists})
        return PlannerGraph(
            planner=planner,
            responder=context.primary,
            specialists=specialists,
            checkpointer=context.checkpointer,
            max_cycles=max_cycles,
            name=strategy.value
        )

    if strategy == RoutingStrategy.HITL:
        specialists = [
            WeatherAgent(context.lookups, context.retry_config, sleep=context.sleep),
            ConfidenceCheckedGeographyAgent(
                context.lookups,
                context.retry_config,
                scorer=context.confidence_scorer,
                sleep=context.sleep
            ),
        ]
    else:
        specialists = _standard_specialists(context)

    members = [s.name for s in specialists]
    if strategy == RoutingStrategy.FALLBACK:
        router = FallbackRouter(
            primary=ReactiveRouter(context.primary, members, label=PRIMARY),
            secondary=ReactiveRouter(context.secondary, members, label=SECONDARY)
        )
    else:
        router = ReactiveRouter(context.primary, members, label=PRIMARY)

    return ConversationGraph(
        router=router,
        specialists=specialists,
        checkpointer=context.checkpointer,
        gate=context.gate,
        max_cycles=max_cycles,
        name=strategy.value
    )


def list_available_graphs() -> Dict[str, str]:
    return {strategy.value: STRATEGY_DESCRIPTIONS[strategy] for strategy in RoutingStrategy}
