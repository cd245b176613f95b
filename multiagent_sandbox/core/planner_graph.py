"""
Plan-and-Execute LangGraph Workflow

planner -> executor (one step per cycle, head of the plan) -> responder.
The plan is decided once per run and validated before any step executes.
"""

import logging
from typing import Any, Dict, List, Optional

from langgraph.checkpoint.memory import MemorySaver
from langgraph.errors import GraphRecursionError
from langgraph.graph import END, START, StateGraph

from .conversation_graph import graph_recursion_limit
from .exceptions import DecisionUnavailable, GraphRecursionExceeded, PlanStepAgentNotFound
from .routing_engine import PlannerRouter
from ..models.conversation_state import (
    PlannerRunState,
    PlanStep,
    Speaker,
    StepResult,
    Turn,
    turns_from_state,
)
from ..nodes.base import SpecialistAgent
from ..services.llm_manager import DecisionProvider, join_step_results

logger = logging.getLogger(__name__)


PLANNER_NODE = "planner"
EXECUTOR_NODE = "executor"
RESPONDER_NODE = "responder"


class PlannerGraph:
    """Planner / executor / responder workflow"""

    def __init__(
        self,
        planner: PlannerRouter,
        responder: DecisionProvider,
        specialists: List[SpecialistAgent],
        checkpointer: Optional[MemorySaver] = None,
        max_cycles: int = 100,
        name: str = "planner"
    ):
        if max_cycles < 1:
            raise ValueError("max_cycles must be at least 1")
        self.planner = planner
        self.responder = responder
        self.specialists: Dict[str, SpecialistAgent] = {s.name: s for s in specialists}
        self.checkpointer = checkpointer or MemorySaver()
        self.max_cycles = max_cycles
        self.name = name

        self.workflow = self._build_workflow()
        self.app = self.workflow.compile(checkpointer=self.checkpointer)

        logger.info(f"PlannerGraph '{name}' initialized with specialists: {list(self.specialists)}")

    def _build_workflow(self) -> StateGraph:
        workflow = StateGraph(PlannerRunState)

        workflow.add_node(PLANNER_NODE, self._plan)
        workflow.add_node(EXECUTOR_NODE, self._execute_step)
        workflow.add_node(RESPONDER_NODE, self._respond)

        workflow.add_edge(START, PLANNER_NODE)
        workflow.add_conditional_edges(
            PLANNER_NODE,
            self._route_after_step,
            {EXECUTOR_NODE: EXECUTOR_NODE, RESPONDER_NODE: RESPONDER_NODE}
        )
        workflow.add_conditional_edges(
            EXECUTOR_NODE,
            self._route_after_step,
            {EXECUTOR_NODE: EXECUTOR_NODE, RESPONDER_NODE: RESPONDER_NODE}
        )
        workflow.add_edge(RESPONDER_NODE, END)
        return workflow

    @staticmethod
    def _route_after_step(state: PlannerRunState) -> str:
        return EXECUTOR_NODE if state.get("plan") else RESPONDER_NODE

    async def _plan(self, state: PlannerRunState) -> Dict[str, Any]:
        try:
            steps = await self.planner.plan(state["objective"])
        except DecisionUnavailable as e:
            logger.error(f"Planning failed, answering without a plan: {e}", extra={"graph": self.name})
            return {"plan": [], "past_steps": [], "last_error": str(e), "error_history": [str(e)]}

        # The planner only knows agent names; the graph must be able to run them too
        for step in steps:
            if step.agent not in self.specialists:
                raise PlanStepAgentNotFound(step.agent, self.specialists)
        return {"plan": [step.model_dump() for step in steps], "past_steps": []}

    async def _execute_step(self, state: PlannerRunState) -> Dict[str, Any]:
        cycle = state.get("cycle_count", 0) + 1
        if cycle > self.max_cycles:
            logger.error(f"Cycle limit of {self.max_cycles} exceeded", extra={"graph": self.name, "cycle": cycle})
            raise GraphRecursionExceeded(self.max_cycles)

        plan = list(state.get("plan") or [])
        step = PlanStep.model_validate(plan.pop(0))
        specialist = self.specialists[step.agent]

        turn = await specialist.respond(turns_from_state(state), query=step.query)
        result = StepResult(agent=step.agent, query=step.query, result=turn.text)

        logger.info(
            f"Executed step {cycle}: {step.agent}",
            extra={"graph": self.name, "cycle": cycle, "remaining": len(plan)}
        )
        return {
            "plan": plan,
            "past_steps": list(state.get("past_steps") or []) + [result.model_dump()],
            "cycle_count": cycle,
        }

    async def _respond(self, state: PlannerRunState) -> Dict[str, Any]:
        results = [StepResult.model_validate(item) for item in state.get("past_steps") or []]
        update: Dict[str, Any] = {}
        try:
            response = await self.responder.synthesize(state["objective"], results)
        except DecisionUnavailable as e:
            logger.error(
                f"Synthesis failed, joining step results: {e}",
                extra={"graph": self.name, "steps": len(results)}
            )
            response = join_step_results(state["objective"], results)
            update = {"last_error": str(e), "error_history": [str(e)]}

        turn = Turn(speaker=Speaker.SUPERVISOR, text=response, source_agent=RESPONDER_NODE)
        return {**update, "response": response, "turns": [turn.to_state()]}

    async def run(self, thread_id: str, query: str) -> Dict[str, Any]:
        payload = {
            "turns": [Turn(speaker=Speaker.USER, text=query).to_state()],
            "objective": query,
            "plan": [],
            "past_steps": [],
            "response": None,
            "cycle_count": 0,
            "last_error": None,
        }
        config = {
            "configurable": {"thread_id": thread_id},
            "recursion_limit": graph_recursion_limit(self.max_cycles),
        }
        try:
            result = await self.app.ainvoke(payload, config=config)
        except GraphRecursionError as e:
            raise GraphRecursionExceeded(self.max_cycles) from e

        logger.info(
            "Planner run finished",
            extra={"graph": self.name, "thread_id": thread_id, "steps": len(result.get("past_steps") or [])}
        )
        return result

    async def get_state(self, thread_id: str) -> Dict[str, Any]:
        snapshot = await self.app.aget_state({"configurable": {"thread_id": thread_id}})
        return dict(snapshot.values or {})
