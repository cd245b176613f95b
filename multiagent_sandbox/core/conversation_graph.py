"""
Core LangGraph Workflow for Supervisor Routing

This module implements the reactive execution graph shared by the reactive,
fallback and human-in-the-loop strategies: a supervisor node routes to one
specialist per cycle until it decides FINISH.

Features:
- Supervisor -> specialist -> supervisor cycles on a LangGraph StateGraph
- Optional confidence check after specialists that emit confidence envelopes
- Suspension as graph state (interrupted=True) persisted by the checkpointer
- Explicit resume entry point selected at START
- Cycle limit enforcement with GraphRecursionExceeded
"""

import logging
import time
from typing import Any, Dict, List, Optional

from langgraph.checkpoint.memory import MemorySaver
from langgraph.errors import GraphRecursionError
from langgraph.graph import END, START, StateGraph

from .exceptions import GraphRecursionExceeded, SessionNotFound, SessionNotSuspended
from .interrupt_gate import InterruptGate
from .routing_engine import PRIMARY, Router
from ..models.conversation_state import (
    FINISH,
    GraphRunState,
    ResumeDecision,
    Speaker,
    Turn,
    turns_from_state,
)
from ..nodes.base import SpecialistAgent

logger = logging.getLogger(__name__)


SUPERVISOR_NODE = "supervisor"
CONFIDENCE_CHECK_NODE = "confidence_check"
APPLY_RESUME_NODE = "apply_resume"


def graph_recursion_limit(max_cycles: int) -> int:
    """LangGraph step budget comfortably above the cycle budget"""
    return max_cycles * 3 + 10


class ConversationGraph:
    """
    Reactive supervisor workflow.

    Architecture:
    - START -> apply_resume (when a resume payload is present) or supervisor
    - supervisor -> <specialist> | END (on FINISH)
    - <specialist> -> confidence_check (confidence-checked agents) | supervisor
    - confidence_check -> END (suspended) | supervisor
    - apply_resume -> supervisor
    """

    def __init__(
        self,
        router: Router,
        specialists: List[SpecialistAgent],
        checkpointer: Optional[MemorySaver] = None,
        gate: Optional[InterruptGate] = None,
        max_cycles: int = 100,
        name: str = "reactive"
    ):
        if max_cycles < 1:
            raise ValueError("max_cycles must be at least 1")
        if any(s.name in (SUPERVISOR_NODE, CONFIDENCE_CHECK_NODE, APPLY_RESUME_NODE, FINISH) for s in specialists):
            raise ValueError("specialist names must not collide with graph node names")

        self.router = router
        self.specialists: Dict[str, SpecialistAgent] = {s.name: s for s in specialists}
        self.checkpointer = checkpointer or MemorySaver()
        self.gate = gate or InterruptGate()
        self.max_cycles = max_cycles
        self.name = name

        self.workflow = self._build_workflow()
        self.app = self.workflow.compile(checkpointer=self.checkpointer)

        logger.info(f"ConversationGraph '{name}' initialized with specialists: {list(self.specialists)}")

    def _build_workflow(self) -> StateGraph:
        workflow = StateGraph(GraphRunState)

        workflow.add_node(SUPERVISOR_NODE, self._supervisor)
        workflow.add_node(APPLY_RESUME_NODE, self._apply_resume)

        needs_check = False
        for name, specialist in self.specialists.items():
            workflow.add_node(name, self._specialist_node(specialist))
            if specialist.checks_confidence:
                workflow.add_edge(name, CONFIDENCE_CHECK_NODE)
                needs_check = True
            else:
                workflow.add_edge(name, SUPERVISOR_NODE)

        if needs_check:
            workflow.add_node(CONFIDENCE_CHECK_NODE, self._confidence_check)
            workflow.add_conditional_edges(
                CONFIDENCE_CHECK_NODE,
                lambda state: END if state.get("interrupted") else SUPERVISOR_NODE,
                {END: END, SUPERVISOR_NODE: SUPERVISOR_NODE}
            )

        workflow.add_conditional_edges(
            START,
            lambda state: APPLY_RESUME_NODE if state.get("resume") else SUPERVISOR_NODE,
            {APPLY_RESUME_NODE: APPLY_RESUME_NODE, SUPERVISOR_NODE: SUPERVISOR_NODE}
        )

        destinations = {name: name for name in self.specialists}
        destinations[FINISH] = END
        workflow.add_conditional_edges(SUPERVISOR_NODE, lambda state: state.get("next") or FINISH, destinations)

        workflow.add_edge(APPLY_RESUME_NODE, SUPERVISOR_NODE)
        return workflow

    async def _supervisor(self, state: GraphRunState) -> Dict[str, Any]:
        cycle = state.get("cycle_count", 0) + 1
        if cycle > self.max_cycles:
            logger.error(
                f"Cycle limit of {self.max_cycles} exceeded",
                extra={"graph": self.name, "cycle": cycle}
            )
            raise GraphRecursionExceeded(self.max_cycles)

        decision = await self.router.decide(state)
        update: Dict[str, Any] = {
            "next": decision.next,
            "cycle_count": cycle,
            "current_model": decision.model or state.get("current_model") or PRIMARY,
        }
        if decision.error:
            update["last_error"] = decision.error
            update["error_history"] = [decision.error]

        logger.info(
            f"Supervisor cycle {cycle}: -> {decision.next}",
            extra={"graph": self.name, "cycle": cycle, "model": update["current_model"]}
        )
        return update

    def _specialist_node(self, specialist: SpecialistAgent):
        async def run_specialist(state: GraphRunState) -> Dict[str, Any]:
            turn = await specialist.respond(turns_from_state(state))
            return {"turns": [turn.to_state()]}
        return run_specialist

    async def _confidence_check(self, state: GraphRunState) -> Dict[str, Any]:
        turns = turns_from_state(state)
        if not turns:
            return {}
        verdict = self.gate.check(turns[-1])
        if not verdict.suspend:
            return {}
        return {
            "interrupted": True,
            "pending_envelope": verdict.envelope.model_dump(),
            "suspended_agent": turns[-1].source_agent,
        }

    async def _apply_resume(self, state: GraphRunState) -> Dict[str, Any]:
        resume = state.get("resume") or {}
        decision = ResumeDecision(resume.get("decision"))
        agent = state.get("suspended_agent")
        cleared = {
            "resume": None,
            "interrupted": False,
            "pending_envelope": None,
            "suspended_agent": None,
        }

        logger.info(f"Resuming with decision '{decision.value}'", extra={"graph": self.name, "agent": agent})

        if decision == ResumeDecision.EDIT:
            turn = Turn(speaker=Speaker.SPECIALIST, text=resume.get("payload") or "", source_agent=agent, author="human")
            return {**cleared, "turns": [turn.to_state()]}
        if decision == ResumeDecision.REJECT:
            text = f"A human reviewer rejected the answer from {agent or 'the specialist'}."
            if resume.get("payload"):
                text = f"{text} Reason: {resume['payload']}"
            turn = Turn(speaker=Speaker.SUPERVISOR, text=text, author="human")
            return {**cleared, "turns": [turn.to_state()]}
        return cleared

    def _config(self, thread_id: str) -> Dict[str, Any]:
        return {
            "configurable": {"thread_id": thread_id},
            "recursion_limit": graph_recursion_limit(self.max_cycles),
        }

    async def _run(self, thread_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        start_time = time.time()
        try:
            result = await self.app.ainvoke(payload, config=self._config(thread_id))
        except GraphRecursionError as e:
            logger.error(f"LangGraph recursion limit hit: {e}", extra={"graph": self.name, "thread_id": thread_id})
            raise GraphRecursionExceeded(self.max_cycles) from e

        logger.info(
            "Graph run finished",
            extra={
                "graph": self.name,
                "thread_id": thread_id,
                "interrupted": bool(result.get("interrupted")),
                "cycles": result.get("cycle_count", 0),
                "processing_time": time.time() - start_time
            }
        )
        return result

    async def run(self, thread_id: str, query: str) -> Dict[str, Any]:
        """Start a new run for a user query; an unresolved suspension is abandoned"""
        payload = {
            "turns": [Turn(speaker=Speaker.USER, text=query).to_state()],
            "next": None,
            "current_model": PRIMARY,
            "last_error": None,
            "cycle_count": 0,
            "interrupted": False,
            "pending_envelope": None,
            "suspended_agent": None,
            "resume": None,
        }
        return await self._run(thread_id, payload)

    async def resume(self, thread_id: str, decision: ResumeDecision, payload: Optional[str] = None) -> Dict[str, Any]:
        """Continue a suspended run with an external decision"""
        values = await self.get_state(thread_id)
        if not values:
            raise SessionNotFound(thread_id)
        if not values.get("interrupted"):
            raise SessionNotSuspended(thread_id)

        decision = ResumeDecision(decision)
        if decision == ResumeDecision.EDIT and not payload:
            raise ValueError("edit requires a replacement text payload")

        return await self._run(thread_id, {"resume": {"decision": decision.value, "payload": payload}})

    async def get_state(self, thread_id: str) -> Dict[str, Any]:
        snapshot = await self.app.aget_state({"configurable": {"thread_id": thread_id}})
        return dict(snapshot.values or {})
