"""
Session Orchestrator

Public entry point used by the CLI and the REST API:

- invoke(session_id, query, strategy) runs a user query to completion or suspension
- resume(session_id, decision, payload) continues a suspended run
- get_session(session_id) returns the checkpointed state
- close_session(session_id) forgets the session and its checkpoints

Each session is checkpointed under its own thread id, so concurrent
sessions never share mutable state. Sessions live in process memory until
close_session() is called; nothing is persisted across restarts.
"""

import logging
import time
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from .context import OrchestratorContext, build_context
from .exceptions import (
    SandboxError,
    SessionNotFound,
    SessionNotSuspended,
)
from .graph_factory import ExecutionGraph, RoutingStrategy, create_graph
from ..models.conversation_state import ConfidenceEnvelope, ResumeDecision, Turn, turns_from_state

logger = logging.getLogger(__name__)


class RunOutcome(BaseModel):
    """Result of invoke() or resume()"""
    session_id: str
    strategy: RoutingStrategy
    status: Literal["completed", "suspended", "failed"]
    final_answer: Optional[str] = None
    envelope: Optional[ConfidenceEnvelope] = None
    error: Optional[str] = None
    turns: List[Turn] = Field(default_factory=list)

    @property
    def suspended(self) -> bool:
        return self.status == "suspended"


class SessionOrchestrator:
    """Routes sessions to the execution graph of their strategy"""

    def __init__(
        self,
        context: Optional[OrchestratorContext] = None,
        default_strategy: RoutingStrategy = RoutingStrategy.REACTIVE
    ):
        self.context = context or build_context()
        self.default_strategy = RoutingStrategy(default_strategy)
        self._graphs: Dict[RoutingStrategy, ExecutionGraph] = {}
        self._session_strategy: Dict[str, RoutingStrategy] = {}

    def graph_for(self, strategy: RoutingStrategy) -> ExecutionGraph:
        strategy = RoutingStrategy(strategy)
        if strategy not in self._graphs:
            self._graphs[strategy] = create_graph(strategy, self.context)
        return self._graphs[strategy]

    @staticmethod
    def thread_id(session_id: str, strategy: RoutingStrategy) -> str:
        return f"{session_id}:{RoutingStrategy(strategy).value}"

    def strategy_of(self, session_id: str) -> Optional[RoutingStrategy]:
        return self._session_strategy.get(session_id)

    async def invoke(
        self,
        session_id: str,
        query: str,
        strategy: Optional[Union[RoutingStrategy, str]] = None
    ) -> RunOutcome:
        """Run a user query through the session's execution graph"""
        if strategy is None:
            strategy = self._session_strategy.get(session_id, self.default_strategy)
        if not isinstance(strategy, RoutingStrategy):
            strategy = RoutingStrategy.parse(strategy)
        self._session_strategy[session_id] = strategy

        graph = self.graph_for(strategy)
        start_time = time.time()
        logger.info("Invoking session", extra={"session_id": session_id, "strategy": strategy.value})

        try:
            state = await graph.run(self.thread_id(session_id, strategy), query)
        except SandboxError as e:
            return self._failed(session_id, strategy, e)

        outcome = self._outcome(session_id, strategy, state)
        logger.info(
            f"Session run {outcome.status}",
            extra={"session_id": session_id, "status": outcome.status, "processing_time": time.time() - start_time}
        )
        return outcome

    async def resume(
        self,
        session_id: str,
        decision: Union[ResumeDecision, str],
        payload: Optional[str] = None
    ) -> RunOutcome:
        """
        Continue a suspended session with a human decision.

        Raises:
            SessionNotFound: the session has never been invoked
            SessionNotSuspended: the session is not awaiting a decision
            ValueError: unknown decision, or edit without a payload
        """
        strategy = self._session_strategy.get(session_id)
        if strategy is None:
            raise SessionNotFound(session_id)

        graph = self.graph_for(strategy)
        if not hasattr(graph, "resume"):
            raise SessionNotSuspended(session_id)

        decision = ResumeDecision(decision)
        thread_id = self.thread_id(session_id, strategy)
        try:
            state = await graph.resume(thread_id, decision, payload)
        except SessionNotFound:
            raise SessionNotFound(session_id)
        except SessionNotSuspended:
            raise SessionNotSuspended(session_id)
        except SandboxError as e:
            return self._failed(session_id, strategy, e)

        logger.info(
            f"Session resumed with '{decision.value}'",
            extra={"session_id": session_id, "strategy": strategy.value}
        )
        return self._outcome(session_id, strategy, state)

    async def get_session(self, session_id: str) -> Dict[str, Any]:
        strategy = self._session_strategy.get(session_id)
        if strategy is None:
            raise SessionNotFound(session_id)
        values = await self.graph_for(strategy).get_state(self.thread_id(session_id, strategy))
        if not values:
            raise SessionNotFound(session_id)
        return {"session_id": session_id, "strategy": strategy.value, "state": values}

    async def close_session(self, session_id: str) -> None:
        """Forget a session and drop its checkpointed thread"""
        strategy = self._session_strategy.pop(session_id, None)
        if strategy is None:
            raise SessionNotFound(session_id)
        await self.context.checkpointer.adelete_thread(self.thread_id(session_id, strategy))
        logger.info("Session closed", extra={"session_id": session_id, "strategy": strategy.value})

    def _outcome(self, session_id: str, strategy: RoutingStrategy, state: Dict[str, Any]) -> RunOutcome:
        turns = turns_from_state(state)

        if state.get("interrupted"):
            envelope = state.get("pending_envelope")
            return RunOutcome(
                session_id=session_id,
                strategy=strategy,
                status="suspended",
                envelope=ConfidenceEnvelope.model_validate(envelope) if envelope else None,
                turns=turns
            )

        final_answer = state.get("response") or (turns[-1].text if turns else None)
        envelope = ConfidenceEnvelope.parse(final_answer) if final_answer else None
        if envelope is not None:
            final_answer = envelope.content
        return RunOutcome(
            session_id=session_id,
            strategy=strategy,
            status="completed",
            final_answer=final_answer,
            turns=turns
        )

    def _failed(self, session_id: str, strategy: RoutingStrategy, error: Exception) -> RunOutcome:
        logger.error(
            f"Session run failed: {error}",
            extra={"session_id": session_id, "strategy": strategy.value, "error_type": type(error).__name__},
            exc_info=True
        )
        return RunOutcome(
            session_id=session_id,
            strategy=strategy,
            status="failed",
            error=f"{type(error).__name__}: {error}"
        )
