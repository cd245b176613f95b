"""
Base Specialist Implementation for the Execution Graph

This module provides the abstract base class shared by all specialist agents.
Concrete specialists implement `process`; the graph calls `respond`, which
adds query extraction, timing, logging and the turn bookkeeping.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence

from ..core.exceptions import ExhaustedRetries, LookupFailed
from ..core.flow_controller import RetryableOperation, RetryConfig, SleepFunc
from ..models.conversation_state import Speaker, Turn, last_user_turn
from ..services.lookup_service import Lookup

logger = logging.getLogger(__name__)


class SpecialistAgent(ABC):
    """
    Abstract base class for specialist agents.

    Provides common functionality including:
    - Query extraction from the conversation
    - Lookup calls wrapped in RetryableOperation
    - Graceful degradation of failed lookups to an apology
    - Timing and logging around each response
    """

    # Whether the agent's output must pass through the interrupt gate
    checks_confidence: bool = False

    def __init__(
        self,
        name: str,
        description: str,
        lookups: Dict[str, Lookup],
        retry_config: Optional[RetryConfig] = None,
        sleep: Optional[SleepFunc] = None
    ):
        self.name = name
        self.description = description
        self.lookups = lookups
        self.retry_config = retry_config or RetryConfig()
        self._sleep = sleep

        logger.info(f"Initialized {self.name} specialist with lookups: {', '.join(sorted(lookups))}")

    @abstractmethod
    async def process(self, query: str, history: Sequence[Turn]) -> str:
        """
        Answer a single query.

        Args:
            query: The request this agent should answer
            history: Full conversation so far

        Returns:
            Response text (plain text or a serialized confidence envelope)
        """
        pass

    async def respond(self, history: Sequence[Turn], query: Optional[str] = None) -> Turn:
        """
        Produce this agent's turn for the conversation.

        When no explicit query is given, the latest user turn is answered.
        """
        start_time = time.time()
        if query is None:
            user_turn = last_user_turn(history)
            query = user_turn.text if user_turn else ""

        logger.info(f"{self.name} handling query", extra={"agent": self.name, "query": query})
        text = await self.process(query, history)

        logger.info(
            f"{self.name} responded",
            extra={"agent": self.name, "elapsed_ms": int((time.time() - start_time) * 1000)}
        )
        return Turn(speaker=Speaker.SPECIALIST, text=text, source_agent=self.name)

    async def call_lookup(self, lookup_name: str, place: Optional[str]) -> str:
        """Run a lookup under the retry policy; exhausted retries become an apology"""
        lookup = self.lookups[lookup_name]
        if not place:
            return f"Sorry, I could not tell which place you mean, so {lookup_name} was not run."

        retry = RetryableOperation(self.retry_config, name=lookup_name, sleep=self._sleep)
        try:
            return await retry.execute(lambda: lookup(place))
        except ExhaustedRetries as e:
            logger.error(
                f"{self.name}: {lookup_name} failed for {place} after {e.attempts} attempts",
                extra={"agent": self.name, "lookup": lookup_name, "place": place}
            )
            reason = e.last_error.reason if isinstance(e.last_error, LookupFailed) else str(e.last_error)
            return f"Sorry, I could not get {lookup_name.replace('get_', '').replace('_', ' ')} for {place} right now ({reason})."

    def lookup_names(self) -> List[str]:
        return list(self.lookups)
