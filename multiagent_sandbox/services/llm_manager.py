"""
LLM Manager - Decision Capability Providers
===========================================
The routers and the planner never talk to a chat model directly; they go
through a DecisionProvider with three operations:

- choose(history, options): pick one label from a fixed option set
- plan_objective(objective, agents): decompose a request into (agent, query) steps
- synthesize(objective, step_results): write the final answer from executed steps

Any failure (provider outage, timeout, invalid label) surfaces as
DecisionUnavailable so callers can fall back.
"""

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional, Sequence

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage
from langchain_core.prompts import ChatPromptTemplate, MessagesPlaceholder
from langchain_openai import ChatOpenAI
from pydantic import BaseModel, Field

from ..core.exceptions import DecisionUnavailable
from ..models.conversation_state import (
    FINISH,
    PlanStep,
    Speaker,
    StepResult,
    Turn,
    last_user_turn,
    specialist_answered_since_user,
)

logger = logging.getLogger(__name__)


SUPERVISOR_SYSTEM_PROMPT = (
    "You are a supervisor tasked with managing a conversation between the"
    " following workers: {members}. Given the user request and the conversation"
    " so far, respond with the worker to act next. Each worker will perform a"
    " task and respond with their results. When finished, respond with FINISH."
    " If one of the workers has already answered the latest user request,"
    " always choose FINISH."
)

SUPERVISOR_FOLLOWUP_PROMPT = (
    "Given the conversation above, who should act next? Or should we FINISH?"
    " Select one of: {options}"
)

PLANNER_SYSTEM_PROMPT = (
    "For the given objective, come up with a simple step by step plan. Each step"
    " is executed by exactly one of these agents:\n{agents}\n"
    "Every step must name an agent from this list and carry a self-contained"
    " query for it. Do not add superfluous steps. Return an empty plan if no"
    " agent is needed."
)

RESPONDER_SYSTEM_PROMPT = (
    "You are given a user objective and the results of the steps executed to"
    " fulfil it. Write a concise final answer for the user based only on those"
    " results."
)


class RouteSelection(BaseModel):
    """Structured output for a routing choice"""
    next: str = Field(..., description="The selected option, exactly as written")


class PlanSchema(BaseModel):
    """Structured output for a plan"""
    steps: List[PlanStep] = Field(default_factory=list, description="Steps to execute, in order")


class DecisionProvider(ABC):
    """Abstract decision capability"""

    name: str = "decision_provider"

    @abstractmethod
    async def choose(self, history: Sequence[Turn], options: Sequence[str]) -> str:
        pass

    @abstractmethod
    async def plan_objective(self, objective: str, agents: Dict[str, str]) -> List[PlanStep]:
        pass

    @abstractmethod
    async def synthesize(self, objective: str, step_results: Sequence[StepResult]) -> str:
        pass


def to_chat_messages(history: Sequence[Turn]) -> List[BaseMessage]:
    """Render conversation turns as chat-model messages"""
    messages: List[BaseMessage] = []
    for turn in history:
        if turn.speaker == Speaker.USER:
            messages.append(HumanMessage(content=turn.text))
        else:
            name = turn.source_agent or turn.speaker.value
            messages.append(AIMessage(content=turn.text, name=name))
    return messages


class ChatModelDecisionProvider(DecisionProvider):
    """Decision capability backed by an OpenAI chat model with structured output"""

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        api_key: Optional[str] = None,
        temperature: float = 0.0,
        timeout: float = 30.0,
        llm: Optional[ChatOpenAI] = None
    ):
        self.model = model
        self.name = model
        self.timeout = timeout
        self.llm = llm or ChatOpenAI(
            model=model,
            api_key=api_key,
            temperature=temperature,
            timeout=timeout,
            max_retries=0
        )

        self.route_prompt = ChatPromptTemplate.from_messages([
            ("system", SUPERVISOR_SYSTEM_PROMPT),
            MessagesPlaceholder(variable_name="messages"),
            ("system", SUPERVISOR_FOLLOWUP_PROMPT),
        ])
        self.plan_prompt = ChatPromptTemplate.from_messages([
            ("system", PLANNER_SYSTEM_PROMPT),
            ("user", "{objective}"),
        ])
        self.respond_prompt = ChatPromptTemplate.from_messages([
            ("system", RESPONDER_SYSTEM_PROMPT),
            ("user", "Objective: {objective}\n\nStep results:\n{past_steps}"),
        ])

    async def _call(self, operation: str, awaitable):
        start_time = time.time()
        try:
            result = await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{self.model} {operation} timed out after {self.timeout}s")
            raise DecisionUnavailable(f"{self.model} {operation} timed out after {self.timeout}s")
        except DecisionUnavailable:
            raise
        except Exception as e:
            logger.warning(f"{self.model} {operation} failed: {e}", extra={"model": self.model})
            raise DecisionUnavailable(f"{self.model} {operation} failed: {e}") from e

        logger.debug(
            f"{self.model} {operation} completed",
            extra={"model": self.model, "elapsed_ms": int((time.time() - start_time) * 1000)}
        )
        return result

    async def choose(self, history: Sequence[Turn], options: Sequence[str]) -> str:
        members = [o for o in options if o != FINISH]
        chain = self.route_prompt | self.llm.with_structured_output(RouteSelection)
        selection = await self._call("choose", chain.ainvoke({
            "members": ", ".join(members),
            "options": ", ".join(options),
            "messages": to_chat_messages(history),
        }))

        if selection is None or selection.next not in options:
            label = getattr(selection, "next", None)
            raise DecisionUnavailable(f"{self.model} returned an invalid option: {label!r}")
        return selection.next

    async def plan_objective(self, objective: str, agents: Dict[str, str]) -> List[PlanStep]:
        chain = self.plan_prompt | self.llm.with_structured_output(PlanSchema)
        plan = await self._call("plan", chain.ainvoke({
            "objective": objective,
            "agents": "\n".join(f"- {name}: {description}" for name, description in agents.items()),
        }))
        if plan is None:
            raise DecisionUnavailable(f"{self.model} returned no plan")
        return list(plan.steps)

    async def synthesize(self, objective: str, step_results: Sequence[StepResult]) -> str:
        chain = self.respond_prompt | self.llm
        message = await self._call("synthesize", chain.ainvoke({
            "objective": objective,
            "past_steps": json.dumps([r.model_dump() for r in step_results], ensure_ascii=False, indent=2),
        }))
        return str(message.content)


def join_step_results(objective: str, step_results: Sequence[StepResult]) -> str:
    """Plain answer built from step results, one per line"""
    if not step_results:
        return f"I could not find anything to answer: {objective}"
    return "\n".join(result.result for result in step_results)


DEFAULT_AGENT_KEYWORDS: Dict[str, List[str]] = {
    "WeatherAgent": ["weather", "temperature", "forecast", "rain", "sunny", "погода", "температура"],
    "GeographyAgent": [
        "population", "people", "coordinates", "where", "traffic", "located",
        "население", "координаты", "пробки", "траффик",
    ],
}


class KeywordDecisionProvider(DecisionProvider):
    """
    Deterministic offline decision capability.

    Routes on keywords in the latest user turn and finishes once a specialist
    has answered. Used when no chat model credentials are configured.
    """

    name = "keyword"

    def __init__(self, keywords: Optional[Dict[str, Iterable[str]]] = None):
        source = keywords or DEFAULT_AGENT_KEYWORDS
        self.keywords = {agent: [w.lower() for w in words] for agent, words in source.items()}

    def _matching_agents(self, text: str, candidates: Iterable[str]) -> List[str]:
        lowered = text.lower()
        return [
            agent for agent in candidates
            if any(word in lowered for word in self.keywords.get(agent, []))
        ]

    async def choose(self, history: Sequence[Turn], options: Sequence[str]) -> str:
        if specialist_answered_since_user(history) and FINISH in options:
            return FINISH

        user_turn = last_user_turn(history)
        if user_turn is not None:
            matches = self._matching_agents(user_turn.text, [o for o in options if o != FINISH])
            if matches:
                return matches[0]

        if FINISH in options:
            return FINISH
        raise DecisionUnavailable("no option matches the conversation")

    async def plan_objective(self, objective: str, agents: Dict[str, str]) -> List[PlanStep]:
        return [PlanStep(agent=agent, query=objective) for agent in self._matching_agents(objective, agents)]

    async def synthesize(self, objective: str, step_results: Sequence[StepResult]) -> str:
        return join_step_results(objective, step_results)
