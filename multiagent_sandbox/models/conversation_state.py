"""
Conversation State Schema for the Multi-Agent Sandbox

Defines the turn model, routing/plan records, the confidence envelope and
the LangGraph state schemas threaded through the execution graphs. Graph
state holds plain JSON-compatible values so every checkpoint can be
serialized and resumed later.
"""

import json
import operator
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, Field, ValidationError
from typing_extensions import TypedDict


FINISH = "FINISH"


class Speaker(str, Enum):
    """Who produced a turn"""
    USER = "user"
    SPECIALIST = "specialist"
    SUPERVISOR = "supervisor"


class ResumeDecision(str, Enum):
    """Human decisions accepted by a suspended run"""
    APPROVE = "approve"
    EDIT = "edit"
    REJECT = "reject"


class Turn(BaseModel):
    """A single entry in the append-only conversation"""
    speaker: Speaker
    text: str
    source_agent: Optional[str] = None
    author: Optional[str] = None  # "human" when written by a reviewer

    def to_state(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def from_state(cls, data: Dict[str, Any]) -> "Turn":
        return cls.model_validate(data)


class RoutingDecision(BaseModel):
    """Next target chosen by a router for the current cycle"""
    next: str
    model: Optional[str] = None  # model tier that produced (or now owns) routing
    error: Optional[str] = None

    @property
    def is_finish(self) -> bool:
        return self.next == FINISH


class PlanStep(BaseModel):
    """One (agent, query) pair of an execution plan"""
    agent: str = Field(..., description="Specialist that executes the step")
    query: str = Field(..., description="Self-contained query for that specialist")


class StepResult(BaseModel):
    """Result of an executed plan step"""
    agent: str
    query: str
    result: str


class ConfidenceEnvelope(BaseModel):
    """Specialist output tagged with a trust score"""
    tool: str
    content: str
    confidence: float = Field(..., ge=0.0, le=1.0)

    def to_text(self) -> str:
        return json.dumps(self.model_dump(), ensure_ascii=False)

    @classmethod
    def parse(cls, text: Optional[str]) -> Optional["ConfidenceEnvelope"]:
        """Interpret text as an envelope; anything else means no confidence data"""
        if not text:
            return None
        try:
            data = json.loads(text)
        except (TypeError, ValueError):
            return None
        if not isinstance(data, dict):
            return None
        try:
            return cls.model_validate(data)
        except ValidationError:
            return None


class GraphRunState(TypedDict, total=False):
    """
    State threaded through the reactive / fallback / HITL execution graph.

    Attributes:
        turns: Append-only conversation (serialized Turn dicts)
        next: Latest routing decision target
        current_model: Model tier used by the fallback router ("primary"/"secondary")
        last_error: Last decision-capability error, if any
        error_history: All errors recorded during the session
        cycle_count: Routing cycles performed in the current run
        interrupted: True while the run awaits a human decision
        pending_envelope: Envelope that caused the suspension
        suspended_agent: Specialist whose output caused the suspension
        resume: Decision payload supplied by resume()
    """
    turns: Annotated[List[Dict[str, Any]], operator.add]
    next: Optional[str]
    current_model: str
    last_error: Optional[str]
    error_history: Annotated[List[str], operator.add]
    cycle_count: int
    interrupted: bool
    pending_envelope: Optional[Dict[str, Any]]
    suspended_agent: Optional[str]
    resume: Optional[Dict[str, Any]]


class PlannerRunState(TypedDict, total=False):
    """
    State threaded through the planner execution graph.

    Attributes:
        turns: Append-only conversation (serialized Turn dicts)
        objective: The user request being planned
        plan: Remaining steps; the head is removed after each executed step
        past_steps: Executed step results, in order
        response: Synthesized final answer
        cycle_count: Executed steps in the current run
        last_error: Last decision-capability error in the current run, if any
        error_history: All errors recorded during the session
    """
    turns: Annotated[List[Dict[str, Any]], operator.add]
    objective: str
    plan: List[Dict[str, Any]]
    past_steps: List[Dict[str, Any]]
    response: Optional[str]
    cycle_count: int
    last_error: Optional[str]
    error_history: Annotated[List[str], operator.add]


def turns_from_state(state: Dict[str, Any]) -> List[Turn]:
    """Rebuild Turn models from a graph state snapshot"""
    return [Turn.from_state(item) for item in state.get("turns", []) or []]


def last_user_turn(turns: Sequence[Turn]) -> Optional[Turn]:
    return next((t for t in reversed(turns) if t.speaker == Speaker.USER), None)


def specialist_answered_since_user(turns: Sequence[Turn]) -> bool:
    """True when any specialist turn follows the most recent user turn"""
    for turn in reversed(turns):
        if turn.speaker == Speaker.USER:
            return False
        if turn.speaker == Speaker.SPECIALIST:
            return True
    return False
