"""
Error taxonomy for the Multi-Agent Sandbox.

Lookup and decision failures are recoverable (retries, model fallback);
recursion and plan validation failures abort the run.
"""

from typing import Iterable, Optional


class SandboxError(Exception):
    """Base exception for all sandbox errors"""
    pass


class LookupFailed(SandboxError):
    """Raised when a specialist's underlying data source fails"""

    def __init__(self, lookup: str, place: Optional[str], reason: str):
        self.lookup = lookup
        self.place = place
        self.reason = reason
        super().__init__(f"Lookup '{lookup}' failed for {place!r}: {reason}")


class ExhaustedRetries(SandboxError):
    """Raised when a retryable operation failed on every attempt"""

    def __init__(self, last_error: BaseException, attempts: int):
        self.last_error = last_error
        self.attempts = attempts
        super().__init__(f"All {attempts} attempts failed. Last error: {last_error}")


class DecisionUnavailable(SandboxError):
    """Raised when the decision capability (chat model) cannot produce an answer"""
    pass


class GraphRecursionExceeded(SandboxError):
    """Raised when a run exceeds its cycle limit"""

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"Execution graph exceeded the limit of {limit} cycles")


class PlanStepAgentNotFound(SandboxError):
    """Raised when a plan names an agent that is not a known specialist"""

    def __init__(self, agent: str, known: Iterable[str]):
        self.agent = agent
        self.known = sorted(known)
        super().__init__(f"Plan references unknown agent '{agent}' (known: {', '.join(self.known)})")


class SessionNotFound(SandboxError):
    """Raised when no checkpoint exists for a session"""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"No session found with id '{session_id}'")


class SessionNotSuspended(SandboxError):
    """Raised when resume is requested for a session that is not awaiting input"""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session '{session_id}' is not awaiting a human decision")
