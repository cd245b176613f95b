"""
Orchestration core: configuration, errors, retries, routing, the interrupt
gate and the LangGraph execution graphs.

Key Components:
- ConversationGraph: reactive supervisor workflow (reactive, fallback, hitl)
- PlannerGraph: plan-and-execute workflow
- ReactiveRouter / FallbackRouter / PlannerRouter: routing strategies
- RetryableOperation: bounded retries with exponential backoff
- InterruptGate: confidence-based suspension
- SessionOrchestrator: invoke / resume entry point
"""

from .exceptions import (
    SandboxError,
    LookupFailed,
    ExhaustedRetries,
    DecisionUnavailable,
    GraphRecursionExceeded,
    PlanStepAgentNotFound,
    SessionNotFound,
    SessionNotSuspended,
)
from .flow_controller import RetryConfig, RetryableOperation, execute_with_retry

__all__ = [
    'SandboxError',
    'LookupFailed',
    'ExhaustedRetries',
    'DecisionUnavailable',
    'GraphRecursionExceeded',
    'PlanStepAgentNotFound',
    'SessionNotFound',
    'SessionNotSuspended',
    'RetryConfig',
    'RetryableOperation',
    'execute_with_retry',
]
