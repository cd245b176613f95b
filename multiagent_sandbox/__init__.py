"""
Multi-Agent Sandbox

A supervisor routes user queries to specialist agents (weather, geography)
over LangGraph execution graphs, with retrying lookups, model fallback,
up-front planning and human review of low-confidence answers.
"""

from .core.context import OrchestratorContext, build_context
from .core.graph_factory import RoutingStrategy
from .core.orchestrator import RunOutcome, SessionOrchestrator

__version__ = "0.1.0"

__all__ = [
    'OrchestratorContext',
    'build_context',
    'RoutingStrategy',
    'RunOutcome',
    'SessionOrchestrator',
]
