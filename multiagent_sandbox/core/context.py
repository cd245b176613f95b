"""
Explicitly constructed runtime context.

Everything the graphs need at runtime (decision providers, lookups, retry
policy, failure simulation, confidence scoring, checkpoint store) lives in
one OrchestratorContext built by build_context() and passed down. Nothing
is held in module globals.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

import httpx
from langgraph.checkpoint.memory import MemorySaver

from .config import Settings, get_settings
from .flow_controller import RetryConfig, SleepFunc
from .interrupt_gate import InterruptGate
from ..services.llm_manager import ChatModelDecisionProvider, DecisionProvider, KeywordDecisionProvider
from ..services.lookup_service import (
    ConfidenceScorer,
    FailureSimulator,
    Lookup,
    NoFailures,
    RandomConfidence,
    RandomFailures,
    WeatherClient,
    build_lookups,
)

logger = logging.getLogger(__name__)


@dataclass
class OrchestratorContext:
    """Runtime collaborators shared by the graphs of one host process"""
    settings: Settings
    primary: DecisionProvider
    secondary: DecisionProvider
    lookups: Dict[str, Lookup]
    retry_config: RetryConfig
    failure_simulator: FailureSimulator
    confidence_scorer: ConfidenceScorer
    gate: InterruptGate
    checkpointer: MemorySaver = field(default_factory=MemorySaver)
    sleep: Optional[SleepFunc] = None


def _default_provider(settings: Settings, model: str) -> DecisionProvider:
    if settings.has_llm_credentials:
        return ChatModelDecisionProvider(
            model=model,
            api_key=settings.openai_api_key,
            temperature=settings.llm_temperature,
            timeout=settings.decision_timeout
        )
    return KeywordDecisionProvider()


def build_context(
    settings: Optional[Settings] = None,
    primary: Optional[DecisionProvider] = None,
    secondary: Optional[DecisionProvider] = None,
    failure_simulator: Optional[FailureSimulator] = None,
    confidence_scorer: Optional[ConfidenceScorer] = None,
    weather_transport: Optional[httpx.AsyncBaseTransport] = None,
    retry_config: Optional[RetryConfig] = None,
    sleep: Optional[SleepFunc] = None
) -> OrchestratorContext:
    """Assemble an OrchestratorContext, filling gaps from settings"""
    settings = settings or get_settings()

    if failure_simulator is None:
        rate = settings.population_failure_rate
        failure_simulator = RandomFailures(rate) if rate > 0 else NoFailures()

    weather_client = WeatherClient(
        api_key=settings.weatherapi_com_key,
        base_url=settings.weatherapi_base_url,
        timeout=settings.lookup_timeout,
        transport=weather_transport
    )

    context = OrchestratorContext(
        settings=settings,
        primary=primary or _default_provider(settings, settings.primary_model),
        secondary=secondary or _default_provider(settings, settings.secondary_model),
        lookups=build_lookups(weather_client, failure_simulator, timeout=settings.lookup_timeout),
        retry_config=retry_config or RetryConfig(
            max_attempts=settings.retry_max_attempts,
            initial_delay=settings.retry_initial_delay,
            backoff_multiplier=settings.retry_backoff_multiplier
        ),
        failure_simulator=failure_simulator,
        confidence_scorer=confidence_scorer or RandomConfidence(),
        gate=InterruptGate(settings.confidence_threshold),
        sleep=sleep
    )

    logger.info(
        "Orchestrator context built",
        extra={
            "primary": context.primary.name,
            "secondary": context.secondary.name,
            "max_cycles": settings.max_cycles
        }
    )
    return context
