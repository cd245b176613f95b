"""
Geography Specialists

GeographyAgent answers coordinate, population and traffic questions.
ConfidenceCheckedGeographyAgent additionally tags population answers with a
confidence score and emits them as a ConfidenceEnvelope so the interrupt
gate can hold low-confidence answers for human review.
"""

import logging
from typing import Dict, List, Optional, Sequence

from ..core.flow_controller import RetryConfig, SleepFunc
from ..models.conversation_state import ConfidenceEnvelope, Turn
from ..services.lookup_service import ConfidenceScorer, Lookup, RandomConfidence, extract_city_from_query
from .base import SpecialistAgent

logger = logging.getLogger(__name__)


GEOGRAPHY_LOOKUPS = ("get_coordinates", "get_population", "get_traffic_info")

LOOKUP_KEYWORDS: Dict[str, List[str]] = {
    "get_coordinates": ["coordinate", "where", "located", "latitude", "longitude", "координат"],
    "get_population": ["population", "people", "inhabitants", "live", "населени", "людей", "живет"],
    "get_traffic_info": ["traffic", "congestion", "jam", "пробк", "траффик"],
}


def select_lookups(query: str) -> List[str]:
    """Lookups mentioned by the query, or all of them when none is"""
    lowered = query.lower()
    selected = [
        name for name in GEOGRAPHY_LOOKUPS
        if any(word in lowered for word in LOOKUP_KEYWORDS[name])
    ]
    return selected or list(GEOGRAPHY_LOOKUPS)


class GeographyAgent(SpecialistAgent):
    """Specialist for coordinates, population and traffic"""

    def __init__(
        self,
        lookups: Dict[str, Lookup],
        retry_config: Optional[RetryConfig] = None,
        sleep: Optional[SleepFunc] = None
    ):
        super().__init__(
            name="GeographyAgent",
            description="Answers questions about a city's coordinates, population and traffic.",
            lookups={name: lookups[name] for name in GEOGRAPHY_LOOKUPS},
            retry_config=retry_config,
            sleep=sleep
        )

    async def gather(self, query: str) -> Dict[str, str]:
        city = extract_city_from_query(query)
        results: Dict[str, str] = {}
        # Lookups run one after another
        for name in select_lookups(query):
            results[name] = await self.call_lookup(name, city)
        return results

    async def process(self, query: str, history: Sequence[Turn]) -> str:
        results = await self.gather(query)
        return "\n".join(results.values())


class ConfidenceCheckedGeographyAgent(GeographyAgent):
    """GeographyAgent whose population answers carry a confidence envelope"""

    checks_confidence = True

    def __init__(
        self,
        lookups: Dict[str, Lookup],
        retry_config: Optional[RetryConfig] = None,
        scorer: Optional[ConfidenceScorer] = None,
        sleep: Optional[SleepFunc] = None
    ):
        super().__init__(lookups, retry_config=retry_config, sleep=sleep)
        self.scorer = scorer or RandomConfidence()

    async def process(self, query: str, history: Sequence[Turn]) -> str:
        results = await self.gather(query)
        content = "\n".join(results.values())
        if "get_population" not in results:
            return content

        confidence = self.scorer.score("get_population", results["get_population"])
        logger.info(
            f"{self.name} population answer scored {confidence:.2f}",
            extra={"agent": self.name, "confidence": confidence}
        )
        return ConfidenceEnvelope(tool="get_population", content=content, confidence=confidence).to_text()
