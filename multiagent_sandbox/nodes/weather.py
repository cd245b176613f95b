"""
Weather Specialist

Answers weather questions with the get_weather lookup.
"""

import logging
from typing import Dict, Optional, Sequence

from ..core.flow_controller import RetryConfig, SleepFunc
from ..models.conversation_state import Turn
from ..services.lookup_service import Lookup, extract_city_from_query
from .base import SpecialistAgent

logger = logging.getLogger(__name__)


class WeatherAgent(SpecialistAgent):
    """Specialist for current weather conditions"""

    def __init__(
        self,
        lookups: Dict[str, Lookup],
        retry_config: Optional[RetryConfig] = None,
        sleep: Optional[SleepFunc] = None
    ):
        super().__init__(
            name="WeatherAgent",
            description="Answers questions about the current weather in a city.",
            lookups={"get_weather": lookups["get_weather"]},
            retry_config=retry_config,
            sleep=sleep
        )

    async def process(self, query: str, history: Sequence[Turn]) -> str:
        city = extract_city_from_query(query)
        return await self.call_lookup("get_weather", city)
