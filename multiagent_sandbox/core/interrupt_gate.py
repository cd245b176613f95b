"""
Interrupt gate: holds low-confidence specialist answers for human review.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..models.conversation_state import ConfidenceEnvelope, Turn

logger = logging.getLogger(__name__)


DEFAULT_CONFIDENCE_THRESHOLD = 0.7


@dataclass(frozen=True)
class GateVerdict:
    """Continue (envelope is None or trusted) or Suspend with the offending envelope"""
    suspend: bool
    envelope: Optional[ConfidenceEnvelope] = None

    @classmethod
    def proceed(cls, envelope: Optional[ConfidenceEnvelope] = None) -> "GateVerdict":
        return cls(suspend=False, envelope=envelope)

    @classmethod
    def hold(cls, envelope: ConfidenceEnvelope) -> "GateVerdict":
        return cls(suspend=True, envelope=envelope)


class InterruptGate:
    def __init__(self, threshold: float = DEFAULT_CONFIDENCE_THRESHOLD):
        if not 0.0 <= threshold <= 1.0:
            raise ValueError("threshold must be between 0 and 1")
        self.threshold = threshold

    def check(self, turn: Turn) -> GateVerdict:
        envelope = ConfidenceEnvelope.parse(turn.text)
        if envelope is None:
            return GateVerdict.proceed()

        if envelope.confidence < self.threshold:
            logger.info(
                f"Confidence {envelope.confidence:.2f} below {self.threshold:.2f}, suspending for review",
                extra={"tool": envelope.tool, "confidence": envelope.confidence, "agent": turn.source_agent}
            )
            return GateVerdict.hold(envelope)

        return GateVerdict.proceed(envelope)
