"""
Flow control for unstable lookups: bounded retries with exponential backoff.

The delay sequence is deterministic (no jitter): initial_delay,
initial_delay * multiplier, initial_delay * multiplier ** 2, ...
Every attempt emits exactly one log record.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

from .exceptions import ExhaustedRetries

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFunc = Callable[[float], Awaitable[Any]]


@dataclass
class RetryConfig:
    """Configuration for retry behavior"""
    max_attempts: int = 3
    initial_delay: float = 1.0
    backoff_multiplier: float = 2.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.initial_delay < 0:
            raise ValueError("initial_delay must not be negative")
        if self.backoff_multiplier <= 1:
            raise ValueError("backoff_multiplier must be greater than 1")

    def delay_before(self, attempt: int) -> float:
        """Delay slept before the given 1-based attempt (0 for the first)"""
        if attempt <= 1:
            return 0.0
        return self.initial_delay * (self.backoff_multiplier ** (attempt - 2))


@dataclass
class RetryState:
    """Transient bookkeeping for a single execute() call"""
    attempt: int = 0
    current_delay: float = 0.0
    last_error: Optional[BaseException] = None


class RetryableOperation:
    """
    Wraps a fallible async unit of work with bounded retries.

    Usage:
        retry = RetryableOperation(RetryConfig(max_attempts=3), name="get_population")
        result = await retry.execute(lambda: lookup("Paris"))
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        name: str = "operation",
        sleep: Optional[SleepFunc] = None
    ):
        self.config = config or RetryConfig()
        self.name = name
        self._sleep = sleep or asyncio.sleep

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run operation until it succeeds or the attempt budget is spent"""
        state = RetryState(current_delay=self.config.initial_delay)

        while state.attempt < self.config.max_attempts:
            state.attempt += 1
            try:
                result = await operation()
            except Exception as e:
                state.last_error = e
                if state.attempt >= self.config.max_attempts:
                    logger.error(
                        f"[{self.name}] attempt {state.attempt}/{self.config.max_attempts} failed: {e}; no attempts left",
                        extra={
                            "operation": self.name,
                            "attempt": state.attempt,
                            "outcome": "failure",
                            "wait_time": 0.0
                        }
                    )
                    break

                wait_time = state.current_delay
                logger.warning(
                    f"[{self.name}] attempt {state.attempt}/{self.config.max_attempts} failed: {e}; "
                    f"retrying in {wait_time:.2f}s",
                    extra={
                        "operation": self.name,
                        "attempt": state.attempt,
                        "outcome": "failure",
                        "wait_time": wait_time
                    }
                )
                await self._sleep(wait_time)
                state.current_delay *= self.config.backoff_multiplier
                continue

            logger.info(
                f"[{self.name}] attempt {state.attempt}/{self.config.max_attempts} succeeded",
                extra={
                    "operation": self.name,
                    "attempt": state.attempt,
                    "outcome": "success",
                    "wait_time": 0.0
                }
            )
            return result

        raise ExhaustedRetries(state.last_error, state.attempt)


async def execute_with_retry(
    operation: Callable[[], Awaitable[T]],
    config: RetryConfig,
    name: str = "operation",
    sleep: Optional[SleepFunc] = None
) -> T:
    """Functional form of RetryableOperation.execute"""
    return await RetryableOperation(config, name=name, sleep=sleep).execute(operation)
