# infrastructure/resilience/retry_policy.py
from typing import Awaitable, Callable, Any, Optional, Tuple, Type
import asyncio
from dataclasses import dataclass

from domain.exceptions import RetryExhaustedError
from shared.logging import logger

@dataclass
class RetryPolicyConfig:
    max_retries: int = 3
    backoff_base_ms: int = 1000
    timeout_seconds: Optional[float] = 300.0

FailureHook = Callable[[int, BaseException], Any]

class RetryPolicy:
    """Bounded retry with linear backoff keyed by attempt number.

    A call is attempted at most ``max_retries + 1`` times. After the n-th
    failure the policy sleeps ``backoff_base_ms * n`` before trying again.
    Each attempt is bounded by ``timeout_seconds`` when set; a timeout counts
    as a failure.
    """

    def __init__(self, config: Optional[RetryPolicyConfig] = None,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.config = config or RetryPolicyConfig()
        self._sleep = sleep

    @property
    def max_attempts(self) -> int:
        return self.config.max_retries + 1

    def should_retry(self, failures: int) -> bool:
        return failures <= self.config.max_retries

    def backoff_seconds(self, failures: int) -> float:
        return self.config.backoff_base_ms * failures / 1000.0

    async def call(self, func: Callable[..., Awaitable[Any]], *args,
                   on_failure: Optional[FailureHook] = None,
                   fatal: Tuple[Type[BaseException], ...] = (), **kwargs) -> Any:
        """Run ``func`` until it succeeds or attempts run out.

        Exceptions listed in ``fatal`` propagate at once without being counted.
        """
        failures = 0
        while True:
            try:
                return await self.run_with_timeout(func, *args, **kwargs)
            except asyncio.CancelledError:
                raise
            except fatal:
                raise
            except Exception as e:
                failures += 1
                if on_failure is not None:
                    on_failure(failures, e)

                if not self.should_retry(failures):
                    raise RetryExhaustedError(failures, e) from e

                delay = self.backoff_seconds(failures)
                logger.warning("Retrying after failure",
                              failures=failures,
                              max_retries=self.config.max_retries,
                              backoff_seconds=delay,
                              error=str(e))
                await self._sleep(delay)

    async def run_with_timeout(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        if self.config.timeout_seconds is None:
            return await func(*args, **kwargs)
        return await asyncio.wait_for(
            func(*args, **kwargs),
            timeout=self.config.timeout_seconds
        )
