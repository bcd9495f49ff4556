"""
Notification Processing Step
Stand-in for downstream delivery work: a short delay and a random outcome
"""

import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional

from ..config.settings import Settings
from ..models.notification import WorkItem
from ..utils.error_handling import ProcessingFailure

logger = logging.getLogger(__name__)

SIMULATED_FAILURE_MESSAGE = 'Simulated processing failure'


class NotificationProcessor:
    """
    Simulated processing of a work item.

    Sleeps a uniform delay in [min_delay, max_delay] and then fails with
    probability `failure_rate`. The random source and the sleep function are
    injectable so tests can force either outcome without waiting.
    """

    def __init__(
        self,
        min_delay: float = 1.0,
        max_delay: float = 2.0,
        failure_rate: float = 0.2,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        if min_delay < 0 or max_delay < min_delay:
            raise ValueError(f"Invalid processing delay range: {min_delay}-{max_delay}")
        if not 0.0 <= failure_rate <= 1.0:
            raise ValueError(f"failure_rate must be between 0 and 1, got {failure_rate}")

        self.min_delay = min_delay
        self.max_delay = max_delay
        self.failure_rate = failure_rate
        self.rng = rng or random.Random()
        self.sleep = sleep

    @classmethod
    def from_settings(cls, settings: Settings) -> 'NotificationProcessor':
        return cls(
            min_delay=settings.processing_min_delay,
            max_delay=settings.processing_max_delay,
            failure_rate=settings.processing_failure_rate,
        )

    async def process(self, work_item: WorkItem) -> None:
        """Raises ProcessingFailure when the work fails"""
        delay = self.rng.uniform(self.min_delay, self.max_delay)
        logger.debug(f"Processing {work_item.id} for {delay:.2f}s")
        await self.sleep(delay)

        if self.rng.random() < self.failure_rate:
            raise ProcessingFailure(SIMULATED_FAILURE_MESSAGE, notification_id=work_item.id)
