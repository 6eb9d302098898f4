"""
Single refresh-then-retry policy for integration calls.
"""

from typing import Awaitable, Callable, TypeVar
import logging

from ..errors import IntegrationAuthExpired

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RefreshRetryPolicy:
    """
    Run an operation, refreshing credentials once on expiry.

    States: attempt -> (IntegrationAuthExpired) -> refresh -> attempt -> terminal.
    A second expiry after the refresh is re-raised; there is never a third attempt.
    Counters are kept per instance so a caller can inspect what happened.
    """

    def __init__(self):
        self.attempts = 0
        self.refreshes = 0

    async def run(self, attempt: Callable[[], Awaitable[T]], refresh: Callable[[], Awaitable[None]]) -> T:
        self.attempts += 1
        try:
            return await attempt()
        except IntegrationAuthExpired as e:
            logger.info(f"{e.system} session expired, refreshing credentials and retrying once")

        self.refreshes += 1
        await refresh()

        self.attempts += 1
        return await attempt()
