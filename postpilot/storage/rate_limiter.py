"""
Rate limiting for paid generation calls.

Two independent limits apply to every attempt:
- per user and resource: at most ``post_limit`` attempts in a sliding
  ``post_window`` (default 2 per 5 minutes)
- per user: at most ``daily_limit`` attempts in a sliding ``daily_window``
  across every resource (default 30 per 24 hours)

check()/try_acquire() must run before the provider call, record() after it,
whether or not the call succeeded.
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Union

from ..config import RateLimitConfig
from ..exceptions import RateLimited
from .base import Counter, TransientStore

logger = logging.getLogger(__name__)


@dataclass
class RateLimitStatus:
    """Outcome of a limit check."""
    allowed: bool
    post_remaining: int
    daily_remaining: int
    wait_time: int = 0
    scope: Optional[str] = None  # 'post' or 'daily' when blocked


class RateLimiter:
    """Sliding per-resource window plus a sliding daily window per user."""

    def __init__(self, store: TransientStore, limits: Optional[RateLimitConfig] = None):
        self.counter = Counter(store)
        self.limits = limits or RateLimitConfig()

    @staticmethod
    def _post_key(user_id: Union[int, str], resource_id: Union[int, str]) -> str:
        return f"post_{resource_id}_{user_id}"

    @staticmethod
    def _daily_key(user_id: Union[int, str]) -> str:
        return f"daily_{user_id}"

    def post_remaining(self, user_id: Union[int, str], resource_id: Union[int, str]) -> int:
        used = len(self.counter.hits(self._post_key(user_id, resource_id), self.limits.post_window))
        return max(0, self.limits.post_limit - used)

    def daily_remaining(self, user_id: Union[int, str]) -> int:
        used = len(self.counter.hits(self._daily_key(user_id), self.limits.daily_window))
        return max(0, self.limits.daily_limit - used)

    @staticmethod
    def _wait(stamps: List[float], limit: int, window: int, now: float) -> int:
        """Seconds until enough of ``stamps`` leave the window to get under ``limit``."""
        if not stamps or len(stamps) < limit:
            return 0
        release = sorted(stamps)[len(stamps) - max(limit, 1)]
        return max(0, math.ceil(release + window - now))

    def wait_time(self, user_id: Union[int, str], resource_id: Union[int, str]) -> int:
        """Seconds until the next attempt would be allowed (0 if allowed now)."""
        now = self.counter.clock()
        limits = self.limits

        hits = self.counter.hits(self._post_key(user_id, resource_id), limits.post_window)
        daily = self.counter.hits(self._daily_key(user_id), limits.daily_window)
        return max(
            self._wait(hits, limits.post_limit, limits.post_window, now),
            self._wait(daily, limits.daily_limit, limits.daily_window, now),
        )

    def check(self, user_id: Union[int, str], resource_id: Union[int, str]) -> RateLimitStatus:
        post_remaining = self.post_remaining(user_id, resource_id)
        daily_remaining = self.daily_remaining(user_id)

        scope = None
        if post_remaining == 0:
            scope = "post"
        elif daily_remaining == 0:
            scope = "daily"

        return RateLimitStatus(
            allowed=scope is None,
            post_remaining=post_remaining,
            daily_remaining=daily_remaining,
            wait_time=self.wait_time(user_id, resource_id) if scope else 0,
            scope=scope,
        )

    def try_acquire(self, user_id: Union[int, str], resource_id: Union[int, str]) -> RateLimitStatus:
        """
        Check both limits.

        Raises:
            RateLimited: with ``retry_after`` seconds and the ``scope`` that blocked
        """
        status = self.check(user_id, resource_id)
        if status.allowed:
            return status

        if status.scope == "post":
            message = (
                f"You have generated content for this resource recently. "
                f"Please wait {status.wait_time} seconds before trying again."
            )
        else:
            message = (
                f"You have reached your daily generation limit "
                f"({self.limits.daily_limit} per day). Please try again later."
            )
        logger.info(f"Rate limited user {user_id} on resource {resource_id} ({status.scope})")
        raise RateLimited(message, retry_after=status.wait_time, scope=status.scope)

    def record(self, user_id: Union[int, str], resource_id: Union[int, str]) -> None:
        """Count one generation attempt against both limits."""
        self.counter.add_hit(self._post_key(user_id, resource_id), self.limits.post_window)
        self.counter.add_hit(self._daily_key(user_id), self.limits.daily_window)

    def clear_user_limits(self, user_id: Union[int, str]) -> None:
        """Reset the daily limit for a user; per-resource windows expire on their own."""
        self.counter.clear(self._daily_key(user_id))
