"""
Process-wide cache for the dashboard's upstream data.

Two tiers live side by side: news+prices and ai insight+meme. Each tier holds
exactly one entry that gets replaced wholesale once it expires.
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)

NEWS_PRICES = "news_prices"
INSIGHT_MEME = "insight_meme"


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    expires_at: float


class TierCache:
    """
    One slot per tier, no capacity bound, no locking.

    Concurrent misses on the same tier may each populate and overwrite the
    slot; the last writer wins.
    """

    def __init__(self):
        self._entries: dict[str, CacheEntry] = {}

    def peek(self, tier: str) -> CacheEntry | None:
        return self._entries.get(tier)

    async def get_or_populate(
        self,
        tier: str,
        ttl: float,
        now: float,
        populate: Callable[[], Awaitable[Any]],
    ) -> Any:
        """
        Return the stored value for `tier` while now < expires_at.
        Otherwise await `populate()`, store it with expires_at = now + ttl and return it.
        """
        entry = self._entries.get(tier)
        if entry is not None and now < entry.expires_at:
            return entry.value

        logger.debug("cache miss for tier %s", tier)
        value = await populate()
        self._entries[tier] = CacheEntry(value=value, expires_at=now + ttl)
        return value
