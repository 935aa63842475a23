import asyncio
import logging
import time
from typing import Callable

import httpx

import adapters
import votes
from cache import INSIGHT_MEME, NEWS_PRICES, TierCache
from config import COINGECKO_IDS, DEFAULT_PRICE_IDS, Settings

logger = logging.getLogger(__name__)


class OnboardingRequired(Exception):
    """The user has not saved preferences yet; redirect instead of failing."""


class DashboardBuilder:
    """
    Combines cached upstream data with vote counts into one dashboard payload.

    Built once per process; the cache it holds is shared by every request.
    """

    def __init__(
        self,
        settings: Settings,
        cache: TierCache | None = None,
        clock: Callable[[], float] = time.time,
        transport: httpx.AsyncBaseTransport | None = None,
        coin_ids: dict[str, str] = COINGECKO_IDS,
        default_price_ids=DEFAULT_PRICE_IDS,
        fallback_news: list[dict] = adapters.FALLBACK_NEWS,
    ):
        self.settings = settings
        self.cache = cache if cache is not None else TierCache()
        self.clock = clock
        self.transport = transport
        self.coin_ids = coin_ids
        self.default_price_ids = default_price_ids
        self.fallback_news = fallback_news

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.settings.upstream_timeout, transport=self.transport)

    async def _news_and_prices(self, client: httpx.AsyncClient, prefs: dict) -> dict:
        assets = prefs.get("cryptoAssets") or []
        news, prices = await asyncio.gather(
            adapters.fetch_news(
                client, assets,
                token=self.settings.cryptopanic_token,
                fallback=self.fallback_news,
                limit=self.settings.news_limit,
            ),
            adapters.fetch_prices(
                client, assets,
                id_table=self.coin_ids,
                default_ids=self.default_price_ids,
            ),
        )
        return {"news": news, "prices": prices}

    async def _insight_and_meme(self, client: httpx.AsyncClient, prefs: dict) -> dict:
        insight, meme = await asyncio.gather(
            adapters.fetch_ai_insight(
                client, prefs,
                token=self.settings.hf_api_token,
                model_url=self.settings.hf_model_url,
            ),
            adapters.fetch_meme(client),
        )
        return {"aiInsight": insight, "meme": meme}

    async def resolve_upstream(self, prefs: dict, now: float | None = None) -> list[dict]:
        """
        Both tiers are resolved concurrently; a tier only hits upstream on a miss.
        """
        now = self.clock() if now is None else now
        async with self._client() as client:
            return await asyncio.gather(
                self.cache.get_or_populate(
                    NEWS_PRICES, self.settings.news_prices_ttl, now,
                    lambda: self._news_and_prices(client, prefs),
                ),
                self.cache.get_or_populate(
                    INSIGHT_MEME, self.settings.insight_meme_ttl, now,
                    lambda: self._insight_and_meme(client, prefs),
                ),
            )

    async def build(self, db_engine, prefs: dict | None, now: float | None = None) -> dict:
        """
        No database connection is held while upstream calls are in flight.
        """
        if prefs is None:
            raise OnboardingRequired()

        news_prices, insight_meme = await self.resolve_upstream(prefs, now)

        # vote counts are never cached
        with db_engine.connect() as conn:
            return {
                "news": votes.decorate(conn, "news", news_prices["news"]),
                "prices": votes.decorate(conn, "prices", news_prices["prices"]),
                "aiInsight": votes.decorate(conn, "ai_insight", [insight_meme["aiInsight"]])[0],
                "meme": votes.decorate(conn, "meme", [insight_meme["meme"]])[0],
            }
