"""
Upstream data sources for the dashboard: news, prices, AI insight and meme.

Every fetcher calls exactly one external endpoint and never raises to its
caller. Missing credentials, non-2xx statuses, network errors and unexpected
payloads all end up as a static fallback value.
"""

import logging
import re
from typing import Any, Callable, NamedTuple

import httpx

from config import COINGECKO_IDS, DEFAULT_PRICE_IDS, HF_DEFAULT_MODEL_URL

logger = logging.getLogger(__name__)

CRYPTOPANIC_URL = "https://cryptopanic.com/api/v1/posts/"
COINGECKO_PRICE_URL = "https://api.coingecko.com/api/v3/simple/price"
MEME_URL = "https://meme-api.com/gimme/cryptomemes"

_TICKER_RE = re.compile(r"\(([^)]+)\)")

# used when API calls fail / keys missing
FALLBACK_NEWS = [
    {
        "id": "static-1",
        "title": "Market update: BTC and ETH hold key levels",
        "url": "https://example.com/news1",
    },
    {
        "id": "static-2",
        "title": "Layer 2 ecosystems keep growing",
        "url": "https://example.com/news2",
    },
]

FALLBACK_PRICES = [
    {"id": "bitcoin", "price": 0},
    {"id": "ethereum", "price": 0},
]

FALLBACK_MEME = {
    "id": "meme-1",
    "title": "When you hold through the dip",
    "imageUrl": "https://i.imgflip.com/30b1gx.jpg",
}

INSIGHT_ID = "ai-insight"
INSIGHT_DAY_TRADER = "Volatility is elevated today; watch BTC and SOL for intraday momentum."
INSIGHT_LONG_TERM = "Long-term signals remain neutral; consider DCA into majors while monitoring on-chain flows."
INSIGHT_FAILED = "Market remains mixed; consider gradual entries on majors while monitoring funding rates."


class FetchResult(NamedTuple):
    ok: bool
    value: Any = None

    def or_fallback(self, fallback):
        return self.value if self.ok else fallback


FAILED = FetchResult(False)


class ShapeError(ValueError):
    """Upstream answered 2xx but the payload is not what we expect."""


# =========================================================
# Helpers
# =========================================================
def extract_ticker(asset: str | None) -> str | None:
    """
    "Bitcoin (BTC)" -> "BTC", "eth" -> "ETH".
    """
    if not asset or not asset.strip():
        return None
    match = _TICKER_RE.search(asset)
    if match and match.group(1).strip():
        return match.group(1).strip().upper()
    return asset.strip().upper()


def extract_tickers(assets: list[str] | None) -> list[str]:
    tickers = []
    for asset in assets or []:
        ticker = extract_ticker(asset)
        if ticker and ticker not in tickers:
            tickers.append(ticker)
    return tickers


def filter_news(items: list[dict], tickers: list[str], limit: int = 5) -> list[dict]:
    """
    Keep items whose title mentions one of the tickers.
    If nothing matches, show the unfiltered top items instead.
    """
    if tickers:
        filtered = [
            item for item in items
            if any(t in (item.get("title") or "").upper() for t in tickers)
        ]
        if filtered:
            return filtered[:limit]
    return items[:limit]


def resolve_coin_ids(assets: list[str] | None, id_table: dict[str, str] = COINGECKO_IDS,
                     default_ids=DEFAULT_PRICE_IDS) -> list[str]:
    """
    Unknown tickers are dropped; with nothing left we fall back to the default pair.
    """
    ids = []
    for ticker in extract_tickers(assets):
        coin_id = id_table.get(ticker)
        if coin_id and coin_id not in ids:
            ids.append(coin_id)
    return ids or list(default_ids)


async def _request_json(source: str, client: httpx.AsyncClient, method: str, url: str,
                        parse: Callable[[Any], Any], **kwargs) -> FetchResult:
    """
    Single un-retried request. Any failure is logged and reported as FAILED.
    """
    try:
        r = await client.request(method, url, **kwargs)
        if not r.is_success:
            logger.warning("%s fetch status: %s", source, r.status_code)
            return FAILED
        return FetchResult(True, parse(r.json()))
    except httpx.HTTPError as e:
        logger.warning("%s fetch error: %r", source, e)
    except (ValueError, KeyError, TypeError, AttributeError) as e:
        # json decode errors are ValueErrors as well
        logger.warning("%s payload rejected: %s", source, e)
    return FAILED


# =========================================================
# Payload parsers
# =========================================================
def _parse_news(payload) -> list[dict]:
    if not isinstance(payload, dict) or not isinstance(payload.get("results"), list):
        raise ShapeError("news payload has no results list")

    news = []
    for item in payload["results"]:
        if not isinstance(item, dict):
            raise ShapeError("news entry is not an object")
        item_id = item.get("id")
        item_id = str(item_id) if item_id is not None else item.get("url")
        if not item_id:
            continue
        news.append({"id": item_id, "title": item.get("title") or "", "url": item.get("url")})
    return news


def _parse_prices(payload) -> list[dict]:
    if not isinstance(payload, dict) or not payload:
        raise ShapeError("empty price payload")

    prices = []
    for coin_id, price_obj in payload.items():
        usd = (price_obj or {}).get("usd")
        if not isinstance(usd, (int, float)) or isinstance(usd, bool):
            raise ShapeError(f"no usd price for {coin_id}")
        prices.append({"id": coin_id, "price": usd})
    return prices


def _parse_insight(payload) -> str:
    if isinstance(payload, list) and payload and isinstance(payload[0], dict):
        text = payload[0].get("generated_text")
        if isinstance(text, str) and text.strip():
            return text.strip()
    if isinstance(payload, str) and payload.strip():
        return payload.strip()
    raise ShapeError("no generated_text in insight payload")


def _parse_meme(payload) -> dict:
    if not isinstance(payload, dict) or not payload.get("url"):
        raise ShapeError("meme payload has no image url")
    return {
        "id": payload.get("postLink") or payload["url"],
        "title": payload.get("title") or "Daily crypto meme",
        "imageUrl": payload["url"],
    }


def build_insight_prompt(prefs: dict | None) -> str:
    prefs = prefs or {}
    assets = ", ".join(prefs.get("cryptoAssets") or []) or "General market"
    content = ", ".join(prefs.get("contentTypes") or []) or "General"
    return f"""You are a concise crypto assistant. Provide one actionable, 2-sentence market insight tailored to this user.

Investor type: {prefs.get("investorType") or "Unknown"}
Crypto interests: {assets}
Content preference: {content}

Insight:"""


# =========================================================
# Fetchers
# =========================================================
async def fetch_news(client: httpx.AsyncClient, crypto_assets: list[str] | None, *,
                     token: str | None, fallback: list[dict] = FALLBACK_NEWS,
                     limit: int = 5) -> list[dict]:
    """
    CryptoPanic posts filtered by the tickers of the user's assets.
    """
    if not token:
        logger.info("CRYPTOPANIC_TOKEN missing, using fallback news")
        result = FAILED
    else:
        result = await _request_json(
            "news", client, "GET", CRYPTOPANIC_URL,
            _parse_news,
            params={"auth_token": token, "public": "true"},
        )

    news = result.or_fallback([dict(item) for item in fallback])
    return filter_news(news, extract_tickers(crypto_assets), limit=limit)


async def fetch_prices(client: httpx.AsyncClient, crypto_assets: list[str] | None, *,
                       id_table: dict[str, str] = COINGECKO_IDS,
                       default_ids=DEFAULT_PRICE_IDS,
                       fallback: list[dict] = FALLBACK_PRICES) -> list[dict]:
    """
    CoinGecko /simple/price in USD for the user's assets.
    """
    ids = resolve_coin_ids(crypto_assets, id_table, default_ids)
    result = await _request_json(
        "prices", client, "GET", COINGECKO_PRICE_URL,
        _parse_prices,
        params={"ids": ",".join(ids), "vs_currencies": "usd"},
    )
    return result.or_fallback([dict(item) for item in fallback])


async def fetch_ai_insight(client: httpx.AsyncClient, prefs: dict | None, *,
                           token: str | None, model_url: str = HF_DEFAULT_MODEL_URL) -> dict:
    """
    HuggingFace text generation; static advice when no token is configured.
    """
    if not token:
        day_trader = (prefs or {}).get("investorType") == "Day Trader"
        return {"id": INSIGHT_ID, "text": INSIGHT_DAY_TRADER if day_trader else INSIGHT_LONG_TERM}

    result = await _request_json(
        "ai insight", client, "POST", model_url,
        _parse_insight,
        headers={"Authorization": f"Bearer {token}"},
        json={
            "inputs": build_insight_prompt(prefs),
            "parameters": {"max_new_tokens": 120, "temperature": 0.7},
        },
    )
    return {"id": INSIGHT_ID, "text": result.or_fallback(INSIGHT_FAILED)}


async def fetch_meme(client: httpx.AsyncClient, *, fallback: dict = FALLBACK_MEME) -> dict:
    result = await _request_json("meme", client, "GET", MEME_URL, _parse_meme)
    return result.or_fallback(dict(fallback))
