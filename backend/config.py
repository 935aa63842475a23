import os
import logging
from dataclasses import dataclass, field

from dotenv import load_dotenv

# normalize coin tickers for CoinGecko
COINGECKO_IDS = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "SOL": "solana",
    "ADA": "cardano",
}
DEFAULT_PRICE_IDS = ("bitcoin", "ethereum")

HF_DEFAULT_MODEL_URL = "https://api-inference.huggingface.co/models/microsoft/Phi-3-mini-4k-instruct"


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///./dashboard.db"
    jwt_secret: str | None = None
    jwt_algorithm: str = "HS256"
    allow_origins: list[str] = field(default_factory=lambda: ["http://localhost:5173"])
    cryptopanic_token: str | None = None
    hf_api_token: str | None = None
    hf_model_url: str = HF_DEFAULT_MODEL_URL
    upstream_timeout: float = 10.0
    news_prices_ttl: float = 1.0
    insight_meme_ttl: float = 3600.0
    news_limit: int = 5
    log_level: str = "INFO"


def _parse_origins(raw: str) -> list[str]:
    """
    ALLOW_ORIGINS="http://localhost:5173,https://your-frontend.vercel.app"
    """
    return [o.strip() for o in raw.split(",") if o.strip()]


def load_settings() -> Settings:
    load_dotenv()
    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///./dashboard.db"),
        jwt_secret=os.getenv("JWT_SECRET") or None,
        jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
        allow_origins=_parse_origins(os.getenv("ALLOW_ORIGINS", "http://localhost:5173")),
        cryptopanic_token=os.getenv("CRYPTOPANIC_TOKEN") or None,
        hf_api_token=os.getenv("HF_API_TOKEN") or None,
        hf_model_url=os.getenv("HF_MODEL_URL", HF_DEFAULT_MODEL_URL),
        upstream_timeout=float(os.getenv("UPSTREAM_TIMEOUT_SECONDS", "10")),
        news_prices_ttl=float(os.getenv("NEWS_PRICES_CACHE_TTL_SECONDS", "1")),
        insight_meme_ttl=float(os.getenv("INSIGHT_MEME_CACHE_TTL_SECONDS", "3600")),
        news_limit=int(os.getenv("NEWS_LIMIT", "5")),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


def setup_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        root.addHandler(handler)
    root.setLevel(level)
