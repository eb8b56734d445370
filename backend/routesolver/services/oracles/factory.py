"""
Price Oracle Factory — un solo oracle per processo.

L'istanza è condivisa tra tutte le risoluzioni: la memo dei prezzi si
ammortizza tra richieste diverse. Il tipo viene scelto da PRICE_ORACLE:
  skyscanner → SkyScannerOracle (+ RedisPriceStore se REDIS_URL è impostato)
  fixture    → FixturePriceOracle caricato da FIXTURE_PRICES_PATH

Usabile come dependency FastAPI:
    oracle: Annotated[PriceOracle, Depends(get_price_oracle)]
"""
import logging

from routesolver.config import settings
from routesolver.db.redis import get_redis
from routesolver.services.oracles.base import PriceOracle
from routesolver.services.oracles.fixture import FixturePriceOracle
from routesolver.services.oracles.skyscanner import SkyScannerOracle
from routesolver.services.price_store import RedisPriceStore

logger = logging.getLogger(__name__)

_oracle: PriceOracle | None = None


async def _build_oracle() -> PriceOracle:
    if settings.price_oracle == "fixture":
        if not settings.fixture_prices_path:
            raise RuntimeError("PRICE_ORACLE=fixture richiede FIXTURE_PRICES_PATH")
        logger.info("Price oracle: fixture da %s", settings.fixture_prices_path)
        return FixturePriceOracle.from_json_file(settings.fixture_prices_path)

    if settings.price_oracle != "skyscanner":
        raise RuntimeError(f"PRICE_ORACLE sconosciuto: {settings.price_oracle!r}")

    store = None
    if settings.redis_url:
        store = RedisPriceStore(await get_redis(), settings.cache_ttl_hours)

    logger.info("Price oracle: SkyScanner (persistenza Redis: %s)", "sì" if store else "no")
    return SkyScannerOracle(
        api_key=settings.skyscanner_api_key,
        endpoint=settings.skyscanner_endpoint,
        market=settings.skyscanner_market,
        locale=settings.skyscanner_locale,
        currency=settings.currency,
        backoff_seconds=settings.rate_limit_backoff_ms / 1000,
        timeout=settings.request_timeout_seconds,
        store=store,
    )


async def get_price_oracle() -> PriceOracle:
    """Restituisce l'oracle di processo (singleton lazy)."""
    global _oracle
    if _oracle is None:
        _oracle = await _build_oracle()
    return _oracle


def reset_price_oracle() -> None:
    """Dimentica l'oracle (e la sua memo). Da chiamare nello shutdown del lifespan."""
    global _oracle
    _oracle = None
