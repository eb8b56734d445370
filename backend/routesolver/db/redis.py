"""
Redis del price store: client condiviso dal RedisPriceStore.

Redis è opzionale. Senza REDIS_URL i prezzi restano solo nella memo
dell'oracle e /api/v1/health riporta lo store come "disabled".
"""
import logging

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from routesolver.config import settings

logger = logging.getLogger(__name__)

_price_store_client: aioredis.Redis | None = None


async def get_redis() -> aioredis.Redis:
    """Client Redis del price store, creato alla prima richiesta."""
    global _price_store_client
    if not settings.redis_url:
        raise RuntimeError("REDIS_URL non impostato: price store Redis non disponibile")
    if _price_store_client is None:
        logger.info("Connessione al price store Redis")
        _price_store_client = aioredis.from_url(
            settings.redis_url,
            decode_responses=True,
            # stessi timeout del servizio prezzi
            socket_timeout=settings.request_timeout_seconds,
            socket_connect_timeout=settings.request_timeout_seconds,
        )
    return _price_store_client


async def price_store_status() -> str:
    """Stato dello store per l'health check: disabled, ok oppure unreachable."""
    if not settings.redis_url:
        return "disabled"
    client = await get_redis()
    try:
        await client.ping()
    except RedisError as exc:
        logger.warning("Price store Redis non raggiungibile: %s", exc)
        return "unreachable"
    return "ok"


async def close_redis() -> None:
    global _price_store_client
    if _price_store_client is not None:
        await _price_store_client.aclose()
        _price_store_client = None
