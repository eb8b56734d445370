"""
Persistenza opzionale dei prezzi su Redis.

Flusso di utilizzo (dentro SkyScannerOracle._fetch):
    1. load()  → hit? restituisce la Quote senza chiamare l'API
    2. save()  → dopo ogni chiamata all'API, salva il risultato
    3. Il TTL è definito da CACHE_TTL_HOURS nel .env (default 6h)

Una chiave per volo: "price:<origin>:<destination>:<YYYY-MM-DD>".
Redis è solo un acceleratore: se non risponde si logga e si prosegue
come cache miss.
"""
import json
import logging
from dataclasses import asdict

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from routesolver.services.oracles.base import Flight, Quote

logger = logging.getLogger(__name__)


def price_key(flight: Flight) -> str:
    return f"price:{flight.origin}:{flight.destination}:{flight.date.isoformat()}"


class RedisPriceStore:

    def __init__(self, redis: aioredis.Redis, ttl_hours: int) -> None:
        self.redis = redis
        self.ttl_seconds = ttl_hours * 3600

    async def load(self, flight: Flight) -> Quote | None:
        try:
            raw = await self.redis.get(price_key(flight))
        except RedisError as exc:
            logger.warning("Redis non disponibile in lettura (%s): %s", price_key(flight), exc)
            return None

        if raw is None:
            return None
        try:
            data = json.loads(raw)
            return Quote(min_price=float(data["min_price"]), direct=bool(data["direct"]))
        except (ValueError, KeyError, TypeError):
            logger.warning("Valore Redis corrotto per %s, ignorato", price_key(flight))
            return None

    async def save(self, flight: Flight, quote: Quote) -> None:
        try:
            await self.redis.set(price_key(flight), json.dumps(asdict(quote)), ex=self.ttl_seconds)
        except RedisError as exc:
            logger.warning("Redis non disponibile in scrittura (%s): %s", price_key(flight), exc)
