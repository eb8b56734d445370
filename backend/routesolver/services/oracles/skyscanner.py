"""
SkyScannerOracle — oracle live sull'API SkyScanner "indicative prices".

Endpoint, chiave e mercato arrivano dal costruttore (la factory li legge dal .env).

Rate limiting: su HTTP 429 la richiesta viene ripetuta dopo un backoff fisso
(RATE_LIMIT_BACKOFF_MS, default 250ms), senza limite di tentativi: il limite
non è mai un errore visibile al solver. Ogni altro errore (status non 2xx,
rete, JSON inatteso) è fatale e non viene ritentato.

Formato richiesta:
  {"query": {"market": "US", "locale": "en-US", "currency": "USD",
             "queryLegs": [{"originPlace": {"queryPlace": {"iata": "JFK"}},
                            "destinationPlace": {"queryPlace": {"iata": "YVR"}},
                            "fixedDate": {"year": 2023, "month": 8, "day": 10}}],
             "dateTimeGroupingType": "DATE_TIME_GROUPING_TYPE_UNSPECIFIED"}}

Documentazione: https://developers.skyscanner.net/docs/flights-indicative-prices/overview
"""
import asyncio
import logging
import math
from datetime import date

import httpx

from routesolver.services.date_ranges import Anytime, DateSpan, FixedDate
from routesolver.services.oracles.base import (
    BadResponseError,
    Flight,
    LegQuery,
    NoLegsError,
    PriceOracle,
    Quote,
    RateLimitExceeded,
    ResponseFormatError,
    TransportError,
)
from routesolver.services.price_store import RedisPriceStore

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://partners.api.skyscanner.net/apiservices/v3/flights/indicative/search"


def _date_payload(day: date) -> dict:
    return {"year": day.year, "month": day.month, "day": day.day}


def _leg_payload(leg: LegQuery) -> dict:
    payload: dict = {
        "originPlace": {"queryPlace": {"iata": leg.origin}},
        "destinationPlace": {"queryPlace": {"iata": leg.destination}},
    }
    dates = leg.dates
    if isinstance(dates, Anytime):
        payload["anytime"] = True
    elif isinstance(dates, FixedDate):
        payload["fixedDate"] = _date_payload(dates.day)
    elif isinstance(dates, DateSpan):
        payload["dateRange"] = {
            "startDate": _date_payload(dates.start),
            "endDate": _date_payload(dates.end),
        }
    else:
        raise ValueError(f"Tratta {leg.origin}→{leg.destination} con intervallo vuoto")
    return payload


def build_query(legs: list[LegQuery], market: str, locale: str, currency: str) -> dict:
    """Corpo JSON della richiesta indicative search per una o più tratte."""
    if not legs:
        raise NoLegsError("Richiesta senza tratte")
    return {
        "query": {
            "market": market,
            "locale": locale,
            "currency": currency,
            "queryLegs": [_leg_payload(leg) for leg in legs],
            "dateTimeGroupingType": "DATE_TIME_GROUPING_TYPE_UNSPECIFIED",
        }
    }


def _parse_quote(item) -> Quote:
    """
    Normalizza una quote SkyScanner:
      {"minPrice": {"amount": "123", ...}, "isDirect": true, ...}
    """
    if not isinstance(item, dict):
        raise ResponseFormatError("Quote SkyScanner con formato non valido")

    min_price = item.get("minPrice")
    if not isinstance(min_price, dict):
        raise ResponseFormatError("minPrice non è un oggetto")
    amount = min_price.get("amount")
    if not isinstance(amount, str):
        raise ResponseFormatError("Il prezzo della quote non è una stringa")
    try:
        price = float(amount)
    except ValueError:
        raise ResponseFormatError(f"Prezzo non numerico: {amount!r}") from None
    if not math.isfinite(price):
        raise ResponseFormatError(f"Prezzo non finito: {amount!r}")
    if price < 0:
        raise ResponseFormatError(f"Prezzo negativo: {price}")

    direct = item.get("isDirect")
    if not isinstance(direct, bool):
        raise ResponseFormatError("isDirect non è un booleano")

    return Quote(min_price=price, direct=direct)


def parse_quotes(data) -> list[Quote]:
    """Estrae le quote da content.results.quotes (oggetto id → quote)."""
    try:
        quotes = data["content"]["results"]["quotes"]
    except (KeyError, TypeError):
        raise ResponseFormatError("Risposta SkyScanner senza sezione quotes") from None
    if not isinstance(quotes, dict):
        raise ResponseFormatError("La sezione quotes ha un formato inatteso")
    return [_parse_quote(item) for item in quotes.values()]


class SkyScannerOracle(PriceOracle):

    def __init__(
        self,
        api_key: str,
        endpoint: str = DEFAULT_ENDPOINT,
        market: str = "US",
        locale: str = "en-US",
        currency: str = "USD",
        backoff_seconds: float = 0.25,
        timeout: float = 30,
        store: RedisPriceStore | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__()
        self.api_key = api_key
        self.endpoint = endpoint
        self.market = market
        self.locale = locale
        self.currency = currency
        self.backoff_seconds = backoff_seconds
        self.timeout = timeout
        self.store = store
        self._transport = transport

    async def _post(self, payload: dict) -> dict:
        """Una singola POST. 429 → RateLimitExceeded, ogni altro errore è fatale."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(
                    self.endpoint,
                    json=payload,
                    headers={"x-api-key": self.api_key},
                )
        except httpx.HTTPError as exc:
            raise TransportError(f"{type(exc).__name__}: {exc}") from exc

        if resp.status_code == 429:
            raise RateLimitExceeded("HTTP 429")
        if not resp.is_success:
            logger.warning("SkyScanner: HTTP %d — %s", resp.status_code, resp.text[:300])
            raise BadResponseError(resp.status_code)

        try:
            return resp.json()
        except ValueError:
            raise ResponseFormatError(f"Risposta non JSON: {resp.text[:300]!r}") from None

    async def get_prices(self, legs: list[LegQuery]) -> list[Quote]:
        """Richiesta multi-leg con retry a backoff fisso sul rate limit."""
        payload = build_query(legs, self.market, self.locale, self.currency)
        while True:
            try:
                data = await self._post(payload)
                break
            except RateLimitExceeded:
                logger.warning(
                    "SkyScanner: rate limit raggiunto, retry in %dms", int(self.backoff_seconds * 1000)
                )
                await asyncio.sleep(self.backoff_seconds)

        quotes = parse_quotes(data)
        logger.debug("SkyScanner: %d quote per %d tratte", len(quotes), len(legs))
        return quotes

    async def _fetch(self, flight: Flight) -> Quote:
        if self.store is not None:
            stored = await self.store.load(flight)
            if stored is not None:
                return stored

        quotes = await self.get_prices([LegQuery.for_flight(flight)])
        if not quotes:
            raise ResponseFormatError("Nessuna quote per la tratta", flight)
        quote = min(quotes, key=lambda q: q.min_price)

        if self.store is not None:
            await self.store.save(flight, quote)
        return quote
