"""
FixturePriceOracle — prezzi da una tabella fissa (origin, destination, date) → prezzo.

Usato nei test e in locale (PRICE_ORACLE=fixture). Un volo non presente in
tabella è un errore (FlightNotModeledError), mai un prezzo di default:
serve a scoprire buchi nei dati di test.
"""
import json
from datetime import date
from pathlib import Path
from typing import Iterable

from routesolver.services.date_ranges import FixedDate
from routesolver.services.oracles.base import (
    Flight,
    FlightNotModeledError,
    LegQuery,
    NoLegsError,
    PriceOracle,
    Quote,
)


class FixturePriceOracle(PriceOracle):

    def __init__(self, prices: dict[Flight, float | Quote]) -> None:
        super().__init__()
        self._table: dict[Flight, Quote] = {}
        for flight, value in prices.items():
            quote = value if isinstance(value, Quote) else Quote(min_price=float(value), direct=True)
            if quote.min_price < 0:
                raise ValueError(f"Prezzo negativo per {flight}: {quote.min_price}")
            self._table[flight] = quote

    @classmethod
    def from_table(cls, rows: Iterable[tuple[str, str, date, float]]) -> "FixturePriceOracle":
        """Costruisce l'oracle da tuple (origin, destination, date, price)."""
        return cls({Flight(o, d, day): price for o, d, day, price in rows})

    @classmethod
    def from_records(cls, records: list[dict]) -> "FixturePriceOracle":
        """Record JSON: {"origin", "destination", "date" (ISO), "price", "direct" opzionale}."""
        prices: dict[Flight, float | Quote] = {}
        for item in records:
            flight = Flight(
                origin=item["origin"].upper(),
                destination=item["destination"].upper(),
                date=date.fromisoformat(item["date"]),
            )
            prices[flight] = Quote(
                min_price=float(item["price"]),
                direct=bool(item.get("direct", True)),
            )
        return cls(prices)

    @classmethod
    def from_json_file(cls, path: str | Path) -> "FixturePriceOracle":
        with open(path, encoding="utf-8") as fh:
            return cls.from_records(json.load(fh))

    async def _fetch(self, flight: Flight) -> Quote:
        quote = self._table.get(flight)
        if quote is None:
            raise FlightNotModeledError("Volo non presente nella tabella prezzi", flight)
        return quote

    async def get_prices(self, legs: list[LegQuery]) -> list[Quote]:
        if not legs:
            raise NoLegsError("Richiesta senza tratte")
        quotes: list[Quote] = []
        for leg in legs:
            if not isinstance(leg.dates, FixedDate):
                raise FlightNotModeledError(
                    f"La tabella prezzi modella solo date fisse, ricevuto {leg.dates!r}"
                )
            quotes.append(await self._fetch(Flight(leg.origin, leg.destination, leg.dates.day)))
        return quotes
