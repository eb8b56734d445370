"""
Price Oracle Layer — interfaccia astratta (Strategy Pattern).

Il solver usa solo PriceOracle.get_price(): non sa se dietro c'è l'API
SkyScanner o una tabella di test. Il concreto viene scelto dalla factory
tramite PRICE_ORACLE nel .env.

La memo dei prezzi vive nell'istanza: lo stesso Flight non genera mai due
query esterne, anche se richiesto da task paralleli (lock per chiave).
"""
import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date

from routesolver.services.date_ranges import FixedDate, SingleDateRange


@dataclass(frozen=True)
class Flight:
    """Una tratta diretta in un giorno preciso. Chiave della cache e identità degli archi."""
    origin: str       # codice IATA (es. "JFK")
    destination: str  # codice IATA (es. "YVR")
    date: date


@dataclass(frozen=True)
class Quote:
    min_price: float
    direct: bool


@dataclass(frozen=True)
class LegQuery:
    """Una tratta di una richiesta multi-leg, con data fissa o flessibile."""
    origin: str
    destination: str
    dates: SingleDateRange

    @classmethod
    def for_flight(cls, flight: Flight) -> "LegQuery":
        return cls(flight.origin, flight.destination, FixedDate(flight.date))


# ---------------------------------------------------------------------------
# Errori
# ---------------------------------------------------------------------------

class PriceQueryError(Exception):
    """Errore fatale dell'oracle. flight indica la tratta che ha fallito."""

    def __init__(self, message: str, flight: Flight | None = None) -> None:
        super().__init__(message)
        self.flight = flight

    def __str__(self) -> str:
        msg = super().__str__()
        if self.flight is None:
            return msg
        f = self.flight
        return f"{msg} [{f.origin}→{f.destination} {f.date.isoformat()}]"


class NoLegsError(PriceQueryError):
    pass


class TransportError(PriceQueryError):
    pass


class BadResponseError(PriceQueryError):

    def __init__(self, status_code: int, flight: Flight | None = None) -> None:
        super().__init__(f"HTTP {status_code}", flight)
        self.status_code = status_code


class ResponseFormatError(PriceQueryError):
    pass


class FlightNotModeledError(PriceQueryError):
    pass


class RateLimitExceeded(PriceQueryError):
    """Segnale transitorio: gestito internamente con retry, mai visto dal chiamante."""


# ---------------------------------------------------------------------------
# Interfaccia
# ---------------------------------------------------------------------------

class PriceOracle(ABC):

    def __init__(self) -> None:
        self._cache: dict[Flight, Quote] = {}
        self._locks: dict[Flight, asyncio.Lock] = {}
        # query effettivamente inoltrate al backend (API o tabella)
        self.queries_issued = 0

    async def get_price(self, flight: Flight) -> Quote:
        """
        Quotazione più economica per il volo, dalla memo se già vista.

        Il lock per chiave serializza i fetch concorrenti sullo stesso Flight:
        il primo task interroga il backend, gli altri trovano il prezzo in cache.

        Raises:
            PriceQueryError: errore fatale, con exc.flight valorizzato.
        """
        cached = self._cache.get(flight)
        if cached is not None:
            return cached

        lock = self._locks.setdefault(flight, asyncio.Lock())
        async with lock:
            cached = self._cache.get(flight)
            if cached is not None:
                return cached

            self.queries_issued += 1
            try:
                quote = await self._fetch(flight)
            except PriceQueryError as exc:
                if exc.flight is None:
                    exc.flight = flight
                raise

            self._cache[flight] = quote

        self._locks.pop(flight, None)
        return quote

    def cached_flights(self) -> int:
        return len(self._cache)

    @abstractmethod
    async def _fetch(self, flight: Flight) -> Quote:
        """Interroga il backend per un singolo volo (cache miss)."""
        ...

    @abstractmethod
    async def get_prices(self, legs: list[LegQuery]) -> list[Quote]:
        """
        Richiesta one-shot multi-leg. Non passa dalla memo.
        Le implementazioni reali possono raggruppare le tratte in una sola chiamata.
        """
        ...
