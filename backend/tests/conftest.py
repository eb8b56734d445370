"""
Fixture condivise per la test suite del Route Solver.

Nessun servizio reale: i prezzi arrivano da FixturePriceOracle, le chiamate
HTTP verso SkyScanner da httpx.MockTransport.
"""
from datetime import date

import pytest

from routesolver.services.date_ranges import (
    ANYTIME,
    DateConstraints,
    DateSpan,
    Destination,
    FixedDate,
)
from routesolver.services.oracles.base import Flight
from routesolver.services.oracles.fixture import FixturePriceOracle
from routesolver.services.stats import SolverStats


def make_stop(iata, arrive=ANYTIME, depart=ANYTIME) -> Destination:
    return Destination(iata=iata, constraints=DateConstraints(arrive=arrive, depart=depart))


def d(month: int, day: int, year: int = 2023) -> date:
    return date(year, month, day)


# ---------------------------------------------------------------------------
# Scenario AAA → BBB → AAA (febbraio 2023)
# ---------------------------------------------------------------------------

@pytest.fixture
def origin_aaa():
    """Origine: partenza tra il 1 e il 3 febbraio."""
    return make_stop("AAA", depart=DateSpan(d(2, 1), d(2, 3)))


@pytest.fixture
def stop_bbb():
    """Tappa intermedia: arrivo 2-4 febbraio, ripartenza 4-8 febbraio."""
    return make_stop("BBB", arrive=DateSpan(d(2, 2), d(2, 4)), depart=DateSpan(d(2, 4), d(2, 8)))


@pytest.fixture
def final_aaa():
    """Rientro fisso l'8 febbraio."""
    return make_stop("AAA", arrive=FixedDate(d(2, 8)))


@pytest.fixture
def round_trip_prices():
    return {
        Flight("AAA", "BBB", d(2, 2)): 100.0,
        Flight("AAA", "BBB", d(2, 3)): 80.0,
        Flight("BBB", "AAA", d(2, 8)): 150.0,
    }


@pytest.fixture
def round_trip_oracle(round_trip_prices):
    return FixturePriceOracle(round_trip_prices)


@pytest.fixture
def stats():
    return SolverStats()
