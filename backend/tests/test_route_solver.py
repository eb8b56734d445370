"""
Test del Route Solver.

Copertura:
  - scenario AAA → BBB → AAA con date fisse e flessibili
  - itinerario non risolvibile (finestre disgiunte, frontiera vuota)
  - propagazione degli errori fatali dell'oracle
  - memo dell'oracle vs contatore delle chiamate (SolverStats)
  - ottimalità contro una ricerca esaustiva su un grafo casuale piccolo
  - validazione di RouteProblem, backtrace
"""
import itertools
import random
from datetime import date, timedelta

import pytest

from routesolver.services.date_ranges import (
    ANYTIME,
    DateConstraints,
    DateRestrictions,
    DateSpan,
    Destination,
    FixedDate,
    UnboundedDateRangeError,
)
from routesolver.services.oracles.base import Flight, FlightNotModeledError, Quote
from routesolver.services.oracles.fixture import FixturePriceOracle
from routesolver.services.route_solver import (
    FlightNode,
    FlightPrice,
    ItineraryNotSolvableError,
    RouteProblem,
    RouteSolver,
    backtrace,
    solve,
    total_price,
)
from routesolver.services.stats import SolverStats


def _stop(iata, arrive=ANYTIME, depart=ANYTIME) -> Destination:
    return Destination(iata=iata, constraints=DateConstraints(arrive=arrive, depart=depart))


def _d(month: int, day: int) -> date:
    return date(2023, month, day)


# ---------------------------------------------------------------------------
# Scenario base AAA → BBB → AAA
# ---------------------------------------------------------------------------

class TestRoundTripScenario:

    async def test_cheapest_two_leg_path(self, origin_aaa, stop_bbb, final_aaa, round_trip_oracle, stats):
        legs = await solve(round_trip_oracle, origin_aaa, [stop_bbb], final_aaa, stats=stats)

        assert [leg.flight for leg in legs] == [
            Flight("AAA", "BBB", _d(2, 3)),
            Flight("BBB", "AAA", _d(2, 8)),
        ]
        assert [leg.price for leg in legs] == [80.0, 150.0]
        assert total_price(legs) == pytest.approx(230.0)

    async def test_repeated_flight_is_priced_once(self, origin_aaa, stop_bbb, final_aaa, round_trip_oracle, stats):
        await solve(round_trip_oracle, origin_aaa, [stop_bbb], final_aaa, stats=stats)

        # BBB→AAA l'8/2 viene richiesto da entrambi i rami (2/2 e 3/2)
        assert stats.oracle_calls == 4
        assert round_trip_oracle.queries_issued == 3

    async def test_oracle_reused_across_solves(self, origin_aaa, stop_bbb, final_aaa, round_trip_oracle):
        await solve(round_trip_oracle, origin_aaa, [stop_bbb], final_aaa)
        await solve(round_trip_oracle, origin_aaa, [stop_bbb], final_aaa)
        assert round_trip_oracle.queries_issued == 3

    async def test_disabled_stats_do_not_count(self, origin_aaa, stop_bbb, final_aaa, round_trip_oracle):
        stats = SolverStats(enabled=False)
        await solve(round_trip_oracle, origin_aaa, [stop_bbb], final_aaa, stats=stats)
        assert stats.oracle_calls == 0

    async def test_direct_flag_carried_to_result(self, origin_aaa, stop_bbb, final_aaa, round_trip_prices):
        round_trip_prices[Flight("BBB", "AAA", _d(2, 8))] = Quote(min_price=150.0, direct=False)
        oracle = FixturePriceOracle(round_trip_prices)

        legs = await solve(oracle, origin_aaa, [stop_bbb], final_aaa)
        assert [leg.direct for leg in legs] == [True, False]


# ---------------------------------------------------------------------------
# Itinerari non risolvibili ed errori
# ---------------------------------------------------------------------------

class TestFailures:

    async def test_disjoint_windows_not_solvable(self, origin_aaa, final_aaa, round_trip_oracle, stats):
        late_bbb = _stop("BBB", arrive=DateSpan(_d(2, 2), _d(2, 4)), depart=DateSpan(_d(2, 10), _d(2, 12)))

        with pytest.raises(ItineraryNotSolvableError):
            await solve(round_trip_oracle, origin_aaa, [late_bbb], final_aaa, stats=stats)

        # solo i due voli di andata sono stati prezzati
        assert stats.oracle_calls == 2

    async def test_empty_first_window_not_solvable(self, final_aaa):
        origin = _stop("AAA", depart=FixedDate(_d(2, 1)))
        bbb = _stop("BBB", arrive=FixedDate(_d(2, 5)))
        oracle = FixturePriceOracle({})

        with pytest.raises(ItineraryNotSolvableError):
            await solve(oracle, origin, [bbb], final_aaa)
        assert oracle.queries_issued == 0

    async def test_min_days_makes_itinerary_infeasible(self, origin_aaa, stop_bbb, final_aaa, round_trip_oracle):
        # partenza il 2 o 3 febbraio, rientro l'8: una permanenza minima di 7 giorni è impossibile
        with pytest.raises(ItineraryNotSolvableError):
            await solve(
                round_trip_oracle, origin_aaa, [stop_bbb], final_aaa,
                restrictions=DateRestrictions(min_days=7),
            )

    async def test_oracle_error_aborts_solve(self, origin_aaa, stop_bbb, final_aaa, round_trip_prices):
        missing = Flight("BBB", "AAA", _d(2, 8))
        del round_trip_prices[missing]
        oracle = FixturePriceOracle(round_trip_prices)

        with pytest.raises(FlightNotModeledError) as exc_info:
            await solve(oracle, origin_aaa, [stop_bbb], final_aaa)
        assert exc_info.value.flight == missing

    async def test_unbounded_origin_window(self):
        origin = _stop("AAA")
        final = _stop("CCC")
        with pytest.raises(UnboundedDateRangeError):
            await solve(FixturePriceOracle({}), origin, [], final)


# ---------------------------------------------------------------------------
# Comportamenti del grafo
# ---------------------------------------------------------------------------

class TestSearchBehaviour:

    async def test_direct_route_without_stops(self):
        origin = _stop("AAA", depart=DateSpan(_d(3, 1), _d(3, 2)))
        final = _stop("ZZZ")
        oracle = FixturePriceOracle({
            Flight("AAA", "ZZZ", _d(3, 1)): 120.0,
            Flight("AAA", "ZZZ", _d(3, 2)): 90.0,
        })

        legs = await solve(oracle, origin, [], final)
        assert legs == [FlightPrice(Flight("AAA", "ZZZ", _d(3, 2)), 90.0, True)]

    async def test_cheaper_visit_order_is_chosen(self):
        origin = _stop("AAA", depart=FixedDate(_d(3, 1)))
        final = _stop("AAA", arrive=FixedDate(_d(3, 3)))
        bbb, ccc = _stop("BBB"), _stop("CCC")
        oracle = FixturePriceOracle({
            Flight("AAA", "BBB", _d(3, 1)): 100.0,
            Flight("AAA", "CCC", _d(3, 1)): 50.0,
            Flight("BBB", "CCC", _d(3, 2)): 100.0,
            Flight("CCC", "BBB", _d(3, 2)): 300.0,
            Flight("BBB", "AAA", _d(3, 3)): 50.0,
            Flight("CCC", "AAA", _d(3, 3)): 100.0,
        })

        legs = await solve(oracle, origin, [bbb, ccc], final, horizon_days=1)

        # AAA→BBB→CCC→AAA = 300 contro AAA→CCC→BBB→AAA = 400
        assert [leg.flight.destination for leg in legs] == ["BBB", "CCC", "AAA"]
        assert total_price(legs) == pytest.approx(300.0)

    async def test_horizon_bounds_unconstrained_stay(self):
        origin = _stop("AAA", depart=FixedDate(_d(3, 1)))
        final = _stop("CCC")
        bbb = _stop("BBB")
        oracle = FixturePriceOracle({
            Flight("AAA", "BBB", _d(3, 1)): 10.0,
            Flight("BBB", "CCC", _d(3, 2)): 40.0,
            Flight("BBB", "CCC", _d(3, 3)): 30.0,
        })

        legs = await solve(oracle, origin, [bbb], final, horizon_days=2)
        assert legs[-1].flight.date == _d(3, 3)
        assert oracle.queries_issued == 3

    async def test_concurrent_pricing_same_result(self, origin_aaa, stop_bbb, final_aaa, round_trip_oracle):
        problem = RouteProblem.from_anchors(origin_aaa, [stop_bbb], final_aaa)
        solver = RouteSolver(round_trip_oracle, max_concurrent_pricing=4)

        legs = await solver.solve(problem)
        assert total_price(legs) == pytest.approx(230.0)
        assert round_trip_oracle.queries_issued == 3


# ---------------------------------------------------------------------------
# Ottimalità — confronto con ricerca esaustiva
# ---------------------------------------------------------------------------

_CODES = ["AAA", "BBB", "CCC", "DDD"]
_DAY0 = date(2023, 3, 1)
_DAYS = [_DAY0 + timedelta(days=i) for i in range(25)]


def _random_prices(seed: int) -> dict[Flight, float]:
    rng = random.Random(seed)
    return {
        Flight(o, dst, day): float(rng.randint(20, 300))
        for o in _CODES for dst in _CODES if o != dst
        for day in _DAYS
    }


def _brute_force(prices, order_windows, first_window, final_window, min_days, max_days):
    """Costo minimo enumerando ogni ordine delle tappe e ogni combinazione di date."""
    best = None
    stops = list(order_windows)

    for perm in itertools.permutations(stops):
        route = ["AAA", *perm, "AAA"]

        def walk(i, prev_day, cost):
            nonlocal best
            if i == len(route) - 1:
                if best is None or cost < best:
                    best = cost
                return
            src, dst = route[i], route[i + 1]
            arrive = final_window if i + 1 == len(route) - 1 else order_windows[dst][0]
            depart = first_window if i == 0 else order_windows[src][1]
            low, high = max(arrive[0], depart[0]), min(arrive[1], depart[1])
            if prev_day is not None:
                low = max(low, prev_day + timedelta(days=max(min_days, 1)))
                high = min(high, prev_day + timedelta(days=max_days))
            day = low
            while day <= high:
                walk(i + 1, day, cost + prices[Flight(src, dst, day)])
                day += timedelta(days=1)

        walk(0, None, 0.0)
    return best


class TestOptimality:

    @pytest.mark.parametrize("seed", [1, 7, 42])
    async def test_matches_brute_force(self, seed):
        prices = _random_prices(seed)
        window = (_d(3, 2), _d(3, 12))
        stay = (_d(3, 2), _d(3, 14))
        order_windows = {"BBB": (window, stay), "CCC": (window, stay), "DDD": (window, stay)}
        first_window = (_d(3, 1), _d(3, 3))
        final_window = (_d(3, 6), _d(3, 16))

        origin = _stop("AAA", depart=DateSpan(*first_window))
        stops = [_stop(code, arrive=DateSpan(*w), depart=DateSpan(*s)) for code, (w, s) in order_windows.items()]
        final = _stop("AAA", arrive=DateSpan(*final_window))
        oracle = FixturePriceOracle(prices)

        legs = await solve(
            oracle, origin, stops, final,
            restrictions=DateRestrictions(min_days=1, max_days=3),
        )

        expected = _brute_force(prices, order_windows, first_window, final_window, 1, 3)
        assert total_price(legs) == pytest.approx(expected)

        # ogni tappa intermedia una sola volta, date crescenti, catena coerente
        visited = [leg.flight.destination for leg in legs[:-1]]
        assert sorted(visited) == ["BBB", "CCC", "DDD"]
        assert all(a.flight.date < b.flight.date for a, b in zip(legs, legs[1:]))
        assert all(a.flight.destination == b.flight.origin for a, b in zip(legs, legs[1:]))


# ---------------------------------------------------------------------------
# RouteProblem / FlightNode
# ---------------------------------------------------------------------------

class TestRouteProblem:

    def test_requires_two_destinations(self):
        with pytest.raises(ValueError):
            RouteProblem(destinations=[_stop("AAA")])

    def test_duplicate_intermediate_rejected(self):
        with pytest.raises(ValueError, match="duplicate"):
            RouteProblem.from_anchors(_stop("AAA"), [_stop("BBB"), _stop("BBB")], _stop("AAA"))

    def test_intermediate_equal_to_anchor_rejected(self):
        with pytest.raises(ValueError, match="anchor"):
            RouteProblem.from_anchors(_stop("AAA"), [_stop("AAA")], _stop("CCC"))

    def test_restrictions_shared_by_all_destinations(self):
        rules = DateRestrictions(min_days=2, max_days=5)
        problem = RouteProblem.from_anchors(_stop("AAA"), [_stop("BBB"), _stop("CCC")], _stop("DDD"), rules)
        assert all(d.constraints.restrictions is rules for d in problem.destinations)
        assert [d.iata for d in problem.stops] == ["BBB", "CCC"]

    def test_plain_constructor_binds_restrictions(self):
        rules = DateRestrictions(min_days=3)
        problem = RouteProblem(destinations=[_stop("AAA"), _stop("BBB"), _stop("CCC")], restrictions=rules)
        assert all(d.constraints.restrictions is rules for d in problem.destinations)

    async def test_plain_constructor_enforces_min_days(self, origin_aaa, stop_bbb, final_aaa, round_trip_oracle):
        problem = RouteProblem(
            destinations=[origin_aaa, stop_bbb, final_aaa],
            restrictions=DateRestrictions(min_days=7),
        )
        with pytest.raises(ItineraryNotSolvableError):
            await RouteSolver(round_trip_oracle).solve(problem)


class TestBacktrace:

    def test_excludes_sentinel_and_keeps_order(self):
        aaa, bbb, ccc = _stop("AAA"), _stop("BBB"), _stop("CCC")
        sentinel = FlightNode.sentinel(aaa)
        first = sentinel.child(bbb, Flight("AAA", "BBB", _d(3, 1)), Quote(10.0, True))
        second = first.child(ccc, Flight("BBB", "CCC", _d(3, 4)), Quote(25.0, False))

        legs = backtrace(second)

        assert [leg.flight.destination for leg in legs] == ["BBB", "CCC"]
        assert second.total_price == pytest.approx(35.0)
        assert second.visited == frozenset({"AAA", "BBB", "CCC"})
        assert list(second.ancestors()) == [first, sentinel]

    def test_sentinel_is_zero_cost_placeholder(self):
        sentinel = FlightNode.sentinel(_stop("AAA"))

        assert sentinel.is_sentinel()
        assert sentinel.flight.origin == sentinel.flight.destination == "AAA"
        assert sentinel.price == 0.0
        assert sentinel.arrived_on is None
        assert backtrace(sentinel) == []
