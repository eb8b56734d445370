"""
Route Solver — itinerario multi-città più economico con vincoli di date.

Il problema è una lista di Destination: origine (anchor) in testa, arrivo
finale (anchor) in coda, in mezzo le tappe da visitare una sola volta in
qualsiasi ordine.

Algoritmo: ricerca best-first a costo uniforme (Dijkstra) su un grafo
costruito on demand.
  1. Seed: nodo sentinella sull'origine, costo 0, senza parent.
  2. Pop del nodo con costo cumulativo minore.
     Se è sull'anchor finale e ha un parent → trovato, backtrace.
  3. Tappe candidate: quelle non ancora visitate sul cammino del nodo;
     se sono finite, l'unica mossa legale è l'anchor finale.
  4. Per ogni candidata e ogni data ammessa (DateConstraints.flight_dates)
     si prezza il Flight con l'oracle e si inserisce il figlio nella coda.
  5. Coda vuota → ItineraryNotSolvableError.

I prezzi non sono negativi, quindi il primo pop sull'anchor finale è ottimo.
"""
import asyncio
import heapq
import itertools
import logging
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Iterator

from routesolver.services.date_ranges import DateRestrictions, Destination
from routesolver.services.oracles.base import Flight, PriceOracle, Quote
from routesolver.services.stats import SolverStats

logger = logging.getLogger(__name__)


class ItineraryNotSolvableError(Exception):
    """Nessun itinerario rispetta i vincoli dati. Esito normale, non un bug."""


@dataclass(frozen=True)
class FlightPrice:
    flight: Flight
    price: float
    direct: bool = True


@dataclass(frozen=True)
class RouteProblem:
    destinations: list[Destination]
    restrictions: DateRestrictions = field(default_factory=DateRestrictions)

    def __post_init__(self) -> None:
        if len(self.destinations) < 2:
            raise ValueError("Servono almeno origine e destinazione finale")

        # le restrizioni del problema valgono per ogni tappa, anche per le Destination costruite a mano
        bound = [
            replace(d, constraints=replace(d.constraints, restrictions=self.restrictions))
            for d in self.destinations
        ]
        object.__setattr__(self, "destinations", bound)

        anchors = {self.origin.iata, self.final.iata}
        codes = [d.iata for d in self.stops]
        if len(codes) != len(set(codes)):
            raise ValueError(f"Tappe intermedie duplicate: {codes}")
        clashing = anchors.intersection(codes)
        if clashing:
            raise ValueError(f"Tappe intermedie coincidenti con un anchor: {sorted(clashing)}")

    @classmethod
    def from_anchors(
        cls,
        origin: Destination,
        stops: list[Destination],
        final: Destination,
        restrictions: DateRestrictions | None = None,
    ) -> "RouteProblem":
        """Problema con origine e arrivo fissi e tappe intermedie in qualsiasi ordine."""
        return cls(
            destinations=[origin, *stops, final],
            restrictions=restrictions or DateRestrictions(),
        )

    @property
    def origin(self) -> Destination:
        return self.destinations[0]

    @property
    def final(self) -> Destination:
        return self.destinations[-1]

    @property
    def stops(self) -> list[Destination]:
        return self.destinations[1:-1]


@dataclass(frozen=True, eq=False)
class FlightNode:
    """
    Vertice del grafo: la tappa raggiunta, il volo che ci ha portati qui
    e il costo cumulativo. Il parent forma una catena verso la sentinella.
    """
    stop: Destination
    flight: Flight
    quote: Quote
    total_price: float
    arrived_on: date | None = None
    parent: "FlightNode | None" = None
    visited: frozenset[str] = frozenset()

    @classmethod
    def sentinel(cls, origin: Destination) -> "FlightNode":
        """Nodo di partenza: volo segnaposto a costo zero che termina sull'origine, senza data."""
        return cls(
            stop=origin,
            flight=Flight(origin.iata, origin.iata, date.min),
            quote=Quote(min_price=0.0, direct=True),
            total_price=0.0,
            visited=frozenset({origin.iata}),
        )

    @property
    def price(self) -> float:
        return self.quote.min_price

    def is_sentinel(self) -> bool:
        return self.parent is None

    def ancestors(self) -> Iterator["FlightNode"]:
        node = self.parent
        while node is not None:
            yield node
            node = node.parent

    def child(self, stop: Destination, flight: Flight, quote: Quote) -> "FlightNode":
        return FlightNode(
            stop=stop,
            flight=flight,
            quote=quote,
            total_price=self.total_price + quote.min_price,
            arrived_on=flight.date,
            parent=self,
            visited=self.visited | {stop.iata},
        )


def backtrace(goal: FlightNode) -> list[FlightPrice]:
    """Risale i parent fino alla sentinella (esclusa) e restituisce le tratte in ordine."""
    legs: list[FlightPrice] = []
    node = goal
    while not node.is_sentinel():
        legs.append(FlightPrice(flight=node.flight, price=node.price, direct=node.quote.direct))
        node = node.parent
    legs.reverse()
    return legs


def total_price(legs: list[FlightPrice]) -> float:
    return sum(leg.price for leg in legs)


class RouteSolver:

    def __init__(
        self,
        oracle: PriceOracle,
        stats: SolverStats | None = None,
        horizon_days: int | None = 30,
        max_concurrent_pricing: int = 1,
    ) -> None:
        self.oracle = oracle
        self.stats = stats if stats is not None else SolverStats()
        self.horizon_days = horizon_days
        self._semaphore = asyncio.Semaphore(max(1, max_concurrent_pricing))

    async def solve(self, problem: RouteProblem) -> list[FlightPrice]:
        """
        Itinerario più economico per il problema.

        Raises:
            ItineraryNotSolvableError: nessun cammino raggiunge l'anchor finale.
            PriceQueryError:           l'oracle ha fallito su un volo (solve interrotta).
            UnboundedDateRangeError:   la finestra di partenza dell'origine non è limitata.
        """
        logger.info(
            "Solve %s → %s con %d tappe intermedie",
            problem.origin.iata, problem.final.iata, len(problem.stops),
        )
        calls_before = self.stats.oracle_calls

        goal = await self._search(problem)
        legs = backtrace(goal)

        logger.info(
            "Solve %s → %s: %d tratte, totale %.2f, %d chiamate oracle",
            problem.origin.iata, problem.final.iata, len(legs),
            goal.total_price, self.stats.oracle_calls - calls_before,
        )
        return legs

    async def _search(self, problem: RouteProblem) -> FlightNode:
        sentinel = FlightNode.sentinel(problem.origin)

        # (costo cumulativo, progressivo di inserimento, nodo)
        counter = itertools.count()
        frontier: list[tuple[float, int, FlightNode]] = [(0.0, next(counter), sentinel)]
        expanded: set[tuple[str, date | None, frozenset[str]]] = set()

        while frontier:
            _, _, node = heapq.heappop(frontier)

            if not node.is_sentinel() and node.stop.iata == problem.final.iata:
                return node

            state = (node.stop.iata, node.arrived_on, node.visited)
            if state in expanded:
                continue
            expanded.add(state)

            for child in await self._expand(node, problem):
                heapq.heappush(frontier, (child.total_price, next(counter), child))

        raise ItineraryNotSolvableError(
            "L'itinerario non è risolvibile con i vincoli di date indicati"
        )

    def _candidate_flights(self, node: FlightNode, problem: RouteProblem) -> list[tuple[Destination, Flight]]:
        remaining = [d for d in problem.stops if d.iata not in node.visited]
        targets = remaining or [problem.final]

        candidates: list[tuple[Destination, Flight]] = []
        for target in targets:
            dates = target.constraints.flight_dates(
                node.stop.constraints, node.arrived_on, self.horizon_days
            )
            for day in dates:
                candidates.append((target, Flight(node.stop.iata, target.iata, day)))
        return candidates

    async def _price(self, flight: Flight) -> Quote:
        async with self._semaphore:
            self.stats.record_oracle_call()
            return await self.oracle.get_price(flight)

    async def _expand(self, node: FlightNode, problem: RouteProblem) -> list[FlightNode]:
        candidates = self._candidate_flights(node, problem)
        logger.debug(
            "Espansione %s@%s (costo %.2f): %d voli candidati",
            node.stop.iata, node.arrived_on, node.total_price, len(candidates),
        )
        tasks = [asyncio.ensure_future(self._price(flight)) for _, flight in candidates]
        try:
            quotes = await asyncio.gather(*tasks)
        except BaseException:
            # un errore fatale interrompe la solve: niente pricing orfano in background
            for task in tasks:
                task.cancel()
            raise
        return [
            node.child(target, flight, quote)
            for (target, flight), quote in zip(candidates, quotes)
        ]


async def solve(
    oracle: PriceOracle,
    origin: Destination,
    stops: list[Destination],
    final: Destination,
    restrictions: DateRestrictions | None = None,
    stats: SolverStats | None = None,
    horizon_days: int | None = 30,
) -> list[FlightPrice]:
    """Scorciatoia: costruisce il RouteProblem e lo risolve con un RouteSolver dedicato."""
    problem = RouteProblem.from_anchors(origin, stops, final, restrictions)
    solver = RouteSolver(oracle, stats=stats, horizon_days=horizon_days)
    return await solver.solve(problem)
