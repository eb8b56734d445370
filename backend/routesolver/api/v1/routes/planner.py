from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from routesolver.config import settings
from routesolver.models.schemas import (
    LegOut,
    PriceQueryIn,
    QuoteOut,
    RouteOut,
    RouteQueryIn,
    StatsOut,
)
from routesolver.services.date_ranges import DateRestrictions, UnboundedDateRangeError
from routesolver.services.oracles.base import Flight, PriceOracle, PriceQueryError
from routesolver.services.oracles.factory import get_price_oracle
from routesolver.services.route_solver import (
    ItineraryNotSolvableError,
    RouteProblem,
    RouteSolver,
    total_price,
)
from routesolver.services.stats import SolverStats, solver_stats

router = APIRouter()

OracleDep = Annotated[PriceOracle, Depends(get_price_oracle)]


@router.post("/compute", response_model=RouteOut)
async def compute_route(
    oracle: OracleDep,
    body: RouteQueryIn,
) -> RouteOut:
    """
    Itinerario più economico: origine e destinazione finale fisse,
    tappe intermedie in qualsiasi ordine, ognuna con le sue finestre di date.
    """
    #Validation area -------------------------------------------
    try:
        restrictions = DateRestrictions(min_days=body.min_days, max_days=body.max_days)
        problem = RouteProblem.from_anchors(
            origin=body.origin.to_destination(),
            stops=[s.to_destination() for s in body.stops],
            final=body.destination.to_destination(),
            restrictions=restrictions,
        )
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    #Validation area -------------------------------------------

    # contatore dedicato alla richiesta: le /compute concorrenti non si sommano a vicenda
    request_stats = SolverStats()
    solver = RouteSolver(
        oracle,
        stats=request_stats,
        horizon_days=settings.search_horizon_days,
        max_concurrent_pricing=settings.max_concurrent_pricing,
    )
    try:
        legs = await solver.solve(problem)
    except ItineraryNotSolvableError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except UnboundedDateRangeError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    except PriceQueryError as exc:
        raise HTTPException(status_code=502, detail=f"Errore del servizio prezzi: {exc}")
    finally:
        solver_stats.absorb(request_stats)

    return RouteOut(
        origin=problem.origin.iata,
        destination=problem.final.iata,
        legs=[
            LegOut(
                from_airport=leg.flight.origin,
                to_airport=leg.flight.destination,
                departure_date=leg.flight.date,
                price=leg.price,
                direct=leg.direct,
            )
            for leg in legs
        ],
        total_price=round(total_price(legs), 2),
        currency=settings.currency,
        oracle_calls=request_stats.oracle_calls,
    )


@router.post("/price", response_model=QuoteOut)
async def single_hop_price(
    oracle: OracleDep,
    body: PriceQueryIn,
) -> QuoteOut:
    """Prezzo più basso per una singola tratta in un giorno preciso."""
    flight = Flight(body.start_city, body.end_city, body.departure_date)
    solver_stats.record_oracle_call()
    try:
        quote = await oracle.get_price(flight)
    except PriceQueryError as exc:
        raise HTTPException(status_code=502, detail=f"Errore del servizio prezzi: {exc}")

    return QuoteOut(
        from_airport=flight.origin,
        to_airport=flight.destination,
        departure_date=flight.date,
        min_price=quote.min_price,
        direct=quote.direct,
        currency=settings.currency,
    )


@router.get("/stats", response_model=StatsOut)
async def stats() -> StatsOut:
    return StatsOut(enabled=solver_stats.enabled, oracle_calls=solver_stats.oracle_calls)
