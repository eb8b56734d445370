from datetime import date
from pydantic import BaseModel, Field, field_validator, model_validator

from routesolver.services.date_ranges import (
    ANYTIME,
    DateConstraints,
    Destination,
    FixedDate,
    SingleDateRange,
    make_range,
)


# ---------------------------------------------------------------------------
# Finestre di date e tappe (input del route planner)
# ---------------------------------------------------------------------------

class DateWindowIn(BaseModel):
    # nessuna data = qualsiasi giorno, solo start = data fissa, entrambe = intervallo
    start: date | None = None
    end: date | None = None

    @model_validator(mode="after")
    def check_bounds(self) -> "DateWindowIn":
        if self.end is not None and self.start is None:
            raise ValueError("end richiede start")
        if self.start is not None and self.end is not None and self.end < self.start:
            raise ValueError("end deve essere >= start")
        return self

    def to_range(self) -> SingleDateRange:
        if self.start is None:
            return ANYTIME
        if self.end is None:
            return FixedDate(self.start)
        return make_range(self.start, self.end)


class StopIn(BaseModel):
    iata: str = Field(min_length=3, max_length=3, description="Codice IATA")
    arrive: DateWindowIn = DateWindowIn()
    depart: DateWindowIn = DateWindowIn()

    @field_validator("iata", mode="before")
    @classmethod
    def uppercase_iata(cls, v: str) -> str:
        return v.upper() if isinstance(v, str) else v

    def to_destination(self) -> Destination:
        return Destination(
            iata=self.iata,
            constraints=DateConstraints(arrive=self.arrive.to_range(), depart=self.depart.to_range()),
        )


class RouteQueryIn(BaseModel):
    origin: StopIn
    destination: StopIn
    stops: list[StopIn] = []
    min_days: int | None = Field(default=None, ge=0)
    max_days: int | None = Field(default=None, ge=0)


# ---------------------------------------------------------------------------
# Risposta del route planner
# ---------------------------------------------------------------------------

class LegOut(BaseModel):
    from_airport: str
    to_airport: str
    departure_date: date
    price: float
    direct: bool


class RouteOut(BaseModel):
    origin: str
    destination: str
    legs: list[LegOut]
    total_price: float
    currency: str
    oracle_calls: int


# ---------------------------------------------------------------------------
# Prezzo di una singola tratta
# ---------------------------------------------------------------------------

class PriceQueryIn(BaseModel):
    start_city: str = Field(min_length=3, max_length=3)
    end_city: str = Field(min_length=3, max_length=3)
    departure_date: date

    @field_validator("start_city", "end_city", mode="before")
    @classmethod
    def uppercase_iata(cls, v: str) -> str:
        return v.upper() if isinstance(v, str) else v


class QuoteOut(BaseModel):
    from_airport: str
    to_airport: str
    departure_date: date
    min_price: float
    direct: bool
    currency: str


class StatsOut(BaseModel):
    enabled: bool
    oracle_calls: int
