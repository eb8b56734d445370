"""
Algebra degli intervalli di date per i vincoli dell'itinerario.

Un lato della permanenza in una città (arrivo o partenza) è uno tra:
  Anytime    → nessun vincolo (si adatta agli estremi dell'altro operando)
  FixedDate  → un solo giorno
  DateSpan   → intervallo chiuso [low, high]
  EmptyRange → intersezione impossibile (distinto da Anytime)

Usato da route_solver per calcolare, nodo per nodo, le date di volo candidate.
Nessun I/O: tutte le funzioni sono pure.
"""
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterator


class UnboundedDateRangeError(ValueError):
    """Enumerazione richiesta su un intervallo senza estremo inferiore o superiore."""


@dataclass(frozen=True)
class DateSequence:
    """Sequenza finita e ripetibile di giorni consecutivi, in ordine crescente."""
    first: date
    last: date

    def __iter__(self) -> Iterator[date]:
        day = self.first
        while day <= self.last:
            yield day
            day += timedelta(days=1)

    def __len__(self) -> int:
        return max(0, (self.last - self.first).days + 1)


_NO_DATES = DateSequence(date.max, date.min)


class SingleDateRange:
    """Base comune delle quattro varianti. Le sottoclassi espongono low/high."""

    low: date | None = None
    high: date | None = None

    def is_empty(self) -> bool:
        return False

    def intersect(self, other: "SingleDateRange") -> "SingleDateRange":
        """
        Intervallo più stretto compatibile con entrambi.

        Anytime non restringe mai l'altro lato: ne adotta gli estremi.
        Un solo giorno in comune collassa in FixedDate, nessuno in EmptyRange.
        """
        if self.is_empty() or other.is_empty():
            return EMPTY
        if isinstance(self, Anytime):
            return other
        if isinstance(other, Anytime):
            return self
        return make_range(max(self.low, other.low), min(self.high, other.high))

    def truncate(self, day: date) -> "SingleDateRange":
        """Rimuove tutti i giorni <= day (niente voli il giorno dell'arrivo o prima)."""
        if self.is_empty() or isinstance(self, Anytime):
            return self
        return make_range(max(self.low, day + timedelta(days=1)), self.high)

    def iter_dates(
        self,
        src_date: date | None = None,
        min_days: int | None = None,
        max_days: int | None = None,
    ) -> DateSequence:
        """
        Date candidate dell'intervallo, in ordine crescente.

        Se src_date è dato:
          min_days → nessuna data prima di src_date + min_days
          max_days → nessuna data dopo src_date + max_days

        Raises:
            UnboundedDateRangeError: se manca un estremo (tipicamente Anytime
                                     senza src_date o senza limiti di giorni).
        """
        if self.is_empty():
            return _NO_DATES

        low, high = self.low, self.high
        if src_date is not None:
            if min_days is not None:
                floor = src_date + timedelta(days=min_days)
                low = floor if low is None else max(low, floor)
            if max_days is not None:
                cutoff = src_date + timedelta(days=max_days)
                high = cutoff if high is None else min(high, cutoff)

        if low is None or high is None:
            raise UnboundedDateRangeError(
                f"Impossibile enumerare {self!r}: intervallo senza estremi"
            )
        return DateSequence(low, high)


@dataclass(frozen=True)
class Anytime(SingleDateRange):
    pass


@dataclass(frozen=True)
class EmptyRange(SingleDateRange):

    def is_empty(self) -> bool:
        return True


@dataclass(frozen=True)
class FixedDate(SingleDateRange):
    day: date

    @property
    def low(self) -> date:
        return self.day

    @property
    def high(self) -> date:
        return self.day


@dataclass(frozen=True)
class DateSpan(SingleDateRange):
    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(f"DateSpan non valido: {self.start} > {self.end}")

    @property
    def low(self) -> date:
        return self.start

    @property
    def high(self) -> date:
        return self.end


ANYTIME = Anytime()
EMPTY = EmptyRange()


def make_range(low: date, high: date) -> SingleDateRange:
    """Costruisce la variante normalizzata per [low, high]."""
    if low > high:
        return EMPTY
    if low == high:
        return FixedDate(low)
    return DateSpan(low, high)


# ---------------------------------------------------------------------------
# Vincoli per destinazione
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DateRestrictions:
    """Giorni minimi/massimi tra l'arrivo in una città e la partenza successiva."""
    min_days: int | None = None
    max_days: int | None = None

    def __post_init__(self) -> None:
        for value in (self.min_days, self.max_days):
            if value is not None and value < 0:
                raise ValueError("I giorni di permanenza non possono essere negativi")
        if self.min_days is not None and self.max_days is not None and self.min_days > self.max_days:
            raise ValueError(f"min_days ({self.min_days}) > max_days ({self.max_days})")


NO_RESTRICTIONS = DateRestrictions()


@dataclass(frozen=True)
class DateConstraints:
    arrive: SingleDateRange = ANYTIME
    depart: SingleDateRange = ANYTIME
    # istanza condivisa da tutte le destinazioni di un problema
    restrictions: DateRestrictions = field(default=NO_RESTRICTIONS)

    def flight_dates(
        self,
        previous: "DateConstraints",
        arrived_on: date | None,
        horizon_days: int | None = None,
    ) -> DateSequence:
        """
        Date possibili per il volo che porta qui dalla tappa precedente.

        Interseca il mio arrivo con la partenza della tappa precedente; se
        la tappa precedente ha una data di arrivo applica anche la regola
        min/max giorni della permanenza (almeno un giorno dopo l'arrivo).
        horizon_days sostituisce max_days quando questo non è impostato.
        """
        window = self.arrive.intersect(previous.depart)
        if arrived_on is None:
            return window.iter_dates()

        window = window.truncate(arrived_on)
        rules = previous.restrictions
        min_days = max(rules.min_days or 0, 1)
        max_days = rules.max_days if rules.max_days is not None else horizon_days
        return window.iter_dates(arrived_on, min_days, max_days)


@dataclass(frozen=True)
class Destination:
    """Una tappa: codice IATA + finestre di arrivo/partenza."""
    iata: str
    constraints: DateConstraints = field(default_factory=DateConstraints)
