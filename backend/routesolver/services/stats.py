"""
Statistiche del solver: quante volte è stato interrogato l'oracle.

Solo osservabilità: nessun effetto sulla correttezza della ricerca.
"""
from dataclasses import dataclass

from routesolver.config import settings


@dataclass
class SolverStats:
    enabled: bool = True
    oracle_calls: int = 0

    def record_oracle_call(self) -> None:
        if self.enabled:
            self.oracle_calls += 1

    def absorb(self, other: "SolverStats") -> None:
        """Somma le chiamate contate da un'altra istanza (es. quella di una singola richiesta)."""
        if self.enabled:
            self.oracle_calls += other.oracle_calls

    def reset(self) -> None:
        self.oracle_calls = 0


# Istanza di processo, esposta da GET /api/v1/routes/stats
solver_stats = SolverStats(enabled=settings.stats_enabled)
