"""Append-only sink for reconciliation outcomes."""

import asyncio

from .entities import ReconciliationOutcome, Verdict


class OutcomeReporter:
    """Collects one outcome per input record, in call order.

    When records are reconciled concurrently, workers append through
    ``record_async`` so appends are serialized.
    """

    def __init__(self):
        self._outcomes: list[ReconciliationOutcome] = []
        self._lock = asyncio.Lock()

    def record(self, outcome: ReconciliationOutcome) -> None:
        self._outcomes.append(outcome)

    async def record_async(self, outcome: ReconciliationOutcome) -> None:
        async with self._lock:
            self._outcomes.append(outcome)

    @property
    def outcomes(self) -> tuple[ReconciliationOutcome, ...]:
        return tuple(self._outcomes)

    def ordered_outcomes(self) -> list[ReconciliationOutcome]:
        """Outcomes in input order (call order differs when records ran concurrently)."""
        return sorted(self._outcomes, key=lambda o: o.position)

    def __len__(self) -> int:
        return len(self._outcomes)

    def tallies(self) -> dict[Verdict, int]:
        """Count per verdict that occurred at least once."""
        counts: dict[Verdict, int] = {}
        for outcome in self._outcomes:
            counts[outcome.verdict] = counts.get(outcome.verdict, 0) + 1
        return counts

    @property
    def counts(self) -> dict[str, int]:
        """Count for every verdict, zeros included, keyed by verdict value."""
        tallies = self.tallies()
        return {verdict.value: tallies.get(verdict, 0) for verdict in Verdict}

    @property
    def has_failures(self) -> bool:
        return any(o.verdict == Verdict.FAILED for o in self._outcomes)

    def failed_serials(self) -> list[str]:
        """Raw serials of FAILED records, for re-running the unresolved subset."""
        return [o.serial_number for o in self._outcomes if o.verdict == Verdict.FAILED]
