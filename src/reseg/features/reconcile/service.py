from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from reseg.features.sessions.service import ResegmentedEvent


@dataclass(frozen=True, slots=True)
class VisitorReconciliation:
    visitor_id: str
    events: int
    original_sessions: int
    resegmented_sessions: int

    @property
    def delta(self) -> int:
        return self.resegmented_sessions - self.original_sessions


@dataclass(frozen=True)
class ReconciliationSummary:
    visitors: int
    events: int
    original_sessions: int
    resegmented_sessions: int
    per_visitor: list[VisitorReconciliation] = field(default_factory=list)

    @property
    def delta(self) -> int:
        return self.resegmented_sessions - self.original_sessions


@dataclass
class _Acc:
    events: int = 0
    original: set[int] = field(default_factory=set)
    resegmented: set[int] = field(default_factory=set)


def reconcile(resegmented: Iterable[ResegmentedEvent]) -> ReconciliationSummary:
    """
    Compares the tracker's session count with the re-derived one.

    Original sessions per visitor = distinct original session indices
    (events without one are ignored). Re-derived sessions = distinct new
    session indices.
    """
    accs: dict[str, _Acc] = {}
    for r in resegmented:
        visitor_id = str(r.event.visitor_id)
        acc = accs.get(visitor_id)
        if acc is None:
            acc = accs[visitor_id] = _Acc()
        acc.events += 1
        if r.event.original_session_index is not None:
            acc.original.add(int(r.event.original_session_index))
        acc.resegmented.add(r.session_index)

    rows = [
        VisitorReconciliation(
            visitor_id=v,
            events=a.events,
            original_sessions=len(a.original),
            resegmented_sessions=len(a.resegmented),
        )
        for v, a in accs.items()
    ]

    return ReconciliationSummary(
        visitors=len(rows),
        events=sum(r.events for r in rows),
        original_sessions=sum(r.original_sessions for r in rows),
        resegmented_sessions=sum(r.resegmented_sessions for r in rows),
        per_visitor=rows,
    )
