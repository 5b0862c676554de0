from __future__ import annotations

from datetime import UTC, datetime, timedelta

from reseg.features.events.schema import Event
from reseg.features.reconcile.service import reconcile
from reseg.features.sessions.service import resegment

T0 = datetime(2026, 1, 1, tzinfo=UTC)


def _ev(visitor: str, t: float, original: int | None, **fields) -> Event:
    return Event(
        visitor_id=visitor,
        device_tstamp=T0 + timedelta(seconds=t),
        original_session_index=original,
        **fields,
    )


def test_referrer_change_adds_sessions_over_tracker_count() -> None:
    events = [
        # tracker saw one session; a campaign click mid-session splits it
        _ev("A", 0, 1, page_referrer="https://google.com/"),
        _ev("A", 60, 1),
        _ev("A", 120, 1, page_referrer="https://facebook.com/"),
        # same on both sides
        _ev("B", 0, 1),
        _ev("B", 4000, 2),
    ]
    summary = reconcile(resegment(events))

    assert summary.visitors == 2
    assert summary.events == 5
    assert summary.original_sessions == 3
    assert summary.resegmented_sessions == 4
    assert summary.delta == 1

    by_visitor = {r.visitor_id: r for r in summary.per_visitor}
    assert by_visitor["A"].original_sessions == 1
    assert by_visitor["A"].resegmented_sessions == 2
    assert by_visitor["A"].delta == 1
    assert by_visitor["B"].delta == 0


def test_missing_original_index_is_ignored() -> None:
    summary = reconcile(resegment([_ev("A", 0, None), _ev("A", 10, None)]))
    assert summary.original_sessions == 0
    assert summary.resegmented_sessions == 1


def test_empty_input() -> None:
    summary = reconcile([])
    assert summary.visitors == 0
    assert summary.events == 0
    assert summary.delta == 0
    assert summary.per_visitor == []
