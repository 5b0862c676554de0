from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from reseg.core.errors import InvalidInputOrder, MissingRequiredField
from reseg.features.events.schema import Event


def require_fields(event: Event) -> tuple[str, datetime]:
    """
    Returns (visitor_id, device_tstamp) or raises MissingRequiredField.
    """
    if not event.visitor_id:
        raise MissingRequiredField(
            "visitor_id", visitor_id=event.visitor_id, device_tstamp=event.device_tstamp
        )
    if event.device_tstamp is None:
        raise MissingRequiredField(
            "device_tstamp", visitor_id=event.visitor_id, device_tstamp=None
        )
    return event.visitor_id, event.device_tstamp


def check_order(prev: Event | None, cur: Event) -> None:
    """
    Within one visitor, device timestamps must not go backwards.
    Equal timestamps are allowed and keep their input order.
    """
    if prev is None:
        return
    if cur.device_tstamp < prev.device_tstamp:  # type: ignore[operator]
        raise InvalidInputOrder(
            f"device_tstamp goes backwards (previous={prev.device_tstamp.isoformat()})",  # type: ignore[union-attr]
            visitor_id=cur.visitor_id,
            device_tstamp=cur.device_tstamp,
        )


def group_by_visitor(events: Iterable[Event]) -> dict[str, list[tuple[int, Event]]]:
    """
    Groups a stream by visitor id, keeping each event's input position.

    Visitors may interleave in the stream; the relative order of one
    visitor's events is preserved. Dict order follows first appearance.
    """
    groups: dict[str, list[tuple[int, Event]]] = {}
    for pos, e in enumerate(events):
        visitor_id, _ = require_fields(e)
        groups.setdefault(visitor_id, []).append((pos, e))
    return groups
