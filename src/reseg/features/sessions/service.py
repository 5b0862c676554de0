from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from reseg.core.errors import InvalidInputOrder
from reseg.features.events.schema import Event
from reseg.features.events.service import check_order, group_by_visitor, require_fields

# ----------------------------
# Config models
# ----------------------------


@dataclass(frozen=True)
class SessionsConfig:
    """
    inactivity_timeout_seconds:
      - a gap >= this value between two events of a visitor opens a new session
    index_base:
      - index assigned to the first session of every visitor (0 or 1)
    """

    inactivity_timeout_seconds: float = 1800.0
    index_base: int = 0


@dataclass(frozen=True, slots=True)
class ResegmentedEvent:
    event: Event
    session_index: int
    referrer_partition: int
    representative_referrer: str | None
    is_session_start: bool


# ----------------------------
# Service
# ----------------------------


class ResegmentService:
    """
    Re-derives session indices from a per-visitor, time-ordered event log.

    A new session starts at a visitor's first event, and afterwards whenever
    either rule fires against the immediately preceding event:
      - inactivity: elapsed device time >= inactivity_timeout_seconds
      - provenance: the representative referrer of the current referrer
        partition differs from the predecessor's (None == None)

    Every event with an external referrer (non-empty composite referrer and
    refr_medium != "internal") opens a new referrer partition; all other
    events inherit the representative referrer of the partition they fall in.
    The leading partition is represented by the composite referrer of the
    visitor's first event, internal or not.
    """

    def __init__(self, cfg: SessionsConfig | None = None) -> None:
        cfg = cfg or SessionsConfig()
        if float(cfg.inactivity_timeout_seconds) <= 0:
            raise ValueError("sessions.inactivity_timeout_seconds must be > 0")
        if int(cfg.index_base) not in (0, 1):
            raise ValueError(f"sessions.index_base must be 0 or 1, got {cfg.index_base!r}")
        self.cfg = cfg

    def resegment(self, events: Iterable[Event]) -> list[ResegmentedEvent]:
        """
        Re-segments a stream holding any number of visitors.

        Each visitor's events must be in device-timestamp order; visitors may
        interleave. The result is aligned with the input order.
        """
        groups = group_by_visitor(events)
        total = sum(len(g) for g in groups.values())
        out: list[ResegmentedEvent | None] = [None] * total

        for positioned in groups.values():
            results = self.resegment_visitor([e for _, e in positioned])
            for (pos, _), r in zip(positioned, results):
                out[pos] = r

        return [r for r in out if r is not None]

    def resegment_visitor(self, events: Sequence[Event]) -> list[ResegmentedEvent]:
        timeout_s = float(self.cfg.inactivity_timeout_seconds)
        base = int(self.cfg.index_base)

        out: list[ResegmentedEvent] = []
        visitor: str | None = None
        prev: Event | None = None
        prev_rep: str | None = None

        partition = 0
        rep: str | None = None
        boundaries = 0

        for e in events:
            visitor_id, ts = require_fields(e)
            if visitor is None:
                visitor = visitor_id
            elif visitor_id != visitor:
                raise InvalidInputOrder(
                    f"event belongs to another visitor (expected {visitor!r})",
                    visitor_id=visitor_id,
                    device_tstamp=ts,
                )
            check_order(prev, e)

            sig = e.partition_signature()
            if sig is not None:
                partition += 1
                rep = sig
            elif prev is None:
                # leading partition: first-seen composite, even if internal
                rep = e.composite_referrer() or None

            if prev is None:
                new_session = True
            else:
                elapsed_s = (ts - prev.device_tstamp).total_seconds()  # type: ignore[operator]
                new_session = not (elapsed_s < timeout_s and rep == prev_rep)

            if new_session:
                boundaries += 1

            out.append(
                ResegmentedEvent(
                    event=e,
                    session_index=base + boundaries - 1,
                    referrer_partition=partition,
                    representative_referrer=rep,
                    is_session_start=new_session,
                )
            )
            prev = e
            prev_rep = rep

        return out


def resegment(
    events: Iterable[Event], cfg: SessionsConfig | None = None
) -> list[ResegmentedEvent]:
    return ResegmentService(cfg).resegment(events)
