from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime

from reseg.core.errors import InvalidInputOrder, MissingRequiredField
from reseg.features.events.schema import Event
from reseg.features.sessions.service import ResegmentedEvent

DIRECT = "direct"
MKT_PREFIX = "mkt-"
REFR_PREFIX = "refr-"


@dataclass(frozen=True)
class AttributionConfig:
    enabled: bool = True
    # 183 days; carry-forward applies while elapsed < horizon
    recency_horizon_seconds: float = 15_811_200.0


@dataclass(frozen=True, slots=True)
class SessionStart:
    visitor_id: str
    session_index: int
    device_tstamp: datetime
    mkt_source: str | None = None
    mkt_medium: str | None = None
    refr_source: str | None = None
    refr_medium: str | None = None

    @classmethod
    def from_event(cls, event: Event, session_index: int) -> SessionStart:
        if not event.visitor_id:
            raise MissingRequiredField(
                "visitor_id", visitor_id=event.visitor_id, device_tstamp=event.device_tstamp
            )
        if event.device_tstamp is None:
            raise MissingRequiredField("device_tstamp", visitor_id=event.visitor_id)
        return cls(
            visitor_id=event.visitor_id,
            session_index=int(session_index),
            device_tstamp=event.device_tstamp,
            mkt_source=event.mkt_source,
            mkt_medium=event.mkt_medium,
            refr_source=event.refr_source,
            refr_medium=event.refr_medium,
        )


@dataclass(frozen=True, slots=True)
class AttributedSession:
    session: SessionStart
    source: str
    medium: str


@dataclass(frozen=True)
class LabelCounts:
    # (label, count), descending count then label
    sources: list[tuple[str, int]]
    mediums: list[tuple[str, int]]


def _present(v: str | None) -> bool:
    return bool(v)


class AttributionService:
    """
    Assigns a (source, medium) label to every session start.

    Precedence per session:
      1. explicit marketing source      -> mkt-<source>, mkt-<medium>
      2. referrer source                -> refr-<source>, refr-<medium>
      3. carried marketing value of the enclosing campaign partition,
         while elapsed < recency horizon -> mkt-<source>, mkt-<medium>
      4. otherwise                      -> direct, direct

    A campaign partition starts at every session start that carries a
    marketing source and lasts until the next one for the same visitor.
    """

    def __init__(self, cfg: AttributionConfig | None = None) -> None:
        cfg = cfg or AttributionConfig()
        if float(cfg.recency_horizon_seconds) <= 0:
            raise ValueError("attribution.recency_horizon_seconds must be > 0")
        self.cfg = cfg

    def attribute(self, session_starts: Iterable[SessionStart]) -> list[AttributedSession]:
        groups: dict[str, list[tuple[int, SessionStart]]] = {}
        for pos, s in enumerate(session_starts):
            if not s.visitor_id:
                raise MissingRequiredField(
                    "visitor_id", visitor_id=s.visitor_id, device_tstamp=s.device_tstamp
                )
            groups.setdefault(s.visitor_id, []).append((pos, s))

        total = sum(len(g) for g in groups.values())
        out: list[AttributedSession | None] = [None] * total
        for positioned in groups.values():
            results = self.attribute_visitor([s for _, s in positioned])
            for (pos, _), r in zip(positioned, results):
                out[pos] = r
        return [r for r in out if r is not None]

    def attribute_visitor(self, starts: Sequence[SessionStart]) -> list[AttributedSession]:
        horizon_s = float(self.cfg.recency_horizon_seconds)

        out: list[AttributedSession] = []
        prev_index: int | None = None
        # (first device_tstamp, mkt_source, mkt_medium) of the current campaign partition
        carry: tuple[datetime, str, str | None] | None = None

        for s in starts:
            if s.device_tstamp is None:
                raise MissingRequiredField("device_tstamp", visitor_id=s.visitor_id)
            if prev_index is not None and s.session_index <= prev_index:
                raise InvalidInputOrder(
                    f"session_index {s.session_index} does not follow {prev_index}",
                    visitor_id=s.visitor_id,
                    device_tstamp=s.device_tstamp,
                )
            prev_index = s.session_index

            if _present(s.mkt_source):
                carry = (s.device_tstamp, str(s.mkt_source), s.mkt_medium)
                source = MKT_PREFIX + str(s.mkt_source)
                medium = MKT_PREFIX + (s.mkt_medium or "")
            elif _present(s.refr_source):
                source = REFR_PREFIX + str(s.refr_source)
                medium = REFR_PREFIX + (s.refr_medium or "")
            elif carry is not None and self._within_horizon(carry[0], s.device_tstamp, horizon_s):
                source = MKT_PREFIX + carry[1]
                medium = MKT_PREFIX + (carry[2] or "")
            else:
                source = DIRECT
                medium = DIRECT

            out.append(AttributedSession(session=s, source=source, medium=medium))

        return out

    @staticmethod
    def _within_horizon(first_ts: datetime, ts: datetime, horizon_s: float) -> bool:
        return (ts - first_ts).total_seconds() < horizon_s


def session_starts(resegmented: Iterable[ResegmentedEvent]) -> list[SessionStart]:
    """
    First event of every re-derived session, in input order.
    """
    return [
        SessionStart.from_event(r.event, r.session_index)
        for r in resegmented
        if r.is_session_start
    ]


def attribute(
    starts: Iterable[SessionStart], cfg: AttributionConfig | None = None
) -> list[AttributedSession]:
    return AttributionService(cfg).attribute(starts)


def count_labels(attributed: Iterable[AttributedSession]) -> LabelCounts:
    sources: Counter[str] = Counter()
    mediums: Counter[str] = Counter()
    for a in attributed:
        sources[a.source] += 1
        mediums[a.medium] += 1
    return LabelCounts(sources=_ordered(sources), mediums=_ordered(mediums))


def _ordered(c: Counter[str]) -> list[tuple[str, int]]:
    return sorted(c.items(), key=lambda kv: (-kv[1], kv[0]))
