from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from reseg.core.errors import InvalidInputOrder
from reseg.features.attribution.service import (
    AttributionConfig,
    AttributionService,
    SessionStart,
    attribute,
    count_labels,
    session_starts,
)
from reseg.features.events.schema import Event
from reseg.features.sessions.service import resegment

T0 = datetime(2026, 1, 1, tzinfo=UTC)
DAY = 86400
HORIZON = 15_811_200


def _ss(idx: int, t: float, visitor: str = "U1", **fields) -> SessionStart:
    return SessionStart(
        visitor_id=visitor,
        session_index=idx,
        device_tstamp=T0 + timedelta(seconds=t),
        **fields,
    )


def _labels(out) -> list[tuple[str, str]]:
    return [(a.source, a.medium) for a in out]


# ----------------------------
# Precedence
# ----------------------------


def test_carry_forward_within_horizon() -> None:
    starts = [
        _ss(0, 0),
        _ss(1, 1 * DAY),
        _ss(2, 2 * DAY, mkt_source="google", mkt_medium="cpc"),
        _ss(3, 30 * DAY),
    ]
    out = attribute(starts)
    assert [a.source for a in out] == ["direct", "direct", "mkt-google", "mkt-google"]
    assert out[3].medium == "mkt-cpc"


def test_carry_forward_expires_after_horizon() -> None:
    starts = [
        _ss(0, 0),
        _ss(1, 1 * DAY),
        _ss(2, 2 * DAY, mkt_source="google", mkt_medium="cpc"),
        _ss(3, 2 * DAY + 200 * DAY),
    ]
    assert [a.source for a in attribute(starts)] == ["direct", "direct", "mkt-google", "direct"]


def test_carry_forward_boundary_is_exclusive() -> None:
    starts = [
        _ss(0, 0, mkt_source="google", mkt_medium="cpc"),
        _ss(1, HORIZON - 1),
        _ss(2, HORIZON),
    ]
    assert [a.source for a in attribute(starts)] == ["mkt-google", "mkt-google", "direct"]


def test_horizon_measured_from_partition_first_timestamp() -> None:
    # later carried sessions do not refresh the window
    starts = [
        _ss(0, 0, mkt_source="news", mkt_medium="email"),
        _ss(1, 100 * DAY),
        _ss(2, 190 * DAY),
    ]
    assert [a.source for a in attribute(starts)] == ["mkt-news", "mkt-news", "direct"]


def test_marketing_source_wins_over_referrer_and_carry() -> None:
    starts = [
        _ss(0, 0, mkt_source="google", mkt_medium="cpc"),
        _ss(1, DAY, mkt_source="bing", mkt_medium="cpc", refr_source="Google", refr_medium="search"),
    ]
    assert _labels(attribute(starts)) == [("mkt-google", "mkt-cpc"), ("mkt-bing", "mkt-cpc")]


def test_referrer_wins_over_carry_forward() -> None:
    starts = [
        _ss(0, 0, mkt_source="google", mkt_medium="cpc"),
        _ss(1, DAY, refr_source="Facebook", refr_medium="social"),
        _ss(2, 2 * DAY),
    ]
    assert _labels(attribute(starts)) == [
        ("mkt-google", "mkt-cpc"),
        ("refr-Facebook", "refr-social"),
        ("mkt-google", "mkt-cpc"),
    ]


def test_new_campaign_replaces_carried_value() -> None:
    starts = [
        _ss(0, 0, mkt_source="google", mkt_medium="cpc"),
        _ss(1, DAY, mkt_source="newsletter", mkt_medium="email"),
        _ss(2, 2 * DAY),
    ]
    assert attribute(starts)[2].source == "mkt-newsletter"


def test_missing_medium_renders_empty_suffix() -> None:
    out = attribute([_ss(0, 0, mkt_source="google"), _ss(1, 10, refr_source="Bing")])
    assert _labels(out) == [("mkt-google", "mkt-"), ("refr-Bing", "refr-")]


def test_empty_marketing_source_is_absent() -> None:
    out = attribute([_ss(0, 0, mkt_source="", mkt_medium="cpc")])
    assert _labels(out) == [("direct", "direct")]


def test_custom_horizon() -> None:
    cfg = AttributionConfig(recency_horizon_seconds=60)
    starts = [_ss(0, 0, mkt_source="g"), _ss(1, 59), _ss(2, 60)]
    assert [a.source for a in attribute(starts, cfg)] == ["mkt-g", "mkt-g", "direct"]


# ----------------------------
# Visitors + ordering
# ----------------------------


def test_carry_forward_does_not_cross_visitors() -> None:
    starts = [
        _ss(0, 0, visitor="A", mkt_source="google", mkt_medium="cpc"),
        _ss(0, 10, visitor="B"),
        _ss(1, 20, visitor="A"),
    ]
    out = attribute(starts)
    assert [a.session.visitor_id for a in out] == ["A", "B", "A"]
    assert [a.source for a in out] == ["mkt-google", "direct", "mkt-google"]


def test_out_of_order_session_index_raises() -> None:
    with pytest.raises(InvalidInputOrder) as ei:
        attribute([_ss(1, 0), _ss(0, 10)])
    assert ei.value.visitor_id == "U1"


def test_invalid_horizon_rejected() -> None:
    with pytest.raises(ValueError):
        AttributionService(AttributionConfig(recency_horizon_seconds=0))


# ----------------------------
# Session starts + counts
# ----------------------------


def test_session_starts_from_resegmented_events() -> None:
    events = [
        Event(visitor_id="U1", device_tstamp=T0, mkt_source="google", mkt_medium="cpc"),
        Event(visitor_id="U1", device_tstamp=T0 + timedelta(seconds=60)),
        Event(visitor_id="U1", device_tstamp=T0 + timedelta(seconds=4000)),
    ]
    starts = session_starts(resegment(events))
    assert [s.session_index for s in starts] == [0, 1]
    assert starts[0].mkt_source == "google"
    assert starts[1].device_tstamp == T0 + timedelta(seconds=4000)

    assert [a.source for a in attribute(starts)] == ["mkt-google", "mkt-google"]


def test_count_labels_orders_by_descending_count() -> None:
    starts = [
        _ss(0, 0, visitor="A"),
        _ss(0, 0, visitor="B", refr_source="Google", refr_medium="search"),
        _ss(0, 0, visitor="C", refr_source="Google", refr_medium="search"),
        _ss(0, 0, visitor="D", refr_source="Bing", refr_medium="search"),
        _ss(0, 0, visitor="E", mkt_source="news", mkt_medium="email"),
    ]
    counts = count_labels(attribute(starts))
    assert counts.sources == [
        ("refr-Google", 2),
        ("direct", 1),
        ("mkt-news", 1),
        ("refr-Bing", 1),
    ]
    assert counts.mediums == [("refr-search", 3), ("direct", 1), ("mkt-email", 1)]
