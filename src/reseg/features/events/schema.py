from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

INTERNAL_REFERRER_MEDIUM = "internal"

# Source columns, in the order the adapter selects them.
EVENT_COLUMNS: tuple[str, ...] = (
    "event_id",
    "domain_userid",
    "domain_sessionidx",
    "collector_tstamp",
    "dvce_tstamp",
    "page_referrer",
    "mkt_medium",
    "mkt_source",
    "mkt_term",
    "mkt_content",
    "mkt_campaign",
    "refr_source",
    "refr_medium",
)


@dataclass(frozen=True, slots=True)
class Event:
    visitor_id: str | None
    device_tstamp: datetime | None

    collector_tstamp: datetime | None = None
    original_session_index: int | None = None
    event_id: str | None = None

    # Referrer descriptor (absent -> treated as "")
    page_referrer: str | None = None
    mkt_medium: str | None = None
    mkt_source: str | None = None
    mkt_term: str | None = None
    mkt_content: str | None = None
    mkt_campaign: str | None = None

    # Referrer classification, e.g. ("google", "search"), (None, "internal")
    refr_source: str | None = None
    refr_medium: str | None = None

    def __post_init__(self) -> None:
        # naive timestamps are UTC; aware ones are converted
        object.__setattr__(self, "device_tstamp", ensure_utc(self.device_tstamp))
        object.__setattr__(self, "collector_tstamp", ensure_utc(self.collector_tstamp))

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Event:
        """
        Build an Event from a source row keyed by EVENT_COLUMNS.
        Missing values stay None and are rejected later by the re-segmenter.
        """
        sessionidx = row.get("domain_sessionidx")
        visitor = row.get("domain_userid")
        return cls(
            visitor_id=None if visitor is None else str(visitor),
            device_tstamp=row.get("dvce_tstamp"),
            collector_tstamp=row.get("collector_tstamp"),
            original_session_index=None if sessionidx is None else int(sessionidx),
            event_id=None if row.get("event_id") is None else str(row["event_id"]),
            page_referrer=row.get("page_referrer"),
            mkt_medium=row.get("mkt_medium"),
            mkt_source=row.get("mkt_source"),
            mkt_term=row.get("mkt_term"),
            mkt_content=row.get("mkt_content"),
            mkt_campaign=row.get("mkt_campaign"),
            refr_source=row.get("refr_source"),
            refr_medium=row.get("refr_medium"),
        )

    def composite_referrer(self) -> str:
        """
        page_referrer + mkt_medium + mkt_source + mkt_term + mkt_content + mkt_campaign
        """
        return "".join(
            v or ""
            for v in (
                self.page_referrer,
                self.mkt_medium,
                self.mkt_source,
                self.mkt_term,
                self.mkt_content,
                self.mkt_campaign,
            )
        )

    def partition_signature(self) -> str | None:
        """
        Composite referrer for partitioning, or None when the event carries
        no external referrer (empty signature or internal referrer medium).
        """
        if self.refr_medium == INTERNAL_REFERRER_MEDIUM:
            return None
        sig = self.composite_referrer()
        return sig or None


def ensure_utc(dt: datetime | None) -> datetime | None:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def naive_utc(dt: datetime | None) -> datetime | None:
    # DuckDB TIMESTAMP columns hold naive UTC values
    if dt is None:
        return None
    return ensure_utc(dt).replace(tzinfo=None)
