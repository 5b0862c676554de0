from __future__ import annotations

from datetime import datetime


class ResegmentError(ValueError):
    """
    Raised when an input record violates a precondition of the transform.

    Carries the identity of the offending record so callers can locate it
    in the source table.
    """

    def __init__(
        self,
        message: str,
        *,
        visitor_id: str | None = None,
        device_tstamp: datetime | None = None,
    ) -> None:
        self.visitor_id = visitor_id
        self.device_tstamp = device_tstamp
        super().__init__(
            f"{message} (visitor_id={visitor_id!r}, device_tstamp={_fmt_ts(device_tstamp)})"
        )


class InvalidInputOrder(ResegmentError):
    pass


class MissingRequiredField(ResegmentError):
    def __init__(
        self,
        field_name: str,
        *,
        visitor_id: str | None = None,
        device_tstamp: datetime | None = None,
    ) -> None:
        self.field_name = field_name
        super().__init__(
            f"missing required field {field_name!r}",
            visitor_id=visitor_id,
            device_tstamp=device_tstamp,
        )


def _fmt_ts(ts: datetime | None) -> str:
    return "None" if ts is None else ts.isoformat()
