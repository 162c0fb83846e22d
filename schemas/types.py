"""Shared field types for schemas."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated
from uuid import uuid4

from pydantic import AfterValidator


def _as_utc(value: datetime) -> datetime:
    # Naive datetimes are taken to be UTC so mixed sources sort together.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    """Return an opaque random identifier."""
    return uuid4().hex
