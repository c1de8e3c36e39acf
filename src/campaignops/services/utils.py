from __future__ import annotations

from datetime import UTC, date, datetime


def utc_now_iso() -> str:
    return datetime.now(UTC).replace(microsecond=0).isoformat()


def utc_now() -> datetime:
    return datetime.now(UTC).replace(microsecond=0)


def today_iso() -> str:
    return date.today().isoformat()


def clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None
