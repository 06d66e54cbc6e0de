from __future__ import annotations

from datetime import date, datetime, timezone


def split_pipe(s: str | None) -> list[str]:
    return [x.strip() for x in str(s or "").split("|") if x.strip()]


def join_pipe(values) -> str:
    return "|".join(sorted({str(v).strip() for v in values if str(v).strip()}))


def iso_or_none(v: date | datetime | None) -> str | None:
    return v.isoformat() if v is not None else None


def parse_date(s: str | None) -> date | None:
    if not s:
        return None
    return date.fromisoformat(s)


def parse_dt(s: str | None) -> datetime | None:
    if not s:
        return None
    return datetime.fromisoformat(s)


def parse_optional_float(s: str) -> float | None:
    s = str(s).strip()
    if not s:
        return None
    return float(s)


def parse_optional_int(s: str) -> int | None:
    s = str(s).strip()
    if not s:
        return None
    return int(s)


def utc_iso(dt: datetime) -> str:
    # stored instants are UTC so they sort/compare as plain strings in SQL
    return dt.astimezone(timezone.utc).isoformat(timespec="seconds")
