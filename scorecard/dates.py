from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from scorecard.errors import ValidationError


def parse_iso_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value or "").strip())
    except ValueError:
        raise ValidationError(f"Invalid date: {value!r}")


def week_monday_for(day) -> date:
    day = parse_iso_date(day)
    return day - timedelta(days=day.weekday())


def week_days(monday) -> list[date]:
    monday = parse_iso_date(monday)
    return [monday + timedelta(days=offset) for offset in range(7)]


def week_sunday_for(monday) -> date:
    return parse_iso_date(monday) + timedelta(days=6)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def today_in_timezone(timezone_name: str | None = None) -> date:
    if timezone_name and timezone_name != "local":
        try:
            return datetime.now(ZoneInfo(timezone_name)).date()
        except (ZoneInfoNotFoundError, ValueError):
            return date.today()
    return date.today()
