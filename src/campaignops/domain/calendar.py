from __future__ import annotations

from datetime import date, timedelta

from campaignops.domain.models import Week
from campaignops.domain.rules import ValidationError

DAYS_PER_WEEK = 7


def week_count(start_date: date, end_date: date) -> int:
    if end_date <= start_date:
        raise ValidationError("end_date must be after start_date.")
    days = (end_date - start_date).days
    return max(1, -(-days // DAYS_PER_WEEK))


def generate_weeks(start_date: date, end_date: date) -> tuple[Week, ...]:
    weeks: list[Week] = []
    for index in range(week_count(start_date, end_date)):
        week_start = start_date + timedelta(days=index * DAYS_PER_WEEK)
        week_end = min(week_start + timedelta(days=DAYS_PER_WEEK - 1), end_date)
        weeks.append(
            Week(
                week_number=index + 1,
                start_date=week_start,
                end_date=week_end,
                label=week_label(week_start, week_end),
            )
        )
    return tuple(weeks)


def week_label(start: date, end: date) -> str:
    if (start.year, start.month) == (end.year, end.month):
        return f"{start:%b} {start.day} - {end.day}"
    return f"{start:%b} {start.day} - {end:%b} {end.day}"
