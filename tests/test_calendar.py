from datetime import date

import pytest

from campaignops.domain import calendar
from campaignops.domain.rules import ValidationError


def test_six_week_campaign() -> None:
    weeks = calendar.generate_weeks(date(2025, 2, 2), date(2025, 3, 15))
    assert [w.week_number for w in weeks] == [1, 2, 3, 4, 5, 6]
    assert weeks[0].label == "Feb 2 - 8"
    assert weeks[3].label == "Feb 23 - Mar 1"
    assert weeks[-1].end_date == date(2025, 3, 15)


def test_last_week_is_clipped_to_end_date() -> None:
    weeks = calendar.generate_weeks(date(2025, 2, 2), date(2025, 2, 10))
    assert len(weeks) == 2
    assert weeks[1].start_date == date(2025, 2, 9)
    assert weeks[1].end_date == date(2025, 2, 10)
    assert weeks[1].label == "Feb 9 - 10"


def test_short_range_has_one_week() -> None:
    assert calendar.week_count(date(2025, 2, 2), date(2025, 2, 3)) == 1


def test_end_before_start_rejected() -> None:
    with pytest.raises(ValidationError):
        calendar.generate_weeks(date(2025, 2, 2), date(2025, 2, 2))
    with pytest.raises(ValidationError):
        calendar.week_count(date(2025, 3, 1), date(2025, 2, 1))
