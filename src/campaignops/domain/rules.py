from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime


class ValidationError(ValueError):
    pass


class ConflictError(RuntimeError):
    pass


SCORE_MIN = 0
SCORE_MAX = 100


def require(value: str | None, field: str) -> None:
    if value is None or str(value).strip() == "":
        raise ValidationError(f"{field} is required.")


def validate_enum(value: str | None, allowed: Iterable[str], field: str) -> None:
    if value is None:
        return
    allowed = list(allowed)
    if value not in allowed:
        raise ValidationError(f"{field} must be one of: {', '.join(sorted(allowed))}")


def parse_date(value: str | None, field: str) -> date | None:
    if value is None:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise ValidationError(f"{field} must be YYYY-MM-DD.") from exc


def parse_datetime(value: str | None, field: str) -> datetime | None:
    if value is None:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError as exc:
        raise ValidationError(f"{field} must be ISO 8601.") from exc


def parse_score(value: int | str | None, field: str = "score") -> int | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer.")
    try:
        score = int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{field} must be an integer.") from exc
    if isinstance(value, float) and value != score:
        raise ValidationError(f"{field} must be an integer.")
    if score < SCORE_MIN or score > SCORE_MAX:
        raise ValidationError(f"{field} must be between {SCORE_MIN} and {SCORE_MAX}.")
    return score


def positive_int(value: int | None, field: str) -> int:
    if value is None or isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be a positive integer.")
    if value < 1:
        raise ValidationError(f"{field} must be a positive integer.")
    return value
