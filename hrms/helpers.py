from datetime import date, timedelta

from django.utils.dateparse import parse_date
from rest_framework.exceptions import ValidationError

# Monday=0 .. Friday=4
WORK_WEEKDAYS = (0, 1, 2, 3, 4)


def iter_work_days(start: date, end: date):
    """Yield every Monday-Friday date from ``start`` to ``end`` inclusive."""
    day = start
    while day <= end:
        if day.weekday() in WORK_WEEKDAYS:
            yield day
        day += timedelta(days=1)


def count_work_days(start: date, end: date) -> int:
    if start is None or end is None or end < start:
        return 0
    return sum(1 for _ in iter_work_days(start, end))


def date_param(params, name, default=None) -> date | None:
    raw = params.get(name)
    if not raw:
        return default
    try:
        value = parse_date(raw)
    except ValueError:
        value = None
    if value is None:
        raise ValidationError({name: "Use the YYYY-MM-DD format."})
    return value


def bool_param(params, name) -> bool:
    return (params.get(name) or "").lower() in ("1", "true", "yes")


def int_param(params, name) -> int | None:
    raw = params.get(name)
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationError({name: "A valid integer is required."})
