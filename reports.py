"""
Revenue report windowing and bill date filtering.

Every backend (and the server side of the remote store) computes reports with
these functions so that results agree exactly. Windows are evaluated in the
local timezone: calendar day, ISO week (Monday start) and calendar month of
each bill's created_at relative to the current instant.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Iterable

from errors import ValidationError
from schema import Bill, DailyTotals, ReportSummary, WindowTotals


def local_now() -> datetime:
    """Current instant, aware, in the local timezone."""

    return datetime.now().astimezone()


def utc_timestamp(moment: datetime | None = None) -> str:
    """Format an instant as ISO-8601 UTC with millisecond precision and Z."""

    if moment is None:
        moment = datetime.now(timezone.utc)
    elif moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(
        timespec='milliseconds').replace('+00:00', 'Z')


def local_date(timestamp: str) -> date:
    """Local calendar date of a stored created_at value."""

    text = timestamp.strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    moment = datetime.fromisoformat(text)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone().date()


def parse_date(value) -> date | None:
    """Accept None, a date or an ISO date string (YYYY-MM-DD)."""

    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError as e:
        raise ValidationError(f'invalid date: {value!r}') from e


def filter_by_dates(bills: Iterable[Bill], start_date=None, end_date=None) -> list[Bill]:
    """Bills created within [start_date, end_date] (inclusive, either open)."""

    start, end = parse_date(start_date), parse_date(end_date)
    selected = []
    for bill in bills:
        day = local_date(bill.created_at)
        if start is not None and day < start:
            continue
        if end is not None and day > end:
            continue
        selected.append(bill)
    return selected


def _totals(bills: list[Bill]) -> WindowTotals:
    return WindowTotals(total=sum(bill.total for bill in bills), count=len(bills))


def summarize(bills: Iterable[Bill], now: datetime | None = None) -> ReportSummary:
    """Totals for today, this ISO week, this month and all time."""

    today = (now or local_now()).date()
    bills = list(bills)
    days = [local_date(bill.created_at) for bill in bills]

    def window(same_period):
        return _totals([bill for bill, day in zip(bills, days) if same_period(day)])

    return ReportSummary(
        today=window(lambda day: day == today),
        week=window(lambda day: day.isocalendar()[:2] == today.isocalendar()[:2]),
        month=window(lambda day: (day.year, day.month) == (today.year, today.month)),
        all_time=_totals(bills))


def daily_totals(bills: Iterable[Bill], days: int = 30,
                 now: datetime | None = None) -> list[DailyTotals]:
    """
    One entry per local calendar day in [today - days + 1, today].

    Args:
        bills: bills to aggregate
        days (int): window length, at least 1
        now (datetime|None): current instant (defaults to the local clock)

    Returns:
        list of DailyTotals ordered oldest to newest, zero-filled.
    """

    if isinstance(days, bool) or not isinstance(days, int) or days < 1:
        raise ValidationError('days must be a positive integer')
    today = (now or local_now()).date()
    first = today - timedelta(days=days - 1)
    buckets = {first + timedelta(days=offset): [] for offset in range(days)}
    for bill in bills:
        day = local_date(bill.created_at)
        if day in buckets:
            buckets[day].append(bill)
    return [
        DailyTotals(date=day.isoformat(),
                    total=sum(bill.total for bill in day_bills),
                    count=len(day_bills))
        for day, day_bills in buckets.items()
    ]
