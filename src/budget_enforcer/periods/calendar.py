"""
Calendar utilities - day-in-period arithmetic and pay-period bounds

Pure functions over calendar dates. Periods are inclusive on both ends:
a 14-day period starting Jan 1 ends Jan 14 and the next one starts Jan 15.
"""

import calendar
from datetime import date, datetime, time, timedelta

from budget_enforcer.kernel.errors import ConfigurationError
from budget_enforcer.periods.models import PaycheckFrequency, PeriodBounds, UserPreferences

FIXED_PERIOD_DAYS = {
    PaycheckFrequency.WEEKLY: 7,
    PaycheckFrequency.BIWEEKLY: 14,
}


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


def day_in_period(start_date: date, period_length: int, now: date | datetime) -> int:
    """
    1-based day of the period that `now` falls on

    Clamped to [1, period_length]: before the start it is day 1, after the
    end it stays on the last day so pacing sees a full period.
    """
    elapsed = (_as_date(now) - start_date).days + 1
    return max(1, min(elapsed, period_length))


def is_period_ended(
    start_date: date,
    period_length: int,
    now: datetime,
    reference_hour: int = 6,
) -> bool:
    """
    True once `now` is period_length whole days past the start

    Days are counted between reference-hour instants, so a period ending on
    the 14th rolls over at 06:00 on the 15th rather than at midnight.
    """
    started_at = datetime.combine(start_date, time(hour=reference_hour))
    return now >= started_at + timedelta(days=period_length)


def clamp_day(year: int, month: int, day: int) -> date:
    """Date for `day` in the month, clamped to the month's last day"""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day, last_day))


def add_months(year: int, month: int, months: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + months
    return index // 12, index % 12 + 1


def next_anchor_after(start: date, anchor_days: list[int]) -> date:
    """
    First anchor day strictly after `start`

    Anchor days beyond a month's length land on its last day.
    """
    days = sorted(anchor_days)
    for offset in range(0, 3):
        year, month = add_months(start.year, start.month, offset)
        for day in days:
            candidate = clamp_day(year, month, day)
            if candidate > start:
                return candidate
    raise ConfigurationError(f"No pay day after {start} for anchor days {days}")


def _bounds(start: date, end: date) -> PeriodBounds:
    return PeriodBounds(
        start_date=start,
        end_date=end,
        period_length=(end - start).days + 1,
    )


def period_bounds_from_start(preferences: UserPreferences, start: date) -> PeriodBounds:
    """
    Bounds of the period beginning on `start` under the user's pay schedule

    Raises:
        ConfigurationError: Semimonthly schedule without pay days configured
    """
    frequency = preferences.paycheck_frequency

    if frequency in FIXED_PERIOD_DAYS:
        length = FIXED_PERIOD_DAYS[frequency]
        return _bounds(start, start + timedelta(days=length - 1))

    if frequency == PaycheckFrequency.MONTHLY:
        next_payday = next_anchor_after(start, [preferences.monthly_anchor_day()])
        return _bounds(start, next_payday - timedelta(days=1))

    pay_days = preferences.sorted_semi_monthly_days()
    if pay_days is None:
        raise ConfigurationError("Semi-monthly pay days not configured")
    next_payday = next_anchor_after(start, list(pay_days))
    return _bounds(start, next_payday - timedelta(days=1))


def next_period_bounds(
    preferences: UserPreferences, current_period_end: date | datetime
) -> PeriodBounds:
    """Bounds of the period starting the day after `current_period_end`"""
    return period_bounds_from_start(
        preferences, _as_date(current_period_end) + timedelta(days=1)
    )


def period_id_for(start_date: date) -> str:
    """Stable period id derived from its start date, shared with saved plans"""
    return f"period_{start_date.isoformat()}"
