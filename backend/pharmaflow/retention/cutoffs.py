"""Calendar arithmetic for retention cutoffs.

Retention windows are whole calendar years: the cutoff keeps the month, day
and time of "now" and only moves the year. This is not the same as
subtracting N * 365 days, which drifts by one day per leap year crossed.
"""

from datetime import datetime


def subtract_years(moment: datetime, years: int) -> datetime:
    """Return moment with `years` subtracted from its year field.

    February 29 has no counterpart in a non-leap target year; the date then
    rolls forward to March 1, the same overflow a calendar setter produces.

    Examples:
        >>> subtract_years(datetime(2026, 10, 18, 9, 30), 7)
        datetime.datetime(2019, 10, 18, 9, 30)
        >>> subtract_years(datetime(2024, 2, 29), 1)
        datetime.datetime(2023, 3, 1, 0, 0)
    """
    target_year = moment.year - years
    try:
        return moment.replace(year=target_year)
    except ValueError:
        # Feb 29 -> Mar 1 in a non-leap year
        return moment.replace(year=target_year, month=3, day=1)
