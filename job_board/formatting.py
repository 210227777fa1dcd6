"""Display helpers for listing values computed from stored rows."""

from __future__ import annotations

import math
from datetime import datetime
from typing import Optional

from .models import JobPost


SECONDS_PER_DAY = 60 * 60 * 24


def _amount(currency: str, value: Optional[float]) -> Optional[str]:
    # Zero is treated as "not provided", like an empty form field.
    if not value:
        return None
    return f"{currency} {value:,.0f}"


def format_salary_range(
    salary_min: Optional[float],
    salary_max: Optional[float],
    currency: str = "AUD",
    period: str = "year",
) -> str:
    """Human salary range, e.g. "AUD 120,000 - AUD 150,000 /yr"."""
    low = _amount(currency, salary_min)
    high = _amount(currency, salary_max)
    if low is None and high is None:
        return "Salary not disclosed"

    suffix = "/yr" if period == "year" else f"/{period}"
    if low and high:
        return f"{low} - {high} {suffix}"
    if low:
        return f"From {low} {suffix}"
    return f"Up to {high} {suffix}"


def format_job_salary(job: JobPost) -> str:
    return format_salary_range(job.salary_min, job.salary_max, job.salary_currency, job.salary_period)


def days_until(moment: datetime, now: datetime) -> int:
    """Whole days left until `moment`, rounded up; zero or negative once passed."""
    return math.ceil((moment - now).total_seconds() / SECONDS_PER_DAY)


def format_date(moment: datetime) -> str:
    """Australian short date, e.g. 17/01/2027."""
    return moment.strftime("%d/%m/%Y")


def plural_days(count: int) -> str:
    return f"{count} day{'' if count == 1 else 's'}"
