"""
Accounting Back Office
Compliance period arithmetic for recurring tasks.

Pure functions, no database access:
    - parse_frequency / parse_modifier: free text → closed enums
    - calculate_next_compliance_period: frequency + reference → next period
    - calculate_due_date: period end → due date
    - is_within_lead_window: should an instance be generated yet?
    - format_compliance_period / compliance_year_for: display labels

All datetimes are naive calendar values. Periods start at 00:00:00.000 of
their first day and end at 23:59:59.999 of their last day, so two
computations of the same period always compare equal.

Usage:
    from backoffice.services.compliance_period import (
        calculate_next_compliance_period, calculate_due_date,
    )

    period = calculate_next_compliance_period("Quarterly", None, datetime(2025, 11, 1))
    # -> CompliancePeriod(start=2026-01-01 00:00, end=2026-03-31 23:59:59.999)
    due = calculate_due_date(period.end)
"""

from __future__ import annotations

import calendar
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

logger = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════════════
# Policy constants
# ═════════════════════════════════════════════════════════════════════════════

DEFAULT_LEAD_DAYS = 14
DUE_DATE_OFFSET_DAYS = 5
FISCAL_YEAR_START_MONTH = 7   # July 1st


# ═════════════════════════════════════════════════════════════════════════════
# Enums & Data Classes
# ═════════════════════════════════════════════════════════════════════════════

class Frequency(str, Enum):
    ONE_TIME = "one_time"
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    SEMI_ANNUAL = "semi_annual"
    YEARLY = "yearly"
    TWO_YEAR = "2_year"
    THREE_YEAR = "3_year"
    FOUR_YEAR = "4_year"
    FIVE_YEAR = "5_year"
    UNSUPPORTED = "unsupported"

    @property
    def span_years(self) -> int | None:
        """Number of calendar years covered by an N-year frequency."""
        return _MULTI_YEAR_SPANS.get(self)


class PeriodModifier(str, Enum):
    NONE = "none"
    PREVIOUS = "previous"
    FISCAL_YEAR = "fiscal_year"


_MULTI_YEAR_SPANS = {
    Frequency.TWO_YEAR: 2,
    Frequency.THREE_YEAR: 3,
    Frequency.FOUR_YEAR: 4,
    Frequency.FIVE_YEAR: 5,
}

_FREQUENCY_ALIASES = {
    "one time": Frequency.ONE_TIME,
    "onetime": Frequency.ONE_TIME,
    "once": Frequency.ONE_TIME,
    "one off": Frequency.ONE_TIME,
    "daily": Frequency.DAILY,
    "weekly": Frequency.WEEKLY,
    "biweekly": Frequency.BIWEEKLY,
    "bi weekly": Frequency.BIWEEKLY,
    "fortnightly": Frequency.BIWEEKLY,
    "monthly": Frequency.MONTHLY,
    "quarterly": Frequency.QUARTERLY,
    "semi annual": Frequency.SEMI_ANNUAL,
    "semiannual": Frequency.SEMI_ANNUAL,
    "semi annually": Frequency.SEMI_ANNUAL,
    "biannual": Frequency.SEMI_ANNUAL,
    "bi annual": Frequency.SEMI_ANNUAL,
    "half yearly": Frequency.SEMI_ANNUAL,
    "yearly": Frequency.YEARLY,
    "annual": Frequency.YEARLY,
    "annually": Frequency.YEARLY,
}

_MULTI_YEAR_RE = re.compile(r"^(?:every )?([2-5]) ?(?:years?|yearly|yrs?)$")

_MODIFIER_ALIASES = {
    "previous": PeriodModifier.PREVIOUS,
    "previous month": PeriodModifier.PREVIOUS,
    "prev": PeriodModifier.PREVIOUS,
    "fy": PeriodModifier.FISCAL_YEAR,
    "fiscal year": PeriodModifier.FISCAL_YEAR,
    "fiscal": PeriodModifier.FISCAL_YEAR,
}


@dataclass(frozen=True)
class CompliancePeriod:
    """Inclusive [start, end] span covered by one generated task."""
    start: datetime
    end: datetime

    def to_dict(self) -> dict:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


# ═════════════════════════════════════════════════════════════════════════════
# Parsing
# ═════════════════════════════════════════════════════════════════════════════

def _normalise(raw: str) -> str:
    return re.sub(r"[\s_\-]+", " ", raw.strip().lower())


def parse_frequency(raw: str | Frequency | None) -> Frequency | None:
    """Map a stored frequency string to ``Frequency``.

    Returns None for an empty value and ``Frequency.UNSUPPORTED`` for text
    that names no known cadence.
    """
    if isinstance(raw, Frequency):
        return raw
    if raw is None or not str(raw).strip():
        return None
    text = _normalise(str(raw))
    if text in _FREQUENCY_ALIASES:
        return _FREQUENCY_ALIASES[text]
    match = _MULTI_YEAR_RE.match(text)
    if match:
        span = int(match.group(1))
        return next(f for f, years in _MULTI_YEAR_SPANS.items() if years == span)
    return Frequency.UNSUPPORTED


def parse_modifier(raw: str | PeriodModifier | None) -> PeriodModifier:
    if isinstance(raw, PeriodModifier):
        return raw
    if raw is None:
        return PeriodModifier.NONE
    return _MODIFIER_ALIASES.get(_normalise(str(raw)), PeriodModifier.NONE)


# ═════════════════════════════════════════════════════════════════════════════
# Calendar helpers
# ═════════════════════════════════════════════════════════════════════════════

def start_of_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def end_of_day(value: datetime) -> datetime:
    return value.replace(hour=23, minute=59, second=59, microsecond=999000)


def _month_span(year: int, first_month: int, months: int) -> CompliancePeriod:
    """Period covering ``months`` calendar months starting at first_month/year."""
    last_index = (year * 12 + first_month - 1) + months - 1
    last_year, last_month = divmod(last_index, 12)
    last_month += 1
    last_day = calendar.monthrange(last_year, last_month)[1]
    return CompliancePeriod(
        start=datetime(year, first_month, 1),
        end=end_of_day(datetime(last_year, last_month, last_day)),
    )


def _day_span(reference: datetime, days: int) -> CompliancePeriod:
    start = start_of_day(reference + timedelta(days=1))
    return CompliancePeriod(start=start, end=end_of_day(start + timedelta(days=days - 1)))


# ═════════════════════════════════════════════════════════════════════════════
# Period calculation
# ═════════════════════════════════════════════════════════════════════════════

def calculate_next_compliance_period(
    frequency: str | Frequency | None,
    modifier: str | PeriodModifier | None,
    reference: datetime,
    *,
    fiscal_year_start_month: int = FISCAL_YEAR_START_MONTH,
) -> CompliancePeriod | None:
    """Return the period following ``reference`` or None when nothing recurs.

    One-time templates are terminal and return None. Unrecognised frequency
    strings are logged as a warning and also return None.
    """
    freq = parse_frequency(frequency)
    mod = parse_modifier(modifier)
    year, month = reference.year, reference.month

    if freq is None or freq == Frequency.ONE_TIME:
        return None

    if freq == Frequency.UNSUPPORTED:
        logger.warning("Unsupported compliance frequency: %r", frequency)
        return None

    if freq == Frequency.DAILY:
        return _day_span(reference, 1)

    if freq == Frequency.WEEKLY:
        return _day_span(reference, 7)

    if freq == Frequency.BIWEEKLY:
        return _day_span(reference, 14)

    if freq == Frequency.MONTHLY:
        offset = -1 if mod == PeriodModifier.PREVIOUS else 1
        target_year, target_month = divmod(year * 12 + month - 1 + offset, 12)
        return _month_span(target_year, target_month + 1, 1)

    if freq == Frequency.QUARTERLY:
        quarter = (month - 1) // 3
        target_year, target_quarter = divmod(year * 4 + quarter + 1, 4)
        return _month_span(target_year, target_quarter * 3 + 1, 3)

    if freq == Frequency.SEMI_ANNUAL:
        half = 0 if month <= 6 else 1
        target_year, target_half = divmod(year * 2 + half + 1, 2)
        return _month_span(target_year, target_half * 6 + 1, 6)

    if freq == Frequency.YEARLY:
        if mod == PeriodModifier.FISCAL_YEAR:
            current_fy = year if month >= fiscal_year_start_month else year - 1
            return _month_span(current_fy + 1, fiscal_year_start_month, 12)
        return _month_span(year + 1, 1, 12)

    span = freq.span_years
    return _month_span(year + 1, 1, 12 * span)


def calculate_due_date(period_end: datetime) -> datetime:
    """Due date sits a fixed number of days before the period end."""
    return period_end - timedelta(days=DUE_DATE_OFFSET_DAYS)


def is_within_lead_window(now: datetime, due_date: datetime, lead_days: int) -> bool:
    """True once ``now`` has reached ``lead_days`` before the due date."""
    return now >= due_date - timedelta(days=lead_days)


# ═════════════════════════════════════════════════════════════════════════════
# Labels
# ═════════════════════════════════════════════════════════════════════════════

def format_compliance_period(frequency: str | Frequency | None,
                             period: CompliancePeriod) -> str:
    """Human-readable label: "June 2025", "Q1 2026", "H2 2025", "FY 2026-2027"."""
    freq = parse_frequency(frequency)
    start, end = period.start, period.end

    if freq == Frequency.DAILY:
        return start.strftime("%d %b %Y")
    if freq in (Frequency.WEEKLY, Frequency.BIWEEKLY):
        return f"{start.strftime('%d %b %Y')} - {end.strftime('%d %b %Y')}"
    if freq == Frequency.QUARTERLY:
        return f"Q{(start.month - 1) // 3 + 1} {start.year}"
    if freq == Frequency.SEMI_ANNUAL:
        return f"H{1 if start.month <= 6 else 2} {start.year}"
    if freq == Frequency.YEARLY:
        if start.year != end.year:
            return f"FY {start.year}-{end.year}"
        return str(start.year)
    if freq is not None and freq.span_years:
        return f"{start.year}-{end.year}"
    return start.strftime("%B %Y")


def compliance_year_for(period: CompliancePeriod) -> str:
    if period.start.year == period.end.year:
        return str(period.start.year)
    return f"{period.start.year}-{period.end.year}"
