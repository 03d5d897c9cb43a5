"""
Accounting Back Office
Tests — compliance period arithmetic.

Covers:
    1. Frequency / modifier parsing
    2. Next-period calculation per frequency
    3. Due date + lead window gate
    4. Display labels
"""

import logging
from datetime import datetime, timedelta

import pytest

from backoffice.services.compliance_period import (
    CompliancePeriod,
    Frequency,
    PeriodModifier,
    calculate_due_date,
    calculate_next_compliance_period,
    compliance_year_for,
    end_of_day,
    format_compliance_period,
    is_within_lead_window,
    parse_frequency,
    parse_modifier,
)


def _eod(year, month, day):
    return datetime(year, month, day, 23, 59, 59, 999000)


# ═══════════════════════════════════════════════════════════════════════════
#  1. PARSING
# ═══════════════════════════════════════════════════════════════════════════

class TestParsing:

    @pytest.mark.parametrize("raw,expected", [
        ("Monthly", Frequency.MONTHLY),
        ("QUARTERLY", Frequency.QUARTERLY),
        ("Bi-Annual", Frequency.SEMI_ANNUAL),
        ("Semi-Annual", Frequency.SEMI_ANNUAL),
        ("Annual", Frequency.YEARLY),
        ("One Time", Frequency.ONE_TIME),
        ("Fortnightly", Frequency.BIWEEKLY),
        ("2 Years", Frequency.TWO_YEAR),
        ("every 5 years", Frequency.FIVE_YEAR),
        ("3yrs", Frequency.THREE_YEAR),
    ])
    def test_parse_frequency_aliases(self, raw, expected):
        assert parse_frequency(raw) == expected

    def test_parse_frequency_empty_is_none(self):
        assert parse_frequency(None) is None
        assert parse_frequency("   ") is None

    def test_parse_frequency_unknown_is_unsupported(self):
        assert parse_frequency("6 Years") == Frequency.UNSUPPORTED
        assert parse_frequency("whenever") == Frequency.UNSUPPORTED

    def test_parse_modifier(self):
        assert parse_modifier("Fiscal Year") == PeriodModifier.FISCAL_YEAR
        assert parse_modifier("FY") == PeriodModifier.FISCAL_YEAR
        assert parse_modifier("previous") == PeriodModifier.PREVIOUS
        assert parse_modifier(None) == PeriodModifier.NONE
        assert parse_modifier("next quarter") == PeriodModifier.NONE

    def test_span_years(self):
        assert Frequency.FOUR_YEAR.span_years == 4
        assert Frequency.MONTHLY.span_years is None


# ═══════════════════════════════════════════════════════════════════════════
#  2. PERIOD CALCULATION
# ═══════════════════════════════════════════════════════════════════════════

class TestNextPeriod:

    def test_monthly_is_following_month(self):
        p = calculate_next_compliance_period("Monthly", None, datetime(2025, 5, 15))
        assert p == CompliancePeriod(datetime(2025, 6, 1), _eod(2025, 6, 30))

    def test_monthly_previous_is_prior_month(self):
        p = calculate_next_compliance_period("Monthly", "previous", datetime(2025, 5, 15))
        assert p == CompliancePeriod(datetime(2025, 4, 1), _eod(2025, 4, 30))

    def test_monthly_wraps_year(self):
        p = calculate_next_compliance_period("Monthly", None, datetime(2025, 12, 3))
        assert p.start == datetime(2026, 1, 1)
        assert p.end == _eod(2026, 1, 31)

        p = calculate_next_compliance_period("Monthly", "previous", datetime(2026, 1, 3))
        assert p.start == datetime(2025, 12, 1)
        assert p.end == _eod(2025, 12, 31)

    def test_monthly_leap_february(self):
        p = calculate_next_compliance_period("Monthly", None, datetime(2024, 1, 31))
        assert p.end == _eod(2024, 2, 29)

    def test_quarterly_wraps_q4_to_q1(self):
        p = calculate_next_compliance_period("Quarterly", None, datetime(2025, 11, 1))
        assert p == CompliancePeriod(datetime(2026, 1, 1), _eod(2026, 3, 31))

    def test_quarterly_mid_year(self):
        p = calculate_next_compliance_period("Quarterly", None, datetime(2025, 2, 10))
        assert p == CompliancePeriod(datetime(2025, 4, 1), _eod(2025, 6, 30))

    def test_semi_annual_first_half_gives_second_half(self):
        p = calculate_next_compliance_period("Semi-Annual", None, datetime(2025, 3, 1))
        assert p == CompliancePeriod(datetime(2025, 7, 1), _eod(2025, 12, 31))

    def test_semi_annual_second_half_gives_next_first_half(self):
        p = calculate_next_compliance_period("Biannual", None, datetime(2025, 9, 1))
        assert p == CompliancePeriod(datetime(2026, 1, 1), _eod(2026, 6, 30))

    def test_yearly_is_next_calendar_year(self):
        p = calculate_next_compliance_period("Yearly", None, datetime(2025, 8, 1))
        assert p == CompliancePeriod(datetime(2026, 1, 1), _eod(2026, 12, 31))

    def test_yearly_fiscal_after_start_month(self):
        p = calculate_next_compliance_period("Yearly", "fiscal year", datetime(2025, 8, 1))
        assert p == CompliancePeriod(datetime(2026, 7, 1), _eod(2027, 6, 30))

    def test_yearly_fiscal_before_start_month(self):
        p = calculate_next_compliance_period("Yearly", "fiscal year", datetime(2025, 3, 1))
        assert p == CompliancePeriod(datetime(2025, 7, 1), _eod(2026, 6, 30))

    def test_yearly_fiscal_custom_start_month(self):
        p = calculate_next_compliance_period("Yearly", "fy", datetime(2025, 5, 1),
                                             fiscal_year_start_month=4)
        assert p == CompliancePeriod(datetime(2026, 4, 1), _eod(2027, 3, 31))

    def test_multi_year_span(self):
        p = calculate_next_compliance_period("3 Years", None, datetime(2025, 5, 15))
        assert p == CompliancePeriod(datetime(2026, 1, 1), _eod(2028, 12, 31))

    def test_daily_weekly_biweekly_start_tomorrow(self):
        ref = datetime(2025, 5, 15, 9, 30)
        daily = calculate_next_compliance_period("Daily", None, ref)
        weekly = calculate_next_compliance_period("Weekly", None, ref)
        biweekly = calculate_next_compliance_period("Biweekly", None, ref)

        assert daily == CompliancePeriod(datetime(2025, 5, 16), _eod(2025, 5, 16))
        assert weekly == CompliancePeriod(datetime(2025, 5, 16), _eod(2025, 5, 22))
        assert biweekly == CompliancePeriod(datetime(2025, 5, 16), _eod(2025, 5, 29))

    def test_one_time_and_missing_return_none(self):
        ref = datetime(2025, 5, 15)
        assert calculate_next_compliance_period("One Time", None, ref) is None
        assert calculate_next_compliance_period(None, None, ref) is None

    def test_unsupported_frequency_logs_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger="backoffice.services.compliance_period"):
            p = calculate_next_compliance_period("Every full moon", None, datetime(2025, 5, 15))
        assert p is None
        assert "Unsupported compliance frequency" in caplog.text

    def test_same_inputs_give_equal_periods(self):
        ref = datetime(2025, 11, 1, 13, 45)
        assert (calculate_next_compliance_period("Quarterly", None, ref)
                == calculate_next_compliance_period("Quarterly", None, ref))

    def test_time_of_day_does_not_move_period(self):
        morning = calculate_next_compliance_period("Monthly", None, datetime(2025, 5, 15, 0, 0))
        night = calculate_next_compliance_period("Monthly", None, datetime(2025, 5, 15, 23, 59))
        assert morning == night


# ═══════════════════════════════════════════════════════════════════════════
#  3. DUE DATE + LEAD WINDOW
# ═══════════════════════════════════════════════════════════════════════════

class TestDueDateAndLeadWindow:

    def test_due_date_is_five_days_before_end(self):
        assert calculate_due_date(_eod(2025, 6, 30)) == _eod(2025, 6, 25)

    def test_gate_opens_exactly_at_lead_boundary(self):
        due = _eod(2025, 6, 25)
        boundary = due - timedelta(days=14)
        assert is_within_lead_window(boundary, due, 14) is True
        assert is_within_lead_window(boundary - timedelta(milliseconds=1), due, 14) is False

    def test_gate_stays_open_after_due_date(self):
        due = _eod(2025, 6, 25)
        assert is_within_lead_window(due + timedelta(days=30), due, 14) is True

    def test_zero_lead_days_opens_on_due_date(self):
        due = _eod(2025, 6, 25)
        assert is_within_lead_window(due, due, 0) is True
        assert is_within_lead_window(due - timedelta(seconds=1), due, 0) is False

    def test_end_of_day_helper(self):
        assert end_of_day(datetime(2025, 1, 1, 8)) == _eod(2025, 1, 1)


# ═══════════════════════════════════════════════════════════════════════════
#  4. LABELS
# ═══════════════════════════════════════════════════════════════════════════

class TestLabels:

    @pytest.mark.parametrize("freq,period,label", [
        ("Monthly", CompliancePeriod(datetime(2025, 5, 1), _eod(2025, 5, 31)), "May 2025"),
        ("Quarterly", CompliancePeriod(datetime(2025, 4, 1), _eod(2025, 6, 30)), "Q2 2025"),
        ("Semi-Annual", CompliancePeriod(datetime(2025, 1, 1), _eod(2025, 6, 30)), "H1 2025"),
        ("Yearly", CompliancePeriod(datetime(2025, 1, 1), _eod(2025, 12, 31)), "2025"),
        ("Yearly", CompliancePeriod(datetime(2025, 7, 1), _eod(2026, 6, 30)), "FY 2025-2026"),
        ("5 Years", CompliancePeriod(datetime(2025, 1, 1), _eod(2029, 12, 31)), "2025-2029"),
        ("Daily", CompliancePeriod(datetime(2025, 5, 16), _eod(2025, 5, 16)), "16 May 2025"),
        ("Weekly", CompliancePeriod(datetime(2025, 5, 16), _eod(2025, 5, 22)),
         "16 May 2025 - 22 May 2025"),
    ])
    def test_format_compliance_period(self, freq, period, label):
        assert format_compliance_period(freq, period) == label

    def test_compliance_year(self):
        single = CompliancePeriod(datetime(2026, 1, 1), _eod(2026, 3, 31))
        fiscal = CompliancePeriod(datetime(2026, 7, 1), _eod(2027, 6, 30))
        assert compliance_year_for(single) == "2026"
        assert compliance_year_for(fiscal) == "2026-2027"

    def test_period_to_dict(self):
        p = CompliancePeriod(datetime(2026, 1, 1), _eod(2026, 3, 31))
        assert p.to_dict() == {
            "start": "2026-01-01T00:00:00",
            "end": "2026-03-31T23:59:59.999000",
        }
