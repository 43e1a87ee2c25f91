"""Unit tests for the ROI projection."""

import pytest

from app.pitch.roi import calculate_roi, format_currency


class TestCalculateRoi:
    def test_defaults(self):
        roi = calculate_roi()
        assert roi["current"] == {"monthly_revenue": 25000.0, "annual_revenue": 300000.0, "repeat_rate": 0.3}
        assert roi["projected"]["monthly_revenue"] == 31250.0
        assert roi["projected"]["repeat_rate"] == 0.336
        assert roi["improvement"] == {"monthly": 6250.0, "annual": 75000.0, "percentage": 25.0}

    def test_explicit_inputs(self):
        roi = calculate_roi(1000, 20, 0.5)
        assert roi["current"]["monthly_revenue"] == 20000.0
        assert roi["projected"]["annual_revenue"] == 300000.0
        assert roi["assumptions"] == {"monthly_visits": 1000.0, "avg_transaction": 20.0}

    @pytest.mark.parametrize("visits", [None, "", "lots", 0, -10])
    def test_bad_visits_fall_back_to_default(self, visits):
        assert calculate_roi(visits)["assumptions"]["monthly_visits"] == 500

    def test_string_numbers_accepted(self):
        assert calculate_roi("200", "12.5")["current"]["monthly_revenue"] == 2500.0

    def test_improvement_is_always_25_percent(self):
        assert calculate_roi(37, 13.7, 0.9)["improvement"]["percentage"] == 25.0


def test_format_currency():
    assert format_currency(12345.6) == "$12,346"
    assert format_currency(0) == "$0"
