"""ROI projection used by pitches and narratives."""

DEFAULT_MONTHLY_VISITS = 500
DEFAULT_AVG_TRANSACTION = 50.0
DEFAULT_REPEAT_RATE = 0.3

# Conservative uplift assumptions
VISIBILITY_INCREASE = 0.15
CONVERSION_INCREASE = 0.10
RETENTION_INCREASE = 0.12


def _positive_float(value, default: float) -> float:
    """Parse ``value`` as a float, using ``default`` for blanks, garbage and zero."""
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


def calculate_roi(
    monthly_visits: float | int | str | None = None,
    avg_transaction: float | int | str | None = None,
    repeat_rate: float | str | None = None,
) -> dict:
    """Project revenue with improved visibility, conversion and retention.

    Returns ``current``, ``projected`` and ``improvement`` blocks. The
    improvement percentage is rounded to one decimal.
    """
    visits = _positive_float(monthly_visits, DEFAULT_MONTHLY_VISITS)
    transaction = _positive_float(avg_transaction, DEFAULT_AVG_TRANSACTION)
    repeat = _positive_float(repeat_rate, DEFAULT_REPEAT_RATE)

    current_monthly = visits * transaction
    current_annual = current_monthly * 12
    projected_monthly = current_monthly * (1 + VISIBILITY_INCREASE + CONVERSION_INCREASE)
    projected_annual = projected_monthly * 12

    return {
        "current": {
            "monthly_revenue": round(current_monthly, 2),
            "annual_revenue": round(current_annual, 2),
            "repeat_rate": repeat,
        },
        "projected": {
            "monthly_revenue": round(projected_monthly, 2),
            "annual_revenue": round(projected_annual, 2),
            "repeat_rate": round(repeat * (1 + RETENTION_INCREASE), 4),
        },
        "improvement": {
            "monthly": round(projected_monthly - current_monthly, 2),
            "annual": round(projected_annual - current_annual, 2),
            "percentage": round((projected_annual - current_annual) / current_annual * 100, 1),
        },
        "assumptions": {
            "monthly_visits": visits,
            "avg_transaction": transaction,
        },
    }


def format_currency(amount: float) -> str:
    """``12345.6`` -> ``"$12,346"``."""
    return f"${amount:,.0f}"
