from __future__ import annotations

from .errors import FormatError, InvalidModelError

DAYS_PER_YEAR = 365.0
DAYS_PER_WEEK = 7.0

_DAYS_PER_UNIT = {
    "Day": 1.0,
    "Week": DAYS_PER_WEEK,
    "Year": DAYS_PER_YEAR,
}


def security_term(duration: str) -> float:
    """
    Fractional years for a security term label such as "26-Week" or "2-Year".

    Supported units (365 days per year, 7 days per week):
    - Day
    - Week
    - Year

    Anything else, including "Month", raises FormatError rather than being
    read as an unscaled count.
    """
    parts = str(duration).strip().split("-")
    if len(parts) != 2:
        raise FormatError(f"Invalid security term value: {duration!r}")

    count_text, unit = parts[0].strip(), parts[1].strip()
    try:
        count = float(count_text)
    except ValueError:
        raise FormatError(f"Invalid security term count: {duration!r}") from None

    if unit not in _DAYS_PER_UNIT:
        raise FormatError(f"Unsupported security term unit {unit!r} in {duration!r}")

    return count * _DAYS_PER_UNIT[unit] / DAYS_PER_YEAR


def periods_in_term(payments_per_year: int, term_years: float) -> int:
    """Number of discrete payment steps N = round(payments_per_year * term_years)."""
    if payments_per_year <= 0:
        raise InvalidModelError(f"payments_per_year must be positive, got {payments_per_year}")
    if term_years <= 0:
        raise InvalidModelError(f"term_years must be positive, got {term_years}")

    n_periods = int(round(payments_per_year * term_years))
    if n_periods < 1:
        raise InvalidModelError(
            f"Term of {term_years} years is shorter than one payment period at frequency {payments_per_year}."
        )
    return n_periods
