from __future__ import annotations

import numpy as np
import pandas as pd
from dataclasses import dataclass
from typing import Optional

from .utils import periods_in_term


@dataclass(frozen=True)
class CouponSecurity:
    coupon_rate: float              # annual, decimal
    par_value: float = 1.0
    payments_per_year: int = 2
    security_id: Optional[str] = None


def cashflow_schedule(security: CouponSecurity, term_years: float) -> pd.Series:
    """
    Undiscounted payments by step 1..N, N = round(payments_per_year * term_years).
    The final step carries the par redemption on top of the coupon.
    """
    n_periods = periods_in_term(security.payments_per_year, term_years)

    coupon_cf = security.par_value * (security.coupon_rate / security.payments_per_year)
    cfs = np.full(n_periods, coupon_cf, dtype=float)
    cfs[-1] += security.par_value

    return pd.Series(cfs, index=pd.RangeIndex(1, n_periods + 1, name="step"), name="cashflow")


def discount_factors(payments_per_year: int, candidate_yield: float, n_periods: int) -> np.ndarray:
    """D_i = (1 + y/payments_per_year)^i for i = 0..n_periods; D_0 = 1."""
    steps = np.arange(n_periods + 1, dtype=float)
    return (1.0 + candidate_yield / payments_per_year) ** steps


def net_present_value_residual(
    security: CouponSecurity,
    candidate_yield: float,
    term_years: float,
    observed_price: float,
) -> float:
    """
    Discounted cash flows at candidate_yield minus observed_price.

    Zero exactly at the yield to maturity for observed_price. Yields at or
    below -payments_per_year leave the discount factors undefined; callers
    keep candidate_yield above that bound.
    """
    cfs = cashflow_schedule(security, term_years).to_numpy()
    dfs = discount_factors(security.payments_per_year, candidate_yield, len(cfs))

    pv = float(np.sum(cfs / dfs[1:]))
    return pv - observed_price


def price_from_yield(security: CouponSecurity, candidate_yield: float, term_years: float) -> float:
    """Present value of the security's cash flows at candidate_yield."""
    return net_present_value_residual(security, candidate_yield, term_years, observed_price=0.0)


def cashflow_table(security: CouponSecurity, term_years: float, candidate_yield: float) -> pd.DataFrame:
    cfs = cashflow_schedule(security, term_years)
    dfs = discount_factors(security.payments_per_year, candidate_yield, len(cfs))

    out = cfs.reset_index()
    out["time"] = out["step"] / security.payments_per_year
    out["discount_factor"] = dfs[1:]
    out["pv_cf"] = out["cashflow"] / out["discount_factor"]
    return out[["step", "time", "cashflow", "discount_factor", "pv_cf"]]
