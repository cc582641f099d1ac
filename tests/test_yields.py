import math
import warnings

import pandas as pd
import pytest

from quant_finance_engine.bonds import CouponSecurity, net_present_value_residual, price_from_yield
from quant_finance_engine.errors import ConvergenceWarning, InvalidModelError, NumericalDivergenceError
from quant_finance_engine.yields import (
    SolverConfig,
    solve_yield_bracketed,
    solve_yield_to_maturity,
    solve_yields_for_portfolio,
)


@pytest.fixture(scope="module")
def note():
    return CouponSecurity(coupon_rate=0.05, par_value=100.0, payments_per_year=2)


def test_par_bond_yield_equals_coupon(note):
    ytm, _ = solve_yield_to_maturity(note, term_years=2.0, observed_price=100.0)
    assert ytm == pytest.approx(0.05, abs=1e-6)


@pytest.mark.parametrize("freq, n_periods, price", [(1, 5, 0.80), (2, 10, 0.85), (4, 8, 0.97)])
def test_zero_coupon_closed_form(freq, n_periods, price):
    zero = CouponSecurity(coupon_rate=0.0, par_value=1.0, payments_per_year=freq)
    ytm, _ = solve_yield_to_maturity(zero, term_years=n_periods / freq, observed_price=price)
    expected = freq * ((1.0 / price) ** (1.0 / n_periods) - 1.0)
    assert ytm == pytest.approx(expected, abs=1e-6)


def test_negative_yield_recovered():
    zero = CouponSecurity(coupon_rate=0.0, par_value=1.0, payments_per_year=1)
    ytm, _ = solve_yield_to_maturity(zero, term_years=1.0, observed_price=1.05)
    assert ytm == pytest.approx(1.0 / 1.05 - 1.0, abs=1e-6)


def test_known_price_round_trip(note):
    price = price_from_yield(note, 0.0725, 7.0)
    ytm, _ = solve_yield_to_maturity(note, term_years=7.0, observed_price=price)
    assert ytm == pytest.approx(0.0725, abs=1e-6)
    assert abs(net_present_value_residual(note, ytm, 7.0, price)) < 1e-4


def test_trace_is_ordered_from_seed(note):
    ytm, trace = solve_yield_to_maturity(note, term_years=2.0, observed_price=98.0)
    keys = list(trace.keys())
    assert keys == list(range(len(keys)))
    assert trace[0] == 0.10
    assert trace[keys[-1]] == ytm
    assert abs(trace[keys[-1]] - trace[keys[-2]]) < 1e-6


def test_converged_solve_emits_no_warning(note):
    with warnings.catch_warnings():
        warnings.simplefilter("error", ConvergenceWarning)
        solve_yield_to_maturity(note, term_years=2.0, observed_price=101.0)


def test_iteration_budget_warns_but_returns_estimate(note):
    with pytest.warns(ConvergenceWarning):
        ytm, trace = solve_yield_to_maturity(note, term_years=2.0, observed_price=100.0, max_iterations=1)
    assert math.isfinite(ytm)
    assert len(trace) == 2


def test_equal_residuals_raise_divergence(note):
    with pytest.raises(NumericalDivergenceError):
        solve_yield_to_maturity(note, term_years=2.0, observed_price=100.0, seeds=(0.05, 0.05))


def test_config_replaces_keywords(note):
    config = SolverConfig(tolerance=1e-10, max_iterations=50, seeds=(0.02, 0.08))
    ytm, trace = solve_yield_to_maturity(note, 2.0, 100.0, max_iterations=1, config=config)
    assert trace[0] == 0.08
    assert ytm == pytest.approx(0.05, abs=1e-10)


@pytest.mark.parametrize("kwargs", [{"tolerance": 0.0}, {"max_iterations": 0}, {"seeds": (0.01,)}])
def test_solver_config_validation(kwargs):
    with pytest.raises(InvalidModelError):
        SolverConfig(**kwargs)


def test_bracketed_matches_secant(note):
    price = 95.0
    secant, _ = solve_yield_to_maturity(note, 5.0, price)
    brent = solve_yield_bracketed(note, 5.0, price)
    assert secant == pytest.approx(brent, abs=1e-6)


def test_bracketed_requires_sign_change(note):
    with pytest.raises(InvalidModelError):
        solve_yield_bracketed(note, 2.0, 100.0, lower=0.06, upper=0.10)


@pytest.fixture(scope="module")
def securities_df():
    return pd.DataFrame(
        [
            {"security_id": "NOTE_2Y", "coupon_rate": 0.05, "par_value": 100.0, "payments_per_year": 2, "term": "2-Year", "price": 100.0},
            {"security_id": "BILL_26W", "coupon_rate": 0.0, "par_value": 1.0, "payments_per_year": 2, "term": "26-Week", "price": 0.98},
            {"security_id": "BOND_10Y", "coupon_rate": 0.04, "par_value": 1.0, "payments_per_year": 2, "term": 10.0, "price": 0.92},
        ]
    )


@pytest.mark.parametrize("method", ["secant", "brentq"])
def test_portfolio_yields(securities_df, method):
    out = solve_yields_for_portfolio(securities_df, method=method)
    assert {"term_years", "ytm", "iterations", "converged"}.issubset(out.columns)
    assert out["converged"].all()

    by_id = out.set_index("security_id")
    assert by_id.loc["NOTE_2Y", "ytm"] == pytest.approx(0.05, abs=1e-6)
    assert by_id.loc["BILL_26W", "ytm"] == pytest.approx(2 * (1 / 0.98 - 1), abs=1e-6)
    assert by_id.loc["BOND_10Y", "ytm"] > 0.04


def test_portfolio_flags_unconverged_rows(securities_df):
    with pytest.warns(ConvergenceWarning):
        out = solve_yields_for_portfolio(securities_df, config=SolverConfig(max_iterations=1))
    assert not out["converged"].any()
    assert (out["iterations"] == 1).all()


def test_portfolio_rejects_empty_and_bad_method(securities_df):
    with pytest.raises(ValueError):
        solve_yields_for_portfolio(securities_df.iloc[0:0])
    with pytest.raises(InvalidModelError):
        solve_yields_for_portfolio(securities_df, method="newton")
