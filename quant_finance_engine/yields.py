from __future__ import annotations

import logging
import math
import warnings
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Tuple, Union

import pandas as pd
from scipy.optimize import brentq

from .bonds import CouponSecurity, net_present_value_residual
from .errors import (
    ConvergenceWarning,
    EmptyInputError,
    InvalidModelError,
    NumericalDivergenceError,
)
from .utils import security_term

logger = logging.getLogger(__name__)

Residual = Callable[[float], float]


@dataclass(frozen=True)
class SolverConfig:
    """
    Secant solver settings.

    seeds are the two starting yields; 1% and 10% suit typical coupon
    securities quoted near par.
    """
    tolerance: float = 1e-6
    max_iterations: int = 100
    seeds: Tuple[float, float] = (0.01, 0.10)

    def __post_init__(self):
        if not self.tolerance > 0:
            raise InvalidModelError(f"tolerance must be positive, got {self.tolerance}")
        if self.max_iterations < 1:
            raise InvalidModelError(f"max_iterations must be >= 1, got {self.max_iterations}")
        if len(self.seeds) != 2:
            raise InvalidModelError(f"seeds must hold two yields, got {self.seeds}")


@dataclass
class _SecantState:
    y1: float
    f1: float
    y2: float
    f2: float
    trace: Dict[int, float] = field(default_factory=dict)
    iterations: int = 0
    error: float = math.inf
    converged: bool = False


def _secant_step(state: _SecantState) -> float:
    denom = state.f2 - state.f1
    if denom == 0.0:
        raise NumericalDivergenceError(
            f"Secant step undefined: equal residuals {state.f2} at yields {state.y1} and {state.y2}."
        )

    y_next = state.y2 - state.f2 * (state.y2 - state.y1) / denom
    if not math.isfinite(y_next):
        raise NumericalDivergenceError(f"Secant step produced a non-finite yield from {state.y1}, {state.y2}.")
    return y_next


def _run_secant(residual: Residual, config: SolverConfig) -> _SecantState:
    y1, y2 = (float(s) for s in config.seeds)
    state = _SecantState(y1=y1, f1=residual(y1), y2=y2, f2=residual(y2))
    state.trace[0] = y2

    for iteration in range(1, config.max_iterations + 1):
        y_next = _secant_step(state)
        state.error = abs(y_next - state.y2)
        state.iterations = iteration
        state.trace[iteration] = y_next
        logger.debug("Secant iter %s: y=%s error=%s", iteration, y_next, state.error)

        if state.error < config.tolerance:
            state.y2 = y_next
            state.converged = True
            break

        state.y1, state.f1 = state.y2, state.f2
        state.y2, state.f2 = y_next, residual(y_next)

    if not state.converged:
        warnings.warn(
            f"Maximum number of iterations ({config.max_iterations}) reached before convergence. "
            f"Current error: {state.error}",
            ConvergenceWarning,
            stacklevel=3,
        )
    return state


def solve_yield_to_maturity(
    security: CouponSecurity,
    term_years: float,
    observed_price: float,
    tolerance: float = 1e-6,
    max_iterations: int = 100,
    seeds: Tuple[float, float] = (0.01, 0.10),
    config: Optional[SolverConfig] = None,
) -> Tuple[float, Dict[int, float]]:
    """
    Yield to maturity by the secant method on the NPV residual.

    Returns (estimate, trace). trace[0] is the starting yield (second seed),
    trace[k] the estimate after update k. A config, when given, replaces the
    keyword settings.

    Running out of iterations emits ConvergenceWarning and still returns the
    last estimate. Equal residuals at the two current points raise
    NumericalDivergenceError.
    """
    if config is None:
        config = SolverConfig(tolerance=tolerance, max_iterations=max_iterations, seeds=tuple(seeds))

    def residual(y: float) -> float:
        return net_present_value_residual(security, y, term_years, observed_price)

    state = _run_secant(residual, config)
    return state.y2, state.trace


def solve_yield_bracketed(
    security: CouponSecurity,
    term_years: float,
    observed_price: float,
    lower: float = -0.5,
    upper: float = 1.0,
    xtol: float = 1e-12,
) -> float:
    """Yield to maturity by Brent's method inside [lower, upper]."""

    def residual(y: float) -> float:
        return net_present_value_residual(security, y, term_years, observed_price)

    fa, fb = residual(lower), residual(upper)
    if fa * fb > 0:
        raise InvalidModelError(f"Root not bracketed by [{lower}, {upper}] for price {observed_price}.")

    return float(brentq(residual, lower, upper, xtol=xtol, maxiter=300))


def _term_in_years(term: Union[str, float]) -> float:
    if isinstance(term, str):
        return security_term(term)
    return float(term)


def solve_yields_for_portfolio(
    table: pd.DataFrame,
    method: str = "secant",
    config: Optional[SolverConfig] = None,
) -> pd.DataFrame:
    """
    Row-wise yield to maturity for a table of securities.

    Expected columns: coupon_rate, term, price; optional security_id,
    par_value (default 1.0), payments_per_year (default 2). term is years or
    a label such as "2-Year".
    """
    if table.empty:
        raise EmptyInputError("Security table is empty.")
    if method not in ("secant", "brentq"):
        raise InvalidModelError(f"method must be 'secant' or 'brentq', got {method!r}")
    if config is None:
        config = SolverConfig()

    term_list, ytm_list, iter_list, conv_list = [], [], [], []
    for i, r in table.iterrows():
        security = CouponSecurity(
            coupon_rate=float(r["coupon_rate"]),
            par_value=float(r.get("par_value", 1.0)),
            payments_per_year=int(r.get("payments_per_year", 2)),
            security_id=str(r.get("security_id", i)),
        )
        term_years = _term_in_years(r["term"])
        price = float(r["price"])

        if method == "brentq":
            ytm = solve_yield_bracketed(security, term_years, price)
            iterations, converged = 0, True
        else:
            state = _run_secant(
                lambda y: net_present_value_residual(security, y, term_years, price),
                config,
            )
            ytm, iterations, converged = state.y2, state.iterations, state.converged

        term_list.append(term_years)
        ytm_list.append(ytm)
        iter_list.append(iterations)
        conv_list.append(converged)

    out = table.copy()
    out["term_years"] = term_list
    out["ytm"] = ytm_list
    out["iterations"] = iter_list
    out["converged"] = conv_list
    return out
