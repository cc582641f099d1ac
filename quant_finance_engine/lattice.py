from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Tuple

import numpy as np
import pandas as pd

from .errors import EmptyInputError, InvalidModelError

logger = logging.getLogger(__name__)

_METHOD_ALIASES = {
    "quantile": "quantile",
    "equal_width": "equal_width",
    "equalwidth": "equal_width",
    "equalWidth": "equal_width",
}


@dataclass(frozen=True)
class LatticeSummary:
    """
    One-step n-state lattice calibrated from growth rates.

    - edges: n+1 strictly increasing bin boundaries in growth-rate space
    - avg_factor: mean exp(mu * dt) per bin (NaN for an empty bin)
    - freq: count / n_samples per bin
    - counts: samples per bin
    - labels: "S1".."Sn"
    """
    edges: np.ndarray
    avg_factor: np.ndarray
    freq: np.ndarray
    counts: np.ndarray
    labels: Tuple[str, ...]
    method: str
    dt: float
    n_samples: int


def clean_growth_rates(values: Iterable) -> np.ndarray:
    """Drop missing, non-numeric and non-finite entries."""
    mu = pd.to_numeric(pd.Series(list(values), dtype=object), errors="coerce").to_numpy(dtype=float, na_value=np.nan)
    mu = mu[np.isfinite(mu)]
    if mu.size == 0:
        raise EmptyInputError("Growth-rate sample contains no finite values.")
    return mu


def movement_factors(mu: np.ndarray, dt: float = 1.0) -> np.ndarray:
    """F = exp(mu * dt) for log-return growth rates."""
    return np.exp(np.asarray(mu, dtype=float) * dt)


def compute_edges_quantile(v: np.ndarray, n: int) -> np.ndarray:
    """Equal-mass edges; tied edges are nudged up so bins stay well ordered."""
    if n < 2:
        raise InvalidModelError(f"n must be >= 2, got {n}")

    edges = np.quantile(np.asarray(v, dtype=float), np.linspace(0.0, 1.0, n + 1))
    for i in range(1, len(edges)):
        if edges[i] <= edges[i - 1]:
            edges[i] = np.nextafter(edges[i - 1], np.inf)
    return edges


def compute_edges_equal_width(v: np.ndarray, n: int) -> np.ndarray:
    if n < 2:
        raise InvalidModelError(f"n must be >= 2, got {n}")

    rmin, rmax = float(np.min(v)), float(np.max(v))
    if rmax == rmin:
        # constant sample: open a tiny symmetric range around it
        delta = max(abs(rmin), 1.0) * 1e-12
        rmin, rmax = rmin - delta, rmax + delta
    return np.linspace(rmin, rmax, n + 1)


def assign_bins(v: np.ndarray, edges: np.ndarray) -> np.ndarray:
    """
    0-based bin index per value: the greatest edge <= value, clamped to the
    n bins. Bins are [e_k, e_k+1) except the last, which is closed.
    """
    idx = np.searchsorted(edges, v, side="right") - 1
    return np.clip(idx, 0, len(edges) - 2)


def aggregate_bin_stats(
    factors: np.ndarray, idx: np.ndarray, n: int
) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """Returns (counts, sums, avg_factor, freq) per bin."""
    counts = np.bincount(idx, minlength=n)
    sums = np.bincount(idx, weights=factors, minlength=n).astype(float)

    avg_factor = np.full(n, np.nan)
    filled = counts > 0
    avg_factor[filled] = sums[filled] / counts[filled]

    freq = counts / len(idx)
    return counts, sums, avg_factor, freq


def _readonly(a: np.ndarray) -> np.ndarray:
    a = np.array(a)
    a.flags.writeable = False
    return a


def build_lattice(
    growth_rates: Iterable,
    n: int = 3,
    dt: float = 1.0,
    method: str = "quantile",
) -> LatticeSummary:
    """
    n-state one-step lattice from growth rates mu (log-returns per unit time).

    method:
    - "quantile": equal-mass bins
    - "equal_width": uniform bins over [min, max] of mu

    Deterministic: the same inputs give bit-identical summaries.
    """
    if n < 2:
        raise InvalidModelError(f"n must be >= 2, got {n}")
    if not dt > 0:
        raise InvalidModelError(f"dt must be positive, got {dt}")
    if method not in _METHOD_ALIASES:
        raise InvalidModelError(f"method must be 'quantile' or 'equal_width', got {method!r}")
    method = _METHOD_ALIASES[method]

    mu = clean_growth_rates(growth_rates)
    factors = movement_factors(mu, dt)

    if method == "quantile":
        edges = compute_edges_quantile(mu, n)
    else:
        edges = compute_edges_equal_width(mu, n)
    logger.debug("Lattice edges (%s, n=%s): %s", method, n, edges)

    idx = assign_bins(mu, edges)
    counts, _, avg_factor, freq = aggregate_bin_stats(factors, idx, n)

    return LatticeSummary(
        edges=_readonly(edges),
        avg_factor=_readonly(avg_factor),
        freq=_readonly(freq),
        counts=_readonly(counts),
        labels=tuple(f"S{k}" for k in range(1, n + 1)),
        method=method,
        dt=float(dt),
        n_samples=int(mu.size),
    )


def lattice_table(summary: LatticeSummary) -> pd.DataFrame:
    """One row per state with its growth-rate bin, average factor and frequency."""
    return pd.DataFrame(
        {
            "state": list(summary.labels),
            "low": summary.edges[:-1],
            "high": summary.edges[1:],
            "avg_factor": summary.avg_factor,
            "freq": summary.freq,
            "count": summary.counts,
        }
    )
