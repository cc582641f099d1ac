from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Mapping, Tuple

import numpy as np
import pandas as pd
from scipy.stats import binom

from .errors import InvalidModelError, LevelNotFoundError
from .lattice import LatticeSummary

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PriceTreeNode:
    price: float
    probability: float              # unconditional
    level: int


@dataclass(frozen=True)
class PriceTreeModel:
    """
    Price tree stored as two lookup tables keyed by integer node id.

    - levels: level -> ids of the nodes on that level
    - data: id -> PriceTreeNode

    Probabilities on each level are assumed to sum to one; nothing here
    checks it.
    """
    levels: Mapping[int, Tuple[int, ...]]
    data: Mapping[int, PriceTreeNode]


def _level_arrays(model: PriceTreeModel, level: int) -> Tuple[np.ndarray, np.ndarray]:
    if level not in model.levels:
        raise LevelNotFoundError(f"Level {level} not in tree (levels: {sorted(model.levels)}).")

    nodes = [model.data[i] for i in model.levels[level]]
    prices = np.array([n.price for n in nodes], dtype=float)
    probs = np.array([n.probability for n in nodes], dtype=float)
    return prices, probs


def expectation_at_level(model: PriceTreeModel, level: int) -> float:
    prices, probs = _level_arrays(model, level)
    return float(np.sum(prices * probs))


def variance_at_level(model: PriceTreeModel, level: int) -> float:
    """
    Probability-weighted variance of prices on a level.

    Two-pass form sum(p * (x - E)^2), so near-deterministic levels do not
    lose precision to E[X^2] - E[X]^2 cancellation.
    """
    prices, probs = _level_arrays(model, level)
    mean = float(np.sum(prices * probs))
    return float(np.sum(probs * (prices - mean) ** 2))


def expectation_over_levels(model: PriceTreeModel, levels: Iterable[int], start_index: int = 0) -> pd.DataFrame:
    """Expectation per level, in the order given, labelled time = level + start_index."""
    levels = list(levels)
    return pd.DataFrame(
        {
            "time": [level + start_index for level in levels],
            "expectation": [expectation_at_level(model, level) for level in levels],
        }
    )


def variance_over_levels(model: PriceTreeModel, levels: Iterable[int], start_index: int = 0) -> pd.DataFrame:
    levels = list(levels)
    return pd.DataFrame(
        {
            "time": [level + start_index for level in levels],
            "variance": [variance_at_level(model, level) for level in levels],
        }
    )


def build_binomial_price_tree(
    initial_price: float,
    up: float,
    down: float,
    p_up: float,
    depth: int,
) -> PriceTreeModel:
    """
    Recombining binomial tree out to `depth` levels.

    The node with k up-moves on level l has price S0 * up^k * down^(l-k) and
    probability binom.pmf(k, l, p_up). Ids run level by level from the root (0).
    """
    if initial_price <= 0:
        raise InvalidModelError(f"initial_price must be positive, got {initial_price}")
    if up <= 0 or down <= 0:
        raise InvalidModelError(f"Movement factors must be positive, got up={up}, down={down}")
    if not (0.0 <= p_up <= 1.0):
        raise InvalidModelError(f"p_up must lie in [0, 1], got {p_up}")
    if depth < 0:
        raise InvalidModelError(f"depth must be non-negative, got {depth}")

    levels = {}
    data = {}
    node_id = 0
    for level in range(depth + 1):
        k = np.arange(level + 1)
        prices = initial_price * up ** k * down ** (level - k)
        probs = binom.pmf(k, level, p_up)

        ids = []
        for price, prob in zip(prices, probs):
            data[node_id] = PriceTreeNode(price=float(price), probability=float(prob), level=level)
            ids.append(node_id)
            node_id += 1
        levels[level] = tuple(ids)

    logger.debug("Built binomial tree: depth=%s nodes=%s", depth, node_id)
    return PriceTreeModel(levels=levels, data=data)


def tree_from_lattice(summary: LatticeSummary, initial_price: float, depth: int) -> PriceTreeModel:
    """Binomial tree from a two-state lattice: S1 is the down move, S2 the up move."""
    if len(summary.labels) != 2:
        raise InvalidModelError(f"Need a two-state lattice, got {len(summary.labels)} states.")

    down, up = (float(f) for f in summary.avg_factor)
    if not (np.isfinite(down) and np.isfinite(up)):
        raise InvalidModelError("Lattice has an empty state; movement factor undefined.")

    return build_binomial_price_tree(initial_price, up=up, down=down, p_up=float(summary.freq[1]), depth=depth)
