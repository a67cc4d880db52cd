"""
Deterministic synthetic price series shared by the test modules.
"""

import math

import numpy as np


def mean_reverting_pair(n=300, seed=7, phi=0.85, hedge=1.2):
    """
    Secondary follows a random walk in logs; primary = hedge * secondary plus
    an AR(1) spread with coefficient `phi` (half-life ~4 bars for 0.85).
    """
    rng = np.random.default_rng(seed)
    log_s = 4.0 + np.cumsum(rng.normal(0.0, 0.02, n))
    spread = np.zeros(n)
    shocks = rng.normal(0.0, 0.01, n)
    for i in range(1, n):
        spread[i] = phi * spread[i - 1] + shocks[i]
    log_p = 0.3 + hedge * log_s + spread
    return np.exp(log_p), np.exp(log_s)


def drifting_pair(n=300, seed=11):
    """Spread trends steadily away from a trendless secondary; never mean reverts."""
    rng = np.random.default_rng(seed)
    steps = np.arange(n)
    log_s = 4.0 + 0.05 * np.sin(steps / 5.0) + rng.normal(0.0, 0.005, n)
    drift = 0.003 * steps + rng.normal(0.0, 0.002, n)
    log_p = log_s + drift
    return np.exp(log_p), np.exp(log_s)


def random_walk_pair(n=300, seed=5, drift=0.003):
    """
    Secondary pinned flat, so the spread is exactly the primary's log random
    walk (cumulative noise plus drift, no pull back to a mean).
    """
    rng = np.random.default_rng(seed)
    log_s = np.full(n, 4.0)
    walk = np.cumsum(rng.normal(drift, 0.01, n))
    log_p = 4.2 + walk
    return np.exp(log_p), np.exp(log_s)


def backtest_pair(length):
    """Trending primary with seasonality; secondary offset by a wavy spread with shocks."""
    primary = []
    secondary = []
    for i in range(length):
        trend = 100 + i * 0.08
        seasonality = math.sin(i / 6) * 0.7
        price = trend + seasonality
        shock = (6 - (i % 90)) * 0.02 if i % 90 < 6 else 0.0
        spread = math.sin(i / 12) * 0.01 + shock
        primary.append(price)
        secondary.append(price * math.exp(-spread))
    return primary, secondary
