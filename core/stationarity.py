"""
Pair Reversion Engine - Stationarity / Mean-Reversion Analyzer

Decides whether the hedge-ratio spread of a pair is statistically tradable.

A pair is TRADABLE only when all three checks pass:
- ADF: the spread itself rejects a unit root (t-stat < critical value)
- Cointegration: residuals of ln(primary) ~ ln(secondary) reject a unit root
- Half-life: AR(1) half-life of the spread lies within [min, max] bars

The pass/fail decision uses a single fixed critical value (-2.86, ~5% level
with constant, no trend). MacKinnon p-values from statsmodels are reported
alongside for information only.
"""

import logging
import math
from typing import Tuple

import numpy as np
import statsmodels.api as sm
from statsmodels.tsa.adfvalues import mackinnonp

from .constants import (
    ADF_CRITICAL_VALUE,
    ADF_MIN_OBSERVATIONS,
    BETA_CLAMP,
    BETA_MIN_MAGNITUDE,
    EPSILON,
)
from .models import AdfTestResult, RollingBeta, StationarityAnalysis, StationarityConfig
from .statistics import ArrayLike, clamp, is_finite

logger = logging.getLogger(__name__)


def _log_prices(values: ArrayLike) -> np.ndarray:
    return np.log(np.maximum(np.asarray(values, dtype=np.float64), EPSILON))


def linear_regression(y: np.ndarray, x: np.ndarray) -> Tuple[float, float, float]:
    """
    Simple OLS y = a + b·x.

    Returns:
        (slope, intercept, slope_std_err); std err is inf when the fit is
        degenerate (fewer than 3 points or no variance in x)
    """
    n = min(len(y), len(x))
    if n < 3:
        return 0.0, 0.0, math.inf
    y = y[:n]
    x = x[:n]
    x_mean = x.mean()
    y_mean = y.mean()
    dx = x - x_mean
    var_x = float(np.dot(dx, dx))
    if var_x < EPSILON:
        return 0.0, float(y_mean), math.inf
    slope = float(np.dot(dx, y - y_mean)) / var_x
    intercept = float(y_mean - slope * x_mean)
    residuals = y - (intercept + slope * x)
    sse = float(np.dot(residuals, residuals))
    std_err = math.sqrt(sse / (n - 2) / var_x)
    return slope, intercept, std_err


def _bounded_beta(slope: float) -> float:
    beta = clamp(slope, -BETA_CLAMP, BETA_CLAMP) if is_finite(slope) else 0.0
    if abs(beta) < BETA_MIN_MAGNITUDE:
        beta = -BETA_MIN_MAGNITUDE if beta < 0 else BETA_MIN_MAGNITUDE
    return beta


def calculate_rolling_beta(
    primary: ArrayLike,
    secondary: ArrayLike,
    config: StationarityConfig = StationarityConfig(),
) -> RollingBeta:
    """
    Rolling hedge ratio: OLS of ln(primary) on ln(secondary) per bar.

    Estimates start at the first bar with `rolling_beta_min_window` bars of
    history and use the trailing `rolling_beta_window` bars (all available
    bars until the window fills). `beta_series[k]` therefore belongs to bar
    `k + rolling_beta_min_window - 1`. A series shorter than the minimum
    window gets a single estimate over all of its bars.
    Betas are clamped to [-5, 5] and kept at least 0.05 away from zero.
    """
    log_p = _log_prices(primary)
    log_s = _log_prices(secondary)
    n = min(log_p.size, log_s.size)
    if n < 3:
        return RollingBeta(beta_series=(), current_beta=1.0)

    first_end = min(config.rolling_beta_min_window, n)
    betas = []
    for end in range(first_end, n + 1):
        start = max(0, end - config.rolling_beta_window)
        slope, _, _ = linear_regression(log_p[start:end], log_s[start:end])
        betas.append(_bounded_beta(slope))

    return RollingBeta(beta_series=tuple(betas), current_beta=betas[-1])


def build_spread(primary: ArrayLike, secondary: ArrayLike, beta: float) -> np.ndarray:
    """Log spread with one hedge ratio applied across the whole history."""
    log_p = _log_prices(primary)
    log_s = _log_prices(secondary)
    n = min(log_p.size, log_s.size)
    return log_p[:n] - beta * log_s[:n]


def _approximate_p_value(t_stat: float, n_series: int) -> float:
    if not is_finite(t_stat):
        return 0.0 if t_stat < 0 else 1.0
    return float(mackinnonp(t_stat, regression="c", N=n_series))


def perform_adf_test(
    series: ArrayLike,
    critical_value: float = ADF_CRITICAL_VALUE,
    lags: int = 0,
    n_series: int = 1,
) -> AdfTestResult:
    """
    Augmented Dickey-Fuller test with a fixed critical value.

    1. Δs_t = s_t - s_{t-1}
    2. Regress Δs_t = α + λ·s_{t-1} + Σ γ_k·Δs_{t-k}  (k = 1..lags)
    3. t = λ / SE(λ); passed when t is below `critical_value`. An exact fit
       gives ±inf by the sign of λ (0 when λ is zero)

    Args:
        series: Spread or regression residuals
        critical_value: Rejection threshold for the t-statistic
        lags: Number of lagged differences
        n_series: 1 for a plain ADF, 2 for residuals of a two-leg regression
            (only affects the informational p-value)

    Returns:
        AdfTestResult; fewer than 20 observations gives t=0, not passed
    """
    values = np.asarray(series, dtype=np.float64)
    values = values[np.isfinite(values)]
    if values.size < ADF_MIN_OBSERVATIONS:
        return AdfTestResult(t_stat=0.0, critical_value=critical_value, passed=False,
                             p_value=1.0, n_obs=int(values.size))

    lags = max(0, int(lags))
    differences = np.diff(values)
    lagged_level = values[:-1]
    dy = differences[lags:]
    columns = [np.ones(dy.size), lagged_level[lags:]]
    for k in range(1, lags + 1):
        columns.append(differences[lags - k:differences.size - k])
    X = np.column_stack(columns)
    n_obs, n_params = X.shape

    if n_obs <= n_params or np.ptp(lagged_level[lags:]) < EPSILON:
        return AdfTestResult(t_stat=0.0, critical_value=critical_value, passed=False,
                             p_value=1.0, n_obs=int(n_obs))

    try:
        XtX_inv = np.linalg.inv(X.T @ X)
    except np.linalg.LinAlgError:
        logger.debug("ADF regression singular (%d obs)", n_obs)
        return AdfTestResult(t_stat=0.0, critical_value=critical_value, passed=False,
                             p_value=1.0, n_obs=int(n_obs))

    coefficients = XtX_inv @ X.T @ dy
    residuals = dy - X @ coefficients
    sse = float(residuals @ residuals)
    se_lambda = math.sqrt(max(sse / (n_obs - n_params), 0.0) * max(float(XtX_inv[1, 1]), 0.0))

    lam = float(coefficients[1])
    if se_lambda < EPSILON or sse <= EPSILON * float(dy @ dy):
        # Exact fit: the sign of lambda decides, a zero slope is no evidence
        t_stat = math.copysign(math.inf, lam) if abs(lam) > EPSILON else 0.0
    else:
        t_stat = lam / se_lambda

    passed = not math.isnan(t_stat) and t_stat < critical_value
    return AdfTestResult(
        t_stat=t_stat,
        critical_value=critical_value,
        passed=bool(passed),
        p_value=_approximate_p_value(t_stat, n_series),
        n_obs=int(n_obs),
    )


def perform_cointegration_test(
    primary: ArrayLike,
    secondary: ArrayLike,
    critical_value: float = ADF_CRITICAL_VALUE,
) -> AdfTestResult:
    """
    Engle-Granger style check: OLS ln(primary) ~ const + ln(secondary),
    then ADF on the residuals.
    """
    log_p = _log_prices(primary)
    log_s = _log_prices(secondary)
    n = min(log_p.size, log_s.size)
    if n < ADF_MIN_OBSERVATIONS:
        return AdfTestResult(t_stat=0.0, critical_value=critical_value, passed=False,
                             p_value=1.0, n_obs=n)

    X = sm.add_constant(log_s[:n], has_constant="add")
    model = sm.OLS(log_p[:n], X).fit()
    return perform_adf_test(np.asarray(model.resid), critical_value, n_series=2)


def estimate_half_life(series: ArrayLike) -> float:
    """
    AR(1) half-life in bars.

    Regress Δs_t on s_{t-1}; φ = 1 + λ. Half-life = -ln(2) / ln(φ) for
    0 < φ < 1, otherwise inf (no reversion).
    """
    values = np.asarray(series, dtype=np.float64)
    values = values[np.isfinite(values)]
    if values.size < ADF_MIN_OBSERVATIONS:
        return math.inf

    slope, _, _ = linear_regression(np.diff(values), values[:-1])
    phi = 1.0 + slope
    if not is_finite(phi) or phi <= 0.0 or phi >= 1.0:
        return math.inf
    half_life = -math.log(2.0) / math.log(phi)
    return half_life if is_finite(half_life) and half_life > 0 else math.inf


def analyze_stationarity(
    primary: ArrayLike,
    secondary: ArrayLike,
    config: StationarityConfig = StationarityConfig(),
) -> StationarityAnalysis:
    """
    Full mean-reversion verdict for an aligned pair of price series.

    Returns a neutral, non-tradable result when fewer than
    `rolling_beta_min_window` bars are available.
    """
    n = min(len(primary), len(secondary))
    if n < config.rolling_beta_min_window:
        logger.debug("Stationarity skipped: %d bars < %d", n, config.rolling_beta_min_window)
        return StationarityAnalysis(
            adf_critical_value=config.adf_critical_value,
            cointegration_critical_value=config.adf_critical_value,
            sample_size=n,
        )

    rolling = calculate_rolling_beta(primary, secondary, config)
    spread = build_spread(primary, secondary, rolling.current_beta)

    adf = perform_adf_test(spread, config.adf_critical_value, lags=config.adf_lags)
    cointegration = perform_cointegration_test(primary, secondary, config.adf_critical_value)
    half_life = estimate_half_life(spread)
    half_life_passed = config.min_half_life_bars <= half_life <= config.max_half_life_bars

    return StationarityAnalysis(
        adf_t_stat=adf.t_stat,
        adf_critical_value=adf.critical_value,
        adf_passed=adf.passed,
        adf_p_value=adf.p_value,
        cointegration_t_stat=cointegration.t_stat,
        cointegration_critical_value=cointegration.critical_value,
        cointegration_passed=cointegration.passed,
        cointegration_p_value=cointegration.p_value,
        half_life_bars=half_life,
        half_life_passed=bool(half_life_passed),
        is_tradable=bool(adf.passed and cointegration.passed and half_life_passed),
        current_beta=rolling.current_beta,
        sample_size=n,
    )
