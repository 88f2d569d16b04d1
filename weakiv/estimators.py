"""
OLS, IV and First-Stage Estimators
==================================

Single-regressor estimators applied to every replication. All functions are
pure and work on 1-d arrays of equal length n ≥ 2.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np
from numpy.typing import ArrayLike, NDArray

from weakiv.config import IV_DENOMINATOR_TOL


def _as_vectors(*arrays: ArrayLike) -> Tuple[NDArray, ...]:
    """Coerce inputs to float vectors and check they have equal length."""
    vectors = tuple(np.asarray(a, dtype=float).ravel() for a in arrays)
    n = len(vectors[0])
    if any(len(v) != n for v in vectors):
        raise ValueError("All inputs must have the same number of observations")
    return vectors


def sample_mean(a: ArrayLike) -> float:
    """Arithmetic mean."""
    return float(np.mean(a))


def population_variance(a: ArrayLike) -> float:
    """Variance with divisor n (not n − 1)."""
    return float(np.var(a))


# =============================================================================
# OLS
# =============================================================================

def estimate_ols(x: ArrayLike, y: ArrayLike) -> float:
    """
    OLS slope of y on x (with intercept).

        β̂_OLS = Σ(xᵢ − x̄)(yᵢ − ȳ) / Σ(xᵢ − x̄)²

    A constant x has no slope; the ratio is returned unguarded and is then
    ``inf`` or ``nan``. With a continuous regressor this does not occur.

    Parameters
    ----------
    x : array-like of shape (n,)
        Regressor.
    y : array-like of shape (n,)
        Outcome.

    Returns
    -------
    float
    """
    x, y = _as_vectors(x, y)
    dx = x - x.mean()
    dy = y - y.mean()
    with np.errstate(divide="ignore", invalid="ignore"):
        return float(np.float64(dx @ dy) / np.float64(dx @ dx))


# =============================================================================
# IV (2SLS)
# =============================================================================

def estimate_iv(x: ArrayLike, y: ArrayLike, z: ArrayLike) -> float:
    """
    Just-identified IV (2SLS) estimate of β.

        β̂_IV = Σ(zᵢ − z̄)(yᵢ − ȳ) / Σ(zᵢ − z̄)(xᵢ − x̄)

    This is the reduced-form slope over the first-stage slope (Wald ratio).

    Parameters
    ----------
    x : array-like of shape (n,)
        Endogenous regressor.
    y : array-like of shape (n,)
        Outcome.
    z : array-like of shape (n,)
        Instrument.

    Returns
    -------
    float
        The estimate, or exactly 0.0 when |Σ(zᵢ − z̄)(xᵢ − x̄)| < 1e-9
        (the instrument carries no identifying variation).
    """
    x, y, z = _as_vectors(x, y, z)
    dz = z - z.mean()
    num = dz @ (y - y.mean())
    den = dz @ (x - x.mean())

    if abs(den) < IV_DENOMINATOR_TOL:
        return 0.0
    return float(num / den)


# =============================================================================
# FIRST-STAGE F
# =============================================================================

def first_stage_f(z: ArrayLike, x: ArrayLike) -> float:
    """
    First-stage F-statistic for instrument relevance.

    Regresses x on z to get π̂, then
        SSR = Σ(xᵢ − π̂·zᵢ)²
        SST = n · Var(x)
        R²  = 1 − SSR / SST
        F   = R²·(n − 2) / (1 − R²)

    Fitted values are π̂·zᵢ without an intercept term.

    Unlike ``estimate_iv`` there is no denominator guard. A perfect first
    stage (R² = 1) returns ``+inf``; a constant x (SST = 0) returns ``nan``.
    Neither case emits a numpy warning.

    Parameters
    ----------
    z : array-like of shape (n,)
        Instrument.
    x : array-like of shape (n,)
        Endogenous regressor.

    Returns
    -------
    float
    """
    z, x = _as_vectors(z, x)
    n = len(x)

    pi_hat = estimate_ols(z, x)
    residuals = x - pi_hat * z
    ssr = residuals @ residuals
    sst = np.var(x) * n

    with np.errstate(divide="ignore", invalid="ignore"):
        r_squared = 1.0 - np.float64(ssr) / np.float64(sst)
        f_stat = r_squared * (n - 2) / (1.0 - r_squared)
    return float(f_stat)
