"""
Data Generating Process for Weak-Instrument Simulations.

This module implements the just-identified linear IV design used by every
replication of the Monte Carlo engine.

Model
-----
    Structural equation:  y = β·x + u
    First stage:          x = π·z + v
    Instrument:           z ~ N(0, 1), independent of (u, v)
    Errors:               (u, v) ~ N(0, [[1, ρ], [ρ, 1]])

Endogeneity ρ = Corr(u, v) makes x correlated with u and biases OLS. The
first-stage coefficient π sets instrument strength; the concentration
parameter μ² = N·π² summarises how informative the instrument is.

All draws come from ``weakiv.rng.SeededRNG`` so a (seed, call sequence)
pair always reproduces the same sample.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np
from numpy.typing import NDArray

from weakiv.config import UNIFORM_FLOOR
from weakiv.rng import SeededRNG


# =============================================================================
# CORRELATED NORMALS
# =============================================================================

def generate_correlated_normals(
    n: int,
    rho: float,
    rng: SeededRNG,
) -> Tuple[NDArray, NDArray]:
    """
    Draw ``n`` pairs from a bivariate standard normal with correlation ρ.

    Uses the Box-Muller transform on two uniforms per pair, followed by a
    Cholesky step:
        z1 = √(−2 ln U1) · cos(2π U2)
        z2 = √(−2 ln U1) · sin(2π U2)
        v  = z1
        u  = ρ·z1 + √(1 − ρ²)·z2

    Parameters
    ----------
    n : int
        Number of pairs.
    rho : float
        Correlation coefficient, |ρ| ≤ 1. The caller is responsible for
        the range; ``SimulationParams.validate`` enforces |ρ| < 1.
    rng : SeededRNG
        Uniform stream. Consumes 2n draws in the order U1, U2, U1, U2, ...

    Returns
    -------
    u : ndarray of shape (n,)
    v : ndarray of shape (n,)
    """
    draws = rng.random(2 * n)
    u1 = draws[0::2]
    u2 = draws[1::2]

    # log(0) guard
    u1 = np.where(u1 <= 0.0, UNIFORM_FLOOR, u1)

    radius = np.sqrt(-2.0 * np.log(u1))
    angle = 2.0 * np.pi * u2
    z1 = radius * np.cos(angle)
    z2 = radius * np.sin(angle)

    v = z1
    u = rho * z1 + np.sqrt(1.0 - rho * rho) * z2
    return u, v


# =============================================================================
# ONE REPLICATION'S SAMPLE
# =============================================================================

@dataclass(frozen=True, eq=False)
class Sample:
    """
    One synthetic dataset (z, x, y) of length N.

    The structural and first-stage errors are used during generation only
    and are not kept.
    """
    z: NDArray
    x: NDArray
    y: NDArray

    @property
    def n(self) -> int:
        return len(self.x)


def generate_sample(
    n: int,
    iv_strength: float,
    endogeneity: float,
    beta: float,
    rng: SeededRNG,
) -> Sample:
    """
    Generate one replication's sample from the weak-IV design.

    The uniform stream is consumed in a fixed order: first the (u, v)
    errors with correlation ρ, then the instrument, taken as the first
    output of a second call with ρ = 0.

    Parameters
    ----------
    n : int
        Sample size N.
    iv_strength : float
        First-stage coefficient π.
    endogeneity : float
        Corr(u, v) = ρ.
    beta : float
        True structural coefficient β.
    rng : SeededRNG
        Uniform stream owned by the current run.

    Returns
    -------
    Sample
    """
    u, v = generate_correlated_normals(n, endogeneity, rng)
    z, _ = generate_correlated_normals(n, 0.0, rng)

    x = iv_strength * z + v
    y = beta * x + u
    return Sample(z=z, x=x, y=y)


# =============================================================================
# POPULATION QUANTITIES
# =============================================================================

def theoretical_ols_bias(iv_strength: float, endogeneity: float) -> float:
    """
    Probability limit of the OLS bias, plim β̂_OLS − β.

    With Var(z) = Var(v) = 1 and Cov(x, u) = Cov(v, u) = ρ:
        plim β̂_OLS − β = Cov(x, u) / Var(x) = ρ / (π² + 1)
    """
    return endogeneity / (iv_strength ** 2 + 1.0)


def concentration_parameter(n: int, iv_strength: float) -> float:
    """
    Concentration parameter μ² = N·π² / Var(v) with Var(v) = 1.

    Measures the information the instrument carries about x; the IV
    estimator is well approximated by a normal only when μ² is large.
    """
    return n * iv_strength ** 2


def expected_first_stage_f(n: int, iv_strength: float) -> float:
    """
    Large-sample approximation E[F] ≈ 1 + μ² of the first-stage F-statistic.
    """
    return 1.0 + concentration_parameter(n, iv_strength)
