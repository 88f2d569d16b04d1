"""
Weak-Instrument Diagnostics
===========================

Functions for interpreting the first-stage F-statistic and the relative
behaviour of OLS and IV across a Monte Carlo run.

The first-stage F measures how much independent variation the instrument
puts into the endogenous regressor. The conventional rule of thumb
(Staiger & Stock 1997) treats F < 10 as a weak instrument: the IV estimator
is then biased towards OLS in finite samples and its sampling distribution
has heavy tails.

Reference: Stock, J.H., Wright, J.H. & Yogo, M. (2002). "A Survey of Weak
Instruments and Weak Identification in GMM." JBES, 20(4), 518–529.
"""

from typing import TYPE_CHECKING, Any, Dict

import numpy as np
from numpy.typing import ArrayLike
from scipy import stats

from weakiv.config import WEAK_INSTRUMENT_F
from weakiv.dgp import concentration_parameter, theoretical_ols_bias

if TYPE_CHECKING:
    from weakiv.simulation import SimulationResult


def mean_f_statistic(f_stats: ArrayLike) -> float:
    """
    Mean first-stage F over replications.

    Returns ``nan`` for an empty input.
    """
    f_stats = np.asarray(f_stats, dtype=float).ravel()
    if len(f_stats) == 0:
        return np.nan
    return float(np.mean(f_stats))


def first_stage_pvalue(f_stat: float, n: int) -> float:
    """
    p-value of the first-stage F test with (1, n − 2) degrees of freedom.

    Parameters
    ----------
    f_stat : float
        First-stage F-statistic.
    n : int
        Sample size.

    Returns
    -------
    float
        P(F(1, n − 2) > f_stat); 0 for ``+inf``, ``nan`` for ``nan``.
    """
    if np.isnan(f_stat):
        return np.nan
    return float(stats.f.sf(f_stat, 1, n - 2))


def classify_instrument(
    f_stat: float,
    threshold: float = WEAK_INSTRUMENT_F,
) -> Dict[str, Any]:
    """
    Describe instrument strength from a (mean) first-stage F.

    Parameters
    ----------
    f_stat : float
        First-stage F-statistic, typically averaged over replications.
    threshold : float, default 10.0
        Rule-of-thumb cutoff.

    Returns
    -------
    dict
        Dictionary with:
        - description: 'weak', 'strong', or 'undefined'
        - is_weak: bool
        - f_stat: the input statistic
        - interpretation: guidance text
    """
    if np.isnan(f_stat):
        return {
            "description": "undefined",
            "is_weak": False,
            "f_stat": f_stat,
            "interpretation": (
                "The first-stage F-statistic is undefined, which happens when "
                "the regressor has no variation."
            ),
        }

    if f_stat < threshold:
        return {
            "description": "weak",
            "is_weak": True,
            "f_stat": f_stat,
            "interpretation": (
                f"Weak instrument detected (F = {f_stat:.1f} < {threshold:g}). "
                f"The instrument provides little independent variation, so "
                f"IV estimates may be unreliable, highly variable and biased "
                f"toward OLS."
            ),
        }

    return {
        "description": "strong",
        "is_weak": False,
        "f_stat": f_stat,
        "interpretation": (
            f"The instrument appears strong (F = {f_stat:.1f} ≥ {threshold:g}). "
            f"IV should be close to consistent with acceptable variance."
        ),
    }


def relative_bias(result: "SimulationResult") -> float:
    """
    IV bias as a fraction of OLS bias.

    Values near 0 indicate IV recovers β; values near 1 indicate IV has
    drifted all the way to OLS. Returns ``nan`` when the OLS bias is zero.
    """
    if result.ols_bias == 0:
        return np.nan
    return result.iv_bias / result.ols_bias


def summarize_result(result: "SimulationResult") -> Dict[str, Any]:
    """
    Collect the diagnostics of one run next to the population benchmarks.

    Returns
    -------
    dict
        Dictionary with:
        - mean_f_stat, instrument: empirical first stage and its description
        - concentration_parameter: μ² = N·π²
        - theoretical_ols_bias: ρ / (π² + 1)
        - ols_bias, iv_bias, ols_variance, iv_variance
        - variance_ratio: iv_variance / ols_variance
        - relative_bias: iv_bias / ols_bias
        - median_iv_bias: median(β̂_IV) − β, robust to IV's heavy tails
    """
    p = result.params
    mean_f = mean_f_statistic(result.f_stats)
    instrument = classify_instrument(mean_f)

    if result.ols_variance > 0:
        variance_ratio = result.iv_variance / result.ols_variance
    else:
        variance_ratio = np.nan

    return {
        "mean_f_stat": mean_f,
        "instrument": instrument["description"],
        "concentration_parameter": concentration_parameter(p.sample_size, p.iv_strength),
        "theoretical_ols_bias": theoretical_ols_bias(p.iv_strength, p.endogeneity),
        "ols_bias": result.ols_bias,
        "iv_bias": result.iv_bias,
        "ols_variance": result.ols_variance,
        "iv_variance": result.iv_variance,
        "variance_ratio": variance_ratio,
        "relative_bias": relative_bias(result),
        "median_iv_bias": float(np.median(result.iv_estimates)) - p.beta_true,
    }
