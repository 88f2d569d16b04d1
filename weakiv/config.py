"""
Configuration constants for the weak-IV Monte Carlo engine.

Defaults reproduce the reference design: y = βx + u, x = πz + v with
Corr(u, v) = ρ, z ~ N(0, 1) and β = 1.
"""

from __future__ import annotations

from typing import Dict, List


# =============================================================================
# RUN DEFAULTS
# =============================================================================

BETA_TRUE: float = 1.0               # True structural coefficient β
DEFAULT_IV_STRENGTH: float = 0.5     # First-stage coefficient π
DEFAULT_ENDOGENEITY: float = 0.8     # Corr(u, v) = ρ
DEFAULT_SAMPLE_SIZE: int = 500       # N
DEFAULT_REPLICATIONS: int = 500      # R
DEFAULT_SEED: int = 12345


# =============================================================================
# NUMERICAL CONSTANTS
# =============================================================================

IV_DENOMINATOR_TOL: float = 1e-9     # |Cov(z, x)| below this gives β̂_IV = 0
UNIFORM_FLOOR: float = 1e-7          # Replaces u1 = 0 before log() in Box-Muller
TRIM_LOWER_QUANTILE: float = 0.02    # Histogram bounds: 2nd percentile
TRIM_UPPER_QUANTILE: float = 0.98    # and 98th percentile
RANGE_PADDING: float = 0.10          # Fraction of trimmed range added per side
DEFAULT_BIN_COUNT: int = 40

# Conventional rule of thumb (Staiger & Stock 1997)
WEAK_INSTRUMENT_F: float = 10.0


# =============================================================================
# BATCHING
# =============================================================================
# Large samples yield to the event loop after every replication so that
# pause and cancel requests are seen quickly.

LARGE_SAMPLE_THRESHOLD: int = 10_000
SMALL_SAMPLE_BATCH: int = 10
LARGE_SAMPLE_BATCH: int = 1


# =============================================================================
# INTERACTIVE RANGES
# =============================================================================
# Offered by front ends. Validation does not enforce them.

SAMPLE_SIZE_CHOICES: List[int] = [
    100, 500, 1_000, 5_000, 10_000, 100_000, 500_000, 1_000_000,
]

PARAM_RANGES: Dict[str, Dict] = {
    "iv_strength": {"min": 0.05, "max": 1.5, "step": 0.05,
                    "label": "IV Strength (π)"},
    "endogeneity": {"min": 0.0, "max": 0.9, "step": 0.1,
                    "label": "Endogeneity (ρ)"},
    "sample_size": {"choices": SAMPLE_SIZE_CHOICES,
                    "label": "Sample Size (N)"},
    "replications": {"min": 10, "max": 10_000, "step": 10,
                     "label": "Replications"},
}
