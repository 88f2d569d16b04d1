"""
Histogram binning of OLS and IV estimates.

Both estimate sets share one set of equal-width bins so their sampling
distributions can be drawn on the same axis. Bounds come from the 2nd and
98th percentiles of the pooled estimates, padded by 10% of that range on
each side; the heavy tails of IV under weak instruments would otherwise
squeeze the plot. Mass outside the padded range is dropped, so each
estimator's frequencies sum to at most 1.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List

import numpy as np
from numpy.typing import ArrayLike

from weakiv.config import (
    DEFAULT_BIN_COUNT,
    RANGE_PADDING,
    TRIM_LOWER_QUANTILE,
    TRIM_UPPER_QUANTILE,
)
from weakiv.exceptions import InvalidConfigurationError

if TYPE_CHECKING:
    from weakiv.simulation import SimulationResult


@dataclass(frozen=True)
class BinData:
    """One bin [range_start, range_end) with the share of each estimator."""
    range_start: float
    range_end: float
    midpoint: float
    ols_frequency: float
    iv_frequency: float

    @property
    def width(self) -> float:
        return self.range_end - self.range_start

    def to_dict(self) -> Dict[str, Any]:
        return {
            "range_start": self.range_start,
            "range_end": self.range_end,
            "midpoint": self.midpoint,
            "ols_frequency": self.ols_frequency,
            "iv_frequency": self.iv_frequency,
        }


def create_histogram_data(
    ols: ArrayLike,
    iv: ArrayLike,
    bins: int = DEFAULT_BIN_COUNT,
) -> List[BinData]:
    """
    Bin OLS and IV estimates on a shared, trimmed range.

    Parameters
    ----------
    ols : array-like
        OLS estimates.
    iv : array-like
        IV estimates.
    bins : int, default 40
        Number of bins.

    Returns
    -------
    list of BinData
        ``bins`` contiguous bins, or an empty list when both inputs are empty.
        If every pooled estimate is equal the range has zero width and all
        frequencies are 0.

    Raises
    ------
    InvalidConfigurationError
        If ``bins`` is not a positive integer.
    """
    if isinstance(bins, bool) or not isinstance(bins, (int, np.integer)) or bins < 1:
        raise InvalidConfigurationError(f"bins must be a positive integer, got {bins!r}")

    ols = np.asarray(ols, dtype=float).ravel()
    iv = np.asarray(iv, dtype=float).ravel()

    pooled = np.sort(np.concatenate([ols, iv]))
    n_pooled = len(pooled)
    if n_pooled == 0:
        return []

    # Percentile by truncated index
    min_val = pooled[math.floor(n_pooled * TRIM_LOWER_QUANTILE)]
    max_val = pooled[math.floor(n_pooled * TRIM_UPPER_QUANTILE)]

    value_range = max_val - min_val
    start = min_val - value_range * RANGE_PADDING
    end = max_val + value_range * RANGE_PADDING
    step = (end - start) / bins

    data = []
    for i in range(bins):
        range_start = start + i * step
        range_end = start + (i + 1) * step

        ols_count = np.count_nonzero((ols >= range_start) & (ols < range_end))
        iv_count = np.count_nonzero((iv >= range_start) & (iv < range_end))

        data.append(BinData(
            range_start=float(range_start),
            range_end=float(range_end),
            midpoint=float((range_start + range_end) / 2),
            ols_frequency=ols_count / len(ols) if len(ols) else 0.0,
            iv_frequency=iv_count / len(iv) if len(iv) else 0.0,
        ))

    return data


def bin_result(
    result: "SimulationResult",
    bins: int = DEFAULT_BIN_COUNT,
) -> List[BinData]:
    """Histogram of a completed run's estimates."""
    return create_histogram_data(result.ols_estimates, result.iv_estimates, bins)
