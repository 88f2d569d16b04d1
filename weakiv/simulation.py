"""
Monte Carlo Replication Engine
==============================

Runs R replications of the weak-IV design and collects the OLS estimate,
the IV estimate and the first-stage F-statistic of each one.

The loop is a coroutine. It yields to the event loop every K replications
(K from ``batch_size_for``) and, at the same checkpoints, waits on an
optional pause gate. A cancellation token is checked before every
replication. Cancellation is an ordinary outcome: ``run_monte_carlo``
returns ``Cancelled`` instead of raising, and no partial result is exposed.

Replications run strictly in index order and consume one ``SeededRNG``
owned by the run, so a given seed always yields the same estimates no
matter how often the loop yields or pauses.
"""

from __future__ import annotations

import asyncio
import logging
import math
import threading
import warnings
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Union

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from numpy.typing import NDArray
from tqdm import tqdm

from weakiv.config import (
    BETA_TRUE,
    DEFAULT_SEED,
    LARGE_SAMPLE_BATCH,
    LARGE_SAMPLE_THRESHOLD,
    SMALL_SAMPLE_BATCH,
)
from weakiv.dgp import generate_sample
from weakiv.estimators import (
    estimate_iv,
    estimate_ols,
    first_stage_f,
    population_variance,
    sample_mean,
)
from weakiv.exceptions import InvalidConfigurationError
from weakiv.rng import SeededRNG, substream_seed

logger = logging.getLogger(__name__)


# =============================================================================
# Parameters
# =============================================================================

@dataclass(frozen=True)
class SimulationParams:
    """
    Inputs of one Monte Carlo run. Fixed for the duration of the run.

    Attributes
    ----------
    sample_size : int
        Observations per replication, N ≥ 2.
    replications : int
        Number of replications, R ≥ 1.
    iv_strength : float
        First-stage coefficient π.
    endogeneity : float
        Corr(u, v) = ρ, strictly inside (−1, 1).
    beta_true : float
        True structural coefficient β.
    seed : int
        RNG seed (reduced modulo 2^32).
    """
    sample_size: int
    replications: int
    iv_strength: float
    endogeneity: float
    beta_true: float = BETA_TRUE
    seed: int = DEFAULT_SEED

    def validate(self) -> "SimulationParams":
        """
        Check the parameters and return ``self``.

        Raises
        ------
        InvalidConfigurationError
            If N < 2, R < 1, |ρ| ≥ 1, or any value has the wrong type or
            is not finite.
        """
        for name in ("sample_size", "replications", "seed"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
                raise InvalidConfigurationError(
                    f"{name} must be an integer, got {value!r}"
                )
        for name in ("iv_strength", "endogeneity", "beta_true"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float, np.number)):
                raise InvalidConfigurationError(
                    f"{name} must be a real number, got {value!r}"
                )
            if not math.isfinite(value):
                raise InvalidConfigurationError(
                    f"{name} must be finite, got {value!r}"
                )

        if self.sample_size < 2:
            raise InvalidConfigurationError(
                f"sample_size must be at least 2, got {self.sample_size}"
            )
        if self.replications < 1:
            raise InvalidConfigurationError(
                f"replications must be at least 1, got {self.replications}"
            )
        if not -1.0 < self.endogeneity < 1.0:
            raise InvalidConfigurationError(
                f"endogeneity must lie strictly between -1 and 1, "
                f"got {self.endogeneity}"
            )
        return self

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "SimulationParams":
        """Build parameters from a mapping, ignoring unknown keys."""
        known = {k: config[k] for k in cls.__dataclass_fields__ if k in config}
        return cls(**known)


def batch_size_for(sample_size: int) -> int:
    """
    Replications per batch between two yields.

    Samples above ``LARGE_SAMPLE_THRESHOLD`` take long enough per
    replication that the loop yields after each one.
    """
    if sample_size > LARGE_SAMPLE_THRESHOLD:
        return LARGE_SAMPLE_BATCH
    return SMALL_SAMPLE_BATCH


# =============================================================================
# Results
# =============================================================================

@dataclass(frozen=True, eq=False)
class SimulationResult:
    """
    Output of a completed run.

    Attributes
    ----------
    ols_estimates : NDArray
        β̂_OLS per replication.
    iv_estimates : NDArray
        β̂_IV per replication.
    f_stats : NDArray
        First-stage F-statistic per replication.
    ols_bias : float
        mean(β̂_OLS) − β.
    iv_bias : float
        mean(β̂_IV) − β.
    ols_variance : float
        Population variance of β̂_OLS across replications.
    iv_variance : float
        Population variance of β̂_IV across replications.
    params : SimulationParams
        Parameters that produced the result.
    """
    ols_estimates: NDArray
    iv_estimates: NDArray
    f_stats: NDArray
    ols_bias: float
    iv_bias: float
    ols_variance: float
    iv_variance: float
    params: SimulationParams = field(repr=False)

    @classmethod
    def from_estimates(
        cls,
        ols_estimates: NDArray,
        iv_estimates: NDArray,
        f_stats: NDArray,
        params: SimulationParams,
    ) -> "SimulationResult":
        """Compute the summary statistics and build the result."""
        ols_estimates = np.asarray(ols_estimates, dtype=float)
        iv_estimates = np.asarray(iv_estimates, dtype=float)
        f_stats = np.asarray(f_stats, dtype=float)

        if not np.all(np.isfinite(f_stats)):
            warnings.warn(
                f"{int(np.sum(~np.isfinite(f_stats)))} replication(s) produced "
                f"a non-finite first-stage F-statistic.",
                RuntimeWarning,
            )

        beta = params.beta_true
        return cls(
            ols_estimates=ols_estimates,
            iv_estimates=iv_estimates,
            f_stats=f_stats,
            ols_bias=sample_mean(ols_estimates) - beta,
            iv_bias=sample_mean(iv_estimates) - beta,
            ols_variance=population_variance(ols_estimates),
            iv_variance=population_variance(iv_estimates),
            params=params,
        )

    @property
    def n_replications(self) -> int:
        return len(self.ols_estimates)

    @property
    def mean_f_stat(self) -> float:
        """Mean first-stage F across replications."""
        return sample_mean(self.f_stats)

    def to_dict(self) -> Dict[str, Any]:
        """Summary scalars and parameters (excluding the estimate arrays)."""
        return {
            **self.params.to_dict(),
            "n_replications": self.n_replications,
            "ols_bias": self.ols_bias,
            "iv_bias": self.iv_bias,
            "ols_variance": self.ols_variance,
            "iv_variance": self.iv_variance,
            "mean_f_stat": self.mean_f_stat,
        }

    def to_frame(self) -> pd.DataFrame:
        """One row per replication: index, OLS, IV and F."""
        return pd.DataFrame({
            "replication": np.arange(self.n_replications),
            "ols": self.ols_estimates,
            "iv": self.iv_estimates,
            "f_stat": self.f_stats,
        })

    def __repr__(self) -> str:
        p = self.params
        return (
            f"\n"
            f"Weak-IV Monte Carlo Results\n"
            f"───────────────────────────\n"
            f"  N = {p.sample_size}, R = {self.n_replications}, "
            f"π = {p.iv_strength}, ρ = {p.endogeneity}, β = {p.beta_true}\n"
            f"\n"
            f"  OLS: bias = {self.ols_bias:+.4f}, variance = {self.ols_variance:.4f}\n"
            f"  IV:  bias = {self.iv_bias:+.4f}, variance = {self.iv_variance:.4f}\n"
            f"\n"
            f"  Mean first-stage F = {self.mean_f_stat:.1f}\n"
        )


# =============================================================================
# Run outcomes
# =============================================================================

@dataclass(frozen=True)
class Completed:
    """All replications finished."""
    result: SimulationResult
    cancelled = False


@dataclass(frozen=True)
class Cancelled:
    """
    The run was cancelled before its last replication.

    ``at_replication`` is the index at which the request was observed.
    Estimates computed up to that point are discarded.
    """
    params: SimulationParams
    at_replication: int
    cancelled = True


RunOutcome = Union[Completed, Cancelled]


# =============================================================================
# Control signals
# =============================================================================

class CancellationToken:
    """
    Cooperative cancellation flag, queried by the replication loop.

    Safe to set from another thread.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.cancelled})"


class PauseController:
    """
    Pause gate awaited by the replication loop at batch boundaries.

    ``await controller.wait()`` returns immediately while running and
    blocks, without polling, while paused. Use from the event loop that
    runs the simulation.
    """

    def __init__(self, paused: bool = False) -> None:
        self._resumed = asyncio.Event()
        if not paused:
            self._resumed.set()

    @property
    def is_paused(self) -> bool:
        return not self._resumed.is_set()

    def pause(self) -> None:
        self._resumed.clear()

    def resume(self) -> None:
        self._resumed.set()

    def toggle(self) -> bool:
        """Flip the state and return the new ``is_paused``."""
        if self.is_paused:
            self.resume()
        else:
            self.pause()
        return self.is_paused

    async def wait(self) -> None:
        await self._resumed.wait()

    __call__ = wait

    def __repr__(self) -> str:
        return f"PauseController(paused={self.is_paused})"


PauseQuery = Callable[[], Awaitable[None]]


# =============================================================================
# Replication
# =============================================================================

def run_single_replication(
    params: SimulationParams,
    rng: SeededRNG,
) -> Tuple[float, float, float]:
    """
    Generate one sample and return (β̂_OLS, β̂_IV, F).
    """
    sample = generate_sample(
        n=params.sample_size,
        iv_strength=params.iv_strength,
        endogeneity=params.endogeneity,
        beta=params.beta_true,
        rng=rng,
    )
    beta_ols = estimate_ols(sample.x, sample.y)
    beta_iv = estimate_iv(sample.x, sample.y, sample.z)
    f_stat = first_stage_f(sample.z, sample.x)
    return beta_ols, beta_iv, f_stat


async def run_monte_carlo(
    params: SimulationParams,
    cancel_token: Optional[CancellationToken] = None,
    pause: Optional[PauseQuery] = None,
    *,
    progress: bool = False,
) -> RunOutcome:
    """
    Run one Monte Carlo study of OLS vs IV.

    Parameters
    ----------
    params : SimulationParams
        Design and run size. Validated before anything is computed.
    cancel_token : CancellationToken, optional
        Checked before every replication.
    pause : async callable, optional
        Awaited at every batch boundary; must not return while paused.
        A ``PauseController`` instance can be passed directly.
    progress : bool, default False
        Show a tqdm progress bar.

    Returns
    -------
    Completed or Cancelled

    Raises
    ------
    InvalidConfigurationError
        If ``params`` is invalid.
    """
    params.validate()

    n_reps = params.replications
    batch_size = batch_size_for(params.sample_size)
    rng = SeededRNG(params.seed)

    ols_estimates = np.empty(n_reps)
    iv_estimates = np.empty(n_reps)
    f_stats = np.empty(n_reps)

    logger.info(
        "Starting run: N=%d, R=%d, pi=%g, rho=%g, beta=%g, seed=%d (batch=%d)",
        params.sample_size, n_reps, params.iv_strength, params.endogeneity,
        params.beta_true, params.seed, batch_size,
    )

    with tqdm(total=n_reps, desc="Replications", disable=not progress) as bar:
        for r in range(n_reps):
            if r % batch_size == 0:
                await asyncio.sleep(0)
                if pause is not None:
                    logger.debug("Batch boundary at replication %d", r)
                    await pause()

            if cancel_token is not None and cancel_token.cancelled:
                logger.info("Run cancelled at replication %d of %d", r, n_reps)
                return Cancelled(params=params, at_replication=r)

            ols_estimates[r], iv_estimates[r], f_stats[r] = \
                run_single_replication(params, rng)
            bar.update(1)

    result = SimulationResult.from_estimates(
        ols_estimates, iv_estimates, f_stats, params
    )
    logger.info(
        "Run completed: ols_bias=%.4f, iv_bias=%.4f, mean_F=%.2f",
        result.ols_bias, result.iv_bias, result.mean_f_stat,
    )
    return Completed(result=result)


def simulate(params: SimulationParams, progress: bool = False) -> SimulationResult:
    """
    Run all replications synchronously and return the result.

    Convenience wrapper around ``run_monte_carlo`` without pause or cancel.
    Inside a running event loop (e.g. a Jupyter kernel) the run executes on
    a worker thread with its own loop; the result is identical.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        outcome = asyncio.run(run_monte_carlo(params, progress=progress))
    else:
        with ThreadPoolExecutor(max_workers=1) as pool:
            outcome = pool.submit(
                asyncio.run, run_monte_carlo(params, progress=progress)
            ).result()
    return outcome.result


# =============================================================================
# Parallel execution
# =============================================================================

def _replicate_substream(params: SimulationParams, index: int) -> Tuple[float, float, float]:
    rng = SeededRNG(substream_seed(params.seed, index))
    return run_single_replication(params, rng)


def run_parallel(
    params: SimulationParams,
    n_jobs: int = -1,
    verbose: int = 0,
) -> SimulationResult:
    """
    Run the replications across processes with joblib.

    Replication r draws from its own stream seeded with
    ``substream_seed(params.seed, r)``, so the result depends on the seed
    only, never on ``n_jobs`` or scheduling. The per-replication streams
    differ from the single stream of ``run_monte_carlo``; both are
    reproducible.

    Parameters
    ----------
    params : SimulationParams
        Design and run size.
    n_jobs : int, default -1
        Number of joblib workers (-1 = all cores).
    verbose : int, default 0
        joblib verbosity.

    Returns
    -------
    SimulationResult
    """
    params.validate()
    logger.info(
        "Starting parallel run: N=%d, R=%d, n_jobs=%d",
        params.sample_size, params.replications, n_jobs,
    )

    rows = Parallel(n_jobs=n_jobs, verbose=verbose)(
        delayed(_replicate_substream)(params, r)
        for r in range(params.replications)
    )
    estimates = np.asarray(rows, dtype=float).reshape(-1, 3)

    return SimulationResult.from_estimates(
        estimates[:, 0], estimates[:, 1], estimates[:, 2], params
    )
