"""
weakiv: Monte Carlo Simulation of OLS vs IV under Weak Instruments
===================================================================

This package estimates, by repeated simulation, the sampling behaviour of
the OLS and instrumental-variables (2SLS) estimators in a linear model
with an endogenous regressor and an instrument of tunable strength.

Quick Start
-----------
>>> from weakiv import SimulationParams, simulate, create_histogram_data
>>>
>>> params = SimulationParams(sample_size=500, replications=500,
...                           iv_strength=0.5, endogeneity=0.8, seed=12345)
>>> result = simulate(params)
>>> print(result)
>>> bins = create_histogram_data(result.ols_estimates, result.iv_estimates)

Model
-----
    y = β·x + u,    x = π·z + v,    z ~ N(0, 1),    Corr(u, v) = ρ

ρ ≠ 0 biases OLS. As π shrinks the first-stage F falls, the IV
distribution spreads out, and its centre drifts towards OLS.

Runs are deterministic: the same parameters and seed give bit-identical
estimates. ``run_monte_carlo`` is the cooperative (async) entry point with
pause and cancel support; ``SimulationDriver`` wraps it as a state machine.
"""

from weakiv.config import BETA_TRUE, DEFAULT_BIN_COUNT, WEAK_INSTRUMENT_F
from weakiv.dgp import (
    Sample,
    concentration_parameter,
    expected_first_stage_f,
    generate_correlated_normals,
    generate_sample,
    theoretical_ols_bias,
)
from weakiv.diagnostics import (
    classify_instrument,
    first_stage_pvalue,
    mean_f_statistic,
    relative_bias,
    summarize_result,
)
from weakiv.driver import RunState, SimulationDriver
from weakiv.estimators import estimate_iv, estimate_ols, first_stage_f
from weakiv.exceptions import (
    InvalidConfigurationError,
    SimulationAlreadyRunningError,
    WeakIVError,
)
from weakiv.histogram import BinData, bin_result, create_histogram_data
from weakiv.reporting import (
    export_filename,
    histogram_table,
    print_summary,
    replication_table,
    summary_table,
    to_csv,
    to_latex,
)
from weakiv.rng import SeededRNG, substream_seed
from weakiv.scenarios import SCENARIO_CONFIGS, get_scenario, run_scenario_grid
from weakiv.simulation import (
    CancellationToken,
    Cancelled,
    Completed,
    PauseController,
    RunOutcome,
    SimulationParams,
    SimulationResult,
    batch_size_for,
    run_monte_carlo,
    run_parallel,
    run_single_replication,
    simulate,
)

__version__ = "1.0.0"

__all__ = [
    # Configuration
    "BETA_TRUE",
    "DEFAULT_BIN_COUNT",
    "WEAK_INSTRUMENT_F",
    # RNG and DGP
    "SeededRNG",
    "substream_seed",
    "Sample",
    "generate_correlated_normals",
    "generate_sample",
    "theoretical_ols_bias",
    "concentration_parameter",
    "expected_first_stage_f",
    # Estimators
    "estimate_ols",
    "estimate_iv",
    "first_stage_f",
    # Simulation
    "SimulationParams",
    "SimulationResult",
    "Completed",
    "Cancelled",
    "RunOutcome",
    "CancellationToken",
    "PauseController",
    "batch_size_for",
    "run_single_replication",
    "run_monte_carlo",
    "simulate",
    "run_parallel",
    "SimulationDriver",
    "RunState",
    # Histogram
    "BinData",
    "create_histogram_data",
    "bin_result",
    # Diagnostics
    "mean_f_statistic",
    "first_stage_pvalue",
    "classify_instrument",
    "relative_bias",
    "summarize_result",
    # Scenarios
    "SCENARIO_CONFIGS",
    "get_scenario",
    "run_scenario_grid",
    # Reporting
    "replication_table",
    "to_csv",
    "export_filename",
    "histogram_table",
    "summary_table",
    "to_latex",
    "print_summary",
    # Errors
    "WeakIVError",
    "InvalidConfigurationError",
    "SimulationAlreadyRunningError",
]
