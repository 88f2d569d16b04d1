"""
Tests for the replication loop: validation, determinism, cancellation,
pausing, parallel execution and the statistical behaviour of OLS vs IV.
"""
import asyncio

import numpy as np
import pandas as pd
import pytest

from weakiv import (
    CancellationToken,
    Cancelled,
    Completed,
    InvalidConfigurationError,
    PauseController,
    SimulationParams,
    SimulationResult,
    batch_size_for,
    run_monte_carlo,
    run_parallel,
    simulate,
)
from weakiv.rng import SeededRNG
from weakiv.simulation import run_single_replication


class TestSimulationParams:
    """Eager configuration checks."""

    @pytest.mark.parametrize("overrides", [
        {"sample_size": 1},
        {"sample_size": 0},
        {"replications": 0},
        {"replications": -5},
        {"endogeneity": 1.0},
        {"endogeneity": -1.0},
        {"endogeneity": 1.5},
        {"iv_strength": float("nan")},
        {"beta_true": float("inf")},
        {"sample_size": 100.5},
        {"seed": "abc"},
        {"replications": True},
    ])
    def test_invalid_rejected(self, small_params, overrides):
        params = SimulationParams(**{**small_params.to_dict(), **overrides})
        with pytest.raises(InvalidConfigurationError):
            params.validate()

    def test_invalid_is_value_error(self):
        with pytest.raises(ValueError):
            SimulationParams(1, 10, 0.5, 0.5).validate()

    def test_valid_returns_self(self, small_params):
        assert small_params.validate() is small_params

    def test_minimum_sizes_accepted(self):
        SimulationParams(sample_size=2, replications=1, iv_strength=0.5,
                         endogeneity=-0.99).validate()

    def test_rejected_before_computation(self):
        """The run never starts: no coroutine work, just the error."""
        params = SimulationParams(sample_size=500, replications=10,
                                  iv_strength=0.5, endogeneity=1.0)
        with pytest.raises(InvalidConfigurationError, match="endogeneity"):
            asyncio.run(run_monte_carlo(params))

    def test_dict_round_trip(self, small_params):
        data = small_params.to_dict()
        data["unused"] = "ignored"
        assert SimulationParams.from_dict(data) == small_params

    def test_defaults(self):
        p = SimulationParams(sample_size=100, replications=10, iv_strength=0.5, endogeneity=0.8)
        assert p.beta_true == 1.0
        assert p.seed == 12345


class TestBatchSize:

    def test_small_samples_batch_ten(self):
        assert batch_size_for(500) == 10
        assert batch_size_for(10_000) == 10

    def test_large_samples_yield_every_replication(self):
        assert batch_size_for(10_001) == 1
        assert batch_size_for(1_000_000) == 1


class TestDeterminism:
    """Same parameters and seed ⇒ bit-identical output."""

    def test_repeated_runs_identical(self, reference_params):
        a = simulate(reference_params)
        b = simulate(reference_params)

        np.testing.assert_array_equal(a.ols_estimates, b.ols_estimates)
        np.testing.assert_array_equal(a.iv_estimates, b.iv_estimates)
        np.testing.assert_array_equal(a.f_stats, b.f_stats)
        assert a.ols_bias == b.ols_bias
        assert a.iv_bias == b.iv_bias
        assert a.ols_variance == b.ols_variance
        assert a.iv_variance == b.iv_variance

    def test_different_seed_differs(self, small_params):
        a = simulate(small_params)
        b = simulate(SimulationParams(**{**small_params.to_dict(), "seed": 1}))
        assert not np.array_equal(a.ols_estimates, b.ols_estimates)

    def test_pausing_does_not_change_result(self, small_params):
        """Yield and pause points never touch the RNG stream."""
        async def paused_run():
            gate = PauseController(paused=True)
            task = asyncio.create_task(run_monte_carlo(small_params, pause=gate))
            for _ in range(5):
                await asyncio.sleep(0)
            assert not task.done()
            gate.resume()
            return await task

        outcome = asyncio.run(paused_run())
        assert isinstance(outcome, Completed)
        np.testing.assert_array_equal(
            outcome.result.iv_estimates, simulate(small_params).iv_estimates
        )

    def test_simulate_inside_running_loop(self, small_params):
        """Callable from code that already runs an event loop, as in a notebook."""
        async def caller():
            return simulate(small_params)

        result = asyncio.run(caller())
        np.testing.assert_array_equal(
            result.ols_estimates, simulate(small_params).ols_estimates
        )

    def test_sequential_stream_order(self, small_params):
        """Replication r uses the stream right after replication r − 1."""
        rng = SeededRNG(small_params.seed)
        expected = [run_single_replication(small_params, rng) for _ in range(3)]

        result = simulate(SimulationParams(**{**small_params.to_dict(), "replications": 3}))
        np.testing.assert_array_equal(result.ols_estimates, [e[0] for e in expected])
        np.testing.assert_array_equal(result.iv_estimates, [e[1] for e in expected])
        np.testing.assert_array_equal(result.f_stats, [e[2] for e in expected])


class TestResult:

    def test_lengths_equal_replications(self, small_params):
        result = simulate(small_params)
        assert result.n_replications == small_params.replications
        assert len(result.iv_estimates) == len(result.f_stats) == small_params.replications

    def test_summary_statistics(self, small_params):
        result = simulate(small_params)
        assert result.ols_bias == pytest.approx(np.mean(result.ols_estimates) - 1.0)
        assert result.iv_bias == pytest.approx(np.mean(result.iv_estimates) - 1.0)
        assert result.ols_variance == pytest.approx(np.var(result.ols_estimates))
        assert result.iv_variance == pytest.approx(np.var(result.iv_estimates, ddof=0))

    def test_bias_measured_against_beta(self):
        params = SimulationParams(sample_size=300, replications=20, iv_strength=1.0,
                                  endogeneity=0.0, beta_true=-3.0, seed=5)
        result = simulate(params)
        assert result.ols_bias == pytest.approx(np.mean(result.ols_estimates) + 3.0)
        assert abs(result.ols_bias) < 0.1

    def test_to_frame(self, small_params):
        frame = simulate(small_params).to_frame()
        assert isinstance(frame, pd.DataFrame)
        assert list(frame.columns) == ["replication", "ols", "iv", "f_stat"]
        assert len(frame) == small_params.replications
        assert frame["replication"].tolist() == list(range(small_params.replications))

    def test_to_dict(self, small_params):
        d = simulate(small_params).to_dict()
        assert d["n_replications"] == small_params.replications
        assert d["sample_size"] == small_params.sample_size
        assert {"ols_bias", "iv_bias", "ols_variance", "iv_variance", "mean_f_stat"} <= set(d)

    def test_repr(self, small_params):
        text = repr(simulate(small_params))
        assert "OLS" in text and "IV" in text and "Mean first-stage F" in text

    def test_non_finite_f_warns(self, small_params):
        with pytest.warns(RuntimeWarning, match="non-finite"):
            SimulationResult.from_estimates(
                [1.0, 1.1], [0.9, 1.0], [5.0, np.inf], small_params
            )


class TestCancellation:
    """Cooperative cancellation returns Cancelled and no result."""

    def test_cancel_before_start(self, small_params):
        token = CancellationToken()
        token.cancel()
        outcome = asyncio.run(run_monte_carlo(small_params, token))
        assert isinstance(outcome, Cancelled)
        assert outcome.cancelled
        assert outcome.at_replication == 0
        assert not hasattr(outcome, "result")

    def test_cancel_mid_run(self, small_params):
        """Cancelling at the second batch boundary discards all progress."""
        token = CancellationToken()
        calls = []

        async def pause_query():
            calls.append(1)
            if len(calls) == 2:
                token.cancel()

        outcome = asyncio.run(run_monte_carlo(small_params, token, pause_query))
        assert isinstance(outcome, Cancelled)
        assert outcome.at_replication == 10
        assert outcome.params == small_params

    def test_uncancelled_token_completes(self, small_params):
        outcome = asyncio.run(run_monte_carlo(small_params, CancellationToken()))
        assert isinstance(outcome, Completed)
        assert not outcome.cancelled
        assert outcome.result.n_replications == small_params.replications

    def test_cancel_while_paused(self, small_params):
        async def scenario():
            token = CancellationToken()
            gate = PauseController(paused=True)
            task = asyncio.create_task(run_monte_carlo(small_params, token, gate))
            await asyncio.sleep(0)
            token.cancel()
            gate.resume()
            return await task

        outcome = asyncio.run(scenario())
        assert isinstance(outcome, Cancelled)
        assert outcome.at_replication == 0

    def test_token_repr(self):
        token = CancellationToken()
        assert not token.cancelled
        token.cancel()
        assert token.cancelled
        assert "True" in repr(token)


class TestPauseController:

    def test_toggle(self):
        gate = PauseController()
        assert not gate.is_paused
        assert gate.toggle() is True
        assert gate.is_paused
        assert gate.toggle() is False

    def test_blocks_until_resumed(self):
        async def scenario():
            gate = PauseController(paused=True)
            waiter = asyncio.create_task(gate.wait())
            await asyncio.sleep(0.01)
            blocked = not waiter.done()
            gate.resume()
            await asyncio.wait_for(waiter, timeout=1.0)
            return blocked

        assert asyncio.run(scenario())


class TestParallel:
    """Per-replication substreams make results independent of n_jobs."""

    def test_independent_of_n_jobs(self, small_params):
        a = run_parallel(small_params, n_jobs=1)
        b = run_parallel(small_params, n_jobs=2)
        np.testing.assert_array_equal(a.ols_estimates, b.ols_estimates)
        np.testing.assert_array_equal(a.iv_estimates, b.iv_estimates)
        np.testing.assert_array_equal(a.f_stats, b.f_stats)

    def test_repeatable(self, small_params):
        a = run_parallel(small_params, n_jobs=1)
        b = run_parallel(small_params, n_jobs=1)
        assert a.iv_bias == b.iv_bias

    def test_validates(self):
        with pytest.raises(InvalidConfigurationError):
            run_parallel(SimulationParams(1, 10, 0.5, 0.5), n_jobs=1)


class TestStatisticalProperties:
    """Approximate Monte Carlo behaviour of OLS vs IV."""

    def test_reference_scenario_reproducible(self):
        params = SimulationParams(sample_size=500, replications=500, iv_strength=0.5,
                                  endogeneity=0.8, beta_true=1.0, seed=12345)
        first = simulate(params)
        second = simulate(params)
        assert (first.ols_bias, first.iv_bias, first.ols_variance, first.iv_variance) == \
            (second.ols_bias, second.iv_bias, second.ols_variance, second.iv_variance)
        # OLS bias near ρ / (π² + 1) = 0.64
        assert first.ols_bias == pytest.approx(0.64, abs=0.03)

    @pytest.mark.slow
    def test_strong_instrument_low_endogeneity(self):
        params = SimulationParams(sample_size=10_000, replications=200, iv_strength=1.5,
                                  endogeneity=0.0, seed=1)
        result = simulate(params)
        assert result.mean_f_stat > 10
        assert abs(result.ols_bias) < 0.01
        assert abs(result.iv_bias) < 0.01

    def test_weak_instrument(self):
        params = SimulationParams(sample_size=500, replications=500, iv_strength=0.05,
                                  endogeneity=0.8, seed=1)
        result = simulate(params)
        assert result.mean_f_stat < 10
        assert result.iv_variance > 10 * result.ols_variance
        # IV is centred between β and OLS; the median is robust to IV's heavy tails
        median_iv_bias = np.median(result.iv_estimates) - 1.0
        assert 0.0 < median_iv_bias < result.ols_bias

    @pytest.mark.slow
    def test_consistency_without_endogeneity(self):
        params = SimulationParams(sample_size=5_000, replications=200, iv_strength=0.5,
                                  endogeneity=0.0, seed=3)
        result = simulate(params)
        assert abs(result.ols_bias) < 0.01
        assert abs(result.iv_bias) < 0.02

    def test_weaker_instrument_raises_iv_variance(self):
        variances = []
        for pi in (1.0, 0.3, 0.1):
            params = SimulationParams(sample_size=200, replications=300, iv_strength=pi,
                                      endogeneity=0.5, seed=7)
            variances.append(simulate(params).iv_variance)
        assert variances[0] < variances[1] < variances[2]
