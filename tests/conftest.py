"""
Pytest configuration file providing shared fixtures.
"""
import pytest

from weakiv import SimulationParams


@pytest.fixture
def small_params():
    """A quick design: N=200, R=30, moderate instrument and endogeneity."""
    return SimulationParams(
        sample_size=200,
        replications=30,
        iv_strength=0.5,
        endogeneity=0.8,
        beta_true=1.0,
        seed=12345,
    )


@pytest.fixture
def reference_params():
    """Default interactive design: N=500, R=500, π=0.5, ρ=0.8, seed=12345."""
    return SimulationParams(
        sample_size=500,
        replications=500,
        iv_strength=0.5,
        endogeneity=0.8,
        beta_true=1.0,
        seed=12345,
    )
