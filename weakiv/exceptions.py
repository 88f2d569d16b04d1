"""
Exception Classes Module

Defines the exception hierarchy for the weakiv package.

Cancellation of a run is not an error and has no exception here: the
replication loop returns a ``Cancelled`` outcome instead.
"""


class WeakIVError(Exception):
    """
    Base exception class for all weakiv package errors.

    Catch this to handle any weakiv-specific error:

        try:
            outcome = asyncio.run(run_monte_carlo(params))
        except WeakIVError as e:
            print(f"weakiv error: {e}")
    """
    pass


class InvalidConfigurationError(WeakIVError, ValueError):
    """
    Exception raised when simulation parameters fail validation.

    Raised before any computation starts. Common triggers include:

    - sample size below 2
    - replication count below 1
    - endogeneity ρ outside the open interval (-1, 1)
    - non-finite π, ρ or β
    - a histogram bin count below 1

    Subclasses ``ValueError`` so callers that already catch ``ValueError``
    keep working.
    """
    pass


class SimulationAlreadyRunningError(WeakIVError, RuntimeError):
    """
    Exception raised when a run is requested while another is active.

    A ``SimulationDriver`` executes at most one run at a time. Cancel the
    active run, or wait for it to finish, before starting another.
    """
    pass
