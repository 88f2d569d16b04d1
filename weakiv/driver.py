"""
Simulation Driver
=================

Stateful front door for interactive use: one driver owns at most one active
run and exposes start, pause, resume and cancel requests.

States
------
    IDLE ──run()──▶ RUNNING ⇄ PAUSED
                       │
                       ├──▶ COMPLETED
                       └──▶ CANCELLED

COMPLETED and CANCELLED end a run; from either (or IDLE) the driver accepts
the next ``run()``. Pause and resume requests are ignored unless a run is
active.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

from weakiv.exceptions import SimulationAlreadyRunningError
from weakiv.simulation import (
    CancellationToken,
    Completed,
    PauseController,
    RunOutcome,
    SimulationParams,
    SimulationResult,
    run_monte_carlo,
)

logger = logging.getLogger(__name__)


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class SimulationDriver:
    """
    Runs Monte Carlo studies one at a time with pause/resume/cancel control.

    Parameters
    ----------
    progress : bool, default False
        Show a tqdm progress bar for each run.

    Examples
    --------
    >>> driver = SimulationDriver()
    >>> params = SimulationParams(sample_size=500, replications=100,
    ...                           iv_strength=0.5, endogeneity=0.8)
    >>> outcome = asyncio.run(driver.run(params))  # doctest: +SKIP
    >>> driver.state  # doctest: +SKIP
    <RunState.COMPLETED: 'completed'>
    """

    def __init__(self, progress: bool = False):
        self.progress = progress
        self.state = RunState.IDLE
        self.result: Optional[SimulationResult] = None
        self.last_outcome: Optional[RunOutcome] = None
        self._token: Optional[CancellationToken] = None
        self._pause: Optional[PauseController] = None

    @property
    def is_running(self) -> bool:
        """True while a run is active, paused or not."""
        return self.state in (RunState.RUNNING, RunState.PAUSED)

    @property
    def is_paused(self) -> bool:
        return self.state is RunState.PAUSED

    async def run(self, params: SimulationParams) -> RunOutcome:
        """
        Start a run and wait for its outcome.

        The previous result is discarded as soon as the run starts.

        Raises
        ------
        SimulationAlreadyRunningError
            If another run is active on this driver.
        InvalidConfigurationError
            If ``params`` is invalid; the driver state is left unchanged.
        """
        if self.is_running:
            raise SimulationAlreadyRunningError(
                "A simulation is already running; cancel it or wait for it "
                "to finish before starting another."
            )
        params.validate()

        self.result = None
        self.last_outcome = None
        self._token = CancellationToken()
        self._pause = PauseController()
        self.state = RunState.RUNNING

        try:
            outcome = await run_monte_carlo(
                params, self._token, self._pause, progress=self.progress,
            )
        except BaseException:
            self.state = RunState.IDLE
            raise
        finally:
            self._token = None
            self._pause = None

        self.last_outcome = outcome
        if isinstance(outcome, Completed):
            self.result = outcome.result
            self.state = RunState.COMPLETED
        else:
            self.state = RunState.CANCELLED
        return outcome

    def pause(self) -> None:
        """
        Pause the active run at its next batch boundary.

        Ignored once cancellation has been requested.
        """
        if self.state is not RunState.RUNNING or self._token.cancelled:
            return
        self._pause.pause()
        self.state = RunState.PAUSED
        logger.info("Run paused")

    def resume(self) -> None:
        """Resume a paused run."""
        if self.state is not RunState.PAUSED:
            return
        self._pause.resume()
        self.state = RunState.RUNNING
        logger.info("Run resumed")

    def toggle_pause(self) -> None:
        if self.state is RunState.PAUSED:
            self.resume()
        else:
            self.pause()

    def cancel(self) -> None:
        """
        Request cancellation of the active run.

        A paused run is released so the request is seen at once.
        """
        if not self.is_running:
            return
        self._token.cancel()
        self._pause.resume()
        self.state = RunState.RUNNING
        logger.info("Cancellation requested")

    def __repr__(self) -> str:
        return f"SimulationDriver(state={self.state.value})"
