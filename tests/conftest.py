"""Global pytest configuration and shared fixtures for odestep."""

from __future__ import annotations

from collections.abc import Callable, Sequence

import numpy as np
import pytest
from scripted_solver import ScriptedSolver, ScriptedStep

from odestep.events import EventIdPolicy, EventSink, TriggeredEvents
from odestep.integrator import IntegratorSettings, MultistepIntegrator
from odestep.solver_api import LinearMultistepMethod, NonlinearIteration
from odestep.system import OdeSystem

# -----------------------------------------------------------------------------
# Global markers registration safety (for local pytest runs)
# -----------------------------------------------------------------------------


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers used by the test suite."""
    config.addinivalue_line(
        "markers",
        "scipy_solver: test drives the real SciPy-backed multistep solver",
    )


# -----------------------------------------------------------------------------
# Fixtures
# -----------------------------------------------------------------------------


ScriptedIntegratorFactory = Callable[..., tuple[MultistepIntegrator, ScriptedSolver]]


@pytest.fixture
def scripted_step() -> type[ScriptedStep]:
    """Expose the ScriptedStep record to test modules."""
    return ScriptedStep


@pytest.fixture
def scripted_integrator() -> ScriptedIntegratorFactory:
    """
    Build an initialized MultistepIntegrator driven by a ScriptedSolver.

    Usage:
        def test_x(scripted_integrator, scripted_step):
            integ, solver = scripted_integrator([scripted_step(1.0, [2.0])])
    """

    def _build(
        script: Sequence[ScriptedStep],
        *,
        settings: IntegratorSettings | None = None,
        y0: Sequence[float] = (1.0,),
        t0: float = 0.0,
        n_events: int = 0,
        event_id_policy: EventIdPolicy | None = None,
        event_sink: EventSink | None = None,
        consume_start: bool = True,
    ) -> tuple[MultistepIntegrator, ScriptedSolver]:
        solvers: list[ScriptedSolver] = []

        def factory(
            method: LinearMultistepMethod,
            iteration: NonlinearIteration,
        ) -> ScriptedSolver:
            solver = ScriptedSolver(method, iteration, script)
            solvers.append(solver)
            return solver

        system = OdeSystem(
            lambda _t, y, _d: -y,
            n_y=len(y0),
            events=(lambda _t, y, _d: np.full(n_events, float(y[0]))) if n_events else None,
            n_events=n_events,
        )
        integ = MultistepIntegrator(
            system,
            settings=settings,
            solver_factory=factory,
            event_id_policy=event_id_policy,
            event_sink=event_sink,
        )
        integ.initialize(system.make_state(y0, time=t0))
        if consume_start:
            integ.step_to(t0)
        return integ, solvers[-1]

    return _build


@pytest.fixture
def event_recorder() -> tuple[list[TriggeredEvents], EventSink]:
    """Return (received, sink) where sink appends each Event Set to received."""
    received: list[TriggeredEvents] = []
    return received, received.append
