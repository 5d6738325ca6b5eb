# odestep/examples/sir_with_interventions.py
"""Single-location SIR driven report-by-report through MultistepIntegrator.

This example demonstrates the stepping API:

- step_to(report_time, scheduled_event_time) hands control back at every
  report time, at a scheduled intervention and whenever an event trigger
  fires (here: prevalence crossing a threshold).
- At the scheduled intervention the transmission rate (a discrete variable of
  the Advanced State) is changed and the solver is re-seeded with
  reinitialize(Stage.INSTANCE).
- final_time ends the run with END_OF_SIMULATION.
- The conservation law S + I + R = 1 is held by projection onto the constraint.

This script saves plots to disk (no interactive windows).
"""

from __future__ import annotations

from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np

from odestep import (
    IntegratorSettings,
    MultistepIntegrator,
    OdeSystem,
    Stage,
    SuccessfulStepStatus,
    TriggeredEvents,
)

_OUTPUT_DIR = Path(__file__).resolve().parent / "output" / "sir"


def sir_rhs(
    t: float,  # noqa: ARG001 (no explicit time dependence here)
    y: np.ndarray,
    discrete: dict,
) -> np.ndarray:
    """RHS for a normalized SIR model with a switchable transmission rate.

    Args:
        t: Current time (unused).
        y: State vector (S, I, R).
        discrete: Discrete variables; reads "beta" and "gamma".

    Returns:
        (dS/dt, dI/dt, dR/dt).
    """
    s, i, _ = y
    new_inf = discrete["beta"] * s * i
    recov = discrete["gamma"] * i
    return np.array([-new_inf, new_inf - recov, recov])


def build_system(threshold: float) -> OdeSystem:
    """SIR system with a conservation constraint and a prevalence trigger."""
    return OdeSystem(
        sir_rhs,
        n_y=3,
        constraints=lambda _t, y: np.array([y.sum() - 1.0]),
        n_constraints=1,
        constraint_jacobian=lambda _t, _y: np.ones((1, 3)),
        events=lambda _t, y, _d: np.array([y[1] - threshold]),
        n_events=1,
    )


def save_sir_plot(
    time: np.ndarray,
    states: np.ndarray,
    *,
    title: str,
    out_path: Path,
    intervention: float,
    triggers: list[float],
) -> None:
    """Save S, I, R trajectories with intervention and trigger markers.

    Args:
        time: 1D array of report times.
        states: State history, shape (n_reports, 3).
        title: Plot title.
        out_path: Output path for the saved figure.
        intervention: Time of the scheduled intervention.
        triggers: Times at which the prevalence trigger fired.
    """
    plt.figure(figsize=(8, 5))
    for k, label in enumerate(("S", "I", "R")):
        plt.plot(time, states[:, k], label=label)
    plt.axvline(intervention, color="k", linestyle="--", label="intervention")
    for t in triggers:
        plt.axvline(t, color="tab:red", linestyle=":", alpha=0.7)
    plt.grid(visible=True)
    plt.legend()

    drift = float(np.max(np.abs(states.sum(axis=1) - 1.0)))
    plt.title(f"{title}\nmax |S+I+R-1| = {drift:.3e}")
    plt.xlabel("Time")
    plt.ylabel("Proportion")
    plt.tight_layout()

    out_path.parent.mkdir(parents=True, exist_ok=True)
    plt.savefig(out_path, dpi=150)
    plt.close()


def main() -> None:
    """Run the SIR scenario and save the trajectory plot.

    Files are written to: examples/output/sir/
    """
    # ---------------------------------------------------------------------
    # Model parameters
    # ---------------------------------------------------------------------
    beta = 0.30
    gamma = 1.0 / 7.0
    initial_infected = 0.01
    intervention_time = 30.0
    intervention_factor = 0.5
    threshold = 0.05

    # ---------------------------------------------------------------------
    # Integrator
    # ---------------------------------------------------------------------
    total_time = 160.0
    report_times = np.linspace(0.0, total_time, 161)

    triggers: list[float] = []

    def on_trigger(events: TriggeredEvents) -> None:
        triggers.append(events.window_end)

    system = build_system(threshold)
    integrator = MultistepIntegrator(
        system,
        settings=IntegratorSettings(
            accuracy=1e-6,
            absolute_tolerance=1e-9,
            constraint_tolerance=1e-10,
            final_time=total_time,
        ),
        event_sink=on_trigger,
    )
    state = system.make_state(
        [1.0 - initial_infected, initial_infected, 0.0],
        discrete={"beta": beta, "gamma": gamma},
    )
    integrator.initialize(state)

    # ---------------------------------------------------------------------
    # Report loop
    # ---------------------------------------------------------------------
    times: list[float] = []
    history: list[np.ndarray] = []
    pending_intervention: float | None = intervention_time

    for report in report_times:
        while True:
            status = integrator.step_to(report, pending_intervention)
            if status is SuccessfulStepStatus.REACHED_SCHEDULED_EVENT:
                advanced = integrator.advanced_state
                advanced.set_discrete("beta", beta * intervention_factor)
                integrator.reinitialize(Stage.INSTANCE)
                pending_intervention = None
                continue
            if status in {
                SuccessfulStepStatus.REACHED_REPORT_TIME,
                SuccessfulStepStatus.START_OF_CONTINUOUS_INTERVAL,
                SuccessfulStepStatus.END_OF_SIMULATION,
            }:
                break
        times.append(integrator.time)
        history.append(np.array(integrator.state.y))
        if integrator.is_simulation_over:
            break

    save_sir_plot(
        np.array(times),
        np.array(history),
        title="SIR via MultistepIntegrator.step_to (BDF, halved beta at t=30)",
        out_path=_OUTPUT_DIR / "sir_with_interventions.png",
        intervention=intervention_time,
        triggers=triggers,
    )


if __name__ == "__main__":
    main()
