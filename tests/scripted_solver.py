"""Scripted MultistepSolver double shared by the step-controller tests."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import numpy as np

from odestep.solver_api import (
    ConstraintKind,
    LinearMultistepMethod,
    NonlinearIteration,
    ProjectionFactorization,
    ProjectionNorm,
    SolverCallbacks,
    SolverStats,
    StepMode,
    StepResult,
)


# -----------------------------------------------------------------------------
# Scripted solver double
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class ScriptedStep:
    """
    One scripted MultistepSolver.step result.

    Attributes:
        t: Returned time.
        y: Returned continuous state.
        code: Raw return code.
        root_info: Root flags exposed after this step.
    """

    t: float
    y: Sequence[float]
    code: int = 0
    root_info: Sequence[int] | None = None


class ScriptedSolver:
    """MultistepSolver double that replays scripted step results.

    Dense output interpolates linearly between the last two returned points, so
    interpolated values are easy to predict in tests.
    """

    def __init__(
        self,
        method: LinearMultistepMethod,
        iteration: NonlinearIteration,
        script: Sequence[ScriptedStep] = (),
    ) -> None:
        self.method = method
        self.iteration = iteration
        self.script: list[ScriptedStep] = list(script)
        self.calls: list[tuple[float, StepMode]] = []
        self.init_calls: list[tuple[float, np.ndarray, np.ndarray, float, float]] = []
        self.reinit_calls: list[tuple[float, np.ndarray, np.ndarray]] = []
        self.settings: dict[str, Any] = {}
        self.projection: tuple[Any, ...] | None = None
        self.projection_solver: tuple[Any, ...] | None = None
        self.n_roots: int | None = None
        self.dense_n: int | None = None
        self.callbacks: SolverCallbacks | None = None
        self.init_code = 0
        self.n_steps = 0

        self._t_prev = 0.0
        self._t = 0.0
        self._y_prev = np.zeros(0)
        self._y = np.zeros(0)
        self._root_info = np.zeros(0, dtype=int)

    # Lifecycle ---------------------------------------------------------------

    def init(
        self,
        callbacks: SolverCallbacks,
        t0: float,
        y0: np.ndarray,
        yp0: np.ndarray,
        rtol: float,
        atol: float,
    ) -> int:
        self.callbacks = callbacks
        self.init_calls.append((t0, np.array(y0), np.array(yp0), rtol, atol))
        self._seed(t0, y0)
        return self.init_code

    def reinit(
        self,
        t0: float,
        y0: np.ndarray,
        yp0: np.ndarray,
        rtol: float,  # noqa: ARG002
        atol: float,  # noqa: ARG002
    ) -> int:
        self.reinit_calls.append((t0, np.array(y0), np.array(yp0)))
        self._seed(t0, y0)
        return 0

    def _seed(self, t0: float, y0: np.ndarray) -> None:
        self.n_steps = 0
        self._t_prev = self._t = float(t0)
        self._y_prev = np.array(y0, dtype=float)
        self._y = np.array(y0, dtype=float)

    # Settings ----------------------------------------------------------------

    def set_init_step(self, h: float) -> None:
        self.settings["init_step"] = h

    def set_min_step(self, h: float) -> None:
        self.settings["min_step"] = h

    def set_max_step(self, h: float) -> None:
        self.settings["max_step"] = h

    def set_stop_time(self, t: float) -> None:
        self.settings["stop_time"] = t

    def set_max_num_steps(self, n: int) -> None:
        self.settings["max_num_steps"] = n

    def set_proj_frequency(self, n: int) -> None:
        self.settings["proj_frequency"] = n

    def set_dense_linear_solver(self, n: int) -> None:
        self.dense_n = n

    def proj_init(
        self,
        norm: ProjectionNorm,
        kind: ConstraintKind,
        ctol: np.ndarray,
    ) -> None:
        self.projection = ("built_in", norm, kind, np.array(ctol))

    def set_dense_projection_solver(
        self,
        nc: int,
        ny: int,
        factorization: ProjectionFactorization,
    ) -> None:
        self.projection_solver = (nc, ny, factorization)

    def proj_define(self) -> None:
        self.projection = ("callback",)

    def root_init(self, n_roots: int) -> None:
        self.n_roots = n_roots

    # Stepping ----------------------------------------------------------------

    def step(self, tout: float, mode: StepMode) -> StepResult:
        self.calls.append((tout, mode))
        entry = self.script.pop(0)
        y = np.array(entry.y, dtype=float)
        if entry.code >= 0:
            self._t_prev, self._y_prev = self._t, self._y
            self._t, self._y = float(entry.t), y
            self.n_steps += 1
        flags = entry.root_info if entry.root_info is not None else ()
        self._root_info = np.array(flags, dtype=int)
        return StepResult(entry.code, float(entry.t), y.copy())

    def get_dky(self, t: float, k: int = 0) -> np.ndarray:  # noqa: ARG002
        if self._t == self._t_prev:
            return self._y.copy()
        w = (t - self._t_prev) / (self._t - self._t_prev)
        return (1.0 - w) * self._y_prev + w * self._y

    def get_root_info(self) -> np.ndarray:
        return self._root_info.copy()

    def get_actual_init_step(self) -> float:
        return 0.125

    def get_last_step(self) -> float:
        return self._t - self._t_prev

    def get_current_step(self) -> float:
        return 2.0 * (self._t - self._t_prev)

    def stats(self) -> SolverStats:
        return SolverStats(
            n_steps=self.n_steps,
            n_step_attempts=self.n_steps + 1,
            n_error_test_failures=1,
            n_rhs_evals=3 * self.n_steps,
        )


__all__ = ["ScriptedSolver", "ScriptedStep"]
