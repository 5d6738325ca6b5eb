"""Configuration models for odestep integrators.

This module defines the pydantic-facing configuration object used for
dict/YAML-style input and translates it into the native, immutable
:class:`~odestep.integrator.IntegratorSettings` and
:class:`~odestep.integrator.MultistepMethod` consumed by the integrator.

Notes:
    - Unknown fields are allowed and ignored (`extra="allow"`), so a larger
      run configuration can be passed through unchanged.
    - Optional step-size/stop-time/step-limit fields left unset keep the
      solver's own defaults.
"""

from __future__ import annotations

from typing import Literal, Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .integrator import IntegratorSettings, MultistepMethod
from .solver_api import LinearMultistepMethod, NonlinearIteration

MethodName = Literal["bdf", "adams"]
IterationName = Literal["newton", "functional"]

_STEP_BOUNDS_ERROR = "min_step_size ({min_step!r}) must not exceed max_step_size ({max_step!r})"
_INITIAL_STEP_ERROR = (
    "initial_step_size ({initial!r}) must lie within [min_step_size, max_step_size]"
)


class IntegratorConfig(BaseModel):
    """Configuration schema for a MultistepIntegrator.

    Notes:
        - absolute_tolerance and constraint_tolerance default to accuracy.
        - iteration=None selects Newton for BDF and functional for Adams.
    """

    model_config = ConfigDict(extra="allow")

    method: MethodName = Field(
        default="bdf",
        description="Linear multistep family",
    )
    iteration: IterationName | None = Field(
        default=None,
        description="Nonlinear iteration strategy (family default if unset)",
    )

    # Tolerances
    accuracy: float = Field(default=1e-3, gt=0.0)
    absolute_tolerance: float | None = Field(default=None, gt=0.0)
    constraint_tolerance: float | None = Field(default=None, gt=0.0)

    # Step-size controls
    initial_step_size: float | None = Field(default=None, gt=0.0)
    min_step_size: float | None = Field(default=None, ge=0.0)
    max_step_size: float | None = Field(default=None, gt=0.0)

    # Run limits
    final_time: float | None = None
    internal_step_limit: int | None = Field(default=None, ge=1)

    # Stepping / projection behaviour
    return_every_internal_step: bool = False
    project_every_step: bool | None = None
    use_internal_projection: bool = False

    @model_validator(mode="after")
    def _check_step_bounds(self) -> Self:
        lo = self.min_step_size
        hi = self.max_step_size
        if lo is not None and hi is not None and lo > hi:
            raise ValueError(_STEP_BOUNDS_ERROR.format(min_step=lo, max_step=hi))
        h0 = self.initial_step_size
        if h0 is not None and ((lo is not None and h0 < lo) or (hi is not None and h0 > hi)):
            raise ValueError(_INITIAL_STEP_ERROR.format(initial=h0))
        return self

    def to_settings(self) -> IntegratorSettings:
        """Convert this config to native IntegratorSettings.

        Returns:
            Fully constructed IntegratorSettings instance.
        """
        return IntegratorSettings(
            accuracy=self.accuracy,
            absolute_tolerance=self.absolute_tolerance,
            constraint_tolerance=self.constraint_tolerance,
            initial_step_size=self.initial_step_size,
            min_step_size=self.min_step_size,
            max_step_size=self.max_step_size,
            final_time=self.final_time,
            internal_step_limit=self.internal_step_limit,
            return_every_internal_step=self.return_every_internal_step,
            project_every_step=self.project_every_step,
            use_internal_projection=self.use_internal_projection,
        )

    def to_method(self) -> MultistepMethod:
        """Convert this config to a native MultistepMethod.

        Returns:
            MultistepMethod with the selected family and iteration.
        """
        iteration = None if self.iteration is None else NonlinearIteration(self.iteration)
        return MultistepMethod(
            family=LinearMultistepMethod(self.method),
            iteration=iteration,
        )


__all__ = ["IntegratorConfig"]
