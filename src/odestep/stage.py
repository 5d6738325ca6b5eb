"""Ordered computation stages of a simulated system.

A snapshot advances through these stages as more of its derived quantities
become available. Writing time or continuous state invalidates everything at
or above the matching stage, so readers must force (``realize``) the snapshot
to the stage they need before touching derived vectors.

Stage requirements used by this package:

- ``Stage.MODEL``: sizes of the constraint-error and event-trigger vectors.
- ``Stage.POSITION``: unit weights / tolerances (projection).
- ``Stage.VELOCITY``: constraint-error vector ``yerr``.
- ``Stage.ACCELERATION``: derivative ``ydot`` and event triggers.
"""

from __future__ import annotations

from enum import IntEnum


class Stage(IntEnum):
    """Computation stage of a snapshot, ordered from least to most realized."""

    EMPTY = 0
    TOPOLOGY = 1
    MODEL = 2
    INSTANCE = 3
    TIME = 4
    POSITION = 5
    VELOCITY = 6
    DYNAMICS = 7
    ACCELERATION = 8
    REPORT = 9

    def prev(self) -> Stage:
        """Return the stage immediately below this one (EMPTY stays EMPTY)."""
        return Stage(max(int(self) - 1, 0))

    def next(self) -> Stage:
        """Return the stage immediately above this one (REPORT stays REPORT)."""
        return Stage(min(int(self) + 1, int(Stage.REPORT)))


__all__ = ["Stage"]
