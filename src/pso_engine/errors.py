"""Exception types raised by the swarm engine.

Exceptions raised inside a user objective are not wrapped: they leave
`Model.evaluate`, `PSO.step` and `PSO.run` unchanged.
"""

from __future__ import annotations

from typing import Optional


class PSOError(Exception):
    """Base class for errors raised by pso_engine."""


class InvalidConfiguration(PSOError, ValueError):
    """Configuration rejected before any evaluation took place."""


class NumericDivergence(PSOError, ArithmeticError):
    """A velocity or coordinate became non-finite during a step.

    The run cannot continue from this state; discard the engine.
    """

    def __init__(self,
                 particle: int,
                 coordinate: int,
                 value: float,
                 generation: Optional[int] = None,
                 quantity: str = "position"):
        self.particle = int(particle)
        self.coordinate = int(coordinate)
        self.value = float(value)
        self.generation = generation
        self.quantity = quantity
        where = f"particle {self.particle}, coordinate {self.coordinate}"
        if generation is not None:
            where += f", generation {generation}"
        super().__init__(
            f"Non-finite {quantity} ({self.value}) at {where}; "
            "check the swarm coefficients (c1 + c2 must exceed 4)."
        )
