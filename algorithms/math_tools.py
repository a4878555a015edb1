from typing import Iterable
import numpy as np


class MathTools:
    """Provides essential mathematical utilities for workout calculations."""

    EPLEY_DIVISOR: float = 30.0

    @classmethod
    def estimated_one_rep_max(cls, weight: float, reps: int) -> float:
        """Return the estimated one-rep max using the Epley formula.

        A single rep is an exact 1RM and is returned unchanged.
        """
        if reps < 0:
            raise ValueError("reps must be non-negative")
        if reps == 1:
            return float(weight)
        return float(weight) * (1 + reps / cls.EPLEY_DIVISOR)

    @staticmethod
    def set_volume(weight: float, reps: int) -> float:
        """Return the volume of a single set."""
        return float(weight) * int(reps)

    @staticmethod
    def mean(values: Iterable[float]) -> float | None:
        """Return the arithmetic mean or ``None`` for no values."""
        data = list(values)
        if not data:
            return None
        return float(np.mean(np.array(data, dtype=float)))
