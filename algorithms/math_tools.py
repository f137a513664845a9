import math
from typing import Iterable
import numpy as np


class MathTools:
    """Provides numeric helpers for weights, progress and XP levels."""

    XP_PER_LEVEL: int = 500

    @staticmethod
    def clamp(value: float, min_value: float, max_value: float) -> float:
        """Clamp ``value`` to the inclusive range [min_value, max_value]."""
        if min_value > max_value:
            raise ValueError("min_value must not exceed max_value")
        return max(min_value, min(value, max_value))

    @staticmethod
    def round_half_up(value: float) -> int:
        """Round to the nearest integer with halves rounded up."""
        return int(math.floor(value + 0.5))

    @classmethod
    def snap_to_increment(cls, value: float, increment: float) -> float:
        """Return ``value`` rounded to the nearest multiple of ``increment``."""
        if increment <= 0:
            return 0.0
        steps = cls.round_half_up(value / increment)
        return round(steps * increment, 4)

    @classmethod
    def progress_percentage(
        cls, starting: float, current: float, target: float
    ) -> int:
        """Percentage of the way from ``starting`` to ``target`` weight."""
        if starting == target:
            return 0
        return cls.round_half_up((starting - current) / (starting - target) * 100)

    @classmethod
    def level_for_xp(cls, total_xp: int) -> int:
        return int(total_xp) // cls.XP_PER_LEVEL + 1

    @staticmethod
    def moving_average(values: Iterable[float], window: int = 7) -> list[float]:
        """Trailing moving average; early points average what is available."""
        data = np.array(list(values), dtype=float)
        if data.size == 0:
            return []
        if window <= 0:
            raise ValueError("window must be positive")
        sums = np.cumsum(data)
        out = np.empty_like(data)
        for i in range(data.size):
            start = max(0, i - window + 1)
            total = sums[i] - (sums[start - 1] if start > 0 else 0.0)
            out[i] = total / (i - start + 1)
        return [round(float(v), 1) for v in out]
