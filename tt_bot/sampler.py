from __future__ import annotations

import math
import random
from collections.abc import Callable


def sample_minutes(
    mean_minutes: float = 15.0,
    stddev_minutes: float = 2.0,
    *,
    uniform: Callable[[], float] = random.random,
) -> float:
    """Draw a normally distributed delay (minutes) via the Box-Muller transform.

    The result is not clamped: it can be zero or negative for a large stddev.
    """
    u1 = float(uniform())
    while u1 <= 0.0:
        u1 = float(uniform())
    u2 = float(uniform())
    z = math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)
    return float(mean_minutes) + z * float(stddev_minutes)
