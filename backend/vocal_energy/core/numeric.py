"""Small numeric helpers shared by the analyzers."""
import math
from typing import Any


def round_half_up(value: float) -> int:
    """Round to the nearest integer, ties toward +infinity (0.5 -> 1, -0.5 -> 0)."""
    return int(math.floor(value + 0.5))


def round_to(value: float, digits: int) -> float:
    """Round half-up to a number of decimals; non-finite values pass through."""
    if not math.isfinite(value):
        return value
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def finite_or_none(obj: Any) -> Any:
    """Recursively replace NaN/inf floats with None so the payload is strict JSON."""
    if isinstance(obj, float):
        return obj if math.isfinite(obj) else None
    if isinstance(obj, dict):
        return {k: finite_or_none(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [finite_or_none(v) for v in obj]
    return obj
