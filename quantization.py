# quantization.py
"""
The quantization table shared by the seed codec and the matrix editors.

Attraction coefficients are restricted to 201 levels, -1.00 to 1.00 in
steps of 0.01. Level 0 is -1.00, level 100 is 0.00 and level 200 is 1.00.
"""
import math

from constants import QUANTIZATION_LEVELS, QUANTIZATION_STEP

# --- Data Contracts ---
#
# level_to_value(level: int) -> float:
#   - Inputs: level in [0, 200].
#   - Outputs: -1.00 + 0.01 * level, rounded to 2 decimals.
#   - Errors: InvalidQuantization for a level outside the table.
#
# value_to_level(value: float) -> int:
#   - Inputs: any real number.
#   - Outputs: the level whose value equals `value`.
#   - Errors: InvalidQuantization if `value` is not one of the 201 values.
#   - Invariants: value_to_level(level_to_value(d)) == d for every level d.

# Accepted distance between a float and its grid value. Wide enough for
# float32 storage (0.1 as float32 is 0.1000000015), far below the 0.005
# half-step, so 0.005 itself is rejected.
_TOLERANCE = 1e-6


class InvalidQuantization(ValueError):
    """Raised when a value does not sit on the 0.01 quantization grid."""


LEVEL_VALUES = tuple(
    round(-1.0 + QUANTIZATION_STEP * level, 2) for level in range(QUANTIZATION_LEVELS)
)


def level_to_value(level: int) -> float:
    """Returns the coefficient stored at `level`."""
    if not 0 <= level < QUANTIZATION_LEVELS:
        raise InvalidQuantization(
            f"Quantization level {level} is outside [0, {QUANTIZATION_LEVELS - 1}]."
        )
    return LEVEL_VALUES[level]


def value_to_level(value: float) -> int:
    """
    Returns the level of a coefficient, the exact inverse of level_to_value.

    Raises:
        InvalidQuantization: If `value` is not finite, lies outside
            [-1.00, 1.00], or falls between two grid values.
    """
    try:
        value = float(value)
    except (TypeError, ValueError) as e:
        raise InvalidQuantization(f"Value {value!r} is not a number.") from e
    if not math.isfinite(value):
        raise InvalidQuantization(f"Value {value} is not finite.")

    level = int(round((value + 1.0) / QUANTIZATION_STEP))
    if not 0 <= level < QUANTIZATION_LEVELS or abs(LEVEL_VALUES[level] - value) > _TOLERANCE:
        raise InvalidQuantization(
            f"Value {value} is not a multiple of {QUANTIZATION_STEP} in [-1.00, 1.00]."
        )
    return level
