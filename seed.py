# seed.py
"""
Converts attraction matrices to and from fixed-width seed strings.

A seed is the 6x6 matrix read row-major as 36 digits of a base-201 number
(one digit per quantization level), re-expressed in base 62 and left-padded
to 47 characters. Every quantized matrix has exactly one seed and every
in-range seed decodes to exactly one matrix. Nothing here depends on
simulation state.
"""
import logging
from typing import List, Optional, Sequence

import numpy as np

from constants import MATRIX_SIZE, QUANTIZATION_LEVELS, SEED_ALPHABET, SEED_LENGTH
from quantization import InvalidQuantization, level_to_value, value_to_level

# --- Data Contracts ---
#
# matrix_to_seed(matrix: 6x6 sequence of floats) -> str:
#   - Outputs: a 47-character string over SEED_ALPHABET.
#   - Errors: InvalidMatrix for a wrong shape or an off-grid value.
#
# seed_to_matrix(seed: str) -> List[List[float]]:
#   - Outputs: a 6x6 list of quantized floats.
#   - Errors: InvalidSeed for a wrong length, a character outside the
#     alphabet, or a value of 201**36 or more (no matrix encodes to it).
#
# random_matrix(rng: Optional[np.random.Generator]) -> List[List[float]]:
#   - Outputs: a 6x6 list, every cell uniform over the 201 levels.
#
#   - Invariants: seed_to_matrix(matrix_to_seed(m)) == m and
#     matrix_to_seed(seed_to_matrix(s)) == s.

SEED_BASE = len(SEED_ALPHABET)
CELL_COUNT = MATRIX_SIZE * MATRIX_SIZE
# Exclusive upper bound of the integers a matrix can encode to.
MAX_SEED_VALUE = QUANTIZATION_LEVELS ** CELL_COUNT

_DIGIT_VALUES = {char: value for value, char in enumerate(SEED_ALPHABET)}


class InvalidSeed(ValueError):
    """Raised when a string is not a well-formed seed."""


class InvalidMatrix(ValueError):
    """Raised when a matrix cannot be encoded as a seed."""


def _matrix_levels(matrix: Sequence[Sequence[float]]) -> List[int]:
    """Validates the shape of `matrix` and flattens it row-major into levels."""
    try:
        rows = list(matrix)
    except TypeError as e:
        raise InvalidMatrix("Attraction matrix must be a sequence of rows.") from e
    if len(rows) != MATRIX_SIZE:
        raise InvalidMatrix(
            f"Attraction matrix must have {MATRIX_SIZE} rows, got {len(rows)}."
        )

    levels = []
    for r, row in enumerate(rows):
        try:
            cells = list(row)
        except TypeError as e:
            raise InvalidMatrix(f"Row {r} of the attraction matrix is not a sequence.") from e
        if len(cells) != MATRIX_SIZE:
            raise InvalidMatrix(
                f"Row {r} of the attraction matrix must have {MATRIX_SIZE} columns, "
                f"got {len(cells)}."
            )
        for c, value in enumerate(cells):
            try:
                levels.append(value_to_level(value))
            except InvalidQuantization as e:
                raise InvalidMatrix(f"Invalid value at ({r}, {c}): {e}") from e
    return levels


def matrix_to_seed(matrix: Sequence[Sequence[float]]) -> str:
    """
    Encodes a quantized 6x6 attraction matrix as a 47-character seed.

    Args:
        matrix: Six rows of six coefficients, each a multiple of 0.01
            in [-1.00, 1.00]. Lists and 2-D NumPy arrays are both accepted.

    Returns:
        str: The seed, left-padded with '0'.
    """
    number = 0
    for level in _matrix_levels(matrix):
        number = number * QUANTIZATION_LEVELS + level

    chars = []
    for _ in range(SEED_LENGTH):
        number, digit = divmod(number, SEED_BASE)
        chars.append(SEED_ALPHABET[digit])
    # 62**47 > 201**36, so the width always suffices.
    assert number == 0
    return "".join(reversed(chars))


def seed_to_matrix(seed: str) -> List[List[float]]:
    """
    Decodes a seed produced by matrix_to_seed.

    Raises:
        InvalidSeed: If the seed is malformed or encodes no matrix.
    """
    if not isinstance(seed, str):
        raise InvalidSeed(f"Seed must be a string, got {type(seed).__name__}.")
    if len(seed) != SEED_LENGTH:
        raise InvalidSeed(
            f"Seed must be exactly {SEED_LENGTH} characters, got {len(seed)}."
        )

    number = 0
    for position, char in enumerate(seed):
        digit = _DIGIT_VALUES.get(char)
        if digit is None:
            raise InvalidSeed(
                f"Invalid character {char!r} at position {position}; "
                f"seeds use only 0-9, a-z and A-Z."
            )
        number = number * SEED_BASE + digit

    if number >= MAX_SEED_VALUE:
        raise InvalidSeed("Seed is out of range: it does not encode any attraction matrix.")

    levels = []
    for _ in range(CELL_COUNT):
        number, level = divmod(number, QUANTIZATION_LEVELS)
        levels.append(level)
    levels.reverse()

    return [
        [level_to_value(level) for level in levels[row * MATRIX_SIZE:(row + 1) * MATRIX_SIZE]]
        for row in range(MATRIX_SIZE)
    ]


def random_matrix(rng: Optional[np.random.Generator] = None) -> List[List[float]]:
    """
    Generates a random 6x6 attraction matrix on the quantization grid.

    Args:
        rng: Source of randomness. A fresh, unseeded generator is used if None.
    """
    if rng is None:
        rng = np.random.default_rng()
    levels = rng.integers(0, QUANTIZATION_LEVELS, size=(MATRIX_SIZE, MATRIX_SIZE))
    matrix = [[level_to_value(int(level)) for level in row] for row in levels]
    logging.debug(f"Generated random attraction matrix: {matrix}")
    return matrix
