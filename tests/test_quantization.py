"""
Quantization table tests: the 201-level mapping and its rejections.
"""
import math

import numpy as np
import pytest

from quantization import LEVEL_VALUES, InvalidQuantization, level_to_value, value_to_level


class TestLevelToValue:
    def test_endpoints_and_midpoint(self):
        assert level_to_value(0) == -1.0
        assert level_to_value(100) == 0.0
        assert level_to_value(200) == 1.0

    def test_values_are_two_decimal(self):
        for level, value in enumerate(LEVEL_VALUES):
            assert value == round(-1.0 + 0.01 * level, 2)

    def test_table_is_strictly_increasing(self):
        assert len(LEVEL_VALUES) == 201
        assert all(a < b for a, b in zip(LEVEL_VALUES, LEVEL_VALUES[1:]))

    @pytest.mark.parametrize("level", [-1, 201, 1000])
    def test_out_of_range_level_rejected(self, level):
        with pytest.raises(InvalidQuantization):
            level_to_value(level)


class TestValueToLevel:
    def test_inverse_of_level_to_value(self):
        for level in range(201):
            assert value_to_level(level_to_value(level)) == level

    def test_accepts_float_noise(self):
        # 0.1 + 0.2 == 0.30000000000000004
        assert value_to_level(0.1 + 0.2) == 130
        assert value_to_level(np.float32(0.25)) == 125

    def test_accepts_float32_storage(self):
        assert value_to_level(np.float32(0.1)) == 110
        assert value_to_level(np.float32(0.3)) == 130
        for level, value in enumerate(np.array(LEVEL_VALUES, dtype=np.float32)):
            assert value_to_level(value) == level

    @pytest.mark.parametrize("value", [0.005, -0.555, 0.123, 1.01, -1.01, 2.0])
    def test_off_grid_rejected(self, value):
        with pytest.raises(InvalidQuantization):
            value_to_level(value)

    @pytest.mark.parametrize("value", [math.nan, math.inf, -math.inf, "abc", None])
    def test_non_numbers_rejected(self, value):
        with pytest.raises(InvalidQuantization):
            value_to_level(value)

    def test_is_a_value_error(self):
        with pytest.raises(ValueError):
            value_to_level(0.5001)
