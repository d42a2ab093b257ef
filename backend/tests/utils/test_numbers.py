# tests/utils/test_numbers.py
import pytest

from factory_pulse.utils.numbers import round_half_up

@pytest.mark.parametrize("value,expected", [
    (12.5, 13),
    (16.5, 17),
    (2.5, 3),
    (2.4, 2),
    (-12.5, -12),
    (0, 0),
])
def test_round_half_up(value, expected):
    assert round_half_up(value) == expected
