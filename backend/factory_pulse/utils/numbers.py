# backend/factory_pulse/utils/numbers.py
import math


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (12.5 -> 13, -12.5 -> -12)"""
    return math.floor(value + 0.5)
