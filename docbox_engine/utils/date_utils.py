"""Date manipulation utilities"""

from datetime import date


def days_apart(a: date, b: date) -> int:
    """Absolute number of calendar days between two dates"""
    return abs((a - b).days)


def same_day(a: date, b: date) -> bool:
    return days_apart(a, b) == 0
