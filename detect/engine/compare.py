"""Comparison of typed literals against entity attributes."""

from datetime import datetime
from typing import Any

from .._types import Operator
from ..query.values import CompiledPattern


def compare_string(operator: Operator, value: Any, actual: str) -> bool:
    if operator == Operator.EQ:
        return actual == value
    if operator == Operator.NE:
        return actual != value
    if operator == Operator.CONTAINS:
        return value in actual
    if operator == Operator.IN:
        return actual in value
    assert isinstance(value, CompiledPattern)
    return value.matches(actual)


def compare_ordered(operator: Operator, value: Any, actual: Any) -> bool:
    """Compare numbers and enum members; ``in`` tests set membership."""
    if operator == Operator.EQ:
        return actual == value
    if operator == Operator.NE:
        return actual != value
    if operator == Operator.IN:
        return actual in value
    if operator == Operator.GT:
        return actual > value
    if operator == Operator.GE:
        return actual >= value
    if operator == Operator.LT:
        return actual < value
    if operator == Operator.LE:
        return actual <= value
    raise ValueError(f"Operator {operator.value} does not apply here")


def compare_time(operator: Operator, value: datetime, actual: datetime) -> bool:
    """Compare timestamps; equality is by local calendar date."""
    if operator in (Operator.EQ, Operator.NE):
        same_day = actual.astimezone().date() == value.astimezone().date()
        return same_day if operator == Operator.EQ else not same_day
    return compare_ordered(operator, value, actual)
