"""
Comparison operators used by leaf conditions.

Each operator compares a resolved fact value (left) against the value stored
on the condition (right).
"""

from __future__ import annotations

from dataclasses import dataclass
from numbers import Number
from typing import Any, Callable, Dict, Iterable, Mapping, Optional


def _is_number(value: Any) -> bool:
    return isinstance(value, Number) and not isinstance(value, bool)


def _accepts_anything(value: Any) -> bool:
    return True


@dataclass(frozen=True)
class Operator:
    """
    A named comparison.

    ``fact_value_validator`` guards the callback: when it rejects the fact
    value the comparison is False without calling the callback.
    """

    name: str
    callback: Callable[[Any, Any], bool]
    fact_value_validator: Callable[[Any], bool] = _accepts_anything

    def evaluate(self, fact_value: Any, json_value: Any) -> bool:
        if not self.fact_value_validator(fact_value):
            return False
        return bool(self.callback(fact_value, json_value))


def _contains(fact_value: Any, json_value: Any) -> bool:
    try:
        return json_value in fact_value
    except TypeError:
        return False


def _member_of(fact_value: Any, json_value: Any) -> bool:
    try:
        return fact_value in json_value
    except TypeError:
        return False


def _is_container(value: Any) -> bool:
    return isinstance(value, (list, tuple, set, frozenset, str))


DEFAULT_OPERATORS: Dict[str, Operator] = {
    op.name: op
    for op in (
        Operator("equal", lambda a, b: a == b),
        Operator("notEqual", lambda a, b: a != b),
        Operator("in", _member_of),
        Operator("notIn", lambda a, b: not _member_of(a, b)),
        Operator("contains", _contains, _is_container),
        Operator("doesNotContain", lambda a, b: not _contains(a, b), _is_container),
        Operator("lessThan", lambda a, b: a < b, _is_number),
        Operator("lessThanInclusive", lambda a, b: a <= b, _is_number),
        Operator("greaterThan", lambda a, b: a > b, _is_number),
        Operator("greaterThanInclusive", lambda a, b: a >= b, _is_number),
    )
}


def build_operator_table(
    overrides: Optional[Iterable[Operator] | Mapping[str, Operator]] = None
) -> Dict[str, Operator]:
    """Return the default operators merged with the given overrides."""
    table = dict(DEFAULT_OPERATORS)
    if not overrides:
        return table
    operators = overrides.values() if isinstance(overrides, Mapping) else overrides
    for op in operators:
        table[op.name] = op
    return table
