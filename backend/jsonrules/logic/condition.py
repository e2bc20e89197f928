"""
Condition tree model.

Parses plain condition data such as::

    {"all": [
        {"fact": "temperature", "operator": "greaterThan", "value": 30},
        {"any": [
            {"fact": "humidity", "operator": "lessThan", "value": 60},
            {"fact": "season", "operator": "equal", "value": "summer"},
        ]},
    ]}

into ``Condition`` nodes. A node is either a boolean operator wrapping child
conditions or a leaf comparing a fact against a value.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional

from ..errors import RuleConfigurationError, UnknownOperatorError
from ..models import coerce_priority
from .operators import DEFAULT_OPERATORS, Operator


class BooleanOperator(str, Enum):
    """Operators that combine child conditions."""

    ALL = "all"
    ANY = "any"


LEAF_REQUIRED_KEYS = ("fact", "operator", "value")


@dataclass
class Condition:
    """A single node of a condition tree."""

    operator: str
    fact: Optional[str] = None
    value: Any = None
    params: Dict[str, Any] = field(default_factory=dict)
    priority: Optional[int] = None
    children: List["Condition"] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Condition":
        """
        Build a condition tree from plain data.

        Raises:
            RuleConfigurationError: If a node is malformed.
        """
        if not isinstance(data, Mapping):
            raise RuleConfigurationError(
                f"Condition must be an object, got {type(data).__name__}"
            )

        priority = None
        if data.get("priority") is not None:
            priority = coerce_priority(data["priority"])

        boolean_keys = [op for op in BooleanOperator if op.value in data]
        if len(boolean_keys) > 1:
            raise RuleConfigurationError(
                'Condition must contain a single instance of "all" or "any"'
            )

        if boolean_keys:
            operator = boolean_keys[0]
            sub_conditions = data[operator.value]
            if not isinstance(sub_conditions, list):
                raise RuleConfigurationError(f'"{operator.value}" must be an array')
            return cls(
                operator=operator,
                priority=priority,
                children=[cls.from_dict(child) for child in sub_conditions],
            )

        missing = [key for key in LEAF_REQUIRED_KEYS if key not in data]
        if missing:
            raise RuleConfigurationError(
                f'Condition: "{missing[0]}" property required',
                {"missing": missing},
            )

        params = data.get("params") or {}
        if not isinstance(params, Mapping):
            raise RuleConfigurationError('Condition: "params" must be an object')

        return cls(
            operator=str(data["operator"]),
            fact=str(data["fact"]),
            value=data["value"],
            params=dict(params),
            priority=priority,
        )

    def is_boolean_operator(self) -> bool:
        """Whether this node combines children instead of testing a fact."""
        return isinstance(self.operator, BooleanOperator)

    def evaluate(
        self,
        comparison_value: Any,
        operators: Optional[Mapping[str, Operator]] = None,
    ) -> bool:
        """
        Test a resolved value against this condition.

        For boolean nodes ``comparison_value`` is already the combined result
        of the children and is returned as-is.
        """
        if self.is_boolean_operator():
            return bool(comparison_value)

        table = operators if operators is not None else DEFAULT_OPERATORS
        op = table.get(self.operator)
        if op is None:
            raise UnknownOperatorError(self.operator)
        return op.evaluate(comparison_value, self.value)

    def facts(self) -> Iterator[str]:
        """Yield every fact name referenced in this subtree, depth first."""
        if self.is_boolean_operator():
            for child in self.children:
                yield from child.facts()
        elif self.fact is not None:
            yield self.fact

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to plain condition data."""
        if self.is_boolean_operator():
            data: Dict[str, Any] = {
                self.operator.value: [child.to_dict() for child in self.children]
            }
        else:
            data = {
                "fact": self.fact,
                "operator": self.operator,
                "value": self.value,
            }
            if self.params:
                data["params"] = dict(self.params)
        if self.priority is not None:
            data["priority"] = self.priority
        return data
