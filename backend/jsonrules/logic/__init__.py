"""
Condition model and comparison operators.

Provides condition tree parsing and the operator table used by leaf conditions.
"""

from .condition import BooleanOperator, Condition
from .operators import DEFAULT_OPERATORS, Operator, build_operator_table

__all__ = [
    "BooleanOperator",
    "Condition",
    "DEFAULT_OPERATORS",
    "Operator",
    "build_operator_table",
]
