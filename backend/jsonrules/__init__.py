"""
jsonrules: prioritized, short-circuiting evaluation of JSON condition trees.

A ``Rule`` holds an ``all``/``any`` tree of conditions and evaluates it
against facts resolved asynchronously from a fact provider such as
``FactRegistry``.
"""

from .errors import (
    RuleEngineError,
    RuleConfigurationError,
    UndefinedFactError,
    UnknownOperatorError,
)
from .facts import Fact, FactProvider, FactRegistry
from .logic import BooleanOperator, Condition, Operator
from .log import configure_logging
from .models import RuleEvent
from .rule import Rule, load_rules_from_dir

__version__ = "1.0.0"
__all__ = [
    # Core
    "Rule",
    "RuleEvent",
    "load_rules_from_dir",
    # Conditions
    "BooleanOperator",
    "Condition",
    "Operator",
    # Facts
    "Fact",
    "FactProvider",
    "FactRegistry",
    # Errors
    "RuleEngineError",
    "RuleConfigurationError",
    "UndefinedFactError",
    "UnknownOperatorError",
    # Logging
    "configure_logging",
]
