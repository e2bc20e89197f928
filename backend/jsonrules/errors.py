"""
Error types raised by the rules engine.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class RuleEngineError(Exception):
    """Base exception for rule configuration and evaluation failures."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class RuleConfigurationError(RuleEngineError, ValueError):
    """Invalid priority, conditions, options or evaluation setup."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIGURATION_ERROR", message, details)


class UndefinedFactError(RuleEngineError, KeyError):
    """A condition references a fact the provider does not know."""

    def __init__(self, fact: str):
        self.fact = fact
        super().__init__("UNDEFINED_FACT", f"Undefined fact: {fact}", {"fact": fact})

    def __str__(self) -> str:
        return self.message


class UnknownOperatorError(RuleEngineError, ValueError):
    """A leaf condition uses an operator missing from the operator table."""

    def __init__(self, operator: str):
        self.operator = operator
        super().__init__("UNKNOWN_OPERATOR", f"Unknown operator: {operator}", {"operator": operator})
