"""
Pydantic models and value coercion shared by rules and conditions.
"""

from __future__ import annotations

import math
import re
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from .errors import RuleConfigurationError

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def coerce_priority(value: Any) -> int:
    """
    Coerce a priority to a positive integer.

    Strings are parsed by their leading integer ("7", " 3 ", "5th"), floats are
    truncated.

    Raises:
        RuleConfigurationError: If the value cannot be parsed or is <= 0.
    """
    if isinstance(value, bool):
        parsed = None
    elif isinstance(value, int):
        parsed = value
    elif isinstance(value, float):
        parsed = int(value) if math.isfinite(value) else None
    elif isinstance(value, str):
        match = _LEADING_INT.match(value)
        parsed = int(match.group(1)) if match else None
    else:
        parsed = None

    if parsed is None:
        raise RuleConfigurationError(
            f"Priority must be an integer, got {value!r}",
            {"priority": repr(value)},
        )
    if parsed <= 0:
        raise RuleConfigurationError(
            "Priority must be greater than zero",
            {"priority": parsed},
        )
    return parsed


class RuleEvent(BaseModel):
    """Event payload carried by a rule; only ``type`` and ``params`` are kept."""

    model_config = ConfigDict(extra="ignore")

    type: str = "unknown"
    params: Optional[Any] = None

    @field_validator("type")
    @classmethod
    def type_not_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("event type must be a non-empty string")
        return v

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, omitting unset params."""
        data: Dict[str, Any] = {"type": self.type}
        if self.params is not None:
            data["params"] = self.params
        return data
