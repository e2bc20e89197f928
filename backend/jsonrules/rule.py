"""
Rule: a prioritized, short-circuiting evaluator for condition trees.

Sibling conditions are grouped by priority (the condition's own priority, or
the priority of the fact it references). Groups run one after another, highest
priority first; conditions inside a group resolve their facts concurrently.
As soon as a group decides the outcome (a true group under ``any``, a false
group under ``all``) the remaining groups are skipped and their facts are
never looked up.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import yaml
from pydantic import ValidationError

from .errors import RuleConfigurationError, UndefinedFactError
from .facts import FactProvider
from .log import get_logger
from .logic.condition import BooleanOperator, Condition
from .logic.operators import Operator, build_operator_table
from .models import RuleEvent, coerce_priority

logger = get_logger(__name__)

DEFAULT_PRIORITY = 1
DEFAULT_EVENT = {"type": "unknown"}


class Rule:
    """
    A condition tree with a priority and an event payload.

    Priority is a positive integer; higher priorities are meant to run sooner
    when an engine schedules several rules. The event is carried data for the
    caller and plays no part in evaluation.
    """

    def __init__(
        self,
        options: Optional[Union[str, Mapping[str, Any]]] = None,
        *,
        operators: Optional[Union[Iterable[Operator], Mapping[str, Operator]]] = None,
    ):
        """
        Initialize the rule.

        Args:
            options: Mapping, or JSON text of one, with optional keys
                ``conditions``, ``priority`` and ``event``.
            operators: Extra or replacement comparison operators.

        Raises:
            RuleConfigurationError: If any option is invalid.
        """
        if isinstance(options, str):
            try:
                options = json.loads(options)
            except json.JSONDecodeError as e:
                raise RuleConfigurationError(f"Invalid rule JSON: {e}") from e
        options = options or {}
        if not isinstance(options, Mapping):
            raise RuleConfigurationError(
                f"Rule options must be an object, got {type(options).__name__}"
            )

        self.conditions: Optional[Condition] = None
        self.engine: Optional[FactProvider] = None
        self.operators = build_operator_table(operators)

        if options.get("conditions"):
            self.set_conditions(options["conditions"])

        priority = options.get("priority")
        self.set_priority(DEFAULT_PRIORITY if priority is None else priority)
        self.set_event(options.get("event") or DEFAULT_EVENT)

    @classmethod
    def from_yaml(cls, yaml_content: str, **kwargs: Any) -> "Rule":
        """Load a rule from YAML content."""
        try:
            data = yaml.safe_load(yaml_content)
        except yaml.YAMLError as e:
            raise RuleConfigurationError(f"Invalid rule YAML: {e}") from e
        return cls(data or {}, **kwargs)

    @classmethod
    def from_file(cls, path: Path, **kwargs: Any) -> "Rule":
        """Load a rule from a YAML or JSON file."""
        with open(path, "r", encoding="utf-8") as f:
            return cls.from_yaml(f.read(), **kwargs)

    def set_priority(self, priority: Any) -> "Rule":
        """
        Set the rule priority.

        Raises:
            RuleConfigurationError: If the priority is not an integer > 0.
        """
        self.priority = coerce_priority(priority)
        return self

    def set_conditions(self, conditions: Mapping[str, Any]) -> "Rule":
        """
        Set the condition tree. The root must be an ``all`` or ``any`` node.

        Raises:
            RuleConfigurationError: If the tree is malformed.
        """
        if not isinstance(conditions, Mapping) or not any(
            op.value in conditions for op in BooleanOperator
        ):
            raise RuleConfigurationError(
                '"conditions" root must contain a single instance of "all" or "any"'
            )
        self.conditions = Condition.from_dict(conditions)
        return self

    def set_event(self, event: Mapping[str, Any]) -> "Rule":
        """Set the event payload, keeping only ``type`` and ``params``."""
        try:
            self.event = RuleEvent.model_validate(event)
        except ValidationError as e:
            raise RuleConfigurationError(f"Invalid event: {e}") from e
        return self

    def set_engine(self, engine: FactProvider) -> "Rule":
        """Attach the fact provider used when ``evaluate`` gets none."""
        self.engine = engine
        return self

    async def evaluate_condition(self, condition: Condition, engine: FactProvider) -> bool:
        """Evaluate a single condition node."""
        if condition.is_boolean_operator():
            comparison_value = await self._boolean_operators[condition.operator](
                self, condition.children, engine
            )
            return condition.evaluate(comparison_value, self.operators)

        comparison_value = await engine.resolve(condition.fact, condition.params)
        result = condition.evaluate(comparison_value, self.operators)
        logger.debug(
            "condition_evaluated",
            fact=condition.fact,
            fact_value=comparison_value,
            operator=condition.operator,
            value=condition.value,
            result=result,
        )
        return result

    def prioritize_conditions(
        self, conditions: List[Condition], engine: FactProvider
    ) -> List[List[Condition]]:
        """
        Group conditions by priority, highest first.

        A condition's own priority wins; otherwise the priority of its fact is
        used. Boolean nodes without a priority get the default.

        Raises:
            UndefinedFactError: If a condition without a priority references
                an unknown fact.
        """
        sets: Dict[int, List[Condition]] = {}
        for condition in conditions:
            priority = condition.priority
            if not priority:
                if condition.is_boolean_operator():
                    priority = DEFAULT_PRIORITY
                else:
                    fact = engine.lookup(condition.fact)
                    if fact is None:
                        raise UndefinedFactError(condition.fact)
                    priority = fact.priority
            sets.setdefault(priority, []).append(condition)
        return [sets[priority] for priority in sorted(sets, reverse=True)]

    async def evaluate_conditions(
        self,
        conditions: Union[Condition, List[Condition]],
        operator: BooleanOperator,
        engine: FactProvider,
    ) -> bool:
        """Evaluate a set of conditions concurrently and combine the results."""
        if not isinstance(conditions, list):
            conditions = [conditions]
        results = await asyncio.gather(
            *(self.evaluate_condition(condition, engine) for condition in conditions)
        )
        logger.debug("priority_group_results", operator=operator.value, results=results)
        if operator is BooleanOperator.ALL:
            return all(result is True for result in results)
        return any(result is True for result in results)

    async def prioritize_and_run(
        self,
        conditions: Union[Condition, List[Condition]],
        operator: BooleanOperator,
        engine: FactProvider,
    ) -> bool:
        """
        Evaluate conditions group by group, in priority order.

        Stops after the first true group for ``any`` and the first false group
        for ``all``. With no conditions ``all`` is True and ``any`` is False.
        """
        if not isinstance(conditions, list):
            conditions = [conditions]
        ordered_sets = self.prioritize_conditions(conditions, engine)

        decisive = operator is BooleanOperator.ANY
        result = not decisive
        for index, condition_set in enumerate(ordered_sets):
            result = await self.evaluate_conditions(condition_set, operator, engine)
            if result is decisive:
                skipped = len(ordered_sets) - index - 1
                if skipped:
                    logger.debug(
                        "short_circuit",
                        operator=operator.value,
                        result=result,
                        skipped_groups=skipped,
                    )
                break
        return result

    async def any(self, conditions: List[Condition], engine: FactProvider) -> bool:
        """Run an ``any`` operator over the conditions."""
        return await self.prioritize_and_run(conditions, BooleanOperator.ANY, engine)

    async def all(self, conditions: List[Condition], engine: FactProvider) -> bool:
        """Run an ``all`` operator over the conditions."""
        return await self.prioritize_and_run(conditions, BooleanOperator.ALL, engine)

    _boolean_operators = {
        BooleanOperator.ALL: all,
        BooleanOperator.ANY: any,
    }

    async def evaluate(self, engine: Optional[FactProvider] = None) -> bool:
        """
        Evaluate the rule against a fact provider.

        Args:
            engine: Fact provider; defaults to the one set with ``set_engine``.

        Raises:
            RuleConfigurationError: If no conditions or no provider are set.
            UndefinedFactError: If a condition references an unknown fact.
        """
        engine = engine if engine is not None else self.engine
        if engine is None:
            raise RuleConfigurationError("No fact provider set for rule evaluation")
        if self.conditions is None:
            raise RuleConfigurationError("Rule has no conditions")

        root = self.conditions
        return await self._boolean_operators[root.operator](self, root.children, engine)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the plain options accepted by the constructor."""
        data: Dict[str, Any] = {
            "priority": self.priority,
            "event": self.event.to_dict(),
        }
        if self.conditions is not None:
            data["conditions"] = self.conditions.to_dict()
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    def __repr__(self) -> str:
        return f"Rule(priority={self.priority}, event={self.event.type!r})"


def load_rules_from_dir(directory: Path, **kwargs: Any) -> List[Rule]:
    """Load every ``*.yaml`` rule file in a directory, sorted by file name."""
    directory = Path(directory)
    if not directory.exists():
        return []
    return [Rule.from_file(path, **kwargs) for path in sorted(directory.glob("*.yaml"))]
