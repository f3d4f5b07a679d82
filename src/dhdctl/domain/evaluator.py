"""Condition evaluation against an injected FactProvider.

Combinators short-circuit in declaration order: ``all_of`` stops at the
first false child, ``any_of`` at the first true one. A leaf whose fact
query raises is recorded as errored rather than false, and an errored
result that no sibling settles reads as false for the whole tree, even
under ``not``. A broken probe never aborts planning.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from dhdctl.domain.conditions import (
    AllOf,
    AnyOf,
    CommandContains,
    CommandExists,
    CommandSucceeds,
    DirectoryExists,
    EnvVar,
    FileExists,
    Not,
    PropertyCondition,
)
from dhdctl.domain.errors import ConditionEvaluationError
from dhdctl.domain.types import Operator

if TYPE_CHECKING:
    from dhdctl.domain.conditions import Condition
    from dhdctl.domain.facts import FactProvider

logger = logging.getLogger(__name__)


@dataclass
class Evaluation:
    """Result of evaluating one condition tree, with degraded leaves.

    ``undetermined`` is set when an errored leaf decided the outcome;
    ``result`` is then False.
    """

    result: bool
    errors: list[ConditionEvaluationError] = field(default_factory=list)
    undetermined: bool = False


def normalize_fact(value: Any) -> str:
    """Render a fact value the way property conditions compare it."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def compare(operator: Operator, actual: str, expected: str) -> bool:
    match operator:
        case Operator.EQUALS:
            return actual == expected
        case Operator.NOT_EQUALS:
            return actual != expected
        case Operator.CONTAINS:
            return expected in actual
        case Operator.STARTS_WITH:
            return actual.startswith(expected)
        case Operator.ENDS_WITH:
            return actual.endswith(expected)
    msg = f"unknown operator: {operator}"
    raise ValueError(msg)


class ConditionEvaluator:
    """Evaluate condition trees; ``None`` means "always true"."""

    def __init__(self, facts: FactProvider) -> None:
        self._facts = facts
        self._leaves: dict[type, Callable[[Any], bool]] = {
            PropertyCondition: self._property,
            CommandExists: lambda c: self._facts.command_exists(c.command),
            CommandSucceeds: lambda c: self._facts.run_probe(c.command, c.args).ok,
            CommandContains: self._command_contains,
            FileExists: lambda c: self._facts.file_exists(c.path),
            DirectoryExists: lambda c: self._facts.directory_exists(c.path),
            EnvVar: self._env_var,
        }

    def evaluate(self, condition: Condition | None) -> bool:
        return self.evaluate_traced(condition).result

    def evaluate_traced(self, condition: Condition | None) -> Evaluation:
        if condition is None:
            return Evaluation(result=True)
        errors: list[ConditionEvaluationError] = []
        result = self._eval(condition, errors)
        return Evaluation(result=result is True, errors=errors, undetermined=result is None)

    def _eval(
        self, condition: Condition, errors: list[ConditionEvaluationError]
    ) -> bool | None:
        """Three-valued evaluation: ``None`` marks a subtree with an errored leaf.

        ``not`` keeps ``None``, so a broken probe can never switch a
        negated condition on. A decisive child still settles a combinator.
        """
        if isinstance(condition, AllOf):
            outcome: bool | None = True
            for child in condition.conditions:
                value = self._eval(child, errors)
                if value is False:
                    return False
                if value is None:
                    outcome = None
            return outcome
        if isinstance(condition, AnyOf):
            outcome = False
            for child in condition.conditions:
                value = self._eval(child, errors)
                if value is True:
                    return True
                if value is None:
                    outcome = None
            return outcome
        if isinstance(condition, Not):
            value = self._eval(condition.condition, errors)
            return None if value is None else not value

        leaf = self._leaves[type(condition)]
        try:
            return bool(leaf(condition))
        except Exception as exc:
            error = ConditionEvaluationError(condition.describe(), exc)
            logger.warning("%s; treating the condition as false", error.message)
            errors.append(error)
            return None

    # -- leaves ---------------------------------------------------------

    def _property(self, condition: PropertyCondition) -> bool:
        actual = self._facts.property(condition.path)
        if actual is None:
            return False
        return compare(condition.operator, normalize_fact(actual), condition.value)

    def _command_contains(self, condition: CommandContains) -> bool:
        probe = self._facts.run_probe(condition.command, condition.args)
        if not probe.ok:
            return False
        if condition.case_insensitive:
            return condition.text.lower() in probe.stdout.lower()
        return condition.text in probe.stdout

    def _env_var(self, condition: EnvVar) -> bool:
        value = self._facts.env(condition.name)
        if condition.value is None:
            return value is not None
        return value == condition.value
