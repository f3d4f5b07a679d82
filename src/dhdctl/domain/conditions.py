"""Condition trees — typed, side-effect-free predicates over host facts.

Leaves query a :class:`~dhdctl.domain.facts.FactProvider`; combinators
(``all_of``, ``any_of``, ``not``) compose them. Every node can
:meth:`describe` itself for diagnostics.
"""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, Field

from dhdctl.domain.types import Operator

_OPERATOR_SYMBOLS: dict[Operator, str] = {
    Operator.EQUALS: "==",
    Operator.NOT_EQUALS: "!=",
    Operator.CONTAINS: "contains",
    Operator.STARTS_WITH: "starts with",
    Operator.ENDS_WITH: "ends with",
}


class _ConditionBase(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    def describe(self) -> str:
        raise NotImplementedError


class PropertyCondition(_ConditionBase):
    """Compare a dotted system property (``os.distro``) against a value."""

    kind: Literal["property"] = "property"
    path: str
    operator: Operator = Operator.EQUALS
    value: str

    def describe(self) -> str:
        return f"system property {self.path} {_OPERATOR_SYMBOLS[self.operator]} {self.value}"


class CommandExists(_ConditionBase):
    kind: Literal["command_exists"] = "command_exists"
    command: str

    def describe(self) -> str:
        return f"command exists: {self.command}"


class CommandSucceeds(_ConditionBase):
    kind: Literal["command_succeeds"] = "command_succeeds"
    command: str
    args: tuple[str, ...] = ()

    def describe(self) -> str:
        return f"command succeeds: {' '.join((self.command, *self.args))}"


class CommandContains(_ConditionBase):
    """Run a probe command and look for *text* in its stdout."""

    kind: Literal["command_contains"] = "command_contains"
    command: str
    args: tuple[str, ...] = ()
    text: str
    case_insensitive: bool = False

    def describe(self) -> str:
        cmd = " ".join((self.command, *self.args))
        return f"command output contains '{self.text}': {cmd}"


class FileExists(_ConditionBase):
    kind: Literal["file_exists"] = "file_exists"
    path: str

    def describe(self) -> str:
        return f"file exists: {self.path}"


class DirectoryExists(_ConditionBase):
    kind: Literal["directory_exists"] = "directory_exists"
    path: str

    def describe(self) -> str:
        return f"directory exists: {self.path}"


class EnvVar(_ConditionBase):
    """Environment variable is set, or equals *value* when given."""

    kind: Literal["env_var"] = "env_var"
    name: str
    value: str | None = None

    def describe(self) -> str:
        if self.value is None:
            return f"environment variable {self.name} is set"
        return f"environment variable {self.name} == {self.value}"


class AllOf(_ConditionBase):
    kind: Literal["all_of"] = "all_of"
    conditions: tuple[Condition, ...]

    def describe(self) -> str:
        return f"all of {len(self.conditions)} conditions"


class AnyOf(_ConditionBase):
    kind: Literal["any_of"] = "any_of"
    conditions: tuple[Condition, ...]

    def describe(self) -> str:
        return f"any of {len(self.conditions)} conditions"


class Not(_ConditionBase):
    kind: Literal["not"] = "not"
    condition: Condition

    def describe(self) -> str:
        return f"not ({self.condition.describe()})"


Condition = Annotated[
    PropertyCondition
    | CommandExists
    | CommandSucceeds
    | CommandContains
    | FileExists
    | DirectoryExists
    | EnvVar
    | AllOf
    | AnyOf
    | Not,
    Field(discriminator="kind"),
]

AllOf.model_rebuild()
AnyOf.model_rebuild()
Not.model_rebuild()


def combine_all(conditions: list[Condition]) -> Condition | None:
    """AND-combine conditions; a single condition is returned unwrapped."""
    if not conditions:
        return None
    if len(conditions) == 1:
        return conditions[0]
    return AllOf(conditions=tuple(conditions))


CONDITION_TYPES: tuple[type[_ConditionBase], ...] = (
    PropertyCondition,
    CommandExists,
    CommandSucceeds,
    CommandContains,
    FileExists,
    DirectoryExists,
    EnvVar,
    AllOf,
    AnyOf,
    Not,
)
