"""Exception taxonomy for dhdctl.

Every error carries a stable ``code`` (used as ``ServiceError.code``), a
human message, and a ``detail`` dict for structured output.

Severity by family:

- :class:`ExtractionError` — fatal for one configuration source only.
- :class:`ConditionEvaluationError` — never fatal; the leaf reads as false.
- :class:`PlanError` — fatal for the whole plan; nothing executes.
- :class:`AtomError` — attached to one graph node as its status.
"""

from __future__ import annotations

from typing import Any, ClassVar


class DhdError(Exception):
    """Base class for all dhdctl errors."""

    code: ClassVar[str] = "DHD_ERROR"

    def __init__(self, message: str, *, detail: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail: dict[str, Any] = detail or {}


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------


class ExtractionError(DhdError):
    """A configuration source could not be turned into modules."""

    code = "EXTRACTION_ERROR"

    def __init__(
        self,
        message: str,
        *,
        origin: str,
        line: int | None = None,
        column: int | None = None,
    ) -> None:
        detail: dict[str, Any] = {"origin": origin}
        if line is not None:
            detail["line"] = line
            detail["column"] = column
        super().__init__(message, detail=detail)
        self.origin = origin
        self.line = line
        self.column = column

    def __str__(self) -> str:
        if self.line is None:
            return f"{self.origin}: {self.message}"
        return f"{self.origin}:{self.line}:{self.column}: {self.message}"


class ParseError(ExtractionError):
    """The source is not syntactically valid."""

    code = "PARSE_ERROR"


class UnsupportedConstructError(ExtractionError):
    """Valid syntax that falls outside the recognized vocabulary."""

    code = "UNSUPPORTED_CONSTRUCT"


class DuplicateModuleError(UnsupportedConstructError):
    """Two declarations share one module name."""

    code = "DUPLICATE_MODULE"


# ---------------------------------------------------------------------------
# Conditions
# ---------------------------------------------------------------------------


class ConditionEvaluationError(DhdError):
    """A leaf predicate could not be evaluated."""

    code = "CONDITION_ERROR"

    def __init__(self, condition: str, cause: BaseException) -> None:
        super().__init__(
            f"cannot evaluate {condition}: {cause}",
            detail={"condition": condition, "cause": type(cause).__name__},
        )
        self.condition = condition
        self.cause = cause


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------


class PlanError(DhdError):
    """The selected modules cannot be planned."""

    code = "PLAN_ERROR"


class UnknownDependencyError(PlanError):
    code = "UNKNOWN_DEPENDENCY"

    def __init__(self, module: str, dependency: str) -> None:
        super().__init__(
            f"module '{module}' depends on unknown module '{dependency}'",
            detail={"module": module, "dependency": dependency},
        )
        self.module = module
        self.dependency = dependency


class DependencyCycleError(PlanError):
    code = "DEPENDENCY_CYCLE"

    def __init__(self, cycle: list[str]) -> None:
        super().__init__(
            f"dependency cycle: {' -> '.join(cycle)}",
            detail={"cycle": cycle},
        )
        self.cycle = cycle


class LoweringError(DhdError):
    """An action cannot be lowered into atoms on this host."""

    code = "LOWERING_ERROR"


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------


class AtomError(DhdError):
    """An atom failed during check or apply."""

    code = "ATOM_ERROR"

    def __init__(self, atom: str, cause: BaseException) -> None:
        super().__init__(f"{atom}: {cause}", detail={"atom": atom})
        self.atom = atom
        self.cause = cause


class AtomCheckError(AtomError):
    code = "ATOM_CHECK_FAILED"


class AtomApplyError(AtomError):
    code = "ATOM_APPLY_FAILED"


class CommandError(DhdError):
    """A spawned process failed or could not be started."""

    code = "COMMAND_FAILED"

    def __init__(
        self,
        command: list[str],
        message: str,
        *,
        returncode: int | None = None,
        stderr: str = "",
    ) -> None:
        super().__init__(
            message,
            detail={"command": command, "returncode": returncode, "stderr": stderr},
        )
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
