"""ServiceResult and ServiceError — the contract between services and the CLI.

INVARIANT: every public service method returns a ServiceResult; expected
failures are reported through ``error``, never raised.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from dhdctl.domain.errors import DhdError


class ServiceError(BaseModel):
    """Structured error payload within a ServiceResult."""

    model_config = {"frozen": True}

    code: str
    message: str
    detail: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_exception(cls, exc: DhdError) -> ServiceError:
        return cls(code=exc.code, message=exc.message, detail=exc.detail)


class ServiceResult(BaseModel):
    """Return type of every service operation.

    Attributes:
        ok: Whether the operation succeeded.
        op: Name of the operation (e.g. ``"apply"``).
        data: Operation-specific payload. Failed results may still carry
            data, such as the execution report of a run with failed modules.
        warnings: Non-fatal issues (broken sources, plugin failures).
        error: Structured error if ``ok`` is False.
        meta: Optional metadata (telemetry spans, counts).
    """

    model_config = {"frozen": True}

    ok: bool
    op: str
    data: dict[str, Any] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)
    error: ServiceError | None = None
    meta: dict[str, Any] | None = None
