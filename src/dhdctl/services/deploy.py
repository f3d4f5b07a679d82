"""DeployService — discovery → extraction → planning → execution.

Broken sources never stop a run: their errors become warnings and
``data.source_errors`` while modules from healthy sources proceed.
Plan errors fail the whole operation before anything executes.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from dhdctl.domain.errors import PlanError
from dhdctl.domain.types import ExecutionMode, NodeState
from dhdctl.engine.executor import Executor, TransitionCallback
from dhdctl.engine.planner import Plan, Selection
from dhdctl.extraction.extractor import Extractor
from dhdctl.services.base import BaseService
from dhdctl.services.result import ServiceError, ServiceResult
from dhdctl.services.telemetry import get_current_span, trace_span, traced

if TYPE_CHECKING:
    from dhdctl.domain.modules import Module


class DeployService(BaseService):
    """List, plan and apply configuration modules on the host."""

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    def _load_modules(
        self, warnings: list[str]
    ) -> tuple[list[Module], list[dict[str, Any]]]:
        """Discover and extract every source; errors are collected per source."""
        with trace_span("discover") as span:
            sources = self._host.sources()
            if span:
                span.annotate("sources", len(sources))

        with trace_span("extract"):
            extractor = Extractor(self._host.extraction_context())
            result = extractor.extract_all(sources)

        source_errors: list[dict[str, Any]] = []
        for error in result.errors:
            warnings.append(str(error))
            source_errors.append({"code": error.code, "message": error.message, **error.detail})
        return result.modules, source_errors

    def _plan(
        self, op: str, selection: Selection, warnings: list[str]
    ) -> tuple[Plan | None, ServiceResult | None, list[dict[str, Any]]]:
        modules, source_errors = self._load_modules(warnings)
        try:
            with trace_span("plan") as span:
                plan = self._host.planner().plan(modules, selection)
                if span:
                    span.annotate("nodes", len(plan.graph))
        except PlanError as exc:
            return (
                None,
                ServiceResult(
                    ok=False,
                    op=op,
                    data={"source_errors": source_errors},
                    warnings=warnings,
                    error=ServiceError.from_exception(exc),
                ),
                source_errors,
            )

        for diagnostic in plan.diagnostics:
            if diagnostic.level != "info":
                prefix = f"{diagnostic.module}: " if diagnostic.module else ""
                warnings.append(f"{prefix}{diagnostic.message}")
        self._dispatch_hook("post_plan", warnings, summary=plan.summary())
        return plan, None, source_errors

    # ------------------------------------------------------------------
    # list
    # ------------------------------------------------------------------

    @traced
    def list_modules(self, *, tags: Iterable[str] = ()) -> ServiceResult:
        """List discovered modules, optionally those carrying any of *tags*."""
        warnings: list[str] = []
        modules, source_errors = self._load_modules(warnings)
        wanted = set(tags)
        if wanted:
            modules = [m for m in modules if wanted & m.tags]
        return ServiceResult(
            ok=True,
            op="list_modules",
            data={
                "count": len(modules),
                "modules": [m.summary() for m in modules],
                "source_errors": source_errors,
            },
            warnings=warnings,
        )

    # ------------------------------------------------------------------
    # plan
    # ------------------------------------------------------------------

    @traced
    def plan(self, selection: Selection | None = None) -> ServiceResult:
        """Build the plan for *selection* without running any atom."""
        warnings: list[str] = []
        plan, failure, source_errors = self._plan("plan", selection or Selection(), warnings)
        if failure is not None:
            return failure
        assert plan is not None
        return ServiceResult(
            ok=True,
            op="plan",
            data={**plan.summary(), "source_errors": source_errors},
            warnings=warnings,
        )

    # ------------------------------------------------------------------
    # apply
    # ------------------------------------------------------------------

    @traced
    def apply(
        self,
        selection: Selection | None = None,
        *,
        dry_run: bool = False,
        concurrency: int | None = None,
        on_transition: TransitionCallback | None = None,
    ) -> ServiceResult:
        """Plan *selection* and execute it.

        Fails with ``EXECUTION_FAILED`` when any module ends FAILED and with
        ``CANCELLED`` when the run was interrupted; the report is returned
        in ``data`` either way.
        """
        warnings: list[str] = []
        plan, failure, source_errors = self._plan("apply", selection or Selection(), warnings)
        if failure is not None:
            return failure
        assert plan is not None

        mode = ExecutionMode.DRY_RUN if dry_run else ExecutionMode.APPLY
        executor = Executor(
            concurrency or self._host.settings.execution.concurrency,
            on_transition=on_transition,
        )
        with trace_span("execute") as span:
            report = executor.execute(plan, mode)
            if span:
                span.annotate("mode", str(mode))
                span.annotate("atoms", report.atom_totals)
                for outcome in report.modules:
                    span.record(outcome.name, outcome.duration_ms, state=str(outcome.state))

        for outcome in report.modules:
            self._dispatch_hook(
                "post_module", warnings, name=outcome.name, status=str(outcome.state)
            )
        payload = report.model_dump(mode="json")
        self._dispatch_hook("post_apply", warnings, report=payload)

        root = get_current_span()
        if root is not None:
            root.annotate("modules", len(report.modules))

        data = {
            "report": payload,
            "diagnostics": [d.model_dump() for d in plan.diagnostics],
            "source_errors": source_errors,
        }
        failed = report.failed_modules
        if failed:
            return ServiceResult(
                ok=False,
                op="apply",
                data=data,
                warnings=warnings,
                error=ServiceError(
                    code="EXECUTION_FAILED",
                    message=f"{len(failed)} module(s) failed: {', '.join(failed)}",
                    detail={"failed_modules": failed},
                ),
            )
        if report.cancelled:
            skipped = [m.name for m in report.modules if m.state == NodeState.SKIPPED]
            return ServiceResult(
                ok=False,
                op="apply",
                data=data,
                warnings=warnings,
                error=ServiceError(
                    code="CANCELLED",
                    message="execution was cancelled",
                    detail={"skipped_modules": skipped},
                ),
            )
        return ServiceResult(ok=True, op="apply", data=data, warnings=warnings)
