"""Run telemetry: a timing tree for one service call.

Off unless ``--verbose``. When on, ``@traced`` opens a root span for the
service method, ``trace_span`` nests phases under it, and the finished
tree lands in ``ServiceResult.meta["telemetry"]``. Worker threads never
see the ContextVar, so executor timings are attached afterwards with
:meth:`Span.record`.
"""

from __future__ import annotations

import functools
import threading
import time
from collections.abc import Callable, Generator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, ParamSpec, TypeVar

import structlog

from dhdctl.services.result import ServiceResult

log = structlog.get_logger("dhdctl.telemetry")

_enabled: ContextVar[bool] = ContextVar("dhd_telemetry_enabled", default=False)
_active: ContextVar[Span | None] = ContextVar("dhd_active_span", default=None)


@dataclass
class Span:
    """One timed phase; children are appended under a lock."""

    name: str
    started: float = field(default_factory=time.perf_counter)
    finished: float | None = None
    annotations: dict[str, Any] = field(default_factory=dict)
    children: list[Span] = field(default_factory=list)
    _fixed_ms: float | None = None
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def duration_ms(self) -> float:
        if self._fixed_ms is not None:
            return self._fixed_ms
        if self.finished is None:
            return 0.0
        return (self.finished - self.started) * 1000

    def close(self) -> None:
        if self.finished is None:
            self.finished = time.perf_counter()

    def annotate(self, key: str, value: Any) -> None:
        self.annotations[key] = value

    def open_child(self, name: str) -> Span:
        child = Span(name=name)
        with self._lock:
            self.children.append(child)
        return child

    def record(self, name: str, duration_ms: float, **annotations: Any) -> Span:
        """Attach an already-measured child, e.g. a module timed by the executor."""
        child = Span(name=name, annotations=annotations, _fixed_ms=duration_ms)
        child.finished = child.started
        with self._lock:
            self.children.append(child)
        return child

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name, "duration_ms": round(self.duration_ms, 2)}
        if self.annotations:
            data["annotations"] = dict(self.annotations)
        with self._lock:
            children = list(self.children)
        if children:
            data["children"] = [c.to_dict() for c in children]
        return data


@contextmanager
def trace_span(name: str) -> Generator[Span | None]:
    """Time a phase under the active span; yields None outside a traced call."""
    parent = _active.get() if _enabled.get() else None
    if parent is None:
        yield None
        return

    span = parent.open_child(name)
    token = _active.set(span)
    try:
        yield span
    finally:
        span.close()
        _active.reset(token)


_P = ParamSpec("_P")
_R = TypeVar("_R")


def traced(func: Callable[_P, _R]) -> Callable[_P, _R]:  # noqa: UP047
    """Root a span at a service method and attach the tree to its result."""

    @functools.wraps(func)
    def wrapper(*args: _P.args, **kwargs: _P.kwargs) -> _R:
        if not _enabled.get():
            return func(*args, **kwargs)

        root = Span(name=func.__qualname__)
        token = _active.set(root)
        ok = False
        try:
            result = func(*args, **kwargs)
            ok = True
        finally:
            root.close()
            _active.reset(token)
            log.debug(
                "span_closed",
                span=root.name,
                duration_ms=round(root.duration_ms, 2),
                ok=ok,
                phases=len(root.children),
            )

        if isinstance(result, ServiceResult):
            meta = {**(result.meta or {}), "telemetry": root.to_dict()}
            return result.model_copy(update={"meta": meta})  # type: ignore[return-value]
        return result

    return wrapper


def enable_telemetry() -> None:
    _enabled.set(True)


def disable_telemetry() -> None:
    _enabled.set(False)


def get_current_span() -> Span | None:
    """The innermost open span, or None when telemetry is off."""
    return _active.get() if _enabled.get() else None
