"""Operation-specific Rich renderers for ServiceResult.

Renderers are dispatched by ``result.op`` in :func:`render_result`;
unknown ops fall through to a generic key-value renderer.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from rich.table import Table
from rich.text import Text

from dhdctl.output.console import create_console, get_output, style_for_state

if TYPE_CHECKING:
    from rich.console import Console

    from dhdctl.services.result import ServiceResult


# ── Public API ────────────────────────────────────────────────────────


def render_result(result: ServiceResult, *, verbose: bool = False) -> str:
    """Render a ServiceResult to a styled string via Rich."""
    console = create_console()

    if result.ok:
        renderer = _OP_RENDERERS.get(result.op, _render_generic)
        renderer(result, console, verbose=verbose)
    else:
        _render_error(result, console, verbose=verbose)

    return get_output(console).rstrip("\n")


def render_quiet(result: ServiceResult) -> str:
    """Minimal output for ``--quiet``: names and states, one per line."""
    if not result.ok:
        msg = result.error.message if result.error else "Unknown error"
        return f"ERROR: {result.op}: {msg}"

    if result.op == "list_modules":
        return "\n".join(m["name"] for m in result.data.get("modules", []))
    if result.op == "plan":
        return "\n".join(m["name"] for m in result.data.get("modules", []))
    if result.op == "apply":
        report = result.data.get("report", {})
        return "\n".join(f"{m['name']} {m['state']}" for m in report.get("modules", []))
    return f"OK: {result.op}"


# ── Helpers ───────────────────────────────────────────────────────────


def _status_line(console: Console, result: ServiceResult, suffix: str = "") -> None:
    label = Text("OK", style="dhd.ok")
    op = Text(f"  {result.op}", style="dhd.op")
    console.print(label, op, Text(suffix), end="")
    console.print()


def _field(console: Console, key: str, value: Any) -> None:
    k = Text(f"  {key}: ", style="dhd.key")
    v = Text(str(value), style="dhd.path" if key in ("origin", "path") else "")
    console.print(k, v, end="")
    console.print()


def _state(state: str) -> Text:
    return Text(state, style=style_for_state(state))


def _render_meta(console: Console, result: ServiceResult) -> None:
    """Print the meta block, including the telemetry span tree."""
    if not result.meta:
        return

    console.print()
    console.print(Text("  meta:", style="dim"))
    for k, v in result.meta.items():
        if k == "telemetry":
            _render_telemetry_tree(console, v, indent=4)
        else:
            console.print(f"    {k}: {v}")


def _render_telemetry_tree(console: Console, span_data: dict[str, Any], indent: int = 4) -> None:
    prefix = " " * indent
    name = span_data.get("name", "?")
    duration = span_data.get("duration_ms", 0.0)

    if duration > 1000:
        style = "bold red"
    elif duration > 100:
        style = "yellow"
    else:
        style = "dim"

    line = Text(prefix)
    line.append(f"{duration:>8.2f}ms", style=style)
    line.append(f"  {name}")
    annotations = span_data.get("annotations") or {}
    if annotations:
        line.append(f"  ({', '.join(f'{k}={v}' for k, v in annotations.items())})")
    console.print(line)

    for child in span_data.get("children", []):
        _render_telemetry_tree(console, child, indent=indent + 4)


def _render_source_errors(console: Console, result: ServiceResult) -> None:
    for err in result.data.get("source_errors", []):
        where = err.get("origin", "?")
        if err.get("line") is not None:
            where = f"{where}:{err['line']}:{err.get('column')}"
        console.print(
            Text("  source error ", style="dhd.warning"),
            Text(f"{where}: {err.get('message')}"),
        )


def _report_table(report: dict[str, Any], *, verbose: bool = False) -> Table:
    table = Table(show_header=True, show_lines=False, pad_edge=False, expand=False)
    table.add_column("Module", style="dhd.module", no_wrap=True)
    table.add_column("State")
    table.add_column("Detail")
    if verbose:
        table.add_column("ms", justify="right", style="dim")

    for module in report.get("modules", []):
        detail = module.get("error") or module.get("reason") or ""
        row: list[str | Text] = [module["name"], _state(module["state"]), detail]
        if verbose:
            row.append(f"{module.get('duration_ms', 0.0):.1f}")
        table.add_row(*row)
    return table


def _render_atoms(console: Console, report: dict[str, Any]) -> None:
    """Per-atom breakdown (verbose)."""
    for module in report.get("modules", []):
        console.print(Text(f"  {module['name']}", style="dhd.module"))
        for action in module.get("actions", []):
            line = Text(f"    {action['index']}. ")
            line.append_text(_state(action["state"]))
            line.append(f"  {action['description']}")
            console.print(line)
            for atom in action.get("atoms", []):
                line = Text("       ")
                line.append_text(_state(atom["state"]))
                line.append(f"  {atom['description']}")
                if atom.get("error"):
                    line.append(f"  {atom['error']}", style="dhd.error")
                console.print(line)


# ── Error renderer ────────────────────────────────────────────────────


def _render_error(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    err = result.error
    msg = err.message if err else "Unknown error"
    label = Text("ERROR", style="dhd.error")
    op = Text(f"  {result.op}", style="dhd.op")
    console.print(label, op, Text(": "), msg)

    report = result.data.get("report")
    if report:
        console.print(_report_table(report, verbose=verbose))
        if verbose:
            _render_atoms(console, report)
    _render_source_errors(console, result)

    if verbose and err and err.detail:
        console.print(Text("  detail:", style="dim"))
        for k, v in err.detail.items():
            console.print(f"    {k}: {v}")


# ── Operation renderers ───────────────────────────────────────────────


def _render_list(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    _field(console, "count", result.data.get("count", 0))
    modules = result.data.get("modules", [])
    if modules:
        table = Table(show_header=True, show_lines=False, pad_edge=False, expand=False)
        table.add_column("Module", style="dhd.module", no_wrap=True)
        table.add_column("Description")
        table.add_column("Tags", style="dhd.tag")
        table.add_column("Depends on")
        table.add_column("Actions", justify="right")
        if verbose:
            table.add_column("Condition")
            table.add_column("Origin", style="dhd.path")
        for m in modules:
            row = [
                m["name"],
                m.get("description") or "",
                ", ".join(m.get("tags", [])),
                ", ".join(m.get("dependencies", [])),
                str(m.get("actions", 0)),
            ]
            if verbose:
                row += [m.get("condition") or "", m.get("origin", "")]
            table.add_row(*row)
        console.print(table)
    _render_source_errors(console, result)
    if verbose:
        _render_meta(console, result)


def _render_plan(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    d = result.data
    _status_line(console, result)
    _field(console, "modules", len(d.get("modules", [])))
    _field(console, "atoms", d.get("nodes", 0))

    for module in d.get("modules", []):
        header = Text(f"  {module['name']}", style="dhd.module")
        if module.get("included_as_dependency"):
            header.append("  (dependency)", style="dim")
        console.print(header)
        if module.get("failure"):
            console.print(Text(f"    cannot plan: {module['failure']}", style="dhd.error"))
            continue
        if module.get("skip_reason"):
            console.print(Text(f"    skip: {module['skip_reason']}", style="dhd.state.skipped"))
            continue
        for action in module.get("actions", []):
            line = Text(f"    {action['index']}. {action['description']}")
            if action.get("skip_reason"):
                line.append(f"  (skip: {action['skip_reason']})", style="dim")
            console.print(line)
            for atom in action.get("atoms", []):
                console.print(Text(f"       - {atom}", style="dim"))

    _render_source_errors(console, result)
    if verbose:
        for diag in d.get("diagnostics", []):
            console.print(Text(f"  {diag['level']}: {diag['message']}", style="dim"))
        _render_meta(console, result)


def _render_apply(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    report = result.data.get("report", {})
    mode = report.get("mode", "apply")
    _status_line(console, result, suffix=f"  ({mode.replace('_', '-')})")
    console.print(_report_table(report, verbose=verbose))

    totals = report.get("atom_totals", {})
    summary = ", ".join(f"{count} {state}" for state, count in sorted(totals.items()))
    _field(console, "atoms", summary or "none")
    if verbose:
        _render_atoms(console, report)
    _render_source_errors(console, result)
    if verbose:
        _render_meta(console, result)


def _render_generic(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    for key, value in result.data.items():
        _field(console, key, value)
    if verbose:
        _render_meta(console, result)


_Renderer = Callable[..., None]

_OP_RENDERERS: dict[str, _Renderer] = {
    "list_modules": _render_list,
    "plan": _render_plan,
    "apply": _render_apply,
}
