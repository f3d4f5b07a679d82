"""Declarative extractor — configuration source text to typed Modules.

The extractor walks the syntax tree and accepts only an allow-listed set of
shapes: ``defineModule(...)`` builder chains, the action and condition
builder calls, literals, and the read-only context handle passed to
``.with(ctx => [...])``. Any other construct is an
:class:`~dhdctl.domain.errors.UnsupportedConstructError` carrying the
source position; nothing is ever evaluated.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field, ValidationError

from dhdctl.domain.actions import ACTION_TYPES, Conditional, build_action
from dhdctl.domain.conditions import (
    CONDITION_TYPES,
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
    combine_all,
)
from dhdctl.domain.errors import (
    DuplicateModuleError,
    ExtractionError,
    ParseError,
    UnsupportedConstructError,
)
from dhdctl.domain.evaluator import normalize_fact
from dhdctl.domain.modules import Module
from dhdctl.domain.platform import PlatformInfo, select_for_platform
from dhdctl.domain.types import Operator
from dhdctl.extraction import syntax
from dhdctl.extraction.literals import (
    decode_escapes,
    is_json_value,
    js_string,
    json_stringify,
    parse_number,
)

if TYPE_CHECKING:
    from tree_sitter import Node

logger = logging.getLogger(__name__)

# Builder function -> (action kind, fixed fields).
ACTION_BUILDERS: dict[str, tuple[str, dict[str, Any]]] = {
    "packageInstall": ("package_install", {}),
    "fileWrite": ("file_write", {}),
    "copyFile": ("copy_file", {}),
    "directory": ("directory", {}),
    "executeCommand": ("execute_command", {}),
    "linkFile": ("link", {"variant": "file"}),
    "linkDotfile": ("link", {"variant": "dotfile"}),
    "linkDirectory": ("link", {"variant": "directory"}),
    "gitConfig": ("git_config", {}),
    "httpDownload": ("http_download", {}),
    "httpdownload": ("http_download", {}),
    "systemdService": ("systemd_service", {}),
    "systemdservice": ("systemd_service", {}),
    "systemdSocket": ("systemd_socket", {}),
    "systemdManage": ("systemd_manage", {}),
    "userGroup": ("user_group", {}),
    "dconfImport": ("dconf_import", {}),
}

_PROPERTY_METHODS: dict[str, Operator] = {
    "equals": Operator.EQUALS,
    "is": Operator.EQUALS,
    "notEquals": Operator.NOT_EQUALS,
    "contains": Operator.CONTAINS,
    "startsWith": Operator.STARTS_WITH,
    "endsWith": Operator.ENDS_WITH,
}

_IGNORED_STATEMENTS = frozenset(
    {
        "import_statement",
        "empty_statement",
        "hash_bang_line",
        "type_alias_declaration",
        "interface_declaration",
    }
)

_WRAPPERS = frozenset(
    {"parenthesized_expression", "as_expression", "satisfies_expression", "non_null_expression"}
)


class ExtractionContext(BaseModel):
    """Read-only values exposed to sources through the context handle."""

    model_config = {"frozen": True}

    user: str = "user"
    home: str = "/home/user"
    platform: PlatformInfo = Field(default_factory=PlatformInfo)


class ConfigSource(BaseModel):
    """One configuration source: its text and where it came from."""

    model_config = {"frozen": True}

    origin: str
    text: str
    base_dir: Path | None = None


@dataclass
class ExtractionResult:
    modules: list[Module] = field(default_factory=list)
    errors: list[ExtractionError] = field(default_factory=list)


# -- intermediate values ------------------------------------------------------


@dataclass(frozen=True)
class _PropertyRef:
    path: str


@dataclass(frozen=True)
class _CommandRef:
    command: str
    args: tuple[str, ...] = ()


@dataclass(frozen=True)
class _Scope:
    ctx: str | None = None


class Extractor:
    """Turn configuration sources into Modules without executing them."""

    def __init__(self, context: ExtractionContext | None = None) -> None:
        self._context = context or ExtractionContext()

    def extract(self, source: ConfigSource) -> list[Module]:
        """Extract every module declared in *source*.

        Raises:
            ParseError: The text is not syntactically valid.
            UnsupportedConstructError: Valid syntax outside the vocabulary.
        """
        tree = syntax.parse(source.text)
        issue = syntax.first_error(tree.root_node)
        if issue is not None:
            raise ParseError(
                issue.message, origin=source.origin, line=issue.line, column=issue.column
            )
        return _SourceWalker(source, self._context).walk(tree.root_node)

    def extract_all(self, sources: Iterable[ConfigSource]) -> ExtractionResult:
        """Extract each source independently, collecting per-source errors.

        A module name declared twice keeps its first declaration; the
        duplicate is reported as a :class:`DuplicateModuleError`.
        """
        result = ExtractionResult()
        seen: dict[str, str] = {}
        for source in sources:
            try:
                modules = self.extract(source)
            except ExtractionError as exc:
                logger.warning("Skipping %s", exc)
                result.errors.append(exc)
                continue
            for module in modules:
                if module.name in seen:
                    result.errors.append(
                        DuplicateModuleError(
                            f"module '{module.name}' is already declared in {seen[module.name]}",
                            origin=source.origin,
                        )
                    )
                    continue
                seen[module.name] = source.origin
                result.modules.append(module)
        return result


class _SourceWalker:
    def __init__(self, source: ConfigSource, context: ExtractionContext) -> None:
        self._source = source
        self._context = context
        self._modules: list[Module] = []
        self._bindings: dict[str, str] = {}
        self._handlers: dict[str, Callable[[Node, _Scope], Any]] = {
            "string": self._string,
            "template_string": self._template,
            "number": lambda node, _: parse_number(syntax.text(node)),
            "true": lambda node, _: True,
            "false": lambda node, _: False,
            "null": lambda node, _: None,
            "undefined": lambda node, _: None,
            "array": self._array,
            "object": self._object,
            "unary_expression": self._unary,
            "binary_expression": self._binary,
            "identifier": self._identifier,
            "member_expression": self._member,
            "call_expression": self._call,
        }

    # -- top level ------------------------------------------------------------

    def walk(self, root: Node) -> list[Module]:
        for statement in syntax.named(root):
            kind = statement.type
            if kind in _IGNORED_STATEMENTS:
                continue
            if kind == "export_statement":
                self._export(statement)
            elif kind == "lexical_declaration":
                self._declaration(statement)
            else:
                raise self._unsupported(statement, f"top-level {_label(kind)} is not allowed")
        return self._modules

    def _export(self, statement: Node) -> None:
        declaration = statement.child_by_field_name("declaration")
        if declaration is not None:
            if declaration.type == "lexical_declaration":
                self._declaration(declaration)
            elif declaration.type not in _IGNORED_STATEMENTS:
                raise self._unsupported(declaration, f"exported {_label(declaration.type)}")
            return

        value = statement.child_by_field_name("value")
        if value is not None:
            if value.type == "identifier" and syntax.text(value) in self._bindings:
                return
            self._modules.append(self._module(value))
            return

        if any(child.type == "export_clause" for child in statement.named_children):
            return
        raise self._unsupported(statement, "unsupported export form")

    def _declaration(self, declaration: Node) -> None:
        keyword = declaration.children[0].type if declaration.children else ""
        if keyword != "const":
            raise self._unsupported(declaration, f"'{keyword}' declarations are not allowed")
        for declarator in syntax.named(declaration):
            name = declarator.child_by_field_name("name")
            value = declarator.child_by_field_name("value")
            if name is None or name.type != "identifier" or value is None:
                raise self._unsupported(declarator, "expected 'const name = defineModule(...)'")
            module = self._module(value)
            self._bindings[syntax.text(name)] = module.name
            self._modules.append(module)

    # -- module chain ---------------------------------------------------------

    def _module(self, node: Node) -> Module:
        calls: list[tuple[str, list[Node], Node]] = []
        current = _unwrap(node)
        while current.type == "call_expression":
            function = current.child_by_field_name("function")
            args = self._arguments(current)
            if function is not None and function.type == "identifier":
                name = syntax.text(function)
                if name != "defineModule":
                    raise self._unsupported(current, f"'{name}(...)' does not declare a module")
                calls.append((name, args, current))
                break
            if function is None or function.type != "member_expression":
                raise self._unsupported(current, "expected a defineModule(...) chain")
            calls.append((self._property_name(function), args, current))
            current = _unwrap(function.child_by_field_name("object"))
        else:
            raise self._unsupported(node, "expected a defineModule(...) chain")

        calls.reverse()
        _, root_args, root = calls[0]
        name = self._single_string(root_args, root, "defineModule")
        if not name:
            raise self._unsupported(root, "module name must not be empty")

        description: str | None = None
        tags: list[str] = []
        dependencies: list[str] = []
        conditions = []
        actions: list[Any] | None = None

        for method, args, call in calls[1:]:
            if actions is not None:
                raise self._unsupported(call, f"'.{method}()' cannot follow the action list")
            match method:
                case "description":
                    description = self._single_string(args, call, method)
                case "tags":
                    tags.extend(self._string_list(args, call, method))
                case "depends" | "dependsOn":
                    dependencies.extend(self._string_list(args, call, method))
                case "when":
                    conditions.append(self._condition(self._single(args, call, method)))
                case "actions":
                    actions = self._action_list(self._single(args, call, method), _Scope())
                case "with":
                    actions = self._callback(self._single(args, call, method))
                case _:
                    raise self._unsupported(call, f"unknown module method '.{method}()'")

        try:
            return Module(
                name=name,
                description=description,
                tags=frozenset(tags),
                dependencies=tuple(dependencies),
                condition=combine_all(conditions),
                actions=tuple(actions or ()),
                origin=self._source.origin,
                base_dir=self._source.base_dir,
            )
        except ValidationError as exc:
            raise self._unsupported(root, f"invalid module: {_first_issue(exc)}") from None

    def _callback(self, node: Node) -> list[Any]:
        node = _unwrap(node)
        if node.type != "arrow_function":
            raise self._unsupported(node, "'.with()' expects an arrow function")
        if any(child.type == "async" for child in node.children):
            raise self._unsupported(node, "async callbacks are not supported")

        ctx_name: str | None = None
        single = node.child_by_field_name("parameter")
        parameters = node.child_by_field_name("parameters")
        if single is not None:
            ctx_name = syntax.text(single)
        elif parameters is not None:
            params = syntax.named(parameters)
            if len(params) > 1:
                raise self._unsupported(parameters, "callback takes at most one parameter")
            if params:
                pattern = params[0].child_by_field_name("pattern")
                if params[0].type != "required_parameter" or pattern is None:
                    raise self._unsupported(params[0], "unsupported callback parameter")
                if pattern.type != "identifier":
                    raise self._unsupported(pattern, "destructured context is not supported")
                ctx_name = syntax.text(pattern)

        body = node.child_by_field_name("body")
        if body is not None and body.type == "statement_block":
            statements = syntax.named(body)
            if len(statements) != 1 or statements[0].type != "return_statement":
                raise self._unsupported(body, "callback body must be a single return statement")
            returned = syntax.named(statements[0])
            if not returned:
                raise self._unsupported(statements[0], "callback must return an action list")
            body = returned[0]
        if body is None:
            raise self._unsupported(node, "callback has no body")
        return self._action_list(body, _Scope(ctx_name))

    def _action_list(self, node: Node, scope: _Scope) -> list[Any]:
        node = _unwrap(node)
        if node.type != "array":
            raise self._unsupported(node, "expected an array of actions")
        actions = []
        for element in syntax.named(node):
            value = self._value(element, scope)
            if not isinstance(value, ACTION_TYPES):
                raise self._unsupported(element, "action list elements must be actions")
            actions.append(value)
        return actions

    # -- values ---------------------------------------------------------------

    def _value(self, node: Node, scope: _Scope) -> Any:
        node = _unwrap(node)
        handler = self._handlers.get(node.type)
        if handler is None:
            raise self._unsupported(node, f"{_label(node.type)} is not supported")
        return handler(node, scope)

    def _string(self, node: Node, _scope: _Scope) -> str:
        raw = syntax.text(node)
        try:
            return decode_escapes(raw[1:-1])
        except ValueError as exc:
            raise self._unsupported(node, str(exc)) from None

    def _template(self, node: Node, scope: _Scope) -> str:
        source = node.text or b""
        base = node.start_byte
        cursor = 1
        parts: list[str] = []
        for child in node.named_children:
            if child.type != "template_substitution":
                continue
            parts.append(self._template_chunk(source[cursor : child.start_byte - base], node))
            inner = syntax.named(child)
            if len(inner) != 1:
                raise self._unsupported(child, "empty template substitution")
            value = self._value(inner[0], scope)
            if isinstance(value, list | dict) or not is_json_value(value):
                raise self._unsupported(inner[0], "only scalars can be substituted")
            parts.append(js_string(value))
            cursor = child.end_byte - base
        parts.append(self._template_chunk(source[cursor:-1], node))
        return "".join(parts)

    def _template_chunk(self, raw: bytes, node: Node) -> str:
        try:
            return decode_escapes(raw.decode("utf-8"))
        except ValueError as exc:
            raise self._unsupported(node, str(exc)) from None

    def _array(self, node: Node, scope: _Scope) -> list[Any]:
        return [self._value(element, scope) for element in syntax.named(node)]

    def _object(self, node: Node, scope: _Scope) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for member in syntax.named(node):
            if member.type == "shorthand_property_identifier":
                raise self._unsupported(
                    member, f"shorthand property '{syntax.text(member)}' refers to a variable"
                )
            if member.type != "pair":
                raise self._unsupported(member, f"{_label(member.type)} in object literal")
            key_node = member.child_by_field_name("key")
            value_node = member.child_by_field_name("value")
            if key_node is None or value_node is None:
                raise self._unsupported(member, "malformed property")
            if key_node.type == "property_identifier":
                key = syntax.text(key_node)
            elif key_node.type == "string":
                key = self._string(key_node, scope)
            elif key_node.type == "number":
                key = js_string(parse_number(syntax.text(key_node)))
            else:
                raise self._unsupported(key_node, "computed keys are not supported")
            result[key] = self._value(value_node, scope)
        return result

    def _unary(self, node: Node, scope: _Scope) -> int | float:
        operator = node.child_by_field_name("operator")
        argument = node.child_by_field_name("argument")
        op = operator.type if operator is not None else ""
        value = self._value(argument, scope) if argument is not None else None
        if op not in ("-", "+") or isinstance(value, bool) or not isinstance(value, int | float):
            raise self._unsupported(node, "only numeric '-' and '+' are supported")
        return -value if op == "-" else value

    def _binary(self, node: Node, scope: _Scope) -> Any:
        operator = node.child_by_field_name("operator")
        if operator is None or operator.type != "+":
            raise self._unsupported(node, "only '+' is supported between literals")
        left = self._value(node.child_by_field_name("left"), scope)
        right = self._value(node.child_by_field_name("right"), scope)
        if isinstance(left, str) or isinstance(right, str):
            if not (is_json_value(left) and is_json_value(right)):
                raise self._unsupported(node, "'+' operands must be scalars")
            return js_string(left) + js_string(right)
        numeric = (int, float)
        if (
            isinstance(left, numeric)
            and isinstance(right, numeric)
            and not isinstance(left, bool)
            and not isinstance(right, bool)
        ):
            return left + right
        raise self._unsupported(node, "'+' operands must be strings or numbers")

    def _identifier(self, node: Node, scope: _Scope) -> Any:
        name = syntax.text(node)
        if name == "undefined":
            return None
        return self._context_value(self._context_path(node, scope), node)

    def _member(self, node: Node, scope: _Scope) -> Any:
        return self._context_value(self._context_path(node, scope), node)

    # -- context handle -------------------------------------------------------

    def _context_path(self, node: Node, scope: _Scope) -> tuple[str, ...]:
        node = _unwrap(node)
        if node.type == "identifier":
            name = syntax.text(node)
            if scope.ctx is not None and name == scope.ctx:
                return ()
            raise self._unsupported(node, f"free variable '{name}' is not allowed")
        if node.type == "member_expression":
            parent = self._context_path(node.child_by_field_name("object"), scope)
            return (*parent, self._property_name(node))
        raise self._unsupported(node, f"{_label(node.type)} is not supported")

    def _context_value(self, path: tuple[str, ...], node: Node) -> Any:
        ctx = self._context
        values: dict[tuple[str, ...], Any] = {
            ("user",): ctx.user,
            ("user", "name"): ctx.user,
            ("user", "username"): ctx.user,
            ("user", "homedir"): ctx.home,
            ("user", "home"): ctx.home,
            ("platform", "os"): ctx.platform.os,
            ("platform", "distro"): ctx.platform.distro,
            ("platform", "family"): ctx.platform.family,
            ("platform", "arch"): ctx.platform.arch,
        }
        if path in values:
            return values[path]
        label = ".".join(("ctx", *path))
        raise self._unsupported(node, f"'{label}' is not available")

    # -- calls ----------------------------------------------------------------

    def _call(self, node: Node, scope: _Scope) -> Any:
        function = node.child_by_field_name("function")
        args = self._arguments(node)
        if function is None:
            raise self._unsupported(node, "malformed call")
        function = _unwrap(function)

        if function.type == "identifier":
            name = syntax.text(function)
            try:
                return self._function(name, args, node, scope)
            except ValidationError as exc:
                raise self._unsupported(node, f"invalid {name}(): {_first_issue(exc)}") from None

        if function.type == "member_expression":
            method = self._property_name(function)
            target = _unwrap(function.child_by_field_name("object"))
            if (
                target.type == "identifier"
                and syntax.text(target) == "JSON"
                and scope.ctx != "JSON"
            ):
                if method != "stringify":
                    raise self._unsupported(node, f"'JSON.{method}' is not supported")
                return self._json_stringify(args, node, scope)
            if target.type == "call_expression":
                receiver = self._call(target, scope)
                try:
                    return self._method(receiver, method, args, node, scope)
                except ValidationError as exc:
                    issue = _first_issue(exc)
                    raise self._unsupported(node, f"invalid .{method}(): {issue}") from None
            path = self._context_path(function, scope)
            if path == ("platform", "select"):
                options = self._value(self._single(args, node, "select"), scope)
                if not isinstance(options, dict):
                    raise self._unsupported(node, "'select' expects an object literal")
                return select_for_platform(options, self._context.platform)
            raise self._unsupported(node, f"'ctx.{'.'.join(path)}()' is not supported")

        raise self._unsupported(node, f"calling a {_label(function.type)} is not supported")

    def _function(self, name: str, args: list[Node], node: Node, scope: _Scope) -> Any:
        if name in ACTION_BUILDERS:
            kind, fixed = ACTION_BUILDERS[name]
            fields = self._value(self._single(args, node, name), scope)
            if not isinstance(fields, dict):
                raise self._unsupported(node, f"'{name}' expects an object literal")
            return build_action(kind, {**fields, **fixed})

        match name:
            case "onlyIf" | "skipIf":
                if len(args) != 2:
                    raise self._unsupported(node, f"'{name}' expects an action and conditions")
                action = self._value(args[0], scope)
                if not isinstance(action, ACTION_TYPES):
                    raise self._unsupported(args[0], f"'{name}' expects an action")
                return Conditional(
                    action=action,
                    conditions=tuple(self._conditions(args[1:], scope)),
                    skip_on_success=name == "skipIf",
                )
            case "and" | "allOf":
                return AllOf(conditions=tuple(self._conditions(args, scope)))
            case "or" | "anyOf":
                return AnyOf(conditions=tuple(self._conditions(args, scope)))
            case "not":
                return Not(condition=self._condition(self._single(args, node, name), scope))
            case "fileExists":
                return FileExists(path=self._single_string(args, node, name, scope))
            case "directoryExists":
                return DirectoryExists(path=self._single_string(args, node, name, scope))
            case "commandExists":
                return CommandExists(command=self._single_string(args, node, name, scope))
            case "commandSucceeds":
                command, extra = self._command_args(args, node, name, scope)
                return CommandSucceeds(command=command, args=extra)
            case "envVar" | "environmentVariable":
                strings = self._strings(args, node, name, scope)
                if len(strings) not in (1, 2):
                    raise self._unsupported(node, f"'{name}' expects a name and optional value")
                return EnvVar(name=strings[0], value=strings[1] if len(strings) == 2 else None)
            case "property":
                return _PropertyRef(self._single_string(args, node, name, scope))
            case "command":
                command, extra = self._command_args(args, node, name, scope)
                return _CommandRef(command, extra)
            case "defineModule":
                raise self._unsupported(node, "modules cannot be nested")
        raise self._unsupported(node, f"call to unknown function '{name}'")

    def _method(
        self, receiver: Any, method: str, args: list[Node], node: Node, scope: _Scope
    ) -> Any:
        if isinstance(receiver, _PropertyRef):
            if method in ("isTrue", "isFalse"):
                if args:
                    raise self._unsupported(node, f"'{method}' takes no arguments")
                value = "true" if method == "isTrue" else "false"
                return PropertyCondition(path=receiver.path, value=value)
            if method in _PROPERTY_METHODS:
                value = self._value(self._single(args, node, method), scope)
                if isinstance(value, list | dict) or not is_json_value(value) or value is None:
                    raise self._unsupported(node, f"'{method}' expects a scalar")
                return PropertyCondition(
                    path=receiver.path,
                    operator=_PROPERTY_METHODS[method],
                    value=normalize_fact(value),
                )
        if isinstance(receiver, _CommandRef):
            if method == "exists" and not args:
                return CommandExists(command=receiver.command)
            if method == "succeeds" and not args:
                return CommandSucceeds(command=receiver.command, args=receiver.args)
            if method == "contains" and args:
                text = self._value(args[0], scope)
                insensitive = self._value(args[1], scope) if len(args) > 1 else False
                if len(args) > 2 or not isinstance(text, str) or not isinstance(insensitive, bool):
                    raise self._unsupported(node, "'contains' expects (text, caseInsensitive?)")
                return CommandContains(
                    command=receiver.command,
                    args=receiver.args,
                    text=text,
                    case_insensitive=insensitive,
                )
        raise self._unsupported(node, f"unsupported method '.{method}()'")

    def _json_stringify(self, args: list[Node], node: Node, scope: _Scope) -> str:
        if not 1 <= len(args) <= 3:
            raise self._unsupported(node, "JSON.stringify expects 1 to 3 arguments")
        value = self._value(args[0], scope)
        if not is_json_value(value):
            raise self._unsupported(args[0], "JSON.stringify accepts literal data only")
        if len(args) > 1 and self._value(args[1], scope) is not None:
            raise self._unsupported(args[1], "JSON.stringify replacers are not supported")
        indent = self._value(args[2], scope) if len(args) > 2 else None
        if indent is not None and not isinstance(indent, int | str):
            raise self._unsupported(args[2], "indent must be a number or string")
        return json_stringify(value, indent)

    # -- argument helpers -----------------------------------------------------

    def _arguments(self, call: Node) -> list[Node]:
        arguments = call.child_by_field_name("arguments")
        if arguments is None or arguments.type != "arguments":
            raise self._unsupported(call, "tagged templates are not supported")
        return syntax.named(arguments)

    def _single(self, args: list[Node], node: Node, name: str) -> Node:
        if len(args) != 1:
            raise self._unsupported(node, f"'{name}' expects exactly one argument")
        return args[0]

    def _single_string(
        self, args: list[Node], node: Node, name: str, scope: _Scope | None = None
    ) -> str:
        value = self._value(self._single(args, node, name), scope or _Scope())
        if not isinstance(value, str):
            raise self._unsupported(node, f"'{name}' expects a string")
        return value

    def _strings(self, args: list[Node], node: Node, name: str, scope: _Scope) -> list[str]:
        values = [self._value(arg, scope) for arg in args]
        if not all(isinstance(v, str) for v in values):
            raise self._unsupported(node, f"'{name}' expects strings")
        return values

    def _string_list(self, args: list[Node], node: Node, name: str) -> list[str]:
        values = [self._value(arg, _Scope()) for arg in args]
        if len(values) == 1 and isinstance(values[0], list):
            values = values[0]
        if not values or not all(isinstance(v, str) for v in values):
            raise self._unsupported(node, f"'{name}' expects strings or a string array")
        return values

    def _command_args(
        self, args: list[Node], node: Node, name: str, scope: _Scope
    ) -> tuple[str, tuple[str, ...]]:
        if not 1 <= len(args) <= 2:
            raise self._unsupported(node, f"'{name}' expects a command and optional args")
        command = self._value(args[0], scope)
        extra = self._value(args[1], scope) if len(args) == 2 else []
        if not isinstance(command, str) or not (
            isinstance(extra, list) and all(isinstance(a, str) for a in extra)
        ):
            raise self._unsupported(node, f"'{name}' expects (string, string[])")
        return command, tuple(extra)

    def _condition(self, node: Node, scope: _Scope | None = None) -> Any:
        value = self._value(node, scope or _Scope())
        if not isinstance(value, CONDITION_TYPES):
            raise self._unsupported(node, "expected a condition")
        return value

    def _conditions(self, args: list[Node], scope: _Scope) -> list[Any]:
        if len(args) == 1 and _unwrap(args[0]).type == "array":
            args = syntax.named(_unwrap(args[0]))
        return [self._condition(arg, scope) for arg in args]

    def _property_name(self, member: Node) -> str:
        prop = member.child_by_field_name("property")
        if prop is None or prop.type != "property_identifier":
            raise self._unsupported(member, "computed member access is not supported")
        return syntax.text(prop)

    def _unsupported(self, node: Node, message: str) -> UnsupportedConstructError:
        line, column = syntax.position(node)
        return UnsupportedConstructError(
            message, origin=self._source.origin, line=line, column=column
        )


def _unwrap(node: Node | None) -> Node:
    while node is not None and node.type in _WRAPPERS:
        inner = syntax.named(node)
        if not inner:
            break
        node = inner[0]
    if node is None:
        msg = "missing expression"
        raise ValueError(msg)
    return node


def _label(node_type: str) -> str:
    return node_type.replace("_", " ")


def _first_issue(exc: ValidationError) -> str:
    errors = exc.errors()
    first = errors[0]
    loc = ".".join(str(part) for part in first["loc"][1:]) or str(first["loc"][0])
    more = f" (+{len(errors) - 1} more)" if len(errors) > 1 else ""
    return f"{loc}: {first['msg']}{more}"
