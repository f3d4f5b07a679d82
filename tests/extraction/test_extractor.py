"""Tests for the declarative extractor."""

from __future__ import annotations

from pathlib import Path

import pytest

from dhdctl.domain.actions import (
    Conditional,
    ExecuteCommand,
    FileWrite,
    GitConfig,
    Link,
    PackageInstall,
    SystemdManage,
)
from dhdctl.domain.conditions import (
    AllOf,
    AnyOf,
    CommandContains,
    CommandExists,
    EnvVar,
    Not,
    PropertyCondition,
)
from dhdctl.domain.errors import (
    DuplicateModuleError,
    ParseError,
    UnsupportedConstructError,
)
from dhdctl.domain.types import Operator, Scope, SystemdOperation
from dhdctl.extraction.extractor import ConfigSource, ExtractionContext, Extractor
from tests.conftest import UBUNTU

HEADER = 'import { defineModule, packageInstall } from "dhd";\n'


def _extract(text: str, **ctx: object) -> list:
    context = ExtractionContext(user="alice", home="/home/alice", platform=UBUNTU, **ctx)
    return Extractor(context).extract(ConfigSource(origin="mod.ts", text=text))


def _one(text: str):
    modules = _extract(text)
    assert len(modules) == 1
    return modules[0]


class TestModuleChains:
    def test_full_chain(self) -> None:
        m = _one(
            HEADER
            + """
export default defineModule("dev")
  .description("Developer tools")
  .tags("dev", "cli")
  .depends("base")
  .actions([
    packageInstall({ names: ["git", "curl"] }),
    executeCommand({ command: "echo", args: ["hi"] }),
  ]);
"""
        )
        assert m.name == "dev"
        assert m.description == "Developer tools"
        assert m.tags == frozenset({"dev", "cli"})
        assert m.dependencies == ("base",)
        assert m.origin == "mod.ts"
        assert len(m.actions) == 2
        assert isinstance(m.actions[0], PackageInstall)
        assert m.actions[0].names == ("git", "curl")
        assert isinstance(m.actions[1], ExecuteCommand)
        assert m.actions[1].args == ("hi",)

    def test_tags_accept_array(self) -> None:
        m = _one('export default defineModule("a").tags(["x", "y"]).actions([]);')
        assert m.tags == frozenset({"x", "y"})

    def test_depends_on_alias(self) -> None:
        m = _one('export default defineModule("a").dependsOn("b", "c").actions([]);')
        assert m.dependencies == ("b", "c")

    def test_module_without_actions(self) -> None:
        m = _one('export default defineModule("bare").description("nothing");')
        assert m.actions == ()

    def test_const_declarations_and_default_reference(self) -> None:
        modules = _extract(
            """
const a = defineModule("a").actions([]);
export const b = defineModule("b").depends("a").actions([]);
export default a;
"""
        )
        assert [m.name for m in modules] == ["a", "b"]

    def test_type_assertions_are_unwrapped(self) -> None:
        m = _one('export default (defineModule("t").actions([]) as Module);')
        assert m.name == "t"

    def test_comments_are_ignored(self) -> None:
        m = _one(
            """
// a comment
export default defineModule("c") /* inline */
  .actions([ /* none */ ]);
"""
        )
        assert m.name == "c"

    def test_base_dir_carried(self, tmp_path: Path) -> None:
        source = ConfigSource(
            origin="x.ts", text='export default defineModule("x");', base_dir=tmp_path
        )
        (m,) = Extractor().extract(source)
        assert m.base_dir == tmp_path


class TestConditions:
    def test_when_property(self) -> None:
        m = _one(
            'export default defineModule("u")'
            '.when(property("os.distro").equals("ubuntu")).actions([]);'
        )
        assert m.condition == PropertyCondition(path="os.distro", value="ubuntu")

    def test_multiple_when_are_anded(self) -> None:
        m = _one(
            'export default defineModule("u")'
            '.when(commandExists("git"))'
            '.when(not(envVar("CI")))'
            ".actions([]);"
        )
        assert isinstance(m.condition, AllOf)
        assert m.condition.conditions == (
            CommandExists(command="git"),
            Not(condition=EnvVar(name="CI")),
        )

    def test_combinators_and_methods(self) -> None:
        m = _one(
            """
export default defineModule("c")
  .when(anyOf(
    property("os.family").startsWith("deb"),
    command("uname", ["-a"]).contains("Linux", true),
    property("gpu.nvidia").isTrue(),
  ))
  .actions([]);
"""
        )
        cond = m.condition
        assert isinstance(cond, AnyOf)
        first, second, third = cond.conditions
        assert first == PropertyCondition(
            path="os.family", operator=Operator.STARTS_WITH, value="deb"
        )
        assert second == CommandContains(
            command="uname", args=("-a",), text="Linux", case_insensitive=True
        )
        assert third == PropertyCondition(path="gpu.nvidia", value="true")

    def test_property_equals_boolean_normalized(self) -> None:
        m = _one('export default defineModule("b").when(property("x").equals(false));')
        assert m.condition == PropertyCondition(path="x", value="false")

    def test_only_if_wraps_action(self) -> None:
        m = _one(
            """
export default defineModule("w").actions([
  onlyIf(executeCommand({ command: "true" }), [commandExists("true")]),
  skipIf(executeCommand({ command: "false" }), commandExists("nope")),
]);
"""
        )
        first, second = m.actions
        assert isinstance(first, Conditional)
        assert not first.skip_on_success
        assert first.conditions == (CommandExists(command="true"),)
        assert isinstance(second, Conditional)
        assert second.skip_on_success


class TestValues:
    def test_context_handle(self) -> None:
        m = _one(
            """
export default defineModule("ctx").with((ctx) => [
  fileWrite({
    destination: `${ctx.user.homedir}/.profile`,
    content: "user=" + ctx.user.name + " on " + ctx.platform.distro,
  }),
]);
"""
        )
        (action,) = m.actions
        assert isinstance(action, FileWrite)
        assert action.destination == "/home/alice/.profile"
        assert action.content == "user=alice on ubuntu"

    def test_context_block_body(self) -> None:
        m = _one(
            """
export default defineModule("ctx").with(c => {
  return [executeCommand({ command: c.user })];
});
"""
        )
        assert m.actions[0].command == "alice"

    def test_platform_select(self) -> None:
        m = _one(
            """
export default defineModule("sel").with(ctx => [
  packageInstall({
    names: ctx.platform.select({ linux: { ubuntu: ["fd-find"] }, default: ["fd"] }),
  }),
]);
"""
        )
        assert m.actions[0].names == ("fd-find",)

    def test_json_stringify(self) -> None:
        m = _one(
            """
export default defineModule("j").actions([
  fileWrite({
    destination: "/tmp/settings.json",
    content: JSON.stringify({ theme: "dark", size: 12, on: true }, null, 2),
  }),
]);
"""
        )
        assert m.actions[0].content == '{\n  "theme": "dark",\n  "size": 12,\n  "on": true\n}'

    def test_numbers_and_escapes(self) -> None:
        m = _one(
            r"""
export default defineModule("n").actions([
  fileWrite({ destination: "/tmp/a", content: "tab\there!", mode: 0o600 }),
  directory({ path: "/tmp/d", mode: "755" }),
]);
"""
        )
        assert m.actions[0].content == "tab\there!"
        assert m.actions[0].mode == 0o600
        assert m.actions[1].mode == 0o755

    def test_template_with_number(self) -> None:
        m = _one(
            "export default defineModule(`m${1 + 1}`).actions([]);",
        )
        assert m.name == "m2"

    def test_link_variants_and_aliases(self) -> None:
        m = _one(
            """
export default defineModule("l").actions([
  linkDotfile({ from: "zshrc", to: ".zshrc", force: true }),
  linkDirectory({ source: "nvim" }),
]);
"""
        )
        dot, directory = m.actions
        assert isinstance(dot, Link)
        assert dot.variant == "dotfile"
        assert dot.target == ".zshrc"
        assert dot.force
        assert directory.variant == "directory"
        assert directory.target is None

    def test_git_config_and_systemd(self) -> None:
        m = _one(
            """
export default defineModule("g").actions([
  gitConfig({ entries: [{ key: "user.name", value: "Alice" }], global: true }),
  systemdManage({ name: "docker", operation: "enable-now" }),
]);
"""
        )
        git, unit = m.actions
        assert isinstance(git, GitConfig)
        assert git.entries[0].value == "Alice"
        assert isinstance(unit, SystemdManage)
        assert unit.operation == SystemdOperation.ENABLE_NOW
        assert unit.scope == Scope.SYSTEM


class TestRejections:
    @pytest.mark.parametrize(
        ("text", "message"),
        [
            ('let m = defineModule("x");', "'let' declarations are not allowed"),
            ('console.log("hi");', "top-level expression statement is not allowed"),
            ("function f() {}", "top-level function declaration is not allowed"),
            ('export default defineModule(name).actions([]);', "free variable 'name'"),
            (
                'export default defineModule("x").actions([]).tags("a");',
                "cannot follow the action list",
            ),
            ('export default defineModule("x").frobnicate();', "unknown module method"),
            ('export default defineModule("x").actions([42]);', "must be actions"),
            (
                'export default defineModule("x").actions([fileWrite({ destination: "/a" })]);',
                "invalid fileWrite()",
            ),
            ('export default defineModule("x").actions([rm({ path: "/" })]);', "unknown function"),
            ('export default defineModule("x").when(JSON.parse("{}"));', "JSON.parse"),
            ('export default defineModule("x").with(async ctx => []);', "async"),
            ('export default defineModule("x").with(ctx => [ctx.secret]);', "'ctx.secret'"),
            ('export default defineModule("");', "must not be empty"),
            (
                'export default defineModule("x")'
                '.actions([fileWrite({ destination, content: "" })]);',
                "shorthand property",
            ),
        ],
    )
    def test_unsupported(self, text: str, message: str) -> None:
        with pytest.raises(UnsupportedConstructError, match=message) as info:
            _extract(text)
        assert info.value.origin == "mod.ts"
        assert info.value.line is not None

    def test_position_is_one_based(self) -> None:
        with pytest.raises(UnsupportedConstructError) as info:
            _extract('\n\n  let x = defineModule("x");')
        assert info.value.line == 3
        assert info.value.column == 3

    def test_parse_error(self) -> None:
        with pytest.raises(ParseError) as info:
            _extract('export default defineModule("x".actions([]);')
        assert info.value.code == "PARSE_ERROR"
        assert "mod.ts:" in str(info.value)


class TestExtractAll:
    def test_bad_source_does_not_stop_others(self) -> None:
        extractor = Extractor()
        result = extractor.extract_all(
            [
                ConfigSource(origin="good.ts", text='export default defineModule("a");'),
                ConfigSource(origin="bad.ts", text="let x = 1;"),
                ConfigSource(origin="also.ts", text='export default defineModule("b");'),
            ]
        )
        assert [m.name for m in result.modules] == ["a", "b"]
        assert len(result.errors) == 1
        assert result.errors[0].origin == "bad.ts"

    @pytest.mark.parametrize(
        "text",
        [
            r'export default defineModule("bad\uD800");',
            r'export default defineModule("m").when(fileExists("/etc/\uDC00"));',
            r'export default defineModule("m").when(property("os.distro").equals("\uD800"));',
        ],
    )
    def test_invalid_string_fails_only_its_source(self, text: str) -> None:
        result = Extractor().extract_all(
            [
                ConfigSource(origin="bad.ts", text=text),
                ConfigSource(origin="good.ts", text='export default defineModule("good");'),
            ]
        )
        assert [m.name for m in result.modules] == ["good"]
        (error,) = result.errors
        assert isinstance(error, UnsupportedConstructError)
        assert error.origin == "bad.ts"
        assert error.line == 1

    def test_duplicate_keeps_first(self) -> None:
        result = Extractor().extract_all(
            [
                ConfigSource(origin="one.ts", text='export default defineModule("a");'),
                ConfigSource(
                    origin="two.ts", text='export default defineModule("a").tags("x");'
                ),
            ]
        )
        assert len(result.modules) == 1
        assert result.modules[0].origin == "one.ts"
        (error,) = result.errors
        assert isinstance(error, DuplicateModuleError)
        assert "one.ts" in error.message
