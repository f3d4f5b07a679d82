"""Tests for condition evaluation against injected facts."""

from __future__ import annotations

import pytest

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
from dhdctl.domain.evaluator import ConditionEvaluator, compare, normalize_fact
from dhdctl.domain.facts import ProbeResult
from dhdctl.domain.types import Operator
from tests.conftest import FakeFacts, ubuntu_facts


def _ubuntu() -> PropertyCondition:
    return PropertyCondition(path="os.distro", value="ubuntu")


def _fedora() -> PropertyCondition:
    return PropertyCondition(path="os.distro", value="fedora")


class TestLeaves:
    def test_none_is_true(self) -> None:
        facts = FakeFacts()
        assert ConditionEvaluator(facts).evaluate(None) is True
        assert facts.calls == []

    def test_property_equals(self) -> None:
        ev = ConditionEvaluator(ubuntu_facts())
        assert ev.evaluate(_ubuntu())
        assert not ev.evaluate(_fedora())

    def test_unknown_property_is_false(self) -> None:
        ev = ConditionEvaluator(ubuntu_facts())
        assert not ev.evaluate(PropertyCondition(path="gpu.vendor", value="nvidia"))
        assert not ev.evaluate(
            PropertyCondition(path="gpu.vendor", operator=Operator.NOT_EQUALS, value="x")
        )

    @pytest.mark.parametrize(
        ("operator", "expected", "holds"),
        [
            (Operator.EQUALS, "24.04", True),
            (Operator.NOT_EQUALS, "24.04", False),
            (Operator.CONTAINS, ".0", True),
            (Operator.STARTS_WITH, "24", True),
            (Operator.ENDS_WITH, "10", False),
        ],
    )
    def test_operators(self, operator: Operator, expected: str, holds: bool) -> None:
        ev = ConditionEvaluator(ubuntu_facts())
        cond = PropertyCondition(path="os.version", operator=operator, value=expected)
        assert ev.evaluate(cond) is holds

    def test_command_exists(self) -> None:
        ev = ConditionEvaluator(FakeFacts(commands={"git"}))
        assert ev.evaluate(CommandExists(command="git"))
        assert not ev.evaluate(CommandExists(command="hg"))

    def test_command_succeeds(self) -> None:
        facts = FakeFacts(probes={("systemctl", "--version"): ProbeResult(0, "systemd 255")})
        ev = ConditionEvaluator(facts)
        assert ev.evaluate(CommandSucceeds(command="systemctl", args=("--version",)))
        assert not ev.evaluate(CommandSucceeds(command="missing"))

    def test_command_contains(self) -> None:
        facts = FakeFacts(probes={("lspci",): ProbeResult(0, "VGA: NVIDIA Corporation")})
        ev = ConditionEvaluator(facts)
        assert ev.evaluate(CommandContains(command="lspci", text="NVIDIA"))
        assert not ev.evaluate(CommandContains(command="lspci", text="nvidia"))
        assert ev.evaluate(CommandContains(command="lspci", text="nvidia", case_insensitive=True))

    def test_command_contains_requires_success(self) -> None:
        facts = FakeFacts(probes={("lspci",): ProbeResult(1, "NVIDIA")})
        assert not ConditionEvaluator(facts).evaluate(
            CommandContains(command="lspci", text="NVIDIA")
        )

    def test_paths_and_env(self) -> None:
        facts = FakeFacts(
            files={"/etc/hosts"}, directories={"/etc"}, environment={"SHELL": "/bin/zsh"}
        )
        ev = ConditionEvaluator(facts)
        assert ev.evaluate(FileExists(path="/etc/hosts"))
        assert not ev.evaluate(FileExists(path="/etc"))
        assert ev.evaluate(DirectoryExists(path="/etc"))
        assert ev.evaluate(EnvVar(name="SHELL"))
        assert ev.evaluate(EnvVar(name="SHELL", value="/bin/zsh"))
        assert not ev.evaluate(EnvVar(name="SHELL", value="/bin/bash"))
        assert not ev.evaluate(EnvVar(name="DISPLAY"))


class TestShortCircuit:
    def test_all_of_stops_at_first_false(self) -> None:
        facts = ubuntu_facts()
        cond = AllOf(conditions=(_fedora(), CommandExists(command="git")))
        assert not ConditionEvaluator(facts).evaluate(cond)
        assert ("command_exists", "git") not in facts.calls

    def test_any_of_stops_at_first_true(self) -> None:
        facts = ubuntu_facts()
        cond = AnyOf(conditions=(_ubuntu(), FileExists(path="/x")))
        assert ConditionEvaluator(facts).evaluate(cond)
        assert ("file_exists", "/x") not in facts.calls

    def test_declaration_order(self) -> None:
        facts = FakeFacts()
        cond = AnyOf(
            conditions=(
                CommandExists(command="a"),
                FileExists(path="/b"),
                EnvVar(name="C"),
            )
        )
        ConditionEvaluator(facts).evaluate(cond)
        assert facts.calls == [("command_exists", "a"), ("file_exists", "/b"), ("env", "C")]

    def test_empty_combinators(self) -> None:
        ev = ConditionEvaluator(FakeFacts())
        assert ev.evaluate(AllOf(conditions=()))
        assert not ev.evaluate(AnyOf(conditions=()))

    def test_not(self) -> None:
        ev = ConditionEvaluator(ubuntu_facts())
        assert ev.evaluate(Not(condition=_fedora()))
        assert not ev.evaluate(Not(condition=_ubuntu()))


class TestLeafErrors:
    def test_error_becomes_false_and_is_recorded(self) -> None:
        facts = FakeFacts(probes={("lspci",): OSError("permission denied")})
        ev = ConditionEvaluator(facts)
        evaluation = ev.evaluate_traced(CommandContains(command="lspci", text="NVIDIA"))
        assert evaluation.result is False
        (error,) = evaluation.errors
        assert error.code == "CONDITION_ERROR"
        assert "permission denied" in error.message
        assert error.detail["cause"] == "OSError"

    def test_error_does_not_abort_any_of(self) -> None:
        facts = FakeFacts(
            probes={("broken",): RuntimeError("boom")}, commands={"git"}
        )
        cond = AnyOf(conditions=(CommandSucceeds(command="broken"), CommandExists(command="git")))
        evaluation = ConditionEvaluator(facts).evaluate_traced(cond)
        assert evaluation.result is True
        assert len(evaluation.errors) == 1

    def test_negated_error_stays_false(self) -> None:
        facts = FakeFacts(probes={("broken",): RuntimeError("boom")})
        evaluation = ConditionEvaluator(facts).evaluate_traced(
            Not(condition=CommandSucceeds(command="broken"))
        )
        assert evaluation.result is False
        assert evaluation.undetermined
        assert evaluation.errors

    def test_error_under_all_of_and_double_not(self) -> None:
        facts = FakeFacts(probes={("broken",): RuntimeError("boom")}, commands={"git"})
        broken = CommandSucceeds(command="broken")
        ev = ConditionEvaluator(facts)
        guarded = AllOf(conditions=(CommandExists(command="git"), Not(condition=broken)))
        assert not ev.evaluate(guarded)
        assert not ev.evaluate(Not(condition=Not(condition=broken)))
        assert not ev.evaluate(Not(condition=AnyOf(conditions=(broken, EnvVar(name="UNSET")))))

    def test_decisive_sibling_settles_error(self) -> None:
        facts = FakeFacts(probes={("broken",): RuntimeError("boom")})
        broken = CommandSucceeds(command="broken")
        evaluation = ConditionEvaluator(facts).evaluate_traced(
            Not(condition=AllOf(conditions=(broken, EnvVar(name="UNSET"))))
        )
        assert evaluation.result is True
        assert not evaluation.undetermined
        assert len(evaluation.errors) == 1


class TestHelpers:
    def test_normalize_fact(self) -> None:
        assert normalize_fact(True) == "true"
        assert normalize_fact(False) == "false"
        assert normalize_fact(3) == "3"

    def test_compare(self) -> None:
        assert compare(Operator.ENDS_WITH, "x86_64", "64")
        assert not compare(Operator.STARTS_WITH, "x86_64", "arm")
