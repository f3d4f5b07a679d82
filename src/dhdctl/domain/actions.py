"""Action vocabulary — the declarative operations a module asks for.

Actions are the source-level unit: what the user wrote. The planner lowers
each one into idempotent atoms (:mod:`dhdctl.engine.lowering`).

Field names accept camelCase (as written in configuration sources) and
snake_case, plus a few historical aliases such as ``escalate`` for
``privileged``. Unknown fields are rejected.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import (
    AliasChoices,
    BaseModel,
    BeforeValidator,
    Field,
    TypeAdapter,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from dhdctl.domain.conditions import Condition
from dhdctl.domain.types import GitScope, Scope, SystemdOperation

# Package managers that may be used as shorthand keys: ``{cargo: "zellij"}``.
PACKAGE_MANAGER_KEYS = frozenset(
    {
        "apt",
        "dnf",
        "pacman",
        "paru",
        "yay",
        "zypper",
        "brew",
        "flatpak",
        "snap",
        "cargo",
        "npm",
        "bun",
        "go",
        "pipx",
        "winget",
    }
)


def _parse_mode(value: Any) -> Any:
    """Accept ``0o644``-style integers and ``"644"``-style octal strings."""
    if value is None:
        return None
    if isinstance(value, bool):
        msg = "mode must be an octal string or integer"
        raise ValueError(msg)
    if isinstance(value, str):
        text = value.strip().lower().removeprefix("0o")
        try:
            value = int(text, 8)
        except ValueError:
            msg = f"invalid octal mode: {value!r}"
            raise ValueError(msg) from None
    if isinstance(value, int) and not 0 <= value <= 0o7777:
        msg = f"mode out of range: {value:o}"
        raise ValueError(msg)
    return value


Mode = Annotated[int | None, BeforeValidator(_parse_mode)]


def _as_tuple(value: Any) -> Any:
    if isinstance(value, str):
        return (value,)
    return value


StrTuple = Annotated[tuple[str, ...], BeforeValidator(_as_tuple)]


def _privileged() -> Any:
    return Field(
        default=False,
        validation_alias=AliasChoices(
            "privileged",
            "escalate",
            "privilegeEscalation",
            "requiresPrivilegeEscalation",
            "requires_privilege_escalation",
        ),
    )


class _ActionBase(BaseModel):
    model_config = {
        "frozen": True,
        "extra": "forbid",
        "alias_generator": to_camel,
        "populate_by_name": True,
    }

    def describe(self) -> str:
        raise NotImplementedError


# ---------------------------------------------------------------------------
# Packages
# ---------------------------------------------------------------------------


class PackageInstall(_ActionBase):
    """Install packages, optionally through an explicit manager.

    ``names`` is either a list of package names or a platform selection
    mapping resolved at planning time.
    """

    kind: Literal["package_install"] = "package_install"
    names: tuple[str, ...] | dict[str, Any]
    manager: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _manager_shorthand(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "names" in data:
            return data
        shorthand = [key for key in data if key in PACKAGE_MANAGER_KEYS]
        if len(shorthand) != 1:
            return data
        key = shorthand[0]
        rest = {k: v for k, v in data.items() if k != key}
        return {**rest, "names": data[key], "manager": key}

    @field_validator("names", mode="before")
    @classmethod
    def _single_name(cls, value: Any) -> Any:
        if isinstance(value, str):
            return (value,)
        return value

    @field_validator("manager")
    @classmethod
    def _known_manager(cls, value: str | None) -> str | None:
        if value is not None and value not in PACKAGE_MANAGER_KEYS:
            msg = f"unknown package manager: {value}"
            raise ValueError(msg)
        return value

    def describe(self) -> str:
        if isinstance(self.names, dict):
            return "install packages (platform-specific)"
        via = f" via {self.manager}" if self.manager else ""
        return f"install packages{via}: {', '.join(self.names)}"


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------


class FileWrite(_ActionBase):
    kind: Literal["file_write"] = "file_write"
    destination: str
    content: str
    mode: Mode = None
    privileged: bool = _privileged()
    backup: bool = False

    def describe(self) -> str:
        return f"write file {self.destination}"


class CopyFile(_ActionBase):
    kind: Literal["copy_file"] = "copy_file"
    source: str
    destination: str = Field(validation_alias=AliasChoices("destination", "target"))
    mode: Mode = None
    privileged: bool = _privileged()
    backup: bool = False

    def describe(self) -> str:
        return f"copy {self.source} to {self.destination}"


class Directory(_ActionBase):
    kind: Literal["directory"] = "directory"
    path: str
    mode: Mode = None
    privileged: bool = _privileged()

    def describe(self) -> str:
        return f"create directory {self.path}"


class Link(_ActionBase):
    """Symlink ``target`` to ``source``.

    ``target`` defaults to ``source``; a relative target lives under the
    XDG config home and a relative source under the module's directory.
    """

    kind: Literal["link"] = "link"
    variant: Literal["file", "dotfile", "directory"] = "file"
    source: str = Field(validation_alias=AliasChoices("source", "from"))
    target: str | None = Field(default=None, validation_alias=AliasChoices("target", "to"))
    force: bool = False
    backup: bool = False

    def describe(self) -> str:
        return f"link {self.target or self.source} -> {self.source}"


class DconfImport(_ActionBase):
    kind: Literal["dconf_import"] = "dconf_import"
    source: str
    path: str
    backup: bool = False

    @field_validator("path")
    @classmethod
    def _dir_path(cls, value: str) -> str:
        if not value.startswith("/"):
            msg = "dconf path must start with '/'"
            raise ValueError(msg)
        return value if value.endswith("/") else f"{value}/"

    def describe(self) -> str:
        return f"load dconf {self.path} from {self.source}"


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


class ExecuteCommand(_ActionBase):
    """Run a command. Without ``creates`` it runs on every apply."""

    kind: Literal["execute_command"] = "execute_command"
    command: str
    args: StrTuple = ()
    shell: str | None = None
    cwd: str | None = None
    environment: dict[str, str] = Field(
        default_factory=dict, validation_alias=AliasChoices("environment", "env")
    )
    privileged: bool = _privileged()
    creates: str | None = None

    def describe(self) -> str:
        return f"run {' '.join((self.command, *self.args))}"


class GitConfigEntry(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    key: str
    value: str
    add: bool = False

    @field_validator("value", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Any:
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, int | float):
            return str(value)
        return value


class GitConfig(_ActionBase):
    kind: Literal["git_config"] = "git_config"
    entries: tuple[GitConfigEntry, ...]
    scope: GitScope = GitScope.GLOBAL
    unset: bool = False

    @model_validator(mode="before")
    @classmethod
    def _scope_flags(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        is_global = data.pop("global", None)
        is_system = data.pop("system", None)
        if is_system:
            data.setdefault("scope", GitScope.SYSTEM)
        elif is_global is False:
            data.setdefault("scope", GitScope.LOCAL)
        return data

    def describe(self) -> str:
        keys = ", ".join(dict.fromkeys(e.key for e in self.entries))
        verb = "unset" if self.unset else "set"
        return f"git config ({self.scope}) {verb} {keys}"


class Checksum(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    algorithm: Literal["sha256", "sha512", "sha1", "md5"] = "sha256"
    value: str


class HttpDownload(_ActionBase):
    kind: Literal["http_download"] = "http_download"
    url: str
    destination: str
    checksum: Checksum | None = None
    mode: Mode = None
    privileged: bool = _privileged()

    def describe(self) -> str:
        return f"download {self.url} to {self.destination}"


class UserGroup(_ActionBase):
    kind: Literal["user_group"] = "user_group"
    user: str
    groups: StrTuple
    append: bool = True

    def describe(self) -> str:
        return f"add {self.user} to groups {', '.join(self.groups)}"


# ---------------------------------------------------------------------------
# systemd
# ---------------------------------------------------------------------------


class SystemdService(_ActionBase):
    kind: Literal["systemd_service"] = "systemd_service"
    name: str
    description: str
    exec_start: str
    service_type: str = Field(
        default="simple",
        validation_alias=AliasChoices("serviceType", "service_type", "type"),
    )
    scope: Scope = Scope.USER
    restart: str | None = None
    restart_sec: int | None = None
    wanted_by: str | None = None
    environment: dict[str, str] = Field(default_factory=dict)
    enable: bool = False
    start: bool = False

    def describe(self) -> str:
        return f"systemd {self.scope} service {self.name}"


class SystemdSocket(_ActionBase):
    kind: Literal["systemd_socket"] = "systemd_socket"
    name: str
    description: str
    listen_stream: str
    scope: Scope = Scope.USER
    wanted_by: str | None = None
    enable: bool = False
    start: bool = False

    def describe(self) -> str:
        return f"systemd {self.scope} socket {self.name}"


class SystemdManage(_ActionBase):
    kind: Literal["systemd_manage"] = "systemd_manage"
    name: str
    operation: SystemdOperation
    scope: Scope = Scope.SYSTEM

    def describe(self) -> str:
        return f"systemctl {self.operation} {self.name} ({self.scope})"


# ---------------------------------------------------------------------------
# Conditional wrapper
# ---------------------------------------------------------------------------


class Conditional(_ActionBase):
    """``onlyIf``/``skipIf`` around another action.

    ``onlyIf`` runs the action when every condition holds; ``skipIf``
    (``skip_on_success``) skips it when any condition holds.
    """

    kind: Literal["conditional"] = "conditional"
    action: Action
    conditions: tuple[Condition, ...]
    skip_on_success: bool = False

    def describe(self) -> str:
        word = "skip if" if self.skip_on_success else "only if"
        return f"{self.action.describe()} ({word} {len(self.conditions)} conditions)"


Action = Annotated[
    PackageInstall
    | FileWrite
    | CopyFile
    | Directory
    | Link
    | DconfImport
    | ExecuteCommand
    | GitConfig
    | HttpDownload
    | UserGroup
    | SystemdService
    | SystemdSocket
    | SystemdManage
    | Conditional,
    Field(discriminator="kind"),
]

Conditional.model_rebuild()

ACTION_TYPES: tuple[type[_ActionBase], ...] = (
    PackageInstall,
    FileWrite,
    CopyFile,
    Directory,
    Link,
    DconfImport,
    ExecuteCommand,
    GitConfig,
    HttpDownload,
    UserGroup,
    SystemdService,
    SystemdSocket,
    SystemdManage,
    Conditional,
)

_ACTION_ADAPTER: TypeAdapter[Action] = TypeAdapter(Action)


def build_action(kind: str, fields: dict[str, Any]) -> Action:
    """Validate *fields* as the action variant named *kind*.

    Raises:
        pydantic.ValidationError: When fields are missing, unknown or invalid.
    """
    return _ACTION_ADAPTER.validate_python({**fields, "kind": kind})
