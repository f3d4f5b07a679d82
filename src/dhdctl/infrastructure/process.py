"""Process runner with privilege escalation.

Every command an atom or probe spawns goes through :class:`CommandRunner`,
so tests can substitute a recording fake and production code gets one
place that handles escalation, timeouts and error mapping.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from dhdctl.domain.errors import CommandError

logger = logging.getLogger(__name__)

DEFAULT_ESCALATION = ("run0", "doas", "sudo")


@dataclass(frozen=True)
class CommandResult:
    args: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner:
    """Run subprocesses, prefixing an escalation command when privileged.

    The escalation tool is the first of *candidates* found on ``PATH``
    unless *escalation_command* names one explicitly. No prefix is used
    when already running as root.
    """

    def __init__(
        self,
        *,
        candidates: Sequence[str] = DEFAULT_ESCALATION,
        escalation_command: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self._candidates = tuple(candidates)
        self._explicit = escalation_command
        self._timeout = timeout
        self._prefix: list[str] | None = None

    def which(self, name: str) -> str | None:
        return shutil.which(name)

    def escalation_prefix(self) -> list[str]:
        """Command prefix that runs the rest of the argv as root."""
        if self._prefix is None:
            self._prefix = self._detect_prefix()
        return list(self._prefix)

    def _detect_prefix(self) -> list[str]:
        if hasattr(os, "geteuid") and os.geteuid() == 0:
            return []
        if self._explicit:
            return [self._explicit]
        for candidate in self._candidates:
            if self.which(candidate):
                logger.debug("Using %s for privilege escalation", candidate)
                return [candidate]
        msg = f"no privilege escalation command found ({', '.join(self._candidates)})"
        raise CommandError(list(self._candidates), msg)

    def run(
        self,
        args: Sequence[str],
        *,
        privileged: bool = False,
        cwd: str | None = None,
        env: Mapping[str, str] | None = None,
        input_text: str | None = None,
        timeout: float | None = None,
        check: bool = False,
    ) -> CommandResult:
        """Run *args* and capture its output.

        Raises:
            CommandError: The program is missing, timed out, or (with
                *check*) exited non-zero.
        """
        argv = list(args)
        if privileged:
            argv = [*self.escalation_prefix(), *argv]
        merged_env = {**os.environ, **env} if env else None
        logger.debug("exec %s", " ".join(argv))
        try:
            proc = subprocess.run(  # noqa: S603
                argv,
                cwd=cwd,
                env=merged_env,
                input=input_text,
                capture_output=True,
                text=True,
                timeout=timeout if timeout is not None else self._timeout,
                check=False,
            )
        except FileNotFoundError as exc:
            raise CommandError(argv, f"command not found: {argv[0]}") from exc
        except subprocess.TimeoutExpired as exc:
            raise CommandError(argv, f"timed out after {exc.timeout}s: {argv[0]}") from exc

        result = CommandResult(tuple(argv), proc.returncode, proc.stdout, proc.stderr)
        if check and not result.ok:
            detail = result.stderr.strip() or result.stdout.strip()
            msg = f"'{' '.join(argv)}' exited with {result.returncode}"
            if detail:
                msg = f"{msg}: {detail.splitlines()[-1]}"
            raise CommandError(argv, msg, returncode=result.returncode, stderr=result.stderr)
        return result
