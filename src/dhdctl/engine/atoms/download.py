"""HTTP download atom (httpx), with optional checksum verification."""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path
from typing import TYPE_CHECKING

import httpx

from dhdctl.domain.types import CheckOutcome
from dhdctl.engine.atoms.base import Atom, outcome
from dhdctl.engine.atoms.files import mode_matches, place_file, stage_bytes

if TYPE_CHECKING:
    from dhdctl.infrastructure.process import CommandRunner

logger = logging.getLogger(__name__)


def file_digest(path: Path, algorithm: str) -> str:
    digest = hashlib.new(algorithm)
    with path.open("rb") as fh:
        for chunk in iter(lambda: fh.read(1 << 16), b""):
            digest.update(chunk)
    return digest.hexdigest()


class DownloadFile(Atom):
    """Fetch *url* into *destination*.

    Without a checksum an existing destination counts as satisfied; with
    one, the digest must match both before skipping and after fetching.
    """

    kind = "download"

    def __init__(
        self,
        url: str,
        destination: Path,
        *,
        checksum: tuple[str, str] | None = None,
        mode: int | None = None,
        privileged: bool = False,
        timeout: float = 60.0,
        transport: httpx.BaseTransport | None = None,
        runner: CommandRunner,
    ) -> None:
        self.url = url
        self.destination = destination
        self.checksum = checksum
        self.mode = mode
        self.privileged = privileged
        self.timeout = timeout
        self._transport = transport
        self._runner = runner

    def describe(self) -> str:
        return f"download {self.url} -> {self.destination}"

    def check(self) -> CheckOutcome:
        if not self.destination.is_file():
            return outcome(False)
        if self.checksum is not None:
            algorithm, expected = self.checksum
            if file_digest(self.destination, algorithm) != expected.lower():
                return outcome(False)
        return outcome(mode_matches(self.destination, self.mode))

    def apply(self) -> None:
        with httpx.Client(
            follow_redirects=True, timeout=self.timeout, transport=self._transport
        ) as client:
            response = client.get(self.url)
            response.raise_for_status()
            payload = response.content
        logger.debug("Fetched %s (%d bytes)", self.url, len(payload))

        if self.checksum is not None:
            algorithm, expected = self.checksum
            actual = hashlib.new(algorithm, payload).hexdigest()
            if actual != expected.lower():
                msg = f"checksum mismatch for {self.url}: expected {expected}, got {actual}"
                raise ValueError(msg)

        directory = None
        if not self.privileged:
            self.destination.parent.mkdir(parents=True, exist_ok=True)
            directory = self.destination.parent
        staged = stage_bytes(payload, directory)
        place_file(
            staged,
            self.destination,
            mode=self.mode,
            privileged=self.privileged,
            runner=self._runner,
        )
