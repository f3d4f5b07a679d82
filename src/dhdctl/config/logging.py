"""Logging setup: structlog and stdlib records share one stderr pipeline.

stdout carries only command results. ``--log-json`` switches the renderer
to one JSON object per line; otherwise lines go through structlog's
console renderer, colored when stderr is a terminal.
"""

from __future__ import annotations

import logging
import sys

import structlog
from structlog.types import Processor

HANDLER_NAME = "dhdctl"

# Libraries whose INFO/DEBUG chatter would drown out atom events under -v.
_QUIET_LIBRARIES = ("httpx", "httpcore")


def _pre_chain(*, log_json: bool) -> list[Processor]:
    stamper = (
        structlog.processors.TimeStamper(fmt="iso", utc=True)
        if log_json
        else structlog.processors.TimeStamper(fmt="%H:%M:%S", utc=False)
    )
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        stamper,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _install_handler(formatter: logging.Formatter) -> None:
    """Replace a previously installed dhdctl handler on the root logger."""
    root = logging.getLogger()
    for existing in list(root.handlers):
        if existing.get_name() == HANDLER_NAME:
            root.removeHandler(existing)
    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(HANDLER_NAME)
    handler.setFormatter(formatter)
    root.addHandler(handler)
    root.setLevel(logging.WARNING)


def configure_logging(*, verbose: bool = False, log_json: bool = False) -> None:
    """Point structlog and the ``dhdctl`` stdlib loggers at stderr.

    ``verbose`` lowers the ``dhdctl`` logger to DEBUG; everything else
    stays at WARNING.
    """
    pre_chain = _pre_chain(log_json=log_json)
    renderer: Processor = (
        structlog.processors.JSONRenderer()
        if log_json
        else structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    )

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )
    _install_handler(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    logging.getLogger("dhdctl").setLevel(logging.DEBUG if verbose else logging.WARNING)
    for name in _QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING)
