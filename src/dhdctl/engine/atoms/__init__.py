"""Concrete atoms grouped by the subsystem they touch."""

from dhdctl.engine.atoms.base import Atom

__all__ = ["Atom"]
