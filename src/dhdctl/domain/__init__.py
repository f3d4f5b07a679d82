"""Domain layer: modules, actions, conditions and their evaluation.

Nothing in this package touches the host system; facts arrive through the
:class:`~dhdctl.domain.facts.FactProvider` protocol.
"""
