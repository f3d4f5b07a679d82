"""Static extraction of modules from configuration sources.

Sources are parsed into a syntax tree and pattern-matched against a fixed
vocabulary of builder calls and literals. Nothing is ever executed.
"""
