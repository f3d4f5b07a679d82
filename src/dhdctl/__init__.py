"""dhdctl — declarative home deployments control."""

__version__ = "0.4.0"
