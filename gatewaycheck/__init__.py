"""Building blocks for Gateway API conformance checks."""

__version__ = "0.1.0"

__all__ = ["apply", "config", "helpers", "roundtripper"]