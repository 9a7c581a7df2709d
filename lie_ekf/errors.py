"""
Exception types raised by the linearization core.

Both derive from ValueError so callers that already guard against
ValueError (the usual failure mode for bad shapes in numpy code) keep
working.
"""


class DimensionMismatchError(ValueError):
    """Declared and actual vector/matrix sizes disagree."""


class ConfigurationError(ValueError):
    """Invalid step-size parameters or evaluation budget."""
