"""Exception types for the polar orbit engine.

Two failure classes exist:
- ConfigurationError: a parameter or configuration value was rejected at the
  mutation boundary. State is never modified when this is raised.
- DegenerateOrbitError: integration reached a non-physical state (distance
  at or below zero, or a non-finite value). The offending tick is discarded.

Both derive from builtin exception types so callers that only catch
ValueError / ArithmeticError keep working.
"""


class OrbitError(Exception):
    """Base class for all orbit engine errors."""


class ConfigurationError(OrbitError, ValueError):
    """Invalid parameter or configuration value."""


class DegenerateOrbitError(OrbitError, ArithmeticError):
    """Central-force singularity reached during integration."""
