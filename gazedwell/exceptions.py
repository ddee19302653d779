"""
Exception types shared across the pipeline.

Engine-fatal errors live with the engine interface in ``gazedwell.engine.base``.
"""


class ConfigurationError(ValueError):
    """Raised when a component is constructed with invalid parameters."""
