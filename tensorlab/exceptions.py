"""
Exceptions raised by tensorlab.
"""


class ConfigurationError(ValueError):
    """Invalid network or layer configuration (shapes, sizes, wiring, hyperparameters)."""


class ShapeMismatchError(ValueError):
    """A tensor handed to a layer, setter or loss does not have the declared shape."""
