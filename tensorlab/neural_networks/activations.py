"""
Elementwise activation functions and their derivatives.
"""
import numpy as np


class ActivationFunction:
    """Base class for activation functions; both methods work elementwise on arrays."""

    name = None

    def apply(self, x):
        """Evaluate the function at ``x``."""
        raise NotImplementedError

    def derivative(self, x):
        """Evaluate the derivative at the pre-activation value ``x``."""
        raise NotImplementedError

    def __call__(self, x):
        return self.apply(x)

    def __repr__(self):
        return f"{type(self).__name__}()"


class ReLU(ActivationFunction):
    """Rectified linear unit: max(0, x)."""

    name = "ReLU"

    def apply(self, x):
        return np.maximum(x, 0.0)

    def derivative(self, x):
        return np.where(np.asarray(x) > 0, 1.0, 0.0)


class LeakyReLU(ActivationFunction):
    """Leaky ReLU: x for x > 0, alpha * x otherwise."""

    def __init__(self, alpha=0.01):
        self.alpha = alpha

    @property
    def name(self):
        return f"LeakyReLU(alpha={self.alpha})"

    def apply(self, x):
        x = np.asarray(x, dtype=np.float64)
        return np.where(x > 0, x, self.alpha * x)

    def derivative(self, x):
        return np.where(np.asarray(x) > 0, 1.0, self.alpha)

    def __repr__(self):
        return f"LeakyReLU(alpha={self.alpha})"


class Sigmoid(ActivationFunction):
    """Logistic sigmoid."""

    name = "Sigmoid"

    def apply(self, x):
        # Clip input to prevent overflow
        x_clipped = np.clip(x, -500, 500)
        return 1 / (1 + np.exp(-x_clipped))

    def derivative(self, x):
        s = self.apply(x)
        return s * (1 - s)


class Tanh(ActivationFunction):
    """Hyperbolic tangent."""

    name = "Tanh"

    def apply(self, x):
        return np.tanh(x)

    def derivative(self, x):
        t = np.tanh(x)
        return 1 - t**2


class Linear(ActivationFunction):
    """Identity."""

    name = "Linear"

    def apply(self, x):
        return np.asarray(x, dtype=np.float64).copy()

    def derivative(self, x):
        return np.ones_like(np.asarray(x, dtype=np.float64))


_ACTIVATIONS = {
    'relu': ReLU(),
    'sigmoid': Sigmoid(),
    'tanh': Tanh(),
    'linear': Linear(),
    'leaky_relu': LeakyReLU(),
    'leakyrelu': LeakyReLU(),
}


def register_activation(function, name=None):
    """
    Make an activation function available to ``get_activation``.

    Args:
        function (ActivationFunction): Instance to register
        name (str, optional): Lookup key; defaults to ``function.name``
    """
    key = (name or function.name).lower()
    _ACTIVATIONS[key] = function


def get_activation(activation='linear'):
    """
    Resolve an activation function by name.

    Args:
        activation (str or ActivationFunction): Registered name (case-insensitive)
            or an instance, which is returned unchanged

    Returns:
        ActivationFunction
    """
    if isinstance(activation, ActivationFunction):
        return activation
    if activation is None:
        raise ValueError("activation must not be None")
    try:
        return _ACTIVATIONS[activation.lower()]
    except KeyError:
        raise ValueError(f"Unknown activation function: {activation}") from None
