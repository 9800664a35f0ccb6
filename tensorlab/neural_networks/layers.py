"""
Neural network layers implementation.

Every layer follows the same contract: ``forward(x)`` returns
``(output, context)``; ``backward(output_gradient, context)`` takes the context
of the matching forward call, accumulates parameter gradients and returns the
gradient with respect to the input; ``update_parameters(lr)`` applies and then
clears the accumulated gradients.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

import numpy as np

from ..common.utils import format_shape
from ..exceptions import ConfigurationError, ShapeMismatchError
from ..tensor import Tensor
from .activations import get_activation


class LayerType(Enum):
    INPUT = "input"
    HIDDEN = "hidden"
    OUTPUT = "output"
    FULLY_CONNECTED = "fully_connected"
    CONVOLUTIONAL = "convolutional"
    POOLING = "pooling"
    FLATTENING = "flattening"


@dataclass
class ForwardContext:
    """Values cached by one forward call and consumed by the matching backward call."""

    input: Any = None
    pre_activation: Optional[np.ndarray] = None
    output: Optional[np.ndarray] = None
    max_indices: Optional[np.ndarray] = None


class Layer:
    """Base class for all neural network layers."""

    layer_type = None

    def __init__(self, input_shape=None, output_shape=None):
        self._input_shape = None if input_shape is None else tuple(input_shape)
        self._output_shape = None if output_shape is None else tuple(output_shape)
        self.next_layer = None

    @property
    def input_shape(self):
        return self._input_shape

    @property
    def output_shape(self):
        return self._output_shape

    def forward(self, input_data):
        """Forward pass through the layer; returns ``(output, context)``."""
        raise NotImplementedError

    def backward(self, output_gradient, context):
        """Backward pass through the layer; returns the input gradient."""
        raise NotImplementedError

    def __call__(self, input_data):
        return self.forward(input_data)[0]

    def parameters(self):
        """Trainable arrays by name (live references, updated in place)."""
        return {}

    def gradients(self):
        """Gradient accumulators, keyed like ``parameters()``."""
        return {}

    @property
    def n_parameters(self):
        return int(sum(p.size for p in self.parameters().values()))

    def zero_grad(self):
        for grad in self.gradients().values():
            grad.fill(0.0)

    def update_parameters(self, learning_rate):
        """
        Gradient descent step ``param -= learning_rate * grad``, then clear the gradients.

        Args:
            learning_rate (float): Step size, must be positive
        """
        if learning_rate <= 0:
            raise ConfigurationError("Learning rate must be positive")
        grads = self.gradients()
        for name, param in self.parameters().items():
            param -= learning_rate * grads[name]
        self.zero_grad()

    def connect_to(self, next_layer):
        """
        Record ``next_layer`` as this layer's successor.

        Raises:
            ConfigurationError: If this layer's output shape differs from the next
                layer's input shape
        """
        if next_layer is None:
            raise ConfigurationError("next_layer must not be None")
        if self.output_shape != next_layer.input_shape:
            raise ConfigurationError(
                f"Output shape {format_shape(self.output_shape)} is not compatible with "
                f"next layer's input shape {_format_optional(next_layer.input_shape)}")
        self.next_layer = next_layer

    def __repr__(self):
        return (f"{type(self).__name__}(input_shape={_format_optional(self.input_shape)}, "
                f"output_shape={_format_optional(self.output_shape)})")


def _format_optional(shape):
    return "unbuilt" if shape is None else format_shape(shape)


def softmax(x):
    """Numerically stable softmax of a 1D array."""
    x_shifted = x - np.max(x)
    exp_x = np.exp(x_shifted)
    return exp_x / np.sum(exp_x)


def check_parameter(name, value, expected_shape):
    """
    Validate a replacement parameter and return it as a fresh float array.

    Raises:
        ShapeMismatchError: If ``value`` is None or its shape differs from ``expected_shape``
    """
    if value is None:
        raise ShapeMismatchError(f"{name} tensor cannot be None")
    array = value.numpy() if isinstance(value, Tensor) else np.array(value, dtype=np.float64)
    if array.shape != tuple(expected_shape):
        raise ShapeMismatchError(
            f"{name} shape mismatch: expected {format_shape(expected_shape)}, "
            f"got {format_shape(array.shape)}")
    return array


class DenseMixin:
    """
    Weights, bias and gradient bookkeeping shared by the fully-connected layers.

    Hosts expect ``activation`` and ``use_softmax`` attributes.
    """

    def _init_dense(self, in_features, out_features, rng=None):
        """Xavier-normal weights of shape (out, in) and a bias of 0.01."""
        if rng is None:
            rng = np.random.default_rng()

        std = np.sqrt(2.0 / (in_features + out_features))
        self.weight_ = rng.normal(0.0, std, (out_features, in_features))
        self.bias_ = np.full(out_features, 0.01)

        # Gradients
        self._weight_grad = np.zeros_like(self.weight_)
        self._bias_grad = np.zeros_like(self.bias_)

    def _dense_forward(self, x):
        pre_activation = self.weight_ @ x + self.bias_
        if self.use_softmax:
            output = softmax(pre_activation)
        else:
            output = self.activation.apply(pre_activation)
        return pre_activation, output

    def _dense_backward(self, upstream_grad, context):
        if self.use_softmax:
            # Jacobian contraction: sum_j g_j * s_i * (delta_ij - s_j)
            s = context.output
            delta = s * (upstream_grad - np.dot(upstream_grad, s))
        else:
            delta = upstream_grad * self.activation.derivative(context.pre_activation)

        self._weight_grad += np.outer(delta, context.input)
        self._bias_grad += delta

        return self.weight_.T @ delta

    @property
    def weights(self):
        """Copy of the weight matrix as a Tensor of shape (out, in)."""
        return Tensor.from_numpy(self.weight_)

    @weights.setter
    def weights(self, value):
        self.weight_ = check_parameter("Weights", value, self.weight_.shape)

    @property
    def bias(self):
        """Copy of the bias vector as a Tensor."""
        return Tensor.from_numpy(self.bias_)

    @bias.setter
    def bias(self, value):
        self.bias_ = check_parameter("Bias", value, self.bias_.shape)

    def parameters(self):
        return {'weight': self.weight_, 'bias': self.bias_}

    def gradients(self):
        return {'weight': self._weight_grad, 'bias': self._bias_grad}


class VectorLayer(Layer):
    """
    Layer of a flat-vector network, described by its number of units.

    Incoming weights are created when the network connects the layer to its
    predecessor (see ``build``).
    """

    def __init__(self, size, activation='linear'):
        if size <= 0:
            raise ConfigurationError("Layer size must be positive")
        super().__init__(output_shape=(size,))
        self.size = int(size)
        self.activation = get_activation(activation)

    @property
    def is_built(self):
        return self._input_shape is not None

    def build(self, input_size, rng=None):
        """Create incoming parameters for a predecessor with ``input_size`` units."""
        raise NotImplementedError

    def _check_input(self, input_data):
        x = np.asarray(input_data, dtype=np.float64)
        if not self.is_built:
            raise ConfigurationError(f"{type(self).__name__} has not been connected to an input")
        if x.shape != self.input_shape:
            raise ShapeMismatchError(
                f"Input size {format_shape(x.shape)} must match layer input "
                f"{format_shape(self.input_shape)}")
        return x

    def _check_gradient(self, output_gradient):
        grad = np.asarray(output_gradient, dtype=np.float64)
        if grad.shape != self.output_shape:
            raise ShapeMismatchError(
                f"Expected gradient shape {format_shape(self.output_shape)}, "
                f"got {format_shape(grad.shape)}")
        return grad


class InputLayer(VectorLayer):
    """Pass-through layer that fixes the network's input size."""

    layer_type = LayerType.INPUT

    def __init__(self, size):
        super().__init__(size)
        self._input_shape = (self.size,)

    def build(self, input_size, rng=None):
        raise ConfigurationError("An input layer cannot follow another layer")

    def forward(self, input_data):
        x = self._check_input(input_data)
        return x.copy(), ForwardContext(input=x.copy(), output=x.copy())

    def backward(self, output_gradient, context):
        return self._check_gradient(output_gradient).copy()


class StandardLayer(DenseMixin, VectorLayer):
    """
    Hidden fully-connected layer: activation(W x + b).
    """

    layer_type = LayerType.HIDDEN
    use_softmax = False

    def __init__(self, size, activation='relu'):
        super().__init__(size, activation)
        self.weight_ = None
        self.bias_ = None

    def build(self, input_size, rng=None):
        """
        Create the incoming weights.

        Args:
            input_size (int): Number of units in the previous layer
            rng (np.random.Generator, optional): Random number generator
        """
        if input_size <= 0:
            raise ConfigurationError("Input size must be positive")
        self._init_dense(input_size, self.size, rng)
        self._input_shape = (int(input_size),)

    def forward(self, input_data):
        x = self._check_input(input_data)
        pre_activation, output = self._dense_forward(x)
        context = ForwardContext(input=x.copy(), pre_activation=pre_activation,
                                 output=output.copy())
        return output, context

    def backward(self, output_gradient, context):
        return self._dense_backward(self._check_gradient(output_gradient), context)

    def parameters(self):
        if not self.is_built:
            return {}
        return super().parameters()

    def gradients(self):
        if not self.is_built:
            return {}
        return super().gradients()


class OutputLayer(StandardLayer):
    """Final layer; optionally normalizes its pre-activation with softmax."""

    layer_type = LayerType.OUTPUT

    def __init__(self, size, activation='linear', use_softmax=False):
        super().__init__(size, activation)
        self.use_softmax = use_softmax
