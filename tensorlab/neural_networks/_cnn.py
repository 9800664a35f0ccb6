"""
Tensor-mode layers (dense, convolution, pooling, flatten) and the network that chains them.

Layers exchange ``Tensor`` objects; convolution and pooling expect
[batch, channels, height, width] inputs.
"""
from enum import Enum

import numpy as np

from ..base import BaseNetwork, NetworkMode
from ..common.utils import as_pair, as_shape, format_shape, shape_size
from ..exceptions import ConfigurationError, ShapeMismatchError
from ..tensor import Tensor
from ..tensor.operations import (
    avg_pool,
    conv_output_shape,
    convolve,
    convolve_input_gradient,
    convolve_kernel_gradient,
    max_pool_with_indices,
    pool_output_shape,
)
from .activations import get_activation
from .layers import DenseMixin, ForwardContext, Layer, LayerType, check_parameter


def _config_pair(value, name):
    try:
        return as_pair(value, name)
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc


def _check_output_shape(layer_name, shape_fn, *args):
    try:
        return shape_fn(*args)
    except ValueError as exc:
        raise ConfigurationError(f"{layer_name} would produce an empty output: {exc}") from exc


class TensorLayer(Layer):
    """
    Layer of a tensor-mode network; its shapes are fixed at construction.
    """

    def _check_input(self, input_data):
        if not isinstance(input_data, Tensor):
            input_data = Tensor.from_numpy(input_data)
        if input_data.shape != self.input_shape:
            raise ShapeMismatchError(
                f"Expected input shape {format_shape(self.input_shape)}, "
                f"got {format_shape(input_data.shape)}")
        return input_data

    def _check_gradient(self, output_gradient):
        if isinstance(output_gradient, Tensor):
            grad = output_gradient.numpy()
        else:
            grad = np.asarray(output_gradient, dtype=np.float64)
        if grad.shape != self.output_shape:
            raise ShapeMismatchError(
                f"Expected gradient shape {format_shape(self.output_shape)}, "
                f"got {format_shape(grad.shape)}")
        return grad


class FullyConnectedLayer(DenseMixin, TensorLayer):
    """
    Dense layer over a 1D tensor: activation(W x + b), or softmax(W x + b).
    """

    layer_type = LayerType.FULLY_CONNECTED

    def __init__(self, input_shape, output_size, use_softmax=False, activation='linear',
                 rng=None):
        """
        Args:
            input_shape (int or tuple): 1D input shape
            output_size (int): Number of output units
            use_softmax (bool): Normalize the pre-activation with softmax instead of
                applying ``activation``
            activation (str or ActivationFunction): Elementwise activation
            rng (np.random.Generator, optional): Random number generator
        """
        input_shape = as_shape(input_shape, "input_shape")
        if len(input_shape) != 1:
            raise ConfigurationError(
                f"Fully connected layer expects 1D input, got {format_shape(input_shape)}")
        if output_size <= 0:
            raise ConfigurationError("Output size must be positive")
        super().__init__(input_shape, (int(output_size),))

        self.in_features = input_shape[0]
        self.out_features = int(output_size)
        self.use_softmax = use_softmax
        self.activation = get_activation(activation)
        self._init_dense(self.in_features, self.out_features, rng)

    def forward(self, input_data):
        x = self._check_input(input_data).numpy()
        pre_activation, output = self._dense_forward(x)
        context = ForwardContext(input=x, pre_activation=pre_activation, output=output.copy())
        return Tensor.from_numpy(output), context

    def backward(self, output_gradient, context):
        grad = self._check_gradient(output_gradient)
        return Tensor.from_numpy(self._dense_backward(grad, context))

    def __repr__(self):
        return (f"FullyConnectedLayer(in_features={self.in_features}, "
                f"out_features={self.out_features}, use_softmax={self.use_softmax})")


class ConvolutionalLayer(TensorLayer):
    """
    Convolutional layer for feature extraction with learnable filters.
    """

    layer_type = LayerType.CONVOLUTIONAL

    # pylint: disable=too-many-arguments
    def __init__(self, input_shape, kernel_size, out_channels, stride=1, padding=True,
                 activation='relu', rng=None):
        """
        Constructor with He initialization.

        Args:
            input_shape (tuple): [batch, in_channels, height, width]
            kernel_size (int or tuple): Kernel height and width
            out_channels (int): Number of filters
            stride (int or tuple): Vertical and horizontal stride
            padding (bool): Zero-pad by kernel_size // 2 on each side
            activation (str or ActivationFunction): Elementwise activation
            rng (np.random.Generator, optional): Random number generator
        """
        if rng is None:
            rng = np.random.default_rng()

        input_shape = as_shape(input_shape, "input_shape")
        if len(input_shape) != 4:
            raise ConfigurationError(
                "Convolutional layer expects input shape [batch, channels, height, width], "
                f"got {format_shape(input_shape)}")
        if out_channels <= 0:
            raise ConfigurationError("Number of output channels must be positive")

        self.kernel_size = _config_pair(kernel_size, "kernel_size")
        self.stride = _config_pair(stride, "stride")
        self.padding = bool(padding)
        self.in_channels = input_shape[1]
        self.out_channels = int(out_channels)
        self.activation = get_activation(activation)

        kernel_shape = (self.out_channels, self.in_channels) + self.kernel_size
        output_shape = _check_output_shape(
            "Convolutional layer", conv_output_shape,
            input_shape, kernel_shape, self.stride, self.padding)
        super().__init__(input_shape, output_shape)

        fan_in = self.in_channels * self.kernel_size[0] * self.kernel_size[1]
        self.weight_ = rng.normal(0.0, np.sqrt(2.0 / fan_in), kernel_shape)
        self.bias_ = np.full(self.out_channels, 0.01)

        # Gradients
        self._weight_grad = np.zeros_like(self.weight_)
        self._bias_grad = np.zeros_like(self.bias_)

    def _kernel_tensor(self):
        return Tensor._wrap(self.weight_.ravel(), self.weight_.shape)

    def forward(self, input_data):
        """Forward pass: convolution + per-channel bias + activation"""
        x = self._check_input(input_data)
        convolved = convolve(x, self._kernel_tensor(), self.stride, self.padding).numpy()
        pre_activation = convolved + self.bias_[None, :, None, None]
        output = self.activation.apply(pre_activation)
        context = ForwardContext(input=x.copy(), pre_activation=pre_activation,
                                 output=output.copy())
        return Tensor.from_numpy(output), context

    def backward(self, output_gradient, context):
        grad = self._check_gradient(output_gradient)
        delta = grad * self.activation.derivative(context.pre_activation)

        self._weight_grad += convolve_kernel_gradient(
            context.input, delta, self.weight_.shape, self.stride, self.padding)
        self._bias_grad += delta.sum(axis=(0, 2, 3))

        input_grad = convolve_input_gradient(
            delta, self._kernel_tensor(), self.input_shape, self.stride, self.padding)
        return Tensor.from_numpy(input_grad)

    @property
    def kernels(self):
        """Copy of the kernels as a Tensor [out_channels, in_channels, kernel_h, kernel_w]."""
        return Tensor.from_numpy(self.weight_)

    @kernels.setter
    def kernels(self, value):
        self.weight_ = check_parameter("Kernels", value, self.weight_.shape)

    @property
    def bias(self):
        return Tensor.from_numpy(self.bias_)

    @bias.setter
    def bias(self, value):
        self.bias_ = check_parameter("Bias", value, self.bias_.shape)

    def parameters(self):
        return {'kernels': self.weight_, 'bias': self.bias_}

    def gradients(self):
        return {'kernels': self._weight_grad, 'bias': self._bias_grad}

    def __repr__(self):
        return (f"ConvolutionalLayer(in_channels={self.in_channels}, "
                f"out_channels={self.out_channels}, kernel_size={self.kernel_size}, "
                f"stride={self.stride}, padding={self.padding})")


class PoolingType(Enum):
    MAX = "max"
    AVERAGE = "average"


class PoolingLayer(TensorLayer):
    """
    Pooling layer for spatial dimension reduction (no padding, no parameters).
    """

    layer_type = LayerType.POOLING

    def __init__(self, input_shape, pool_size, stride=None, pooling_type=PoolingType.MAX):
        """
        Args:
            input_shape (tuple): [batch, channels, height, width]
            pool_size (int or tuple): Window height and width
            stride (int or tuple, optional): Defaults to ``pool_size``
            pooling_type (PoolingType): MAX or AVERAGE
        """
        input_shape = as_shape(input_shape, "input_shape")
        if len(input_shape) != 4:
            raise ConfigurationError(
                "Pooling layer expects input shape [batch, channels, height, width], "
                f"got {format_shape(input_shape)}")

        self.pool_size = _config_pair(pool_size, "pool_size")
        self.stride = self.pool_size if stride is None else _config_pair(stride, "stride")
        self.pooling_type = PoolingType(pooling_type)

        output_shape = _check_output_shape(
            "Pooling layer", pool_output_shape, input_shape, self.pool_size, self.stride)
        super().__init__(input_shape, output_shape)

    def forward(self, input_data):
        x = self._check_input(input_data)
        if self.pooling_type is PoolingType.MAX:
            output, indices = max_pool_with_indices(x, self.pool_size, self.stride)
            return output, ForwardContext(max_indices=indices)
        return avg_pool(x, self.pool_size, self.stride), ForwardContext()

    def backward(self, output_gradient, context):
        """Backward pass: route gradients to the max locations, or spread them evenly"""
        grad = self._check_gradient(output_gradient)
        input_grad = np.zeros(self.input_shape)

        if self.pooling_type is PoolingType.MAX:
            indices = context.max_indices
            batch_idx, channel_idx = np.meshgrid(np.arange(grad.shape[0]),
                                                 np.arange(grad.shape[1]), indexing='ij')
            batch_idx = np.broadcast_to(batch_idx[:, :, None, None], grad.shape)
            channel_idx = np.broadcast_to(channel_idx[:, :, None, None], grad.shape)
            # Overlapping windows may pick the same cell
            np.add.at(input_grad,
                      (batch_idx, channel_idx, indices[..., 0], indices[..., 1]), grad)
            return Tensor.from_numpy(input_grad)

        height, width = self.input_shape[2], self.input_shape[3]
        pool_h, pool_w = self.pool_size
        stride_h, stride_w = self.stride
        for i in range(grad.shape[2]):
            h_start = i * stride_h
            h_end = min(h_start + pool_h, height)
            for j in range(grad.shape[3]):
                w_start = j * stride_w
                w_end = min(w_start + pool_w, width)
                count = (h_end - h_start) * (w_end - w_start)
                input_grad[:, :, h_start:h_end, w_start:w_end] += \
                    grad[:, :, i, j][:, :, None, None] / count
        return Tensor.from_numpy(input_grad)

    def __repr__(self):
        return (f"PoolingLayer(pool_size={self.pool_size}, stride={self.stride}, "
                f"pooling_type={self.pooling_type.name})")


class FlattenLayer(TensorLayer):
    """Reinterpret a tensor of any shape as a 1D tensor."""

    layer_type = LayerType.FLATTENING

    def __init__(self, input_shape):
        input_shape = as_shape(input_shape, "input_shape")
        super().__init__(input_shape, (shape_size(input_shape),))

    def forward(self, input_data):
        x = self._check_input(input_data)
        return Tensor._wrap(x.data, self.output_shape), ForwardContext()

    def backward(self, output_gradient, context):
        grad = self._check_gradient(output_gradient)
        return Tensor(self.input_shape, grad)


class TensorNetwork(BaseNetwork):
    """
    Network of tensor layers: inputs and outputs are ``Tensor`` objects.
    """

    mode = NetworkMode.TENSOR
    layer_class = TensorLayer

    def _prepare_input(self, input_data):
        if not isinstance(input_data, Tensor):
            input_data = Tensor.from_numpy(input_data)
        if input_data.shape != self.input_shape:
            raise ShapeMismatchError(
                f"Input shape {format_shape(input_data.shape)} doesn't match network "
                f"input shape {format_shape(self.input_shape)}")
        return input_data

    def _prepare_target(self, target, output):
        return target
