"""
Ready-made network architectures and loading of externally provided weights.
"""
import logging
from dataclasses import dataclass
from typing import Any, Optional

from ..common.utils import as_shape, format_shape
from ..config import NetworkConfiguration
from ..exceptions import ConfigurationError
from ._cnn import (
    ConvolutionalLayer,
    FlattenLayer,
    FullyConnectedLayer,
    PoolingLayer,
    PoolingType,
    TensorNetwork,
)
from ._mlp import VectorNetwork
from .activations import get_activation
from .layers import InputLayer, OutputLayer, StandardLayer, check_parameter

logger = logging.getLogger(__name__)


def create_dense_network(layer_sizes, hidden_activation='relu', output_activation='tanh',
                         use_softmax=False, config: Optional[NetworkConfiguration] = None,
                         **kwargs):
    """
    Fully-connected vector network: input layer, hidden layers, output layer.

    Args:
        layer_sizes (sequence of int): Units per layer, input first and output last
        hidden_activation (str or ActivationFunction): Activation of the hidden layers
        output_activation (str or ActivationFunction): Activation of the output layer
        use_softmax (bool): Apply softmax at the output instead of ``output_activation``
        config (NetworkConfiguration, optional): Hyperparameters and seed
        **kwargs: Passed on to ``VectorNetwork`` (optimizer, learning_rate, rng)

    Returns:
        VectorNetwork
    """
    layer_sizes = list(layer_sizes)
    if len(layer_sizes) < 2:
        raise ConfigurationError("Network must have at least input and output layers")
    hidden_activation = get_activation(hidden_activation)
    output_activation = get_activation(output_activation)

    network = VectorNetwork(config=config, **kwargs)
    network.add_layer(InputLayer(layer_sizes[0]))
    for size in layer_sizes[1:-1]:
        network.add_layer(StandardLayer(size, hidden_activation))
    network.add_layer(OutputLayer(layer_sizes[-1], output_activation, use_softmax))

    logger.debug("Created dense network %s", layer_sizes)
    return network


def create_default_network(layer_sizes, config: Optional[NetworkConfiguration] = None):
    """
    Dense network with ReLU hidden layers.

    A single output unit gets tanh (regression / evaluation); several outputs
    get a linear activation normalized by softmax (classification).
    """
    layer_sizes = list(layer_sizes)
    if len(layer_sizes) < 2:
        raise ConfigurationError("Network must have at least input and output layers")
    if layer_sizes[-1] == 1:
        return create_dense_network(layer_sizes, 'relu', 'tanh', False, config)
    return create_dense_network(layer_sizes, 'relu', 'linear', True, config)


# pylint: disable=too-many-arguments
def create_board_game_network(input_shape, hidden_layer_sizes=(128, 64, 32), output_size=1,
                              hidden_activation='relu', output_activation='tanh',
                              use_softmax=False,
                              config: Optional[NetworkConfiguration] = None):
    """
    Tensor network evaluating a board given as [channels, height, width] planes.

    The input is flattened and fed through a stack of fully connected layers.

    Args:
        input_shape (tuple): [channels, height, width]
        hidden_layer_sizes (sequence of int): Units per hidden layer
        output_size (int): Number of outputs; 1 for a position evaluation
        hidden_activation (str or ActivationFunction): Activation of the hidden layers
        output_activation (str or ActivationFunction): Activation of the output layer
        use_softmax (bool): Apply softmax at the output
        config (NetworkConfiguration, optional): Hyperparameters and seed

    Returns:
        TensorNetwork
    """
    input_shape = as_shape(input_shape, "input_shape")
    if len(input_shape) != 3:
        raise ConfigurationError(
            f"Input shape must be [channels, height, width], got {format_shape(input_shape)}")

    network = TensorNetwork(config=config)
    network.add_layer(FlattenLayer(input_shape))
    for size in hidden_layer_sizes:
        network.add_layer(FullyConnectedLayer(network.output_shape, size, False,
                                              hidden_activation, rng=network.rng))
    network.add_layer(FullyConnectedLayer(network.output_shape, output_size, use_softmax,
                                          output_activation, rng=network.rng))
    return network


def create_simple_image_classifier(input_shape, num_classes,
                                   config: Optional[NetworkConfiguration] = None):
    """
    Small CNN: two 3x3 convolution + 2x2 max-pool stages, then a softmax classifier.

    Args:
        input_shape (tuple): [batch, channels, height, width]
        num_classes (int): Number of output classes

    Returns:
        TensorNetwork
    """
    input_shape = as_shape(input_shape, "input_shape")
    if len(input_shape) != 4:
        raise ConfigurationError("Input shape must be 4D [batch, channels, height, width]")

    network = TensorNetwork(config=config)
    network.add_layer(ConvolutionalLayer(input_shape, (3, 3), 16, (1, 1), True, 'relu',
                                         rng=network.rng))
    network.add_layer(PoolingLayer(network.output_shape, (2, 2), (2, 2), PoolingType.MAX))
    network.add_layer(ConvolutionalLayer(network.output_shape, (3, 3), 32, (1, 1), True, 'relu',
                                         rng=network.rng))
    network.add_layer(PoolingLayer(network.output_shape, (2, 2), (2, 2), PoolingType.MAX))
    network.add_layer(FlattenLayer(network.output_shape))
    network.add_layer(FullyConnectedLayer(network.output_shape, num_classes, True, 'linear',
                                          rng=network.rng))
    return network


@dataclass
class LayerWeights:
    """Externally provided parameters for one layer; ``None`` leaves a parameter unchanged."""

    weights: Optional[Any] = None
    bias: Optional[Any] = None


def apply_weights(network, weights):
    """
    Copy externally provided parameters into the layers of ``network``.

    Args:
        network (BaseNetwork): Target network
        weights (dict): Layer index -> ``LayerWeights``. For convolutional layers
            ``weights`` holds the kernels.

    Returns:
        The network

    Raises:
        ConfigurationError: If an index is out of range or names a layer without parameters
        ShapeMismatchError: If a tensor does not have the layer's expected shape
    """
    layers = network.layers
    staged = []
    for index, layer_weights in weights.items():
        if not 0 <= index < len(layers):
            raise ConfigurationError(
                f"Layer index {index} is out of range for a network of {len(layers)} layers")
        layer = layers[index]
        if not layer.parameters():
            raise ConfigurationError(
                f"Layer {index} ({type(layer).__name__}) has no parameters")

        weight = bias = None
        if layer_weights.weights is not None:
            name = "Kernels" if isinstance(layer, ConvolutionalLayer) else "Weights"
            weight = check_parameter(name, layer_weights.weights, layer.weight_.shape)
        if layer_weights.bias is not None:
            bias = check_parameter("Bias", layer_weights.bias, layer.bias_.shape)
        staged.append((index, layer, weight, bias))

    # Nothing is assigned until every entry has been validated.
    for index, layer, weight, bias in staged:
        if weight is not None:
            layer.weight_ = weight
        if bias is not None:
            layer.bias_ = bias
        logger.debug("Applied external weights to layer %d (%s)", index, type(layer).__name__)

    return network
