"""
Neural networks module: layers, networks, optimizers and ready-made architectures.
"""
from .activations import (
    ActivationFunction,
    ReLU,
    LeakyReLU,
    Sigmoid,
    Tanh,
    Linear,
    get_activation,
    register_activation
)
from .layers import (
    Layer,
    LayerType,
    ForwardContext,
    InputLayer,
    StandardLayer,
    OutputLayer,
    softmax
)
from ._cnn import (
    TensorLayer,
    FullyConnectedLayer,
    ConvolutionalLayer,
    PoolingLayer,
    PoolingType,
    FlattenLayer,
    TensorNetwork
)
from ._mlp import VectorNetwork
from ..base import BaseNetwork, NetworkMode
from .losses import mean_squared_error, mse_gradient
from .optimizers import (
    Optimizer,
    SGDOptimizer,
    AdamOptimizer,
    get_optimizer
)
from .factory import (
    LayerWeights,
    apply_weights,
    create_dense_network,
    create_default_network,
    create_board_game_network,
    create_simple_image_classifier
)

__all__ = [
    'ActivationFunction',
    'ReLU',
    'LeakyReLU',
    'Sigmoid',
    'Tanh',
    'Linear',
    'get_activation',
    'register_activation',
    'Layer',
    'LayerType',
    'ForwardContext',
    'InputLayer',
    'StandardLayer',
    'OutputLayer',
    'softmax',
    'TensorLayer',
    'FullyConnectedLayer',
    'ConvolutionalLayer',
    'PoolingLayer',
    'PoolingType',
    'FlattenLayer',
    'TensorNetwork',
    'VectorNetwork',
    'BaseNetwork',
    'NetworkMode',
    'mean_squared_error',
    'mse_gradient',
    'Optimizer',
    'SGDOptimizer',
    'AdamOptimizer',
    'get_optimizer',
    'LayerWeights',
    'apply_weights',
    'create_dense_network',
    'create_default_network',
    'create_board_game_network',
    'create_simple_image_classifier'
]
