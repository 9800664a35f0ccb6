"""
tensorlab: tensors and small neural networks trained with hand-derived gradients.
"""
from .tensor import Tensor
from .neural_networks import (
    BaseNetwork,
    NetworkMode,
    TensorNetwork,
    VectorNetwork
)
from .config import NetworkConfiguration
from .exceptions import ConfigurationError, ShapeMismatchError
from .common.logging import setup_logging

__all__ = [
    'Tensor',
    'BaseNetwork',
    'NetworkMode',
    'TensorNetwork',
    'VectorNetwork',
    'NetworkConfiguration',
    'ConfigurationError',
    'ShapeMismatchError',
    'setup_logging'
]
