"""
Tensor data type and the numeric kernels that operate on it.
"""
from ._tensor import Tensor
from . import operations
from .operations import (
    convolve,
    max_pool,
    avg_pool,
    reshape,
    transpose,
    expand_dims,
    add,
    flatten
)

__all__ = [
    'Tensor',
    'operations',
    'convolve',
    'max_pool',
    'avg_pool',
    'reshape',
    'transpose',
    'expand_dims',
    'add',
    'flatten'
]
