"""Pytest configuration and shared fixtures."""
import numpy as np
import pytest

from tensorlab import NetworkConfiguration, Tensor
from tensorlab.neural_networks import create_dense_network


@pytest.fixture
def rng():
    """
    Provide a seeded random generator.

    Returns:
        np.random.Generator: Generator seeded with 1234.
    """
    return np.random.default_rng(1234)


@pytest.fixture
def seeded_config():
    """
    Provide a reproducible network configuration.

    Returns:
        NetworkConfiguration: Small learning rate, two epochs, fixed seed.
    """
    return NetworkConfiguration(learning_rate=0.01, epochs=2, seed=7)


@pytest.fixture
def grid_4x4():
    """
    Provide the values 0..15 laid out row-major as a [1, 1, 4, 4] tensor.

    Returns:
        Tensor: Single-image, single-channel 4x4 input.
    """
    return Tensor((1, 1, 4, 4), np.arange(16))


@pytest.fixture
def dense_network(seeded_config):
    """
    Provide a 3-4-2 vector network with ReLU hidden and linear output layers.

    Returns:
        VectorNetwork: Freshly initialized network.
    """
    return create_dense_network([3, 4, 2], 'relu', 'linear', config=seeded_config)


@pytest.fixture
def numerical_gradient():
    """
    Provide a central-difference gradient estimator.

    The returned function perturbs ``array`` in place, one element at a time,
    and evaluates the scalar ``objective()`` on both sides.

    Returns:
        callable: numerical_gradient(objective, array, eps=1e-6) -> ndarray
    """
    def estimate(objective, array, eps=1e-6):
        grad = np.zeros_like(array)
        for index in np.ndindex(array.shape):
            original = array[index]
            array[index] = original + eps
            plus = objective()
            array[index] = original - eps
            minus = objective()
            array[index] = original
            grad[index] = (plus - minus) / (2 * eps)
        return grad

    return estimate
