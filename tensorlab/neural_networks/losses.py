"""
Loss functions used by the network training loop.
"""
import numpy as np

from ..common.utils import format_shape
from ..exceptions import ShapeMismatchError
from ..tensor import Tensor


def _as_array(value):
    if isinstance(value, Tensor):
        return value.numpy()
    return np.asarray(value, dtype=np.float64)


def _check_shapes(prediction, target):
    if prediction.shape != target.shape:
        raise ShapeMismatchError(
            f"Prediction shape {format_shape(prediction.shape)} doesn't match "
            f"target shape {format_shape(target.shape)}")


def mean_squared_error(prediction, target):
    """
    Mean squared error over all elements.

    Args:
        prediction (Tensor or array-like): Network output
        target (Tensor or array-like): Expected output of the same shape

    Returns:
        float: mean((prediction - target)^2)
    """
    prediction, target = _as_array(prediction), _as_array(target)
    _check_shapes(prediction, target)
    return float(np.mean((prediction - target) ** 2))


def mse_gradient(prediction, target):
    """
    Gradient of the squared error with respect to the prediction.

    The result is scaled by the size of the first axis, ``2 * (p - t) / p.shape[0]``,
    so for a flat output it is the gradient of the mean over its elements.

    Returns:
        numpy.ndarray: Same shape as ``prediction``
    """
    prediction, target = _as_array(prediction), _as_array(target)
    _check_shapes(prediction, target)
    return 2.0 * (prediction - target) / prediction.shape[0]
