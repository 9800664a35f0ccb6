"""
Multi-layer perceptron over flat vectors.
"""
import numpy as np

from ..base import BaseNetwork, NetworkMode
from ..common.utils import format_shape
from ..exceptions import ConfigurationError, ShapeMismatchError
from .layers import InputLayer, VectorLayer


class VectorNetwork(BaseNetwork):
    """
    Network of flat-vector layers: an ``InputLayer`` followed by standard and
    output layers. Each appended layer receives incoming weights sized for its
    predecessor.

    Inputs and targets are 1D sequences (lists, tuples or numpy arrays); outputs
    are 1D numpy arrays.
    """

    mode = NetworkMode.VECTOR
    layer_class = VectorLayer

    def _check_first_layer(self, layer):
        if not isinstance(layer, InputLayer):
            raise ConfigurationError("The first layer of a vector network must be an InputLayer")

    def _connect(self, previous, layer):
        if isinstance(layer, InputLayer):
            raise ConfigurationError("An input layer cannot follow another layer")
        if not layer.is_built:
            layer.build(previous.size, self.rng)
        previous.connect_to(layer)

    def _prepare_input(self, input_data):
        if input_data is None:
            raise ShapeMismatchError("Input cannot be None")
        x = np.asarray(input_data, dtype=np.float64)
        if x.shape != self.input_shape:
            raise ShapeMismatchError(
                f"Input size {format_shape(x.shape)} doesn't match network input "
                f"{format_shape(self.input_shape)}")
        return x

    def _prepare_target(self, target, output):
        if target is None:
            raise ShapeMismatchError("Target cannot be None")
        return np.asarray(target, dtype=np.float64)

    def predict(self, inputs):
        """
        Forward every input of a batch.

        Args:
            inputs: Sequence of input vectors, or a 2D array of shape (n_samples, input_size)

        Returns:
            numpy.ndarray: Array of shape (n_samples, output_size)
        """
        return np.array([self.forward(x) for x in inputs])
