# pylint: disable=missing-docstring
import logging
from enum import Enum
from typing import Any, List, Optional

import numpy as np
import pandas as pd

from .common.utils import format_shape
from .config import NetworkConfiguration
from .exceptions import ConfigurationError
from .neural_networks.losses import mean_squared_error, mse_gradient
from .neural_networks.optimizers import Optimizer

logger = logging.getLogger(__name__)


class NetworkMode(Enum):
    VECTOR = "vector"
    TENSOR = "tensor"


def _describe_shape(shape) -> str:
    return "-" if shape is None else format_shape(shape)


# pylint: disable=too-many-instance-attributes
class BaseNetwork:
    """
    Ordered stack of layers trained by backpropagation of the mean squared error.

    Subclasses fix the kind of layer they accept (``layer_class``) and how raw
    inputs and targets are converted before they reach the first layer.
    """

    mode: Optional[NetworkMode] = None
    layer_class: Any = None

    def __init__(self, config: Optional[NetworkConfiguration] = None,
                 optimizer: Optional[Optimizer] = None,
                 learning_rate: Optional[float] = None,
                 rng: Optional[np.random.Generator] = None,
                 layers=None):
        """
        Args:
            config: Hyperparameters; defaults to ``NetworkConfiguration()``
            optimizer: Update rule; defaults to the one described by ``config``
            learning_rate: Overrides ``config.learning_rate``
            rng: Generator for parameter initialization; defaults to ``config.make_rng()``
            layers: Layers to append, in order
        """
        self.config = config if config is not None else NetworkConfiguration()
        self.rng = rng if rng is not None else self.config.make_rng()
        self._layers: List[Any] = []
        self._learning_rate = None
        self._optimizer = None
        self.loss_curve_: List[float] = []

        self.learning_rate = (learning_rate if learning_rate is not None
                              else self.config.learning_rate)
        self.optimizer = optimizer if optimizer is not None else self.config.make_optimizer()

        for layer in layers or ():
            self.add_layer(layer)

    @classmethod
    def from_layers(cls, layers, **kwargs):
        """Network wired from an ordered list of layers."""
        return cls(layers=layers, **kwargs)

    # Hyperparameters

    @property
    def learning_rate(self) -> float:
        return self._learning_rate

    @learning_rate.setter
    def learning_rate(self, value: float):
        if value is None or value <= 0:
            raise ConfigurationError("Learning rate must be positive")
        self._learning_rate = float(value)
        if self._optimizer is not None:
            self._optimizer.learning_rate = self._learning_rate

    @property
    def optimizer(self) -> Optimizer:
        return self._optimizer

    @optimizer.setter
    def optimizer(self, optimizer: Optimizer):
        if optimizer is None:
            raise ConfigurationError("optimizer must not be None")
        optimizer.learning_rate = self._learning_rate
        self._optimizer = optimizer

    # Structure

    @property
    def layers(self) -> list:
        """Copy of the ordered layer list."""
        return list(self._layers)

    @property
    def layer_count(self) -> int:
        return len(self._layers)

    @property
    def is_initialized(self) -> bool:
        return len(self._layers) > 0

    @property
    def input_shape(self):
        return self._layers[0].input_shape if self._layers else None

    @property
    def output_shape(self):
        return self._layers[-1].output_shape if self._layers else None

    def add_layer(self, layer):
        """
        Append ``layer`` after the current last layer.

        Returns:
            self, so calls can be chained

        Raises:
            ConfigurationError: If the layer is of the wrong kind for this network or
                its input shape does not match the previous layer's output shape
        """
        if not isinstance(layer, self.layer_class):
            raise ConfigurationError(
                f"{type(self).__name__} only accepts {self.layer_class.__name__} "
                f"instances, got {type(layer).__name__}")
        if self._layers:
            self._connect(self._layers[-1], layer)
        else:
            self._check_first_layer(layer)

        self._layers.append(layer)
        logger.debug("Added %s as layer %d: %s -> %s", type(layer).__name__,
                     len(self._layers) - 1, _describe_shape(layer.input_shape),
                     _describe_shape(layer.output_shape))
        return self

    def _connect(self, previous, layer):
        previous.connect_to(layer)

    def _check_first_layer(self, layer):
        pass

    def _require_layers(self):
        if not self._layers:
            raise ConfigurationError("Network has no layers")

    def _prepare_input(self, input_data):
        raise NotImplementedError

    def _prepare_target(self, target, output):
        raise NotImplementedError

    # Computation

    def _forward_pass(self, input_data):
        contexts = []
        output = input_data
        for layer in self._layers:
            output, context = layer.forward(output)
            contexts.append(context)
        return output, contexts

    def forward(self, input_data):
        """Run ``input_data`` through every layer and return the last layer's output."""
        self._require_layers()
        output, _ = self._forward_pass(self._prepare_input(input_data))
        return output

    def __call__(self, input_data):
        return self.forward(input_data)

    def loss(self, prediction, target) -> float:
        """Mean squared error between ``prediction`` and ``target``."""
        return mean_squared_error(prediction, target)

    def train(self, input_data, target):
        """
        One training step: forward, MSE gradient, backward through every layer in
        reverse, then an optimizer update of every layer.

        Returns:
            The output of the forward pass (computed before the update)
        """
        self._require_layers()
        output, contexts = self._forward_pass(self._prepare_input(input_data))
        target = self._prepare_target(target, output)

        grad = mse_gradient(output, target)
        for layer, context in zip(reversed(self._layers), reversed(contexts)):
            grad = layer.backward(grad, context)

        self._update_parameters()
        return output

    def _update_parameters(self):
        for index, layer in enumerate(self._layers):
            if layer.parameters():
                self._optimizer.update(index, layer)

    def train_batch(self, inputs, targets, epochs: Optional[int] = None) -> float:
        """
        Train on every (input, target) pair, in order, for ``epochs`` passes.

        Args:
            inputs: Sequence of network inputs
            targets: Sequence of expected outputs, one per input
            epochs: Number of passes; defaults to ``config.epochs``

        Returns:
            float: Mean loss of the last epoch

        Raises:
            ConfigurationError: If the collections are None, empty or of different
                lengths, or ``epochs`` is not positive
        """
        if epochs is None:
            epochs = self.config.epochs
        if inputs is None or targets is None:
            raise ConfigurationError("inputs and targets must not be None")
        if len(inputs) == 0:
            raise ConfigurationError("inputs cannot be empty")
        if len(inputs) != len(targets):
            raise ConfigurationError(
                f"inputs and targets must have the same length, got {len(inputs)} "
                f"and {len(targets)}")
        if epochs <= 0:
            raise ConfigurationError("epochs must be positive")
        self._require_layers()

        last_loss = 0.0
        for epoch in range(epochs):
            total_loss = 0.0
            for input_data, target in zip(inputs, targets):
                output = self.train(input_data, target)
                total_loss += self.loss(output, self._prepare_target(target, output))
            last_loss = total_loss / len(inputs)
            self.loss_curve_.append(last_loss)
            logger.info("Epoch %d/%d - Loss: %.6f", epoch + 1, epochs, last_loss)

        return last_loss

    def fit(self, inputs, targets, epochs: Optional[int] = None) -> "BaseNetwork":
        """Training: fit(inputs, targets) -> self"""
        self.train_batch(inputs, targets, epochs)
        return self

    # Introspection

    def get_params(self, mode: str = "all") -> Any:
        """
        Get parameters for this network.

        :param mode: Specifies which parameters to return. Options are:
            - "all": Return all parameters.
            - "trainable": Return copies of the layer parameters keyed "<layer index>.<name>".
            - "non_trainable": Return only the training settings.
        :return: Dictionary of parameter names mapped to their values.
        """
        trainable = {f"{index}.{name}": param.copy()
                     for index, layer in enumerate(self._layers)
                     for name, param in layer.parameters().items()}
        non_trainable = {
            "learning_rate": self._learning_rate,
            "optimizer": self._optimizer,
            "epochs": self.config.epochs,
            "layer_count": self.layer_count,
        }
        if mode == "all":
            return {**non_trainable, **trainable}
        if mode == "trainable":
            return trainable
        if mode == "non_trainable":
            return non_trainable

        raise ValueError(
            f"Invalid mode '{mode}'. Choose from 'all', 'trainable', or 'non_trainable'."
        )

    def layer_table(self) -> pd.DataFrame:
        """One row per layer: class, layer type, input/output shape and parameter count."""
        columns = ["layer", "type", "input_shape", "output_shape", "parameters"]
        rows = [
            {
                "layer": type(layer).__name__,
                "type": layer.layer_type.value if layer.layer_type is not None else None,
                "input_shape": _describe_shape(layer.input_shape),
                "output_shape": _describe_shape(layer.output_shape),
                "parameters": layer.n_parameters,
            }
            for layer in self._layers
        ]
        table = pd.DataFrame(rows, columns=columns)
        table.index.name = "index"
        return table

    def summary(self) -> str:
        """Human-readable description of the network and its layers."""
        table = self.layer_table()
        total = int(table["parameters"].sum()) if len(table) else 0
        header = (f"{type(self).__name__} (mode={self.mode.value}, layers={self.layer_count}, "
                  f"parameters={total}, learning_rate={self._learning_rate}, "
                  f"optimizer={self._optimizer!r})")
        if table.empty:
            return header + "\n(no layers)"
        return header + "\n" + table.to_string()

    def __repr__(self):
        return (f"{type(self).__name__}(layers={self.layer_count}, "
                f"learning_rate={self._learning_rate})")
