import os
import tomllib
from dataclasses import dataclass, fields

import numpy as np

from .exceptions import ConfigurationError


@dataclass
class NetworkConfiguration:
    """Hyperparameters shared by network construction and training."""

    learning_rate: float = 0.01
    epochs: int = 10
    seed: int | None = None
    optimizer: str = "sgd"
    momentum: float = 0.0

    def __post_init__(self):
        for name in ("learning_rate", "momentum"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float, np.number)):
                raise ConfigurationError(f"{name} must be a number, got {value!r}")
        for name in ("epochs", "seed"):
            value = getattr(self, name)
            if name == "seed" and value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
                raise ConfigurationError(f"{name} must be an integer, got {value!r}")
        if not isinstance(self.optimizer, str):
            raise ConfigurationError(f"optimizer must be a string, got {self.optimizer!r}")
        if self.learning_rate <= 0:
            raise ConfigurationError("Learning rate must be positive")
        if self.epochs <= 0:
            raise ConfigurationError("epochs must be positive")
        if self.momentum < 0:
            raise ConfigurationError("momentum must not be negative")

    def make_rng(self) -> np.random.Generator:
        """Random generator for parameter initialization, seeded when ``seed`` is set."""
        return np.random.default_rng(self.seed)

    def make_optimizer(self):
        """Instantiate the configured optimizer with this learning rate."""
        from .neural_networks.optimizers import get_optimizer

        if self.optimizer == "sgd":
            return get_optimizer("sgd", lr=self.learning_rate, momentum=self.momentum)
        return get_optimizer(self.optimizer, lr=self.learning_rate)

    @classmethod
    def load(cls, config_path: str) -> "NetworkConfiguration":
        """
        Load the configuration from the "network" table of a TOML file.

        Parameters
        ----------
        config_path : str
            Filesystem path to a TOML file.

        Returns
        -------
        NetworkConfiguration
            Instance populated from the "network" table; absent keys keep their defaults.

        Raises
        ------
        FileNotFoundError
            If no file exists at `config_path`.
        ConfigurationError
            If the table holds unknown keys or invalid values.
        """
        if not os.path.exists(config_path):
            raise FileNotFoundError(f"Configuration file not found at {config_path}")

        with open(config_path, "rb") as f:
            data = tomllib.load(f)

        network_data = data.get("network", {})
        unknown = set(network_data) - {field.name for field in fields(cls)}
        if unknown:
            raise ConfigurationError(
                f"Unknown keys in [network] table: {', '.join(sorted(unknown))}")
        return cls(**network_data)
