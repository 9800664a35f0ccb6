"""
Optimizers for neural networks.

An optimizer reads a layer's ``parameters()`` and ``gradients()`` (both keyed by
parameter name), updates the parameters in place and clears the layer's
gradient accumulators.
"""
import numpy as np

from ..exceptions import ConfigurationError


class Optimizer:
    """
    Base optimizer holding the learning rate.
    """

    def __init__(self, lr=0.01):
        self.learning_rate = lr

    @property
    def learning_rate(self):
        return self._learning_rate

    @learning_rate.setter
    def learning_rate(self, value):
        if value is None or value <= 0:
            raise ConfigurationError("Learning rate must be positive")
        self._learning_rate = float(value)

    def update(self, layer_id, layer):
        """
        Apply one step to ``layer`` using its accumulated gradients.

        Args:
            layer_id: Key identifying the layer's slot in the optimizer state
            layer (Layer): Layer whose parameters are updated in place
        """
        raise NotImplementedError

    def reset(self):
        """Forget per-layer state (velocities, moments)."""

    def __repr__(self):
        return f"{type(self).__name__}(lr={self.learning_rate})"


class SGDOptimizer(Optimizer):
    """
    Stochastic Gradient Descent optimizer with optional momentum and Nesterov acceleration.
    """

    def __init__(self, lr=0.01, momentum=0.0, nesterov=False):
        """
        Initialize SGD optimizer.

        Args:
            lr (float): Learning rate
            momentum (float): Momentum factor; 0 gives plain gradient descent
            nesterov (bool): Whether to apply Nesterov momentum
        """
        super().__init__(lr)
        if momentum < 0:
            raise ConfigurationError("momentum must not be negative")
        self.momentum = momentum
        self.nesterov = nesterov
        self.velocities = {}

    def update(self, layer_id, layer):
        if self.momentum == 0:
            layer.update_parameters(self.learning_rate)
            return

        grads = layer.gradients()
        velocities = self.velocities.setdefault(layer_id, {})
        for name, param in layer.parameters().items():
            grad = grads[name]
            velocity = velocities.get(name)
            if velocity is None or velocity.shape != param.shape:
                velocity = np.zeros_like(param)

            velocity = self.momentum * velocity - self.learning_rate * grad

            if self.nesterov:
                param += self.momentum * velocity - self.learning_rate * grad
            else:
                param += velocity

            velocities[name] = velocity

        layer.zero_grad()

    def reset(self):
        self.velocities = {}


class AdamOptimizer(Optimizer):
    """
    Adam optimizer implementation.
    """

    def __init__(self, lr=0.001, beta1=0.9, beta2=0.999, epsilon=1e-8):
        """
        Initialize Adam optimizer.

        Args:
            lr (float): Learning rate
            beta1 (float): Exponential decay rate for first moment
            beta2 (float): Exponential decay rate for second moment
            epsilon (float): Small constant for numerical stability
        """
        super().__init__(lr)
        self.beta1 = beta1
        self.beta2 = beta2
        self.epsilon = epsilon
        self.moments = {}

    def update(self, layer_id, layer):
        params = layer.parameters()
        if not params:
            return

        if layer_id not in self.moments:
            self.moments[layer_id] = {'t': 0}
        moments = self.moments[layer_id]
        moments['t'] += 1
        t = moments['t']

        grads = layer.gradients()
        for name, param in params.items():
            grad = grads[name]
            m = moments.get('m_' + name, np.zeros_like(param))
            v = moments.get('v_' + name, np.zeros_like(param))

            # Biased first and second raw moment estimates
            m = self.beta1 * m + (1 - self.beta1) * grad
            v = self.beta2 * v + (1 - self.beta2) * (grad ** 2)

            m_corrected = m / (1 - self.beta1 ** t)
            v_corrected = v / (1 - self.beta2 ** t)

            param -= self.learning_rate * m_corrected / (np.sqrt(v_corrected) + self.epsilon)

            moments['m_' + name] = m
            moments['v_' + name] = v

        layer.zero_grad()

    def reset(self):
        self.moments = {}


def get_optimizer(solver='sgd', **kwargs):
    """
    Factory function to get optimizer instances.

    Args:
        solver (str): Optimizer type ('sgd', 'adam')
        **kwargs: Optimizer-specific parameters

    Returns:
        Optimizer instance
    """
    if solver == 'sgd':
        return SGDOptimizer(**kwargs)
    elif solver == 'adam':
        return AdamOptimizer(**kwargs)
    else:
        raise ValueError(f"Unknown solver: {solver}")
