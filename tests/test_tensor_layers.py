"""Tests for the tensor-mode layers."""
import numpy as np
import pytest

from tensorlab import ConfigurationError, ShapeMismatchError, Tensor
from tensorlab.neural_networks import (
    ConvolutionalLayer,
    FlattenLayer,
    FullyConnectedLayer,
    LayerType,
    PoolingLayer,
    PoolingType,
)


def _check_layer_gradients(layer, x, numerical_gradient, rng):
    """Compare backward with finite differences for the input and every parameter."""
    out, context = layer.forward(Tensor.from_numpy(x))
    g = rng.normal(size=out.shape)

    def objective():
        return float(np.sum(layer(Tensor.from_numpy(x)).numpy() * g))

    input_grad = layer.backward(Tensor.from_numpy(g), context)
    assert isinstance(input_grad, Tensor)
    assert np.allclose(input_grad.numpy(), numerical_gradient(objective, x), atol=1e-5)

    gradients = layer.gradients()
    for name, param in layer.parameters().items():
        assert np.allclose(gradients[name], numerical_gradient(objective, param), atol=1e-5), name


class TestFullyConnectedLayer:
    """Tests for FullyConnectedLayer."""

    def test_shapes_and_initialization(self, rng):
        """Weights are (out, in) and the bias starts at 0.01."""
        layer = FullyConnectedLayer((6,), 4, rng=rng)
        assert layer.input_shape == (6,)
        assert layer.output_shape == (4,)
        assert layer.weights.shape == (4, 6)
        assert np.allclose(layer.bias.numpy(), 0.01)
        assert layer.layer_type is LayerType.FULLY_CONNECTED

    def test_xavier_scale(self):
        """Initial weights have standard deviation close to sqrt(2 / (in + out))."""
        layer = FullyConnectedLayer((300,), 200, rng=np.random.default_rng(0))
        assert np.std(layer.weight_) == pytest.approx(np.sqrt(2.0 / 500), rel=0.05)

    def test_rejects_non_1d_input_shape(self):
        """Dense layers take 1D inputs only."""
        with pytest.raises(ConfigurationError, match="1D"):
            FullyConnectedLayer((2, 3), 4)

    def test_rejects_wrong_input(self, rng):
        """Inputs must match the declared shape."""
        with pytest.raises(ShapeMismatchError):
            FullyConnectedLayer((3,), 2, rng=rng).forward(Tensor((4,)))

    def test_softmax_output_sums_to_one(self, rng):
        """With softmax the output is a probability distribution."""
        layer = FullyConnectedLayer((5,), 3, use_softmax=True, rng=rng)
        out = layer(Tensor.from_numpy(rng.normal(size=5) * 100))
        assert np.sum(out.numpy()) == pytest.approx(1.0)

    @pytest.mark.parametrize("use_softmax,activation", [(False, 'tanh'), (True, 'linear')])
    def test_gradients(self, rng, numerical_gradient, use_softmax, activation):
        """Backward matches finite differences."""
        layer = FullyConnectedLayer((5,), 3, use_softmax, activation, rng=rng)
        _check_layer_gradients(layer, rng.normal(size=5), numerical_gradient, rng)


class TestConvolutionalLayer:
    """Tests for ConvolutionalLayer."""

    def test_shapes(self, rng):
        """Padding keeps the spatial size at stride 1."""
        layer = ConvolutionalLayer((2, 3, 8, 8), 3, 4, rng=rng)
        assert layer.output_shape == (2, 4, 8, 8)
        assert layer.kernels.shape == (4, 3, 3, 3)
        assert layer.n_parameters == 4 * 3 * 3 * 3 + 4

        unpadded = ConvolutionalLayer((1, 1, 7, 7), (3, 3), 2, stride=2, padding=False, rng=rng)
        assert unpadded.output_shape == (1, 2, 3, 3)

    def test_he_scale(self):
        """Initial kernels have standard deviation close to sqrt(2 / fan_in)."""
        layer = ConvolutionalLayer((1, 8, 5, 5), 3, 64, rng=np.random.default_rng(0))
        assert np.std(layer.weight_) == pytest.approx(np.sqrt(2.0 / 72), rel=0.05)

    @pytest.mark.parametrize("input_shape,kernel_size,out_channels", [
        ((3, 8, 8), 3, 4),
        ((1, 1, 8, 8), 0, 4),
        ((1, 1, 8, 8), 3, 0),
    ])
    def test_invalid_configuration(self, input_shape, kernel_size, out_channels):
        """Rank, kernel size and channel count are validated."""
        with pytest.raises(ConfigurationError):
            ConvolutionalLayer(input_shape, kernel_size, out_channels)

    def test_forward_adds_bias_per_channel(self, rng):
        """Zero kernels leave only the per-channel bias."""
        layer = ConvolutionalLayer((1, 1, 3, 3), 3, 2, activation='linear', rng=rng)
        layer.kernels = np.zeros((2, 1, 3, 3))
        layer.bias = [1.0, -2.0]
        out = layer(Tensor.from_numpy(rng.normal(size=(1, 1, 3, 3)))).numpy()
        assert np.allclose(out[0, 0], 1.0)
        assert np.allclose(out[0, 1], -2.0)

    def test_kernel_setter_checks_shape(self, rng):
        """Kernels must keep their shape."""
        layer = ConvolutionalLayer((1, 1, 4, 4), 3, 2, rng=rng)
        with pytest.raises(ShapeMismatchError):
            layer.kernels = Tensor((2, 1, 2, 2))

    @pytest.mark.parametrize("stride,padding", [(1, True), (2, False), (2, True)])
    def test_gradients(self, rng, numerical_gradient, stride, padding):
        """Backward matches finite differences, including the activation derivative."""
        layer = ConvolutionalLayer((2, 2, 5, 5), 3, 3, stride, padding, 'tanh', rng=rng)
        _check_layer_gradients(layer, rng.normal(size=(2, 2, 5, 5)), numerical_gradient, rng)

    def test_channel_expansion_forward_and_backward(self, rng, numerical_gradient):
        """A 3-to-4 channel layer produces 4 channels and correct gradients."""
        layer = ConvolutionalLayer((1, 3, 5, 5), 3, 4, activation='tanh', rng=rng)
        assert layer(Tensor((1, 3, 5, 5))).shape == (1, 4, 5, 5)
        _check_layer_gradients(layer, rng.normal(size=(1, 3, 5, 5)), numerical_gradient, rng)

    def test_kernel_larger_than_input(self):
        """A kernel that leaves no output positions is a configuration error."""
        with pytest.raises(ConfigurationError, match="empty output"):
            ConvolutionalLayer((1, 1, 3, 3), 4, 1, padding=False)

    def test_update_clears_gradients(self, rng):
        """update_parameters applies the step and zeroes the accumulators."""
        layer = ConvolutionalLayer((1, 1, 4, 4), 3, 1, rng=rng)
        out, context = layer.forward(Tensor.from_numpy(rng.normal(size=(1, 1, 4, 4)) + 1.0))
        layer.backward(np.ones(out.shape), context)
        before = layer.weight_.copy()
        step = layer.gradients()['kernels'].copy()
        layer.update_parameters(0.5)
        assert np.allclose(layer.weight_, before - 0.5 * step)
        assert not np.any(layer.gradients()['kernels'])


class TestPoolingLayer:
    """Tests for PoolingLayer."""

    def test_max_backward_routes_to_winner(self, grid_4x4):
        """Each gradient lands on the cell that won its window."""
        layer = PoolingLayer((1, 1, 4, 4), 2, 2)
        out, context = layer.forward(grid_4x4)
        assert np.array_equal(out.numpy()[0, 0], [[5, 7], [13, 15]])
        assert context.max_indices.shape == (1, 1, 2, 2, 2)

        grad = layer.backward(Tensor((1, 1, 2, 2), [1, 2, 3, 4]), context).numpy()[0, 0]
        expected = np.zeros((4, 4))
        expected[1, 1], expected[1, 3], expected[3, 1], expected[3, 3] = 1, 2, 3, 4
        assert np.array_equal(grad, expected)

    def test_max_backward_accumulates_for_overlapping_windows(self):
        """A cell winning several overlapping windows collects every gradient."""
        x = Tensor((1, 1, 1, 3), [0.0, 5.0, 0.0])
        layer = PoolingLayer((1, 1, 1, 3), (1, 2), (1, 1))
        out, context = layer.forward(x)
        assert np.array_equal(out.numpy().ravel(), [5.0, 5.0])
        grad = layer.backward(np.ones((1, 1, 1, 2)), context).numpy().ravel()
        assert np.array_equal(grad, [0.0, 2.0, 0.0])

    def test_average_forward_and_backward(self, grid_4x4):
        """Average pooling spreads each gradient evenly over its window."""
        layer = PoolingLayer((1, 1, 4, 4), 2, 2, PoolingType.AVERAGE)
        out, context = layer.forward(grid_4x4)
        assert np.allclose(out.numpy()[0, 0], [[2.5, 4.5], [10.5, 12.5]])
        grad = layer.backward(np.ones((1, 1, 2, 2)), context).numpy()
        assert np.allclose(grad, 0.25)

    def test_average_backward_divides_by_in_bounds_count(self):
        """A partial window shares its gradient among the cells inside the input."""
        layer = PoolingLayer((1, 1, 3, 3), 4, 2, 'average')
        out, context = layer.forward(Tensor((1, 1, 3, 3), np.arange(9)))
        assert out.shape == (1, 1, 1, 1)
        grad = layer.backward(np.ones((1, 1, 1, 1)), context).numpy()
        assert np.allclose(grad, 1.0 / 9.0)

    @pytest.mark.parametrize("pooling_type", [PoolingType.MAX, PoolingType.AVERAGE])
    def test_gradients(self, rng, numerical_gradient, pooling_type):
        """Backward matches finite differences (distinct values avoid ties)."""
        layer = PoolingLayer((2, 2, 5, 5), 2, 2, pooling_type)
        _check_layer_gradients(layer, rng.normal(size=(2, 2, 5, 5)), numerical_gradient, rng)

    def test_has_no_parameters(self):
        """Pooling layers hold nothing to train."""
        layer = PoolingLayer((1, 1, 4, 4), 2)
        assert layer.parameters() == {}
        assert layer.stride == (2, 2)
        layer.update_parameters(0.1)

    def test_window_larger_than_input(self):
        """A pool window that leaves no output positions is a configuration error."""
        with pytest.raises(ConfigurationError, match="empty output"):
            PoolingLayer((1, 1, 2, 2), 3, 1)

    def test_rejects_non_4d_input(self):
        """Pooling requires a 4D input shape."""
        with pytest.raises(ConfigurationError):
            PoolingLayer((4, 4), 2, 2)


class TestFlattenLayer:
    """Tests for FlattenLayer."""

    def test_round_trip(self, rng):
        """Forward flattens, backward restores the input shape."""
        layer = FlattenLayer((2, 3, 4))
        x = Tensor.from_numpy(rng.normal(size=(2, 3, 4)))
        out, context = layer.forward(x)
        assert out.shape == (24,)
        assert np.array_equal(out.data, x.data)

        grad = layer.backward(out, context)
        assert grad == x
        assert layer.layer_type is LayerType.FLATTENING

    def test_backward_checks_gradient_shape(self):
        """The incoming gradient must match the flattened shape."""
        layer = FlattenLayer((2, 2))
        _, context = layer.forward(Tensor((2, 2)))
        with pytest.raises(ShapeMismatchError):
            layer.backward(np.ones(3), context)
