import numpy as np

from ..exceptions import ConfigurationError


def as_int(value, name):
    """
    Convert an integral value to ``int`` without truncating fractions.

    Raises:
        ValueError: If ``value`` is not a whole number
    """
    if isinstance(value, (int, np.integer)) and not isinstance(value, (bool, np.bool_)):
        return int(value)
    if isinstance(value, (float, np.floating)) and float(value).is_integer():
        return int(value)
    raise ValueError(f"{name} must be an integer, got {value!r}")


def format_shape(shape):
    """Render a shape as ``[d0, d1, ...]`` for error messages."""
    return "[" + ", ".join(str(int(d)) for d in shape) + "]"


def shape_size(shape):
    """Number of elements described by ``shape``."""
    size = 1
    for dim in shape:
        size *= int(dim)
    return size


def as_shape(shape, name="shape"):
    """
    Normalize a shape argument to a tuple of positive ints.

    Raises:
        ConfigurationError: If the shape is empty or holds a non-positive or
            fractional dimension
    """
    if isinstance(shape, (int, np.integer)):
        shape = (shape,)
    try:
        shape = tuple(as_int(d, name) for d in shape)
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc
    if len(shape) == 0:
        raise ConfigurationError(f"{name} must have at least one dimension")
    if any(d <= 0 for d in shape):
        raise ConfigurationError(
            f"All dimensions of {name} must be positive, got {format_shape(shape)}")
    return shape


def as_pair(value, name):
    """
    Normalize a window/stride argument to a ``(height, width)`` pair of positive ints.

    Raises:
        ValueError: If the value is not one or two positive ints
    """
    pair = (value, value) if isinstance(value, (int, np.integer)) else tuple(value)
    if len(pair) != 2:
        raise ValueError(f"{name} must be 2D [height, width], got {pair}")
    pair = (as_int(pair[0], name), as_int(pair[1], name))
    if pair[0] <= 0 or pair[1] <= 0:
        raise ValueError(f"{name} must be positive, got {pair}")
    return pair


def window_output_size(input_size, window, stride, padding=0):
    """
    Output length of a sliding window: ``(input - window + 2*padding) / stride + 1``.

    The division truncates toward zero, so a window that overhangs its input by
    less than one stride still yields a (partial) position.
    """
    span = input_size - window + 2 * padding
    steps = span // stride if span >= 0 else -((-span) // stride)
    return steps + 1
