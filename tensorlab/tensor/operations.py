"""
Numeric kernels over Tensors: convolution, pooling and shape manipulation.

Convolution and pooling work on 4D tensors laid out as
[batch, channels, height, width].
"""
import numpy as np

from ..common.utils import as_pair, format_shape, window_output_size
from ._tensor import Tensor


def _require_rank(tensor, rank, what):
    if tensor.rank != rank:
        raise ValueError(f"{what} must be a {rank}D tensor, got shape "
                         f"{format_shape(tensor.shape)}")


def _window_positions(input_size, window, stride, padding=0):
    size = window_output_size(input_size, window, stride, padding)
    if size <= 0:
        raise ValueError(
            f"Window of size {window} with stride {stride} and padding {padding} "
            f"leaves no output positions over an input of size {input_size}")
    return size


def conv_output_shape(input_shape, kernel_shape, stride, use_padding):
    """
    Output shape of ``convolve`` for the given input and kernel shapes.

    Args:
        input_shape (tuple): [batch, in_channels, height, width]
        kernel_shape (tuple): [out_channels, in_channels, kernel_h, kernel_w]
        stride (int or tuple): Vertical and horizontal stride
        use_padding (bool): Whether "same"-style padding of k // 2 is applied

    Returns:
        tuple: [batch, out_channels, out_h, out_w]

    Raises:
        ValueError: If the kernel leaves no output positions over the input
    """
    stride_h, stride_w = as_pair(stride, "stride")
    _, _, height, width = input_shape
    out_channels, _, kernel_h, kernel_w = kernel_shape
    pad_h, pad_w = _padding(kernel_h, kernel_w, use_padding)
    return (input_shape[0], out_channels,
            _window_positions(height, kernel_h, stride_h, pad_h),
            _window_positions(width, kernel_w, stride_w, pad_w))


def pool_output_shape(input_shape, pool_size, stride):
    """Output shape of ``max_pool``/``avg_pool`` for a 4D input shape."""
    pool_h, pool_w = as_pair(pool_size, "pool_size")
    stride_h, stride_w = as_pair(stride, "stride")
    batch, channels, height, width = input_shape
    return (batch, channels,
            _window_positions(height, pool_h, stride_h),
            _window_positions(width, pool_w, stride_w))


def _padding(kernel_h, kernel_w, use_padding):
    if use_padding:
        return kernel_h // 2, kernel_w // 2
    return 0, 0


def _padded_input(x, kernel_h, kernel_w, out_h, out_w, stride_h, stride_w, pad_h, pad_w):
    # Zero-pad so that every tap of every output position is addressable; taps
    # that land in the padding contribute nothing, same as skipping them.
    need_h = (out_h - 1) * stride_h + kernel_h
    need_w = (out_w - 1) * stride_w + kernel_w
    extra_h = max(0, need_h - (x.shape[2] + 2 * pad_h))
    extra_w = max(0, need_w - (x.shape[3] + 2 * pad_w))
    return np.pad(x, ((0, 0), (0, 0), (pad_h, pad_h + extra_h), (pad_w, pad_w + extra_w)),
                  mode='constant')


def convolve(input_tensor, kernel, stride=1, use_padding=False):
    """
    Cross-correlate a batch of images with a bank of kernels.

    Args:
        input_tensor (Tensor): [batch, in_channels, height, width]
        kernel (Tensor): [out_channels, in_channels, kernel_h, kernel_w]
        stride (int or tuple): Vertical and horizontal stride
        use_padding (bool): Apply symmetric zero padding of kernel // 2 per side

    Returns:
        Tensor: [batch, out_channels, out_h, out_w], no bias added
    """
    _require_rank(input_tensor, 4, "Input")
    _require_rank(kernel, 4, "Kernel")
    if input_tensor.shape[1] != kernel.shape[1]:
        raise ValueError(
            f"Input channels ({input_tensor.shape[1]}) must match kernel input "
            f"channels ({kernel.shape[1]})")

    stride_h, stride_w = as_pair(stride, "stride")
    out_shape = conv_output_shape(input_tensor.shape, kernel.shape, stride, use_padding)
    _, _, kernel_h, kernel_w = kernel.shape
    batch_size, out_channels, out_h, out_w = out_shape
    pad_h, pad_w = _padding(kernel_h, kernel_w, use_padding)

    x_padded = _padded_input(input_tensor.numpy(), kernel_h, kernel_w, out_h, out_w,
                             stride_h, stride_w, pad_h, pad_w)
    weight = kernel.numpy()

    output = np.zeros((batch_size, out_channels, out_h, out_w))
    for i in range(out_h):
        h_start = i * stride_h
        for j in range(out_w):
            w_start = j * stride_w
            patch = x_padded[:, :, h_start:h_start + kernel_h, w_start:w_start + kernel_w]
            # (B, Cin, kH, kW) x (Cout, Cin, kH, kW) -> (B, Cout)
            output[:, :, i, j] = np.tensordot(patch, weight, axes=([1, 2, 3], [1, 2, 3]))

    return Tensor._wrap(output.ravel(), out_shape)


def convolve_kernel_gradient(input_tensor, grad_output, kernel_shape, stride=1,
                             use_padding=False):
    """
    Gradient of ``convolve`` with respect to its kernel.

    For every output position and kernel offset, the output gradient is
    multiplied by the input value under that tap (taps in the padding or past
    the input edge contribute nothing).

    Returns:
        numpy.ndarray: Array of ``kernel_shape``
    """
    stride_h, stride_w = as_pair(stride, "stride")
    _, _, kernel_h, kernel_w = kernel_shape
    pad_h, pad_w = _padding(kernel_h, kernel_w, use_padding)
    grad = grad_output.numpy() if isinstance(grad_output, Tensor) else grad_output
    _, _, out_h, out_w = grad.shape

    x_padded = _padded_input(input_tensor.numpy(), kernel_h, kernel_w, out_h, out_w,
                             stride_h, stride_w, pad_h, pad_w)

    kernel_grad = np.zeros(kernel_shape)
    for i in range(out_h):
        h_start = i * stride_h
        for j in range(out_w):
            w_start = j * stride_w
            patch = x_padded[:, :, h_start:h_start + kernel_h, w_start:w_start + kernel_w]
            # (B, Cout) x (B, Cin, kH, kW) -> (Cout, Cin, kH, kW)
            kernel_grad += np.tensordot(grad[:, :, i, j], patch, axes=([0], [0]))
    return kernel_grad


def convolve_input_gradient(grad_output, kernel, input_shape, stride=1, use_padding=False):
    """
    Gradient of ``convolve`` with respect to its input (transposed convolution).

    Every output gradient is scattered back through the kernel onto the input
    cells its taps read; contributions that fall into the padding are dropped.

    Returns:
        numpy.ndarray: Array of ``input_shape``
    """
    stride_h, stride_w = as_pair(stride, "stride")
    weight = kernel.numpy()
    _, _, kernel_h, kernel_w = weight.shape
    pad_h, pad_w = _padding(kernel_h, kernel_w, use_padding)
    grad = grad_output.numpy() if isinstance(grad_output, Tensor) else grad_output
    batch_size, in_channels, height, width = input_shape
    _, _, out_h, out_w = grad.shape

    padded_h = max(height + 2 * pad_h, (out_h - 1) * stride_h + kernel_h)
    padded_w = max(width + 2 * pad_w, (out_w - 1) * stride_w + kernel_w)
    grad_padded = np.zeros((batch_size, in_channels, padded_h, padded_w))

    for i in range(out_h):
        h_start = i * stride_h
        for j in range(out_w):
            w_start = j * stride_w
            # (B, Cout) x (Cout, Cin, kH, kW) -> (B, Cin, kH, kW)
            grad_padded[:, :, h_start:h_start + kernel_h, w_start:w_start + kernel_w] += \
                np.tensordot(grad[:, :, i, j], weight, axes=([1], [0]))

    return grad_padded[:, :, pad_h:pad_h + height, pad_w:pad_w + width].copy()


def _pool_windows(input_tensor, pool_size, stride):
    _require_rank(input_tensor, 4, "Input")
    pool_h, pool_w = as_pair(pool_size, "pool_size")
    stride_h, stride_w = as_pair(stride, "stride")
    out_shape = pool_output_shape(input_tensor.shape, pool_size, stride)
    x = input_tensor.numpy()
    for i in range(out_shape[2]):
        for j in range(out_shape[3]):
            h_start, w_start = i * stride_h, j * stride_w
            # Slicing clips windows that run past the input edge.
            yield i, j, h_start, w_start, x[:, :, h_start:h_start + pool_h,
                                            w_start:w_start + pool_w]


def max_pool_with_indices(input_tensor, pool_size, stride):
    """
    Max pooling that also reports where each maximum came from.

    Ties resolve to the first cell of the window in row-major order and NaN
    cells are never selected.

    Returns:
        tuple: (Tensor of pooled values, int ndarray of shape
        [batch, channels, out_h, out_w, 2] holding the (h, w) input coordinates)
    """
    _require_rank(input_tensor, 4, "Input")
    out_shape = pool_output_shape(input_tensor.shape, pool_size, stride)
    output = np.zeros(out_shape)
    indices = np.zeros(out_shape + (2,), dtype=np.int64)

    for i, j, h_start, w_start, window in _pool_windows(input_tensor, pool_size, stride):
        batch_size, channels, win_h, win_w = window.shape
        flat = window.reshape(batch_size, channels, win_h * win_w)
        # NaN never beats a number; an all-NaN window pools to -inf.
        flat = np.where(np.isnan(flat), -np.inf, flat)
        winner = np.argmax(flat, axis=2)
        output[:, :, i, j] = np.take_along_axis(flat, winner[..., None], axis=2)[..., 0]
        indices[:, :, i, j, 0] = h_start + winner // win_w
        indices[:, :, i, j, 1] = w_start + winner % win_w

    return Tensor._wrap(output.ravel(), out_shape), indices


def max_pool(input_tensor, pool_size, stride):
    """
    Max pooling without padding.

    Args:
        input_tensor (Tensor): [batch, channels, height, width]
        pool_size (int or tuple): Window height and width
        stride (int or tuple): Vertical and horizontal stride

    Returns:
        Tensor: [batch, channels, out_h, out_w]
    """
    return max_pool_with_indices(input_tensor, pool_size, stride)[0]


def avg_pool(input_tensor, pool_size, stride):
    """Average pooling without padding; partial windows average their in-bounds cells."""
    _require_rank(input_tensor, 4, "Input")
    out_shape = pool_output_shape(input_tensor.shape, pool_size, stride)
    output = np.zeros(out_shape)
    for i, j, _, _, window in _pool_windows(input_tensor, pool_size, stride):
        output[:, :, i, j] = window.mean(axis=(2, 3))
    return Tensor._wrap(output.ravel(), out_shape)


def flatten(input_tensor):
    """Flat copy of the tensor's values, independent of its shape."""
    return input_tensor.data


def reshape(input_tensor, *new_shape):
    """
    Reinterpret the data under a new shape with the same element count.

    Raises:
        ValueError: If the element counts differ
    """
    if len(new_shape) == 1 and isinstance(new_shape[0], (tuple, list)):
        new_shape = tuple(new_shape[0])
    new_size = 1
    for dim in new_shape:
        new_size *= int(dim)
    if new_size != input_tensor.size:
        raise ValueError(
            f"Cannot reshape tensor of size {input_tensor.size} to new shape "
            f"{format_shape(new_shape)} with size {new_size}")
    return Tensor(new_shape, input_tensor.data)


def expand_dims(input_tensor, axis):
    """Insert a size-1 dimension at ``axis`` (0 <= axis <= rank)."""
    if axis < 0 or axis > input_tensor.rank:
        raise ValueError(
            f"Axis {axis} is out of range for a tensor of rank {input_tensor.rank}")
    shape = input_tensor.shape
    return Tensor(shape[:axis] + (1,) + shape[axis:], input_tensor.data)


def add(a, b):
    """
    Elementwise sum of two tensors of identical shape.

    Raises:
        ValueError: If the shapes differ (no broadcasting)
    """
    if a.shape != b.shape:
        raise ValueError(
            f"Tensor shapes must match for addition: {format_shape(a.shape)} vs "
            f"{format_shape(b.shape)}")
    return Tensor._wrap(a.data + b.data, a.shape)


def transpose(input_tensor, *dims):
    """
    Permute the axes of a tensor, physically reordering its data.

    Args:
        input_tensor (Tensor): Tensor to transpose
        *dims (int): New axis order, a permutation of 0..rank-1

    Returns:
        Tensor: Contiguous tensor with shape ``[shape[d] for d in dims]``
    """
    if len(dims) == 1 and isinstance(dims[0], (tuple, list)):
        dims = tuple(dims[0])
    if len(dims) != input_tensor.rank:
        raise ValueError("Dimensions array must have the same length as tensor rank")
    if sorted(int(d) for d in dims) != list(range(input_tensor.rank)):
        raise ValueError(f"Invalid dimensions array: {list(dims)}")

    permuted = np.transpose(input_tensor.numpy(), dims)
    return Tensor._wrap(np.ascontiguousarray(permuted).ravel(), permuted.shape)
