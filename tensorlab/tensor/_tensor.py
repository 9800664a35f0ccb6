"""
N-dimensional tensor with a flat row-major buffer.
"""
import numpy as np

from ..common.utils import as_int, format_shape


class Tensor:
    """
    Fixed-shape, mutable-contents N-dimensional array.

    The values live in a flat float64 buffer; ``strides[i]`` is the number of
    buffer elements to skip to advance one step along axis ``i``, so the last
    axis is contiguous. A tensor always owns its buffer: data handed to the
    constructor is copied, and ``data``/``numpy()`` return copies.
    """

    MAX_SIZE = 2**31 - 1

    def __init__(self, shape, data=None):
        """
        Create a tensor of the given shape.

        Args:
            shape (int or sequence of int): Dimensions, each positive
            data (array-like, optional): Flat values (anything numpy can ravel);
                zero-filled when omitted

        Raises:
            ValueError: If the shape is empty, holds a non-positive or oversized
                dimension, or ``data`` length does not match the shape
        """
        if isinstance(shape, (int, np.integer)):
            shape = (shape,)
        shape = tuple(as_int(d, "Tensor dimension") for d in shape)
        if len(shape) == 0:
            raise ValueError("Tensor must have at least one dimension")
        if any(d <= 0 for d in shape):
            raise ValueError("All dimensions must be positive, got " + format_shape(shape))

        size = 1
        for dim in shape:
            size *= dim
            if size > self.MAX_SIZE:
                raise ValueError(
                    f"Tensor shape {format_shape(shape)} exceeds the maximum of "
                    f"{self.MAX_SIZE} elements")

        self._shape = shape
        self._strides = self._compute_strides(shape)

        if data is None:
            self._data = np.zeros(size, dtype=np.float64)
        else:
            flat = np.array(data, dtype=np.float64).ravel()
            if flat.size != size:
                raise ValueError(
                    f"Data length {flat.size} doesn't match the shape size {size}")
            self._data = flat

    @staticmethod
    def _compute_strides(shape):
        strides = [0] * len(shape)
        stride = 1
        for i in range(len(shape) - 1, -1, -1):
            strides[i] = stride
            stride *= shape[i]
        return tuple(strides)

    @classmethod
    def from_numpy(cls, array):
        """Create a tensor with the shape and (copied) values of a numpy array."""
        array = np.asarray(array, dtype=np.float64)
        return cls(array.shape, array)

    @classmethod
    def _wrap(cls, flat, shape):
        # Adopts ``flat`` without copying; only for buffers created by tensorlab itself.
        tensor = cls.__new__(cls)
        tensor._shape = tuple(shape)
        tensor._strides = cls._compute_strides(tensor._shape)
        tensor._data = flat
        return tensor

    @property
    def shape(self):
        return self._shape

    @property
    def strides(self):
        return self._strides

    @property
    def rank(self):
        return len(self._shape)

    ndim = rank

    @property
    def size(self):
        return self._data.size

    @property
    def data(self):
        """Copy of the flat buffer."""
        return self._data.copy()

    def numpy(self):
        """Copy of the values as a numpy array of this tensor's shape."""
        return self._data.reshape(self._shape).copy()

    def _flat_index(self, indices):
        if len(indices) == 1 and isinstance(indices[0], (tuple, list)):
            indices = tuple(indices[0])
        if len(indices) != len(self._shape):
            raise ValueError(
                f"Number of indices ({len(indices)}) doesn't match tensor "
                f"dimensionality ({len(self._shape)})")

        index = 0
        for axis, (i, dim, stride) in enumerate(zip(indices, self._shape, self._strides)):
            i = as_int(i, f"Index for dimension {axis}")
            if i < 0 or i >= dim:
                raise IndexError(
                    f"Index {i} is out of bounds for dimension {axis} with size {dim}")
            index += i * stride
        return index

    def get(self, *indices):
        """
        Value at the given coordinates.

        Raises:
            ValueError: If the number of indices differs from the rank
            IndexError: If any index is outside its dimension
        """
        return float(self._data[self._flat_index(indices)])

    def set(self, value, *indices):
        """Set the value at the given coordinates (same checks as ``get``)."""
        self._data[self._flat_index(indices)] = value

    def __getitem__(self, indices):
        if not isinstance(indices, tuple):
            indices = (indices,)
        return self.get(*indices)

    def __setitem__(self, indices, value):
        if not isinstance(indices, tuple):
            indices = (indices,)
        self.set(value, *indices)

    def fill(self, value):
        """Set every element to ``value``; returns this tensor."""
        self._data.fill(value)
        return self

    def map(self, function):
        """
        Apply ``function`` to every element.

        Args:
            function (callable): Scalar function float -> float

        Returns:
            Tensor: New tensor of the same shape; this tensor is unchanged
        """
        mapped = np.fromiter((function(v) for v in self._data), dtype=np.float64,
                             count=self._data.size)
        return Tensor._wrap(mapped, self._shape)

    def copy(self):
        """Deep copy with an independent buffer."""
        return Tensor._wrap(self._data.copy(), self._shape)

    def allclose(self, other, rtol=1e-05, atol=1e-08):
        """True when shapes match and values agree within tolerance."""
        return (self._shape == other.shape
                and bool(np.allclose(self._data, other._data, rtol=rtol, atol=atol)))

    def __eq__(self, other):
        if not isinstance(other, Tensor):
            return NotImplemented
        return self._shape == other._shape and bool(np.array_equal(self._data, other._data))

    __hash__ = None

    def __len__(self):
        return self._shape[0]

    def __repr__(self):
        return f"Tensor(shape={format_shape(self._shape)}, data={self._data.tolist()})"
