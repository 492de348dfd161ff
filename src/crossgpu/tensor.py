"""
CrossGPU Tensor

Host-resident n-dimensional array: an explicit shape, an element dtype,
and a raw little-endian byte buffer. Pure data with no device awareness.

Buffer size rule:
- F32/F16/I8: numel * dtype.byte_width bytes
- I4: ceil(numel / 2) bytes, two elements per byte
"""
from __future__ import annotations

import math
from typing import Any, Final, Iterable, Sequence

import numpy as np

from crossgpu.enums import DType
from crossgpu.exceptions import (
    InvalidDimensionError,
    ShapeMismatchError,
    TensorTypeError,
)

# Element layout for dtypes numpy can represent directly
NUMPY_DTYPES: Final[dict[DType, np.dtype]] = {
    DType.F32: np.dtype("<f4"),
    DType.F16: np.dtype("<f2"),
    DType.I8: np.dtype("i1"),
}

_FROM_NUMPY: Final[dict[np.dtype, DType]] = {
    np.dtype("float32"): DType.F32,
    np.dtype("float16"): DType.F16,
    np.dtype("int8"): DType.I8,
}


def _normalize_shape(shape: Iterable[int]) -> tuple[int, ...]:
    """Validate and freeze a shape."""
    dims = tuple(shape)
    for dim in dims:
        if isinstance(dim, bool) or not isinstance(dim, (int, np.integer)):
            raise InvalidDimensionError(
                f"Dimension {dim!r} is not an integer", shape=None
            )
        if dim < 0:
            raise InvalidDimensionError(
                f"Dimension {dim} is negative", shape=dims
            )
    return tuple(int(d) for d in dims)


class Tensor:
    """N-dimensional array container.

    Shape and dtype are fixed for the lifetime of the object; reshape
    returns a new Tensor. The byte buffer is owned exclusively by this
    instance until cloned or uploaded.

    Attributes:
        shape: Dimension sizes.
        dtype: Element type.
        data: Raw byte buffer (bytearray).

    Example:
        >>> t = Tensor.create([2, 2], DType.F32)
        >>> len(t.data)
        16
    """

    __slots__ = ("_shape", "_dtype", "_data")

    def __init__(
        self,
        shape: Sequence[int],
        dtype: DType,
        data: bytes | bytearray | memoryview,
    ) -> None:
        """Initialize Tensor from an already validated buffer.

        Prefer the create/from_bytes/from_floats constructors.

        Args:
            shape: Dimension sizes.
            dtype: Element type.
            data: Byte buffer, copied.

        Raises:
            InvalidDimensionError: If the buffer length is wrong.
        """
        self._shape = _normalize_shape(shape)
        self._dtype = DType(dtype)
        expected = self._dtype.storage_bytes(math.prod(self._shape))
        if len(data) != expected:
            raise InvalidDimensionError(
                f"Data size {len(data)} does not match expected size "
                f"{expected} for shape {list(self._shape)}",
                expected_size=expected,
                actual_size=len(data),
                shape=self._shape,
            )
        self._data = bytearray(data)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def create(cls, shape: Sequence[int], dtype: DType) -> "Tensor":
        """Create a zero-filled tensor.

        Args:
            shape: Dimension sizes.
            dtype: Element type.

        Returns:
            New Tensor whose buffer is all zero bytes.
        """
        dims = _normalize_shape(shape)
        return cls(dims, dtype, bytearray(DType(dtype).storage_bytes(math.prod(dims))))

    @classmethod
    def from_bytes(
        cls,
        shape: Sequence[int],
        dtype: DType,
        data: bytes | bytearray | memoryview,
    ) -> "Tensor":
        """Create a tensor from raw bytes.

        Args:
            shape: Dimension sizes.
            dtype: Element type.
            data: Raw buffer; length must match shape and dtype.

        Returns:
            New Tensor owning a copy of data.

        Raises:
            InvalidDimensionError: If len(data) does not match.
        """
        return cls(shape, dtype, data)

    @classmethod
    def from_floats(
        cls,
        shape: Sequence[int],
        values: Sequence[float] | np.ndarray,
    ) -> "Tensor":
        """Create an F32 tensor from a float sequence.

        Args:
            shape: Dimension sizes.
            values: Flat (or any-shaped) sequence of numbers.

        Returns:
            New F32 Tensor.

        Raises:
            InvalidDimensionError: If the value count differs from numel.
        """
        dims = _normalize_shape(shape)
        array = np.asarray(values, dtype=NUMPY_DTYPES[DType.F32]).ravel()
        expected = math.prod(dims)
        if array.size != expected:
            raise InvalidDimensionError(
                f"Data size {array.size} does not match expected size "
                f"{expected} for shape {list(dims)}",
                expected_size=expected,
                actual_size=int(array.size),
                shape=dims,
            )
        return cls(dims, DType.F32, array.tobytes())

    @classmethod
    def from_numpy(cls, array: np.ndarray) -> "Tensor":
        """Create a tensor from a numpy array.

        float64 input is narrowed to F32.

        Args:
            array: Source array (float32, float16, int8 or float64).

        Returns:
            New Tensor with the array's shape.

        Raises:
            TensorTypeError: If the array dtype has no DType.
        """
        if array.dtype == np.float64:
            array = array.astype(np.float32)
        dtype = _FROM_NUMPY.get(array.dtype.newbyteorder("="))
        if dtype is None:
            raise TensorTypeError(
                f"Unsupported numpy dtype {array.dtype} for Tensor"
            )
        contiguous = np.ascontiguousarray(array, dtype=NUMPY_DTYPES[dtype])
        return cls(array.shape, dtype, contiguous.tobytes())

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def shape(self) -> tuple[int, ...]:
        """Dimension sizes."""
        return self._shape

    @property
    def dtype(self) -> DType:
        """Element type."""
        return self._dtype

    @property
    def data(self) -> memoryview:
        """Read-only view of the raw byte buffer.

        Element writes go through as_float_view_mut().
        """
        return memoryview(self._data).toreadonly()

    @property
    def nbytes(self) -> int:
        """Length of the byte buffer."""
        return len(self._data)

    def numel(self) -> int:
        """Get the total number of logical elements."""
        return math.prod(self._shape)

    def ndim(self) -> int:
        """Get the number of dimensions."""
        return len(self._shape)

    # ------------------------------------------------------------------
    # Transformations
    # ------------------------------------------------------------------

    def reshape(self, new_shape: Sequence[int]) -> "Tensor":
        """Return a tensor with a new shape and a copy of the bytes.

        Only the element count must match; dtype is never converted.

        Args:
            new_shape: Target dimension sizes.

        Returns:
            New Tensor with identical dtype.

        Raises:
            ShapeMismatchError: If the element counts differ.
        """
        dims = _normalize_shape(new_shape)
        old_size = self.numel()
        new_size = math.prod(dims)
        if old_size != new_size:
            raise ShapeMismatchError(expected=old_size, actual=new_size)
        return Tensor(dims, self._dtype, self._data)

    def clone(self) -> "Tensor":
        """Return an independent copy of this tensor."""
        return Tensor(self._shape, self._dtype, self._data)

    def as_float_view(self) -> np.ndarray:
        """Get the buffer as a read-only flat float32 array.

        Returns:
            1-D float32 array sharing memory with this tensor.

        Raises:
            TensorTypeError: If dtype is not F32.
        """
        self._require_f32()
        return np.frombuffer(
            memoryview(self._data).toreadonly(), dtype=NUMPY_DTYPES[DType.F32]
        )

    def as_float_view_mut(self) -> np.ndarray:
        """Get the buffer as a writable flat float32 array.

        Writes through the returned array land in this tensor's buffer.

        Returns:
            1-D float32 array sharing memory with this tensor.

        Raises:
            TensorTypeError: If dtype is not F32.
        """
        self._require_f32()
        return np.frombuffer(self._data, dtype=NUMPY_DTYPES[DType.F32])

    def to_numpy(self) -> np.ndarray:
        """Copy the tensor into a numpy array of its shape.

        Raises:
            TensorTypeError: For packed I4 tensors.
        """
        np_dtype = NUMPY_DTYPES.get(self._dtype)
        if np_dtype is None:
            raise TensorTypeError(
                f"{self._dtype.name} tensors have no numpy representation"
            )
        return np.frombuffer(bytes(self._data), dtype=np_dtype).reshape(self._shape).copy()

    def _require_f32(self) -> None:
        if self._dtype is not DType.F32:
            raise TensorTypeError(
                f"Tensor is not F32 type (got {self._dtype.name})"
            )

    # ------------------------------------------------------------------
    # Dunder
    # ------------------------------------------------------------------

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Tensor):
            return NotImplemented
        return (
            self._shape == other._shape
            and self._dtype is other._dtype
            and self._data == other._data
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return (
            f"Tensor(shape={list(self._shape)}, dtype={self._dtype.name}, "
            f"nbytes={len(self._data)})"
        )
