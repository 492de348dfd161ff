"""Tests for the host Tensor container."""
from __future__ import annotations

import struct

import numpy as np
import pytest


class TestTensorCreation:
    """Tests for Tensor constructors."""

    def test_create_zero_filled(self) -> None:
        """create([2, 2], F32) allocates 16 zero bytes."""
        from crossgpu.enums import DType
        from crossgpu.tensor import Tensor

        t = Tensor.create([2, 2], DType.F32)
        assert len(t.data) == 16
        assert t.data == bytearray(16)
        assert t.shape == (2, 2)
        assert t.dtype is DType.F32

    @pytest.mark.parametrize(
        "dtype,shape,nbytes",
        [("f16", [3], 6), ("i8", [3], 3), ("i4", [3], 2), ("i4", [4], 2), ("i4", [0], 0)],
    )
    def test_create_buffer_sizes(self, dtype: str, shape: list, nbytes: int) -> None:
        """Buffer size follows the dtype width rule."""
        from crossgpu.enums import DType
        from crossgpu.tensor import Tensor

        assert Tensor.create(shape, DType(dtype)).nbytes == nbytes

    def test_from_bytes_wrong_size(self) -> None:
        """from_bytes rejects a buffer of the wrong length."""
        from crossgpu.enums import DType
        from crossgpu.exceptions import InvalidDimensionError
        from crossgpu.tensor import Tensor

        with pytest.raises(InvalidDimensionError) as exc_info:
            Tensor.from_bytes([2, 2], DType.F32, bytes(12))
        assert exc_info.value.expected_size == 16
        assert exc_info.value.actual_size == 12

    def test_from_bytes_i4_packed(self) -> None:
        """An I4 tensor of 3 elements takes 2 bytes."""
        from crossgpu.enums import DType
        from crossgpu.tensor import Tensor

        t = Tensor.from_bytes([3], DType.I4, b"\x12\x30")
        assert t.numel() == 3
        assert t.nbytes == 2

    def test_from_bytes_copies(self) -> None:
        """The tensor owns its buffer."""
        from crossgpu.enums import DType
        from crossgpu.tensor import Tensor

        source = bytearray(4)
        t = Tensor.from_bytes([4], DType.I8, source)
        source[0] = 7
        assert t.data[0] == 0

    def test_from_floats(self) -> None:
        """from_floats always produces F32."""
        from crossgpu.enums import DType
        from crossgpu.tensor import Tensor

        t = Tensor.from_floats([2, 2], [1.0, 2.0, 3.0, 4.0])
        assert t.dtype is DType.F32
        assert list(t.as_float_view()) == [1.0, 2.0, 3.0, 4.0]

    def test_from_floats_count_mismatch(self) -> None:
        """from_floats rejects a wrong value count."""
        from crossgpu.exceptions import InvalidDimensionError
        from crossgpu.tensor import Tensor

        with pytest.raises(InvalidDimensionError):
            Tensor.from_floats([2, 2], [1.0, 2.0, 3.0])

    def test_negative_dimension(self) -> None:
        """Negative dimensions are rejected."""
        from crossgpu.enums import DType
        from crossgpu.exceptions import InvalidDimensionError
        from crossgpu.tensor import Tensor

        with pytest.raises(InvalidDimensionError):
            Tensor.create([2, -1], DType.F32)

    def test_from_numpy(self) -> None:
        """from_numpy keeps shape and narrows float64 to F32."""
        from crossgpu.enums import DType
        from crossgpu.tensor import Tensor

        t = Tensor.from_numpy(np.arange(6, dtype=np.float64).reshape(2, 3))
        assert t.shape == (2, 3)
        assert t.dtype is DType.F32
        np.testing.assert_array_equal(t.to_numpy(), np.arange(6).reshape(2, 3))

    def test_from_numpy_unsupported(self) -> None:
        """from_numpy rejects dtypes without a DType."""
        from crossgpu.exceptions import TensorTypeError
        from crossgpu.tensor import Tensor

        with pytest.raises(TensorTypeError):
            Tensor.from_numpy(np.zeros(3, dtype=np.int32))


class TestTensorQueries:
    """Tests for numel and ndim."""

    def test_numel_and_ndim(self) -> None:
        """numel is the product of dims and ndim their count."""
        from crossgpu.enums import DType
        from crossgpu.tensor import Tensor

        t = Tensor.create([2, 3, 4], DType.F32)
        assert t.numel() == 24
        assert t.ndim() == 3

    def test_zero_dim_tensor(self) -> None:
        """A zero-sized dimension gives numel 0."""
        from crossgpu.enums import DType
        from crossgpu.tensor import Tensor

        t = Tensor.create([0, 5], DType.F32)
        assert t.numel() == 0
        assert t.nbytes == 0


class TestTensorReshape:
    """Tests for reshape."""

    def test_reshape(self) -> None:
        """reshape keeps dtype and bytes."""
        from crossgpu.tensor import Tensor

        t = Tensor.from_floats([2, 3], [1, 2, 3, 4, 5, 6])
        r = t.reshape([3, 2])
        assert r.shape == (3, 2)
        assert r.dtype is t.dtype
        assert r.data == t.data

    def test_reshape_copies(self) -> None:
        """The reshaped tensor does not alias the original."""
        from crossgpu.tensor import Tensor

        t = Tensor.from_floats([4], [1, 2, 3, 4])
        r = t.reshape([2, 2])
        t.as_float_view_mut()[0] = 9.0
        assert r.as_float_view()[0] == 1.0

    def test_reshape_mismatch_reports_counts(self) -> None:
        """reshape reports element counts on mismatch."""
        from crossgpu.enums import DType
        from crossgpu.exceptions import ShapeMismatchError
        from crossgpu.tensor import Tensor

        t = Tensor.create([2, 2], DType.F32)
        with pytest.raises(ShapeMismatchError) as exc_info:
            t.reshape([2, 3])
        assert exc_info.value.expected == 4
        assert exc_info.value.actual == 6

    def test_reshape_i4_keeps_packing(self) -> None:
        """reshape never converts dtype, even for packed I4."""
        from crossgpu.enums import DType
        from crossgpu.tensor import Tensor

        t = Tensor.from_bytes([4], DType.I4, b"\x12\x34")
        r = t.reshape([2, 2])
        assert r.dtype is DType.I4
        assert bytes(r.data) == b"\x12\x34"


class TestTensorFloatView:
    """Tests for as_float_view and as_float_view_mut."""

    def test_view_requires_f32(self) -> None:
        """Non-F32 tensors raise a type error."""
        from crossgpu.enums import DType
        from crossgpu.exceptions import TensorTypeError
        from crossgpu.tensor import Tensor

        t = Tensor.create([4], DType.I8)
        with pytest.raises(TensorTypeError):
            t.as_float_view()
        with pytest.raises(TypeError):
            t.as_float_view_mut()

    def test_mutable_view_writes_through(self) -> None:
        """Writes through the mutable view land in the tensor."""
        from crossgpu.tensor import Tensor

        t = Tensor.from_floats([2], [0.0, 0.0])
        view = t.as_float_view_mut()
        view[1] = 3.5
        assert bytes(t.data[4:8]) == struct.pack("<f", 3.5)
        assert t.as_float_view()[1] == 3.5

    def test_read_only_view(self) -> None:
        """The read-only view rejects writes."""
        from crossgpu.tensor import Tensor

        t = Tensor.from_floats([2], [1.0, 2.0])
        with pytest.raises(ValueError):
            t.as_float_view()[0] = 5.0

    def test_data_is_read_only(self) -> None:
        """The byte buffer cannot be written or resized through data."""
        from crossgpu.tensor import Tensor

        t = Tensor.from_floats([2], [1.0, 2.0])
        with pytest.raises(TypeError):
            t.data[0] = 0xFF
        assert not hasattr(t.data, "extend")
        assert t.nbytes == 8
        assert list(t.as_float_view()) == [1.0, 2.0]

    def test_view_is_bit_exact(self) -> None:
        """NaN payloads and signed zero survive the view."""
        from crossgpu.enums import DType
        from crossgpu.tensor import Tensor

        raw = struct.pack("<II", 0x7FA00001, 0x80000000)
        t = Tensor.from_bytes([2], DType.F32, raw)
        bits = t.as_float_view().view(np.uint32)
        assert int(bits[0]) == 0x7FA00001
        assert int(bits[1]) == 0x80000000


class TestTensorMisc:
    """Tests for clone, equality and numpy conversion."""

    def test_clone_is_independent(self) -> None:
        """clone copies the buffer."""
        from crossgpu.tensor import Tensor

        t = Tensor.from_floats([2], [1.0, 2.0])
        c = t.clone()
        assert c == t
        c.as_float_view_mut()[0] = 7.0
        assert c != t

    def test_equality_compares_shape_and_dtype(self) -> None:
        """Tensors with equal bytes but different layout are unequal."""
        from crossgpu.enums import DType
        from crossgpu.tensor import Tensor

        flat = Tensor.create([4], DType.I8)
        assert flat != flat.reshape([2, 2])
        assert flat != Tensor.create([2], DType.F16)
        assert flat != "not a tensor"

    def test_to_numpy_i4_rejected(self) -> None:
        """Packed I4 has no numpy form."""
        from crossgpu.enums import DType
        from crossgpu.exceptions import TensorTypeError
        from crossgpu.tensor import Tensor

        with pytest.raises(TensorTypeError):
            Tensor.create([2], DType.I4).to_numpy()

    def test_repr(self) -> None:
        """repr names shape and dtype."""
        from crossgpu.enums import DType
        from crossgpu.tensor import Tensor

        assert repr(Tensor.create([2, 2], DType.F16)) == "Tensor(shape=[2, 2], dtype=F16, nbytes=8)"
