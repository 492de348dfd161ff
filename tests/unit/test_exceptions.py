"""Exception Hierarchy Tests for CrossGPU."""
from __future__ import annotations

import pytest


class TestExceptionHierarchy:
    """Tests for exception class hierarchy."""

    @pytest.mark.parametrize(
        "name",
        [
            "ShapeMismatchError",
            "InvalidDimensionError",
            "TensorTypeError",
            "GpuError",
            "QuantizationError",
            "ModelLoadError",
            "SerializationError",
            "IoError",
        ],
    )
    def test_subclass_of_base(self, name: str) -> None:
        """Every error derives from CrossGPUError."""
        from crossgpu import exceptions

        assert issubclass(getattr(exceptions, name), exceptions.CrossGPUError)

    def test_tensor_type_error_is_type_error(self) -> None:
        """TensorTypeError can be caught as TypeError."""
        from crossgpu.exceptions import TensorTypeError

        assert issubclass(TensorTypeError, TypeError)


class TestExceptionMessages:
    """Tests for messages and context."""

    def test_shape_mismatch_counts(self) -> None:
        """ShapeMismatchError carries element counts."""
        from crossgpu.exceptions import ShapeMismatchError

        err = ShapeMismatchError(expected=4, actual=6)
        assert err.expected == 4
        assert err.actual == 6
        assert "expected 4 elements, got 6" in str(err)
        assert err.context == {"expected": 4, "actual": 6}

    def test_invalid_dimension_context(self) -> None:
        """InvalidDimensionError records sizes and shape."""
        from crossgpu.exceptions import InvalidDimensionError

        err = InvalidDimensionError(
            "bad buffer", expected_size=16, actual_size=12, shape=[2, 2]
        )
        assert str(err).startswith("Invalid tensor dimension: ")
        assert err.shape == (2, 2)
        assert err.context["expected_size"] == 16

    def test_gpu_error_device(self) -> None:
        """GpuError records the device name."""
        from crossgpu.exceptions import GpuError

        err = GpuError("No input tensors", device="CPU")
        assert str(err) == "GPU operation failed: No input tensors"
        assert err.device == "CPU"
        assert err.context == {"device": "CPU"}

    def test_gpu_error_without_device(self) -> None:
        """GpuError context is empty without a device."""
        from crossgpu.exceptions import GpuError

        assert GpuError("x").context == {}

    def test_quantization_error_prefix(self) -> None:
        """QuantizationError message prefix."""
        from crossgpu.exceptions import QuantizationError

        assert str(QuantizationError("bad")) == "Quantization error: bad"

    def test_model_load_error_path(self) -> None:
        """ModelLoadError records the path."""
        from crossgpu.exceptions import ModelLoadError

        err = ModelLoadError("truncated", path="model.pt")
        assert err.path == "model.pt"
        assert "truncated" in str(err)

    def test_io_error_chains_os_error(self) -> None:
        """IoError keeps the OSError as __cause__."""
        from crossgpu.exceptions import IoError

        original = FileNotFoundError(2, "No such file", "missing.bin")
        err = IoError(original, path="missing.bin")
        assert err.__cause__ is original
        assert err.original_error is original
        assert err.context["error_type"] == "FileNotFoundError"
        assert str(err).startswith("IO error: ")

    def test_repr_includes_context(self) -> None:
        """repr shows class, message and context."""
        from crossgpu.exceptions import GpuError

        text = repr(GpuError("boom", device="CPU"))
        assert text.startswith("GpuError(")
        assert "context=" in text

    def test_catch_all_with_base(self) -> None:
        """A single except clause catches every CrossGPU error."""
        from crossgpu.exceptions import CrossGPUError, QuantizationError

        with pytest.raises(CrossGPUError):
            raise QuantizationError("x")
