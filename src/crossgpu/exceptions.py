"""
CrossGPU Exception Hierarchy

Every error surfaced to callers derives from CrossGPUError, so malformed
input can always be caught with a single except clause.
"""
from __future__ import annotations

from typing import Any, Optional, Sequence


class CrossGPUError(Exception):
    """Base exception for all CrossGPU errors.

    Attributes:
        message: Human-readable error description.
        context: Optional dict of additional context for debugging.
    """

    def __init__(
        self,
        message: str,
        *,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        """Initialize CrossGPUError.

        Args:
            message: Error message.
            context: Optional context dict.
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __repr__(self) -> str:
        """Detailed representation for debugging."""
        ctx_str = f", context={self.context}" if self.context else ""
        return f"{self.__class__.__name__}({self.message!r}{ctx_str})"


class ShapeMismatchError(CrossGPUError):
    """Raised when element counts are incompatible.

    Reshape reports total element counts, not full shapes.

    Attributes:
        expected: Element count of the source.
        actual: Element count requested.
    """

    def __init__(
        self,
        expected: int,
        actual: int,
        *,
        message: Optional[str] = None,
    ) -> None:
        """Initialize ShapeMismatchError.

        Args:
            expected: Expected element count.
            actual: Actual element count.
            message: Optional custom message.
        """
        self.expected = expected
        self.actual = actual

        if message is None:
            message = (
                f"Tensor shape mismatch: expected {expected} elements, "
                f"got {actual}"
            )

        super().__init__(
            message,
            context={"expected": expected, "actual": actual},
        )


class InvalidDimensionError(CrossGPUError):
    """Raised when a buffer does not match its shape/dtype.

    Attributes:
        expected_size: Size derived from shape and dtype.
        actual_size: Size actually supplied.
        shape: Shape the buffer was checked against.
    """

    def __init__(
        self,
        message: str,
        *,
        expected_size: Optional[int] = None,
        actual_size: Optional[int] = None,
        shape: Optional[Sequence[int]] = None,
    ) -> None:
        """Initialize InvalidDimensionError.

        Args:
            message: Error message.
            expected_size: Expected length.
            actual_size: Supplied length.
            shape: Shape being validated.
        """
        self.expected_size = expected_size
        self.actual_size = actual_size
        self.shape = tuple(shape) if shape is not None else None

        super().__init__(
            f"Invalid tensor dimension: {message}",
            context={
                "expected_size": expected_size,
                "actual_size": actual_size,
                "shape": self.shape,
            },
        )


class TensorTypeError(CrossGPUError, TypeError):
    """Raised when a tensor has the wrong dtype for a view or conversion."""


class GpuError(CrossGPUError):
    """Raised when a device operation fails.

    Covers construction failure, unsupported platforms, empty kernel
    input, and handles that belong to another device.

    Attributes:
        device: Name of the device involved, if known.
    """

    def __init__(
        self,
        message: str,
        *,
        device: Optional[str] = None,
    ) -> None:
        """Initialize GpuError.

        Args:
            message: Error message.
            device: Device name.
        """
        self.device = device
        super().__init__(
            f"GPU operation failed: {message}",
            context={"device": device} if device else None,
        )


class QuantizationError(CrossGPUError):
    """Raised for wrong source dtypes or invalid quantization params."""

    def __init__(self, message: str) -> None:
        """Initialize QuantizationError.

        Args:
            message: Error message.
        """
        super().__init__(f"Quantization error: {message}")


class ModelLoadError(CrossGPUError):
    """Raised when a persisted model cannot be decoded.

    Attributes:
        path: File the model was read from.
    """

    def __init__(self, message: str, *, path: Optional[str] = None) -> None:
        """Initialize ModelLoadError.

        Args:
            message: Error message.
            path: Model file path.
        """
        self.path = path
        super().__init__(
            f"Model loading error: {message}",
            context={"path": path} if path else None,
        )


class SerializationError(CrossGPUError):
    """Raised when a model cannot be encoded.

    Attributes:
        path: Destination file.
    """

    def __init__(self, message: str, *, path: Optional[str] = None) -> None:
        """Initialize SerializationError.

        Args:
            message: Error message.
            path: Destination path.
        """
        self.path = path
        super().__init__(
            f"Serialization error: {message}",
            context={"path": path} if path else None,
        )


class IoError(CrossGPUError):
    """Raised when the underlying storage fails.

    The original OSError is chained as __cause__.

    Attributes:
        path: File involved.
        original_error: The underlying OSError.
    """

    def __init__(
        self,
        original_error: OSError,
        *,
        path: Optional[str] = None,
    ) -> None:
        """Initialize IoError.

        Args:
            original_error: The OSError raised by the filesystem.
            path: File involved.
        """
        self.path = path
        self.original_error = original_error
        super().__init__(
            f"IO error: {original_error}",
            context={
                "path": path,
                "error_type": type(original_error).__name__,
            },
        )
        self.__cause__ = original_error
