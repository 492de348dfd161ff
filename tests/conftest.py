"""
PyTest Configuration for CrossGPU Tests

Provides fixtures, markers, and test setup.
"""
import sys
from pathlib import Path

import numpy as np
import pytest

# Add src directory to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))


def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "gpu: mark test as requiring a wgpu adapter")


@pytest.fixture(autouse=True)
def reset_global_state():
    """Restore default configuration and registry around every test."""
    from crossgpu.config import configure
    from crossgpu.registry.device_registry import reset_default_registry

    configure(reset=True)
    reset_default_registry()
    yield
    configure(reset=True)
    reset_default_registry()


@pytest.fixture
def rng() -> np.random.Generator:
    """Seeded numpy generator."""
    return np.random.default_rng(1234)


@pytest.fixture
def cpu_device():
    """Fresh CPU device, closed after the test."""
    from crossgpu.backends.cpu import CpuDevice

    device = CpuDevice()
    yield device
    device.close()


@pytest.fixture
def make_tensor():
    """Build an F32 Tensor from a numpy-compatible value."""
    from crossgpu.tensor import Tensor

    def _make(values, dtype=np.float32):
        return Tensor.from_numpy(np.asarray(values, dtype=dtype))

    return _make
