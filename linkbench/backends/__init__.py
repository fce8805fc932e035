"""
Compute backends implementing the hardware operation capability.
"""

from __future__ import annotations

from linkbench.backends.host_backend import HostBackend
from linkbench.backends.torch_backend import DeviceInfo, TorchCudaBackend, list_devices
from linkbench.errors import DeviceSelectionError
from linkbench.operations import Backend

BACKENDS = {
    "cuda": TorchCudaBackend,
    "cpu": HostBackend,
}


def create_backend(name: str, device_index: int | None = None) -> Backend:
    """Instantiate a backend by name.

    Raises:
        DeviceSelectionError: for an unknown backend or when no compatible device exists.
    """
    if name not in BACKENDS:
        raise DeviceSelectionError(f"Unknown backend {name!r}; choose from {', '.join(BACKENDS)}")
    if name == "cuda":
        return TorchCudaBackend(device_index)
    return HostBackend()


__all__ = [
    "BACKENDS",
    "DeviceInfo",
    "HostBackend",
    "TorchCudaBackend",
    "create_backend",
    "list_devices",
]
