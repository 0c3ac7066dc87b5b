"""Re-export from core.errors."""

from mirror.core.errors import (
    DeliveryFailed,
    DuplicateRelay,
    EndpointProvisioningFailed,
    InvalidChannel,
    InvalidMode,
    MirrorConfigurationError,
    MirrorError,
    PersistenceFailed,
)

__all__ = [
    "DeliveryFailed",
    "DuplicateRelay",
    "EndpointProvisioningFailed",
    "InvalidChannel",
    "InvalidMode",
    "MirrorConfigurationError",
    "MirrorError",
    "PersistenceFailed",
]
