"""Mirror domain exceptions."""

from __future__ import annotations


class MirrorError(Exception):
    """Base for mirror domain errors."""

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        details: dict[str, object] | None = None,
        original_error: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.details = details or {}
        self.original_error = original_error


class MirrorConfigurationError(MirrorError):
    """Config validation or load failure."""


class InvalidMode(MirrorError):
    """Unknown delivery mode string."""


class DuplicateRelay(MirrorError):
    """Source channel already has a relay."""


class InvalidChannel(MirrorError):
    """Source or destination channel cannot be resolved."""


class EndpointProvisioningFailed(MirrorError):
    """Platform refused webhook discovery or creation."""


class DeliveryFailed(MirrorError):
    """A single relayed message could not be delivered."""


class PersistenceFailed(MirrorError):
    """State file unreadable, unwritable or malformed."""
