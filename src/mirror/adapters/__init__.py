"""Platform adapters."""

from mirror.adapters.base import AdapterBase, ChatPlatform, EndpointInfo

__all__ = ["AdapterBase", "ChatPlatform", "EndpointInfo"]
