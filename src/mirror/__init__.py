"""Channel mirror: relay chat messages between channels, optionally as the original author."""

__version__ = "0.1.0"
