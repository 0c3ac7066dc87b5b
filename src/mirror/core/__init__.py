"""Core types shared by gateway and adapters."""
