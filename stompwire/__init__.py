"""STOMP client toolkit: frames, headers, sessions, subscriptions and heart beats."""

__version__ = "1.0.13"

__all__ = [
    "connection",
    "frame",
    "heartbeats",
    "senv",
    "subscriptions",
    "utils",
    "wire",
]