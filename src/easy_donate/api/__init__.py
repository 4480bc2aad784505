"""HTTP and WebSocket surface."""

__all__ = ["DonationServer"]

from .server import DonationServer
