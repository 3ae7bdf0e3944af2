"""WebRTC signaling hub: peer discovery and offer/answer relay over WebSockets."""
from .envelope import Signal
from .errors import DecodeError, SignalHubError, TransportError
from .hub import SignalHub
from .registry import Client, ConnectionRegistry

__version__ = "0.1.0"

__all__ = [
    "Client",
    "ConnectionRegistry",
    "DecodeError",
    "Signal",
    "SignalHub",
    "SignalHubError",
    "TransportError",
]
