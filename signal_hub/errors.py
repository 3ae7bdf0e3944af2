"""Exception types raised by the signaling hub."""


class SignalHubError(Exception):
    """Base class for hub errors."""


class DecodeError(SignalHubError, ValueError):
    """Raised when an incoming frame is not a valid signal envelope."""


class TransportError(SignalHubError, ConnectionError):
    """Raised when reading from or writing to a client connection fails."""

    def __init__(self, client_id, message):
        super().__init__(f"{client_id}: {message}")
        self.client_id = client_id
