"""
Connection registry: the live clients of the hub, keyed by client id.

All membership changes and reads go through one lock. Snapshots are plain
lists, so callers iterate and write to sockets without holding it.
"""
import logging
from threading import Lock
from typing import Any, Dict, List, Optional, Tuple

from .envelope import Signal
from .errors import TransportError

logger = logging.getLogger(__name__)


class Client:
    """
    One live connection to the hub.

    Wraps the transport handle (a flask-sock WebSocket, or anything with
    `send(text)`, `receive()` and `close()`). Writes go through a per-client
    lock so frames sent from different worker threads are never interleaved.
    """

    def __init__(self, client_id: str, handle: Any, remote_addr: Optional[str] = None):
        self.id = client_id
        self.handle = handle
        self.remote_addr = remote_addr
        self.closed = False
        self._send_lock = Lock()

    def send(self, signal: Signal):
        """
        Sends one signal to this client.

        Raises:
            TransportError: If the connection is closed or the write fails.
        """
        payload = signal.to_json()
        with self._send_lock:
            if self.closed:
                raise TransportError(self.id, "connection already closed")
            logger.debug("Sending signal type %s to client %s", signal.type, self.id)
            try:
                self.handle.send(payload)
            except Exception as e:
                raise TransportError(self.id, f"write failed: {e}") from e

    def receive(self):
        """
        Blocks until the next frame arrives and returns its raw payload.

        Raises:
            TransportError: If the read fails or the peer closed the connection.
        """
        try:
            data = self.handle.receive()
        except Exception as e:
            raise TransportError(self.id, f"read failed: {e}") from e
        if data is None:
            # flask-sock returns None once the client has closed cleanly
            raise TransportError(self.id, "connection closed by peer")
        return data

    def close(self):
        """Releases the underlying handle. Safe to call more than once."""
        with self._send_lock:
            if self.closed:
                return
            self.closed = True
        try:
            self.handle.close()
        except Exception as e:
            logger.debug("Error closing connection for client %s: %s", self.id, e)

    def __repr__(self):
        return f"Client({self.id!r})"


class ConnectionRegistry:
    # All access goes through one lock; callers never hold it while writing to a socket.
    def __init__(self):
        self.lock = Lock()
        self.clients: Dict[str, Client] = {}

    def add(self, client: Client) -> Tuple[int, List[Client]]:
        """
        Inserts or replaces `client`.

        Returns:
            The size right after insertion and the other clients registered
            at that moment, both read under the same lock hold.
        """
        with self.lock:
            previous = self.clients.get(client.id)
            self.clients[client.id] = client
            count = len(self.clients)
            others = [c for cid, c in self.clients.items() if cid != client.id]
        if previous is not None and previous is not client:
            logger.warning("Client id %s re-registered, replacing previous connection", client.id)
        return count, others

    def remove(self, client_id: str) -> Optional[Client]:
        """Removes `client_id` if present and returns it; a missing id is a no-op."""
        with self.lock:
            return self.clients.pop(client_id, None)

    def get(self, client_id: Optional[str]) -> Optional[Client]:
        if client_id is None:
            return None
        with self.lock:
            return self.clients.get(client_id)

    def size(self) -> int:
        with self.lock:
            return len(self.clients)

    def snapshot(self, except_id: Optional[str] = None) -> List[Client]:
        """Point-in-time copy of the registered clients, optionally leaving one out."""
        with self.lock:
            return [c for cid, c in self.clients.items() if cid != except_id]

    def ids(self) -> List[str]:
        """Registered ids, for introspection and diagnostics."""
        with self.lock:
            return list(self.clients.keys())
