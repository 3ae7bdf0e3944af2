"""
Signaling hub: join/leave lifecycle and direct relay between peers.

Every connection accepted by the transport is handed to `SignalHub.serve`,
which runs on that connection's own worker thread:

1. the client is registered under a freshly generated id and told its id
   (`client_id`);
2. if other peers are already connected, each of them is told to prepare a
   peer connection toward the newcomer (`create_pc`), and the newcomer is told,
   once per existing peer, to prepare a connection (`create_pc`) and to send
   the offer (`create_offer`);
3. frames read from the client are decoded and forwarded to the client named
   in `to`;
4. when a read or write involving the client fails, it is removed and every
   remaining peer receives `client_disconnect`.

The hub does not look at offers, answers or candidates; any `type` it did not
produce itself is relayed as-is.
"""
import logging
import secrets
from typing import Any, Callable, List, Optional

from .envelope import CLIENT_DISCONNECT, CLIENT_ID, CREATE_OFFER, CREATE_PC, Signal
from .errors import DecodeError, TransportError
from .registry import Client, ConnectionRegistry

logger = logging.getLogger(__name__)

DEFAULT_ID_BYTES = 8


def new_client_id(nbytes: int = DEFAULT_ID_BYTES) -> str:
    """Returns a random hex token used as a client id."""
    return secrets.token_hex(nbytes)


class SignalHub:
    def __init__(self, registry: Optional[ConnectionRegistry] = None,
                 id_factory: Callable[[], str] = new_client_id):
        self.registry = registry if registry is not None else ConnectionRegistry()
        self.id_factory = id_factory

    # --- Lifecycle ---
    def join(self, handle: Any, client_id: Optional[str] = None,
             remote_addr: Optional[str] = None) -> Optional[Client]:
        """
        Registers a new connection and runs the join announcement.

        Args:
            handle: Transport handle with `send`, `receive` and `close`.
            client_id: Id to register under. A new token is generated if None.
            remote_addr: Peer address, used for logging only.

        Returns:
            The registered Client, or None if it failed during the
            announcement and has already been removed.
        """
        client = Client(client_id or self.id_factory(), handle, remote_addr)
        # peers present at insertion; later joiners pair with this client themselves
        count, peers = self.registry.add(client)
        logger.info("Client connected: %s (%s)", client.id, remote_addr or "unknown address")
        logger.info("Number of clients connected: %d", count)

        try:
            client.send(Signal(from_=client.id, type=CLIENT_ID, data=client.id))
        except TransportError as e:
            logger.warning("Error sending signal: %s", e)
            self._drop_unannounced(client, peers)
            return None

        failed: List[str] = []
        try:
            if count > 1:
                for peer in peers:
                    try:
                        peer.send(Signal(from_=peer.id, type=CREATE_PC, to=client.id))
                    except TransportError as e:
                        logger.warning("Error sending signal: %s", e)
                        failed.append(peer.id)
                    client.send(Signal(from_=client.id, type=CREATE_PC, to=peer.id))
                    client.send(Signal(from_=client.id, type=CREATE_OFFER, to=peer.id))
        except TransportError as e:
            logger.warning("Error sending signal: %s", e)
            failed.append(client.id)

        if failed:
            self.leave(*failed)
        if client.id in failed:
            return None
        return client

    def _drop_unannounced(self, client: Client, peers: List[Client]):
        """
        Removes a newcomer that never got its id.

        The peers it would have paired with were not told about it, so only
        clients that joined after it (and were paired with it) hear
        `client_disconnect`.
        """
        if self.registry.remove(client.id) is None:
            return
        logger.info("Removing client %s", client.id)
        client.close()
        untold = {p.id for p in peers}
        failed = self.broadcast(Signal(from_=client.id, type=CLIENT_DISCONNECT), except_ids=untold)
        if failed:
            self.leave(*failed)

    def leave(self, *client_ids: str):
        """
        Removes clients and tells the remaining peers they are gone.

        Removing an id that is not registered does nothing. Peers that fail to
        receive the notice are collected and removed once the current
        broadcast is over, which announces them in turn.
        """
        pending = list(client_ids)
        while pending:
            client_id = pending.pop(0)
            client = self.registry.remove(client_id)
            if client is None:
                continue
            logger.info("Removing client %s", client_id)
            client.close()
            pending.extend(self.broadcast(Signal(from_=client_id, type=CLIENT_DISCONNECT)))

    def broadcast(self, signal: Signal, except_ids=()) -> List[str]:
        """Sends `signal` to every registered client and returns the ids whose write failed."""
        failed = []
        for peer in self.registry.snapshot():
            if peer.id in except_ids:
                continue
            try:
                peer.send(signal)
            except TransportError as e:
                logger.warning("Error sending signal: %s", e)
                failed.append(peer.id)
        return failed

    # --- Routing ---
    def route(self, signal: Signal) -> bool:
        """
        Forwards `signal` to the client named in its `to` field.

        Returns:
            True if the signal was written to the recipient. Unknown
            recipients are logged and dropped; a recipient whose write fails
            is disconnected.
        """
        recipient = self.registry.get(signal.to)
        if recipient is None:
            logger.info("Client with ID %s not found, dropping %s from %s",
                        signal.to, signal.type, signal.from_)
            return False
        try:
            recipient.send(signal)
        except TransportError as e:
            logger.warning("Error sending signal to client %s: %s", signal.to, e)
            self.leave(recipient.id)
            return False
        return True

    def serve(self, handle: Any, remote_addr: Optional[str] = None):
        """Runs a connection from join to disconnect. Blocks the calling thread."""
        client = self.join(handle, remote_addr=remote_addr)
        if client is None:
            return
        try:
            while True:
                try:
                    raw = client.receive()
                except TransportError as e:
                    logger.info("Error reading message: %s", e)
                    break
                try:
                    signal = Signal.from_json(raw)
                except DecodeError as e:
                    logger.warning("Error unmarshaling signal from %s: %s", client.id, e)
                    continue
                logger.debug("Received signal type: %s", signal.type)
                self.route(signal)
        finally:
            self.leave(client.id)
