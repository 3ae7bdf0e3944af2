"""
Asyncio client for the signaling hub.

Connects over `websockets`, learns its own id from the hub's `client_id`
notice and then sends and receives `Signal` envelopes. It does no WebRTC work
of its own: a peer reacts to `create_pc`/`create_offer` by driving its own
RTCPeerConnection and relays offers, answers and candidates through `signal()`.
"""
import asyncio
import logging
from typing import Any, List, Optional

import websockets

from .envelope import CLIENT_ID, Signal
from .errors import SignalHubError

logger = logging.getLogger(__name__)


class SignalClient:
    def __init__(self, url: str):
        self.url = url
        self.ws = None
        self.client_id: Optional[str] = None

    async def connect(self, timeout: Optional[float] = 10.0):
        """
        Opens the WebSocket and waits for the hub to assign an id.

        Args:
            timeout: Seconds to wait for the `client_id` notice.

        Raises:
            SignalHubError: If the first envelope is not a `client_id` notice.
            DecodeError: If the first frame is not a valid envelope.
            asyncio.TimeoutError: If no frame arrives within `timeout`.
            The socket is closed before any of these propagate.
        """
        self.ws = await websockets.connect(self.url)
        try:
            first = await self.recv(timeout=timeout)
            if first.type != CLIENT_ID:
                raise SignalHubError(f"expected {CLIENT_ID}, got {first.type}")
        except BaseException:
            await self.close()
            raise
        self.client_id = first.data
        logger.info("Connected to %s as %s", self.url, self.client_id)
        return self

    async def send(self, signal: Signal):
        await self.ws.send(signal.to_json())

    async def signal(self, type: str, to: Optional[str] = None, data: Any = None,
                     ice_candidates: Optional[List[Any]] = None) -> Signal:
        """Sends an envelope from this client and returns it."""
        sig = Signal(from_=self.client_id, type=type, to=to, data=data,
                     ice_candidates=ice_candidates)
        await self.send(sig)
        return sig

    async def recv(self, timeout: Optional[float] = None) -> Signal:
        """Waits for the next envelope from the hub."""
        raw = await asyncio.wait_for(self.ws.recv(), timeout)
        return Signal.from_json(raw)

    async def close(self):
        if self.ws is not None:
            await self.ws.close()
            self.ws = None

    async def __aenter__(self):
        return await self.connect()

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
