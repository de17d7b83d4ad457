"""
ComfyUI WebSocket Client

Owns the single WebSocket channel of a client session and fans incoming
frames out to any number of listeners per event.
"""

import asyncio
import inspect
import logging
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlencode

import websockets

from comfyui_client.exceptions import TransportError

logger = logging.getLogger(__name__)

EVENTS = ('open', 'close', 'error', 'message')


class ComfyWebSocketClient:
    """WebSocket client for ComfyUI real-time updates"""

    def __init__(
        self,
        server_address: str,
        client_id: str,
        token: Optional[str] = None,
        event_emitter: Optional[Callable[[str, Any], None]] = None
    ):
        self.server_address = server_address.rstrip('/')
        self.client_id = client_id
        self.token = token
        self.event_emitter = event_emitter or (lambda event, data: None)
        self.handlers: Dict[str, List[Callable]] = {event: [] for event in EVENTS}

        self._ws = None
        self._reader: Optional[asyncio.Task] = None

    @property
    def connected(self) -> bool:
        return self._ws is not None

    def build_url(self, redact: bool = False) -> str:
        """
        Build the WebSocket URL for this session

        http:// becomes ws://, https:// becomes wss://; a bare host:port is
        treated as ws://.
        """
        address = self.server_address
        if address.startswith('https://'):
            address = 'wss://' + address[len('https://'):]
        elif address.startswith('http://'):
            address = 'ws://' + address[len('http://'):]
        elif '://' not in address:
            address = 'ws://' + address

        params = {"clientId": self.client_id}
        if self.token:
            params["token"] = "***" if redact else self.token

        return f"{address}/ws?{urlencode(params)}"

    def on(self, event: str, callback: Callable):
        """Add a listener for an event; existing listeners are kept"""
        if event not in self.handlers:
            raise ValueError(f"Unknown event type: {event}")
        self.handlers[event].append(callback)

    def off(self, event: str, callback: Callable):
        """Remove a previously added listener; other listeners are untouched"""
        if event in self.handlers:
            self.handlers[event] = [cb for cb in self.handlers[event] if cb != callback]

    async def connect(self):
        """
        Open the channel, replacing any existing one

        Raises:
            TransportError: If the connection could not be established
        """
        if self._ws is not None:
            await self.disconnect()

        logger.info(f"Connecting to WebSocket: {self.build_url(redact=True)}")

        try:
            websocket = await websockets.connect(self.build_url())
        except (OSError, asyncio.TimeoutError, websockets.exceptions.WebSocketException) as e:
            logger.error(f"WebSocket error: {e}")
            await self._dispatch('error', e)
            self._emit('error', e)
            raise TransportError(f"Failed to connect to {self.build_url(redact=True)}: {e}") from e

        self._ws = websocket
        logger.info("WebSocket connected successfully")

        await self._dispatch('open')
        self._reader = asyncio.create_task(self._read_frames(websocket))

    async def disconnect(self):
        """Close the channel if open; safe to call repeatedly"""
        websocket, reader = self._ws, self._reader
        self._ws = None
        self._reader = None

        if websocket is None:
            return

        logger.info("Closing WebSocket connection")
        await websocket.close()

        # A listener may disconnect from inside the reader task
        if reader is not None and reader is not asyncio.current_task():
            await reader

    async def _read_frames(self, websocket):
        try:
            async for frame in websocket:
                await self._handle_frame(frame)

        except websockets.exceptions.ConnectionClosedError as e:
            logger.error(f"WebSocket closed with error: {e}")
            await self._dispatch('error', e)
            self._emit('error', e)

        finally:
            if self._ws is websocket:
                self._ws = None
                self._reader = None
            logger.info("WebSocket connection closed")
            await self._dispatch('close')

    async def _handle_frame(self, frame):
        if isinstance(frame, (bytes, bytearray)):
            # Binary frames carry preview images
            logger.debug(f"Received binary data ({len(frame)} bytes)")
            await self._dispatch('message', frame, True)
            return

        logger.debug(f"Received data: {frame}")
        self._emit('message', frame)
        await self._dispatch('message', frame, False)

    async def _dispatch(self, event: str, *args):
        # Iterate a snapshot; skip listeners removed earlier in this dispatch
        for callback in list(self.handlers[event]):
            if callback not in self.handlers[event]:
                continue
            try:
                result = callback(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Unhandled error in '{event}' listener")

    def _emit(self, event: str, data: Any):
        try:
            self.event_emitter(event, data)
        except Exception:
            logger.exception(f"Unhandled error in event emitter for '{event}'")
