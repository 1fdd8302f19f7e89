"""WebSocket command server for controlling the camera and streaming images."""

from __future__ import annotations

import io
import json
import logging
from typing import Any, Protocol, runtime_checkable

import numpy as np
import websockets
from PIL import Image

from depthview.frames import OutputData2D

log = logging.getLogger(__name__)


@runtime_checkable
class CameraController(Protocol):
    """Receives connect and disconnect requests from clients."""

    def connect_camera(self, serial: str) -> None:
        """Connect to the camera with this serial."""
        ...

    def disconnect_camera(self) -> None:
        """Disconnect the current camera."""
        ...


def _encode_png(image: Any) -> bytes:
    buffer = io.BytesIO()
    Image.fromarray(np.asarray(image)).save(buffer, "PNG")
    return buffer.getvalue()


class CommandServer:
    """Handles one-letter text commands and pushes PNG frames to subscribers.

    Commands: ``C<serial>`` connect, ``D`` disconnect, ``L`` list cameras,
    ``S`` subscribe, ``U`` unsubscribe, ``G`` get the last image; anything
    else is echoed back.
    """

    def __init__(self, controller: CameraController) -> None:
        self.controller = controller
        self.camera_list: list[str] = []
        self.cached_image: Any = None
        self._clients: list[Any] = []
        self._subscribers: list[Any] = []

    @property
    def clients(self) -> tuple:
        return tuple(self._clients)

    @property
    def subscribers(self) -> tuple:
        return tuple(self._subscribers)

    async def handle_message(self, client: Any, message: str) -> None:
        """Act on one text message from ``client``."""
        log.info("Message received: %s", message)
        if message.startswith("C"):
            self.controller.connect_camera(message[1:])
        elif message.startswith("D"):
            self.controller.disconnect_camera()
        elif message.startswith("L"):
            await client.send(json.dumps(self.camera_list, indent=4) + "\n")
        elif message.startswith("S"):
            if client in self._subscribers:
                log.warning("Client already subscribed")
            else:
                self._subscribers.append(client)
        elif message.startswith("U"):
            if client in self._subscribers:
                self._subscribers = [c for c in self._subscribers if c is not client]
            else:
                log.warning("Client not subscribed")
        elif message.startswith("G"):
            if self.cached_image is None:
                log.warning("No cached image")
            else:
                await self._send_image([client], self.cached_image)
        else:
            await client.send(message)

    def on_camera_list_updated(self, cameras) -> None:
        """Replace the list of known cameras."""
        self.camera_list = list(cameras)

    async def on_output_2d(self, output: OutputData2D) -> None:
        """Cache a new image and send it to all subscribers."""
        if output.is_empty():
            log.warning("render image is null")
            return
        self.cached_image = output.image
        await self._send_image(list(self._subscribers), output.image)

    async def _send_image(self, clients, image) -> None:
        payload = _encode_png(image)
        for client in clients:
            await client.send(payload)

    def client_disconnected(self, client: Any) -> None:
        """Forget a client and its subscription."""
        self._subscribers = [c for c in self._subscribers if c is not client]
        self._clients = [c for c in self._clients if c is not client]

    async def _handler(self, websocket, path=None) -> None:
        log.info("WebSocket connected")
        self._clients.append(websocket)
        try:
            async for message in websocket:
                if isinstance(message, str):
                    await self.handle_message(websocket, message)
        except websockets.ConnectionClosed:
            pass
        finally:
            self.client_disconnected(websocket)

    async def serve(self, host: str = "0.0.0.0", port: int = 8765):
        """Start listening; returns the running server, which the caller closes."""
        log.info("Opening WebSocket on port %s", port)
        return await websockets.serve(self._handler, host, port)