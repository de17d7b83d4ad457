"""Shared pytest fixtures for ComfyUI client tests."""

import asyncio
import json
from typing import Any, Dict, List, Optional, Tuple

import httpx
import pytest
import websockets

HOST = "http://comfy.test:8188"

_CLOSED = object()


class FakeWebSocket:
    """In-memory stand-in for a websockets client connection

    Frames pushed with ``push()`` are yielded by ``async for``; ``close()``
    ends the iteration. Pushing an exception raises it from the iterator.
    """

    def __init__(self, url: str):
        self.url = url
        self.closed = False
        self._frames: asyncio.Queue = asyncio.Queue()

    def push(self, frame):
        self._frames.put_nowait(frame)

    def push_json(self, message: Dict[str, Any]):
        self.push(json.dumps(message))

    def __aiter__(self):
        return self

    async def __anext__(self):
        frame = await self._frames.get()
        if frame is _CLOSED:
            raise StopAsyncIteration
        if isinstance(frame, BaseException):
            raise frame
        return frame

    async def close(self):
        if not self.closed:
            self.closed = True
            self._frames.put_nowait(_CLOSED)


@pytest.fixture
def fake_sockets(monkeypatch) -> List[FakeWebSocket]:
    """Patch websockets.connect; every opened FakeWebSocket is appended to the list"""
    sockets: List[FakeWebSocket] = []

    async def fake_connect(url, **kwargs):
        websocket = FakeWebSocket(url)
        sockets.append(websocket)
        return websocket

    monkeypatch.setattr(websockets, "connect", fake_connect)
    return sockets


def parse_multipart(request: httpx.Request) -> Tuple[Dict[str, str], Dict[str, Tuple[str, bytes]]]:
    """Split a multipart/form-data request into (fields, files)"""
    boundary = request.headers["content-type"].split("boundary=")[1].encode()

    fields: Dict[str, str] = {}
    files: Dict[str, Tuple[str, bytes]] = {}
    for chunk in request.content.split(b"--" + boundary):
        if not chunk.startswith(b"\r\n"):
            continue
        head, _, body = chunk[2:].partition(b"\r\n\r\n")
        body = body[:-2]
        disposition = next(
            line for line in head.decode().split("\r\n")
            if line.lower().startswith("content-disposition")
        )
        params = dict(
            item.strip().split("=", 1) for item in disposition.split(";")[1:]
        )
        name = params["name"].strip('"')
        if "filename" in params:
            files[name] = (params["filename"].strip('"'), body)
        else:
            fields[name] = body.decode()
    return fields, files


class StubComfyServer:
    """Minimal ComfyUI REST API served through httpx.MockTransport"""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.history: Dict[str, Any] = {}
        self.images: Dict[Tuple[str, str, str], bytes] = {}
        self.next_prompt_id = "abc123"
        self.prompt_response: Optional[Dict[str, Any]] = None
        self.fail_view: set = set()

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(lambda request: self.handle(request))

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        method = request.method

        if method == "POST" and path == "/prompt":
            body = json.loads(request.content)
            if not body.get("prompt"):
                return httpx.Response(400, json={"error": {"type": "no_prompt", "message": "No prompt provided"}, "node_errors": {}})
            return httpx.Response(200, json=self.prompt_response or {"prompt_id": self.next_prompt_id, "number": 1, "node_errors": {}})

        if method == "GET" and path.startswith("/history"):
            prompt_id = path[len("/history/"):] if path.startswith("/history/") else None
            if prompt_id is None:
                return httpx.Response(200, json=self.history)
            if prompt_id in self.history:
                return httpx.Response(200, json={prompt_id: self.history[prompt_id]})
            return httpx.Response(200, json={})

        if method == "POST" and path == "/upload/image":
            fields, files = parse_multipart(request)
            filename, content = files["image"]
            subfolder = fields.get("subfolder", "")
            self.images[(filename, subfolder, "input")] = content
            return httpx.Response(200, json={"name": filename, "subfolder": subfolder, "type": "input"})

        if method == "GET" and path == "/view":
            params = request.url.params
            key = (params["filename"], params.get("subfolder", ""), params.get("type", "output"))
            if key[0] in self.fail_view:
                return httpx.Response(500, text="Internal Server Error")
            if key not in self.images:
                return httpx.Response(404)
            return httpx.Response(200, content=self.images[key], headers={"Content-Type": "image/png"})

        return httpx.Response(404, json={"error": f"No route for {method} {path}"})


@pytest.fixture
def stub_server() -> StubComfyServer:
    return StubComfyServer()


async def settle(delay: float = 0.02):
    """Give the reader task time to deliver queued frames"""
    await asyncio.sleep(delay)
