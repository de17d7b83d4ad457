"""
ComfyUI Client

An asyncio client for ComfyUI that handles:
- HTTP API calls
- A WebSocket channel with multiple listeners per event
- Waiting for a queued prompt to finish
- Downloading output images
"""

from comfyui_client.client import ComfyUIClient
from comfyui_client.config import ClientSettings
from comfyui_client.exceptions import (
    ComfyUIError,
    ComfyAPIError,
    TransportError,
    MessageDecodeError,
    CompletionTimeoutError,
)
from comfyui_client.http import ComfyHTTPClient
from comfyui_client.models import FolderType, ImageContainer, ImageRef, ImagesResponse, RequestOptions
from comfyui_client.observability import configure_logging
from comfyui_client.tracker import CompletionTracker
from comfyui_client.websocket import ComfyWebSocketClient

__all__ = [
    'ComfyUIClient',
    'ClientSettings',
    'ComfyHTTPClient',
    'ComfyWebSocketClient',
    'CompletionTracker',
    'ComfyUIError',
    'ComfyAPIError',
    'TransportError',
    'MessageDecodeError',
    'CompletionTimeoutError',
    'FolderType',
    'ImageContainer',
    'ImageRef',
    'ImagesResponse',
    'RequestOptions',
    'configure_logging',
]
