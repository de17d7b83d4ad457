"""
ComfyUI Client

Main client interface for interacting with ComfyUI servers.
"""

import uuid
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

import httpx

from comfyui_client.config import ClientSettings
from comfyui_client.exceptions import ComfyAPIError, TransportError
from comfyui_client.http import ComfyHTTPClient
from comfyui_client.models import ImageContainer, ImageRef, ImagesResponse, RequestOptions
from comfyui_client.tracker import CompletionTracker
from comfyui_client.websocket import ComfyWebSocketClient

logger = logging.getLogger(__name__)


class ComfyUIClient:
    """
    High-level client for ComfyUI

    Features:
    - One WebSocket channel per session, with multiple listeners per event
    - Submit-and-wait execution that resolves with the prompt's history
    - Sequential download of every output image
    - Thin wrappers over the REST API

    Usage:
        async with ComfyUIClient("http://localhost:8188") as client:
            images = await client.get_images(workflow_json)
            client.save_images(images, "outputs")
    """

    def __init__(
        self,
        host: str,
        client_id: Optional[str] = None,
        token: Optional[str] = None,
        event_emitter: Optional[Callable[[str, Any], None]] = None,
        timeout: float = 30.0,
        completion_timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize ComfyUI client

        Args:
            host: ComfyUI server address (e.g., "http://localhost:8188")
            client_id: Optional client ID (generated if not provided)
            token: Optional bearer token
            event_emitter: Optional callback receiving ("message", text) and ("error", exc)
            timeout: HTTP request timeout in seconds
            completion_timeout: Default limit for waiting on a prompt (None waits forever)
            transport: Optional httpx transport (used for testing)
        """
        self.host = host.rstrip('/')
        self.client_id = client_id or str(uuid.uuid4())
        self.token = token
        self.completion_timeout = completion_timeout

        # Initialize sub-clients
        self.http = ComfyHTTPClient(self.host, token=token, timeout=timeout, transport=transport)
        self.ws = ComfyWebSocketClient(self.host, self.client_id, token=token, event_emitter=event_emitter)

        logger.info(f"ComfyUI client initialized for {self.host}")

    @classmethod
    def from_settings(
        cls,
        settings: ClientSettings,
        event_emitter: Optional[Callable[[str, Any], None]] = None,
        **kwargs
    ) -> "ComfyUIClient":
        return cls(
            settings.host,
            client_id=settings.client_id,
            token=settings.token,
            event_emitter=event_emitter,
            timeout=settings.timeout,
            completion_timeout=settings.completion_timeout,
            **kwargs
        )

    async def __aenter__(self) -> "ComfyUIClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    @property
    def connected(self) -> bool:
        return self.ws.connected

    async def connect(self):
        """Open the WebSocket channel (an existing one is closed first)"""
        await self.ws.connect()

    async def disconnect(self):
        """Close the WebSocket channel if open"""
        await self.ws.disconnect()

    def on(self, event: str, callback: Callable):
        """Add a listener for 'open', 'close', 'error' or 'message'"""
        self.ws.on(event, callback)

    def off(self, event: str, callback: Callable):
        """Remove a listener added with on()"""
        self.ws.off(event, callback)

    async def queue_prompt(self, prompt: Dict[str, Any]) -> Dict[str, Any]:
        """Submit a workflow; the response carries the prompt_id"""
        return await self.http.queue_prompt(prompt, self.client_id)

    def _tracker(self, options: Optional[RequestOptions], timeout: Optional[float]) -> CompletionTracker:
        if not self.ws.connected:
            raise TransportError("WebSocket is not connected; call connect() first")

        return CompletionTracker(
            http_client=self.http,
            ws_client=self.ws,
            options=options,
            timeout=timeout if timeout is not None else self.completion_timeout
        )

    async def await_completion(
        self,
        prompt_id: str,
        options: Optional[RequestOptions] = None,
        timeout: Optional[float] = None
    ) -> Dict[str, Any]:
        """
        Wait for an already queued prompt to finish

        Args:
            prompt_id: Prompt ID returned by queue_prompt()
            options: Optional host/method override for the history lookup
            timeout: Seconds to wait (defaults to completion_timeout)

        Returns:
            The prompt's history record
        """
        tracker = self._tracker(options, timeout)
        return await tracker.wait(prompt_id)

    async def get_result(
        self,
        prompt: Dict[str, Any],
        options: Optional[RequestOptions] = None,
        timeout: Optional[float] = None
    ) -> Dict[str, Any]:
        """
        Submit a workflow and wait for it to finish

        Args:
            prompt: ComfyUI workflow JSON
            options: Optional host/method override for the history lookup
            timeout: Seconds to wait (defaults to completion_timeout)

        Returns:
            The prompt's history record
        """
        tracker = self._tracker(options, timeout)

        # Listen before submitting so a fast prompt cannot finish unseen
        tracker.attach()
        try:
            response = await self.queue_prompt(prompt)
            prompt_id = (response or {}).get('prompt_id')
            if not prompt_id:
                raise ComfyAPIError("Failed to get prompt_id from server", body=response)
            logger.info(f"Workflow queued with prompt_id: {prompt_id}")

            return await tracker.wait(prompt_id)
        finally:
            tracker.detach()

    async def get_images(
        self,
        prompt: Dict[str, Any],
        options: Optional[RequestOptions] = None,
        timeout: Optional[float] = None
    ) -> ImagesResponse:
        """
        Submit a workflow, wait for it and download every output image

        Images are fetched one at a time, in output node order.

        Returns:
            Dict of node ID -> list of ImageContainer
        """
        history = await self.get_result(prompt, options, timeout)
        output_images: ImagesResponse = {}

        for node_id, node_output in history.get('outputs', {}).items():
            if 'images' not in node_output:
                continue

            images_output: List[ImageContainer] = []
            for image_info in node_output['images']:
                image = ImageRef.from_dict(image_info)
                blob = await self.http.get_image(image.filename, image.subfolder, image.type)
                images_output.append(ImageContainer(blob=blob, image=image))

            output_images[node_id] = images_output

        logger.info(f"Collected {sum(len(v) for v in output_images.values())} image(s)")
        return output_images

    def save_images(self, images: ImagesResponse, output_dir: Union[str, Path]) -> List[Path]:
        """
        Write downloaded images to a directory

        Args:
            images: Result of get_images()
            output_dir: Target directory (created if missing)

        Returns:
            Paths of the written files
        """
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        saved = []
        for containers in images.values():
            for container in containers:
                output_path = output_dir / Path(container.image.filename).name
                output_path.write_bytes(container.blob)
                saved.append(output_path)

        return saved

    async def get_embeddings(self) -> List[str]:
        """Get list of available embeddings"""
        return await self.http.get_embeddings()

    async def get_extensions(self) -> List[str]:
        """Get list of available extensions"""
        return await self.http.get_extensions()

    async def get_prompt(self) -> Dict[str, Any]:
        return await self.http.get_prompt()

    async def interrupt(self) -> None:
        await self.http.interrupt()

    async def edit_history(self, clear: Optional[bool] = None, delete: Optional[List[str]] = None) -> None:
        await self.http.edit_history(clear=clear, delete=delete)

    async def get_history(
        self,
        prompt_id: Optional[str] = None,
        options: Optional[RequestOptions] = None
    ) -> Dict[str, Any]:
        """Get history for all prompts, or for one prompt"""
        return await self.http.get_history(prompt_id, options)

    async def get_queue(self, options: Optional[RequestOptions] = None) -> Dict[str, Any]:
        return await self.http.get_queue(options)

    async def delete_queue(self, prompt_id: str) -> Optional[Dict[str, Any]]:
        return await self.http.delete_queue(prompt_id)

    async def upload_image(
        self,
        image: bytes,
        filename: str,
        overwrite: Optional[bool] = None,
        subfolder: Optional[str] = None
    ) -> Dict[str, Any]:
        """Upload a file to ComfyUI input directory"""
        return await self.http.upload_image(image, filename, overwrite, subfolder)

    async def upload_mask(
        self,
        image: bytes,
        filename: str,
        original_ref: ImageRef,
        overwrite: Optional[bool] = None
    ) -> Dict[str, Any]:
        return await self.http.upload_mask(image, filename, original_ref, overwrite)

    async def get_image(self, filename: str, subfolder: str = "", folder_type: str = "output") -> bytes:
        """Download a file from ComfyUI server"""
        return await self.http.get_image(filename, subfolder, folder_type)

    async def view_metadata(self, folder_name: str, filename: str) -> Dict[str, Any]:
        return await self.http.view_metadata(folder_name, filename)

    async def get_system_stats(self) -> Dict[str, Any]:
        return await self.http.get_system_stats()

    async def get_object_info(self, node_class: Optional[str] = None) -> Dict[str, Any]:
        """
        Get node definitions and available nodes

        Args:
            node_class: Optional specific node class to get info for

        Returns:
            Dict of node definitions with inputs, outputs, and parameters
        """
        return await self.http.get_object_info(node_class)

    async def close(self):
        """Close client connections"""
        await self.ws.disconnect()
        await self.http.close()
