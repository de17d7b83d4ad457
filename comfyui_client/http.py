"""
ComfyUI HTTP Client

Handles all HTTP API calls to ComfyUI server.
"""

import json
import httpx
import logging
from typing import Dict, Any, List, Optional, Union

from comfyui_client.exceptions import ComfyAPIError
from comfyui_client.models import ImageRef, RequestOptions

logger = logging.getLogger(__name__)


class ComfyHTTPClient:
    """HTTP client for ComfyUI REST API"""

    def __init__(
        self,
        server_address: str,
        token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.server_address = server_address.rstrip('/')
        self.token = token
        self.client = httpx.AsyncClient(timeout=timeout, transport=transport)

    def get_request_headers(self) -> Dict[str, str]:
        """Headers sent with every request (bearer auth when a token is set)"""
        headers = {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def get_url(self, path: str, host: Optional[str] = None) -> str:
        """Join a base address and an API path"""
        base = host.rstrip('/') if host else self.server_address
        return f"{base}{path}"

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        headers = {**self.get_request_headers(), **kwargs.pop('headers', {})}

        logger.debug(f"{method.upper()} {url}")
        return await self.client.request(method.upper(), url, headers=headers, **kwargs)

    @staticmethod
    def _parse(response: httpx.Response) -> Any:
        """
        Decode a JSON response, raising on error bodies

        Raises:
            ComfyAPIError: If the body is an object with an ``error`` field,
                or the status is not successful
        """
        if not response.content:
            ComfyHTTPClient._raise_for_status(response)
            return None

        try:
            body = response.json()
        except ValueError as e:
            ComfyHTTPClient._raise_for_status(response)
            raise ComfyAPIError(
                f"Invalid JSON from {response.request.url}: {e}",
                status_code=response.status_code
            ) from e

        if isinstance(body, dict) and 'error' in body:
            raise ComfyAPIError(json.dumps(body), status_code=response.status_code, body=body)

        ComfyHTTPClient._raise_for_status(response)
        return body

    @staticmethod
    def _raise_for_status(response: httpx.Response):
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ComfyAPIError(
                f"ComfyUI Error ({response.status_code}): {response.text}",
                status_code=response.status_code
            ) from e

    async def get_embeddings(self) -> List[str]:
        """Get list of available embeddings"""
        response = await self._request("GET", self.get_url("/embeddings"))
        return self._parse(response)

    async def get_extensions(self) -> List[str]:
        """Get list of available frontend extensions"""
        response = await self._request("GET", self.get_url("/extensions"))
        return self._parse(response)

    async def queue_prompt(self, workflow: Dict[str, Any], client_id: str) -> Dict[str, Any]:
        """
        Submit a workflow to the queue

        Args:
            workflow: ComfyUI workflow JSON
            client_id: Client identifier

        Returns:
            Response dict with prompt_id
        """
        payload = {
            "prompt": workflow,
            "client_id": client_id
        }

        response = await self._request(
            "POST",
            self.get_url("/prompt"),
            json=payload,
            headers={"Accept": "application/json"}
        )
        return self._parse(response)

    async def get_prompt(self) -> Dict[str, Any]:
        """Get current prompt queue state (exec_info)"""
        response = await self._request("GET", self.get_url("/prompt"))
        return self._parse(response)

    async def interrupt(self) -> None:
        """Stop the currently executing prompt (global interrupt)"""
        response = await self._request("POST", self.get_url("/interrupt"))
        self._parse(response)

    async def edit_history(
        self,
        clear: Optional[bool] = None,
        delete: Optional[List[str]] = None
    ) -> None:
        """
        Clear history or delete individual entries

        Args:
            clear: Remove every history entry
            delete: Prompt IDs to remove from history
        """
        payload: Dict[str, Any] = {}
        if clear is not None:
            payload["clear"] = clear
        if delete is not None:
            payload["delete"] = list(delete)

        response = await self._request("POST", self.get_url("/history"), json=payload)
        self._parse(response)

    async def get_history(
        self,
        prompt_id: Optional[str] = None,
        options: Optional[RequestOptions] = None
    ) -> Dict[str, Any]:
        """
        Get execution history

        Args:
            prompt_id: Optional specific prompt ID to fetch
            options: Optional host/method override

        Returns:
            History dict keyed by prompt ID
        """
        options = options or RequestOptions()
        path = f"/history/{prompt_id}" if prompt_id else "/history"

        response = await self._request(options.method or "GET", self.get_url(path, options.host))
        return self._parse(response)

    async def get_queue(self, options: Optional[RequestOptions] = None) -> Dict[str, Any]:
        """Get current queue status"""
        options = options or RequestOptions()

        response = await self._request(options.method or "GET", self.get_url("/queue", options.host))
        return self._parse(response)

    async def delete_queue(self, prompt_id: Union[str, List[str]]) -> Optional[Dict[str, Any]]:
        """
        Remove a pending prompt from the queue

        Args:
            prompt_id: Prompt ID (or list of IDs) to remove

        Note:
            This only affects pending prompts. For running prompts,
            use interrupt() instead.
        """
        to_delete = [prompt_id] if isinstance(prompt_id, str) else list(prompt_id)

        response = await self._request("POST", self.get_url("/queue"), json={"delete": to_delete})
        return self._parse(response)

    async def upload_image(
        self,
        image: bytes,
        filename: str,
        overwrite: Optional[bool] = None,
        subfolder: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Upload an image to ComfyUI input directory

        Args:
            image: File content as bytes
            filename: Name for the uploaded file
            overwrite: Whether to overwrite existing files (server default if None)
            subfolder: Target subfolder in input directory

        Returns:
            Upload response dict (name, subfolder, type)
        """
        files = {"image": (filename, image, "image/png")}
        data = {}
        if overwrite is not None:
            data["overwrite"] = str(overwrite).lower()
        if subfolder:
            data["subfolder"] = subfolder

        logger.debug(f"Uploading image {filename} ({len(image)} bytes)")
        response = await self._request("POST", self.get_url("/upload/image"), files=files, data=data)
        return self._parse(response)

    async def upload_mask(
        self,
        image: bytes,
        filename: str,
        original_ref: ImageRef,
        overwrite: Optional[bool] = None
    ) -> Dict[str, Any]:
        """
        Upload a mask to be applied to the alpha channel of an existing image

        Args:
            image: Mask content as bytes
            filename: Name for the uploaded mask
            original_ref: Image the mask belongs to
            overwrite: Whether to overwrite existing files (server default if None)
        """
        files = {"image": (filename, image, "image/png")}
        data = {"original_ref": json.dumps(original_ref.to_dict())}
        if overwrite is not None:
            data["overwrite"] = str(overwrite).lower()

        logger.debug(f"Uploading mask {filename} for {original_ref.filename}")
        response = await self._request("POST", self.get_url("/upload/mask"), files=files, data=data)
        return self._parse(response)

    async def get_image(self, filename: str, subfolder: str = "", folder_type: str = "output") -> bytes:
        """
        Download an image from ComfyUI server

        Args:
            filename: Name of the file
            subfolder: Subfolder within the folder
            folder_type: Type of folder (output, temp, input)

        Returns:
            File content as bytes
        """
        params = {
            "filename": filename,
            "subfolder": subfolder,
            "type": folder_type
        }

        response = await self._request("GET", self.get_url("/view"), params=params)
        self._raise_for_status(response)
        return response.content

    async def view_metadata(self, folder_name: str, filename: str) -> Dict[str, Any]:
        """Get safetensors metadata for a model file in the given folder"""
        response = await self._request(
            "GET",
            self.get_url(f"/view_metadata/{folder_name}"),
            params={"filename": filename}
        )
        return self._parse(response)

    async def get_system_stats(self) -> Dict[str, Any]:
        """Get system statistics"""
        response = await self._request("GET", self.get_url("/system_stats"))
        return self._parse(response)

    async def get_object_info(self, node_class: Optional[str] = None) -> Dict[str, Any]:
        """
        Get node definitions and available nodes

        Args:
            node_class: Optional specific node class to get info for

        Returns:
            Dict of node definitions with inputs, outputs, and parameters
            If node_class is specified, returns info for that specific node
            Otherwise returns all available nodes
        """
        path = f"/object_info/{node_class}" if node_class else "/object_info"

        response = await self._request("GET", self.get_url(path))
        return self._parse(response)

    async def close(self):
        """Close HTTP client"""
        await self.client.aclose()
