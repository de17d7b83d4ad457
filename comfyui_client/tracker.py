"""
ComfyUI Completion Tracker

Turns a queued prompt plus the WebSocket event stream into a single
awaitable history record.

A prompt is finished when the server sends an ``executing`` message whose
``node`` is empty and whose ``prompt_id`` names the prompt. The tracker
listens for that message, fetches the prompt's history and resolves with it.
Its listener is removed exactly once, whichever way the wait ends
(completion, bad frame, failed history fetch, timeout or cancellation).
"""

import asyncio
import json
import logging
import time
from typing import Any, Dict, Optional, Set

from comfyui_client.exceptions import ComfyUIError, CompletionTimeoutError, MessageDecodeError
from comfyui_client.models import RequestOptions

logger = logging.getLogger(__name__)


class CompletionTracker:
    """
    Waits for one prompt to finish on a shared WebSocket channel

    Attach before queueing the prompt so that a prompt finishing before its
    submission response arrives is still seen:

        tracker = CompletionTracker(http, ws)
        tracker.attach()
        try:
            response = await http.queue_prompt(workflow, client_id)
            history = await tracker.wait(response['prompt_id'])
        finally:
            tracker.detach()
    """

    def __init__(
        self,
        http_client,  # HTTP client for the history lookup
        ws_client,    # Transport whose message events are observed
        options: Optional[RequestOptions] = None,
        timeout: Optional[float] = None
    ):
        self.http_client = http_client
        self.ws_client = ws_client
        self.options = options
        self.timeout = timeout

        self.prompt_id: Optional[str] = None
        self._future: Optional[asyncio.Future] = None
        self._fetch_task: Optional[asyncio.Task] = None
        self._finished: Set[str] = set()
        self._attached = False
        self._start_time = time.time()

    @property
    def attached(self) -> bool:
        return self._attached

    def attach(self):
        """Start observing messages (idempotent; no-op once the wait has settled)"""
        if self._future is None:
            self._future = asyncio.get_running_loop().create_future()
        if self._attached or self._future.done():
            return
        self.ws_client.on('message', self._on_message)
        self._attached = True

    def detach(self):
        """Stop observing messages (idempotent)"""
        if not self._attached:
            return
        self.ws_client.off('message', self._on_message)
        self._attached = False

    async def wait(self, prompt_id: str) -> Dict[str, Any]:
        """
        Wait until the prompt finishes

        Args:
            prompt_id: Server-assigned prompt ID

        Returns:
            The prompt's history record (outputs, status, ...)

        Raises:
            MessageDecodeError: A text frame was not valid JSON
            CompletionTimeoutError: The timeout elapsed first
            ComfyUIError: The history record could not be fetched
        """
        # A failure seen between attach() and wait() stays on the future
        self.attach()
        self.prompt_id = prompt_id
        logger.info(f"Waiting for prompt {prompt_id} to complete")

        try:
            if prompt_id in self._finished and not self._future.done():
                logger.debug(f"Prompt {prompt_id} finished before wait started")
                self._start_fetch()

            if self.timeout is None:
                return await self._future

            try:
                return await asyncio.wait_for(self._future, timeout=self.timeout)
            except asyncio.TimeoutError:
                logger.error(f"Prompt {prompt_id} did not complete within {self.timeout}s")
                raise CompletionTimeoutError(prompt_id, self.timeout) from None

        finally:
            self.detach()
            if self._fetch_task is not None and not self._fetch_task.done():
                self._fetch_task.cancel()

    def _on_message(self, data, is_binary: bool):
        # Previews are binary data
        if is_binary or self._future.done():
            return

        try:
            message = json.loads(data)
        except ValueError as e:
            logger.error(f"Malformed message while waiting for completion: {e}")
            self.detach()
            self._future.set_exception(MessageDecodeError(f"Malformed message: {e}", raw=data))
            return

        if not isinstance(message, dict) or message.get('type') != 'executing':
            return

        message_data = message.get('data') or {}
        if message_data.get('node'):
            return

        done_prompt_id = message_data.get('prompt_id')
        logger.info(f"Done executing prompt (ID: {done_prompt_id})")

        if self.prompt_id is None:
            if done_prompt_id:
                self._finished.add(done_prompt_id)
            return

        if done_prompt_id == self.prompt_id:
            self._start_fetch()

    def _start_fetch(self):
        """Detach and fetch history in its own task so the reader keeps delivering frames"""
        self.detach()
        if self._fetch_task is None:
            self._fetch_task = asyncio.create_task(self._complete())

    async def _complete(self):
        """Fetch the finished prompt's history and settle the wait"""
        try:
            history = await self.http_client.get_history(self.prompt_id, self.options)
        except Exception as e:
            logger.error(f"Failed to fetch history for prompt {self.prompt_id}: {e}")
            if not self._future.done():
                self._future.set_exception(e)
            return

        record = (history or {}).get(self.prompt_id)
        if self._future.done():
            return

        if record is None:
            self._future.set_exception(
                ComfyUIError(f"No history record for prompt {self.prompt_id}")
            )
            return

        elapsed = time.time() - self._start_time
        logger.info(f"Prompt {self.prompt_id} completed (took {elapsed:.2f}s)")
        self._future.set_result(record)
