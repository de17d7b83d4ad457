"""
ComfyUI Client Exceptions
"""

from typing import Any, Optional


class ComfyUIError(Exception):
    """Base class for all client errors"""


class ComfyAPIError(ComfyUIError):
    """The server answered a REST call with an error body or status"""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class TransportError(ComfyUIError):
    """WebSocket channel failure, or an operation that needs an open channel"""


class MessageDecodeError(ComfyUIError):
    """A text frame on the channel was not valid JSON"""

    def __init__(self, message: str, raw: str):
        super().__init__(message)
        self.raw = raw


class CompletionTimeoutError(ComfyUIError, TimeoutError):
    """No completion event arrived for a prompt within the allowed time"""

    def __init__(self, prompt_id: str, timeout: float):
        super().__init__(f"Prompt {prompt_id} did not complete within {timeout} seconds")
        self.prompt_id = prompt_id
        self.timeout = timeout
