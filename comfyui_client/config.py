"""
Client configuration

Settings can be given directly or loaded from the environment:

    COMFYUI_HOST                 Base address (default http://127.0.0.1:8188)
    COMFYUI_CLIENT_ID            Session identifier (random if unset)
    COMFYUI_TOKEN                Bearer token
    COMFYUI_TIMEOUT              HTTP timeout in seconds (default 30)
    COMFYUI_COMPLETION_TIMEOUT   Max seconds to wait for a prompt (no limit if unset)
"""

import os
import uuid
from typing import Optional

from pydantic import BaseModel, Field, field_validator

DEFAULT_HOST = "http://127.0.0.1:8188"


class ClientSettings(BaseModel):
    """Connection settings for a ComfyUI client session"""
    host: str = Field(DEFAULT_HOST, description="Server base address")
    client_id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Session identifier")
    token: Optional[str] = Field(None, description="Bearer token for REST and WebSocket auth")
    timeout: float = Field(30.0, gt=0, description="HTTP request timeout in seconds")
    completion_timeout: Optional[float] = Field(None, gt=0, description="Max seconds to wait for a prompt")

    @field_validator('host')
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip('/')

    @classmethod
    def from_env(cls) -> "ClientSettings":
        """Build settings from COMFYUI_* environment variables"""
        values = {
            "host": os.getenv("COMFYUI_HOST"),
            "client_id": os.getenv("COMFYUI_CLIENT_ID"),
            "token": os.getenv("COMFYUI_TOKEN"),
            "timeout": os.getenv("COMFYUI_TIMEOUT"),
            "completion_timeout": os.getenv("COMFYUI_COMPLETION_TIMEOUT"),
        }
        return cls(**{key: value for key, value in values.items() if value})
