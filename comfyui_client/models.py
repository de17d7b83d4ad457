"""
ComfyUI Client Data Models
"""

from dataclasses import dataclass
from typing import Optional, Dict, Any, List
from enum import Enum


class FolderType(str, Enum):
    """Server-side folder an image lives in"""
    INPUT = "input"
    OUTPUT = "output"
    TEMP = "temp"


@dataclass
class RequestOptions:
    """
    Per-call overrides for history and queue requests

    host: Base address to send the request to instead of the client's host
    method: HTTP method to use instead of GET
    """
    host: Optional[str] = None
    method: Optional[str] = None


@dataclass
class ImageRef:
    """Reference to an image stored on the server"""
    filename: str
    subfolder: str = ""
    type: str = FolderType.OUTPUT.value

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ImageRef":
        return cls(
            filename=data['filename'],
            subfolder=data.get('subfolder', ''),
            type=data.get('type', FolderType.OUTPUT.value)
        )

    def to_dict(self) -> Dict[str, str]:
        return {
            "filename": self.filename,
            "subfolder": self.subfolder,
            "type": self.type
        }


@dataclass
class ImageContainer:
    """Downloaded image content paired with its reference"""
    blob: bytes
    image: ImageRef


# Output node id -> images produced by that node
ImagesResponse = Dict[str, List[ImageContainer]]
