from typing import Optional

from pydantic import BaseModel


class FileReference(BaseModel):
    """Uploaded attachment carried by a non-text message"""
    url: str
    name: str
    size: int
    mime_type: str
    object_name: Optional[str] = None
