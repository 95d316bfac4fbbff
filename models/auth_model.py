from typing import Optional
from pydantic import BaseModel

class TokenData(BaseModel):
    """Claims read from a verified access token"""
    user_id: str
    username: Optional[str] = None
    user_type: Optional[str] = None
