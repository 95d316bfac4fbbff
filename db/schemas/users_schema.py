from pydantic import BaseModel, Field, field_validator
from typing import Optional
from bson import ObjectId
from db.mongodb import PyObjectId

class UserInDB(BaseModel):
    """Database representation of a user document (owned by the auth service)"""
    id: PyObjectId = Field(default_factory=lambda: str(ObjectId()), alias="_id")
    name: str = ""
    avatar: Optional[str] = None
    is_active: bool = True

    model_config = {
        "populate_by_name": True,
    }

    @field_validator('id', mode='before')
    @classmethod
    def convert_object_id(cls, v):
        return str(v) if isinstance(v, ObjectId) else v
