from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional
from datetime import datetime
from bson import ObjectId

from db.mongodb import PyObjectId
from db.schemas.files_schema import FileReference
from models.enums import MessageType, MessageStatus
from utils.time import get_current_utc_time


class MessageInDB(BaseModel):
    """Database representation of a direct message"""
    id: PyObjectId = Field(default_factory=lambda: str(ObjectId()), alias="_id")
    sender_id: str
    receiver_id: str
    message_type: MessageType
    content: Optional[str] = None
    file: Optional[FileReference] = None
    duration: Optional[float] = None  # voice only, seconds
    status: MessageStatus = MessageStatus.SENT
    is_deleted: bool = False
    deleted_at: Optional[datetime] = None
    reply_to: Optional[str] = None
    created_at: datetime = Field(default_factory=get_current_utc_time)
    updated_at: datetime = Field(default_factory=get_current_utc_time)

    model_config = {
        "populate_by_name": True,
        "use_enum_values": True,
    }

    @field_validator('id', 'reply_to', mode='before')
    @classmethod
    def convert_object_ids(cls, v):
        return str(v) if isinstance(v, ObjectId) else v

    @model_validator(mode='after')
    def check_payload(self):
        """Exactly one of content and file is populated, chosen by type"""
        if self.message_type == MessageType.TEXT:
            if not self.content or self.file is not None:
                raise ValueError("Text messages carry content and no file")
        else:
            if self.file is None or self.content:
                raise ValueError(f"{self.message_type} messages carry a file and no content")
        return self

    def to_document(self) -> dict:
        """Mongo document with a real ObjectId primary key"""
        doc = self.model_dump(by_alias=True)
        doc["_id"] = ObjectId(self.id)
        return doc
