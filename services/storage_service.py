# Attachment storage for non-text messages, backed by MinIO
import io
import os
import uuid
from typing import Dict, List, Optional

from fastapi.concurrency import run_in_threadpool

from config import settings, ATTACHMENT_MAX_BYTES
from db.schemas.files_schema import FileReference
from logger.logger import logger
from models.enums import MessageType
from services.exceptions import ValidationError, PersistenceError

ALLOWED_MIME_TYPES: Dict[str, List[str]] = {
    MessageType.VOICE.value: [
        'audio/mpeg', 'audio/wav', 'audio/mp3', 'audio/ogg', 'audio/webm'
    ],
    MessageType.MEDIA.value: [
        'image/jpeg', 'image/jpg', 'image/png', 'image/gif', 'image/webp',
        'video/mp4', 'video/webm', 'video/quicktime'
    ],
    MessageType.DOCUMENT.value: [
        'application/pdf',
        'application/vnd.ms-powerpoint',
        'application/vnd.openxmlformats-officedocument.presentationml.presentation',
        'application/msword',
        'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
        'text/plain'
    ],
}


def validate_attachment(message_type: str, mime_type: Optional[str], size: int, max_bytes: int = ATTACHMENT_MAX_BYTES) -> None:
    """Reject attachments with the wrong MIME type for their message type or over the size cap"""
    allowed = ALLOWED_MIME_TYPES.get(message_type)
    if allowed is None:
        raise ValidationError("No file upload required for text messages")

    if mime_type not in allowed:
        raise ValidationError(
            f"Invalid file type for {message_type} message. Allowed types: {', '.join(allowed)}"
        )

    if size > max_bytes:
        raise ValidationError(f"File too large. Maximum size allowed is {max_bytes // (1024 * 1024)}MB.")


class AttachmentStorage:
    """
    Uploads and removes message attachments.
    The MinIO client is resolved on first use, so text-only traffic never
    touches object storage.
    """

    def __init__(self, minio_client=None, bucket_name: Optional[str] = None, public_url: Optional[str] = None):
        self._client = minio_client
        self.bucket_name = bucket_name or settings.MINIO_BUCKET
        self.public_url = public_url or settings.MINIO_PUBLIC_URL

    async def _get_client(self):
        if self._client is None:
            from db.db import get_object_storage
            self._client = await get_object_storage()
        return self._client

    async def upload(self, data: bytes, filename: str, mime_type: str, message_type: str) -> FileReference:
        """Store the bytes under messages/<type>/<uuid>.<ext> and describe the result"""
        client = await self._get_client()

        file_id = str(uuid.uuid4())
        extension = os.path.splitext(filename)[1].lower()
        object_name = f"messages/{message_type}/{file_id}{extension}"

        try:
            await run_in_threadpool(
                client.put_object,
                self.bucket_name,
                object_name,
                io.BytesIO(data),
                len(data),
                content_type=mime_type
            )
        except Exception as e:
            logger.error(f"Attachment upload failed for {filename}: {e}")
            raise PersistenceError("Failed to upload file") from e

        logger.info(f"Uploaded attachment {object_name} ({len(data)} bytes)")
        return FileReference(
            url=f"{self.public_url}/{self.bucket_name}/{object_name}",
            name=filename,
            size=len(data),
            mime_type=mime_type,
            object_name=object_name
        )

    async def delete(self, object_name: str) -> None:
        """Discard an uploaded object whose message never got stored"""
        client = await self._get_client()
        try:
            await run_in_threadpool(client.remove_object, self.bucket_name, object_name)
            logger.info(f"Discarded attachment {object_name}")
        except Exception as e:
            logger.warning(f"Could not discard attachment {object_name}: {e}")
