"""
Import common dependencies to make them available from the package level.
This allows imports like: from dependencies import get_current_user
"""
from .auth import get_current_user, get_token_verifier
from .db import get_db
from .user import get_user_repository
from .messages import get_delivery_coordinator, get_message_service, get_attachment_storage
