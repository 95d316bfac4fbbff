"""
Errors raised by the messaging core.

Each error carries the HTTP status it maps to so the HTTP layer and the
realtime gateway can report it without knowing where it came from.
"""
from fastapi import status


class MessagingError(Exception):
    """Base exception for all messaging errors"""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)
        self.message = message


class ValidationError(MessagingError):
    """Missing or malformed input; rejected before any store mutation"""
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(MessagingError):
    """Receiver, message or conversation does not exist"""
    status_code = status.HTTP_404_NOT_FOUND


class AuthenticationError(MessagingError):
    """Missing or invalid credential"""
    status_code = status.HTTP_401_UNAUTHORIZED


class AuthorizationError(MessagingError):
    """Caller is known but not allowed to perform the action"""
    status_code = status.HTTP_403_FORBIDDEN


class PersistenceError(MessagingError):
    """The document store failed during a mutation"""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
