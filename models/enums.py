from enum import Enum

class MessageType(str, Enum):
    """Kinds of direct message"""
    TEXT = "text"
    VOICE = "voice"
    MEDIA = "media"
    DOCUMENT = "document"

class MessageStatus(str, Enum):
    """Delivery status; only ever moves forward in this order"""
    SENT = "sent"
    DELIVERED = "delivered"
    SEEN = "seen"

class PresenceStatus(str, Enum):
    """Statuses a connected user can pick; offline is the absence of an entry"""
    ONLINE = "online"
    AWAY = "away"
    BUSY = "busy"

class SocketEvent(str, Enum):
    """Realtime event names, inbound and outbound"""
    # inbound
    JOIN_CONVERSATION = "joinConversation"
    LEAVE_CONVERSATION = "leaveConversation"
    SEND_MESSAGE = "sendMessage"
    START_TYPING = "startTyping"
    STOP_TYPING = "stopTyping"
    MARK_AS_SEEN = "markAsSeen"
    DELETE_MESSAGE = "deleteMessage"
    UPDATE_STATUS = "updateStatus"
    # outbound
    NEW_MESSAGE = "newMessage"
    MESSAGE_SENT = "messageSent"
    MESSAGES_DELIVERED = "messagesDelivered"
    MESSAGES_SEEN = "messagesSeen"
    MESSAGE_DELETED = "messageDeleted"
    MESSAGE_DELETED_CONFIRM = "messageDeletedConfirm"
    USER_ONLINE = "userOnline"
    USER_OFFLINE = "userOffline"
    USER_STATUS_UPDATE = "userStatusUpdate"
    ONLINE_USERS = "onlineUsers"
    ERROR = "error"
