"""Centralized Event Emitter for real-time WebSocket communication.

Usage:
    from hive_server.websocket.event_emitter import EventEmitter

    # Emit to every connection of a user (their personal room)
    EventEmitter.emit_to_user(user_id, EventEmitter.NEW_MESSAGE, data)

    # Emit to a group room, skipping the originating connection
    EventEmitter.emit_to_room(group_room(group_id), EventEmitter.NEW_GROUP_MESSAGE, data, skip_sid=sid)

Emits work from both socket handlers and HTTP request handlers, so
REST-originated changes reach live clients the same way.
"""
import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

# Will be set when WebSocket hub initializes
_socketio = None

USER_ROOM_PREFIX = 'user_'
GROUP_ROOM_PREFIX = 'group_'


def set_socketio(socketio_instance):
    """Set the Socket.IO instance for the event emitter."""
    global _socketio
    _socketio = socketio_instance
    logger.debug("EventEmitter initialized with Socket.IO instance")


def user_room(user_id) -> str:
    return f"{USER_ROOM_PREFIX}{user_id}"


def group_room(group_id) -> str:
    return f"{GROUP_ROOM_PREFIX}{group_id}"


class EventEmitter:
    """Centralized event emitter for all real-time events."""

    # =========================================================================
    # Event Type Constants
    # =========================================================================

    # Session
    AUTHENTICATE = 'authenticate'
    AUTHENTICATED = 'authenticated'
    AUTH_ERROR = 'auth_error'
    ERROR = 'error'

    # Rooms
    JOIN_GROUP = 'join_group'
    JOINED_GROUP = 'joined_group'
    LEAVE_GROUP = 'leave_group'
    LEFT_GROUP = 'left_group'

    # Messages
    SEND_MESSAGE = 'send_message'
    NEW_MESSAGE = 'new_message'
    MESSAGE_SENT = 'message_sent'
    SEND_GROUP_MESSAGE = 'send_group_message'
    NEW_GROUP_MESSAGE = 'new_group_message'
    GROUP_MESSAGE_SENT = 'group_message_sent'
    MARK_AS_READ = 'mark_as_read'
    MESSAGE_READ = 'message_read'
    MESSAGE_EDITED = 'message_edited'
    MESSAGE_DELETED = 'message_deleted'
    MESSAGE_REACTION = 'message_reaction'

    # Typing
    TYPING_START = 'typing_start'
    USER_TYPING = 'user_typing'
    TYPING_STOP = 'typing_stop'
    USER_STOP_TYPING = 'user_stop_typing'

    # Presence
    UPDATE_STATUS = 'update_status'
    USER_STATUS_UPDATE = 'user_status_update'
    USER_ONLINE = 'user_online'
    USER_OFFLINE = 'user_offline'

    # Notifications
    SEND_NOTIFICATION = 'send_notification'
    NEW_NOTIFICATION = 'new_notification'

    # Call signaling
    CALL_USER = 'call_user'
    INCOMING_CALL = 'incoming_call'
    ANSWER_CALL = 'answer_call'
    CALL_ANSWERED = 'call_answered'
    END_CALL = 'end_call'
    CALL_ENDED = 'call_ended'

    # =========================================================================
    # Emit Methods
    # =========================================================================

    @staticmethod
    def emit_to_room(room_id: str, event: str, data: Dict[str, Any], skip_sid: Optional[str] = None) -> bool:
        """Emit event to every connection in a room.

        Args:
            room_id: The room identifier (see user_room / group_room)
            event: Event name
            data: Event payload
            skip_sid: Optional connection to leave out (the originator)

        Returns:
            True if the event was handed to Socket.IO
        """
        if not _socketio:
            logger.warning("Socket.IO not initialized, cannot emit %s to room %s", event, room_id)
            return False
        _socketio.emit(event, data, to=room_id, skip_sid=skip_sid)
        logger.debug("Emitted %s to room %s", event, room_id)
        return True

    @staticmethod
    def emit_to_user(user_id, event: str, data: Dict[str, Any], skip_sid: Optional[str] = None) -> bool:
        """Emit to a user's personal room. Offline users simply receive nothing."""
        return EventEmitter.emit_to_room(user_room(user_id), event, data, skip_sid=skip_sid)

    @staticmethod
    def emit_to_group(group_id, event: str, data: Dict[str, Any], skip_sid: Optional[str] = None) -> bool:
        return EventEmitter.emit_to_room(group_room(group_id), event, data, skip_sid=skip_sid)

    @staticmethod
    def broadcast(event: str, data: Dict[str, Any], skip_sid: Optional[str] = None) -> bool:
        """Broadcast event to all connected clients."""
        if not _socketio:
            logger.warning("Socket.IO not initialized, cannot broadcast %s", event)
            return False
        _socketio.emit(event, data, skip_sid=skip_sid)
        logger.debug("Broadcast %s to all clients", event)
        return True
