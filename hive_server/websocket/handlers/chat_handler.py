"""WebSocket Chat Handler.

Handles the in-room event protocol for authenticated connections:
- group room join/leave
- direct and group sends
- typing indicators
- read receipts
- status updates, notification relay, call signaling

Every event runs through `_guarded`: a MessagingError becomes an `error`
event ({code, message}) on the originating connection only, and anything
unexpected is logged and reported as SERVER_ERROR. The connection stays open
either way.

Messages are stored before anything is emitted; delivery to a connection that
went away in the meantime is simply skipped by Socket.IO.
"""
import functools
import logging
from typing import Any, Dict

from flask import request
from flask_socketio import emit, join_room, leave_room

from hive_server.dto.message_dto import SendDirectCommand, SendGroupCommand
from hive_server.exception.AccessDeniedError import AccessDeniedError
from hive_server.exception.MessagingError import MessagingError
from hive_server.exception.UnauthorizedError import UnauthorizedError
from hive_server.exception.ValidationError import ValidationError
from hive_server.messaging.models import PresenceStatus
from hive_server.utils.generator import build_conversation_key
from hive_server.websocket.event_emitter import EventEmitter, group_room

logger = logging.getLogger(__name__)

STATUSES = tuple(s.value for s in PresenceStatus)


class ChatHandler:
    """Handler for WebSocket chat events."""

    def __init__(self, socketio, hub):
        """
        Args:
            socketio: Flask-SocketIO instance
            hub: WebSocketHub owning presence and the messaging service
        """
        self.socketio = socketio
        self.hub = hub

    @property
    def service(self):
        return self.hub.service

    def _current_user(self) -> str:
        user_id = self.hub.current_user_id(request.sid)
        if not user_id:
            raise UnauthorizedError('Not authenticated')
        return user_id

    def _current_name(self, user_id: str):
        entry = self.hub.presence.get_entry(user_id)
        return entry.name if entry else None

    @staticmethod
    def _require(data: Dict[str, Any], *fields) -> None:
        missing = {f: f'{f} is required.' for f in fields if not data.get(f)}
        if missing:
            raise ValidationError('Validation failed', errors=missing)

    def _guarded(self, func):
        @functools.wraps(func)
        def wrapper(data=None):
            try:
                return func(data if isinstance(data, dict) else {})
            except MessagingError as e:
                logger.info("WS %s rejected for sid=%s: %s", func.__name__, request.sid, e.message)
                emit(EventEmitter.ERROR, e.to_dict())
            except Exception:
                logger.exception("WS %s failed for sid=%s", func.__name__, request.sid)
                emit(EventEmitter.ERROR, {'code': 'SERVER_ERROR', 'message': 'Server error'})
        return wrapper

    def register_handlers(self):
        """Register all chat WebSocket event handlers."""
        on = self.socketio.on

        # =====================================================================
        # Rooms
        # =====================================================================

        @on(EventEmitter.JOIN_GROUP)
        @self._guarded
        def join_group(data):
            user_id = self._current_user()
            self._require(data, 'groupId')
            group_id = str(data['groupId'])
            group = self.hub.groups.find_by_id(group_id)
            if not group or not self.hub.groups.is_member(group_id, user_id):
                raise AccessDeniedError('Access denied to group')
            join_room(group_room(group_id))
            emit(EventEmitter.JOINED_GROUP, {'groupId': group_id, 'groupName': group.get('name')})

        @on(EventEmitter.LEAVE_GROUP)
        @self._guarded
        def leave_group(data):
            self._current_user()
            self._require(data, 'groupId')
            group_id = str(data['groupId'])
            leave_room(group_room(group_id))
            emit(EventEmitter.LEFT_GROUP, {'groupId': group_id})

        # =====================================================================
        # Messages
        # =====================================================================

        @on(EventEmitter.SEND_MESSAGE)
        @self._guarded
        def send_message(data):
            user_id = self._current_user()
            message = self.service.send_direct(user_id, SendDirectCommand.from_payload(data))
            emit(EventEmitter.MESSAGE_SENT, {
                'message': message.to_dict(),
                'conversationId': message.conversation,
            })

        @on(EventEmitter.SEND_GROUP_MESSAGE)
        @self._guarded
        def send_group_message(data):
            user_id = self._current_user()
            command = SendGroupCommand.from_payload(data)
            message = self.service.send_group(user_id, command, skip_sid=request.sid)
            emit(EventEmitter.GROUP_MESSAGE_SENT, {
                'message': message.to_dict(),
                'groupId': command.group,
            })

        @on(EventEmitter.MARK_AS_READ)
        @self._guarded
        def mark_as_read(data):
            user_id = self._current_user()
            self._require(data, 'messageId')
            self.service.mark_read(user_id, str(data['messageId']), skip_sid=request.sid)

        # =====================================================================
        # Typing
        # =====================================================================

        def relay_typing(data, event, include_name):
            user_id = self._current_user()
            payload = {'userId': user_id}
            if include_name:
                payload['userName'] = self._current_name(user_id)
            if data.get('groupId'):
                payload['groupId'] = str(data['groupId'])
                EventEmitter.emit_to_group(data['groupId'], event, payload, skip_sid=request.sid)
            elif data.get('recipientId'):
                payload['conversationId'] = build_conversation_key(user_id, data['recipientId'])
                EventEmitter.emit_to_user(data['recipientId'], event, payload, skip_sid=request.sid)
            else:
                raise ValidationError('Validation failed', errors={'target': 'groupId or recipientId is required.'})

        @on(EventEmitter.TYPING_START)
        @self._guarded
        def typing_start(data):
            relay_typing(data, EventEmitter.USER_TYPING, include_name=True)

        @on(EventEmitter.TYPING_STOP)
        @self._guarded
        def typing_stop(data):
            relay_typing(data, EventEmitter.USER_STOP_TYPING, include_name=False)

        # =====================================================================
        # Presence / Notifications
        # =====================================================================

        @on(EventEmitter.UPDATE_STATUS)
        @self._guarded
        def update_status(data):
            user_id = self._current_user()
            status = data.get('status')
            if status not in STATUSES:
                raise ValidationError('Validation failed', errors={'status': f"status must be one of: {', '.join(STATUSES)}."})
            self.hub.users.set_status(user_id, status)
            self.hub.presence.touch(user_id)
            EventEmitter.broadcast(EventEmitter.USER_STATUS_UPDATE,
                                   {'userId': user_id, 'status': status}, skip_sid=request.sid)

        @on(EventEmitter.SEND_NOTIFICATION)
        @self._guarded
        def send_notification(data):
            self._current_user()
            self._require(data, 'recipientId', 'notification')
            EventEmitter.emit_to_user(data['recipientId'], EventEmitter.NEW_NOTIFICATION,
                                      data['notification'], skip_sid=request.sid)

        # =====================================================================
        # Call signaling (payloads are relayed untouched)
        # =====================================================================

        @on(EventEmitter.CALL_USER)
        @self._guarded
        def call_user(data):
            user_id = self._current_user()
            self._require(data, 'recipientId')
            EventEmitter.emit_to_user(data['recipientId'], EventEmitter.INCOMING_CALL, {
                'from': user_id,
                'caller': self._current_name(user_id),
                'callType': data.get('callType'),
                'offer': data.get('offer'),
            }, skip_sid=request.sid)

        @on(EventEmitter.ANSWER_CALL)
        @self._guarded
        def answer_call(data):
            user_id = self._current_user()
            self._require(data, 'callerId')
            EventEmitter.emit_to_user(data['callerId'], EventEmitter.CALL_ANSWERED, {
                'from': user_id,
                'answer': data.get('answer'),
            }, skip_sid=request.sid)

        @on(EventEmitter.END_CALL)
        @self._guarded
        def end_call(data):
            user_id = self._current_user()
            self._require(data, 'recipientId')
            EventEmitter.emit_to_user(data['recipientId'], EventEmitter.CALL_ENDED,
                                      {'from': user_id}, skip_sid=request.sid)

        logger.debug("Chat handlers registered")


# Singleton instance
_chat_handler = None


def init_chat_handler(socketio, hub) -> ChatHandler:
    """Initialize chat handler and register its events."""
    global _chat_handler
    _chat_handler = ChatHandler(socketio, hub)
    _chat_handler.register_handlers()
    return _chat_handler


def get_chat_handler() -> ChatHandler:
    return _chat_handler
