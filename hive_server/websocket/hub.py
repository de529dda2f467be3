"""Centralized WebSocket Hub.

Owns the connection lifecycle (connect, authenticate, disconnect) and the
presence registry, and wires the chat handler onto the Socket.IO server.

Per-connection states: Unauthenticated -> Authenticated -> Disconnected.
A connection is always accepted; it becomes Authenticated only through the
`authenticate` event, and a failed attempt leaves it open and unauthenticated.
"""
import logging
from typing import Optional

from flask import Flask, request
from flask_socketio import SocketIO, emit, join_room, leave_room, rooms

from config import config
from hive_server.exception.InvalidTokenError import InvalidTokenError
from hive_server.messaging.presence import PresenceRegistry
from hive_server.messaging.service import MessagingService, init_messaging_service
from hive_server.repository.group_repository import GroupRepository
from hive_server.repository.user_repository import UserRepository
from hive_server.security.authentication import AuthSecurity
from hive_server.utils.helpers import normalize_doc
from hive_server.utils.time_utils import now_std, to_iso
from hive_server.websocket.event_emitter import EventEmitter, group_room, set_socketio, user_room

logger = logging.getLogger(__name__)

socketio = SocketIO()


class WebSocketHub:
    """Centralized WebSocket Hub for real-time communication."""

    def __init__(self, socketio: SocketIO = None, presence: Optional[PresenceRegistry] = None,
                 users: Optional[UserRepository] = None, groups: Optional[GroupRepository] = None):
        self.socketio = socketio
        self.presence = presence if presence is not None else PresenceRegistry()
        self.users = users if users is not None else UserRepository()
        self.groups = groups if groups is not None else GroupRepository()
        self.service: Optional[MessagingService] = None
        self._initialized = False
        self._chat_handler = None

    def init_app(self, app: Flask, socketio: SocketIO, service: Optional[MessagingService] = None):
        """Initialize the WebSocket hub."""
        logger.debug("WS_HUB: init app=%s, mode=%s", app.name, getattr(socketio, 'async_mode', '?'))

        self.socketio = socketio
        self.app = app
        self.service = service if service is not None else init_messaging_service(
            users=self.users, groups=self.groups, presence=self.presence)

        set_socketio(socketio)

        self._register_handlers()
        self._init_chat_handler()

        self._initialized = True
        logger.debug("WS_HUB: initialized")

    def _init_chat_handler(self):
        from hive_server.websocket.handlers.chat_handler import init_chat_handler
        self._chat_handler = init_chat_handler(self.socketio, self)

    def _register_handlers(self):
        """Register connection lifecycle handlers."""

        @self.socketio.on_error_default
        def default_error_handler(e):
            logger.exception("WS error: %s", e)

        @self.socketio.on('connect')
        def handle_connect(auth=None):
            logger.debug("WS connect: sid=%s, ip=%s", request.sid, request.remote_addr)
            return True

        @self.socketio.on(EventEmitter.AUTHENTICATE)
        def handle_authenticate(data=None):
            try:
                self.authenticate(request.sid, (data or {}).get('token'))
            except Exception:
                logger.exception("WS authenticate failed: sid=%s", request.sid)
                emit(EventEmitter.AUTH_ERROR, {'message': 'Authentication failed'})

        @self.socketio.on('disconnect')
        def handle_disconnect(reason=None):
            self.disconnect(request.sid)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def authenticate(self, sid: str, token: Optional[str]) -> Optional[str]:
        """Bind a connection to the identity carried by `token`.

        Must run inside a Socket.IO event context. Returns the user id, or
        None after emitting `auth_error`. A connection already bound to
        another user is released from that user's rooms and presence first.
        """
        if not token:
            emit(EventEmitter.AUTH_ERROR, {'message': 'Token required'})
            return None
        try:
            user_id = AuthSecurity.verify(token)
        except InvalidTokenError as e:
            logger.info("WS auth failed: sid=%s, reason=%s", sid, e.message)
            emit(EventEmitter.AUTH_ERROR, {'message': 'Authentication failed'})
            return None

        user = self.users.current_user(user_id)
        if not user:
            emit(EventEmitter.AUTH_ERROR, {'message': 'User not found'})
            return None

        previous = self.presence.user_for_sid(sid)
        if previous and previous != user_id:
            self._release(previous, sid)
            for room in rooms(sid=sid):
                if room != sid:
                    leave_room(room, sid=sid)

        self.presence.register(user_id, sid, user)
        join_room(user_room(user_id))
        for group_id in user['joined_groups']:
            join_room(group_room(group_id))
        self.users.set_online(user_id, True)

        emit(EventEmitter.AUTHENTICATED, {
            'message': 'Authentication successful',
            'user': normalize_doc(self.users.public_profile(user_id)),
        })
        EventEmitter.broadcast(EventEmitter.USER_ONLINE, {
            'userId': user_id,
            'name': user.get('name'),
            'avatar': user.get('avatar'),
        }, skip_sid=sid)
        logger.info("WS authenticated: user=%s, sid=%s, groups=%d", user_id, sid, len(user['joined_groups']))
        return user_id

    def disconnect(self, sid: str) -> bool:
        """Tear down a connection. Returns True when the user went offline.

        A connection that was superseded by a newer one for the same user
        leaves the newer entry (and the user's online state) untouched.
        """
        user_id = self.presence.user_for_sid(sid)
        if not user_id:
            logger.debug("WS disconnect: unauthenticated sid=%s", sid)
            return False
        return self._release(user_id, sid)

    def _release(self, user_id: str, sid: str) -> bool:
        if not self.presence.unregister(user_id, sid):
            logger.debug("WS release: superseded sid=%s for user=%s", sid, user_id)
            return False

        last_seen = now_std()
        self.users.set_online(user_id, False)
        self.users.set_last_seen(user_id, last_seen)
        EventEmitter.broadcast(EventEmitter.USER_OFFLINE, {
            'userId': user_id,
            'lastSeen': to_iso(last_seen),
        }, skip_sid=sid)
        logger.info("WS offline: user=%s, sid=%s", user_id, sid)
        return True

    def current_user_id(self, sid: str) -> Optional[str]:
        return self.presence.user_for_sid(sid)


# Singleton instance
_hub_instance: Optional[WebSocketHub] = None


def get_websocket_hub() -> WebSocketHub:
    """Get WebSocket hub singleton."""
    global _hub_instance
    if _hub_instance is None:
        _hub_instance = WebSocketHub()
    return _hub_instance


def init_websocket_hub(app: Flask, socketio: SocketIO = socketio, **kwargs) -> WebSocketHub:
    """Create a hub (with a fresh presence registry) and bind it to the app."""
    global _hub_instance
    socketio.init_app(
        app,
        cors_allowed_origins=config.CORS_ORIGINS_LIST if config.CORS_ORIGINS != '*' else '*',
        async_mode=config.SOCKETIO_ASYNC_MODE,
    )
    _hub_instance = WebSocketHub(**kwargs)
    _hub_instance.init_app(app, socketio)
    return _hub_instance
