"""WebSocket event handlers package."""

from hive_server.websocket.handlers.chat_handler import ChatHandler, init_chat_handler, get_chat_handler

__all__ = ['ChatHandler', 'init_chat_handler', 'get_chat_handler']
