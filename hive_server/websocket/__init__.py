"""WebSocket module for real-time communication.

This module provides:
- WebSocket Hub (connection lifecycle, presence): hive_server.websocket.hub
- Event Emitter for room and broadcast delivery
- Chat handler for the in-room event protocol: hive_server.websocket.handlers

The hub is imported from its own module; it depends on the messaging
service, which itself emits through this package.
"""

from hive_server.websocket.event_emitter import EventEmitter

__all__ = ['EventEmitter']
