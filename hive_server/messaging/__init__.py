"""Direct and group messaging.

This module provides:
- Message model and conversation key derivation
- Presence registry for connected users
- Message store over MongoDB
- Messaging service (authorization + real-time fan-out)
"""

from hive_server.messaging.models import Message, Attachment, MessageType, PresenceStatus
from hive_server.messaging.presence import PresenceRegistry, PresenceEntry
from hive_server.messaging.repository import MessagingRepository, get_messaging_repository
from hive_server.messaging.service import MessagingService, get_messaging_service

__all__ = [
    # Models
    'Message', 'Attachment', 'MessageType', 'PresenceStatus',
    # Presence
    'PresenceRegistry', 'PresenceEntry',
    # Repository
    'MessagingRepository', 'get_messaging_repository',
    # Service
    'MessagingService', 'get_messaging_service',
]
