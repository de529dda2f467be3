"""Messaging service layer for business logic.

Coordinates authorization (sender-only edits, group membership, admin
override on deletes, the edit window) with the message store, and pushes
every resulting state change to live clients through the EventEmitter.
Socket handlers and REST routes both go through this class.
"""
import logging
import math
from typing import Any, Callable, Dict, List, Optional, Tuple

from config import config
from hive_server.dto.message_dto import EditCommand, ReactionCommand, SendDirectCommand, SendGroupCommand
from hive_server.exception.AccessDeniedError import AccessDeniedError
from hive_server.exception.EditWindowExpiredError import EditWindowExpiredError
from hive_server.exception.NotFoundError import NotFoundError
from hive_server.exception.ValidationError import ValidationError
from hive_server.messaging.models import Message
from hive_server.messaging.presence import PresenceRegistry
from hive_server.messaging.repository import MessagingRepository, get_messaging_repository
from hive_server.repository.group_repository import GroupRepository
from hive_server.repository.user_repository import UserRepository
from hive_server.utils.time_utils import minutes_between, now_std
from hive_server.utils.validation import validate_search_query
from hive_server.websocket.event_emitter import EventEmitter, group_room, user_room

logger = logging.getLogger(__name__)


class MessagingService:
    """High-level messaging service."""

    def __init__(self, repo: Optional[MessagingRepository] = None, users: Optional[UserRepository] = None,
                 groups: Optional[GroupRepository] = None, presence: Optional[PresenceRegistry] = None,
                 clock: Callable = now_std, edit_window_minutes: Optional[int] = None):
        self.repo = repo if repo is not None else get_messaging_repository()
        self.users = users if users is not None else UserRepository()
        self.groups = groups if groups is not None else GroupRepository()
        self.presence = presence if presence is not None else PresenceRegistry()
        self.clock = clock
        self.edit_window_minutes = edit_window_minutes if edit_window_minutes is not None else config.EDIT_WINDOW_MINUTES

    # =========================================================================
    # Authorization helpers
    # =========================================================================

    def _require_user(self, user_id) -> Dict[str, Any]:
        user = self.users.find_by_id(user_id)
        if not user:
            raise NotFoundError('User not found')
        return user

    def _require_member(self, group_id, user_id) -> Dict[str, Any]:
        group = self.groups.find_by_id(group_id)
        if not group:
            raise NotFoundError('Group not found')
        if not self.groups.is_member(group_id, user_id):
            raise AccessDeniedError('Access denied to group')
        return group

    def _require_participant(self, message: Message, user_id: str) -> None:
        if message.is_direct:
            if user_id not in message.participants():
                raise AccessDeniedError('Access denied to message')
        elif not self.groups.is_member(message.group, user_id):
            raise AccessDeniedError('Access denied to group')

    @staticmethod
    def room_for(message: Message) -> str:
        """Room that sees changes to a message: the group, or the direct recipient."""
        if message.group:
            return group_room(message.group)
        return user_room(message.recipient)

    # =========================================================================
    # Send
    # =========================================================================

    def send_direct(self, sender_id: str, command: SendDirectCommand) -> Message:
        """Store a direct message and push `new_message` to the recipient's room.

        An offline recipient gets nothing live; the message is in history.
        """
        self._require_user(command.recipient)
        message = self.repo.create(
            sender_id, command.content, recipient_id=command.recipient,
            message_type=command.message_type, reply_to=command.reply_to,
            attachments=command.attachments,
        )
        self.repo.denormalize([message])
        EventEmitter.emit_to_user(command.recipient, EventEmitter.NEW_MESSAGE, {
            'message': message.to_dict(),
            'conversationId': message.conversation,
        })
        return message

    def send_group(self, sender_id: str, command: SendGroupCommand, skip_sid: Optional[str] = None) -> Message:
        self._require_member(command.group, sender_id)
        message = self.repo.create(
            sender_id, command.content, group_id=command.group,
            message_type=command.message_type, reply_to=command.reply_to,
            attachments=command.attachments,
        )
        self.repo.denormalize([message])
        EventEmitter.emit_to_group(command.group, EventEmitter.NEW_GROUP_MESSAGE, {
            'message': message.to_dict(),
            'groupId': command.group,
        }, skip_sid=skip_sid)
        return message

    # =========================================================================
    # History
    # =========================================================================

    def get_conversation(self, user_id: str, other_id: str, page: int = 1, limit: int = 50) -> List[Message]:
        """Oldest-first page of the conversation; marks the other user's messages read."""
        self._require_user(other_id)
        messages = self.repo.get_conversation(user_id, other_id, page, limit)
        marked = self.repo.mark_conversation_read(user_id, other_id)
        logger.debug("Marked %d messages read for %s in conversation with %s", marked, user_id, other_id)
        return list(reversed(messages))

    def get_group_messages(self, user_id: str, group_id: str, page: int = 1, limit: int = 50) -> List[Message]:
        self._require_member(group_id, user_id)
        messages = self.repo.get_group_messages(group_id, page, limit)
        self.repo.mark_group_read(group_id, user_id)
        return list(reversed(messages))

    def get_conversation_summaries(self, user_id: str) -> List[Dict[str, Any]]:
        summaries = self.repo.get_user_conversation_summaries(user_id)
        others = self.users.get_display_info(s['otherUserId'] for s in summaries)
        return [
            {
                'conversationKey': s['conversationKey'],
                'otherUser': others.get(s['otherUserId'], {'id': s['otherUserId'], 'name': None, 'avatar': None}),
                'lastMessage': s['lastMessage'].to_dict(),
                'unreadCount': s['unreadCount'],
            }
            for s in summaries
        ]

    # =========================================================================
    # Mutations
    # =========================================================================

    def edit_message(self, user_id: str, message_id: str, command: EditCommand) -> Message:
        message = self.repo.get(message_id)
        if message.sender != user_id:
            raise AccessDeniedError('Only the sender can edit a message')
        if minutes_between(message.created_at, self.clock()) > self.edit_window_minutes:
            raise EditWindowExpiredError(
                f'Messages can only be edited within {self.edit_window_minutes} minutes of sending')
        updated = self.repo.edit_content(message_id, command.content)
        EventEmitter.emit_to_room(self.room_for(updated), EventEmitter.MESSAGE_EDITED, {
            'messageId': updated.message_id,
            'content': updated.content,
            'editedAt': updated.to_dict()['edited']['editedAt'],
        })
        return updated

    def delete_message(self, user_id: str, message_id: str) -> Message:
        message = self.repo.get(message_id)
        allowed = message.sender == user_id
        if not allowed and message.group:
            allowed = self.groups.is_admin(message.group, user_id)
        if not allowed:
            raise AccessDeniedError('Access denied')
        deleted = self.repo.soft_delete(message_id)
        EventEmitter.emit_to_room(self.room_for(deleted), EventEmitter.MESSAGE_DELETED, {
            'messageId': deleted.message_id,
            'deletedBy': user_id,
        })
        return deleted

    def toggle_reaction(self, user_id: str, message_id: str, command: ReactionCommand) -> Tuple[Message, bool]:
        message = self.repo.get(message_id)
        self._require_participant(message, user_id)
        added = self.repo.toggle_reaction(message_id, user_id, command.emoji)
        EventEmitter.emit_to_room(self.room_for(message), EventEmitter.MESSAGE_REACTION, {
            'messageId': message.message_id,
            'userId': user_id,
            'emoji': command.emoji,
            'added': added,
        })
        return self.repo.get(message_id), added

    def mark_read(self, user_id: str, message_id: str, skip_sid: Optional[str] = None) -> bool:
        """Mark a message read and tell the other participants.

        Returns False when the user had already read it; no event is sent then.
        """
        message = self.repo.get(message_id)
        self._require_participant(message, user_id)
        if not self.repo.mark_read(message_id, user_id):
            return False
        if message.group:
            EventEmitter.emit_to_group(message.group, EventEmitter.MESSAGE_READ, {
                'messageId': message.message_id,
                'readBy': user_id,
                'groupId': message.group,
            }, skip_sid=skip_sid)
        else:
            EventEmitter.emit_to_user(message.sender, EventEmitter.MESSAGE_READ, {
                'messageId': message.message_id,
                'readBy': user_id,
                'conversationId': message.conversation,
            }, skip_sid=skip_sid)
        return True

    # =========================================================================
    # Search / Aggregates
    # =========================================================================

    @staticmethod
    def _search_result(messages: List[Message], total: int, page: int, limit: int) -> Dict[str, Any]:
        return {
            'messages': [m.to_dict() for m in messages],
            'totalCount': total,
            'page': page,
            'totalPages': math.ceil(total / limit) if limit else 0,
        }

    def search_conversation(self, user_id: str, other_id: str, query: str, page: int = 1,
                            limit: Optional[int] = None) -> Dict[str, Any]:
        ok, errors = validate_search_query(query)
        if not ok:
            raise ValidationError('Validation failed', errors=errors)
        limit = limit or config.SEARCH_PAGE_SIZE
        messages, total = self.repo.search_conversation(user_id, other_id, query, page, limit)
        return self._search_result(messages, total, page, limit)

    def search_group(self, user_id: str, group_id: str, query: str, page: int = 1,
                     limit: Optional[int] = None) -> Dict[str, Any]:
        ok, errors = validate_search_query(query)
        if not ok:
            raise ValidationError('Validation failed', errors=errors)
        self._require_member(group_id, user_id)
        limit = limit or config.SEARCH_PAGE_SIZE
        messages, total = self.repo.search_group(group_id, query, page, limit)
        return self._search_result(messages, total, page, limit)

    def unread_count(self, user_id: str) -> int:
        user = self.users.current_user(user_id)
        if not user:
            raise NotFoundError('User not found')
        return self.repo.count_unread(user_id, user['joined_groups'])

    def online_users(self) -> List[Dict[str, Any]]:
        return self.presence.list_connected()


# Singleton instance
_messaging_service = None


def get_messaging_service() -> MessagingService:
    """Get singleton messaging service instance."""
    global _messaging_service
    if _messaging_service is None:
        _messaging_service = MessagingService()
    return _messaging_service


def init_messaging_service(**kwargs) -> MessagingService:
    """Replace the singleton, e.g. to share the gateway's presence registry."""
    global _messaging_service
    _messaging_service = MessagingService(**kwargs)
    return _messaging_service
