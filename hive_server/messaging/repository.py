"""Messaging repository over the `messages` collection.

Provides:
- message creation (direct or group) with conversation key and mentions
- reactions, read receipts, edits and soft delete, each a single-document
  update so concurrent handlers need no application locking
- paginated history by conversation or group, text search
- per-user conversation summaries and unread counts

Authorization (who may edit/delete, edit window, membership) is the
service's concern; this layer only enforces message invariants.
"""
import logging
import re
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from hive_server.exception.NotFoundError import NotFoundError
from hive_server.exception.ValidationError import ValidationError
from hive_server.messaging.models import Attachment, Message, extract_mention_handles
from hive_server.repository.mongo_helper import get_collection
from hive_server.repository.user_repository import UserRepository
from hive_server.utils.generator import build_conversation_key, generate_message_id
from hive_server.utils.time_utils import now_std
from hive_server.utils.validation import (
    validate_addressing, validate_attachments, validate_content, validate_message_type,
)

logger = logging.getLogger(__name__)

NOT_DELETED = {'is_deleted': False}


class MessagingRepository:
    """Message store.

    `collection` and `user_repo` are resolved lazily when not injected.
    `mention_resolver(handles) -> [user_id]` maps `@handle` tokens to user
    identities; without one, mentions stay empty. `clock` returns the
    current naive-UTC datetime.
    """

    def __init__(self, collection=None, user_repo: Optional[UserRepository] = None,
                 mention_resolver: Optional[Callable[[List[str]], List[str]]] = None,
                 clock: Callable = now_std):
        self._collection = collection
        self._user_repo = user_repo
        self.mention_resolver = mention_resolver
        self.clock = clock

    @property
    def messages(self):
        if self._collection is None:
            self._collection = get_collection('messages')
        return self._collection

    @property
    def users(self) -> UserRepository:
        if self._user_repo is None:
            self._user_repo = UserRepository()
        return self._user_repo

    # =========================================================================
    # Create / Read
    # =========================================================================

    def create(self, sender_id, content: str, recipient_id=None, group_id=None,
               message_type: str = 'text', reply_to: Optional[str] = None,
               attachments: Optional[List[Dict[str, Any]]] = None) -> Message:
        errors = {}
        for ok, e in (
            validate_addressing(recipient_id, group_id),
            validate_content(content),
            validate_message_type(message_type),
            validate_attachments(attachments),
        ):
            if not ok:
                errors.update(e)
        if not sender_id:
            errors['sender'] = 'Sender is required.'
        if errors:
            raise ValidationError('Validation failed', errors=errors)

        sender_id = str(sender_id)
        recipient_id = str(recipient_id) if recipient_id else None
        group_id = str(group_id) if group_id else None
        conversation = build_conversation_key(sender_id, recipient_id) if recipient_id else None

        now = self.clock()
        message = Message(
            message_id=generate_message_id(),
            sender=sender_id,
            content=content.strip(),
            recipient=recipient_id,
            group=group_id,
            conversation=conversation,
            message_type=message_type,
            attachments=[Attachment.from_doc(a) for a in attachments or []],
            reply_to=str(reply_to) if reply_to else None,
            mentions=self._resolve_mentions(content),
            created_at=now,
            updated_at=now,
        )
        self.messages.insert_one(message.to_db_doc())
        logger.debug("Stored message %s from %s", message.message_id, sender_id)
        return message

    def _resolve_mentions(self, content: str) -> List[str]:
        handles = extract_mention_handles(content)
        if not handles or self.mention_resolver is None:
            return []
        return [str(u) for u in self.mention_resolver(handles) or []]

    def get(self, message_id, include_deleted: bool = False) -> Message:
        query = {'_id': str(message_id)}
        if not include_deleted:
            query.update(NOT_DELETED)
        doc = self.messages.find_one(query)
        if not doc:
            raise NotFoundError('Message not found')
        return Message.from_doc(doc)

    # =========================================================================
    # Reactions
    # =========================================================================

    def add_reaction(self, message_id, user_id, emoji: str) -> bool:
        """Add a (user, emoji) reaction. Returns False when the pair already exists."""
        message = self.get(message_id)
        user_id = str(user_id)
        now = self.clock()
        result = self.messages.update_one(
            {
                '_id': message.message_id,
                'reactions': {'$not': {'$elemMatch': {'user': user_id, 'emoji': emoji}}},
                **NOT_DELETED,
            },
            {
                '$push': {'reactions': {'user': user_id, 'emoji': emoji, 'created_at': now}},
                '$set': {'updated_at': now},
            }
        )
        return result.modified_count > 0

    def remove_reaction(self, message_id, user_id, emoji: str) -> None:
        message = self.get(message_id)
        pair = {'user': str(user_id), 'emoji': emoji}
        self.messages.update_one(
            {'_id': message.message_id, 'reactions': {'$elemMatch': pair}},
            {'$pull': {'reactions': pair}, '$set': {'updated_at': self.clock()}}
        )

    def toggle_reaction(self, message_id, user_id, emoji: str) -> bool:
        """Add the reaction, or remove it when already present. Returns whether it was added."""
        if self.add_reaction(message_id, user_id, emoji):
            return True
        self.remove_reaction(message_id, user_id, emoji)
        return False

    # =========================================================================
    # Read Receipts
    # =========================================================================

    def mark_read(self, message_id, user_id) -> bool:
        """Record that user_id read the message. Returns False if it was already read."""
        message = self.get(message_id)
        user_id = str(user_id)
        result = self.messages.update_one(
            {'_id': message.message_id, 'read_by.user': {'$ne': user_id}, **NOT_DELETED},
            {'$push': {'read_by': {'user': user_id, 'read_at': self.clock()}}}
        )
        return result.modified_count > 0

    def _mark_all_read(self, query: Dict[str, Any], reader: str) -> int:
        result = self.messages.update_many(
            dict(query, **{'read_by.user': {'$ne': reader}}),
            {'$push': {'read_by': {'user': reader, 'read_at': self.clock()}}}
        )
        return result.modified_count

    def mark_conversation_read(self, reader_id, other_id) -> int:
        """Mark every message other_id sent to reader_id as read by reader_id."""
        reader_id, other_id = str(reader_id), str(other_id)
        query = {
            'conversation': build_conversation_key(reader_id, other_id),
            'sender': other_id,
            'recipient': reader_id,
            **NOT_DELETED,
        }
        return self._mark_all_read(query, reader_id)

    def mark_group_read(self, group_id, reader_id) -> int:
        reader_id = str(reader_id)
        query = {'group': str(group_id), 'sender': {'$ne': reader_id}, **NOT_DELETED}
        return self._mark_all_read(query, reader_id)

    # =========================================================================
    # Edit / Delete
    # =========================================================================

    def edit_content(self, message_id, new_content: str) -> Message:
        """Replace the content; the original is captured on the first edit only."""
        ok, errors = validate_content(new_content)
        if not ok:
            raise ValidationError('Validation failed', errors=errors)
        message = self.get(message_id)
        now = self.clock()
        updates = {
            'content': new_content.strip(),
            'edited.is_edited': True,
            'edited.edited_at': now,
            'updated_at': now,
        }
        if not message.edited.get('is_edited'):
            updates['edited.original_content'] = message.content
        self.messages.update_one({'_id': message.message_id}, {'$set': updates})
        return self.get(message.message_id)

    def soft_delete(self, message_id) -> Message:
        message = self.get(message_id)
        now = self.clock()
        self.messages.update_one(
            {'_id': message.message_id},
            {'$set': {'is_deleted': True, 'deleted_at': now, 'updated_at': now}}
        )
        return self.get(message.message_id, include_deleted=True)

    # =========================================================================
    # History / Search
    # =========================================================================

    def _page(self, query: Dict[str, Any], page: int, page_size: int) -> List[Message]:
        cursor = (self.messages.find(query)
                  .sort('created_at', -1)
                  .skip((page - 1) * page_size)
                  .limit(page_size))
        return self.denormalize([Message.from_doc(d) for d in cursor])

    def denormalize(self, messages: List[Message]) -> List[Message]:
        """Attach sender display info and a preview of the replied-to message."""
        if not messages:
            return messages
        senders = self.users.get_display_info(m.sender for m in messages)
        reply_ids = list({m.reply_to for m in messages if m.reply_to})
        replies = {}
        if reply_ids:
            for doc in self.messages.find({'_id': {'$in': reply_ids}}):
                replies[doc['_id']] = {
                    'id': doc['_id'],
                    'sender': doc.get('sender'),
                    'content': None if doc.get('is_deleted') else doc.get('content'),
                    'isDeleted': bool(doc.get('is_deleted')),
                }
        for m in messages:
            m.sender_info = senders.get(m.sender, {'id': m.sender, 'name': None, 'avatar': None})
            if m.reply_to:
                m.reply_to_message = replies.get(m.reply_to)
        return messages

    def get_conversation(self, user_a, user_b, page: int = 1, page_size: int = 50) -> List[Message]:
        """Newest-first page of the direct conversation between two users."""
        query = {'conversation': build_conversation_key(user_a, user_b), **NOT_DELETED}
        return self._page(query, page, page_size)

    def get_group_messages(self, group_id, page: int = 1, page_size: int = 50) -> List[Message]:
        query = {'group': str(group_id), **NOT_DELETED}
        return self._page(query, page, page_size)

    def _search(self, query: Dict[str, Any], text: str, page: int, page_size: int) -> Tuple[List[Message], int]:
        query = dict(query, content={'$regex': re.escape(text.strip()), '$options': 'i'}, **NOT_DELETED)
        total = self.messages.count_documents(query)
        return self._page(query, page, page_size), total

    def search_conversation(self, user_a, user_b, text: str, page: int = 1,
                            page_size: int = 20) -> Tuple[List[Message], int]:
        """Case-insensitive substring search. Returns (page of messages, total matches)."""
        return self._search({'conversation': build_conversation_key(user_a, user_b)}, text, page, page_size)

    def search_group(self, group_id, text: str, page: int = 1, page_size: int = 20) -> Tuple[List[Message], int]:
        return self._search({'group': str(group_id)}, text, page, page_size)

    # =========================================================================
    # Aggregates
    # =========================================================================

    def get_user_conversation_summaries(self, user_id) -> List[Dict[str, Any]]:
        """One entry per direct conversation touching user_id, most recent first.

        Each entry: {conversationKey, otherUserId, lastMessage, unreadCount}.
        """
        user_id = str(user_id)
        query = {
            '$or': [{'sender': user_id}, {'recipient': user_id}],
            'conversation': {'$ne': None},
            **NOT_DELETED,
        }
        latest = list(self.messages.aggregate([
            {'$match': query},
            {'$sort': {'created_at': -1}},
            {'$group': {'_id': '$conversation', 'last_id': {'$first': '$_id'}}},
        ]))
        if not latest:
            return []

        unread = {
            row['_id']: row['count']
            for row in self.messages.aggregate([
                {'$match': {
                    'recipient': user_id,
                    'sender': {'$ne': user_id},
                    'conversation': {'$ne': None},
                    'read_by.user': {'$ne': user_id},
                    **NOT_DELETED,
                }},
                {'$group': {'_id': '$conversation', 'count': {'$sum': 1}}},
            ])
        }

        last_messages = [
            Message.from_doc(doc)
            for doc in self.messages.find({'_id': {'$in': [row['last_id'] for row in latest]}})
        ]
        last_messages.sort(key=lambda m: m.created_at, reverse=True)
        return [
            {
                'conversationKey': m.conversation,
                'otherUserId': m.recipient if m.sender == user_id else m.sender,
                'lastMessage': m,
                'unreadCount': unread.get(m.conversation, 0),
            }
            for m in last_messages
        ]

    def count_unread(self, user_id, group_ids: Optional[Iterable] = None) -> int:
        """Unread direct messages to user_id plus unread messages in their groups."""
        user_id = str(user_id)
        addressed = [{'recipient': user_id}]
        group_ids = [str(g) for g in group_ids or []]
        if group_ids:
            addressed.append({'group': {'$in': group_ids}})
        return self.messages.count_documents({
            '$or': addressed,
            'sender': {'$ne': user_id},
            'read_by.user': {'$ne': user_id},
            **NOT_DELETED,
        })


# Singleton instance
_messaging_repo = None


def get_messaging_repository() -> MessagingRepository:
    global _messaging_repo
    if _messaging_repo is None:
        _messaging_repo = MessagingRepository()
    return _messaging_repo


def reset_messaging_repository():
    """Reset the singleton instance (useful for testing or reconnection)."""
    global _messaging_repo
    _messaging_repo = None
