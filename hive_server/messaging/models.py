"""Messaging data models for direct and group chat.

Collections:
- messages: individual messages (direct or group), with reactions,
  read receipts, edit history and soft-delete markers embedded
"""
import re
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any, List

from hive_server.utils.time_utils import now_std, to_iso

MENTION_PATTERN = re.compile(r'@([a-zA-Z0-9_]+)')


class MessageType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    FILE = "file"
    SYSTEM = "system"


class PresenceStatus(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"
    AWAY = "away"
    BUSY = "busy"


def extract_mention_handles(content: Optional[str]) -> List[str]:
    """Return the distinct `@handle` tokens in content, in order of appearance."""
    if not content:
        return []
    seen = []
    for handle in MENTION_PATTERN.findall(content):
        if handle not in seen:
            seen.append(handle)
    return seen


class Attachment:
    def __init__(self, kind: str, url: str, filename: Optional[str] = None,
                 size: Optional[int] = None, storage_ref: Optional[str] = None):
        self.kind = kind
        self.url = url
        self.filename = filename
        self.size = size
        self.storage_ref = storage_ref

    def to_dict(self) -> Dict[str, Any]:
        return {
            'kind': self.kind,
            'url': self.url,
            'filename': self.filename,
            'size': self.size,
            'storageRef': self.storage_ref,
        }

    def to_db_doc(self) -> Dict[str, Any]:
        return {
            'kind': self.kind,
            'url': self.url,
            'filename': self.filename,
            'size': self.size,
            'storage_ref': self.storage_ref,
        }

    @classmethod
    def from_doc(cls, doc: Dict[str, Any]) -> 'Attachment':
        return cls(
            kind=doc.get('kind'),
            url=doc.get('url'),
            filename=doc.get('filename'),
            size=doc.get('size'),
            storage_ref=doc.get('storage_ref'),
        )


class Message:
    """Message document structure.

    Exactly one of `recipient` (direct) or `group` is set. Direct messages
    carry the conversation key of the sender/recipient pair.
    """

    def __init__(
        self,
        message_id: str,
        sender: str,
        content: str,
        recipient: Optional[str] = None,
        group: Optional[str] = None,
        conversation: Optional[str] = None,
        message_type: str = MessageType.TEXT.value,
        attachments: Optional[List[Attachment]] = None,
        reply_to: Optional[str] = None,
        reactions: Optional[List[Dict[str, Any]]] = None,
        read_by: Optional[List[Dict[str, Any]]] = None,
        edited: Optional[Dict[str, Any]] = None,
        is_deleted: bool = False,
        deleted_at: Optional[datetime] = None,
        mentions: Optional[List[str]] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
        sender_info: Optional[Dict[str, Any]] = None,
        reply_to_message: Optional[Dict[str, Any]] = None,
    ):
        self.message_id = message_id
        self.sender = sender
        self.content = content
        self.recipient = recipient
        self.group = group
        self.conversation = conversation
        self.message_type = message_type
        self.attachments = attachments or []
        self.reply_to = reply_to
        self.reactions = reactions or []
        self.read_by = read_by or []
        self.edited = edited or {'is_edited': False, 'edited_at': None, 'original_content': None}
        self.is_deleted = is_deleted
        self.deleted_at = deleted_at
        self.mentions = mentions or []
        self.created_at = created_at or now_std()
        self.updated_at = updated_at or self.created_at
        # Denormalized for display, never persisted
        self.sender_info = sender_info
        self.reply_to_message = reply_to_message

    @property
    def is_direct(self) -> bool:
        return self.recipient is not None

    def participants(self) -> List[str]:
        """Sender and recipient of a direct message; empty for group messages."""
        if not self.is_direct:
            return []
        return [self.sender, self.recipient]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.message_id,
            'messageId': self.message_id,
            'sender': self.sender,
            'senderInfo': self.sender_info,
            'content': self.content,
            'recipient': self.recipient,
            'group': self.group,
            'conversation': self.conversation,
            'type': self.message_type,
            'attachments': [a.to_dict() for a in self.attachments],
            'replyTo': self.reply_to,
            'replyToMessage': self.reply_to_message,
            'reactions': [
                {'user': r.get('user'), 'emoji': r.get('emoji'), 'createdAt': to_iso(r.get('created_at'))}
                for r in self.reactions
            ],
            'readBy': [
                {'user': r.get('user'), 'readAt': to_iso(r.get('read_at'))}
                for r in self.read_by
            ],
            'edited': {
                'isEdited': bool(self.edited.get('is_edited')),
                'editedAt': to_iso(self.edited.get('edited_at')),
                'originalContent': self.edited.get('original_content'),
            },
            'isDeleted': self.is_deleted,
            'deletedAt': to_iso(self.deleted_at),
            'mentions': self.mentions,
            'createdAt': to_iso(self.created_at),
            'updatedAt': to_iso(self.updated_at),
        }

    def to_db_doc(self) -> Dict[str, Any]:
        return {
            '_id': self.message_id,
            'message_id': self.message_id,
            'sender': self.sender,
            'content': self.content,
            'recipient': self.recipient,
            'group': self.group,
            'conversation': self.conversation,
            'type': self.message_type,
            'attachments': [a.to_db_doc() for a in self.attachments],
            'reply_to': self.reply_to,
            'reactions': list(self.reactions),
            'read_by': list(self.read_by),
            'edited': dict(self.edited),
            'is_deleted': self.is_deleted,
            'deleted_at': self.deleted_at,
            'mentions': list(self.mentions),
            'created_at': self.created_at,
            'updated_at': self.updated_at,
        }

    @classmethod
    def from_doc(cls, doc: Dict[str, Any]) -> 'Message':
        return cls(
            message_id=doc.get('message_id') or str(doc.get('_id')),
            sender=doc.get('sender'),
            content=doc.get('content'),
            recipient=doc.get('recipient'),
            group=doc.get('group'),
            conversation=doc.get('conversation'),
            message_type=doc.get('type', MessageType.TEXT.value),
            attachments=[Attachment.from_doc(a) for a in doc.get('attachments') or []],
            reply_to=doc.get('reply_to'),
            reactions=doc.get('reactions') or [],
            read_by=doc.get('read_by') or [],
            edited=doc.get('edited'),
            is_deleted=bool(doc.get('is_deleted')),
            deleted_at=doc.get('deleted_at'),
            mentions=doc.get('mentions') or [],
            created_at=doc.get('created_at'),
            updated_at=doc.get('updated_at'),
        )
