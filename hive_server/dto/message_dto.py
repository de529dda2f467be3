"""Update commands accepted by the messaging layer.

Each command enumerates the fields a client may set for one operation.
`from_payload` reads only those fields from a request/socket payload and
raises ValidationError with field-level detail; nothing else in the payload
reaches the stored document.
"""
from typing import Any, Dict, List, Optional

from hive_server.exception.ValidationError import ValidationError
from hive_server.utils.validation import (
    CLIENT_MESSAGE_TYPES, validate_attachments, validate_content,
    validate_emoji, validate_message_type,
)


def _first(payload: Dict[str, Any], *keys):
    for key in keys:
        value = payload.get(key)
        if value is not None:
            return value
    return None


def _normalize_attachments(items) -> List[Dict[str, Any]]:
    return [
        {
            'kind': item.get('kind') or item.get('type'),
            'url': item.get('url'),
            'filename': item.get('filename'),
            'size': item.get('size'),
            'storage_ref': item.get('storageRef') or item.get('storage_ref') or item.get('publicId'),
        }
        for item in items or []
    ]


def _validate_body(payload: Dict[str, Any]) -> Dict[str, str]:
    errors = {}
    _, e = validate_content(payload.get('content'))
    errors.update(e)
    _, e = validate_message_type(_first(payload, 'type', 'messageType') or 'text', CLIENT_MESSAGE_TYPES)
    errors.update(e)
    _, e = validate_attachments(payload.get('attachments'))
    errors.update(e)
    return errors


class SendDirectCommand:
    def __init__(self, recipient: str, content: str, message_type: str = 'text',
                 attachments: Optional[List[Dict[str, Any]]] = None, reply_to: Optional[str] = None):
        self.recipient = recipient
        self.content = content
        self.message_type = message_type
        self.attachments = attachments or []
        self.reply_to = reply_to

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> 'SendDirectCommand':
        payload = payload or {}
        errors = _validate_body(payload)
        recipient = _first(payload, 'recipientId', 'recipient')
        if not recipient:
            errors['recipientId'] = 'Recipient is required.'
        if errors:
            raise ValidationError('Validation failed', errors=errors)
        return cls(
            recipient=str(recipient),
            content=payload['content'].strip(),
            message_type=_first(payload, 'type', 'messageType') or 'text',
            attachments=_normalize_attachments(payload.get('attachments')),
            reply_to=_first(payload, 'replyTo', 'reply_to'),
        )


class SendGroupCommand:
    def __init__(self, group: str, content: str, message_type: str = 'text',
                 attachments: Optional[List[Dict[str, Any]]] = None, reply_to: Optional[str] = None):
        self.group = group
        self.content = content
        self.message_type = message_type
        self.attachments = attachments or []
        self.reply_to = reply_to

    @classmethod
    def from_payload(cls, payload: Dict[str, Any], group_id: Optional[str] = None) -> 'SendGroupCommand':
        """Build from a payload; `group_id` (e.g. from the URL) wins over the body."""
        payload = payload or {}
        errors = _validate_body(payload)
        group = group_id or _first(payload, 'groupId', 'group')
        if not group:
            errors['groupId'] = 'Group is required.'
        if errors:
            raise ValidationError('Validation failed', errors=errors)
        return cls(
            group=str(group),
            content=payload['content'].strip(),
            message_type=_first(payload, 'type', 'messageType') or 'text',
            attachments=_normalize_attachments(payload.get('attachments')),
            reply_to=_first(payload, 'replyTo', 'reply_to'),
        )


class EditCommand:
    def __init__(self, content: str):
        self.content = content

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> 'EditCommand':
        payload = payload or {}
        ok, errors = validate_content(payload.get('content'))
        if not ok:
            raise ValidationError('Validation failed', errors=errors)
        return cls(content=payload['content'].strip())


class ReactionCommand:
    def __init__(self, emoji: str):
        self.emoji = emoji

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> 'ReactionCommand':
        payload = payload or {}
        ok, errors = validate_emoji(payload.get('emoji'))
        if not ok:
            raise ValidationError('Validation failed', errors=errors)
        return cls(emoji=payload['emoji'].strip())
