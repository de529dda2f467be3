from config import config

MESSAGE_TYPES = ('text', 'image', 'file', 'system')
# 'system' messages are produced by the server, never accepted from clients
CLIENT_MESSAGE_TYPES = ('text', 'image', 'file')
ATTACHMENT_KINDS = ('image', 'video', 'document', 'audio')
EMOJI_MAX_LENGTH = 10
SEARCH_MIN_LENGTH = 2


def validate_content(content, field='content'):
    """Validate message text.

    Returns (ok: bool, errors: dict).
    """
    errors = {}
    max_length = config.MESSAGE_MAX_LENGTH
    if content is None or not isinstance(content, str) or not content.strip():
        errors[field] = 'Message content is required.'
    elif len(content.strip()) > max_length:
        errors[field] = f'Message cannot be more than {max_length} characters.'
    return (len(errors) == 0, errors)


def validate_message_type(message_type, allowed=MESSAGE_TYPES):
    errors = {}
    if message_type not in allowed:
        errors['type'] = f"Invalid message type. Expected one of: {', '.join(allowed)}."
    return (len(errors) == 0, errors)


def validate_attachments(attachments):
    """Attachments must be a list of objects with a known kind and a url."""
    errors = {}
    if attachments is None:
        return True, errors
    if not isinstance(attachments, list):
        errors['attachments'] = 'attachments must be an array.'
        return False, errors
    for i, item in enumerate(attachments):
        if not isinstance(item, dict):
            errors[f'attachments[{i}]'] = 'each attachment must be an object.'
            continue
        kind = item.get('kind') or item.get('type')
        if kind not in ATTACHMENT_KINDS:
            errors[f'attachments[{i}].kind'] = f"kind must be one of: {', '.join(ATTACHMENT_KINDS)}."
        if not item.get('url'):
            errors[f'attachments[{i}].url'] = 'url is required.'
        size = item.get('size')
        if size is not None and (not isinstance(size, int) or isinstance(size, bool) or size < 0):
            errors[f'attachments[{i}].size'] = 'size must be a non-negative integer.'
    return (len(errors) == 0, errors)


def validate_addressing(recipient_id, group_id):
    """Exactly one of recipient or group must be set."""
    errors = {}
    if recipient_id and group_id:
        errors['addressing'] = 'A message cannot have both a recipient and a group.'
    elif not recipient_id and not group_id:
        errors['addressing'] = 'A message needs either a recipient or a group.'
    return (len(errors) == 0, errors)


def validate_emoji(emoji):
    errors = {}
    if not isinstance(emoji, str) or not emoji.strip() or len(emoji.strip()) > EMOJI_MAX_LENGTH:
        errors['emoji'] = 'Invalid emoji.'
    return (len(errors) == 0, errors)


def validate_search_query(query):
    errors = {}
    if not query or len(query.strip()) < SEARCH_MIN_LENGTH:
        errors['q'] = f'Search query must be at least {SEARCH_MIN_LENGTH} characters.'
    return (len(errors) == 0, errors)
