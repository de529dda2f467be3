import uuid


CONVERSATION_KEY_SEPARATOR = '_'


def generate_key(length):
    return uuid.uuid4().hex[:length]


def generate_message_id():
    return f"MSG-{generate_key(12)}"


def build_conversation_key(user_a, user_b):
    """Derive the direct-conversation key for a pair of users.

    Both identities are rendered to strings and sorted, so the key is the
    same whichever user is passed first. A user paired with themself gets
    a key too; forbidding self-messages is left to the caller.
    """
    ids = sorted([str(user_a), str(user_b)])
    return CONVERSATION_KEY_SEPARATOR.join(ids)
