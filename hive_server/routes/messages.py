"""Messaging REST API routes.

Request/response mirror of the socket gateway's mutations. Every change made
here is pushed to live socket clients through the same service and emitter
the gateway uses.

REST API Endpoints (prefix /api/messages):
- GET    /conversations                      - conversation summaries for the caller
- GET    /conversations/{userId}             - direct history (marks it read)
- POST   /direct                             - send a direct message
- GET    /groups/{groupId}                   - group history (members, marks it read)
- POST   /groups/{groupId}                   - send a group message (members)
- PUT    /{messageId}                        - edit (sender, within the edit window)
- DELETE /{messageId}                        - soft delete (sender or group admin)
- POST   /{messageId}/reaction               - toggle a reaction
- POST   /{messageId}/read                   - mark read
- GET    /search/conversation/{userId}?q=    - search a direct conversation
- GET    /search/group/{groupId}?q=          - search a group
- GET    /unread/count                       - unread messages across direct and groups
- GET    /online                             - currently connected users
"""
import logging

from flask import Blueprint, request

from config import config
from hive_server.dto.message_dto import EditCommand, ReactionCommand, SendDirectCommand, SendGroupCommand
from hive_server.exception.ValidationError import ValidationError
from hive_server.messaging.service import get_messaging_service
from hive_server.utils.decorators import handle_errors, require_auth
from hive_server.utils.helpers import parse_page_args, respond_success

logger = logging.getLogger(__name__)

# Blueprint
messages_bp = Blueprint('messages', __name__, url_prefix='/api/messages')


# =============================================================================
# Helper Functions
# =============================================================================

def _page_args(default_limit=None):
    page, limit, errors = parse_page_args(request.args, default_limit=default_limit or config.DEFAULT_PAGE_SIZE)
    if errors:
        raise ValidationError('Validation failed', errors=errors)
    return page, limit


def _json_body():
    return request.get_json(silent=True) or {}


def _history_response(messages, page, limit):
    return respond_success({
        'messages': [m.to_dict() for m in messages],
        'count': len(messages),
        'page': page,
        'limit': limit,
    })


# =============================================================================
# Conversations
# =============================================================================

@messages_bp.route('/conversations', methods=['GET'])
@handle_errors
@require_auth
def list_conversations(auth_payload):
    """Conversation summaries for the caller, most recent first."""
    summaries = get_messaging_service().get_conversation_summaries(auth_payload['user_id'])
    return respond_success({'conversations': summaries, 'count': len(summaries)})


@messages_bp.route('/conversations/<user_id>', methods=['GET'])
@handle_errors
@require_auth
def get_conversation(user_id, auth_payload):
    """Page of direct history with `user_id`, oldest first.

    Query Params:
        page: int - 1-based page (default 1)
        limit: int - page size (default 50, max 100)
    """
    page, limit = _page_args()
    messages = get_messaging_service().get_conversation(auth_payload['user_id'], user_id, page, limit)
    return _history_response(messages, page, limit)


@messages_bp.route('/direct', methods=['POST'])
@handle_errors
@require_auth
def send_direct_message(auth_payload):
    command = SendDirectCommand.from_payload(_json_body())
    message = get_messaging_service().send_direct(auth_payload['user_id'], command)
    logger.info("Direct message %s sent by %s", message.message_id, auth_payload['user_id'])
    return respond_success({'message': message.to_dict()}, status=201)


# =============================================================================
# Groups
# =============================================================================

@messages_bp.route('/groups/<group_id>', methods=['GET'])
@handle_errors
@require_auth
def get_group_messages(group_id, auth_payload):
    page, limit = _page_args()
    messages = get_messaging_service().get_group_messages(auth_payload['user_id'], group_id, page, limit)
    return _history_response(messages, page, limit)


@messages_bp.route('/groups/<group_id>', methods=['POST'])
@handle_errors
@require_auth
def send_group_message(group_id, auth_payload):
    command = SendGroupCommand.from_payload(_json_body(), group_id=group_id)
    message = get_messaging_service().send_group(auth_payload['user_id'], command)
    logger.info("Group message %s sent to %s by %s", message.message_id, group_id, auth_payload['user_id'])
    return respond_success({'message': message.to_dict()}, status=201)


# =============================================================================
# Message mutations
# =============================================================================

@messages_bp.route('/<message_id>', methods=['PUT'])
@handle_errors
@require_auth
def edit_message(message_id, auth_payload):
    command = EditCommand.from_payload(_json_body())
    message = get_messaging_service().edit_message(auth_payload['user_id'], message_id, command)
    return respond_success({'message': message.to_dict()})


@messages_bp.route('/<message_id>', methods=['DELETE'])
@handle_errors
@require_auth
def delete_message(message_id, auth_payload):
    message = get_messaging_service().delete_message(auth_payload['user_id'], message_id)
    logger.info("Message %s deleted by %s", message_id, auth_payload['user_id'])
    return respond_success({'messageId': message.message_id, 'deleted': True})


@messages_bp.route('/<message_id>/reaction', methods=['POST'])
@handle_errors
@require_auth
def toggle_reaction(message_id, auth_payload):
    command = ReactionCommand.from_payload(_json_body())
    message, added = get_messaging_service().toggle_reaction(auth_payload['user_id'], message_id, command)
    return respond_success({'message': message.to_dict(), 'added': added})


@messages_bp.route('/<message_id>/read', methods=['POST'])
@handle_errors
@require_auth
def mark_read(message_id, auth_payload):
    marked = get_messaging_service().mark_read(auth_payload['user_id'], message_id)
    return respond_success({'messageId': message_id, 'marked': marked})


# =============================================================================
# Search / Aggregates
# =============================================================================

@messages_bp.route('/search/conversation/<user_id>', methods=['GET'])
@handle_errors
@require_auth
def search_conversation(user_id, auth_payload):
    """Query Params: q (>= 2 chars), page, limit (default 20)."""
    page, limit = _page_args(config.SEARCH_PAGE_SIZE)
    result = get_messaging_service().search_conversation(
        auth_payload['user_id'], user_id, request.args.get('q', ''), page, limit)
    return respond_success(result)


@messages_bp.route('/search/group/<group_id>', methods=['GET'])
@handle_errors
@require_auth
def search_group(group_id, auth_payload):
    page, limit = _page_args(config.SEARCH_PAGE_SIZE)
    result = get_messaging_service().search_group(
        auth_payload['user_id'], group_id, request.args.get('q', ''), page, limit)
    return respond_success(result)


@messages_bp.route('/unread/count', methods=['GET'])
@handle_errors
@require_auth
def unread_count(auth_payload):
    return respond_success({'unreadCount': get_messaging_service().unread_count(auth_payload['user_id'])})


@messages_bp.route('/online', methods=['GET'])
@handle_errors
@require_auth
def online_users(auth_payload):
    users = get_messaging_service().online_users()
    return respond_success({'users': users, 'count': len(users)})
