"""User lookups and durable presence fields.

The users collection is owned by the account service; this repository only
reads profiles and writes the online/last-seen/status fields.
"""
import logging
from typing import Any, Dict, Iterable, Optional

from hive_server.repository.mongo_helper import get_collection, id_filter
from hive_server.utils.time_utils import now_std

logger = logging.getLogger(__name__)

PUBLIC_EXCLUDED_FIELDS = ('password', 'refresh_tokens', '__v')


class UserRepository:
    def __init__(self, collection=None):
        self._collection = collection

    @property
    def collection(self):
        if self._collection is None:
            self._collection = get_collection('users')
        return self._collection

    def find_by_id(self, user_id) -> Optional[Dict[str, Any]]:
        if not user_id:
            return None
        return self.collection.find_one(id_filter(user_id))

    def current_user(self, user_id) -> Optional[Dict[str, Any]]:
        """Return {id, name, avatar, joined_groups} for a user, or None."""
        user = self.find_by_id(user_id)
        if not user:
            return None
        return {
            'id': str(user['_id']),
            'name': user.get('name'),
            'avatar': user.get('avatar'),
            'joined_groups': [str(g) for g in user.get('joined_groups', [])],
        }

    def public_profile(self, user_id) -> Optional[Dict[str, Any]]:
        user = self.find_by_id(user_id)
        if not user:
            return None
        profile = {k: v for k, v in user.items() if k not in PUBLIC_EXCLUDED_FIELDS}
        profile['_id'] = str(profile['_id'])
        return profile

    def get_display_info(self, user_ids: Iterable) -> Dict[str, Dict[str, Any]]:
        """Map user id -> {id, name, avatar} for denormalizing message senders."""
        result = {}
        for user_id in {str(u) for u in user_ids if u}:
            user = self.find_by_id(user_id)
            if user:
                result[user_id] = {'id': user_id, 'name': user.get('name'), 'avatar': user.get('avatar')}
        return result

    def set_online(self, user_id, online: bool) -> bool:
        result = self.collection.update_one(
            id_filter(user_id),
            {'$set': {'is_online': bool(online), 'last_seen': now_std()}}
        )
        return result.matched_count > 0

    def set_last_seen(self, user_id, timestamp=None) -> bool:
        result = self.collection.update_one(
            id_filter(user_id),
            {'$set': {'last_seen': timestamp or now_std()}}
        )
        return result.matched_count > 0

    def set_status(self, user_id, status: str) -> bool:
        result = self.collection.update_one(
            id_filter(user_id),
            {'$set': {'status': status, 'last_seen': now_std()}}
        )
        return result.matched_count > 0
