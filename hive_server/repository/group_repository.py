"""Read-only membership checks against the groups collection.

Group documents carry `owner`, `admins: [user]` and
`members: [{user, role, joined_at}]`.
"""
import logging
from typing import Any, Dict, Optional

from hive_server.repository.mongo_helper import get_collection, id_filter

logger = logging.getLogger(__name__)


class GroupRepository:
    def __init__(self, collection=None):
        self._collection = collection

    @property
    def collection(self):
        if self._collection is None:
            self._collection = get_collection('groups')
        return self._collection

    def find_by_id(self, group_id) -> Optional[Dict[str, Any]]:
        if not group_id:
            return None
        return self.collection.find_one(id_filter(group_id))

    def is_member(self, group_id, user_id) -> bool:
        group = self.find_by_id(group_id)
        if not group:
            return False
        user_id = str(user_id)
        return any(str(m.get('user')) == user_id for m in group.get('members', []))

    def is_admin(self, group_id, user_id) -> bool:
        group = self.find_by_id(group_id)
        if not group:
            return False
        user_id = str(user_id)
        if str(group.get('owner')) == user_id:
            return True
        return any(str(a) == user_id for a in group.get('admins', []))
