"""In-process presence registry.

Maps an authenticated user to the socket connection that is currently
addressable for that user. Only the most recent connection per user is kept:
a second tab overwrites the first. The registry lives inside one process; a
multi-process deployment needs a shared store behind the same interface.
"""
import logging
import threading
from typing import Any, Dict, List, Optional

from hive_server.utils.time_utils import now_std, to_iso

logger = logging.getLogger(__name__)


class PresenceEntry:
    def __init__(self, user_id: str, sid: str, name: Optional[str] = None, avatar: Optional[str] = None,
                 last_seen=None):
        self.user_id = user_id
        self.sid = sid
        self.name = name
        self.avatar = avatar
        self.last_seen = last_seen or now_std()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'userId': self.user_id,
            'name': self.name,
            'avatar': self.avatar,
            'lastSeen': to_iso(self.last_seen),
        }


class PresenceRegistry:
    def __init__(self):
        self._lock = threading.Lock()
        self._by_user: Dict[str, PresenceEntry] = {}
        self._by_sid: Dict[str, str] = {}

    def register(self, user_id, sid: str, user_snapshot: Optional[Dict[str, Any]] = None) -> PresenceEntry:
        """Insert or overwrite the entry for user_id."""
        user_id = str(user_id)
        snapshot = user_snapshot or {}
        entry = PresenceEntry(user_id, sid, name=snapshot.get('name'), avatar=snapshot.get('avatar'))
        with self._lock:
            previous = self._by_user.get(user_id)
            if previous is not None and previous.sid != sid:
                logger.debug("User %s superseded connection %s with %s", user_id, previous.sid, sid)
            self._by_user[user_id] = entry
            self._by_sid[sid] = user_id
        return entry

    def unregister(self, user_id, sid: Optional[str] = None) -> bool:
        """Remove the entry for user_id.

        With `sid`, the entry is removed only while that sid is still the
        registered connection. Returns True when an entry was removed.
        """
        user_id = str(user_id)
        with self._lock:
            if sid is not None:
                self._by_sid.pop(sid, None)
            entry = self._by_user.get(user_id)
            if entry is None:
                return False
            if sid is not None and entry.sid != sid:
                return False
            del self._by_user[user_id]
            self._by_sid.pop(entry.sid, None)
            return True

    def lookup(self, user_id) -> Optional[str]:
        with self._lock:
            entry = self._by_user.get(str(user_id))
            return entry.sid if entry else None

    def is_online(self, user_id) -> bool:
        return self.lookup(user_id) is not None

    def user_for_sid(self, sid: str) -> Optional[str]:
        with self._lock:
            return self._by_sid.get(sid)

    def touch(self, user_id) -> None:
        with self._lock:
            entry = self._by_user.get(str(user_id))
            if entry is not None:
                entry.last_seen = now_std()

    def get_entry(self, user_id) -> Optional[PresenceEntry]:
        with self._lock:
            return self._by_user.get(str(user_id))

    def list_connected(self) -> List[Dict[str, Any]]:
        with self._lock:
            entries = list(self._by_user.values())
        return [e.to_dict() for e in entries]

    def __len__(self):
        with self._lock:
            return len(self._by_user)
