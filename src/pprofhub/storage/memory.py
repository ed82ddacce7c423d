# storage/memory.py
import itertools
from typing import Any, Dict, List, Optional
from ..schemas import Profile, ProfileCreate, Connection, ConnectionCreate, utcnow
from ..utils.logger import get_logger

log = get_logger("Storage")

def _newest_first(profiles: List[Profile]) -> List[Profile]:
    # ties on uploaded_at fall back to the id, higher ids being newer
    return sorted(profiles, key=lambda p: (p.uploaded_at, p.id), reverse=True)

class MemStorage:
    """Dict-backed store for profiles and connections. Nothing is persisted."""

    def __init__(self):
        self.profiles: Dict[int, Profile] = {}
        self.connections: Dict[int, Connection] = {}
        self._profile_ids = itertools.count(1)
        self._connection_ids = itertools.count(1)

    # ------------------------------------------------------------------ #
    # Profiles
    # ------------------------------------------------------------------ #
    def get_profile(self, profile_id: int) -> Optional[Profile]:
        return self.profiles.get(profile_id)

    def get_profiles(self) -> List[Profile]:
        return _newest_first(list(self.profiles.values()))

    def get_saved_profiles(self) -> List[Profile]:
        return _newest_first([p for p in self.profiles.values() if p.is_saved])

    def get_recent_profiles(self, limit: int = 10) -> List[Profile]:
        return self.get_profiles()[:max(limit, 0)]

    def create_profile(self, payload: ProfileCreate) -> Profile:
        profile = Profile(**payload.model_dump(), id=next(self._profile_ids), uploaded_at=utcnow())
        self.profiles[profile.id] = profile
        log.info(f"Created profile {profile.id} ({profile.profile_type.value}, {profile.size} bytes)")
        return profile

    def update_profile(self, profile_id: int, fields: Dict[str, Any]) -> Optional[Profile]:
        existing = self.profiles.get(profile_id)
        if existing is None:
            log.warning(f"Update requested for unknown profile {profile_id}")
            return None
        changes = {k: v for k, v in fields.items() if k != "id"}
        updated = existing.model_copy(update=changes)
        self.profiles[profile_id] = updated
        log.info(f"Updated profile {profile_id}: {sorted(changes)}")
        return updated

    def delete_profile(self, profile_id: int) -> bool:
        removed = self.profiles.pop(profile_id, None) is not None
        log.info(f"Delete profile {profile_id}: {'removed' if removed else 'not found'}")
        return removed

    # ------------------------------------------------------------------ #
    # Connections
    # ------------------------------------------------------------------ #
    def get_connection(self, connection_id: int) -> Optional[Connection]:
        return self.connections.get(connection_id)

    def get_connections(self) -> List[Connection]:
        return list(self.connections.values())

    def create_connection(self, payload: ConnectionCreate) -> Connection:
        connection = Connection(**payload.model_dump(), id=next(self._connection_ids), last_connected=None)
        self.connections[connection.id] = connection
        log.info(f"Created connection {connection.id} -> {connection.url}")
        return connection

    def update_connection(self, connection_id: int, fields: Dict[str, Any]) -> Optional[Connection]:
        existing = self.connections.get(connection_id)
        if existing is None:
            log.warning(f"Update requested for unknown connection {connection_id}")
            return None
        changes = {k: v for k, v in fields.items() if k != "id"}
        updated = existing.model_copy(update=changes)
        self.connections[connection_id] = updated
        log.info(f"Updated connection {connection_id}: {sorted(changes)}")
        return updated

    def touch_connection(self, connection_id: int) -> Optional[Connection]:
        """Record a successful fetch through this connection."""
        return self.update_connection(connection_id, {"last_connected": utcnow(), "is_active": True})

    def delete_connection(self, connection_id: int) -> bool:
        removed = self.connections.pop(connection_id, None) is not None
        log.info(f"Delete connection {connection_id}: {'removed' if removed else 'not found'}")
        return removed


storage = MemStorage()
