"""Version Tracker — subscriber-side filter for out-of-order and duplicate ChangeEvents.

Invariants:
    - An event is applied only if its version is strictly greater than the last
      applied version for the same (type, entity id)
    - Rejected events never change tracker state

Design Decisions:
    - Works on wire dicts (what a subscriber actually receives), so the same
      logic serves Python consumers and documents the contract for JS clients
"""

from couponhub.core.domain_types import EntityType


def _entity_key(event: dict) -> tuple[str, str] | None:
    event_type = event.get("type", "")
    for entity_type in EntityType:
        if event_type == entity_type.event_type:
            entity_id = event.get(entity_type.id_field)
            return (event_type, str(entity_id)) if entity_id else None
    return None


class VersionTracker:
    """Last-applied version per entity, as seen by one subscriber."""

    def __init__(self):
        self._versions: dict[tuple[str, str], int] = {}
        self._current: dict[tuple[str, str], dict] = {}

    def accept(self, event: dict) -> bool:
        """Apply event if newer than what this subscriber has. Returns False when stale."""
        key = _entity_key(event)
        version = event.get("version")
        if key is None or not isinstance(version, int):
            return False
        if version <= self._versions.get(key, 0):
            return False
        self._versions[key] = version
        self._current[key] = event
        return True

    def version_of(self, event_type: str, entity_id: str) -> int | None:
        return self._versions.get((event_type, entity_id))

    def current(self, event_type: str, entity_id: str) -> dict | None:
        """Latest applied event for an entity (a delete event marks it removed)."""
        return self._current.get((event_type, entity_id))
