"""Tag-indexed snapshot of the live resources in the resource group.

One inventory is built per resource family at the start of a pass. Declared
components claim their entry as they are dispatched; whatever is left after
every component has been dispatched is the set of orphans to delete.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from dataclasses import dataclass, field

from .config import COMPONENT_NAME_TAG

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LiveResource:
    """A provisioned Azure resource as seen by a listing call."""

    id: str
    name: str
    location: str | None = None
    tags: dict[str, str] = field(default_factory=dict)

    @property
    def component_name(self) -> str | None:
        return self.tags.get(COMPONENT_NAME_TAG)


class ResourceInventory:
    """Mapping from component name to live resource, safe for concurrent claims.

    At most one resource is kept per tag value. When two resources carry the
    same tag the one listed last is kept; which one that is depends on the
    listing order and is not guaranteed.
    """

    def __init__(self, resource_type: str) -> None:
        self._resource_type = resource_type
        self._entries: dict[str, LiveResource] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_resources(
        cls, resource_type: str, resources: Iterable[LiveResource]
    ) -> ResourceInventory:
        """Index resources by their component-name tag, skipping untagged ones."""
        inventory = cls(resource_type)
        for resource in resources:
            name = resource.component_name
            if name is None:
                continue
            inventory.add(name, resource)
        return inventory

    @property
    def resource_type(self) -> str:
        return self._resource_type

    def add(self, component_name: str, resource: LiveResource) -> None:
        with self._lock:
            previous = self._entries.get(component_name)
            self._entries[component_name] = resource

        if previous is not None and previous.id != resource.id:
            logger.warning(
                "Multiple resources tagged with the same component name",
                extra={
                    "resource_type": self._resource_type,
                    "component": component_name,
                    "kept_resource_id": resource.id,
                    "dropped_resource_id": previous.id,
                },
            )

    def get(self, component_name: str) -> LiveResource | None:
        with self._lock:
            return self._entries.get(component_name)

    def claim(self, component_name: str) -> LiveResource | None:
        """Remove and return the entry for a component, if any."""
        with self._lock:
            return self._entries.pop(component_name, None)

    def remaining(self) -> list[tuple[str, LiveResource]]:
        """Snapshot of unclaimed entries, in insertion order."""
        with self._lock:
            return list(self._entries.items())

    def __contains__(self, component_name: object) -> bool:
        with self._lock:
            return component_name in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
