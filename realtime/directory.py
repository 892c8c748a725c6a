"""
Roster publishing: the list of connected fellows as coaches see it.
"""

from __future__ import annotations

import logging
from typing import List

from .registry import Registry
from .serializers import RosterEntry

logger = logging.getLogger(__name__)

ROSTER_EVENT = "user-list"


class DirectoryPublisher:
    def __init__(self, registry: Registry) -> None:
        self.registry = registry

    def roster(self) -> List[RosterEntry]:
        """Registered fellows in registration order."""
        return [RosterEntry(id=f.connection_id, name=f.name or "") for f in self.registry.fellows()]

    def _payload(self) -> list:
        return [entry.to_wire() for entry in self.roster()]

    async def publish_roster(self) -> int:
        """Push the current roster to every coach. Returns how many coaches got it."""
        sent = await self.registry.broadcast_to_coaches(ROSTER_EVENT, self._payload())
        logger.debug("Roster published to %d coach connection(s)", sent)
        return sent

    async def send_roster(self, connection_id: str) -> bool:
        return await self.registry.send(self.registry.lookup(connection_id), ROSTER_EVENT, self._payload())
