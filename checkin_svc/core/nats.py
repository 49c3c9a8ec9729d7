from __future__ import annotations
import json
import logging
from typing import Sequence
from nats.aio.client import Client as NATS

logger = logging.getLogger(__name__)

class CheckinPublisher:
    """Publishes admitted check-ins on NATS. Disabled publishers are no-ops."""

    def __init__(self, urls: str, subject: str, *, enabled: bool = True):
        self.servers: Sequence[str] = [u.strip() for u in urls.split(",") if u.strip()]
        self.subject = subject
        self.enabled = enabled
        self._nats = NATS()

    async def connect(self):
        if self.enabled and not self._nats.is_connected:
            await self._nats.connect(servers=self.servers)

    async def close(self):
        try:
            if self._nats.is_connected:
                await self._nats.drain()
        except Exception as exc:
            logger.warning("NATS drain failed: %s", exc)

    async def publish_checkin(self, evt: dict):
        """
        evt = {
          "registration_id": str,
          "event_id": str,
          "user_id": str,
          "checked_at": ms since epoch,
          "idempotency_key": "event_id:registration_id"
        }
        """
        if not self.enabled:
            return
        await self.connect()
        await self._nats.publish(self.subject, json.dumps(evt).encode("utf-8"))
