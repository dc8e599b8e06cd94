"""
Publication d'evenements d'association / Association event publishing.
Fire-and-forget : un echec est journalise, jamais propage.
"""

import logging

import httpx

from device_association.config import settings

log = logging.getLogger(__name__)

EVENT_ASSOCIATION = "ASSOCIATION"
EVENT_DISASSOCIATION = "DISASSOCIATION"
EVENT_DELEGATION = "DELEGATION"


class EventPublisher:
    def __init__(self, url: str | None = None, timeout: float | None = None):
        self.url = url if url is not None else settings.NOTIFICATION_URL
        self.timeout = timeout if timeout is not None else settings.GATEWAY_TIMEOUT_SECONDS

    async def publish(self, event_type: str, payload: dict) -> bool:
        log.info("Association event %s: %s", event_type, payload)
        if not self.url:
            return True
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.post(self.url, json={"eventType": event_type, "payload": payload})
                response.raise_for_status()
            except httpx.HTTPError as e:
                log.error("Failed to publish %s event: %s", event_type, e)
                return False
        return True
