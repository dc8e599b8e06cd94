"""Client de gestion SIM / SIM state gateway."""

import logging

import httpx

from device_association.config import settings

log = logging.getLogger(__name__)

SIM_STATE_ACTIVE = "ACTIVE"
SIM_STATE_SUSPEND = "SUSPEND"


class SimStateGateway:
    def __init__(self, url: str | None = None, timeout: float | None = None):
        self.url = url or settings.SIM_STATE_URL
        self.timeout = timeout if timeout is not None else settings.GATEWAY_TIMEOUT_SECONDS

    async def change_state(self, imsi: str, region: str, state: str) -> str | None:
        """Demander un changement d'etat SIM / Request a SIM state change.

        Retourne l'identifiant de transaction, None si refuse / Returns the transaction id, None if refused.
        """
        payload = {"imsi": imsi, "region": region, "state": state}
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.post(self.url, json=payload)
                response.raise_for_status()
                body = response.json()
            except httpx.HTTPStatusError as e:
                log.error("SIM state change to %s failed for imsi %s: %s", state, imsi, e.response.status_code)
                return None
            except (httpx.HTTPError, ValueError) as e:
                log.error("SIM state change to %s error for imsi %s: %s", state, imsi, e)
                return None
        if not isinstance(body, dict):
            log.warning("Unexpected SIM state response for imsi %s: %s", imsi, body)
            return None
        return body.get("transactionId")
