"""Client de l'annuaire utilisateurs / User directory client."""

import logging

import httpx

from device_association.config import settings

log = logging.getLogger(__name__)


class UserDirectory:
    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        self.base_url = (base_url or settings.USER_MANAGEMENT_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.GATEWAY_TIMEOUT_SECONDS

    async def get_attribute(self, user_id: str, attribute: str) -> str | None:
        """Lire un attribut utilisateur (ex. country) / Read a user attribute (e.g. country).

        None si l'utilisateur ou l'attribut est absent / None when user or attribute is missing.
        """
        url = f"{self.base_url}/v1/users/{user_id}"
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.get(url)
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                if e.response.status_code == 404:
                    log.warning("User %s not found in directory", user_id)
                    return None
                raise
            body = response.json()
        value = body.get(attribute)
        if value is None:
            value = (body.get("attributes") or {}).get(attribute)
        return str(value) if value is not None else None

    async def find_user_id(self, user_name: str) -> str | None:
        """Resoudre l'identifiant depuis le userName / Resolve the user id from a userName."""
        url = f"{self.base_url}/v1/users/filter"
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(url, json={"userNames": [user_name]})
            if response.status_code == 404:
                return None
            response.raise_for_status()
            users = response.json()
        if isinstance(users, dict):
            users = users.get("data") or []
        return users[0].get("id") if users else None
