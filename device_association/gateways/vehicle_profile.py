"""
Client du service de profils vehicule / Vehicle profile service client.
Suppression du profil a la terminaison et decodage VIN.
"""

import logging

import httpx

from device_association.config import settings

log = logging.getLogger(__name__)


class VehicleProfileService:
    """Appels HTTP vers le service de profils / HTTP calls to the profile service."""

    def __init__(
        self,
        base_url: str | None = None,
        version: str | None = None,
        terminate_path: str | None = None,
        timeout: float | None = None,
    ):
        self.base_url = (base_url or settings.VEHICLE_PROFILE_BASE_URL).rstrip("/")
        self.version = version or settings.VEHICLE_PROFILE_VERSION
        self.terminate_path = terminate_path or settings.VEHICLE_PROFILE_TERMINATE_PATH
        self.timeout = timeout if timeout is not None else settings.GATEWAY_TIMEOUT_SECONDS

    def resolve_delete_url(self, device_id: str) -> str:
        return f"{self.base_url}/{self.version}{self.terminate_path}?clientId={device_id}"

    async def delete(self, url: str) -> bool:
        """Supprimer le profil ; True si supprime / Delete the profile; True when deleted.

        Aucune exception ne remonte : l'echec est un resultat.
        No exception escapes: failure is a result.
        """
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.delete(url)
                response.raise_for_status()
                body = response.json()
            except httpx.HTTPStatusError as e:
                log.error("Vehicle profile delete failed for %s: %s - %s", url, e.response.status_code, e.response.text)
                return False
            except (httpx.HTTPError, ValueError) as e:
                log.error("Vehicle profile delete error for %s: %s", url, e)
                return False
        deleted = isinstance(body, dict) and body.get("data") is True
        if not deleted:
            log.warning("Vehicle profile not deleted for %s, response: %s", url, body)
        return deleted

    async def decode_vin(self, vin: str, decode_type: str | None = None) -> dict:
        """Decoder un VIN / Decode a VIN.

        Retourne ``{"model_code": ..., "model_name": ..., "type": ...}`` ; leve httpx.HTTPError en cas d'echec.
        """
        url = f"{self.base_url}/{self.version}/vins/{vin}/decode"
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(url, params={"type": decode_type or settings.VIN_DECODE_TYPE})
            response.raise_for_status()
            data = response.json().get("data") or {}
        return {
            "model_code": data.get("modelCode"),
            "model_name": data.get("modelName"),
            "type": data.get("type"),
        }
