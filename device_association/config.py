"""
Configuration de l'application / Application configuration.
Utilise pydantic-settings pour charger depuis .env ou variables d'environnement.
"""

from dataclasses import dataclass

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Device Association Service"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = True

    # Database - SQLite par défaut pour le développement
    # Database - SQLite by default for development
    DATABASE_URL: str = "sqlite+aiosqlite:///./device_association.db"

    # CORS - origines autorisées / allowed origins
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]

    # Rate Limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_DEFAULT: str = "60/minute"

    # Associations
    DEFAULT_ASSOCIATION_TYPE: str = "defaultOwner"
    # "internal" : delegue resolu via l'annuaire / delegate resolved through the directory
    # "external" : delegue fourni dans le corps / delegate supplied in the body
    USER_ID_TYPE: str = "internal"
    FORBID_ASSOC_AFTER_TERMINATE: bool = False
    ASSOCIATION_TYPES: list[str] = ["defaultOwner", "driver", "guest", "fleetManager"]

    # VIN / SIM
    VIN_ASSOCIATION_ENABLED: bool = True
    VIN_DECODE_CHECK_ENABLED: bool = False
    WHITELISTED_MODEL_CHECK: bool = False
    WHITELISTED_MODELS: dict[str, list[str]] = {}  # pays -> codes modele / country -> model codes
    VIN_DECODE_TYPE: str = "CODE_VALUE"
    SIM_ACTIVATION_ENABLED: bool = False
    SIM_SUSPEND_CHECK: bool = False

    # Items appareil / Device items
    SUPPORTED_DEVICE_ITEMS: list[str] = ["name", "color"]
    DEVICE_INFO_REQUEST_SIZE: int = 20

    # Services externes / External services
    VEHICLE_PROFILE_BASE_URL: str = "http://vehicle-profile:8080"
    VEHICLE_PROFILE_VERSION: str = "v1"
    VEHICLE_PROFILE_TERMINATE_PATH: str = "/vehicleProfiles"
    USER_MANAGEMENT_URL: str = "http://user-management:8080"
    SIM_STATE_URL: str = "http://sim-manager:8080/v1/sim/state"
    NOTIFICATION_URL: str | None = None
    GATEWAY_TIMEOUT_SECONDS: float = 10.0

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@dataclass(frozen=True)
class AssociationFeatures:
    """Interrupteurs de fonctionnalites / Feature switches handed to the coordinators."""
    vin_association_enabled: bool = True
    vin_decode_check_enabled: bool = False
    sim_activation_enabled: bool = False
    sim_suspend_check: bool = False
    whitelisted_model_check: bool = False
    forbid_assoc_after_terminate: bool = False

    @classmethod
    def from_settings(cls, s: Settings) -> "AssociationFeatures":
        return cls(
            vin_association_enabled=s.VIN_ASSOCIATION_ENABLED,
            vin_decode_check_enabled=s.VIN_DECODE_CHECK_ENABLED,
            sim_activation_enabled=s.SIM_ACTIVATION_ENABLED,
            sim_suspend_check=s.SIM_SUSPEND_CHECK,
            whitelisted_model_check=s.WHITELISTED_MODEL_CHECK,
            forbid_assoc_after_terminate=s.FORBID_ASSOC_AFTER_TERMINATE,
        )


settings = Settings()
