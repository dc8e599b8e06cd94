"""Schemas association / Association schemas."""

from pydantic import BaseModel, ConfigDict, Field

from device_association.models.association import AssociationStatus


# ─── Association ───

class AssociateDeviceRequest(BaseModel):
    serial_number: str | None = None
    imei: str | None = None
    bssid: str | None = None

    def has_device_identifier(self) -> bool:
        return any(v and v.strip() for v in (self.serial_number, self.imei, self.bssid))


class AssociationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    serial_number: str | None = None
    imei: str | None = None
    bssid: str | None = None
    device_id: str | None = None
    user_id: str
    association_status: AssociationStatus
    association_type: str | None = None
    start_timestamp: int = 0
    end_timestamp: int = 0
    associated_by: str | None = None
    associated_on: str | None = None
    disassociated_by: str | None = None
    disassociated_on: str | None = None


# ─── Delegation ───

class DelegateAssociationRequest(BaseModel):
    """Delegation d'un appareil a un autre utilisateur / Delegate a device to another user."""
    association_type: str
    delegation_user_id: str | None = None
    user_id: str | None = None  # proprietaire cible (admin) / target owner (admin)
    email: str | None = None
    serial_number: str | None = None
    imei: str | None = None
    bssid: str | None = None
    iccid: str | None = None
    msisdn: str | None = None
    imsi: str | None = None
    start_timestamp: int = Field(default=0, ge=0)
    end_timestamp: int = Field(default=0, ge=0)

    def has_device_identifier(self) -> bool:
        return any(v and v.strip() for v in (self.serial_number, self.imei, self.bssid))


# ─── Termination ───

class DeviceStatusRequest(BaseModel):
    """Demande de terminaison / Termination request."""
    device_id: str | None = None
    imei: str | None = None
    serial_number: str | None = None
    association_id: int | None = None
    user_id: str | None = None  # utilisateur cible / target user
    required_for: str | None = None

    def has_device_identifier(self) -> bool:
        return any(v and v.strip() for v in (self.device_id, self.imei, self.serial_number))


class M2MTerminationDecision(BaseModel):
    """Faut-il aussi supprimer le profil vehicule ? / Should the vehicle profile also be deleted?"""
    perform_terminate: bool


# ─── Update ───

class AssociationUpdateRequest(BaseModel):
    association_type: str | None = None
    start_timestamp: int = Field(default=0, ge=0)
    end_timestamp: int = Field(default=0, ge=0)


# ─── VIN / SIM ───

class VinAssociationRequest(BaseModel):
    vin: str = Field(min_length=1, max_length=32)
    imei: str = Field(min_length=1, max_length=32)


class SimSuspendRequest(BaseModel):
    imei: str = Field(min_length=1, max_length=32)


class SimTransactionUpdate(BaseModel):
    status: str = Field(pattern=r"^(COMPLETED|FAILED)$")


# ─── Device items ───

class DeviceItemValue(BaseModel):
    name: str
    value: str | None = None


class DeviceItemsRequest(BaseModel):
    device_id: str
    items: list[DeviceItemValue] = []


class DeviceItemStatus(BaseModel):
    device_id: str
    status: str  # SUCCESS / FAILURE


# ─── Wipe ───

class WipeDevicesRequest(BaseModel):
    serial_numbers: list[str] | None = None
