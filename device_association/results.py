"""
Resultats d'operation / Operation results.

Chaque operation publique renvoie ``Ok`` ou ``Err`` au lieu de lever une exception.
Every public operation returns ``Ok`` or ``Err`` instead of raising. The only place
where a result becomes an HTTP status and body is ``to_transport_response``.
"""

import enum
import functools
import logging
from dataclasses import dataclass
from typing import Any

log = logging.getLogger(__name__)


class HttpCategory(int, enum.Enum):
    """Categorie HTTP / HTTP category."""
    OK = 200
    ACCEPTED = 202
    BAD_REQUEST = 400
    NOT_FOUND = 404
    PRECONDITION_FAILED = 412
    INTERNAL_ERROR = 500


class ErrorKind(str, enum.Enum):
    """Famille d'erreur, enum ferme / Closed error family."""
    VALIDATION = "VALIDATION"
    PRECONDITION = "PRECONDITION"
    NOT_FOUND = "NOT_FOUND"
    TECHNICAL = "TECHNICAL"
    COMPENSATION = "COMPENSATION"


_VALIDATION = "Validation failed"
_PRECONDITION = "PreCondition failed"
_SUCCESS = "Success"
_INTERNAL = "Internal server error"
_NOT_FOUND = "Not found"


class ApiMessage(enum.Enum):
    """Codes resultat exposes / Exposed result codes.

    Valeur = (code, message, message general, categorie HTTP).
    Value = (code, message, general message, HTTP category).
    """
    GENERAL_ERROR = ("assoc-777", "Internal server error", _INTERNAL, HttpCategory.INTERNAL_ERROR)
    BASIC_DATA_MANDATORY = (
        "assoc-001", "Either BSSID or IMEI or serial number is mandatory.", _VALIDATION, HttpCategory.BAD_REQUEST,
    )
    FETCHING_FACTORY_DATA_ERROR = (
        "assoc-002", "Error while fetching factory data for the device.", _VALIDATION, HttpCategory.BAD_REQUEST,
    )
    INVALID_FACTORY_STATE = (
        "assoc-003", "Device is not in a state that allows association.", _VALIDATION, HttpCategory.BAD_REQUEST,
    )
    ASSO_DATA_NOT_FOUND = ("assoc-004", "Association data not found.", _NOT_FOUND, HttpCategory.NOT_FOUND)
    INVALID_USER_ID = (
        "assoc-005", "UserId from header either null or empty.", _VALIDATION, HttpCategory.BAD_REQUEST,
    )
    ASSOCIATION_SUCCESS = ("assoc-006", "Device association initiated successfully.", _SUCCESS, HttpCategory.OK)
    DEVICE_TERMINATED = (
        "assoc-007", "Device was terminated and cannot be associated again.", _PRECONDITION,
        HttpCategory.PRECONDITION_FAILED,
    )
    STOLEN_OR_FAULTY = ("assoc-008", "Device is either stolen or faulty.", _VALIDATION, HttpCategory.BAD_REQUEST)
    USER_ID_MANDATORY = ("assoc-009", "UserId is mandatory.", _VALIDATION, HttpCategory.BAD_REQUEST)
    NO_VALID_ASSOCIATION = ("assoc-010", "No valid association found.", _VALIDATION, HttpCategory.BAD_REQUEST)
    TERMINATE_ASSO_SUCCESS = ("assoc-011", "Association terminated successfully.", _SUCCESS, HttpCategory.OK)
    ASSO_INTEGRITY_ERROR = (
        "assoc-012", "More than one association found for the device.", _PRECONDITION,
        HttpCategory.PRECONDITION_FAILED,
    )
    ASSO_NOT_FOUND = (
        "assoc-014", "No association found for the device.", _PRECONDITION, HttpCategory.PRECONDITION_FAILED,
    )
    VIN_ALREADY_ASSO = (
        "assoc-015", "VIN is already associated with the device.", _PRECONDITION, HttpCategory.PRECONDITION_FAILED,
    )
    VIN_ALREADY_ASSO_WITH_OTHER_DEVICE = (
        "assoc-016", "VIN is already associated with another device.", _PRECONDITION,
        HttpCategory.PRECONDITION_FAILED,
    )
    VIN_ASSO_NOT_ENABLED = ("assoc-017", "VIN association is not enabled.", _VALIDATION, HttpCategory.BAD_REQUEST)
    VIN_ASSO_SUCCESS = ("assoc-018", "VIN associated successfully.", _SUCCESS, HttpCategory.OK)
    DONGLE_TYPE_MISMATCHED = (
        "assoc-019", "Dongle type does not match the vehicle.", _PRECONDITION, HttpCategory.PRECONDITION_FAILED,
    )
    SIM_ACTIVATION_FAILED = (
        "assoc-020", "SIM activation failed.", _PRECONDITION, HttpCategory.PRECONDITION_FAILED,
    )
    VIN_NOT_ASSO = (
        "assoc-022", "No VIN is associated with the device.", _PRECONDITION, HttpCategory.PRECONDITION_FAILED,
    )
    FIND_ASSO = ("assoc-023", "Associations fetched successfully.", _SUCCESS, HttpCategory.OK)
    ASSO_DETAILS_NOT_FOUND = ("assoc-025", "Association details not found.", _NOT_FOUND, HttpCategory.NOT_FOUND)
    VIN_REPLACE_SUCCESS = ("assoc-059", "VIN replaced successfully.", _SUCCESS, HttpCategory.OK)
    SIM_SUSPEND_INITIATION_SUCCESS = (
        "assoc-060", "SIM suspend initiated successfully.", _SUCCESS, HttpCategory.ACCEPTED,
    )
    SIM_SUSPEND_FAILED = (
        "assoc-061", "Sim activation is mandatory before sim suspend.", _PRECONDITION,
        HttpCategory.PRECONDITION_FAILED,
    )
    SIM_SUSPEND_CONDITION_FAILED = (
        "assoc-062", "SIM suspend is not completed for the device.", _PRECONDITION,
        HttpCategory.PRECONDITION_FAILED,
    )
    SIM_TRANSACTION_NOT_FOUND = (
        "assoc-063", "SIM transaction not found.", _NOT_FOUND, HttpCategory.NOT_FOUND,
    )
    USER_DETAILS_NOT_FOUND = (
        "assoc-065", "Region not found for the user.", _VALIDATION, HttpCategory.BAD_REQUEST,
    )
    SIM_ACTIVATION_PENDING = (
        "assoc-074", "SIM activation is still pending.", _PRECONDITION, HttpCategory.PRECONDITION_FAILED,
    )
    WIPE_DATA_SUCCESS = ("assoc-075", "Device data wiped successfully.", _SUCCESS, HttpCategory.OK)
    WIPE_DATA_NO_ASSOC_FOUND = (
        "assoc-076", "No association found for the user.", _VALIDATION, HttpCategory.BAD_REQUEST,
    )
    WIPE_DATA_NO_ASSOC_FOUND_FOR_SOME_DEVICE = (
        "assoc-077", "No association found for some of the devices.", _VALIDATION, HttpCategory.BAD_REQUEST,
    )
    WIPE_DATA_NO_ASSOC_STATE_FOUND = (
        "assoc-078", "No device in associated state for the user.", _VALIDATION, HttpCategory.BAD_REQUEST,
    )
    WIPE_DATA_ASSOCIATION_FAILURE = (
        "assoc-079", "Re-association failed while wiping device data.", _INTERNAL, HttpCategory.INTERNAL_ERROR,
    )
    WIPE_DATA_TERMINATION_FAILURE = (
        "assoc-080", "Termination failed while wiping device data.", _INTERNAL, HttpCategory.INTERNAL_ERROR,
    )
    MODEL_NOT_FOUND_IN_WHITELISTED_MODELS = (
        "assoc-082", "Vehicle model is not whitelisted.", _PRECONDITION, HttpCategory.PRECONDITION_FAILED,
    )
    VIN_DECODE_API_FAILURE = ("assoc-083", "VIN decode failed.", _INTERNAL, HttpCategory.INTERNAL_ERROR)
    WHITELISTED_MODELS_IS_EMPTY = (
        "assoc-085", "No whitelisted models configured.", _INTERNAL, HttpCategory.INTERNAL_ERROR,
    )
    DEVICE_INFO_SAVE_SUCCESS = ("assoc-090", "All devices item saved successfully", _SUCCESS, HttpCategory.OK)
    DEVICE_INFO_SAVE_PARTIAL_SUCCESS = (
        "assoc-091", "Some devices item saved successfully", _SUCCESS, HttpCategory.OK,
    )
    DEVICE_INFO_SAVE_FAILED = (
        "assoc-092", "Devices item save failed", _INTERNAL, HttpCategory.INTERNAL_ERROR,
    )
    DEVICE_INFO_SAVE_VALIDATION_FAILED = (
        "assoc-093", "Invalid Input", _VALIDATION, HttpCategory.BAD_REQUEST,
    )
    DEVICE_INFO_SAVE_SIZE_VALIDATION_FAILED = (
        "assoc-094", "Too many devices in the request", _VALIDATION, HttpCategory.BAD_REQUEST,
    )
    DELEGATION_ASSOCIATION_TYPE_VALIDATION_FAILED = (
        "assoc-095", "Association type is not valid for delegation.", _VALIDATION, HttpCategory.BAD_REQUEST,
    )
    START_END_TIME_VALIDATION_FAILED = (
        "assoc-096", "Start time must be before end time.", _VALIDATION, HttpCategory.BAD_REQUEST,
    )
    OWNER_VALIDATION_FAILED = (
        "assoc-098", "User is not the owner of the device.", _VALIDATION, HttpCategory.BAD_REQUEST,
    )
    INVALID_USER_DETAILS = ("assoc-099", "Invalid delegate user details.", _VALIDATION, HttpCategory.BAD_REQUEST)
    OWNER_ASSO_NOT_FOUND = (
        "assoc-101", "Owner association not found for the device.", _VALIDATION, HttpCategory.BAD_REQUEST,
    )
    ASSOC_TYPE_VALIDATION_FAILURE = (
        "assoc-102", "Association type does not exist.", _VALIDATION, HttpCategory.BAD_REQUEST,
    )
    TERMINATION_SUCCESS = ("assoc-104", "Termination done successfully.", _SUCCESS, HttpCategory.OK)
    VALIDATE_PERFORM_TERMINATION_SUCCESS = (
        "assoc-105", "Termination validated successfully.", _SUCCESS, HttpCategory.OK,
    )
    M2M_ASSOC_INTEGRITY_ERROR = (
        "assoc-106", "Exactly one active association expected for the device.", _PRECONDITION,
        HttpCategory.PRECONDITION_FAILED,
    )
    M2M_ADMIN_REQUEST_INTEGRITY_ERROR = (
        "assoc-107", "Admin can not send user-Id through body.", _VALIDATION, HttpCategory.BAD_REQUEST,
    )
    NEW_ASSOCIATION_TYPE_CANNOT_BE_UPDATED_TO_OWNER = (
        "assoc-00108", "Association type can not be updated to owner.", _VALIDATION, HttpCategory.BAD_REQUEST,
    )
    USER_NOT_OWNER_OF_DEVICE = (
        "assoc-00109", "User is not the owner of the device.", _VALIDATION, HttpCategory.BAD_REQUEST,
    )
    ASSOCIATION_UPDATED_SUCCESSFULLY = ("assoc-00118", "Association updated successfully.", _SUCCESS, HttpCategory.OK)
    ASSOCIATION_UPDATE_FAILED = (
        "assoc-00119", "Association update failed.", _INTERNAL, HttpCategory.INTERNAL_ERROR,
    )
    ASSOCIATION_UPDATE_BASIC_DATA_MANDATORY = (
        "assoc-00120", "Either association type or start time or end time is mandatory.", _VALIDATION,
        HttpCategory.BAD_REQUEST,
    )
    OWNER_TERMINATION_VALIDATION_FAILED = (
        "assoc-00121", "Only the owner can terminate another user's association.", _VALIDATION,
        HttpCategory.BAD_REQUEST,
    )
    UPDATE_DUMMY_VALIDATION_FAILED = (
        "assoc-00122", "Failed to anonymise the wiped associations.", _INTERNAL, HttpCategory.INTERNAL_ERROR,
    )
    USER_ID_TYPE_INVALID = ("assoc-00123", "Configured user id type is invalid.", _VALIDATION, HttpCategory.BAD_REQUEST)
    VEHICLE_PROFILE_TERMINATION_FAILED = (
        "assoc-00124", "Termination of device was success but failed to delete vehicle profile", _SUCCESS,
        HttpCategory.OK,
    )
    ASSOCIATION_STATE_CHANGED = ("assoc-00125", "Association state changed.", _SUCCESS, HttpCategory.OK)
    ILLEGAL_STATE_TRANSITION = (
        "assoc-00126", "Transition not allowed from the current state.", _PRECONDITION,
        HttpCategory.PRECONDITION_FAILED,
    )
    ASSOCIATION_TYPE_COUNT = ("assoc-00127", "Association type usage count.", _SUCCESS, HttpCategory.OK)
    SIM_TRANSACTION_UPDATED = ("assoc-00128", "SIM transaction updated.", _SUCCESS, HttpCategory.OK)

    @property
    def code(self) -> str:
        return self.value[0]

    @property
    def message(self) -> str:
        return self.value[1]

    @property
    def general_message(self) -> str:
        return self.value[2]

    @property
    def category(self) -> HttpCategory:
        return self.value[3]


class AssociationError(Exception):
    """Erreur metier levee en interne / Business error raised internally.

    Convertie en ``Err`` a la frontiere de chaque operation publique.
    Converted to an ``Err`` at the boundary of each public operation.
    """

    def __init__(self, kind: ErrorKind, message: ApiMessage, detail: str | None = None):
        super().__init__(detail or message.message)
        self.kind = kind
        self.api_message = message
        self.detail = detail


@dataclass(frozen=True)
class Ok:
    message: ApiMessage
    data: Any = None

    @property
    def is_ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    kind: ErrorKind
    message: ApiMessage
    detail: str | None = None

    @property
    def is_ok(self) -> bool:
        return False

    @classmethod
    def from_error(cls, exc: AssociationError) -> "Err":
        return cls(exc.kind, exc.api_message, exc.detail)


Result = Ok | Err


def http_category(result: Result) -> HttpCategory:
    """Categorie HTTP fixe d'un resultat / Fixed HTTP category of a result."""
    return result.message.category


def to_transport_response(result: Result) -> tuple[int, dict]:
    """Seul point de conversion resultat -> (status, corps) / Sole result -> (status, body) mapping."""
    message = result.message
    body = {
        "code": message.code,
        "message": message.message,
        "general_message": message.general_message,
        "data": result.data if isinstance(result, Ok) else None,
    }
    return int(http_category(result)), body


def operation(name: str, failure: ApiMessage = ApiMessage.GENERAL_ERROR):
    """Frontiere d'une operation publique / Public operation boundary.

    ``AssociationError`` devient ``Err`` ; toute autre exception est journalisee avec
    son contexte et devient ``failure`` sans detail interne.
    """

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except AssociationError as e:
                log.info("%s rejected: %s %s", name, e.api_message.code, e.detail or e.api_message.message)
                return Err.from_error(e)
            except Exception:
                log.exception("%s failed, args=%s kwargs=%s", name, args[1:], kwargs)
                return Err(ErrorKind.TECHNICAL, failure)

        return wrapper

    return decorator
