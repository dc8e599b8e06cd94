"""Controle de l'identite appelante / Caller identity gate."""

from device_association.results import ApiMessage, AssociationError, ErrorKind


def is_blank(value: str | None) -> bool:
    return value is None or not value.strip()


def validate_user_id(user_id: str | None, message: ApiMessage = ApiMessage.INVALID_USER_ID) -> str:
    """Verifier l'identifiant utilisateur / Check the user identifier.

    Premiere verification de chaque operation publique ; leve une erreur de validation.
    First check of every public operation; raises a validation error.
    """
    if is_blank(user_id):
        raise AssociationError(ErrorKind.VALIDATION, message)
    return user_id.strip()
