"""Exceptions du flux de confirmation d'email"""

from enum import Enum
from typing import Optional


class IdentityErrorKind(Enum):
    """Catégories d'échec renvoyées par le fournisseur d'identité"""
    EXPIRED_OR_INVALID = "expired_or_invalid"
    REJECTED = "rejected"


class ConfirmationError(Exception):
    """Exception de base du flux de confirmation"""

    reason = "unexpected_error"
    user_message = (
        "Une erreur s'est produite lors de la confirmation de votre email. "
        "Veuillez contacter le support."
    )
    # Un échec compte comme une tentative, sauf mention contraire
    counts_as_attempt = True

    def __init__(self, detail: Optional[str] = None, user_message: Optional[str] = None):
        super().__init__(detail or self.reason)
        self.detail = detail
        if user_message is not None:
            self.user_message = user_message


class UntrustedOriginError(ConfirmationError):
    """Origine absente de la liste autorisée"""
    reason = "untrusted_origin"
    user_message = "Requête non autorisée. Veuillez utiliser le lien fourni dans votre email."


class RateLimitedError(ConfirmationError):
    """Trop de tentatives sur la fenêtre courante"""
    reason = "rate_limited"
    user_message = "Trop de tentatives. Veuillez patienter avant de réessayer ou contacter le support."
    counts_as_attempt = False


class MissingTokenError(ConfirmationError):
    """Aucun token dans le lien"""
    reason = "missing_token"
    user_message = (
        "Token de confirmation manquant ou invalide. Veuillez vérifier le lien "
        "dans votre email ou contacter le support."
    )


class MalformedTokenError(ConfirmationError):
    """Token de forme ou de longueur invalide"""
    reason = "invalid_token_format"
    user_message = "Format de token invalide. Veuillez utiliser le lien fourni dans votre email."

    LENGTH_MESSAGE = "Token de confirmation invalide. Veuillez vérifier le lien dans votre email."


class ExchangeTimeoutError(ConfirmationError):
    """Le fournisseur d'identité n'a pas répondu dans le délai imparti"""
    reason = "exchange_timeout"
    user_message = "La confirmation a pris trop de temps. Veuillez réessayer."


class ExchangeRejectedError(ConfirmationError):
    """Le fournisseur d'identité a refusé l'échange"""

    EXPIRED_MESSAGE = (
        "Le lien de confirmation a expiré ou est invalide. "
        "Veuillez demander un nouveau lien de confirmation."
    )
    GENERIC_MESSAGE = "Erreur lors de la confirmation. Veuillez réessayer ou contacter le support."

    def __init__(self, kind: IdentityErrorKind, detail: Optional[str] = None):
        self.kind = kind
        if kind is IdentityErrorKind.EXPIRED_OR_INVALID:
            self.reason = "link_expired"
            message = self.EXPIRED_MESSAGE
        else:
            self.reason = "confirmation_error"
            message = self.GENERIC_MESSAGE
        super().__init__(detail, user_message=message)


class AccountNotFoundError(ConfirmationError):
    """Aucune fiche médecin pour l'email authentifié"""
    reason = "account_not_found"
    user_message = "Compte non trouvé. Veuillez contacter le support."


EXPIRED_CODES = {
    "otp_expired",
    "session_expired",
    "bad_jwt",
    "refresh_token_not_found",
    "refresh_token_already_used",
    "flow_state_expired",
}


def classify_provider_error(message: Optional[str], code: Optional[str] = None) -> IdentityErrorKind:
    """Classer une erreur du fournisseur d'identité en catégorie abstraite"""
    if code and code.lower() in EXPIRED_CODES:
        return IdentityErrorKind.EXPIRED_OR_INVALID
    text = (message or "").lower()
    if "expired" in text or "invalid" in text:
        return IdentityErrorKind.EXPIRED_OR_INVALID
    return IdentityErrorKind.REJECTED
