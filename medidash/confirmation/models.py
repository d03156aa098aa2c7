"""
Modèles de données pour le service de confirmation
"""

from typing import Optional
from datetime import datetime
from enum import Enum
from dataclasses import dataclass
from pydantic import BaseModel, Field


class ConfirmationStatus(Enum):
    """États affichés par la page de confirmation"""
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


SUCCESS_MESSAGE = (
    "Votre email a été confirmé avec succès ! "
    "Vous pouvez maintenant vous connecter à l'application."
)


@dataclass
class AttemptRecord:
    """Compteur anti-abus propre à un appareil"""
    attempt_count: int = 0
    last_attempt_timestamp: int = 0  # epoch ms

    def window_expired(self, now_ms: int, window_ms: int) -> bool:
        """Vérifier si la fenêtre de limitation est écoulée"""
        return now_ms - self.last_attempt_timestamp > window_ms


@dataclass(frozen=True)
class FragmentTokenPair:
    """Paire access/refresh livrée dans le fragment de l'URL"""
    access_token: str
    refresh_token: str
    token_type: Optional[str] = None


@dataclass(frozen=True)
class OneTimeToken:
    """Token à usage unique livré dans la query string"""
    token: str
    kind: str  # "signup" ou "email"


@dataclass(frozen=True)
class ProviderRedirectError:
    """Erreur renvoyée par le fournisseur dans le fragment (#error=...)"""
    error: str
    error_code: Optional[str] = None
    description: Optional[str] = None


@dataclass
class AuthUser:
    """Utilisateur renvoyé par le fournisseur d'identité"""
    id: str
    email: Optional[str] = None
    email_confirmed_at: Optional[datetime] = None

    @property
    def is_email_confirmed(self) -> bool:
        return self.email_confirmed_at is not None


@dataclass
class DoctorRecord:
    """Fiche médecin dans la base hébergée"""
    id: str
    email: str
    status: bool = False


@dataclass
class FlowState:
    """État d'une instance de page"""
    started: bool = False


@dataclass
class ConfirmationOutcome:
    """Résultat présenté à l'utilisateur"""
    status: ConfirmationStatus = ConfirmationStatus.LOADING
    message: str = ""
    reason: Optional[str] = None


# Modèles Pydantic pour l'API
class ConfirmationRequest(BaseModel):
    """Requête envoyée par la page de confirmation"""
    url: str = Field(..., max_length=8192)
    origin: Optional[str] = None
    page_id: str = Field(..., min_length=8, max_length=64)


class ConfirmationResponse(BaseModel):
    """Réponse renvoyée à la page de confirmation"""
    status: str
    message: str
    reason: Optional[str] = None
    history_url: Optional[str] = None
    redirect_url: Optional[str] = None
    redirect_delay_ms: Optional[int] = None
