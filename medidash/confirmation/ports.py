"""
Interfaces des collaborateurs externes du flux de confirmation
"""

from abc import ABC, abstractmethod
from typing import Optional

from .models import AuthUser, DoctorRecord


class IdentityService(ABC):
    """Fournisseur d'identité hébergé.

    Les implémentations lèvent ``ExchangeRejectedError`` avec une
    ``IdentityErrorKind`` ; le contrôleur n'inspecte jamais les messages
    du fournisseur.
    """

    @abstractmethod
    async def establish_session(self, access_token: str, refresh_token: str) -> Optional[AuthUser]:
        """Échanger la paire de tokens contre une session"""
        pass

    @abstractmethod
    async def verify_one_time_token(self, token: str, kind: str) -> Optional[AuthUser]:
        """Vérifier un token à usage unique"""
        pass

    @abstractmethod
    async def mark_email_confirmed(self, user_id: str) -> None:
        """Marquer l'email de l'utilisateur comme confirmé"""
        pass


class RecordStore(ABC):
    """Table des médecins de la base hébergée"""

    @abstractmethod
    async def find_by_email(self, email: str) -> Optional[DoctorRecord]:
        pass

    @abstractmethod
    async def touch_updated_at(self, record_id: str) -> None:
        pass


class Navigator(ABC):
    """Effets de navigation visibles par l'utilisateur"""

    @abstractmethod
    def replace_history(self, url: str) -> None:
        """Remplacer l'URL visible (sans ajouter d'entrée d'historique)"""
        pass

    @abstractmethod
    def schedule_redirect(self, url: str, delay_seconds: float) -> None:
        """Programmer une redirection différée"""
        pass


class ResponseNavigator(Navigator):
    """Collecte les instructions de navigation pour la page cliente"""

    def __init__(self):
        self.history_url: Optional[str] = None
        self.redirect_url: Optional[str] = None
        self.redirect_delay_ms: Optional[int] = None

    def replace_history(self, url: str) -> None:
        self.history_url = url

    def schedule_redirect(self, url: str, delay_seconds: float) -> None:
        self.redirect_url = url
        self.redirect_delay_ms = int(delay_seconds * 1000)
