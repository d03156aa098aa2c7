"""
Service de confirmation d'email pour MediDash

Ce service gère :
- La page ouverte depuis le lien de confirmation
- La limitation des tentatives par appareil
- L'échange des tokens auprès du fournisseur d'identité
- Le renvoi vers l'application mobile
"""

from .app import create_confirmation_app
from .controller import ConfirmationFlowController
from .models import ConfirmationOutcome, ConfirmationStatus
from .storage import AttemptTracker, MemoryAttemptStore, RedisAttemptStore

__all__ = [
    "create_confirmation_app",
    "ConfirmationFlowController",
    "ConfirmationOutcome",
    "ConfirmationStatus",
    "AttemptTracker",
    "MemoryAttemptStore",
    "RedisAttemptStore"
]
