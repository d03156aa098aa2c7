"""Configuration pytest globale pour MediDash"""

import pytest
from unittest.mock import Mock, AsyncMock

from medidash.shared.config import ConfigManager, ConfirmationConfig
from medidash.shared.utils import LoggerFactory
from medidash.confirmation.controller import ConfirmationFlowController
from medidash.confirmation.models import AttemptRecord, AuthUser, DoctorRecord
from medidash.confirmation.ports import IdentityService, RecordStore, ResponseNavigator
from medidash.confirmation.storage import AttemptTracker, MemoryAttemptStore

from tests.helpers import NOW_MS, FakeClock


@pytest.fixture(scope="session", autouse=True)
def configure_logging():
    """Logging texte sans fichier pour les tests"""
    LoggerFactory.configure("DEBUG", "text", None, force=True)


@pytest.fixture(autouse=True)
def setup_test_environment(monkeypatch):
    """Configuration automatique de l'environnement de test"""
    monkeypatch.setenv("MEDIDASH_ENV", "testing")
    monkeypatch.delenv("CONFIRMATION_ALLOWED_ORIGINS", raising=False)
    monkeypatch.delenv("SUPABASE_URL", raising=False)
    ConfigManager.clear()
    yield
    ConfigManager.clear()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def auth_user():
    """Utilisateur renvoyé par le fournisseur, email non confirmé"""
    return AuthUser(id="user-123", email="dr.martin@example.com")


@pytest.fixture
def identity(auth_user):
    """Fournisseur d'identité mocké"""
    mock = Mock(spec=IdentityService)
    mock.establish_session = AsyncMock(return_value=auth_user)
    mock.verify_one_time_token = AsyncMock(return_value=auth_user)
    mock.mark_email_confirmed = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def records():
    """Table des médecins mockée"""
    mock = Mock(spec=RecordStore)
    mock.find_by_email = AsyncMock(
        return_value=DoctorRecord(id="doc-1", email="dr.martin@example.com", status=True)
    )
    mock.touch_updated_at = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def attempt_store():
    return MemoryAttemptStore()


@pytest.fixture
def navigator():
    return ResponseNavigator()


@pytest.fixture
def settings():
    return ConfirmationConfig(exchange_timeout_seconds=0.2)


@pytest.fixture
def make_controller(identity, records, attempt_store, navigator, settings, clock):
    """Fabrique de contrôleurs partageant les mêmes collaborateurs"""

    def factory(store=None, nav=None):
        tracker = AttemptTracker(
            store or attempt_store,
            max_attempts=settings.max_attempts,
            window_seconds=settings.window_seconds
        )
        return ConfirmationFlowController(
            identity=identity,
            records=records,
            attempts=tracker,
            navigator=nav or navigator,
            settings=settings,
            clock=clock
        )

    return factory


@pytest.fixture
def controller(make_controller):
    return make_controller()


@pytest.fixture
def store_with_attempts():
    """Stockage pré-rempli : ``store_with_attempts(count, age_ms)``"""

    def factory(count: int, age_ms: int = 0) -> MemoryAttemptStore:
        return MemoryAttemptStore(
            AttemptRecord(attempt_count=count, last_attempt_timestamp=NOW_MS - age_ms)
        )

    return factory
