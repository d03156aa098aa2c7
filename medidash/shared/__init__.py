"""
Shared utilities et composants communs pour les services MediDash
"""

from .config import ServiceConfig, ConfigManager, get_confirmation_config
from .middleware import CommonMiddleware, get_client_id
from .utils import LoggerFactory, HealthChecker

__all__ = [
    "ServiceConfig",
    "ConfigManager",
    "get_confirmation_config",
    "CommonMiddleware",
    "get_client_id",
    "LoggerFactory",
    "HealthChecker"
]
