"""
Configuration centralisée pour les services MediDash
"""

import os
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlsplit
import yaml
import json
from enum import Enum

from dotenv import load_dotenv

# variables d'environnement
load_dotenv()


class Environment(Enum):
    """Environnements d'exécution"""
    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"


DEFAULT_ALLOWED_ORIGINS = [
    "https://web-listing.vercel.app",
    "http://localhost:3000",
    "http://localhost:3001",
]


def _is_local_origin(origin: str) -> bool:
    host = urlsplit(origin).hostname or ""
    return host in ("localhost", "127.0.0.1", "::1")


@dataclass
class SupabaseConfig:
    """Configuration du fournisseur d'identité et de la base hébergée"""
    url: str = ""
    anon_key: str = ""
    service_role_key: str = ""
    doctors_table: str = "doctors"


@dataclass
class RedisConfig:
    """Configuration Redis"""
    url: str = "redis://localhost:6379"
    prefix: str = "medidash"
    socket_timeout: int = 5


@dataclass
class ConfirmationConfig:
    """Configuration du flux de confirmation d'email"""
    allowed_origins: List[str] = field(default_factory=lambda: list(DEFAULT_ALLOWED_ORIGINS))
    max_attempts: int = 5
    window_seconds: int = 3600  # 1 heure
    exchange_timeout_seconds: float = 30.0
    redirect_delay_seconds: float = 3.0
    deep_link: str = "medicalapp://auth/confirmed"
    history_path: str = "/confirme"
    token_min_length: int = 100
    token_max_length: int = 2000
    device_cookie: str = "medidash_device"
    storage_backend: str = "redis"  # "redis" ou "memory"


@dataclass
class MonitoringConfig:
    """Configuration monitoring"""
    log_level: str = "INFO"
    log_format: str = "json"
    log_file: str = "logs/app.log"


@dataclass
class ServiceConfig:
    """Configuration complète d'un service"""
    service_name: str
    service_port: int
    environment: Environment = Environment.DEVELOPMENT
    debug: bool = False

    # Configurations des composants
    supabase: SupabaseConfig = field(default_factory=SupabaseConfig)
    redis: RedisConfig = field(default_factory=RedisConfig)
    confirmation: ConfirmationConfig = field(default_factory=ConfirmationConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)

    def __post_init__(self):
        """Charger la configuration depuis les variables d'environnement"""
        self._load_from_env()
        self._load_from_file()
        self._validate_config()

    def _load_from_env(self) -> None:
        """Charger depuis les variables d'environnement"""
        env_str = os.getenv("MEDIDASH_ENV", "development")
        try:
            self.environment = Environment(env_str)
        except ValueError:
            self.environment = Environment.DEVELOPMENT

        self.debug = os.getenv("DEBUG", "false").lower() == "true"

        # Supabase
        if supabase_url := os.getenv("SUPABASE_URL"):
            self.supabase.url = supabase_url

        if anon_key := os.getenv("SUPABASE_ANON_KEY"):
            self.supabase.anon_key = anon_key

        if service_key := os.getenv("SUPABASE_SERVICE_ROLE_KEY"):
            self.supabase.service_role_key = service_key

        # Redis
        if redis_url := os.getenv("REDIS_URL"):
            self.redis.url = redis_url

        # Confirmation
        if origins := os.getenv("CONFIRMATION_ALLOWED_ORIGINS"):
            self.confirmation.allowed_origins = [
                origin.strip() for origin in origins.split(",") if origin.strip()
            ]

        if deep_link := os.getenv("CONFIRMATION_DEEP_LINK"):
            self.confirmation.deep_link = deep_link

        if timeout := os.getenv("CONFIRMATION_TIMEOUT_SECONDS"):
            try:
                self.confirmation.exchange_timeout_seconds = float(timeout)
            except ValueError:
                pass

        if backend := os.getenv("CONFIRMATION_STORAGE"):
            self.confirmation.storage_backend = backend.lower()

        # Monitoring
        if log_level := os.getenv("LOG_LEVEL"):
            self.monitoring.log_level = log_level.upper()

        if log_format := os.getenv("LOG_FORMAT"):
            self.monitoring.log_format = log_format.lower()

    def _load_from_file(self) -> None:
        """Charger depuis un fichier de configuration"""
        config_files = [
            f"config/{self.service_name}.yaml",
            f"config/{self.service_name}.yml",
            f"config/{self.service_name}.json",
            "config/default.yaml",
            "config/default.yml"
        ]

        for config_file in config_files:
            config_path = Path(config_file)
            if config_path.exists():
                with open(config_path, 'r', encoding='utf-8') as f:
                    if config_path.suffix in ['.yaml', '.yml']:
                        file_config = yaml.safe_load(f)
                    else:
                        file_config = json.load(f)

                self._merge_config(file_config)
                break

    def _merge_config(self, file_config: Dict[str, Any]) -> None:
        """Fusionner la configuration depuis un fichier"""
        if not file_config:
            return

        # Fusionner les configurations par section
        for section, values in file_config.items():
            if hasattr(self, section) and isinstance(values, dict):
                config_obj = getattr(self, section)
                for key, value in values.items():
                    if hasattr(config_obj, key):
                        setattr(config_obj, key, value)

    def _validate_config(self) -> None:
        """Valider la configuration"""
        confirmation = self.confirmation

        if confirmation.token_min_length >= confirmation.token_max_length:
            raise ValueError("token_min_length doit être inférieur à token_max_length")

        if confirmation.storage_backend not in ("redis", "memory"):
            raise ValueError(f"Backend de stockage inconnu: {confirmation.storage_backend}")

        # Vérifications de sécurité pour la production
        if self.environment == Environment.PRODUCTION:
            if not self.supabase.url or not self.supabase.anon_key:
                raise ValueError("SUPABASE_URL et SUPABASE_ANON_KEY doivent être définies en production")

            insecure = [
                origin for origin in confirmation.allowed_origins
                if not origin.startswith("https://") or _is_local_origin(origin)
            ]
            if insecure:
                raise ValueError(f"Origines non HTTPS ou locales interdites en production: {insecure}")

            # Le stockage mémoire n'est ni partagé ni borné
            if confirmation.storage_backend == "memory":
                raise ValueError("Le stockage mémoire des tentatives est interdit en production")

    def get_redis_url(self) -> str:
        """Obtenir l'URL Redis"""
        return self.redis.url

    def is_production(self) -> bool:
        """Vérifier si on est en production"""
        return self.environment == Environment.PRODUCTION

    def is_development(self) -> bool:
        """Vérifier si on est en développement"""
        return self.environment == Environment.DEVELOPMENT

    def to_dict(self) -> Dict[str, Any]:
        """Convertir en dictionnaire (sans secrets)"""
        return {
            "service_name": self.service_name,
            "service_port": self.service_port,
            "environment": self.environment.value,
            "debug": self.debug,
            "supabase": {
                "url": self.supabase.url,
                "doctors_table": self.supabase.doctors_table
            },
            "redis": {
                "url": self.redis.url,
                "prefix": self.redis.prefix
            },
            "confirmation": {
                "allowed_origins": self.confirmation.allowed_origins,
                "max_attempts": self.confirmation.max_attempts,
                "window_seconds": self.confirmation.window_seconds,
                "exchange_timeout_seconds": self.confirmation.exchange_timeout_seconds,
                "deep_link": self.confirmation.deep_link,
                "storage_backend": self.confirmation.storage_backend
            },
            "monitoring": {
                "log_level": self.monitoring.log_level,
                "log_format": self.monitoring.log_format
            }
        }


class ConfigManager:
    """Gestionnaire de configuration centralisé"""

    _instance: Optional['ConfigManager'] = None
    _configs: Dict[str, ServiceConfig] = {}

    def __new__(cls) -> 'ConfigManager':
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    @classmethod
    def get_config(cls, service_name: str, service_port: int) -> ServiceConfig:
        """Obtenir la configuration d'un service"""
        if service_name not in cls._configs:
            cls._configs[service_name] = ServiceConfig(
                service_name=service_name,
                service_port=service_port
            )
        return cls._configs[service_name]

    @classmethod
    def reload_config(cls, service_name: str) -> ServiceConfig:
        """Recharger la configuration d'un service"""
        if service_name in cls._configs:
            config = cls._configs[service_name]
            config._load_from_env()
            config._load_from_file()
            config._validate_config()
        return cls._configs[service_name]

    @classmethod
    def clear(cls) -> None:
        """Oublier les configurations chargées"""
        cls._configs.clear()


def get_confirmation_config() -> ServiceConfig:
    """Configuration pour le service de confirmation"""
    return ConfigManager.get_config("confirmation", 8010)
