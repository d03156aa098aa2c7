"""
Utilitaires partagés pour les services MediDash
"""

import logging
import logging.config
import asyncio
from typing import Dict, Any, Callable, Optional
from datetime import datetime
from pathlib import Path


class LoggerFactory:
    """Factory pour créer des loggers configurés"""

    _configured = False

    @classmethod
    def configure(
        cls,
        log_level: str = "INFO",
        log_format: str = "json",
        log_file: Optional[str] = "logs/app.log",
        force: bool = False
    ) -> None:
        """Configurer le système de logging"""
        if cls._configured and not force:
            return

        if log_format == "json":
            formatter_config = {
                "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
                "format": "%(asctime)s %(name)s %(levelname)s %(message)s %(pathname)s %(lineno)d"
            }
        else:
            formatter_config = {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            }

        handlers: Dict[str, Dict[str, Any]] = {
            "console": {
                "class": "logging.StreamHandler",
                "level": log_level,
                "formatter": "default",
                "stream": "ext://sys.stdout"
            }
        }

        if log_file:
            # Créer le répertoire de logs
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            handlers["file"] = {
                "class": "logging.handlers.RotatingFileHandler",
                "level": log_level,
                "formatter": "default",
                "filename": log_file,
                "maxBytes": 10485760,  # 10MB
                "backupCount": 5
            }

        config = {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": formatter_config
            },
            "handlers": handlers,
            "loggers": {
                "": {
                    "level": log_level,
                    "handlers": list(handlers),
                    "propagate": False
                }
            }
        }

        logging.config.dictConfig(config)
        cls._configured = True

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """Obtenir un logger configuré"""
        if not cls._configured:
            cls.configure()
        return logging.getLogger(name)


class HealthChecker:
    """Utilitaire pour vérifier la santé des services"""

    def __init__(self, service_name: str):
        self.service_name = service_name
        self.logger = LoggerFactory.get_logger(f"{service_name}.health")
        self.checks: Dict[str, Callable] = {}

    def add_check(self, name: str, check_func: Callable) -> None:
        """Ajouter une vérification de santé"""
        self.checks[name] = check_func

    async def run_checks(self) -> Dict[str, Any]:
        """Exécuter toutes les vérifications de santé"""
        results = {
            "service": self.service_name,
            "timestamp": datetime.utcnow().isoformat(),
            "status": "healthy",
            "checks": {}
        }

        overall_healthy = True

        for check_name, check_func in self.checks.items():
            try:
                check_result = check_func()
                if asyncio.iscoroutine(check_result):
                    check_result = await check_result

                results["checks"][check_name] = {
                    "status": "healthy" if check_result else "unhealthy",
                    "details": check_result if isinstance(check_result, dict) else {}
                }

                if not check_result:
                    overall_healthy = False

            except Exception as e:
                self.logger.error(f"Health check {check_name} failed: {e}")
                results["checks"][check_name] = {
                    "status": "error",
                    "error": str(e)
                }
                overall_healthy = False

        results["status"] = "healthy" if overall_healthy else "unhealthy"
        return results


def mask_token(token: Optional[str]) -> str:
    """Représentation loggable d'un token (jamais sa valeur)"""
    if not token:
        return "<absent>"
    return f"<token len={len(token)}>"
