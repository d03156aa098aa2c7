"""
Application FastAPI pour le service de confirmation d'email
"""

from contextlib import asynccontextmanager
from typing import Optional

import redis.asyncio as redis
from fastapi import FastAPI

from ..shared.config import ServiceConfig, get_confirmation_config
from ..shared.middleware import CommonMiddleware
from ..shared.utils import LoggerFactory, HealthChecker

from .adapters import SupabaseIdentityService, SupabaseRecordStore
from .ports import IdentityService, RecordStore
from .registry import PageRegistry
from .routes import confirmation_router


SERVICE_VERSION = "1.0.0"


def create_confirmation_app(
    config: Optional[ServiceConfig] = None,
    identity: Optional[IdentityService] = None,
    records: Optional[RecordStore] = None,
    redis_client: Optional[redis.Redis] = None
) -> FastAPI:
    """Créer l'application FastAPI pour le service de confirmation"""

    config = config or get_confirmation_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Gestionnaire de cycle de vie de l'application"""
        LoggerFactory.configure(
            config.monitoring.log_level,
            config.monitoring.log_format,
            config.monitoring.log_file
        )
        logger = LoggerFactory.get_logger("confirmation_service")
        logger.info("🚀 Démarrage du service de confirmation")

        # Collaborateurs externes
        app.state.identity = identity or SupabaseIdentityService(config.supabase)
        app.state.records = records or SupabaseRecordStore(config.supabase)

        # Stockage des tentatives
        owns_redis = False
        app.state.redis = redis_client
        app.state.memory_stores = {}
        if config.confirmation.storage_backend == "redis" and redis_client is None:
            app.state.redis = redis.from_url(
                config.get_redis_url(),
                socket_timeout=config.redis.socket_timeout
            )
            owns_redis = True

        app.state.pages = PageRegistry()

        # Health Checker
        health_checker = HealthChecker(config.service_name)
        if app.state.redis is not None:
            health_checker.add_check("redis", lambda: app.state.redis.ping())
        app.state.health_checker = health_checker

        logger.info("✅ Service de confirmation démarré")

        yield

        logger.info("🛑 Arrêt du service de confirmation")
        if owns_redis:
            await app.state.redis.aclose()

    app = FastAPI(
        title="MediDash Confirmation Service",
        description="Confirmation des emails des médecins et renvoi vers l'application mobile",
        version=SERVICE_VERSION,
        lifespan=lifespan
    )

    CommonMiddleware.setup_middleware(app, config)
    app.state.service_version = SERVICE_VERSION

    app.include_router(confirmation_router, prefix=config.confirmation.history_path, tags=["confirmation"])

    @app.get("/")
    async def root():
        return {
            "service": "MediDash Confirmation Service",
            "version": SERVICE_VERSION,
            "status": "running"
        }

    @app.get("/health")
    async def health_check():
        """Endpoint de vérification de santé détaillé"""
        return await app.state.health_checker.run_checks()

    return app


# Point d'entrée pour développement
if __name__ == "__main__":
    import uvicorn

    config = get_confirmation_config()
    uvicorn.run(
        create_confirmation_app(config),
        host="0.0.0.0",
        port=config.service_port,
        log_level=config.monitoring.log_level.lower()
    )
