"""
Middleware communs pour les services MediDash
"""

import time
import uuid
import hashlib
from typing import Callable
from datetime import datetime

from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import ServiceConfig
from .utils import LoggerFactory


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware pour logger toutes les requêtes"""

    def __init__(self, app: FastAPI, logger_name: str = "requests"):
        super().__init__(app)
        self.logger = LoggerFactory.get_logger(logger_name)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Générer un ID de requête unique
        request_id = str(uuid.uuid4())
        start_time = time.time()

        request.state.request_id = request_id

        # Le fragment n'atteint jamais le serveur, la query peut contenir un token
        self.logger.info(
            "Request started",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "client_ip": request.client.host if request.client else None,
                "user_agent": request.headers.get("user-agent"),
                "timestamp": datetime.utcnow().isoformat()
            }
        )

        try:
            response = await call_next(request)

            process_time = time.time() - start_time

            self.logger.info(
                "Request completed",
                extra={
                    "request_id": request_id,
                    "status_code": response.status_code,
                    "process_time": round(process_time, 4)
                }
            )

            response.headers["X-Request-ID"] = request_id
            response.headers["X-Process-Time"] = str(round(process_time, 4))

            return response

        except Exception as e:
            process_time = time.time() - start_time

            self.logger.error(
                "Request failed",
                extra={
                    "request_id": request_id,
                    "error": str(e),
                    "error_type": type(e).__name__,
                    "process_time": round(process_time, 4)
                },
                exc_info=True
            )

            # Réponse d'erreur standardisée
            return JSONResponse(
                status_code=500,
                content={
                    "error": "Internal Server Error",
                    "request_id": request_id,
                    "timestamp": datetime.utcnow().isoformat()
                },
                headers={"X-Request-ID": request_id}
            )


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Middleware pour ajouter des headers de sécurité"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        security_headers = {
            "X-Content-Type-Options": "nosniff",
            "X-Frame-Options": "DENY",
            "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
            "Referrer-Policy": "no-referrer",
            "Content-Security-Policy": "default-src 'self'; script-src 'self' 'unsafe-inline'; style-src 'self' 'unsafe-inline'",
            "Permissions-Policy": "geolocation=(), microphone=(), camera=()"
        }

        for header, value in security_headers.items():
            response.headers[header] = value

        return response


def get_client_id(request: Request) -> str:
    """Générer un identifiant stable pour le client (IP + User-Agent)"""
    client_ip = request.client.host if request.client else "unknown"
    user_agent = request.headers.get("user-agent", "unknown")
    ua_hash = hashlib.sha256(user_agent.encode("utf-8")).hexdigest()[:12]
    return f"{client_ip}:{ua_hash}"


class CommonMiddleware:
    """Classe utilitaire pour configurer tous les middlewares"""

    @staticmethod
    def setup_middleware(app: FastAPI, config: ServiceConfig) -> None:
        """Configurer tous les middlewares pour une app FastAPI"""

        # CORS restreint aux origines autorisées
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.confirmation.allowed_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST"],
            allow_headers=["*"],
        )

        app.add_middleware(SecurityHeadersMiddleware)
        app.add_middleware(RequestLoggingMiddleware, logger_name=config.service_name)

        app.state.service_name = config.service_name
        app.state.config = config

        # Endpoint de configuration (en développement seulement)
        if config.is_development():
            @app.get("/debug/config")
            async def get_config():
                """Endpoint pour récupérer la configuration (debug uniquement)"""
                return config.to_dict()
