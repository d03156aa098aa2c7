"""
Routes pour le service de confirmation
"""

import hashlib
import secrets
from pathlib import Path

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from ..shared.middleware import get_client_id
from .controller import ConfirmationFlowController
from .models import ConfirmationRequest, ConfirmationResponse
from .ports import ResponseNavigator
from .storage import AttemptTracker, MemoryAttemptStore, RedisAttemptStore


confirmation_router = APIRouter()

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))

DEVICE_COOKIE_MAX_AGE = 365 * 24 * 3600


def _device_fingerprint(request: Request) -> str:
    """Empreinte stable (IP + User-Agent) servant de valeur au cookie d'appareil.

    Un clic sur le lien sans cookie retombe ainsi sur le même compteur.
    """
    return hashlib.sha256(get_client_id(request).encode("utf-8")).hexdigest()[:32]


def _device_id(request: Request) -> str:
    config = request.app.state.config
    return request.cookies.get(config.confirmation.device_cookie) or _device_fingerprint(request)


def _attempt_store(request: Request, device_id: str):
    config = request.app.state.config
    if config.confirmation.storage_backend == "memory":
        stores = request.app.state.memory_stores
        if device_id not in stores:
            stores[device_id] = MemoryAttemptStore()
        return stores[device_id]

    return RedisAttemptStore(
        request.app.state.redis,
        device_id,
        prefix=config.redis.prefix,
        ttl=config.confirmation.window_seconds
    )


def build_controller(request: Request) -> ConfirmationFlowController:
    """Créer le contrôleur d'une nouvelle instance de page"""
    config = request.app.state.config
    tracker = AttemptTracker(
        _attempt_store(request, _device_id(request)),
        max_attempts=config.confirmation.max_attempts,
        window_seconds=config.confirmation.window_seconds
    )
    return ConfirmationFlowController(
        identity=request.app.state.identity,
        records=request.app.state.records,
        attempts=tracker,
        navigator=ResponseNavigator(),
        settings=config.confirmation
    )


@confirmation_router.get("", response_class=HTMLResponse)
async def confirmation_page(request: Request):
    """Page ouverte depuis le lien reçu par email"""
    config = request.app.state.config
    response = templates.TemplateResponse(
        request,
        "confirme.html",
        {
            "deep_link": config.confirmation.deep_link,
            "page_id": secrets.token_urlsafe(16)
        }
    )

    cookie_name = config.confirmation.device_cookie
    if cookie_name not in request.cookies:
        response.set_cookie(
            cookie_name,
            _device_fingerprint(request),
            max_age=DEVICE_COOKIE_MAX_AGE,
            httponly=True,
            secure=config.is_production(),
            samesite="lax"
        )
    return response


@confirmation_router.post("", response_model=ConfirmationResponse)
async def run_confirmation(payload: ConfirmationRequest, request: Request):
    """Exécuter le flux pour une instance de page"""
    pages = request.app.state.pages
    controller = pages.get_or_create(payload.page_id, lambda: build_controller(request))

    # En-tête posé par le navigateur, champ du corps en secours
    origin = request.headers.get("origin") or payload.origin
    outcome = await controller.run(payload.url, origin)

    navigator = controller.navigator
    return ConfirmationResponse(
        status=outcome.status.value,
        message=outcome.message,
        reason=outcome.reason,
        history_url=navigator.history_url,
        redirect_url=navigator.redirect_url,
        redirect_delay_ms=navigator.redirect_delay_ms
    )
