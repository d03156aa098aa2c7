"""
Contrôleur du flux de confirmation d'email

Une instance par chargement de page. Enchaîne : contrôle d'origine,
limitation des tentatives, extraction et contrôle du token, échange auprès
du fournisseur d'identité, mise à jour de la fiche médecin, puis renvoi vers
l'application mobile par lien profond.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Optional

from ..shared.config import ConfirmationConfig
from ..shared.utils import LoggerFactory, mask_token
from .exceptions import (
    AccountNotFoundError,
    ConfirmationError,
    ExchangeRejectedError,
    ExchangeTimeoutError,
    IdentityErrorKind,
    MalformedTokenError,
    MissingTokenError,
    RateLimitedError,
    UntrustedOriginError,
    classify_provider_error,
)
from .models import (
    SUCCESS_MESSAGE,
    AuthUser,
    ConfirmationOutcome,
    ConfirmationStatus,
    FlowState,
    FragmentTokenPair,
    OneTimeToken,
    ProviderRedirectError,
)
from .ports import IdentityService, Navigator, RecordStore
from .storage import AttemptTracker
from .tokens import extract_token, is_valid_token_format, is_valid_token_length, strip_token


def epoch_ms() -> int:
    return int(time.time() * 1000)


class ConfirmationFlowController:
    """Exécute au plus une tentative de confirmation par instance de page"""

    def __init__(
        self,
        identity: IdentityService,
        records: RecordStore,
        attempts: AttemptTracker,
        navigator: Navigator,
        settings: Optional[ConfirmationConfig] = None,
        clock: Callable[[], int] = epoch_ms
    ):
        self.identity = identity
        self.records = records
        self.attempts = attempts
        self.navigator = navigator
        self.settings = settings or ConfirmationConfig()
        self.clock = clock

        self.state = FlowState()
        self.outcome = ConfirmationOutcome()
        self.logger = LoggerFactory.get_logger("confirmation_flow")

    async def run(self, current_url: str, current_origin: Optional[str]) -> ConfirmationOutcome:
        """Lancer le flux ; un second appel rend l'issue courante sans effet"""
        if self.state.started:
            self.logger.debug("Flux déjà démarré pour cette page, appel ignoré")
            return self.outcome
        # Positionné avant toute suspension
        self.state.started = True

        try:
            await self._confirm(current_url, current_origin)
        except ConfirmationError as e:
            await self._fail(e)
        except Exception as e:
            self.logger.error(f"Erreur inattendue pendant la confirmation: {e}", exc_info=True)
            await self._fail(ConfirmationError(str(e)))

        return self.outcome

    async def _confirm(self, current_url: str, current_origin: Optional[str]) -> None:
        if current_origin not in self.settings.allowed_origins:
            raise UntrustedOriginError(f"origine refusée: {current_origin}")

        if not await self.attempts.is_allowed(self.clock()):
            raise RateLimitedError()

        token = extract_token(current_url)
        if token is None:
            raise MissingTokenError()

        if isinstance(token, ProviderRedirectError):
            kind = classify_provider_error(token.description, token.error_code)
            raise ExchangeRejectedError(kind, detail=token.error_code or token.error)

        if isinstance(token, FragmentTokenPair):
            self._check_shape(token.access_token)
            await self._confirm_session(token)
        else:
            await self._confirm_one_time_token(token)

        await self._succeed(current_url)

    def _check_shape(self, access_token: str) -> None:
        if not is_valid_token_format(access_token):
            raise MalformedTokenError(f"structure invalide {mask_token(access_token)}")

        if not is_valid_token_length(
            access_token,
            self.settings.token_min_length,
            self.settings.token_max_length
        ):
            raise MalformedTokenError(
                f"longueur suspecte {mask_token(access_token)}",
                user_message=MalformedTokenError.LENGTH_MESSAGE
            )

    async def _exchange(self, call: Awaitable[Optional[AuthUser]]) -> AuthUser:
        """Échange borné ; l'appel perdant est annulé à l'échéance"""
        try:
            user = await asyncio.wait_for(call, timeout=self.settings.exchange_timeout_seconds)
        except asyncio.TimeoutError:
            raise ExchangeTimeoutError(
                f"aucune réponse après {self.settings.exchange_timeout_seconds}s"
            )
        except ConfirmationError:
            raise
        except Exception as e:
            raise ExchangeRejectedError(IdentityErrorKind.REJECTED, detail=str(e)) from e

        if user is None:
            raise ExchangeRejectedError(IdentityErrorKind.REJECTED, detail="aucun utilisateur renvoyé")
        return user

    async def _confirm_session(self, pair: FragmentTokenPair) -> None:
        user = await self._exchange(
            self.identity.establish_session(pair.access_token, pair.refresh_token)
        )

        if not user.is_email_confirmed:
            await self._best_effort("mark_email_confirmed", self.identity.mark_email_confirmed, user.id)

        record = None
        if user.email:
            try:
                record = await self.records.find_by_email(user.email)
            except Exception as e:
                self.logger.error(f"Recherche de la fiche médecin impossible: {e}", exc_info=True)
        if record is None:
            raise AccountNotFoundError(f"aucune fiche pour l'utilisateur {user.id}")

        await self._best_effort("touch_updated_at", self.records.touch_updated_at, record.id)

    async def _confirm_one_time_token(self, token: OneTimeToken) -> None:
        await self._exchange(self.identity.verify_one_time_token(token.token, token.kind))

    async def _best_effort(self, name: str, func: Callable[..., Awaitable[Any]], *args) -> bool:
        """Étape annexe : un échec est journalisé sans changer l'issue"""
        try:
            await func(*args)
            return True
        except Exception as e:
            self.logger.warning(
                f"Étape annexe {name} en échec: {e}",
                extra={"step": name},
                exc_info=True
            )
            return False

    async def _succeed(self, current_url: str) -> None:
        self.navigator.replace_history(strip_token(current_url, self.settings.history_path))

        try:
            await self.attempts.record_success()
        except Exception as e:
            self.logger.error(f"Réinitialisation des tentatives impossible: {e}", exc_info=True)

        self.outcome = ConfirmationOutcome(
            status=ConfirmationStatus.SUCCESS,
            message=SUCCESS_MESSAGE
        )
        self._log_security_event("confirmation_success", {})

        try:
            self.navigator.schedule_redirect(
                self.settings.deep_link,
                self.settings.redirect_delay_seconds
            )
        except Exception as e:
            # L'utilisateur garde le bouton "Ouvrir l'application"
            self.logger.info(f"Lien profond indisponible: {e}")

    async def _fail(self, error: ConfirmationError) -> None:
        self.outcome = ConfirmationOutcome(
            status=ConfirmationStatus.ERROR,
            message=error.user_message,
            reason=error.reason
        )

        attempt_count = None
        if error.counts_as_attempt:
            try:
                record = await self.attempts.record_failure(self.clock())
                attempt_count = record.attempt_count
            except Exception as e:
                self.logger.error(f"Enregistrement de la tentative impossible: {e}", exc_info=True)

        self._log_security_event(
            f"confirmation_failed.{error.reason}",
            {"detail": error.detail, "attempt_count": attempt_count}
        )

    def _log_security_event(self, event_type: str, details: dict) -> None:
        """Logger un événement de sécurité"""
        if event_type.startswith("confirmation_failed"):
            self.logger.warning(f"Security event: {event_type}", extra=details)
        else:
            self.logger.info(f"Security event: {event_type}", extra=details)
