"""
Adaptateurs Supabase pour le flux de confirmation

Les messages d'erreur du fournisseur sont traduits ici en
``IdentityErrorKind`` ; rien au-delà de cette frontière ne les inspecte.
"""

from typing import Optional
from datetime import datetime, timezone

from supabase import AsyncClient, AsyncClientOptions, AuthError, acreate_client

from ..shared.config import SupabaseConfig
from ..shared.utils import LoggerFactory
from .exceptions import ExchangeRejectedError, classify_provider_error
from .models import AuthUser, DoctorRecord
from .ports import IdentityService, RecordStore


def _rejection(error: AuthError) -> ExchangeRejectedError:
    code = getattr(error, "code", None)
    message = getattr(error, "message", None) or str(error)
    return ExchangeRejectedError(classify_provider_error(message, code), detail=message)


def _to_auth_user(user) -> Optional[AuthUser]:
    if user is None:
        return None
    confirmed_at = user.email_confirmed_at
    if isinstance(confirmed_at, str):
        confirmed_at = datetime.fromisoformat(confirmed_at.replace("Z", "+00:00"))
    return AuthUser(id=str(user.id), email=user.email, email_confirmed_at=confirmed_at)


class SupabaseIdentityService(IdentityService):
    """Fournisseur d'identité Supabase Auth"""

    def __init__(self, config: SupabaseConfig, admin_client: Optional[AsyncClient] = None):
        self.config = config
        self.admin_client = admin_client
        self.logger = LoggerFactory.get_logger("supabase_identity")

    async def _session_client(self) -> AsyncClient:
        # Un client par échange, sans session persistée ni rafraîchissement en tâche de fond
        options = AsyncClientOptions(auto_refresh_token=False, persist_session=False)
        return await acreate_client(self.config.url, self.config.anon_key, options=options)

    async def _admin(self) -> AsyncClient:
        if self.admin_client is None:
            key = self.config.service_role_key or self.config.anon_key
            self.admin_client = await acreate_client(self.config.url, key)
        return self.admin_client

    async def establish_session(self, access_token: str, refresh_token: str) -> Optional[AuthUser]:
        client = await self._session_client()
        try:
            response = await client.auth.set_session(access_token, refresh_token)
        except AuthError as e:
            raise _rejection(e) from e
        finally:
            await client.auth.close()
        return _to_auth_user(response.user)

    async def verify_one_time_token(self, token: str, kind: str) -> Optional[AuthUser]:
        client = await self._session_client()
        try:
            response = await client.auth.verify_otp({"token_hash": token, "type": kind})
        except AuthError as e:
            raise _rejection(e) from e
        finally:
            await client.auth.close()
        return _to_auth_user(response.user)

    async def mark_email_confirmed(self, user_id: str) -> None:
        admin = await self._admin()
        await admin.auth.admin.update_user_by_id(user_id, {"email_confirm": True})
        self.logger.info(f"Email marqué confirmé pour {user_id}")


class SupabaseRecordStore(RecordStore):
    """Table ``doctors`` de la base Supabase"""

    def __init__(self, config: SupabaseConfig, client: Optional[AsyncClient] = None):
        self.config = config
        self.client = client
        self.table = config.doctors_table

    async def _client(self) -> AsyncClient:
        if self.client is None:
            key = self.config.service_role_key or self.config.anon_key
            self.client = await acreate_client(self.config.url, key)
        return self.client

    async def find_by_email(self, email: str) -> Optional[DoctorRecord]:
        client = await self._client()
        response = await (
            client.table(self.table)
            .select("id, email, status")
            .eq("email", email)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        row = response.data[0]
        return DoctorRecord(id=str(row["id"]), email=row["email"], status=bool(row.get("status")))

    async def touch_updated_at(self, record_id: str) -> None:
        client = await self._client()
        await (
            client.table(self.table)
            .update({"updated_at": datetime.now(timezone.utc).isoformat()})
            .eq("id", record_id)
            .execute()
        )
