"""
Stockage des tentatives de confirmation par appareil

Heuristique anti-abus non autoritaire : lecture puis écriture sans
coordination entre onglets ou appareils.
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional

from redis.asyncio import Redis

from ..shared.utils import LoggerFactory
from .models import AttemptRecord


ATTEMPTS_KEY = "confirmation_attempts"
LAST_ATTEMPT_KEY = "confirmation_last_attempt"


class AttemptStore(ABC):
    """Interface du stockage des tentatives d'un appareil"""

    @abstractmethod
    async def load(self) -> Optional[AttemptRecord]:
        """Lire l'enregistrement, None s'il n'existe pas"""
        pass

    @abstractmethod
    async def save(self, record: AttemptRecord) -> None:
        """Écrire l'enregistrement"""
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Supprimer l'enregistrement"""
        pass


class MemoryAttemptStore(AttemptStore):
    """Stockage en mémoire, une instance par appareil"""

    def __init__(self, record: Optional[AttemptRecord] = None):
        self.values: Dict[str, str] = {}
        if record is not None:
            self.values[ATTEMPTS_KEY] = str(record.attempt_count)
            self.values[LAST_ATTEMPT_KEY] = str(record.last_attempt_timestamp)

    async def load(self) -> Optional[AttemptRecord]:
        return _decode(self.values.get(ATTEMPTS_KEY), self.values.get(LAST_ATTEMPT_KEY))

    async def save(self, record: AttemptRecord) -> None:
        self.values[ATTEMPTS_KEY] = str(record.attempt_count)
        self.values[LAST_ATTEMPT_KEY] = str(record.last_attempt_timestamp)

    async def clear(self) -> None:
        self.values.pop(ATTEMPTS_KEY, None)
        self.values.pop(LAST_ATTEMPT_KEY, None)


class RedisAttemptStore(AttemptStore):
    """Stockage Redis, clés préfixées par l'identifiant d'appareil"""

    def __init__(
        self,
        redis_client: Redis,
        device_id: str,
        prefix: str = "medidash",
        ttl: int = 3600
    ):
        self.redis_client = redis_client
        self.device_id = device_id
        self.prefix = prefix
        # Au-delà de la fenêtre le compteur serait remis à zéro de toute façon
        self.ttl = ttl
        self.logger = LoggerFactory.get_logger("attempt_store")

    def _make_key(self, key: str) -> str:
        return f"{self.prefix}:device:{self.device_id}:{key}"

    async def load(self) -> Optional[AttemptRecord]:
        count = await self.redis_client.get(self._make_key(ATTEMPTS_KEY))
        last = await self.redis_client.get(self._make_key(LAST_ATTEMPT_KEY))
        return _decode(count, last)

    async def save(self, record: AttemptRecord) -> None:
        await self.redis_client.setex(
            self._make_key(ATTEMPTS_KEY),
            self.ttl,
            str(record.attempt_count)
        )
        await self.redis_client.setex(
            self._make_key(LAST_ATTEMPT_KEY),
            self.ttl,
            str(record.last_attempt_timestamp)
        )
        self.logger.debug(f"Tentatives enregistrées pour {self.device_id}: {record.attempt_count}")

    async def clear(self) -> None:
        await self.redis_client.delete(
            self._make_key(ATTEMPTS_KEY),
            self._make_key(LAST_ATTEMPT_KEY)
        )


def _as_int(value) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode("utf-8")
    try:
        return int(value)
    except ValueError:
        return None


def _decode(count, last) -> Optional[AttemptRecord]:
    attempt_count = _as_int(count)
    last_attempt = _as_int(last)
    if attempt_count is None and last_attempt is None:
        return None
    return AttemptRecord(
        attempt_count=max(attempt_count or 0, 0),
        last_attempt_timestamp=last_attempt or 0
    )


class AttemptTracker:
    """Règles de limitation appliquées au stockage d'un appareil"""

    def __init__(self, store: AttemptStore, max_attempts: int = 5, window_seconds: int = 3600):
        self.store = store
        self.max_attempts = max_attempts
        self.window_ms = window_seconds * 1000

    async def is_allowed(self, now_ms: int) -> bool:
        """Appliquer l'expiration de la fenêtre puis le plafond"""
        record = await self.store.load()
        if record is None:
            return True

        if record.window_expired(now_ms, self.window_ms):
            await self.store.save(AttemptRecord(attempt_count=0, last_attempt_timestamp=now_ms))
            return True

        return record.attempt_count < self.max_attempts

    async def record_failure(self, now_ms: int) -> AttemptRecord:
        record = await self.store.load() or AttemptRecord()
        updated = AttemptRecord(
            attempt_count=record.attempt_count + 1,
            last_attempt_timestamp=now_ms
        )
        await self.store.save(updated)
        return updated

    async def record_success(self) -> None:
        await self.store.clear()
