"""Preference store backends.

Provides a protocol abstraction with two implementations:
- PostgresPreferenceStore: persistent, shares the registry's pool (primary)
- MemoryPreferenceStore: process-local dict (console --memory, tests)

Every operation is a single statement, so a cancelled or failed call
leaves the user's record exactly as it was.
"""

import logging
from typing import Protocol, runtime_checkable

from zodiac_bot._errors import (
    ConnectionLost,
    InvalidSign,
    StorageError,
    StorageErrorKind,
    classify_storage_error,
)
from zodiac_bot.registry import Registry
from zodiac_bot.signs import Sign, normalize

logger = logging.getLogger(__name__)

_GET_SQL = "SELECT user_zodiac_sign FROM user_sign WHERE user_id = $1"
_UPSERT_SQL = """
INSERT INTO user_sign (user_id, user_zodiac_sign) VALUES ($1, $2)
ON CONFLICT (user_id) DO UPDATE SET user_zodiac_sign = EXCLUDED.user_zodiac_sign
"""
_DELETE_SQL = "DELETE FROM user_sign WHERE user_id = $1"


@runtime_checkable
class PreferenceStore(Protocol):
    """Keyed read / upsert / delete of one Sign per user."""

    backend: str  # "postgres" | "memory"

    async def get(self, user_id: str) -> Sign | None: ...
    async def set(self, user_id: str, sign: Sign) -> None: ...
    async def delete(self, user_id: str) -> None: ...


class PostgresPreferenceStore:
    """Postgres-backed store over the registry's shared pool.

    No client-side locking: concurrent writes to the same user are ordered
    by the backend's atomic upsert and delete.
    """

    backend: str = "postgres"

    def __init__(self, registry: Registry):
        self._registry = registry

    async def get(self, user_id: str) -> Sign | None:
        value = await self._run("get", user_id, lambda pool: pool.fetchval(_GET_SQL, user_id))
        if value is None:
            return None
        try:
            return normalize(value)
        except InvalidSign as e:
            raise StorageError(f"Database: stored sign {value!r} for user {user_id} is corrupt.") from e

    async def set(self, user_id: str, sign: Sign) -> None:
        await self._run("set", user_id, lambda pool: pool.execute(_UPSERT_SQL, user_id, sign.value))

    async def delete(self, user_id: str) -> None:
        await self._run("delete", user_id, lambda pool: pool.execute(_DELETE_SQL, user_id))

    async def _run(self, op: str, user_id: str, query):
        pool = self._registry.pool  # raises ConnectionLost when invalid
        try:
            return await query(pool)
        except Exception as e:
            kind, message = classify_storage_error(e)
            logger.debug("store.%s(%s) failed: %s", op, user_id, message)
            if kind == StorageErrorKind.CONNECTION:
                self._registry.mark_lost(e)
                raise ConnectionLost(message) from e
            raise StorageError(message) from e


class MemoryPreferenceStore:
    """Process-local store. Dict operations never suspend, so each call is atomic."""

    backend: str = "memory"

    def __init__(self) -> None:
        self._records: dict[str, Sign] = {}

    async def get(self, user_id: str) -> Sign | None:
        return self._records.get(user_id)

    async def set(self, user_id: str, sign: Sign) -> None:
        self._records[user_id] = sign

    async def delete(self, user_id: str) -> None:
        self._records.pop(user_id, None)

    def __len__(self) -> int:
        return len(self._records)
