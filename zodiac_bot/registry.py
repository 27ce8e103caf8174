"""Process-wide holder of the single shared database handle.

The registry opens one asyncpg pool at startup, verifies it with a
handshake, and runs one supervised keep-alive task against it. When the
keep-alive sees a connection fault or too many missed pings in a row, or
a store call hits a connection-level error, the handle is marked lost: the
``failure`` future resolves with the cause and every later ``pool`` access
raises ConnectionLost. The registry never reconnects; what happens next is
up to whoever awaits ``wait_lost()``.
"""

from __future__ import annotations

import asyncio
import logging

import asyncpg

from zodiac_bot._errors import ConnectionLost, StorageError, StorageErrorKind, classify_storage_error

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS user_sign (
    user_id          TEXT PRIMARY KEY,
    user_zodiac_sign TEXT NOT NULL
)
"""


class Registry:
    """Owns the shared pool and the keep-alive task that watches it."""

    def __init__(
        self,
        pool: asyncpg.Pool,
        *,
        keepalive_interval: float = 30.0,
        max_missed_pings: int = 3,
    ):
        self._pool = pool
        self._keepalive_interval = keepalive_interval
        self._max_missed_pings = max_missed_pings
        self._failure: asyncio.Future[BaseException] = asyncio.get_running_loop().create_future()
        self._supervisor: asyncio.Task | None = None

    @classmethod
    async def open(
        cls,
        dsn: str,
        *,
        min_size: int = 1,
        max_size: int = 10,
        command_timeout: float = 5.0,
        keepalive_interval: float = 30.0,
        max_missed_pings: int = 3,
    ) -> Registry:
        """Connect, handshake, ensure the schema, and start the keep-alive task.

        Raises StorageError if the backend cannot be reached; this is a
        fatal startup condition for the caller.
        """
        try:
            pool = await asyncpg.create_pool(
                dsn,
                min_size=min_size,
                max_size=max_size,
                command_timeout=command_timeout,
            )
        except Exception as e:
            raise StorageError(f"Database: connection failed ({e}).") from e

        try:
            async with pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
                await conn.execute(SCHEMA_SQL)
        except Exception as e:
            await pool.close()
            raise StorageError(f"Database: handshake failed ({e}).") from e

        registry = cls(pool, keepalive_interval=keepalive_interval, max_missed_pings=max_missed_pings)
        registry.start()
        logger.info("registry: database handle ready (pool %d..%d)", min_size, max_size)
        return registry

    # -- handle -------------------------------------------------------------

    @property
    def is_alive(self) -> bool:
        return not self._failure.done()

    @property
    def pool(self) -> asyncpg.Pool:
        """The shared handle. Raises ConnectionLost once the registry is invalid."""
        if self._failure.done():
            raise ConnectionLost(f"Database: handle is no longer usable ({self._failure.result()}).")
        return self._pool

    def mark_lost(self, cause: BaseException) -> None:
        """Invalidate the handle. The first cause wins; later calls are no-ops."""
        if self._failure.done():
            return
        logger.error("registry: database handle lost: %s", cause)
        self._failure.set_result(cause)

    async def wait_lost(self) -> BaseException:
        """Block until the handle is lost and return the cause."""
        return await asyncio.shield(self._failure)

    # -- supervision ----------------------------------------------------------

    def start(self) -> None:
        if self._supervisor is None:
            self._supervisor = asyncio.create_task(self._keepalive(), name="zodiac-db-keepalive")

    async def _keepalive(self) -> None:
        """Ping on an interval until the handle is judged lost, then report it and stop.

        A connection-class error is fatal at once. Timeouts and query errors
        are tolerated until ``max_missed_pings`` of them happen in a row.
        """
        missed = 0
        while True:
            await asyncio.sleep(self._keepalive_interval)
            try:
                await self._pool.fetchval("SELECT 1")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                kind, msg = classify_storage_error(e)
                if kind is StorageErrorKind.CONNECTION:
                    self.mark_lost(e)
                    return
                missed += 1
                logger.warning("registry: keep-alive missed (%d/%d): %s", missed, self._max_missed_pings, msg)
                if missed >= self._max_missed_pings:
                    self.mark_lost(e)
                    return
            else:
                missed = 0

    async def close(self) -> None:
        """Stop the keep-alive task and close the pool (idempotent)."""
        if self._supervisor is not None:
            self._supervisor.cancel()
            try:
                await self._supervisor
            except asyncio.CancelledError:
                pass
            self._supervisor = None
        if not self._failure.done():
            self._failure.set_result(ConnectionLost("registry closed"))
        await self._pool.close()
        logger.info("registry: closed")
