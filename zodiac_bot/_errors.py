"""Error taxonomy and storage error classification.

User-facing errors (InvalidSign, ContentNotFound) are handled inside the
command handlers. Backend errors (StorageError, ConnectionLost) are caught
at the dispatch boundary and turned into a generic failure reply.
ConfigError is fatal at startup.
"""

import asyncio
import enum

import asyncpg


class BotError(Exception):
    """Base class for all zodiac-bot errors."""


class ConfigError(BotError):
    """Required startup configuration is missing or invalid."""


class InvalidSign(BotError):
    """Raw text does not name one of the twelve signs."""

    def __init__(self, raw: str):
        self.raw = raw
        super().__init__(f"{raw!r} is not a valid sign")


class ContentNotFound(BotError):
    """No content bundle exists for the requested (sign, category)."""

    def __init__(self, sign: object, category: object):
        self.sign = sign
        self.category = category
        super().__init__(f"no {category} content for {sign}")


class StorageError(BotError):
    """Backend query failed. The stored record is unchanged."""


class ConnectionLost(StorageError):
    """The shared database handle is gone and will not come back by itself."""


# ---------------------------------------------------------------------------
# Storage error classification
# ---------------------------------------------------------------------------


class StorageErrorKind(enum.Enum):
    CONNECTION = "connection"   # socket closed, server gone, handshake failed
    TIMEOUT    = "timeout"      # command_timeout elapsed
    QUERY      = "query"        # SQL error, constraint, bad data


_CONNECTION_ERRORS: tuple[type[BaseException], ...] = (
    asyncpg.exceptions.ConnectionDoesNotExistError,
    asyncpg.exceptions.ConnectionFailureError,
    asyncpg.exceptions.CannotConnectNowError,
    asyncpg.exceptions.AdminShutdownError,
    asyncpg.exceptions.CrashShutdownError,
    asyncpg.exceptions.InterfaceError,
    ConnectionError,
    OSError,
)


def classify_storage_error(e: BaseException) -> tuple[StorageErrorKind, str]:
    """Classify a backend exception into (kind, message).

    ``asyncpg.InterfaceError`` covers a closed pool or connection, so it is
    treated as a connection fault rather than a query fault.
    """
    if isinstance(e, (asyncio.TimeoutError, TimeoutError)):
        return StorageErrorKind.TIMEOUT, "Database: query timed out."
    if isinstance(e, _CONNECTION_ERRORS):
        return StorageErrorKind.CONNECTION, f"Database: connection lost ({e})."
    return StorageErrorKind.QUERY, f"Database: query failed ({type(e).__name__}: {e})."
