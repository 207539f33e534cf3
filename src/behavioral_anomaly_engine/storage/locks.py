"""Per-player mutual exclusion backed by Redis locks.

Sessions for the same player can arrive from several match contexts at
once. Holding the player's lock around the load-analyze-save sequence keeps
those updates sequential; profiles of different players never contend.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING

from redis.exceptions import LockError

from behavioral_anomaly_engine.storage.repos import BehaviorStorageError

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_LOCK_TIMEOUT_SECONDS = 10.0
DEFAULT_BLOCKING_TIMEOUT_SECONDS = 5.0
DEFAULT_REDIS_KEY_PREFIX = "behavior:lock:"


class LockAcquisitionError(BehaviorStorageError):
    """Raised when a player's lock could not be acquired in time."""

    retryable = True

    def __init__(self, player_id: str) -> None:
        self.player_id = player_id
        super().__init__(f"Timed out waiting for lock on player {player_id}")


class PlayerLock:
    """Redis-backed lock keyed by player identifier.

    Example:
        ```python
        locks = PlayerLock(Redis.from_url("redis://localhost:6379"))
        async with locks.hold("player-42"):
            ...
        ```
    """

    def __init__(
        self,
        redis: Redis,
        *,
        timeout: float = DEFAULT_LOCK_TIMEOUT_SECONDS,
        blocking_timeout: float = DEFAULT_BLOCKING_TIMEOUT_SECONDS,
        key_prefix: str = DEFAULT_REDIS_KEY_PREFIX,
    ) -> None:
        """Initialize the player lock.

        Args:
            redis: Redis async client.
            timeout: Seconds after which a held lock expires on its own.
            blocking_timeout: Seconds to wait for a busy lock.
            key_prefix: Redis key prefix for lock keys.
        """
        self._redis = redis
        self._timeout = timeout
        self._blocking_timeout = blocking_timeout
        self._key_prefix = key_prefix

    def key(self, player_id: str) -> str:
        """Return the Redis key guarding a player's profile."""
        return f"{self._key_prefix}{player_id}"

    @contextlib.asynccontextmanager
    async def hold(self, player_id: str) -> AsyncIterator[None]:
        """Hold the player's lock for the duration of the block.

        Raises:
            LockAcquisitionError: If the lock is still busy after the
                blocking timeout.
        """
        lock = self._redis.lock(
            self.key(player_id),
            timeout=self._timeout,
            blocking_timeout=self._blocking_timeout,
        )
        if not await lock.acquire():
            raise LockAcquisitionError(player_id)

        logger.debug("Acquired lock for player %s", player_id)
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError:
                logger.warning("Lock for player %s expired before release", player_id)
