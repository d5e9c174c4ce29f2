"""User registry: Redis-backed users and the API keys that front their Slack tokens.

Key layout:
    user:<id>              JSON UserRecord
    apikey:<apiKey>        -> id   (present only while the record is active)
    token:<sha256(token)>  -> id   (newest record registered for the token)
    usage:<id>             request counter (INCR on every tracked lookup)
    stats:total_users      counter
    stats:active_users     counter

Multi-key writes go through MULTI/EXEC so a record and its indexes are
never observed half-written. Read-modify-write of an existing record
WATCHes it first and retries when another writer gets in between.
Records are never deleted, only deactivated.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

import structlog
from redis.asyncio import Redis
from redis.asyncio.client import Pipeline
from redis.exceptions import WatchError

from core.api_keys import (
    generate_api_key,
    generate_user_id,
    hash_token,
    is_valid_api_key,
    is_valid_slack_token,
    mask_token,
)
from core.exceptions import (
    InternalError,
    InvalidCredentialFormatError,
    InvalidRequestError,
    NotFoundError,
)
from core.utils import utc_now
from db.models.user import UserRecord
from db.redis import (
    STATS_ACTIVE_USERS,
    STATS_TOTAL_USERS,
    USER_PREFIX,
    apikey_key,
    token_key,
    usage_key,
    user_key,
)

logger = structlog.get_logger(__name__)

# In-flight usage updates; held so the event loop does not drop them mid-write
_usage_tasks: set[asyncio.Task] = set()

USAGE_UPDATE_ATTEMPTS = 3
RECORD_UPDATE_ATTEMPTS = 5
RECENTLY_ACTIVE_DAYS = 30

# Mutates a record and queues any index writes on a pipeline already in MULTI
RecordChange = Callable[[UserRecord, Pipeline], Any]


async def wait_for_usage_updates() -> None:
    """Wait for every pending background usage update to finish."""
    if _usage_tasks:
        await asyncio.gather(*list(_usage_tasks), return_exceptions=True)


class UserRegistry:
    """Creates, resolves, rotates and deactivates API-key users.

    Usage:
        registry = UserRegistry(redis)
        user_id, api_key, record = await registry.create_user(token, {"name": "Ada"})
        user = await registry.get_user_by_api_key(api_key)
    """

    def __init__(self, redis: Redis):
        self.redis = redis

    # ─── Create ────────────────────────────────────────────

    async def create_user(
        self,
        platform_token: str,
        user_info: Optional[dict[str, Any]] = None,
    ) -> tuple[str, str, UserRecord]:
        """Register a user for an already-validated Slack token.

        Every call mints a new record and key. Earlier records for the same
        token keep working; the token index moves to the newest one.

        Args:
            platform_token: Slack user token (xoxp-...)
            user_info: Profile fields (name, email, slackTeam, source, ...)

        Returns:
            Tuple of (user_id, api_key, record)

        Raises:
            InvalidCredentialFormatError: If the token does not look like a Slack user token
        """
        if not is_valid_slack_token(platform_token):
            raise InvalidCredentialFormatError("Invalid Slack token format")

        now = utc_now()
        info = dict(user_info or {})
        info.setdefault("registrationIp", "unknown")

        record = UserRecord(
            id=generate_user_id(),
            api_key=generate_api_key(),
            platform_token=platform_token,
            platform_token_hash=hash_token(platform_token),
            created_at=now,
            last_used=now,
            user_info=info,
        )

        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.set(user_key(record.id), record.to_json())
            pipe.set(apikey_key(record.api_key), record.id)
            pipe.set(token_key(record.platform_token_hash), record.id)
            pipe.set(usage_key(record.id), 0)
            pipe.incr(STATS_TOTAL_USERS)
            pipe.incr(STATS_ACTIVE_USERS)
            await pipe.execute()

        logger.info(
            "User created",
            user_id=record.id,
            token=mask_token(platform_token),
            slack_team=info.get("slackTeam"),
        )
        return record.id, record.api_key, record

    # ─── Read ──────────────────────────────────────────────

    async def get_user_by_api_key(
        self,
        api_key: Any,
        track_usage: bool = True,
    ) -> Optional[UserRecord]:
        """Resolve an API key to its active user record.

        Fails closed: malformed keys, missing indexes or records, inactive
        users and store errors all return None.

        With track_usage set, the request counter is bumped atomically and
        the returned record carries the new total. Persisting lastUsed and
        the total into the record happens in the background and never
        affects the result of this call.
        """
        if not is_valid_api_key(api_key):
            return None

        try:
            user_id = await self.redis.get(apikey_key(api_key))
            if not user_id:
                return None

            raw = await self.redis.get(user_key(user_id))
            if not raw:
                return None

            record = UserRecord.from_json(raw)
            if not record.active or record.api_key != api_key:
                return None

            if track_usage:
                record.usage.total_requests = await self.redis.incr(usage_key(record.id))
        except Exception as e:
            logger.error("Error getting user by API key", key=mask_token(api_key), error=str(e))
            return None

        if track_usage:
            seen_at = utc_now()
            record.last_used = seen_at
            record.usage.last_request = seen_at
            task = asyncio.create_task(
                self._record_usage(record.id, api_key, seen_at, record.usage.total_requests)
            )
            _usage_tasks.add(task)
            task.add_done_callback(_usage_tasks.discard)

        return record

    async def get_user_by_id(self, user_id: str) -> Optional[UserRecord]:
        """Get a user record by ID (active or not)."""
        raw = await self.redis.get(user_key(user_id))
        if not raw:
            return None
        return UserRecord.from_json(raw)

    async def get_user_by_platform_token(self, platform_token: str) -> Optional[UserRecord]:
        """Find the newest user registered for a given Slack token, if any."""
        if not is_valid_slack_token(platform_token):
            return None
        user_id = await self.redis.get(token_key(hash_token(platform_token)))
        if not user_id:
            return None
        return await self.get_user_by_id(user_id)

    async def list_users(self, limit: int = 100, cursor: str = "0") -> dict[str, Any]:
        """List users page by page (SCAN cursor), with credentials stripped.

        Returns:
            Dict with users, the next cursor and hasMore
        """
        try:
            cursor_value = int(cursor)
        except (TypeError, ValueError):
            raise InvalidRequestError("cursor must be an integer string")

        next_cursor, keys = await self.redis.scan(
            cursor=cursor_value,
            match=f"{USER_PREFIX}*",
            count=limit,
        )

        users = []
        if keys:
            for raw in await self.redis.mget(keys):
                if raw:
                    users.append(UserRecord.from_json(raw).to_public_dict())

        return {
            "users": users,
            "cursor": str(next_cursor),
            "hasMore": int(next_cursor) != 0,
        }

    async def get_stats(self) -> dict[str, Any]:
        """Registration counters plus users seen in the last 30 days."""
        total_users = int(await self.redis.get(STATS_TOTAL_USERS) or 0)
        active_users = int(await self.redis.get(STATS_ACTIVE_USERS) or 0)

        now = utc_now()
        since = now - timedelta(days=RECENTLY_ACTIVE_DAYS)
        recently_active = 0
        async for record in self._iter_records():
            if record.last_used and record.last_used > since:
                recently_active += 1

        return {
            "totalUsers": total_users,
            "activeUsers": active_users,
            "recentlyActive": recently_active,
            "timestamp": now.isoformat(),
        }

    # ─── Update ────────────────────────────────────────────

    async def update_user_token(self, user_id: str, new_platform_token: str) -> UserRecord:
        """Replace the Slack token wrapped by a user record.

        Raises:
            InvalidCredentialFormatError: If the new token has the wrong shape
            NotFoundError: If the user does not exist
        """
        if not is_valid_slack_token(new_platform_token):
            raise InvalidCredentialFormatError("Invalid Slack token format")

        current = await self._require(user_id)
        # The old token's index may already point at a newer registration
        owns_old_index = await self.redis.get(token_key(current.platform_token_hash)) == user_id

        def change(record: UserRecord, pipe: Pipeline) -> None:
            old_hash = record.platform_token_hash
            record.platform_token = new_platform_token
            record.platform_token_hash = hash_token(new_platform_token)
            record.updated_at = utc_now()
            if owns_old_index and old_hash != record.platform_token_hash:
                pipe.delete(token_key(old_hash))
            pipe.set(token_key(record.platform_token_hash), user_id)

        record, _ = await self._update_record(user_id, change)
        logger.info("User token updated", user_id=user_id, token=mask_token(new_platform_token))
        return record

    async def rotate_api_key(self, user_id: str) -> str:
        """Issue a new API key; the old one stops authenticating immediately.

        Raises:
            NotFoundError: If the user does not exist
        """

        def change(record: UserRecord, pipe: Pipeline) -> None:
            pipe.delete(apikey_key(record.api_key))
            record.api_key = generate_api_key()
            record.key_rotated_at = utc_now()
            if record.active:
                pipe.set(apikey_key(record.api_key), user_id)

        record, _ = await self._update_record(user_id, change)
        logger.info("API key rotated", user_id=user_id)
        return record.api_key

    async def deactivate_user(self, user_id: str) -> bool:
        """Mark a user inactive and unlink their API key.

        Returns:
            True if the user exists (already inactive counts), False otherwise
        """

        def change(record: UserRecord, pipe: Pipeline) -> bool:
            if not record.active:
                return False
            record.active = False
            record.deactivated_at = utc_now()
            pipe.delete(apikey_key(record.api_key))
            pipe.decr(STATS_ACTIVE_USERS)
            return True

        try:
            _, changed = await self._update_record(user_id, change)
        except NotFoundError:
            return False

        if changed:
            logger.info("User deactivated", user_id=user_id)
        return True

    async def reactivate_user(self, user_id: str) -> str:
        """Reactivate a user with a freshly minted API key.

        The previous key is never restored since its exposure cannot be
        ruled out.

        Raises:
            NotFoundError: If the user does not exist
        """

        def change(record: UserRecord, pipe: Pipeline) -> None:
            if not record.active:
                pipe.incr(STATS_ACTIVE_USERS)
            pipe.delete(apikey_key(record.api_key))
            record.active = True
            record.api_key = generate_api_key()
            record.reactivated_at = utc_now()
            record.deactivated_at = None
            pipe.set(apikey_key(record.api_key), user_id)

        record, _ = await self._update_record(user_id, change)
        logger.info("User reactivated", user_id=user_id)
        return record.api_key

    async def cleanup_inactive_users(self, days_inactive: int = 90) -> int:
        """Deactivate active users not seen for days_inactive days.

        Returns:
            Number of users deactivated
        """
        cutoff = utc_now() - timedelta(days=days_inactive)
        stale = [
            record.id
            async for record in self._iter_records()
            if record.active and record.last_used and record.last_used < cutoff
        ]

        cleaned_up = 0
        for user_id in stale:
            if await self.deactivate_user(user_id):
                cleaned_up += 1

        logger.info("Inactive user cleanup finished", days_inactive=days_inactive, deactivated=cleaned_up)
        return cleaned_up

    # ─── Internals ─────────────────────────────────────────

    async def _require(self, user_id: str) -> UserRecord:
        record = await self.get_user_by_id(user_id)
        if not record:
            raise NotFoundError("User not found")
        return record

    async def _update_record(self, user_id: str, change: RecordChange) -> tuple[UserRecord, Any]:
        """Apply change to a user record under WATCH, retrying on conflict.

        The record is written back after change runs, in the same MULTI as
        the index writes change queued.

        Returns:
            Tuple of (updated record, whatever change returned)

        Raises:
            NotFoundError: If the user does not exist
            InternalError: If every attempt lost to a concurrent writer
        """
        key = user_key(user_id)
        for _ in range(RECORD_UPDATE_ATTEMPTS):
            async with self.redis.pipeline(transaction=True) as pipe:
                await pipe.watch(key)
                raw = await pipe.get(key)
                if not raw:
                    raise NotFoundError("User not found")
                record = UserRecord.from_json(raw)

                pipe.multi()
                result = change(record, pipe)
                pipe.set(key, record.to_json())
                try:
                    await pipe.execute()
                except WatchError:
                    continue
                return record, result

        logger.warning("User record update lost to concurrent writes", user_id=user_id)
        raise InternalError("User record is being modified concurrently, try again")

    async def _iter_records(self):
        async for key in self.redis.scan_iter(match=f"{USER_PREFIX}*", count=500):
            raw = await self.redis.get(key)
            if raw:
                yield UserRecord.from_json(raw)

    async def _record_usage(self, user_id: str, api_key: str, seen_at: datetime, total: int) -> None:
        """Persist lastUsed and the request total into the user's record.

        Skips the write if the record was deactivated or its key rotated in
        the meantime. Errors are logged and dropped.
        """
        key = user_key(user_id)
        try:
            for _ in range(USAGE_UPDATE_ATTEMPTS):
                async with self.redis.pipeline(transaction=True) as pipe:
                    await pipe.watch(key)
                    raw = await pipe.get(key)
                    if not raw:
                        return
                    record = UserRecord.from_json(raw)
                    if not record.active or record.api_key != api_key:
                        return

                    # Updates may land out of order; the stored total only moves forward
                    record.usage.total_requests = max(record.usage.total_requests, total)
                    if record.last_used is None or seen_at > record.last_used:
                        record.last_used = seen_at
                        record.usage.last_request = seen_at

                    pipe.multi()
                    pipe.set(key, record.to_json())
                    try:
                        await pipe.execute()
                        return
                    except WatchError:
                        continue
            logger.warning("Usage update lost to concurrent writes", user_id=user_id)
        except Exception as e:
            logger.error("Failed to record API key usage", user_id=user_id, error=str(e))
