"""Session store: who is using the app and whether they finished onboarding.

The store reconciles two asynchronous sources at startup, the local cache
(fast, authoritative when present) and the identity provider, and then
owns every later change to the in-memory user. Persistence back to the
cache is best-effort: failures are logged and never reach the caller,
because the in-memory state is what the rest of the app reads.

Everything runs on a single asyncio event loop. ``set_user`` is
synchronous and schedules its cache work as background tasks, so it must
be called from code running on that loop.
"""

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any, Literal

from pydantic import ValidationError

from musclekitty.cache import JsonFileCache, LocalCache
from musclekitty.config import settings
from musclekitty.identity import IdentityProvider, SupabaseIdentityProvider, TokenLoader
from musclekitty.models import SessionState, UserProfile

logger = logging.getLogger(__name__)

Listener = Callable[[SessionState], None]

ONBOARDING_DONE = "true"


class SessionStore:
    """Observable holder of ``SessionState``.

    Args:
        cache: Local key-value cache holding the user snapshot and the
            onboarding flag.
        identity: Provider consulted at startup when the cache is empty.
        onboarding_scope: ``"device"`` keeps one onboarding flag per
            installation; ``"account"`` keys it by user id.
    """

    def __init__(
        self,
        cache: LocalCache,
        identity: IdentityProvider,
        *,
        user_key: str | None = None,
        onboarding_key: str | None = None,
        onboarding_scope: Literal["device", "account"] | None = None,
    ) -> None:
        self._cache = cache
        self._identity = identity
        self._user_key = user_key or settings.user_storage_key
        self._onboarding_base_key = onboarding_key or settings.onboarding_key
        self._onboarding_scope = onboarding_scope or settings.onboarding_scope

        self._state = SessionState()
        self._listeners: list[Listener] = []
        self._tasks: set[asyncio.Task[None]] = set()
        self._started = False
        self._user_writes = 0
        self._onboarding_epoch = 0
        self._onboarding_done: set[str] = set()

    # ── Observable state ──────────────────────────────────────────────────────

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def user(self) -> UserProfile | None:
        return self._state.user

    @property
    def loading(self) -> bool:
        return self._state.loading

    @property
    def is_first_login(self) -> bool:
        return self._state.is_first_login

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call *listener* with the new state after every change.

        Returns:
            A callable that removes the listener again.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _update(self, **changes: Any) -> None:
        new_state = self._state.model_copy(update=changes)
        if new_state == self._state:
            return
        self._state = new_state
        for listener in list(self._listeners):
            try:
                listener(new_state)
            except Exception:
                logger.exception("Session listener raised; continuing.")

    # ── Background work ───────────────────────────────────────────────────────

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def wait_idle(self) -> None:
        """Wait until all scheduled persistence and recompute tasks finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _next_epoch(self) -> int:
        self._onboarding_epoch += 1
        return self._onboarding_epoch

    def _onboarding_key(self, user: UserProfile | None) -> str | None:
        if self._onboarding_scope == "account":
            if user is None:
                return None
            return f"{self._onboarding_base_key}_{user.id}"
        return self._onboarding_base_key

    async def _read_cached_user(self) -> UserProfile | None:
        try:
            raw = await self._cache.get(self._user_key)
        except Exception:
            logger.warning("Could not read cached user profile.", exc_info=True)
            return None
        if raw is None:
            return None
        try:
            return UserProfile.model_validate_json(raw)
        except ValidationError as exc:
            logger.warning("Cached user profile is corrupt, ignoring it: %s", exc)
            return None

    async def _query_identity(self) -> UserProfile | None:
        try:
            return await self._identity.get_current_user()
        except Exception:
            logger.warning("Identity provider lookup failed.", exc_info=True)
            return None

    async def _persist_user(self, user: UserProfile | None) -> None:
        try:
            if user is None:
                await self._cache.remove(self._user_key)
            else:
                await self._cache.set(self._user_key, user.model_dump_json())
        except Exception:
            logger.warning("Could not persist user profile to the local cache.", exc_info=True)

    async def _refresh_first_login(self, user: UserProfile, epoch: int) -> None:
        """Recompute ``is_first_login`` from the onboarding flag.

        A completion recorded earlier in this process counts even if it
        never reached the cache. A read failure counts as "onboarding done"
        so onboarding is never shown twice. Results from a superseded
        refresh are dropped.
        """
        key = self._onboarding_key(user)
        if key is not None and key in self._onboarding_done:
            first_login = False
        else:
            try:
                completed = await self._cache.get(key) if key is not None else None
                first_login = completed is None
            except Exception:
                logger.warning("Could not read onboarding status.", exc_info=True)
                first_login = False
        if epoch != self._onboarding_epoch:
            return
        self._update(is_first_login=first_login)

    # ── Operations ────────────────────────────────────────────────────────────

    async def start(self) -> None:
        """Load the session once: cache first, then the identity provider.

        ``loading`` flips to False exactly once when this returns, whatever
        branch was taken. A user set through ``set_user`` while this runs
        is never overwritten. Calling ``start`` again is a no-op.
        """
        if self._started:
            return
        self._started = True
        writes_before = self._user_writes

        try:
            user = await self._read_cached_user()
            if user is not None:
                if self._user_writes == writes_before:
                    self._update(user=user)
                    await self._refresh_first_login(user, self._next_epoch())
                return

            user = await self._query_identity()
            if user is None:
                logger.info("No remembered session; starting signed out.")
                return
            if self._user_writes == writes_before:
                self._update(user=user)
                self._spawn(self._persist_user(user))
                await self._refresh_first_login(user, self._next_epoch())
        finally:
            self._update(loading=False)

    def set_user(self, user: UserProfile | None) -> None:
        """Replace the active user and persist it in the background.

        ``None`` signs out: the cached snapshot is removed and
        ``is_first_login`` is left as it was.
        """
        self._user_writes += 1
        epoch = self._next_epoch()
        self._update(user=user)
        self._spawn(self._persist_user(user))
        if user is not None:
            self._spawn(self._refresh_first_login(user, epoch))

    async def complete_onboarding(self) -> None:
        """Mark onboarding complete and unlock the rest of the app.

        Safe to call repeatedly. If the flag cannot be written the session
        is still unlocked in memory.
        """
        self._next_epoch()
        key = self._onboarding_key(self._state.user)
        if key is None:
            logger.warning("Onboarding completed with no signed-in user; not persisted.")
        else:
            self._onboarding_done.add(key)
            try:
                await self._cache.set(key, ONBOARDING_DONE)
            except Exception:
                logger.warning("Could not persist onboarding completion.", exc_info=True)
        self._update(is_first_login=False)


def build_session_store(token_loader: TokenLoader) -> SessionStore:
    """Wire a store to the on-disk cache and the hosted identity provider.

    Args:
        token_loader: Coroutine function returning the remembered access
            token, or None.
    """
    return SessionStore(
        JsonFileCache(settings.cache_file),
        SupabaseIdentityProvider(token_loader),
    )
