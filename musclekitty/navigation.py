"""Navigation guard: which route segment the current session may see.

``decide`` is a pure, level-triggered rule list re-evaluated on every
session change. Rule order encodes priority:

1. Signed in but onboarding unfinished -> locked into onboarding.
2. Signed out -> only auth segments are reachable.
3. Signed in and onboarded -> auth segments are unreachable.
4. Otherwise stay.

Nothing is decided while the session is still loading; the shell shows an
interstitial instead. The presentation delay before a redirect belongs to
``RedirectController``, never to the decision itself.
"""

import asyncio
import enum
import logging
from collections.abc import Callable

from pydantic import BaseModel

from musclekitty.config import settings
from musclekitty.models import SessionState
from musclekitty.session_store import SessionStore

logger = logging.getLogger(__name__)

Navigate = Callable[[str], None]


class GuardRoutes(BaseModel):
    """Segment names and redirect targets understood by the guard."""

    auth_segments: frozenset[str] = frozenset({"(auth)", "login", "signup"})
    onboarding_segment: str = "onboarding"
    main_segment: str = "(tabs)"

    sign_in_route: str = "/login"
    onboarding_route: str = "/onboarding"
    main_route: str = "/(tabs)"


DEFAULT_ROUTES = GuardRoutes()


class GuardState(enum.Enum):
    LOADING = "loading"
    UNAUTHENTICATED = "unauthenticated"
    ONBOARDING_LOCKED = "onboarding_locked"
    AUTHENTICATED = "authenticated"


def classify(state: SessionState) -> GuardState:
    """Map a session snapshot onto the guard's four states."""
    if state.loading:
        return GuardState.LOADING
    if state.user is None:
        return GuardState.UNAUTHENTICATED
    if state.is_first_login:
        return GuardState.ONBOARDING_LOCKED
    return GuardState.AUTHENTICATED


def segment_of(route: str) -> str:
    """Return the top-level segment of a route, e.g. ``/(tabs)/shop`` -> ``(tabs)``."""
    parts = [p for p in route.split("/") if p]
    return parts[0] if parts else ""


def decide(
    state: SessionState,
    current_segment: str,
    routes: GuardRoutes = DEFAULT_ROUTES,
) -> str | None:
    """Return the route to redirect to, or None to stay.

    Args:
        state: Current session snapshot.
        current_segment: Top-level segment the shell is showing.
        routes: Segment names and redirect targets.

    Returns:
        Target route, or None when no redirect is needed (always None
        while loading).
    """
    if state.loading:
        return None

    if state.user is not None and state.is_first_login:
        if current_segment != routes.onboarding_segment:
            return routes.onboarding_route
        return None

    in_auth = current_segment in routes.auth_segments

    if state.user is None:
        if not in_auth:
            return routes.sign_in_route
        return None

    if in_auth:
        return routes.main_route
    return None


class NavigationGuard:
    """``decide`` bound to a live session store."""

    def __init__(self, store: SessionStore, routes: GuardRoutes = DEFAULT_ROUTES) -> None:
        self.store = store
        self.routes = routes

    @property
    def state(self) -> GuardState:
        return classify(self.store.state)

    def decide(self, current_segment: str) -> str | None:
        return decide(self.store.state, current_segment, self.routes)


class RedirectController:
    """Drives the shell's navigation from the guard's decisions.

    Each evaluation waits ``delay`` seconds (to let a transition splash
    render), re-checks the decision against the then-current state, and
    only then calls ``navigate``. A newer evaluation cancels a pending one.

    Args:
        guard: Guard bound to the session store to follow.
        navigate: Shell callback performing the actual navigation.
        current_segment: Segment the shell starts on.
        delay: Seconds to wait before navigating; may be zero.
    """

    def __init__(
        self,
        guard: NavigationGuard,
        navigate: Navigate,
        current_segment: str = "",
        delay: float | None = None,
    ) -> None:
        self.guard = guard
        self.current_segment = current_segment
        self.delay = settings.redirect_delay_seconds if delay is None else delay
        self._navigate = navigate
        self._pending: asyncio.Task[None] | None = None
        self._unsubscribe: Callable[[], None] | None = None

    def attach(self) -> None:
        """Start following the store and evaluate the current state."""
        if self._unsubscribe is None:
            self._unsubscribe = self.guard.store.subscribe(lambda _state: self.evaluate())
        self.evaluate()

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._cancel_pending()

    def segment_changed(self, segment: str) -> None:
        """Tell the controller the shell moved to *segment* on its own."""
        self.current_segment = segment
        self.evaluate()

    def evaluate(self) -> None:
        """Schedule a delayed redirect if the guard asks for one."""
        target = self.guard.decide(self.current_segment)
        if target is None:
            self._cancel_pending()
            return
        self._cancel_pending()
        self._pending = asyncio.get_running_loop().create_task(self._redirect_later())

    async def wait_pending(self) -> None:
        """Wait for a scheduled redirect, if any, to fire or be cancelled."""
        if self._pending is not None:
            await asyncio.wait({self._pending})

    def _cancel_pending(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    async def _redirect_later(self) -> None:
        if self.delay > 0:
            await asyncio.sleep(self.delay)
        target = self.guard.decide(self.current_segment)
        if target is None:
            return
        logger.info("Redirecting from %r to %s", self.current_segment, target)
        self.current_segment = segment_of(target)
        self._navigate(target)
