"""Identity provider: resolves a remembered auth session to a UserProfile.

The hosted auth service is Supabase GoTrue. ``get_current_user`` performs
``GET {supabase_url}/auth/v1/user`` with the stored access token and maps
the returned user record onto ``UserProfile``.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

import httpx

from musclekitty.config import settings
from musclekitty.models import UserProfile

logger = logging.getLogger(__name__)

TokenLoader = Callable[[], Awaitable[str | None]]


class IdentityProvider(Protocol):
    """Anything able to tell who the remembered session belongs to."""

    async def get_current_user(self) -> UserProfile | None: ...


def profile_from_auth_user(data: dict[str, Any]) -> UserProfile:
    """Map a GoTrue user record onto a UserProfile.

    The display name comes from ``full_name``, then ``name`` in the user
    metadata, then the local part of the e-mail address.

    Raises:
        ValueError: If the record has no ``id``.
    """
    user_id = data.get("id")
    if not user_id:
        raise ValueError("Auth user record has no id.")
    email = data.get("email") or ""
    metadata = data.get("user_metadata") or {}
    full_name = (
        metadata.get("full_name")
        or metadata.get("name")
        or (email.split("@")[0] if email else None)
    )
    return UserProfile(
        id=str(user_id),
        email=email,
        full_name=full_name,
        avatar_url=metadata.get("avatar_url"),
    )


class SupabaseIdentityProvider:
    """Identity provider backed by the Supabase auth REST endpoint.

    Args:
        token_loader: Coroutine function returning the current access
            token, or None when no session is remembered.
        client: Optional pre-built ``httpx.AsyncClient``. When omitted a
            client is created per call using ``settings``.
    """

    def __init__(
        self,
        token_loader: TokenLoader,
        client: httpx.AsyncClient | None = None,
        base_url: str | None = None,
        api_key: str | None = None,
    ) -> None:
        self._token_loader = token_loader
        self._client = client
        self._base_url = (base_url or settings.supabase_url).rstrip("/")
        self._api_key = api_key if api_key is not None else settings.supabase_anon_key

    async def _fetch(self, client: httpx.AsyncClient, token: str) -> httpx.Response:
        return await client.get(
            f"{self._base_url}/auth/v1/user",
            headers={"apikey": self._api_key, "Authorization": f"Bearer {token}"},
        )

    async def get_current_user(self) -> UserProfile | None:
        """Return the profile of the remembered session, or None.

        An expired or revoked session (401/403) means "no user". Any other
        HTTP or transport failure is raised for the caller to handle.
        """
        token = await self._token_loader()
        if not token:
            return None

        if self._client is not None:
            resp = await self._fetch(self._client, token)
        else:
            async with httpx.AsyncClient(timeout=settings.identity_timeout_seconds) as client:
                resp = await self._fetch(client, token)

        if resp.status_code in (401, 403):
            logger.info("Remembered session rejected by auth service (%d).", resp.status_code)
            return None
        resp.raise_for_status()
        return profile_from_auth_user(resp.json())
