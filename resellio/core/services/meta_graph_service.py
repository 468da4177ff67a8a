"""Meta Graph API client used by the Facebook Page / Instagram connect flow."""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from httpx import AsyncClient, RequestError

logger = logging.getLogger(__name__)


class MetaGraphError(Exception):
    """Raised when a Graph API call fails or returns an unusable payload."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class AccessToken:
    access_token: str
    token_type: str
    expires_in: Optional[int]


@dataclass(frozen=True)
class ManagedPage:
    id: str
    name: str
    access_token: str
    instagram_business_account_id: Optional[str]


class MetaGraphService:
    """
    Thin wrapper over the Graph API endpoints needed to connect a Page.

    Each method performs exactly one request; there are no retries.
    """

    def __init__(
        self,
        api_base_url: str = "https://graph.facebook.com/v20.0",
        timeout: float = 20.0,
        client: Optional[AsyncClient] = None,
    ):
        """
        Initialize Meta Graph service.

        Args:
            api_base_url: Versioned base URL for the Graph API
            timeout: Request timeout in seconds
            client: Optional pre-built HTTP client (tests inject a mock transport)
        """
        self.api_base_url = api_base_url.rstrip("/")
        self.timeout = timeout
        self._client: Optional[AsyncClient] = client

    async def get_client(self) -> AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
            logger.debug("Meta Graph client closed")

    async def _get(self, path: str, params: dict[str, str]) -> dict[str, Any]:
        url = f"{self.api_base_url}/{path.lstrip('/')}"
        try:
            client = await self.get_client()
            response = await client.get(url, params=params)
        except RequestError as e:
            logger.error(f"Meta Graph request error: path={path}, error={e}")
            raise MetaGraphError(f"Request error: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = None

        if response.status_code >= 400 or not isinstance(data, dict):
            error_msg = None
            if isinstance(data, dict):
                error_msg = (data.get("error") or {}).get("message")
            error_msg = error_msg or f"Meta request failed ({response.status_code})"
            logger.warning(
                f"Meta Graph API error: path={path}, status={response.status_code}, error={error_msg}"
            )
            raise MetaGraphError(error_msg, status_code=response.status_code)

        return data

    @staticmethod
    def _access_token(data: dict[str, Any]) -> AccessToken:
        token = data.get("access_token")
        if not token:
            raise MetaGraphError("No access token returned")
        expires_in = data.get("expires_in")
        return AccessToken(
            access_token=token,
            token_type=data.get("token_type") or "bearer",
            expires_in=int(expires_in) if expires_in else None,
        )

    async def exchange_code(
        self, *, code: str, client_id: str, client_secret: str, redirect_uri: str
    ) -> AccessToken:
        """Exchange an authorization code for a short-lived user token."""
        data = await self._get(
            "oauth/access_token",
            {
                "client_id": client_id,
                "client_secret": client_secret,
                "redirect_uri": redirect_uri,
                "code": code,
            },
        )
        return self._access_token(data)

    async def exchange_long_lived(
        self, *, short_token: str, client_id: str, client_secret: str
    ) -> AccessToken:
        """Trade a short-lived user token for a long-lived one."""
        data = await self._get(
            "oauth/access_token",
            {
                "grant_type": "fb_exchange_token",
                "client_id": client_id,
                "client_secret": client_secret,
                "fb_exchange_token": short_token,
            },
        )
        return self._access_token(data)

    async def list_pages(self, access_token: str) -> list[ManagedPage]:
        """List Pages the user manages, with their linked Instagram business account."""
        data = await self._get(
            "me/accounts",
            {
                "fields": "id,name,access_token,instagram_business_account",
                "access_token": access_token,
            },
        )
        pages: list[ManagedPage] = []
        for item in data.get("data") or []:
            ig_account = item.get("instagram_business_account") or {}
            pages.append(
                ManagedPage(
                    id=str(item["id"]),
                    name=item.get("name") or "",
                    access_token=item.get("access_token") or "",
                    instagram_business_account_id=(
                        str(ig_account["id"]) if ig_account.get("id") else None
                    ),
                )
            )
        return pages

    async def granted_permissions(self, access_token: str) -> list[str]:
        """Return the permissions the user actually granted (declined ones dropped)."""
        data = await self._get("me/permissions", {"access_token": access_token})
        return [
            entry["permission"]
            for entry in data.get("data") or []
            if entry.get("status") == "granted" and entry.get("permission")
        ]
