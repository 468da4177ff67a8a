"""Facebook Page / Instagram connection through Meta's OAuth authorization-code flow."""

from __future__ import annotations

import hmac
import json
import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Optional
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

from cryptography.fernet import Fernet, InvalidToken

from resellio.core.services.kv_store import KeyValueStore, scoped_key
from resellio.core.services.meta_graph_service import MetaGraphService

logger = logging.getLogger(__name__)

STATE_TTL_SECONDS = 60 * 10
CONNECTION_TTL_SECONDS = 60 * 60 * 24 * 30
CALLBACK_PATH = "/api/meta/callback"

STATE_KEY = "meta_oauth_state"
CONNECTION_KEY = "meta_connection"

DEFAULT_SCOPES = [
    "pages_show_list",
    "pages_manage_posts",
    "pages_read_engagement",
    "instagram_basic",
    "instagram_content_publish",
    "business_management",
]


class MetaOAuthErrorCode(str, Enum):
    PERMISSIONS_MISSING = "permissions_missing"
    MISSING_CODE_OR_STATE = "missing_code_or_state"
    INVALID_STATE = "invalid_state"
    NOT_ADMIN_PAGE = "not_admin_page"
    OAUTH_FAILED = "oauth_failed"


class MetaOAuthError(Exception):
    """A categorised failure of the callback; only the code reaches the user."""

    def __init__(self, code: MetaOAuthErrorCode, detail: str = ""):
        super().__init__(detail or code.value)
        self.code = code


class MetaConfigError(Exception):
    """Raised when the Meta app credentials are not configured."""


@dataclass(frozen=True)
class Connection:
    page_id: str
    page_name: str
    ig_user_id: Optional[str]
    access_token: str
    granted_scopes: tuple[str, ...]
    expires_at: Optional[datetime]
    connected_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "page_id": self.page_id,
            "page_name": self.page_name,
            "ig_user_id": self.ig_user_id,
            "page_access_token": self.access_token,
            "scopes_granted": list(self.granted_scopes),
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "connected_at": self.connected_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Optional["Connection"]:
        if not data.get("page_id") or not data.get("page_name") or not data.get("page_access_token"):
            return None
        try:
            expires_at = (
                datetime.fromisoformat(data["expires_at"]) if data.get("expires_at") else None
            )
            connected_at = datetime.fromisoformat(data["connected_at"])
        except (KeyError, TypeError, ValueError):
            return None
        return cls(
            page_id=str(data["page_id"]),
            page_name=str(data["page_name"]),
            ig_user_id=data.get("ig_user_id") or None,
            access_token=str(data["page_access_token"]),
            granted_scopes=tuple(data.get("scopes_granted") or ()),
            expires_at=expires_at,
            connected_at=connected_at,
        )


@dataclass(frozen=True)
class ConnectRequest:
    authorization_url: str
    state: str


@dataclass(frozen=True)
class CallbackResult:
    connection: Connection

    @property
    def outcome(self) -> str:
        return "connected" if self.connection.ig_user_id else "connected_without_ig"


@dataclass
class ConnectionStatus:
    connected: bool
    page_id: Optional[str] = None
    page_name: Optional[str] = None
    ig_user_id: Optional[str] = None
    scopes_ok: bool = False
    token_expired: bool = False
    expires_at: Optional[datetime] = None
    notes: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "connected": self.connected,
            "facebook": {"page_id": self.page_id, "page_name": self.page_name},
            "instagram": {
                "ig_user_id": self.ig_user_id,
                "connected": bool(self.ig_user_id),
            },
            "auth": {
                "scopes_ok": self.scopes_ok,
                "token_expired": self.token_expired,
                "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            },
            "notes": list(self.notes),
        }


class ConnectionCipher:
    """Encrypt/decrypt persisted connections (they carry the Page access token)."""

    def __init__(self, encryption_key: str):
        self.fernet = Fernet(encryption_key)

    def encrypt(self, connection: Connection) -> str:
        payload = json.dumps(connection.to_dict())
        return self.fernet.encrypt(payload.encode("utf-8")).decode("utf-8")

    def decrypt(self, value: Optional[str]) -> Optional[Connection]:
        if not value:
            return None
        try:
            raw = self.fernet.decrypt(value.encode("utf-8"), ttl=CONNECTION_TTL_SECONDS)
            data = json.loads(raw.decode("utf-8"))
        except (InvalidToken, ValueError):
            # Treat invalid data as missing so callers can re-authorize
            return None
        if not isinstance(data, dict):
            return None
        return Connection.from_dict(data)


def parse_scopes(raw: str | None) -> list[str]:
    if not raw:
        return list(DEFAULT_SCOPES)
    parts = [part.strip() for part in raw.replace(",", " ").split() if part.strip()]
    if not parts:
        return list(DEFAULT_SCOPES)
    seen: set[str] = set()
    deduped: list[str] = []
    for scope in parts:
        if scope not in seen:
            seen.add(scope)
            deduped.append(scope)
    return deduped


def with_query(url: str, extra: dict[str, str]) -> str:
    parsed = urlparse(url)
    current_qs = dict(parse_qsl(parsed.query, keep_blank_values=True))
    current_qs.update(extra)
    new_query = urlencode(current_qs, doseq=True)
    return urlunparse(parsed._replace(query=new_query))


def resolve_redirect_uri(configured: Optional[str], origin: str) -> str:
    """Use the configured redirect URI, pointing a bare origin at the callback path."""
    fallback = f"{origin.rstrip('/')}{CALLBACK_PATH}"
    if not configured:
        return fallback
    parsed = urlparse(configured)
    if not parsed.scheme or not parsed.netloc:
        return fallback
    if parsed.path in ("", "/"):
        parsed = parsed._replace(path=CALLBACK_PATH)
    return urlunparse(parsed)


class MetaOAuthService:
    """Drive connect → callback → status → disconnect for one client session."""

    def __init__(
        self,
        *,
        store: KeyValueStore,
        graph: MetaGraphService,
        cipher: ConnectionCipher,
        app_id: str,
        app_secret: str,
        dialog_url: str,
        redirect_uri: Optional[str] = None,
        scopes: Optional[list[str]] = None,
        key_prefix: str = "resellio",
    ):
        self.store = store
        self.graph = graph
        self.cipher = cipher
        self.app_id = app_id
        self.app_secret = app_secret
        self.dialog_url = dialog_url
        self.redirect_uri = redirect_uri
        self.scopes = scopes or list(DEFAULT_SCOPES)
        self.key_prefix = key_prefix

    def _key(self, session_id: str, name: str) -> str:
        return scoped_key(self.key_prefix, session_id, name)

    def _require_config(self) -> None:
        missing = []
        if not self.app_id:
            missing.append("META_APP_ID")
        if not self.app_secret:
            missing.append("META_APP_SECRET")
        if missing:
            raise MetaConfigError(f"Missing Meta OAuth settings: {', '.join(missing)}")

    async def begin_connect(self, session_id: str, origin: str) -> ConnectRequest:
        self._require_config()
        state = secrets.token_urlsafe(32)
        await self.store.set(self._key(session_id, STATE_KEY), state, ttl=STATE_TTL_SECONDS)

        params = {
            "client_id": self.app_id,
            "redirect_uri": resolve_redirect_uri(self.redirect_uri, origin),
            "state": state,
            "response_type": "code",
            "scope": ",".join(self.scopes),
        }
        logger.info("Issued Meta OAuth state for session %s", session_id[:8])
        return ConnectRequest(authorization_url=with_query(self.dialog_url, params), state=state)

    async def _consume_state(self, session_id: str, state: str) -> bool:
        key = self._key(session_id, STATE_KEY)
        issued = await self.store.get(key)
        if not issued or not hmac.compare_digest(issued, state):
            return False
        await self.store.delete(key)
        return True

    async def handle_callback(
        self,
        session_id: str,
        origin: str,
        *,
        code: Optional[str],
        state: Optional[str],
        error: Optional[str] = None,
    ) -> CallbackResult:
        """Validate the callback, run the token/page exchange and persist the Connection.

        Raises:
            MetaOAuthError: with the category the redirect should carry.
        """
        if error:
            raise MetaOAuthError(MetaOAuthErrorCode.PERMISSIONS_MISSING, error)
        if not code or not state:
            raise MetaOAuthError(MetaOAuthErrorCode.MISSING_CODE_OR_STATE)
        if not await self._consume_state(session_id, state):
            logger.warning("Rejected Meta OAuth callback with stale or unknown state")
            raise MetaOAuthError(MetaOAuthErrorCode.INVALID_STATE)

        try:
            self._require_config()
            short_token = await self.graph.exchange_code(
                code=code,
                client_id=self.app_id,
                client_secret=self.app_secret,
                redirect_uri=resolve_redirect_uri(self.redirect_uri, origin),
            )
            long_token = await self.graph.exchange_long_lived(
                short_token=short_token.access_token,
                client_id=self.app_id,
                client_secret=self.app_secret,
            )
            pages = await self.graph.list_pages(long_token.access_token)
            if not pages:
                raise MetaOAuthError(MetaOAuthErrorCode.NOT_ADMIN_PAGE)

            selected = next(
                (page for page in pages if page.instagram_business_account_id),
                pages[0],
            )
            granted = await self.graph.granted_permissions(long_token.access_token)
        except MetaOAuthError:
            raise
        except Exception as exc:
            logger.error("Meta OAuth exchange failed: %s", exc)
            raise MetaOAuthError(MetaOAuthErrorCode.OAUTH_FAILED, str(exc)) from exc

        now = datetime.now(timezone.utc)
        connection = Connection(
            page_id=selected.id,
            page_name=selected.name,
            ig_user_id=selected.instagram_business_account_id,
            access_token=selected.access_token,
            granted_scopes=tuple(granted),
            expires_at=(
                now + timedelta(seconds=long_token.expires_in) if long_token.expires_in else None
            ),
            connected_at=now,
        )
        await self.store.set(
            self._key(session_id, CONNECTION_KEY),
            self.cipher.encrypt(connection),
            ttl=CONNECTION_TTL_SECONDS,
        )
        logger.info(
            "Meta connection stored: page_id=%s ig_linked=%s scopes=%s",
            connection.page_id,
            bool(connection.ig_user_id),
            len(connection.granted_scopes),
        )
        return CallbackResult(connection=connection)

    async def get_connection(self, session_id: str) -> Optional[Connection]:
        raw = await self.store.get(self._key(session_id, CONNECTION_KEY))
        return self.cipher.decrypt(raw)

    async def status(self, session_id: str) -> ConnectionStatus:
        connection = await self.get_connection(session_id)
        if connection is None:
            return ConnectionStatus(connected=False, notes=["facebook_not_connected"])

        now = datetime.now(timezone.utc)
        token_expired = bool(connection.expires_at and connection.expires_at <= now)
        missing_scopes = [scope for scope in self.scopes if scope not in connection.granted_scopes]

        notes: list[str] = []
        if not connection.ig_user_id:
            notes.append("instagram_not_linked")
        if missing_scopes:
            notes.append("scopes_missing")
        if token_expired:
            notes.append("token_expired")

        return ConnectionStatus(
            connected=True,
            page_id=connection.page_id,
            page_name=connection.page_name,
            ig_user_id=connection.ig_user_id,
            scopes_ok=not missing_scopes,
            token_expired=token_expired,
            expires_at=connection.expires_at,
            notes=notes,
        )

    async def disconnect(self, session_id: str) -> None:
        await self.store.delete(self._key(session_id, CONNECTION_KEY))
        logger.info("Meta connection removed for session %s", session_id[:8])
