"""Access-token lifecycle for Microsoft Graph.

``TokenProvider`` owns the current access/refresh token pair. Every tool goes
through ``ensure_authenticated``, which returns a usable bearer token or
raises ``AuthenticationRequired``. An expired token gets exactly one refresh
attempt; if that fails the stored tokens are discarded and the user has to
sign in again through the device-code flow (``authenticate`` tool or the
``outlook-mcp-auth`` command).
"""

import json
import logging
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, NamedTuple

import msal

from . import config
from .exceptions import AuthenticationRequired, TokenAcquisitionError

logger = logging.getLogger(__name__)

# Takes a refresh token, returns an MSAL-style token result dict
Refresher = Callable[[str], dict[str, Any]]


class AccessToken(NamedTuple):
    token: str
    expires_at: datetime

    def is_expired(self, now: datetime, margin: timedelta = timedelta(0)) -> bool:
        return self.expires_at - margin <= now


class StoredTokens(NamedTuple):
    access: AccessToken
    refresh_token: str | None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def build_app() -> msal.PublicClientApplication:
    client_id = config.get_client_id()
    if not client_id:
        raise TokenAcquisitionError(
            "OUTLOOK_MCP_CLIENT_ID environment variable is required"
        )
    authority = f"https://login.microsoftonline.com/{config.get_tenant_id()}"
    return msal.PublicClientApplication(client_id, authority=authority)


def _msal_refresh(refresh_token: str) -> dict[str, Any]:
    app = build_app()
    return app.acquire_token_by_refresh_token(refresh_token, scopes=config.SCOPES)


def tokens_from_result(
    result: dict[str, Any],
    now: datetime,
    previous_refresh_token: str | None = None,
) -> StoredTokens:
    """Build a token record from an MSAL token result.

    The identity platform does not always rotate the refresh token, so the
    previous one is kept when the result carries none.
    """
    expires_in = int(result.get("expires_in", 3600))
    return StoredTokens(
        access=AccessToken(
            token=result["access_token"],
            expires_at=now + timedelta(seconds=expires_in),
        ),
        refresh_token=result.get("refresh_token") or previous_refresh_token,
    )


class TokenProvider:
    """Holds the token pair and hands out currently valid access tokens.

    Tokens are persisted to a JSON file and read lazily on first use.
    Refreshes are serialised with a lock; a caller that waited on the lock
    re-checks the stored token before refreshing again.
    """

    def __init__(
        self,
        token_path: Path | None = None,
        refresher: Refresher | None = None,
        clock: Callable[[], datetime] = _utcnow,
        refresh_margin: timedelta = timedelta(
            seconds=config.TOKEN_REFRESH_MARGIN_SECONDS
        ),
    ) -> None:
        self._token_path = token_path
        self._refresher = refresher or _msal_refresh
        self._clock = clock
        self._refresh_margin = refresh_margin
        self._tokens: StoredTokens | None = None
        self._loaded = False
        self._lock = threading.Lock()

    @property
    def token_path(self) -> Path | None:
        return self._token_path

    # -- persistence ---------------------------------------------------------

    def _load(self) -> StoredTokens | None:
        if self._token_path is None:
            return None
        try:
            data = json.loads(self._token_path.read_text())
            return StoredTokens(
                access=AccessToken(
                    token=data["access_token"],
                    expires_at=datetime.fromisoformat(data["expires_at"]),
                ),
                refresh_token=data.get("refresh_token"),
            )
        except FileNotFoundError:
            return None
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring unreadable token file {self._token_path}: {e}")
            return None

    def _save(self) -> None:
        if self._token_path is None or self._tokens is None:
            return
        payload = {
            "access_token": self._tokens.access.token,
            "refresh_token": self._tokens.refresh_token,
            "expires_at": self._tokens.access.expires_at.isoformat(),
        }
        try:
            self._token_path.parent.mkdir(parents=True, exist_ok=True)
            self._token_path.write_text(json.dumps(payload, indent=2))
            self._token_path.chmod(0o600)
        except OSError as e:
            logger.warning(f"Could not persist tokens to {self._token_path}: {e}")

    def _current(self) -> StoredTokens | None:
        if not self._loaded:
            self._tokens = self._load()
            self._loaded = True
        return self._tokens

    # -- public API ----------------------------------------------------------

    def store(self, tokens: StoredTokens) -> None:
        self._tokens = tokens
        self._loaded = True
        self._save()

    def store_result(self, result: dict[str, Any]) -> AccessToken:
        """Store the tokens from a successful MSAL token result."""
        tokens = tokens_from_result(result, self._clock())
        self.store(tokens)
        return tokens.access

    def clear(self) -> None:
        self._tokens = None
        self._loaded = True
        if self._token_path is not None:
            try:
                self._token_path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"Could not remove token file {self._token_path}: {e}")

    def has_tokens(self) -> bool:
        return self._current() is not None

    def current_token(self) -> AccessToken | None:
        tokens = self._current()
        return tokens.access if tokens else None

    def is_expired(self, token: AccessToken) -> bool:
        return token.is_expired(self._clock(), self._refresh_margin)

    def get_valid_access_token(self) -> AccessToken:
        """Return a valid access token, refreshing it once if it has expired.

        Raises:
            AuthenticationRequired: No tokens are stored, or the refresh failed.
                A failed refresh also clears the stored tokens.
        """
        tokens = self._current()
        if tokens is None:
            raise AuthenticationRequired()
        if not self.is_expired(tokens.access):
            return tokens.access

        with self._lock:
            tokens = self._current()
            if tokens is None:
                raise AuthenticationRequired()
            if not self.is_expired(tokens.access):
                return tokens.access
            return self._refresh(tokens)

    def _refresh(self, tokens: StoredTokens) -> AccessToken:
        if not tokens.refresh_token:
            logger.info("Access token expired and no refresh token is stored")
            self.clear()
            raise AuthenticationRequired()

        logger.info("Access token expired, refreshing")
        try:
            result = self._refresher(tokens.refresh_token)
        except Exception as e:
            logger.warning(f"Token refresh failed: {e}")
            self.clear()
            raise AuthenticationRequired() from e

        if not result or "access_token" not in result:
            error = (result or {}).get("error_description") or (result or {}).get(
                "error", "no access token returned"
            )
            logger.warning(f"Token refresh rejected: {error}")
            self.clear()
            raise AuthenticationRequired()

        refreshed = tokens_from_result(result, self._clock(), tokens.refresh_token)
        self.store(refreshed)
        logger.info("Access token refreshed")
        return refreshed.access


_provider: TokenProvider | None = None
_provider_lock = threading.Lock()


def get_token_provider() -> TokenProvider:
    global _provider
    with _provider_lock:
        if _provider is None:
            _provider = TokenProvider(token_path=config.get_token_path())
        return _provider


def set_token_provider(provider: TokenProvider | None) -> None:
    global _provider
    with _provider_lock:
        _provider = provider


def ensure_authenticated(force_new: bool = False) -> str:
    """Return a bearer token for Graph calls.

    Args:
        force_new: Skip the stored token entirely. Always raises, since a new
            sign-in needs the interactive device-code flow.

    Raises:
        AuthenticationRequired: When no valid token can be produced.
    """
    if force_new:
        raise AuthenticationRequired()
    return get_token_provider().get_valid_access_token().token


# -- device-code flow ---------------------------------------------------------


def start_device_flow(app: msal.PublicClientApplication | None = None) -> dict[str, Any]:
    app = app or build_app()
    flow = app.initiate_device_flow(scopes=config.SCOPES)
    if "user_code" not in flow:
        error_message = flow.get("error_description", flow.get("error", "Unknown error"))
        raise TokenAcquisitionError(f"Failed to start device code flow: {error_message}")
    return flow


def complete_device_flow(
    flow: dict[str, Any],
    app: msal.PublicClientApplication | None = None,
    wait: bool = True,
) -> dict[str, Any]:
    """Exchange a device-code flow for tokens and store them on success.

    With ``wait=False`` the token endpoint is polled once and the raw
    ``authorization_pending`` result is returned if the user has not finished.
    """
    app = app or build_app()
    if not wait:
        flow = {**flow, "expires_at": 0}
    result = app.acquire_token_by_device_flow(flow)
    if "access_token" in result:
        get_token_provider().store_result(result)
        logger.info("Device code authentication completed")
    return result


def verification_uri(flow: dict[str, Any]) -> str:
    return flow.get(
        "verification_uri",
        flow.get("verification_url", "https://microsoft.com/devicelogin"),
    )
