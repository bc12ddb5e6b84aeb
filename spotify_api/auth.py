import base64
import hashlib
import json
import logging
import secrets
import urllib.parse
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, Optional

import httpx

from errors import AuthError
from .token_manager import Credentials, TokenManager

logger = logging.getLogger(__name__)

SPOTIFY_ACCOUNTS_BASE_URL = "https://accounts.spotify.com"
SPOTIFY_TOKEN_URL = f"{SPOTIFY_ACCOUNTS_BASE_URL}/api/token"


def _base64url_no_pad(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("utf-8").rstrip("=")


def code_challenge_from_verifier(verifier: str) -> str:
    """Compute PKCE S256 code_challenge from code_verifier."""

    digest = hashlib.sha256((verifier or "").encode("utf-8")).digest()
    return _base64url_no_pad(digest)


def spotify_app_setup_instructions(*, redirect_uri: str) -> str:
    """Return user-facing setup instructions for creating a Spotify Developer app."""

    return (
        "Spotify app setup:\n"
        "1) Go to https://developer.spotify.com/dashboard\n"
        "2) Create an app (or select an existing app) with the Web API enabled\n"
        f"3) Add this Redirect URI in the app settings: {redirect_uri}\n"
        "4) Copy the app's Client ID and paste it below\n\n"
        "Notes:\n"
        "- Authorization Code + PKCE is used, no client secret is required.\n"
        "- The Redirect URI must match *exactly* what is configured in the dashboard.\n"
    )


def extract_code_from_redirect_url(redirect_url: str) -> Dict[str, str]:
    """Parse a redirect URL and return {"code": ..., "state": ...} (missing keys omitted)."""

    parsed = urllib.parse.urlparse(str(redirect_url or "").strip())
    qs = urllib.parse.parse_qs(parsed.query)
    out: Dict[str, str] = {}
    if qs.get("code"):
        out["code"] = str(qs["code"][0])
    if qs.get("state"):
        out["state"] = str(qs["state"][0])
    if qs.get("error"):
        out["error"] = str(qs["error"][0])
    return out


def code_from_redirect(redirect_url: str, *, expected_state: str) -> str:
    """Validate a redirect URL against the flow's state and return the authorization code."""

    parsed = extract_code_from_redirect_url(redirect_url)
    if parsed.get("error"):
        raise AuthError(f"Spotify returned an error: {parsed['error']}")
    if parsed.get("state") != expected_state:
        raise AuthError("OAuth state mismatch. Paste the redirect URL from the most recent login attempt.")
    code = parsed.get("code", "")
    if not code:
        raise AuthError("Could not find an authorization code in the redirect URL.")
    return code


@dataclass(frozen=True)
class PKCEPair:
    code_verifier: str
    code_challenge: str


@dataclass(frozen=True)
class OAuthFlow:
    auth_url: str
    pkce_pair: PKCEPair
    state: str


class SpotifyPKCEAuth:
    """Spotify OAuth (Authorization Code + PKCE) helper."""

    def __init__(
        self,
        config: Dict[str, Any],
        token_manager: TokenManager,
        *,
        http_client: Optional[httpx.Client] = None,
    ):
        self.config = config or {}
        self.token_manager = token_manager
        self.http_client = http_client

    @property
    def redirect_uri(self) -> str:
        return str(self.config.get("spotify_redirect_uri", "")).strip()

    @property
    def scopes(self) -> list:
        return [str(s).strip() for s in self.config.get("spotify_scopes", []) if str(s).strip()]

    @staticmethod
    def generate_pkce_pair() -> PKCEPair:
        """Generate a PKCE verifier + challenge."""

        # RFC 7636: verifier length 43-128 chars, characters from ALPHA / DIGIT / "-" / "." / "_" / "~"
        verifier = secrets.token_urlsafe(64).rstrip("=")
        verifier = verifier[:128]
        if len(verifier) < 43:
            verifier = (verifier + secrets.token_urlsafe(64)).rstrip("=")[:43]

        challenge = code_challenge_from_verifier(verifier)
        return PKCEPair(code_verifier=verifier, code_challenge=challenge)

    def get_authorize_url(
        self,
        *,
        client_id: str,
        code_challenge: str,
        state: Optional[str] = None,
        scopes: Optional[Iterable[str]] = None,
        show_dialog: bool = False,
    ) -> str:
        if not self.redirect_uri:
            raise AuthError("Missing spotify_redirect_uri in config.json")

        scope_list = list(scopes if scopes is not None else self.scopes)
        scope_str = " ".join([str(s).strip() for s in scope_list if str(s).strip()])

        params: Dict[str, str] = {
            "client_id": client_id,
            "response_type": "code",
            "redirect_uri": self.redirect_uri,
            "code_challenge_method": "S256",
            "code_challenge": str(code_challenge),
            "show_dialog": "true" if show_dialog else "false",
        }
        if scope_str:
            params["scope"] = scope_str
        if state:
            params["state"] = str(state)

        return f"{SPOTIFY_ACCOUNTS_BASE_URL}/authorize?{urllib.parse.urlencode(params)}"

    def begin_oauth_flow(self, client_id: str, *, show_dialog: bool = False) -> OAuthFlow:
        """Prepare the authorize URL, PKCE pair and state for one browser round-trip."""

        pkce = self.generate_pkce_pair()
        state = secrets.token_urlsafe(16).rstrip("=")
        url = self.get_authorize_url(
            client_id=client_id,
            code_challenge=pkce.code_challenge,
            state=state,
            show_dialog=show_dialog,
        )
        return OAuthFlow(auth_url=url, pkce_pair=pkce, state=state)

    def exchange_code_for_token(self, *, client_id: str, code: str, code_verifier: str) -> Credentials:
        """Trade the authorization code for tokens and persist them."""

        payload = self._post_form(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.redirect_uri,
                "client_id": client_id,
                "code_verifier": code_verifier,
            },
        )
        credentials = Credentials.from_spotify_token_response(client_id, payload)
        if not credentials.access_token:
            raise AuthError(f"Spotify token exchange failed: {payload}")

        self.token_manager.save(credentials)
        logger.debug("Stored new credentials for client %s", client_id)
        return credentials

    def refresh_access_token(self, credentials: Credentials) -> Credentials:
        if not credentials.refresh_token:
            raise AuthError("Spotify token expired and no refresh_token is available.")

        payload = self._post_form(
            {
                "grant_type": "refresh_token",
                "refresh_token": credentials.refresh_token,
                "client_id": credentials.client_id,
            },
        )

        # Spotify may omit refresh_token on refresh; keep existing.
        refreshed = Credentials.from_spotify_token_response(
            credentials.client_id,
            payload,
            previous_refresh_token=credentials.refresh_token,
        )
        if refreshed.scope is None:
            refreshed = replace(refreshed, scope=credentials.scope)

        if not refreshed.access_token:
            raise AuthError(f"Spotify token refresh failed: {payload}")

        self.token_manager.save(refreshed)
        logger.debug("Refreshed access token, expires at %s", refreshed.expires_at)
        return refreshed

    def _post_form(self, form: Dict[str, Any]) -> Dict[str, Any]:
        data = {k: str(v) for k, v in (form or {}).items() if v is not None}
        headers = {"Content-Type": "application/x-www-form-urlencoded"}

        try:
            if self.http_client is not None:
                resp = self.http_client.post(SPOTIFY_TOKEN_URL, data=data, headers=headers)
            else:
                timeout = float(self.config.get("http_timeout", 30))
                with httpx.Client(timeout=timeout, follow_redirects=False) as client:
                    resp = client.post(SPOTIFY_TOKEN_URL, data=data, headers=headers)
        except httpx.HTTPError as e:
            raise AuthError(f"Spotify token request failed: {e}") from e

        if resp.status_code >= 400:
            raise AuthError(
                f"Spotify token request failed (HTTP {resp.status_code}): {resp.text}",
                status=resp.status_code,
            )

        try:
            payload = resp.json()
        except json.JSONDecodeError as e:
            raise AuthError(f"Spotify token response was not JSON: {resp.text}") from e

        if not isinstance(payload, dict):
            raise AuthError(f"Spotify token response was not an object: {payload}")

        return payload
