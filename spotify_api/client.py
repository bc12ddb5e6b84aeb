import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from errors import ApiError, AuthError
from .auth import SpotifyPKCEAuth
from .token_manager import Credentials, TokenManager

logger = logging.getLogger(__name__)

SPOTIFY_API_BASE_URL = "https://api.spotify.com/v1"

# Without episode here Spotify reports "item": null while a podcast plays.
PLAYING_TYPES = {"additional_types": "track,episode"}


def _error_message(resp: httpx.Response) -> str:
    """Pull Spotify's {"error": {"message": ...}} out of an error body, falling back to the raw text."""
    try:
        payload = resp.json()
    except (json.JSONDecodeError, ValueError):
        return resp.text or resp.reason_phrase
    err = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(err, dict) and err.get("message"):
        return str(err["message"])
    if isinstance(err, str):
        return str(payload.get("error_description") or err)
    return resp.text or resp.reason_phrase


class SpotifyClient:
    """Thin Spotify Web API client.

    This client expects an OAuth access token (Authorization Code w/ PKCE).

    Every request is exactly one HTTP call. A 401 triggers one token refresh
    and one retry of that call; the refresh can happen at most once per
    client (i.e. per invocation), and a fresh authorization counts as that
    one token acquisition.
    """

    def __init__(
        self,
        config: Dict[str, Any],
        token_manager: TokenManager,
        auth: SpotifyPKCEAuth,
        *,
        http_client: Optional[httpx.Client] = None,
    ):
        self.config = config or {}
        self.token_manager = token_manager
        self.auth = auth
        self._http = http_client
        self._owns_http = http_client is None
        self._credentials: Optional[Credentials] = None
        self._refresh_spent = False

    def __enter__(self) -> "SpotifyClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        if self._http is not None and self._owns_http:
            self._http.close()
            self._http = None

    # -----------------
    # Token management
    # -----------------

    @property
    def refresh_spent(self) -> bool:
        return self._refresh_spent

    def set_credentials(self, credentials: Credentials, *, fresh: bool = False) -> None:
        """Use these credentials for subsequent calls.

        fresh=True marks credentials that came straight from the token
        endpoint; they are not refreshed again during this invocation.
        """
        self._credentials = credentials
        if fresh:
            self._refresh_spent = True

    def refresh(self) -> Credentials:
        """Spend this invocation's single token refresh."""
        if self._credentials is None:
            raise AuthError("No Spotify credentials available. Run `sc --authorize` first.")
        if self._refresh_spent:
            raise AuthError("Spotify token was already refreshed once during this run; run `sc --authorize`.")

        self._refresh_spent = True
        logger.debug("Refreshing Spotify access token")
        self._credentials = self.auth.refresh_access_token(self._credentials)
        return self._credentials

    def get_token(self) -> Credentials:
        if self._credentials is None:
            self._credentials = self.token_manager.load()

        if self._credentials is None:
            raise AuthError("No Spotify credentials available. Run `sc --authorize` first.")

        if not self.token_manager.is_expired(self._credentials):
            return self._credentials

        return self.refresh()

    # -----------------
    # HTTP helpers
    # -----------------

    def _client(self) -> httpx.Client:
        if self._http is None:
            self._http = httpx.Client(timeout=float(self.config.get("http_timeout", 30)))
        return self._http

    def _send(
        self,
        method: str,
        path: str,
        token: Credentials,
        *,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        url = f"{SPOTIFY_API_BASE_URL}{path}"
        query = {k: str(v) for k, v in (params or {}).items() if v is not None}
        headers = {
            "Authorization": f"{token.token_type} {token.access_token}",
            "Accept": "application/json",
        }
        logger.debug("%s %s %s", method.upper(), path, query or "")
        try:
            return self._client().request(method.upper(), url, params=query, json=json_body, headers=headers)
        except httpx.HTTPError as e:
            raise ApiError(None, str(e) or e.__class__.__name__) from e

    def request_json(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Make a Spotify Web API request and return parsed JSON ({} for empty bodies)."""

        token = self.get_token()
        resp = self._send(method, path, token, params=params, json_body=json_body)

        # 401: token invalid/expired server-side; refresh once and retry once.
        if resp.status_code == 401 and not self._refresh_spent and token.refresh_token:
            token = self.refresh()
            resp = self._send(method, path, token, params=params, json_body=json_body)

        if resp.status_code >= 400:
            raise ApiError(resp.status_code, _error_message(resp))

        body = resp.text
        if resp.status_code == 204 or not body.strip():
            return {}

        try:
            payload = resp.json()
        except (json.JSONDecodeError, ValueError) as e:
            raise ApiError(resp.status_code, f"response was not JSON: {body}") from e

        return payload if isinstance(payload, dict) else {"items": payload}

    def _paginate(
        self,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        page_key: str = "items",
        max_items: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Fetch all pages for an endpoint that returns {items, total, limit, offset}."""

        out: List[Dict[str, Any]] = []
        limit = int((params or {}).get("limit") or 50)
        offset = int((params or {}).get("offset") or 0)

        while True:
            page = self.request_json("GET", path, params={**(params or {}), "limit": limit, "offset": offset})
            items = page.get(page_key) or []
            if isinstance(items, list):
                out.extend([x for x in items if isinstance(x, dict)])

            if max_items is not None and len(out) >= int(max_items):
                return out[: int(max_items)]

            total = page.get("total")
            if total is None:
                break

            got = len(items) if isinstance(items, list) else 0
            offset += got
            if got <= 0 or offset >= int(total):
                break

        return out

    # -----------------
    # Player endpoints
    # -----------------

    def playback_state(self) -> Optional[Dict[str, Any]]:
        """Current playback context, or None when no device is active (204)."""
        return self.request_json("GET", "/me/player", params=PLAYING_TYPES) or None

    def currently_playing(self) -> Optional[Dict[str, Any]]:
        return self.request_json("GET", "/me/player/currently-playing", params=PLAYING_TYPES) or None

    def pause(self, *, device_id: Optional[str] = None) -> None:
        self.request_json("PUT", "/me/player/pause", params={"device_id": device_id})

    def resume(self, *, device_id: Optional[str] = None) -> None:
        self.request_json("PUT", "/me/player/play", params={"device_id": device_id})

    def start_playback(
        self,
        *,
        uris: Optional[List[str]] = None,
        context_uri: Optional[str] = None,
        device_id: Optional[str] = None,
    ) -> None:
        body: Dict[str, Any] = {}
        if uris:
            body["uris"] = list(uris)
        if context_uri:
            body["context_uri"] = context_uri
        self.request_json("PUT", "/me/player/play", params={"device_id": device_id}, json_body=body)

    def next_track(self) -> None:
        self.request_json("POST", "/me/player/next")

    def previous_track(self) -> None:
        self.request_json("POST", "/me/player/previous")

    def set_shuffle(self, state: bool) -> None:
        self.request_json("PUT", "/me/player/shuffle", params={"state": "true" if state else "false"})

    def set_repeat(self, state: str) -> None:
        """state is one of track, context, off."""
        self.request_json("PUT", "/me/player/repeat", params={"state": state})

    def set_volume(self, volume_percent: int) -> None:
        self.request_json("PUT", "/me/player/volume", params={"volume_percent": int(volume_percent)})

    def devices(self) -> List[Dict[str, Any]]:
        return [d for d in (self.request_json("GET", "/me/player/devices").get("devices") or []) if isinstance(d, dict)]

    def transfer_playback(self, device_id: str) -> None:
        self.request_json("PUT", "/me/player", json_body={"device_ids": [device_id]})

    # -----------------
    # Catalog / library endpoints
    # -----------------

    def search(self, query: str, search_type: str, *, limit: int = 10) -> Dict[str, Any]:
        return self.request_json("GET", "/search", params={"q": query, "type": search_type, "limit": int(limit)})

    def current_user_playlists(self, *, max_items: Optional[int] = None) -> List[Dict[str, Any]]:
        return self._paginate("/me/playlists", params={"limit": 50}, max_items=max_items)

    def current_user_saved_albums(self, *, max_items: Optional[int] = None) -> List[Dict[str, Any]]:
        # Endpoint shape: {items: [{added_at, album: {...}}], total, ...}
        return self._paginate("/me/albums", params={"limit": 50}, max_items=max_items)
