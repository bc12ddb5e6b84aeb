import webbrowser
from typing import Any, Dict, Optional

import questionary

from errors import AuthError
from spotify_api.auth import SpotifyPKCEAuth, code_from_redirect, spotify_app_setup_instructions
from spotify_api.callback_server import run_callback_server
from spotify_api.token_manager import Credentials
from utils.logger import log_info, log_success, log_warning


def _ask_client_id(redirect_uri: str) -> str:
    log_info("\n" + "=" * 72)
    log_info("SPOTIFY AUTHORIZATION")
    log_info("=" * 72)
    log_info(spotify_app_setup_instructions(redirect_uri=redirect_uri))

    client_id = questionary.text("Spotify Client ID:").ask()
    client_id = (client_id or "").strip()
    if not client_id:
        raise AuthError("No Client ID provided. Authorization cancelled.")
    return client_id


def _ask_redirect_url() -> str:
    pasted = questionary.text(
        "Paste the full URL your browser was redirected to after approving:"
    ).ask()
    pasted = (pasted or "").strip()
    if not pasted:
        raise AuthError("No redirect URL provided. Authorization cancelled.")
    return pasted


def _collect_redirect_url(config: Dict[str, Any], redirect_uri: str) -> str:
    """Wait for the browser redirect on the local callback server, falling back to manual paste."""
    try:
        url = run_callback_server(redirect_uri, timeout=float(config.get("callback_timeout", 300)))
    except OSError as e:
        log_warning(f"Could not listen for the redirect on {redirect_uri} ({e}).")
        return _ask_redirect_url()

    if url is None:
        log_warning("Timed out waiting for the browser redirect.")
        return _ask_redirect_url()
    return url


def run_auth_flow(
    config: Dict[str, Any],
    auth: SpotifyPKCEAuth,
    *,
    client_id: Optional[str] = None,
) -> Credentials:
    """Run the interactive authorization and return freshly saved credentials.

    - Resolve the Client ID (previous credentials, config, or ask)
    - Open the authorize URL in the browser
    - Collect the redirect via the local callback server (or manual paste)
    - Exchange the code for tokens, which also persists them
    """

    client_id = (client_id or str(config.get("spotify_client_id", ""))).strip()
    if not client_id:
        client_id = _ask_client_id(auth.redirect_uri)

    flow = auth.begin_oauth_flow(client_id)

    log_info(f"\nAuthorization link: {flow.auth_url}\n")
    if config.get("open_browser", True):
        try:
            opened = webbrowser.open(flow.auth_url)
        except webbrowser.Error:
            opened = False
        if not opened:
            log_warning("Failed opening the link in a browser, please open it manually.")

    redirect_url = _collect_redirect_url(config, auth.redirect_uri)
    code = code_from_redirect(redirect_url, expected_state=flow.state)

    credentials = auth.exchange_code_for_token(
        client_id=client_id,
        code=code,
        code_verifier=flow.pkce_pair.code_verifier,
    )
    log_success("Successfully authorized!")
    return credentials
