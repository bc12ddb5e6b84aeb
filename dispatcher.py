from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar

import httpx

import commands as cmd
from config import credentials_path
from errors import AuthError
from menus.auth_menu import run_auth_flow
from menus.presenter import format_device, format_now_playing, format_playable, render_list
from menus.selection_menu import select_item
from spotify_api.auth import SpotifyPKCEAuth
from spotify_api.client import SpotifyClient
from spotify_api.models import Device, Playable
from spotify_api.player import SpotifyPlayer
from spotify_api.token_manager import TokenManager
from utils.logger import log_debug, log_info, log_warning

T = TypeVar("T")

# Token endpoint statuses meaning the refresh token itself is no longer usable.
REFRESH_REJECTED_STATUSES = (400, 401)


def connect(
    config: Dict[str, Any],
    *,
    force_authorize: bool = False,
    token_manager: Optional[TokenManager] = None,
    http_client: Optional[httpx.Client] = None,
    auth_flow: Callable[..., Any] = run_auth_flow,
) -> SpotifyPlayer:
    """Load or acquire credentials and return a ready SpotifyPlayer.

    The auth flow runs when nothing is stored, when the stored grant lacks a
    required scope, or when an expired token cannot be refreshed.
    """
    token_manager = token_manager or TokenManager(credentials_path())
    auth = SpotifyPKCEAuth(config, token_manager, http_client=http_client)
    client = SpotifyClient(config, token_manager, auth, http_client=http_client)

    credentials = None if force_authorize else token_manager.load()
    cached_client_id = credentials.client_id if credentials else None

    if credentials is not None and not token_manager.has_scopes(credentials, auth.scopes):
        log_warning("The stored authorization is missing permissions this version needs; please re-authorize.")
        credentials = None

    if credentials is not None:
        client.set_credentials(credentials)
        if not token_manager.is_expired(credentials):
            return SpotifyPlayer(client)
        try:
            client.refresh()
            return SpotifyPlayer(client)
        except AuthError as e:
            if credentials.refresh_token and e.status not in REFRESH_REJECTED_STATUSES:
                raise
            log_debug(f"Stored token cannot be refreshed ({e}); re-authorizing")

    if force_authorize:
        cached_client_id = _stored_client_id(token_manager)

    fresh = auth_flow(config, auth, client_id=cached_client_id)
    client.set_credentials(fresh, fresh=True)
    return SpotifyPlayer(client)


def _stored_client_id(token_manager: TokenManager) -> Optional[str]:
    """Client id of a previous authorization, if one can still be read."""
    try:
        previous = token_manager.load()
    except OSError:
        return None
    return previous.client_id if previous else None


# -------------------------
# Execution
# -------------------------

def _choose(
    items: Sequence[T],
    formatter: Callable[[T], str],
    *,
    message: str,
    list_only: bool,
    empty_message: str,
) -> Optional[T]:
    if not items:
        log_info(empty_message)
        return None
    if list_only:
        print(render_list(items, formatter))
        return None

    chosen = select_item(message, items, formatter)
    if chosen is None:
        log_info("Cancelled.")
    return chosen


def _exact_match(items: Sequence[T], name: str, key: Callable[[T], str]) -> Optional[T]:
    wanted = name.strip().casefold()
    for item in items:
        if key(item).strip().casefold() == wanted:
            return item
    return None


def _play_and_report(player: SpotifyPlayer, item: Playable) -> None:
    player.play(item)
    log_info(f"Playing {format_playable(item)}")


def _run_device(player: SpotifyPlayer, command: cmd.Device) -> None:
    devices: List[Device] = player.devices()
    candidates = devices

    if command.name:
        exact = _exact_match(devices, command.name, lambda d: d.name)
        if exact is not None and not command.list_only:
            player.transfer(exact)
            log_info(f"Switched playback to {exact.name}")
            return
        needle = command.name.casefold()
        candidates = [d for d in devices if needle in d.name.casefold()]

    chosen = _choose(
        candidates,
        format_device,
        message="Select a device",
        list_only=command.list_only,
        empty_message=f"No devices matching '{command.name}'" if command.name else "No devices available",
    )
    if chosen is not None:
        player.transfer(chosen)
        log_info(f"Switched playback to {chosen.name}")


def _run_library(player: SpotifyPlayer, command: cmd.Library) -> None:
    items = player.library(command.query)

    if command.query and not command.list_only:
        exact = _exact_match(items, command.query, lambda i: i.name)
        if exact is not None:
            _play_and_report(player, exact)
            return

    chosen = _choose(
        items,
        format_playable,
        message="Select an item to play",
        list_only=command.list_only,
        empty_message=f"Nothing in your library matches '{command.query}'" if command.query else "Your library is empty",
    )
    if chosen is not None:
        _play_and_report(player, chosen)


def execute(command: cmd.Command, player: SpotifyPlayer, config: Dict[str, Any]) -> None:
    """Perform one parsed command against the player."""

    if isinstance(command, cmd.Current):
        print(format_now_playing(player.current_track()))

    elif isinstance(command, cmd.Pause):
        player.pause()

    elif isinstance(command, cmd.Resume):
        player.resume()

    elif isinstance(command, cmd.Toggle):
        player.toggle()

    elif isinstance(command, cmd.Next):
        player.next()

    elif isinstance(command, cmd.Previous):
        player.previous()

    elif isinstance(command, cmd.Shuffle):
        state = player.shuffle(command.mode)
        log_info(f"Shuffle {'on' if state else 'off'}")

    elif isinstance(command, cmd.Repeat):
        state = player.repeat(command.mode)
        log_info(f"Repeat {'on' if state == 'context' else state}")

    elif isinstance(command, cmd.Volume):
        if command.op == cmd.VolumeOp.UP:
            volume = player.volume_up(command.amount)
        elif command.op == cmd.VolumeOp.DOWN:
            volume = player.volume_down(command.amount)
        else:
            volume = player.volume_set(command.amount)
        log_info(f"Volume {volume}%")

    elif isinstance(command, cmd.Play):
        results = player.search(command.query, command.kind, limit=1)
        if not results:
            log_info("No matches found")
            return
        _play_and_report(player, results[0])

    elif isinstance(command, cmd.Search):
        results = player.search(command.query, command.kind, limit=int(config.get("search_limit", 10)))
        chosen = _choose(
            results,
            format_playable,
            message="Select an item to play",
            list_only=command.list_only,
            empty_message="No matches found",
        )
        if chosen is not None:
            _play_and_report(player, chosen)

    elif isinstance(command, cmd.Library):
        _run_library(player, command)

    elif isinstance(command, cmd.Device):
        _run_device(player, command)

    else:
        raise TypeError(f"Unhandled command: {command!r}")
