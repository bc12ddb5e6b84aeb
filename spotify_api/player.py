import logging
from typing import List, Optional

from errors import NoActiveDeviceError
from .client import SpotifyClient
from .models import ContentType, Device, NowPlaying, PlaybackState, Playable

logger = logging.getLogger(__name__)

LIBRARY_MAX_ITEMS = 500


def clamp_volume(value: int) -> int:
    return max(0, min(100, int(value)))


class SpotifyPlayer:
    """High-level playback operations, one per command category."""

    def __init__(self, client: SpotifyClient):
        self.client = client

    # -----------------
    # State
    # -----------------

    def playback_state(self) -> PlaybackState:
        payload = self.client.playback_state()
        if not payload:
            raise NoActiveDeviceError()
        return PlaybackState.from_api(payload)

    def current_track(self) -> Optional[NowPlaying]:
        """What is playing right now, or None when playback is stopped or paused."""
        payload = self.client.currently_playing()
        if not payload or not payload.get("is_playing"):
            return None
        return NowPlaying.from_api(payload.get("item"))

    # -----------------
    # Playback
    # -----------------

    def pause(self) -> None:
        # Spotify answers 403 when pausing an already paused player.
        if self.playback_state().is_playing:
            self.client.pause()

    def resume(self) -> None:
        if not self.playback_state().is_playing:
            self.client.resume()

    def toggle(self) -> None:
        if self.playback_state().is_playing:
            self.client.pause()
        else:
            self.client.resume()

    def next(self) -> None:
        self.client.next_track()

    def previous(self) -> None:
        self.client.previous_track()

    # -----------------
    # Volume
    # -----------------

    def volume_get(self) -> int:
        volume = self.playback_state().volume_percent
        if volume is None:
            raise NoActiveDeviceError("The active device does not report a volume.")
        return int(volume)

    def volume_set(self, volume: int) -> int:
        volume = clamp_volume(volume)
        self.client.set_volume(volume)
        return volume

    def volume_up(self, amount: int) -> int:
        return self.volume_set(self.volume_get() + int(amount))

    def volume_down(self, amount: int) -> int:
        return self.volume_set(self.volume_get() - int(amount))

    # -----------------
    # Modes
    # -----------------

    def shuffle(self, mode: Optional[str] = None) -> bool:
        """Set shuffle on/off; None toggles. Returns the new state."""
        if mode is None:
            state = not self.playback_state().shuffle_state
        else:
            state = mode == "on"
        self.client.set_shuffle(state)
        return state

    def repeat(self, mode: Optional[str] = None) -> str:
        """Set repeat on (context), off or track; None toggles between on and off.

        Returns the Spotify repeat state that was sent.
        """
        if mode is None:
            state = "context" if self.playback_state().repeat_state == "off" else "off"
        else:
            state = {"on": "context", "off": "off", "track": "track"}[mode]
        self.client.set_repeat(state)
        return state

    # -----------------
    # Content
    # -----------------

    def search(self, query: str, kind: ContentType, *, limit: int = 10) -> List[Playable]:
        payload = self.client.search(query, kind.value, limit=limit)
        page = payload.get(f"{kind.value}s") or {}
        results = [Playable.from_api(kind, item) for item in (page.get("items") or [])]
        return [r for r in results if r is not None]

    def play(self, item: Playable) -> None:
        logger.debug("Playing %s", item.uri)
        if item.kind.plays_as_uri:
            self.client.start_playback(uris=[item.uri])
        else:
            self.client.start_playback(context_uri=item.uri)

    def library(self, query: Optional[str] = None) -> List[Playable]:
        """The user's playlists followed by their saved albums, optionally filtered by name."""
        items: List[Playable] = []
        for p in self.client.current_user_playlists(max_items=LIBRARY_MAX_ITEMS):
            playable = Playable.from_api(ContentType.PLAYLIST, p)
            if playable:
                items.append(playable)
        for saved in self.client.current_user_saved_albums(max_items=LIBRARY_MAX_ITEMS):
            playable = Playable.from_api(ContentType.ALBUM, saved.get("album"))
            if playable:
                items.append(playable)

        needle = (query or "").strip().casefold()
        if needle:
            items = [i for i in items if needle in i.name.casefold()]
        return items

    # -----------------
    # Devices
    # -----------------

    def devices(self) -> List[Device]:
        return [Device.from_api(d) for d in self.client.devices()]

    def transfer(self, device: Device) -> None:
        if not device.id:
            raise NoActiveDeviceError(f"Device '{device.name}' cannot be controlled through the Web API.")
        self.client.transfer_playback(device.id)
