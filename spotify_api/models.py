from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class ContentType(str, Enum):
    """Spotify's searchable/playable content classes."""

    TRACK = "track"
    PLAYLIST = "playlist"
    ALBUM = "album"
    ARTIST = "artist"
    SHOW = "show"
    EPISODE = "episode"

    @property
    def label(self) -> str:
        return self.value.capitalize()

    @property
    def plays_as_uri(self) -> bool:
        """Tracks and episodes are queued by URI; everything else starts as a context."""
        return self in (ContentType.TRACK, ContentType.EPISODE)


def _artist_names(obj: Dict[str, Any]) -> List[str]:
    return [a.get("name") for a in (obj.get("artists") or []) if isinstance(a, dict) and a.get("name")]


@dataclass(frozen=True)
class NowPlaying:
    title: str
    by: List[str] = field(default_factory=list)

    @staticmethod
    def from_api(item: Optional[Dict[str, Any]]) -> Optional["NowPlaying"]:
        """Project a currently-playing `item` (track or episode) into NowPlaying."""
        if not isinstance(item, dict):
            return None
        if item.get("type") == "episode":
            show = item.get("show") or {}
            return NowPlaying(title=str(item.get("name") or ""), by=[show["name"]] if show.get("name") else [])
        return NowPlaying(title=str(item.get("name") or ""), by=_artist_names(item))


@dataclass(frozen=True)
class Device:
    id: Optional[str]
    name: str
    type: str = ""
    is_active: bool = False
    volume_percent: Optional[int] = None

    @staticmethod
    def from_api(d: Dict[str, Any]) -> "Device":
        return Device(
            id=d.get("id"),
            name=str(d.get("name") or ""),
            type=str(d.get("type") or ""),
            is_active=bool(d.get("is_active")),
            volume_percent=d.get("volume_percent"),
        )


@dataclass(frozen=True)
class PlaybackState:
    is_playing: bool
    shuffle_state: bool
    repeat_state: str
    device: Optional[Device]
    item: Optional[NowPlaying]

    @staticmethod
    def from_api(payload: Dict[str, Any]) -> "PlaybackState":
        device = payload.get("device")
        return PlaybackState(
            is_playing=bool(payload.get("is_playing")),
            shuffle_state=bool(payload.get("shuffle_state")),
            repeat_state=str(payload.get("repeat_state") or "off"),
            device=Device.from_api(device) if isinstance(device, dict) else None,
            item=NowPlaying.from_api(payload.get("item")),
        )

    @property
    def volume_percent(self) -> Optional[int]:
        return self.device.volume_percent if self.device else None


@dataclass(frozen=True)
class Playable:
    """A search or library result that can be handed to the player."""

    kind: ContentType
    name: str
    uri: str
    by: List[str] = field(default_factory=list)

    @staticmethod
    def from_api(kind: ContentType, obj: Dict[str, Any]) -> Optional["Playable"]:
        # Search pages can contain null entries, and local tracks have no URI.
        if not isinstance(obj, dict) or not obj.get("uri"):
            return None

        by = _artist_names(obj) if kind in (ContentType.TRACK, ContentType.ALBUM) else []
        return Playable(kind=kind, name=str(obj.get("name") or ""), uri=str(obj["uri"]), by=by)
