from typing import Callable, Optional, Sequence, TypeVar

from spotify_api.models import Device, NowPlaying, Playable

T = TypeVar("T")


def _quoted_by(title: str, by: Sequence[str]) -> str:
    if not by:
        return f"\"{title}\""
    return f"\"{title}\" by {', '.join(by)}"


def format_now_playing(now_playing: Optional[NowPlaying]) -> str:
    if now_playing is None:
        return "Nothing playing"
    return _quoted_by(now_playing.title, now_playing.by)


def format_playable(item: Playable) -> str:
    """e.g. '"Song" by A, B [Track]' or 'Chill Mix [Playlist]'."""
    name = _quoted_by(item.name, item.by) if item.by else item.name
    return f"{name} [{item.kind.label}]"


def format_device(device: Device) -> str:
    label = device.name
    if device.type:
        label += f" ({device.type})"
    if device.is_active:
        label += " [active]"
    if device.volume_percent is not None:
        label += f" {device.volume_percent}%"
    return label


def render_list(items: Sequence[T], formatter: Callable[[T], str]) -> str:
    """Enumerate items one per line, starting at 1."""
    width = len(str(len(items)))
    return "\n".join(f"{str(i).rjust(width)}. {formatter(item)}" for i, item in enumerate(items, start=1))
