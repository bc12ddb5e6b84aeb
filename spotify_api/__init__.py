"""Spotify Web API integration (OAuth PKCE + player control)."""

from .auth import SpotifyPKCEAuth
from .client import SpotifyClient
from .models import ContentType, Device, NowPlaying, PlaybackState, Playable
from .player import SpotifyPlayer
from .token_manager import Credentials, TokenManager

__all__ = [
    "SpotifyPKCEAuth",
    "SpotifyClient",
    "SpotifyPlayer",
    "TokenManager",
    "Credentials",
    "ContentType",
    "Device",
    "NowPlaying",
    "PlaybackState",
    "Playable",
]
