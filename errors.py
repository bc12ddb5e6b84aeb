from typing import Optional


class SpoticError(Exception):
    """Base class for every failure that ends an invocation."""

    exit_code = 1


class ValidationError(SpoticError):
    """Bad command-line input, raised before any network call."""

    exit_code = 2


class AuthError(SpoticError):
    """Authorization or token exchange failed."""

    def __init__(self, message: str, *, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class ApiError(SpoticError):
    """Non-2xx response (or transport failure) from the Spotify Web API."""

    def __init__(self, status: Optional[int], message: str):
        self.status = status
        self.message = message
        super().__init__(f"Spotify API error {status}: {message}" if status else f"Spotify API request failed: {message}")


class NoActiveDeviceError(ApiError):
    def __init__(self, message: str = "No active playback device. Start Spotify somewhere or pick one with `sc device`."):
        super().__init__(404, message)


class CredentialStoreError(SpoticError, OSError):
    """The credentials file could not be read or written."""
