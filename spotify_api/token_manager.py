import json
import os
import tempfile
import time
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

from errors import CredentialStoreError


@dataclass(frozen=True)
class Credentials:
    """Canonical credential payload stored by TokenManager."""

    client_id: str
    access_token: str
    refresh_token: Optional[str]
    expires_at: float
    token_type: str = "Bearer"
    scope: Optional[str] = None

    @staticmethod
    def from_spotify_token_response(
        client_id: str,
        payload: Dict[str, Any],
        *,
        previous_refresh_token: Optional[str] = None,
        now: Optional[float] = None,
    ) -> "Credentials":
        """Convert Spotify token response JSON into Credentials.

        Spotify returns:
        - access_token
        - token_type
        - expires_in (seconds)
        - refresh_token (optional; usually omitted on refresh)
        - scope (space-delimited string)
        """

        now_ts = float(time.time() if now is None else now)
        expires_in = float(payload.get("expires_in", 0))

        return Credentials(
            client_id=client_id,
            access_token=str(payload.get("access_token", "")),
            refresh_token=payload.get("refresh_token") or previous_refresh_token,
            expires_at=now_ts + expires_in,
            token_type=str(payload.get("token_type", "Bearer")),
            scope=payload.get("scope"),
        )

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Credentials":
        return Credentials(
            client_id=str(data["client_id"]),
            access_token=str(data["access_token"]),
            refresh_token=data.get("refresh_token"),
            expires_at=float(data["expires_at"]),
            token_type=str(data.get("token_type") or "Bearer"),
            scope=data.get("scope"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "client_id": self.client_id,
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at,
            "token_type": self.token_type,
            "scope": self.scope,
        }


class TokenManager:
    """Reads and writes the credentials file and answers expiry questions.

    There is no locking: the CLI runs one command per process and writes the
    file at most once per run.
    """

    def __init__(self, cache_path: str):
        self.cache_path = cache_path

    def exists(self) -> bool:
        return os.path.exists(self.cache_path)

    def load(self) -> Optional[Credentials]:
        """Load cached credentials from disk; None when none were saved yet."""
        if not self.exists():
            return None

        try:
            with open(self.cache_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except OSError as e:
            raise CredentialStoreError(f"Failed reading stored credentials {self.cache_path}: {e}") from e
        except json.JSONDecodeError as e:
            raise CredentialStoreError(
                f"Stored credentials {self.cache_path} are corrupted, run `sc --authorize`: {e}"
            ) from e

        try:
            return Credentials.from_dict(data)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise CredentialStoreError(
                f"Stored credentials {self.cache_path} are incomplete, run `sc --authorize`: {e}"
            ) from e

    def save(self, credentials: Credentials) -> None:
        """Persist credentials to disk, replacing the previous file atomically."""
        directory = os.path.dirname(self.cache_path) or "."
        tmp_path = None
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=".credentials-", suffix=".json", dir=directory)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(credentials.to_dict(), f, indent=2)
                f.write("\n")
            os.replace(tmp_path, self.cache_path)
            tmp_path = None
        except OSError as e:
            raise CredentialStoreError(f"Failed saving credentials to {self.cache_path}: {e}") from e
        finally:
            if tmp_path and os.path.exists(tmp_path):
                os.remove(tmp_path)

    def clear(self) -> bool:
        """Delete the credentials file. Returns False when there was nothing to delete."""
        if not self.exists():
            return False
        try:
            os.remove(self.cache_path)
        except OSError as e:
            raise CredentialStoreError(f"Failed removing {self.cache_path}: {e}") from e
        return True

    @staticmethod
    def is_expired(credentials: Credentials, *, skew_seconds: int = 60, now: Optional[float] = None) -> bool:
        now_ts = time.time() if now is None else now
        return now_ts >= float(credentials.expires_at) - float(skew_seconds)

    @staticmethod
    def has_scopes(credentials: Credentials, required: Iterable[str]) -> bool:
        """True when the cached grant covers every required scope.

        A token saved without scope information is trusted as-is.
        """
        if credentials.scope is None:
            return True
        granted = set(str(credentials.scope).split())
        return all(s in granted for s in required)
