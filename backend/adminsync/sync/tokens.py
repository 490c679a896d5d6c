"""
Bearer credential providers for the socket handshake and REST calls
"""

from pathlib import Path
from typing import Optional, Protocol

from adminsync.config import Settings
from adminsync.errors import TokenMissingError


class TokenProvider(Protocol):
    def get_token(self) -> str:
        """Return the current bearer token or raise TokenMissingError"""
        ...


class StaticTokenProvider:
    def __init__(self, token: Optional[str] = None):
        self.token = token

    def set_token(self, token: Optional[str]) -> None:
        self.token = token

    def get_token(self) -> str:
        if not self.token:
            raise TokenMissingError()
        return self.token


class FileTokenProvider:
    """Reads the token from disk on every call so a re-login that rewrites
    the file is picked up by the next handshake."""

    def __init__(self, path: str):
        self.path = Path(path)

    def get_token(self) -> str:
        try:
            token = self.path.read_text(encoding="utf-8").strip()
        except OSError:
            raise TokenMissingError()
        if not token:
            raise TokenMissingError()
        return token


def token_provider_from_settings(settings: Settings) -> TokenProvider:
    if settings.access_token_file:
        return FileTokenProvider(settings.access_token_file)
    return StaticTokenProvider(settings.access_token)
