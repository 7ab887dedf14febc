"""Construction of the per-job external-system clients."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

import httpx

from exercise_sync.config.settings import Settings, settings
from exercise_sync.integrations.cite.client import CiteClient
from exercise_sync.integrations.gallery.client import GalleryClient
from exercise_sync.integrations.identity import TokenResponse, request_token
from exercise_sync.integrations.player.client import PlayerClient


@dataclass
class IntegrationClients:
    """Builds Player, Gallery and CITE clients bound to one access token.

    Workers call get_token() once per job and pass the result to the
    client constructors, mirroring one token per unit of work.
    """

    player_api_url: str
    gallery_api_url: str
    cite_api_url: str
    timeout: float = 30.0
    token_provider: Callable[[], TokenResponse] = field(default=request_token)
    transport: httpx.BaseTransport | None = None

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> IntegrationClients:
        config = config or settings
        return cls(
            player_api_url=config.player_api_url,
            gallery_api_url=config.gallery_api_url,
            cite_api_url=config.cite_api_url,
            timeout=config.client_timeout_seconds,
            token_provider=lambda: request_token(config),
        )

    def get_token(self) -> TokenResponse:
        return self.token_provider()

    def player(self, token: TokenResponse) -> PlayerClient:
        return PlayerClient(self.player_api_url, token, timeout=self.timeout, transport=self.transport)

    def gallery(self, token: TokenResponse) -> GalleryClient:
        return GalleryClient(self.gallery_api_url, token, timeout=self.timeout, transport=self.transport)

    def cite(self, token: TokenResponse) -> CiteClient:
        return CiteClient(self.cite_api_url, token, timeout=self.timeout, transport=self.transport)
