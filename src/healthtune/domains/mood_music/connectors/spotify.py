"""Spotify Web API track catalog (client credentials flow).

Two calls per search: ``GET /recommendations`` seeded with genres and
target features, then ``GET /audio-features`` for the returned ids.
Every response is decoded into pydantic models before use; anything
unexpected becomes ``CatalogProviderError``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable

import httpx
from pydantic import BaseModel, ValidationError

from healthtune.domains.mood_music.connectors import (
    CatalogProviderError,
    CredentialError,
)
from healthtune.domains.mood_music.domain_logic.models import (
    AcousticFeatureVector,
    TrackCandidate,
)

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.spotify.com/v1"
DEFAULT_TOKEN_URL = "https://accounts.spotify.com/api/token"

MAX_SEED_GENRES = 5
MAX_RESULTS = 50
TEMPO_WINDOW_BPM = 20


# ---------------------------------------------------------------------------
# Wire models
# ---------------------------------------------------------------------------

class _TokenResponse(BaseModel):
    access_token: str
    token_type: str = "Bearer"
    expires_in: int = 3600


class _Artist(BaseModel):
    name: str


class _Album(BaseModel):
    name: str


class _ExternalUrls(BaseModel):
    spotify: str = "#"


class _Track(BaseModel):
    id: str
    name: str
    artists: list[_Artist] = []
    album: _Album
    duration_ms: int
    external_urls: _ExternalUrls = _ExternalUrls()
    preview_url: str | None = None


class _RecommendationsResponse(BaseModel):
    tracks: list[_Track]


class _AudioFeatures(BaseModel):
    id: str
    energy: float
    valence: float
    danceability: float
    tempo: float


class _AudioFeaturesResponse(BaseModel):
    # Spotify returns null for ids it has no analysis for
    audio_features: list[_AudioFeatures | None]


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------

class SpotifyCredentialManager:
    """Holds the app access token and refreshes it before it expires.

    ``get_valid_credential()`` returns the cached token while it has more
    than ``REFRESH_SKEW_SECONDS`` left, otherwise fetches a new one inline.
    """

    REFRESH_SKEW_SECONDS = 60

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        *,
        token_url: str = DEFAULT_TOKEN_URL,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.token_url = token_url
        self.timeout = timeout
        self._transport = transport
        self._clock = clock
        self._lock = asyncio.Lock()
        self.access_token: str | None = None
        self.expires_at: float = 0.0

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def is_valid(self) -> bool:
        return (
            self.access_token is not None
            and self._clock() < self.expires_at - self.REFRESH_SKEW_SECONDS
        )

    def invalidate(self) -> None:
        self.access_token = None
        self.expires_at = 0.0

    async def get_valid_credential(self) -> str:
        """Return a usable access token.

        Raises:
            CredentialError: If no credentials are configured or the token
                endpoint fails.
        """
        if self.is_valid():
            return self.access_token  # type: ignore[return-value]
        async with self._lock:
            if not self.is_valid():
                await self._refresh()
        return self.access_token  # type: ignore[return-value]

    async def _refresh(self) -> None:
        if not self.configured:
            raise CredentialError("Spotify client credentials are not configured")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    self.token_url,
                    data={"grant_type": "client_credentials"},
                    auth=(self.client_id, self.client_secret),
                    headers={"Accept": "application/json"},
                )
                response.raise_for_status()
                token = _TokenResponse.model_validate(response.json())
        except httpx.HTTPStatusError as exc:
            raise CredentialError(
                f"Spotify token request failed: HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise CredentialError(f"Spotify token request failed: {exc}") from exc
        except (ValidationError, ValueError) as exc:
            raise CredentialError(f"Unexpected Spotify token response: {exc}") from exc

        self.access_token = token.access_token
        self.expires_at = self._clock() + token.expires_in
        logger.info("Refreshed Spotify access token (expires in %ds)", token.expires_in)


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

class SpotifyCatalogProvider:
    """CatalogProvider backed by the Spotify recommendations endpoint."""

    name = "spotify"

    def __init__(
        self,
        credentials: SpotifyCredentialManager,
        *,
        api_url: str = DEFAULT_API_URL,
        market: str = "US",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.credentials = credentials
        self.api_url = api_url.rstrip("/")
        self.market = market
        self.timeout = timeout
        self._transport = transport

    @staticmethod
    def build_params(
        seed_genres: list[str], target: AcousticFeatureVector, limit: int
    ) -> dict[str, Any]:
        return {
            "seed_genres": ",".join(seed_genres[:MAX_SEED_GENRES]),
            "target_energy": target.energy,
            "target_valence": target.valence,
            "target_danceability": target.danceability,
            "min_tempo": target.tempo - TEMPO_WINDOW_BPM,
            "max_tempo": target.tempo + TEMPO_WINDOW_BPM,
            "limit": max(1, min(limit, MAX_RESULTS)),
        }

    async def search(
        self,
        seed_genres: list[str],
        target: AcousticFeatureVector,
        limit: int,
    ) -> list[TrackCandidate]:
        if not seed_genres:
            raise CatalogProviderError("At least one seed genre is required")

        token = await self.credentials.get_valid_credential()
        headers = {"Authorization": f"Bearer {token}", "Accept": "application/json"}
        params = self.build_params(seed_genres, target, limit)
        if self.market:
            params["market"] = self.market

        async with httpx.AsyncClient(
            base_url=self.api_url,
            headers=headers,
            timeout=self.timeout,
            transport=self._transport,
        ) as client:
            recommendations = await self._get(
                client, "/recommendations", params, _RecommendationsResponse
            )
            if not recommendations.tracks:
                raise CatalogProviderError("Spotify returned no recommendations")

            ids = ",".join(track.id for track in recommendations.tracks)
            features = await self._get(
                client, "/audio-features", {"ids": ids}, _AudioFeaturesResponse
            )

        by_id = {f.id: f for f in features.audio_features if f is not None}
        candidates = []
        for track in recommendations.tracks:
            measured = by_id.get(track.id)
            if measured is None:
                logger.debug("Dropping track %s: no audio features", track.id)
                continue
            candidates.append(TrackCandidate(
                id=track.id,
                name=track.name,
                artist=track.artists[0].name if track.artists else "Unknown Artist",
                album=track.album.name,
                duration_ms=track.duration_ms,
                measured_features=AcousticFeatureVector(
                    energy=measured.energy,
                    valence=measured.valence,
                    danceability=measured.danceability,
                    tempo=measured.tempo,
                ),
                external_url=track.external_urls.spotify,
                preview_url=track.preview_url,
            ))

        if not candidates:
            raise CatalogProviderError("No Spotify tracks had audio features")
        logger.info("Spotify returned %d candidates for seeds %s", len(candidates), seed_genres)
        return candidates

    async def _get(
        self,
        client: httpx.AsyncClient,
        path: str,
        params: dict[str, Any],
        model: type[BaseModel],
    ) -> Any:
        try:
            response = await client.get(path, params=params)
            response.raise_for_status()
            return model.model_validate(response.json())
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            if status == 401:
                # Force a fresh token on the next search
                self.credentials.invalidate()
            elif status == 429:
                raise CatalogProviderError("Spotify rate limit exceeded") from exc
            raise CatalogProviderError(f"Spotify {path} failed: HTTP {status}") from exc
        except httpx.HTTPError as exc:
            raise CatalogProviderError(f"Spotify {path} failed: {exc}") from exc
        except (ValidationError, ValueError) as exc:
            raise CatalogProviderError(f"Unexpected Spotify {path} response: {exc}") from exc
