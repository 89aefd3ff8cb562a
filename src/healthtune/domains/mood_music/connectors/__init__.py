"""Connectors: where health readings come from and where tracks come from."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from healthtune.domains.mood_music.domain_logic.models import (
    AcousticFeatureVector,
    HealthMetricSnapshot,
    TrackCandidate,
)


class CatalogProviderError(Exception):
    """A track catalog failed: network, auth, quota, decode or no results."""


class CredentialError(CatalogProviderError):
    """A catalog access token could not be obtained."""


@runtime_checkable
class HealthDataProvider(Protocol):
    """Source of the latest reading per metric type for a user.

    Callers do not know whether readings come from stored wearable data,
    a fixed demo snapshot or something else.
    """

    async def latest_by_type(self, user_id: str) -> HealthMetricSnapshot:
        """Newest reading of each metric type; empty when the user has none."""
        ...

    @property
    def data_source(self) -> str:
        """Label for the active data source: 'stored' or 'mock'."""
        ...


@runtime_checkable
class CatalogProvider(Protocol):
    """A searchable track catalog that reports measured acoustic features."""

    name: str

    async def search(
        self,
        seed_genres: list[str],
        target: AcousticFeatureVector,
        limit: int,
    ) -> list[TrackCandidate]:
        """Candidates near ``target`` for the given seeds.

        Raises:
            CatalogProviderError: On any failure, including an empty result.
        """
        ...
