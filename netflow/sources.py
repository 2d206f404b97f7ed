"""Record sources — where a snapshot of people and relationships comes from.

The analytics core does not own any data. A source hands it one
owner's people and relationships as plain dicts; the engine wraps any
failure into a single ``SnapshotError``.

Available sources:
  - ``InMemorySource``: records supplied by the caller (tests, POST API)
  - ``JsonFileSource``: a JSON file with ``people`` and ``relationships``
  - ``HttpSource``: a REST record store queried with httpx
"""

from __future__ import annotations

import abc
import asyncio
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import httpx

logger = logging.getLogger(__name__)


@dataclass
class Snapshot:
    """One owner's records at a point in time."""

    people: list[dict[str, Any]] = field(default_factory=list)
    relationships: list[dict[str, Any]] = field(default_factory=list)


class RecordSource(abc.ABC):
    """Provider-agnostic snapshot interface."""

    name: str = "source"

    @abc.abstractmethod
    async def fetch(self, owner_id: str, depth: int = 2) -> Snapshot:
        """Return the owner's people and relationships.

        ``depth`` bounds how far the store expands the relationship set;
        the analytics core does not use it further.
        """


class InMemorySource(RecordSource):
    """Serve a fixed snapshot regardless of owner."""

    name = "memory"

    def __init__(
        self,
        people: list[dict[str, Any]] | None = None,
        relationships: list[dict[str, Any]] | None = None,
    ) -> None:
        self._snapshot = Snapshot(list(people or []), list(relationships or []))

    async def fetch(self, owner_id: str, depth: int = 2) -> Snapshot:
        return Snapshot(list(self._snapshot.people), list(self._snapshot.relationships))


class JsonFileSource(RecordSource):
    """Read a snapshot from a JSON file.

    The file holds a single owner's records::

        {"people": [...], "relationships": [...]}
    """

    name = "json-file"

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    async def fetch(self, owner_id: str, depth: int = 2) -> Snapshot:
        data = json.loads(self._path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"{self._path} must contain a JSON object")
        return Snapshot(
            people=list(data.get("people") or []),
            relationships=list(data.get("relationships") or []),
        )


@dataclass
class StoreConfig:
    """Configuration for the HTTP record store client."""

    host: str = "http://localhost:8080"
    api_key: str = ""
    api_prefix: str = "/api"
    timeout_seconds: float = 30.0
    people_limit: int = 500
    relationship_limit: int = 1000


class HttpSource(RecordSource):
    """Async client for a REST record store.

    Expects ``GET {prefix}/people`` and ``GET {prefix}/relationships``
    returning either a bare list or an envelope ``{"results": [...]}``.
    """

    name = "http"

    def __init__(self, config: StoreConfig | None = None) -> None:
        self._config = config or StoreConfig()
        self._base_url = f"{self._config.host.rstrip('/')}{self._config.api_prefix}"
        self._headers: dict[str, str] = {}
        if self._config.api_key:
            self._headers["Authorization"] = f"Bearer {self._config.api_key}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._headers,
            timeout=self._config.timeout_seconds,
        )

    async def fetch(self, owner_id: str, depth: int = 2) -> Snapshot:
        async with self._client() as client:
            people_resp, rel_resp = await asyncio.gather(
                client.get(
                    "/people",
                    params={"ownerId": owner_id, "limit": self._config.people_limit},
                ),
                client.get(
                    "/relationships",
                    params={
                        "ownerId": owner_id,
                        "depth": depth,
                        "limit": self._config.relationship_limit,
                    },
                ),
            )
            people_resp.raise_for_status()
            rel_resp.raise_for_status()

            snapshot = Snapshot(
                people=_results(people_resp.json()),
                relationships=_results(rel_resp.json()),
            )

        logger.debug(
            "Store returned %d people, %d relationships for owner %s",
            len(snapshot.people), len(snapshot.relationships), owner_id,
        )
        return snapshot


def _results(payload: Any) -> list[dict[str, Any]]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        return list(payload.get("results") or [])
    raise ValueError(f"Unexpected store payload type: {type(payload).__name__}")


def source_from_settings(settings: Any) -> RecordSource:
    """Pick the configured source: HTTP store, then JSON file, then empty."""
    if settings.STORE_URL:
        return HttpSource(StoreConfig(
            host=settings.STORE_URL,
            api_key=settings.STORE_API_KEY,
            timeout_seconds=settings.STORE_TIMEOUT,
            people_limit=settings.MAX_NODES,
            relationship_limit=settings.MAX_EDGES,
        ))
    if settings.SNAPSHOT_PATH:
        return JsonFileSource(settings.SNAPSHOT_PATH)
    logger.warning("No record store configured; serving an empty snapshot")
    return InMemorySource()
