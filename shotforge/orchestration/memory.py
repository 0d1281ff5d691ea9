"""In-process collaborators for tests, the demo and local runs."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from shotforge.common.collaborators import default_object_path
from shotforge.common.errors import PersistenceError, UnauthorizedError
from shotforge.common.models import (
    Film,
    Generation,
    IdentityToken,
    LockedAsset,
    SceneOverride,
    Shot,
    StyleContext,
)
from shotforge.common.models.base import utcnow


class InMemoryShots:
    def __init__(self, shots: list[Shot] | None = None):
        self._shots = {s.id: s for s in shots or []}

    def add(self, shot: Shot) -> None:
        self._shots[shot.id] = shot

    async def get(self, shot_id: str) -> Shot | None:
        return self._shots.get(shot_id)


class InMemoryFilms:
    def __init__(self, films: list[Film] | None = None):
        self._films = {f.id: f for f in films or []}

    def add(self, film: Film) -> None:
        self._films[film.id] = film

    async def get(self, film_id: str) -> Film | None:
        return self._films.get(film_id)


class InMemoryStyleContexts:
    """Latest style contract per film."""

    def __init__(self, styles: list[StyleContext] | None = None):
        self._styles: dict[str, StyleContext] = {}
        for style in styles or []:
            self.add(style)

    def add(self, style: StyleContext) -> None:
        current = self._styles.get(style.film_id)
        if current is None or style.version >= current.version:
            self._styles[style.film_id] = style

    async def get(self, film_id: str) -> StyleContext | None:
        return self._styles.get(film_id)


class InMemorySceneOverrides:
    def __init__(self, overrides: list[SceneOverride] | None = None):
        self._overrides = {(o.film_id, o.scene_number): o for o in overrides or []}

    def add(self, override: SceneOverride) -> None:
        self._overrides[(override.film_id, override.scene_number)] = override

    async def get(self, film_id: str, scene_number: int) -> SceneOverride | None:
        return self._overrides.get((film_id, scene_number))


class InMemoryLockedAssets:
    def __init__(self, assets: dict[str, list[LockedAsset]] | None = None):
        self._assets: dict[str, list[LockedAsset]] = defaultdict(list)
        for film_id, items in (assets or {}).items():
            self._assets[film_id].extend(items)

    def add(self, film_id: str, asset: LockedAsset) -> None:
        self._assets[film_id].append(asset)

    async def list(self, film_id: str) -> list[LockedAsset]:
        return list(self._assets.get(film_id, []))


class InMemoryIdentityRegistry:
    def __init__(self, tokens: dict[str, list[IdentityToken]] | None = None):
        self._tokens: dict[str, dict[str, IdentityToken]] = defaultdict(dict)
        for film_id, items in (tokens or {}).items():
            for token in items:
                self.add(film_id, token)

    def add(self, film_id: str, token: IdentityToken) -> None:
        self._tokens[film_id][token.code] = token

    async def resolve(self, film_id: str, ref_codes: list[str]) -> list[IdentityToken]:
        known = self._tokens.get(film_id, {})
        return [known[code] for code in ref_codes if code in known]


class InMemoryGenerationStore:
    """Generation records keyed by id; terminal records are write-once."""

    def __init__(self):
        self._records: dict[str, Generation] = {}

    async def insert(self, record: Generation) -> Generation:
        if record.id in self._records:
            raise PersistenceError(f"Generation already exists: {record.id}")
        self._records[record.id] = record
        return record

    async def update(self, record: Generation) -> Generation:
        current = self._records.get(record.id)
        if current is None:
            raise PersistenceError(f"Generation not found: {record.id}")
        if current.status.is_terminal:
            raise PersistenceError(
                f"Generation {record.id} is {current.status.value} and cannot be modified"
            )
        self._records[record.id] = record
        return record

    async def get(self, generation_id: str) -> Generation | None:
        return self._records.get(generation_id)

    async def list_for_shot(self, shot_id: str) -> list[Generation]:
        return [r for r in self._records.values() if r.shot_id == shot_id]

    def __len__(self) -> int:
        return len(self._records)


class InMemoryBlobStore:
    """Keeps uploaded bytes in a dict and hands out stable URLs."""

    def __init__(self, base_url: str = "memory://blobs"):
        self.base_url = base_url.rstrip("/")
        self.objects: dict[str, tuple[bytes, str]] = {}

    async def put(self, data: bytes, content_type: str, path: str | None = None) -> str:
        path = (path or default_object_path(data, content_type)).lstrip("/")
        self.objects[path] = (data, content_type)
        return f"{self.base_url}/{path}"


@dataclass
class UsageEvent:
    principal: str
    operation: str
    cost: int
    film_id: str | None = None
    at: datetime = field(default_factory=utcnow)


class InMemoryUsageLogger:
    def __init__(self):
        self.events: list[UsageEvent] = []

    async def log(
        self,
        principal: str,
        operation: str,
        cost: int,
        film_id: str | None = None,
    ) -> None:
        self.events.append(UsageEvent(principal, operation, cost, film_id))

    def total(self, principal: str) -> int:
        return sum(e.cost for e in self.events if e.principal == principal)


class StaticAuthGate:
    """Maps bearer tokens to principals from a fixed table."""

    def __init__(self, tokens: dict[str, str]):
        self.tokens = dict(tokens)

    async def authorize(self, request: Any) -> str:
        token = getattr(request, "auth_token", None)
        principal = self.tokens.get(token) if token else None
        if principal is None:
            raise UnauthorizedError("Missing or invalid auth token")
        return principal
