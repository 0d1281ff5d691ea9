"""Interfaces of the collaborators the engine depends on.

Concrete implementations live outside this package (database, object
storage, auth, billing); `shotforge.orchestration.memory` provides
in-process versions for tests and local runs.
"""

from __future__ import annotations

import hashlib
import mimetypes
from typing import Any, Protocol, runtime_checkable

from shotforge.common.models import (
    Film,
    Generation,
    IdentityToken,
    LockedAsset,
    SceneOverride,
    Shot,
    StyleContext,
)


@runtime_checkable
class ShotProvider(Protocol):
    async def get(self, shot_id: str) -> Shot | None: ...


@runtime_checkable
class FilmProvider(Protocol):
    async def get(self, film_id: str) -> Film | None: ...


@runtime_checkable
class StyleContextProvider(Protocol):
    async def get(self, film_id: str) -> StyleContext | None: ...


@runtime_checkable
class SceneOverrideProvider(Protocol):
    async def get(self, film_id: str, scene_number: int) -> SceneOverride | None: ...


@runtime_checkable
class LockedAssetProvider(Protocol):
    async def list(self, film_id: str) -> list[LockedAsset]: ...


@runtime_checkable
class IdentityRegistry(Protocol):
    async def resolve(self, film_id: str, ref_codes: list[str]) -> list[IdentityToken]: ...


def default_object_path(data: bytes, content_type: str, prefix: str = "generations") -> str:
    """Content-addressed path, so re-uploading the same bytes is idempotent."""
    digest = hashlib.sha256(data).hexdigest()
    extension = mimetypes.guess_extension(content_type) or ".bin"
    return f"{prefix.rstrip('/')}/{digest[:2]}/{digest}{extension}"


@runtime_checkable
class BlobStore(Protocol):
    async def put(self, data: bytes, content_type: str, path: str | None = None) -> str:
        """Store bytes and return a public URL."""
        ...


@runtime_checkable
class GenerationStore(Protocol):
    """Atomic single-record persistence for generation records."""

    async def insert(self, record: Generation) -> Generation: ...

    async def update(self, record: Generation) -> Generation: ...

    async def get(self, generation_id: str) -> Generation | None: ...

    async def list_for_shot(self, shot_id: str) -> list[Generation]: ...


@runtime_checkable
class UsageLogger(Protocol):
    async def log(
        self,
        principal: str,
        operation: str,
        cost: int,
        film_id: str | None = None,
    ) -> None: ...


@runtime_checkable
class AuthGate(Protocol):
    async def authorize(self, request: Any) -> str:
        """Return the calling principal, or raise UnauthorizedError."""
        ...
