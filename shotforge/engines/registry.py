"""Name-to-adapter routing with a stub fallback."""

from __future__ import annotations

from shotforge.common.collaborators import BlobStore
from shotforge.common.config import Settings
from shotforge.common.logging import get_logger
from shotforge.engines.base import EngineAdapter
from shotforge.engines.google import GoogleEngineAdapter
from shotforge.engines.http import RetryingHttpClient
from shotforge.engines.stub import StubEngineAdapter

logger = get_logger(__name__)

# Routing names that the compiler may emit and the Google adapter serves
GOOGLE_ALIASES = ("veo_3.1", "veo_3", "veo_2", "imagen_4")


class EngineRegistry:
    """Resolves routing hints to adapters.

    Resolution order is preferred, then fallback, then the stub, so a
    dispatch never fails just because a backend is not configured.
    """

    def __init__(self, default: EngineAdapter | None = None):
        self._adapters: dict[str, EngineAdapter] = {}
        self.default = default or StubEngineAdapter()

    def register(self, adapter: EngineAdapter, aliases: tuple[str, ...] = ()) -> None:
        for key in (adapter.name, *aliases):
            self._adapters[key] = adapter
        logger.debug("engine_registered", engine=adapter.name, aliases=list(aliases))

    def get(self, name: str | None) -> EngineAdapter | None:
        if not name:
            return None
        return self._adapters.get(name)

    def resolve(self, preferred: str | None, fallback: str | None = None) -> EngineAdapter:
        for name in (preferred, fallback):
            adapter = self.get(name)
            if adapter is not None:
                return adapter

        logger.info(
            "engine_fallback_to_default",
            preferred=preferred,
            fallback=fallback,
            default=self.default.name,
        )
        return self.default

    @property
    def names(self) -> list[str]:
        return sorted(self._adapters)


def build_registry(
    settings: Settings,
    blob_store: BlobStore,
    http: RetryingHttpClient | None = None,
) -> EngineRegistry:
    """Registry with every backend the settings have credentials for."""
    registry = EngineRegistry()

    if settings.has_engine_credentials:
        adapter = GoogleEngineAdapter(settings, blob_store, http=http)
        registry.register(adapter, aliases=GOOGLE_ALIASES)
    else:
        logger.warning("no_engine_credentials", using=registry.default.name)

    return registry
