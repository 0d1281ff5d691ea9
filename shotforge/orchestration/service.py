"""Authenticated entry points and wiring."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field

from shotforge.common.collaborators import (
    AuthGate,
    BlobStore,
    FilmProvider,
    GenerationStore,
    IdentityRegistry,
    LockedAssetProvider,
    SceneOverrideProvider,
    ShotProvider,
    StyleContextProvider,
    UsageLogger,
)
from shotforge.common.config import Settings, get_settings
from shotforge.common.logging import get_logger
from shotforge.common.models import (
    CompiledPayload,
    DispatchOptions,
    GenerationMode,
    GenerationResult,
)
from shotforge.compiler import CompileDefaults, PayloadCompiler, hash_payload
from shotforge.engines.http import RetryingHttpClient
from shotforge.engines.registry import EngineRegistry, build_registry
from shotforge.orchestration.memory import (
    InMemoryBlobStore,
    InMemoryFilms,
    InMemoryGenerationStore,
    InMemoryIdentityRegistry,
    InMemoryLockedAssets,
    InMemorySceneOverrides,
    InMemoryShots,
    InMemoryStyleContexts,
    InMemoryUsageLogger,
)
from shotforge.orchestration.orchestrator import GenerationOrchestrator
from shotforge.storage.blob import HttpBlobStore

logger = get_logger(__name__)


class CompileRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    auth_token: str | None = None
    shot_id: str


class DispatchRequest(BaseModel):
    """One authenticated dispatch call."""

    model_config = ConfigDict(frozen=True)

    auth_token: str | None = None
    shot_id: str
    mode: GenerationMode
    options: DispatchOptions = Field(default_factory=DispatchOptions)


@dataclass
class CompileResult:
    payload: CompiledPayload
    compile_hash: str


class GenerationService:
    """Compile and dispatch behind an auth gate, with usage accounting."""

    def __init__(
        self,
        compiler: PayloadCompiler,
        orchestrator: GenerationOrchestrator,
        auth: AuthGate,
        usage: UsageLogger | None = None,
        settings: Settings | None = None,
    ):
        self.compiler = compiler
        self.orchestrator = orchestrator
        self.auth = auth
        self.usage = usage
        self.settings = settings or get_settings()

    async def compile(self, request: CompileRequest) -> CompileResult:
        """
        Compile a shot for an authorized caller.

        Raises:
            UnauthorizedError: If the auth gate rejects the request
            NotFoundError: If the shot or its film does not exist
        """
        principal = await self.auth.authorize(request)
        payload = await self.compiler.compile(request.shot_id)
        compile_hash = hash_payload(payload)

        if self.usage is not None:
            try:
                await self.usage.log(
                    principal,
                    "compile_payload",
                    self.settings.compile_credits,
                    film_id=payload.film_id,
                )
            except Exception as e:
                logger.warning("usage_log_failed", principal=principal, error=str(e))

        return CompileResult(payload=payload, compile_hash=compile_hash)

    async def dispatch(
        self,
        request: DispatchRequest,
        cancel_event: asyncio.Event | None = None,
    ) -> GenerationResult:
        principal = await self.auth.authorize(request)
        return await self.orchestrator.dispatch(
            request.shot_id,
            request.mode,
            request.options,
            principal=principal,
            cancel_event=cancel_event,
        )


def build_service(
    auth: AuthGate,
    settings: Settings | None = None,
    *,
    shots: ShotProvider | None = None,
    films: FilmProvider | None = None,
    styles: StyleContextProvider | None = None,
    scenes: SceneOverrideProvider | None = None,
    assets: LockedAssetProvider | None = None,
    identities: IdentityRegistry | None = None,
    store: GenerationStore | None = None,
    blob_store: BlobStore | None = None,
    usage: UsageLogger | None = None,
    registry: EngineRegistry | None = None,
) -> GenerationService:
    """Wire a service from settings; unspecified collaborators are in-memory."""
    settings = settings or get_settings()

    if blob_store is None:
        if settings.has_blob_store:
            blob_store = HttpBlobStore.from_settings(settings)
        else:
            blob_store = InMemoryBlobStore()

    if registry is None:
        registry = build_registry(
            settings, blob_store, http=RetryingHttpClient.from_settings(settings)
        )

    compiler = PayloadCompiler(
        shots=shots if shots is not None else InMemoryShots(),
        films=films if films is not None else InMemoryFilms(),
        styles=styles if styles is not None else InMemoryStyleContexts(),
        scenes=scenes if scenes is not None else InMemorySceneOverrides(),
        assets=assets if assets is not None else InMemoryLockedAssets(),
        identities=identities if identities is not None else InMemoryIdentityRegistry(),
        defaults=CompileDefaults.from_settings(settings),
    )
    if usage is None:
        usage = InMemoryUsageLogger()
    orchestrator = GenerationOrchestrator(
        compiler,
        registry,
        store if store is not None else InMemoryGenerationStore(),
        usage=usage,
        settings=settings,
    )

    logger.info(
        "generation_service_ready",
        engines=registry.names or [registry.default.name],
        blob_store=type(blob_store).__name__,
    )
    return GenerationService(compiler, orchestrator, auth, usage=usage, settings=settings)
