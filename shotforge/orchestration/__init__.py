"""Generation orchestration: state machine, service entry points, in-memory collaborators."""

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
    StaticAuthGate,
    UsageEvent,
)
from shotforge.orchestration.orchestrator import GenerationOrchestrator, repair_hint
from shotforge.orchestration.service import (
    CompileRequest,
    CompileResult,
    DispatchRequest,
    GenerationService,
    build_service,
)

__all__ = [
    # Orchestrator
    "GenerationOrchestrator",
    "repair_hint",
    # Service
    "CompileRequest",
    "CompileResult",
    "DispatchRequest",
    "GenerationService",
    "build_service",
    # In-memory collaborators
    "InMemoryBlobStore",
    "InMemoryFilms",
    "InMemoryGenerationStore",
    "InMemoryIdentityRegistry",
    "InMemoryLockedAssets",
    "InMemorySceneOverrides",
    "InMemoryShots",
    "InMemoryStyleContexts",
    "InMemoryUsageLogger",
    "StaticAuthGate",
    "UsageEvent",
]
