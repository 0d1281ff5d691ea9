"""Data models for the shotforge generation engine."""

from shotforge.common.models.base import generate_id
from shotforge.common.models.shot import (
    ContentSafetyFlags,
    Film,
    Shot,
)
from shotforge.common.models.context import (
    AssetKind,
    ConsistencyView,
    IdentityToken,
    LockedAsset,
    SceneOverride,
    StyleContext,
)
from shotforge.common.models.payload import (
    AssetReference,
    CinematographySpec,
    CompiledPayload,
    Dynamics,
    ExecutionParams,
    Framing,
    LightingAndGrade,
    LockedAssetBundle,
    Optics,
    ReferenceBundle,
    ReferenceImage,
    RoutingHints,
    SafetyTier,
    SceneSnapshot,
    StyleSnapshot,
    TemporalGuardrails,
)
from shotforge.common.models.generation import (
    DispatchOptions,
    EngineResult,
    EngineScore,
    Generation,
    GenerationMode,
    GenerationPlan,
    GenerationResult,
    GenerationStatus,
    PromptSnapshot,
    TargetRegionSpec,
    can_transition,
)

__all__ = [
    "generate_id",
    # Film / shot
    "ContentSafetyFlags",
    "Film",
    "Shot",
    # Upstream context
    "AssetKind",
    "ConsistencyView",
    "IdentityToken",
    "LockedAsset",
    "SceneOverride",
    "StyleContext",
    # Payload
    "AssetReference",
    "CinematographySpec",
    "CompiledPayload",
    "Dynamics",
    "ExecutionParams",
    "Framing",
    "LightingAndGrade",
    "LockedAssetBundle",
    "Optics",
    "ReferenceBundle",
    "ReferenceImage",
    "RoutingHints",
    "SafetyTier",
    "SceneSnapshot",
    "StyleSnapshot",
    "TemporalGuardrails",
    # Generation
    "DispatchOptions",
    "EngineResult",
    "EngineScore",
    "Generation",
    "GenerationMode",
    "GenerationPlan",
    "GenerationResult",
    "GenerationStatus",
    "PromptSnapshot",
    "TargetRegionSpec",
    "can_transition",
]
