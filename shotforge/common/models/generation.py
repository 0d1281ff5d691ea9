"""Generation records and the state machine they follow."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from shotforge.common.errors import ErrorKind, IllegalTransitionError
from shotforge.common.models.base import generate_id, utcnow


class GenerationMode(str, Enum):
    """What a generation asks the engine to do."""

    ANCHOR = "anchor"
    ANIMATE = "animate"
    TARGETED_EDIT = "targeted_edit"

    @property
    def requires_parent(self) -> bool:
        return self is not GenerationMode.ANCHOR


class GenerationStatus(str, Enum):
    """Lifecycle status of a generation record."""

    CREATED = "created"
    ANCHORING = "anchoring"
    ANIMATING = "animating"
    REPAIRING = "repairing"
    COMPLETE = "complete"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def is_in_progress(self) -> bool:
        return self in IN_PROGRESS_STATUSES


TERMINAL_STATUSES = frozenset({GenerationStatus.COMPLETE, GenerationStatus.FAILED})
IN_PROGRESS_STATUSES = frozenset(
    {GenerationStatus.ANCHORING, GenerationStatus.ANIMATING, GenerationStatus.REPAIRING}
)

IN_PROGRESS_STATUS_FOR_MODE: dict[GenerationMode, GenerationStatus] = {
    GenerationMode.ANCHOR: GenerationStatus.ANCHORING,
    GenerationMode.ANIMATE: GenerationStatus.ANIMATING,
    GenerationMode.TARGETED_EDIT: GenerationStatus.REPAIRING,
}

LEGAL_TRANSITIONS: dict[GenerationStatus, frozenset[GenerationStatus]] = {
    GenerationStatus.CREATED: IN_PROGRESS_STATUSES,
    GenerationStatus.ANCHORING: TERMINAL_STATUSES,
    GenerationStatus.ANIMATING: TERMINAL_STATUSES,
    GenerationStatus.REPAIRING: TERMINAL_STATUSES,
    GenerationStatus.COMPLETE: frozenset(),
    GenerationStatus.FAILED: frozenset(),
}


def can_transition(current: GenerationStatus, target: GenerationStatus) -> bool:
    return target in LEGAL_TRANSITIONS[current]


# ============================================================================
# Engine-facing models
# ============================================================================


class TargetRegionSpec(BaseModel):
    """Region of an existing output to regenerate."""

    model_config = ConfigDict(frozen=True)

    region: str = "general"
    asset_type: str = "general"
    ref_url: str | None = None


class EngineScore(BaseModel):
    model_config = ConfigDict(frozen=True)

    identity: float | None = None
    style: float | None = None
    overall: float | None = None


class EngineResult(BaseModel):
    """Output of one adapter call."""

    model_config = ConfigDict(frozen=True)

    output_urls: list[str]
    seed: int
    engine: str
    scores: list[EngineScore] | None = None


# ============================================================================
# Generation record
# ============================================================================


class PromptSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    resolved_prompt: str
    negative_prompt: str
    cinematography: dict[str, Any] = Field(default_factory=dict)


class GenerationPlan(BaseModel):
    model_config = ConfigDict(frozen=True)

    engine_hint: str
    fallback: str | None = None
    mode: GenerationMode
    anchor_count: int | None = None
    repair_target: str | None = None
    duration_seconds: int | None = None


class Generation(BaseModel):
    """One attempt to realize a compiled payload with one engine and mode."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: generate_id("gen"))
    shot_id: str
    film_id: str
    mode: GenerationMode
    engine: str
    status: GenerationStatus = GenerationStatus.CREATED

    # Compile artifacts
    compile_hash: str
    prompt_snapshot: PromptSnapshot
    reference_urls: list[str] = Field(default_factory=list)
    plan: GenerationPlan
    style_contract_version: int | None = None

    # Lineage
    parent_generation_id: str | None = None

    # Outputs
    output_urls: list[str] = Field(default_factory=list)
    seed: int | None = None
    scores: list[EngineScore] | None = None

    # Failure
    last_error: str | None = None
    error_kind: ErrorKind | None = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def transition(self, target: GenerationStatus, **updates: Any) -> Generation:
        """Return a copy moved to ``target``.

        Raises:
            IllegalTransitionError: If the state machine forbids the move
        """
        if not can_transition(self.status, target):
            raise IllegalTransitionError(
                f"Generation {self.id} cannot move from "
                f"{self.status.value} to {target.value}"
            )
        return self.model_copy(
            update={**updates, "status": target, "updated_at": utcnow()}
        )

    def start(self) -> Generation:
        return self.transition(IN_PROGRESS_STATUS_FOR_MODE[self.mode])

    def complete(self, result: EngineResult) -> Generation:
        return self.transition(
            GenerationStatus.COMPLETE,
            output_urls=list(result.output_urls),
            seed=result.seed,
            engine=result.engine,
            scores=result.scores,
        )

    def fail(self, error: str, kind: ErrorKind) -> Generation:
        return self.transition(
            GenerationStatus.FAILED,
            last_error=error,
            error_kind=kind,
        )

    def summary(self) -> dict:
        """Return summary for logging."""
        return {
            "id": self.id,
            "shot_id": self.shot_id,
            "mode": self.mode.value,
            "engine": self.engine,
            "status": self.status.value,
            "outputs": len(self.output_urls),
        }


# ============================================================================
# Dispatch request / result
# ============================================================================


class DispatchOptions(BaseModel):
    """Caller-supplied options for one dispatch."""

    model_config = ConfigDict(frozen=True)

    anchor_count: int | None = Field(default=None, ge=1)
    anchor_url: str | None = None
    parent_generation_id: str | None = None
    target_spec: TargetRegionSpec | None = None
    prompt_delta: str | None = None
    repair_target: str | None = None
    duration_seconds: int | None = Field(default=None, ge=1)
    seed: int | None = None

    # Overall budget for the adapter call, in seconds
    deadline_seconds: float | None = Field(default=None, gt=0)


@dataclass
class GenerationResult:
    """What a dispatch hands back to its caller."""

    generation_id: str
    mode: GenerationMode
    status: GenerationStatus
    compile_hash: str
    engine: str
    output_urls: list[str] = field(default_factory=list)
    seed: int | None = None
    scores: list[EngineScore] | None = None
    error_kind: ErrorKind | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == GenerationStatus.COMPLETE

    @classmethod
    def from_record(cls, record: Generation) -> GenerationResult:
        return cls(
            generation_id=record.id,
            mode=record.mode,
            status=record.status,
            compile_hash=record.compile_hash,
            engine=record.engine,
            output_urls=list(record.output_urls),
            seed=record.seed,
            scores=record.scores,
            error_kind=record.error_kind,
            error=record.last_error,
        )

    def to_dict(self) -> dict:
        return {
            "generation_id": self.generation_id,
            "mode": self.mode.value,
            "status": self.status.value,
            "compile_hash": self.compile_hash,
            "engine": self.engine,
            "output_urls": self.output_urls,
            "seed": self.seed,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "error": self.error,
        }
