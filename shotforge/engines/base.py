"""Engine adapter interface.

Every generation backend is wrapped in an EngineAdapter. Vendor request and
response shapes stay inside the adapter; the orchestrator only ever sees
CompiledPayload in and EngineResult (or an EngineError) out.
"""

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass

from shotforge.common.errors import GenerationCancelledError
from shotforge.common.models import (
    CompiledPayload,
    EngineResult,
    ReferenceBundle,
    TargetRegionSpec,
)


@dataclass(frozen=True)
class EngineCapabilities:
    """What an adapter can do, declared up front."""

    anchor: bool = True
    animate: bool = True
    targeted_edit: bool = True
    max_anchor_count: int = 4
    max_duration_seconds: int = 8
    requires_network: bool = True


@dataclass
class CallContext:
    """Deadline and cancellation signal for one adapter call.

    `deadline` is a `time.monotonic()` timestamp.
    """

    deadline: float | None = None
    cancel_event: asyncio.Event | None = None

    @classmethod
    def with_timeout(
        cls,
        seconds: float | None,
        cancel_event: asyncio.Event | None = None,
    ) -> "CallContext":
        deadline = time.monotonic() + seconds if seconds is not None else None
        return cls(deadline=deadline, cancel_event=cancel_event)

    def remaining(self) -> float | None:
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def check(self) -> None:
        """Raise if the call was cancelled or is past its deadline."""
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise GenerationCancelledError("Generation cancelled by caller")
        if self.deadline is not None and time.monotonic() >= self.deadline:
            raise GenerationCancelledError("Generation deadline exceeded")


class EngineAdapter(ABC):
    """Abstract base class for generation backends."""

    capabilities: EngineCapabilities = EngineCapabilities()

    @property
    @abstractmethod
    def name(self) -> str:
        """Adapter name for logging and routing."""
        pass

    @abstractmethod
    async def generate_anchor(
        self,
        payload: CompiledPayload,
        reference_bundle: ReferenceBundle,
        count: int,
        seed: int | None = None,
        ctx: CallContext | None = None,
    ) -> EngineResult:
        """Produce ``count`` still-image candidates."""
        pass

    @abstractmethod
    async def animate_from_anchor(
        self,
        anchor_url: str,
        payload: CompiledPayload,
        reference_bundle: ReferenceBundle,
        duration_seconds: int,
        seed: int | None = None,
        ctx: CallContext | None = None,
    ) -> EngineResult:
        """Produce one clip that starts from the chosen anchor."""
        pass

    @abstractmethod
    async def targeted_edit(
        self,
        source_url: str,
        target_spec: TargetRegionSpec,
        prompt_delta: str,
        seed: int | None = None,
        ctx: CallContext | None = None,
    ) -> EngineResult:
        """Regenerate a localized region of an existing output."""
        pass
