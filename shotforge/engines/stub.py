"""Stub engine: deterministic placeholder outputs, no network.

Used in tests and whenever no backend credentials are configured, so a
dispatch degrades to a no-op instead of failing.
"""

from __future__ import annotations

from shotforge.common.logging import get_logger
from shotforge.common.models import (
    CompiledPayload,
    EngineResult,
    ReferenceBundle,
    TargetRegionSpec,
)
from shotforge.compiler.payload_compiler import derive_seed
from shotforge.engines.base import CallContext, EngineAdapter, EngineCapabilities

logger = get_logger(__name__)

PLACEHOLDER_BASE_URL = "https://placeholder.generation"


class StubEngineAdapter(EngineAdapter):
    """Adapter that returns placeholder URLs derived from the seed."""

    capabilities = EngineCapabilities(
        max_anchor_count=16,
        max_duration_seconds=60,
        requires_network=False,
    )

    def __init__(self, base_url: str = PLACEHOLDER_BASE_URL):
        self.base_url = base_url.rstrip("/")

    @property
    def name(self) -> str:
        return "stub"

    async def generate_anchor(
        self,
        payload: CompiledPayload,
        reference_bundle: ReferenceBundle,
        count: int,
        seed: int | None = None,
        ctx: CallContext | None = None,
    ) -> EngineResult:
        if ctx:
            ctx.check()
        s = _pick_seed(seed, payload.execution.seed, payload.shot_id)
        logger.debug("stub_anchor", shot_id=payload.shot_id, count=count, seed=s)
        return EngineResult(
            output_urls=[f"{self.base_url}/anchor-{s}-{i}.png" for i in range(count)],
            seed=s,
            engine="stub_anchor",
        )

    async def animate_from_anchor(
        self,
        anchor_url: str,
        payload: CompiledPayload,
        reference_bundle: ReferenceBundle,
        duration_seconds: int,
        seed: int | None = None,
        ctx: CallContext | None = None,
    ) -> EngineResult:
        if ctx:
            ctx.check()
        s = _pick_seed(seed, payload.execution.seed, anchor_url)
        return EngineResult(
            output_urls=[f"{self.base_url}/clip-{s}.mp4"],
            seed=s,
            engine="stub_animate",
        )

    async def targeted_edit(
        self,
        source_url: str,
        target_spec: TargetRegionSpec,
        prompt_delta: str,
        seed: int | None = None,
        ctx: CallContext | None = None,
    ) -> EngineResult:
        if ctx:
            ctx.check()
        s = _pick_seed(seed, None, f"{source_url}|{target_spec.region}|{prompt_delta}")
        return EngineResult(
            output_urls=[f"{self.base_url}/edit-{s}.png"],
            seed=s,
            engine="stub_edit",
        )


def _pick_seed(explicit: int | None, compiled: int | None, key: str) -> int:
    if explicit is not None:
        return explicit
    if compiled is not None:
        return compiled
    return derive_seed(key)
