"""Generation orchestrator.

Turns a dispatch request into exactly one generation record and drives it
through ``created → anchoring | animating | repairing → complete | failed``.
Engine failures never escape `dispatch`; they end up on the record and on the
returned `GenerationResult`.
"""

from __future__ import annotations

import asyncio

from shotforge.common.collaborators import GenerationStore, UsageLogger
from shotforge.common.config import Settings, get_settings
from shotforge.common.errors import (
    ErrorKind,
    GenerationCancelledError,
    InvalidRequestError,
    NotFoundError,
    PersistenceError,
    ShotforgeError,
)
from shotforge.common.logging import (
    bind_generation_context,
    clear_generation_context,
    get_logger,
)
from shotforge.common.models import (
    CompiledPayload,
    DispatchOptions,
    EngineResult,
    Generation,
    GenerationMode,
    GenerationPlan,
    GenerationResult,
    GenerationStatus,
    PromptSnapshot,
    ReferenceBundle,
    TargetRegionSpec,
)
from shotforge.compiler import PayloadCompiler, hash_payload
from shotforge.engines.base import CallContext, EngineAdapter
from shotforge.engines.registry import EngineRegistry

logger = get_logger(__name__)


def repair_hint(repair_target: str) -> str:
    return f"Regenerate this shot, focusing on fixing the {repair_target}."


class GenerationOrchestrator:
    """Dispatches compiled payloads to engines and records the outcome."""

    def __init__(
        self,
        compiler: PayloadCompiler,
        registry: EngineRegistry,
        store: GenerationStore,
        usage: UsageLogger | None = None,
        settings: Settings | None = None,
    ):
        self.compiler = compiler
        self.registry = registry
        self.store = store
        self.usage = usage
        self.settings = settings or get_settings()

    def credits_for(self, mode: GenerationMode) -> int:
        return {
            GenerationMode.ANCHOR: self.settings.anchor_credits,
            GenerationMode.ANIMATE: self.settings.animate_credits,
            GenerationMode.TARGETED_EDIT: self.settings.targeted_edit_credits,
        }[mode]

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def dispatch(
        self,
        shot_id: str,
        mode: GenerationMode | str,
        options: DispatchOptions | None = None,
        *,
        principal: str,
        cancel_event: asyncio.Event | None = None,
    ) -> GenerationResult:
        """
        Compile a shot and run one generation for it.

        Args:
            shot_id: Shot to generate
            mode: anchor, animate or targeted_edit
            options: Per-dispatch options
            principal: Caller identity, used for usage accounting
            cancel_event: Set to cancel the adapter call

        Returns:
            GenerationResult for the terminal record

        Raises:
            InvalidRequestError: Request rejected before any record was created
            NotFoundError: Shot or film does not exist
            UpstreamUnavailableError: Film lookup failed
            PersistenceError: The generation store rejected a write
        """
        options = options or DispatchOptions()
        mode = _parse_mode(mode)
        if not shot_id:
            raise InvalidRequestError("shot_id is required")
        if mode.requires_parent:
            await self._validate_parent(shot_id, mode, options)

        payload = await self.compiler.compile(shot_id)
        compile_hash = hash_payload(payload)

        routing = payload.routing
        adapter = self.registry.resolve(routing.preferred_engine, routing.fallback_engine)
        if not getattr(adapter.capabilities, mode.value):
            raise InvalidRequestError(f"Engine {adapter.name} does not support {mode.value}")

        references = ReferenceBundle.from_payload(payload)
        record = self._new_record(payload, compile_hash, adapter, mode, options, references)
        record = await self._insert(record.start())

        bind_generation_context(generation_id=record.id, shot_id=shot_id, mode=mode.value)
        try:
            logger.info(
                "generation_dispatched",
                engine=adapter.name,
                compile_hash=compile_hash,
                status=record.status.value,
            )
            ctx = CallContext.with_timeout(options.deadline_seconds, cancel_event)
            try:
                result = await self._invoke(adapter, record, payload, references, options, ctx)
            except asyncio.CancelledError:
                await self._persist(record.fail("Generation cancelled", ErrorKind.CANCELLED))
                logger.warning("generation_cancelled", reason="task_cancelled")
                raise
            except ShotforgeError as e:
                return await self._record_failure(record, e)
            except Exception as e:
                logger.exception("generation_unexpected_error", error=str(e))
                failed = record.fail(f"Unexpected engine failure: {e}", ErrorKind.BACKEND_REJECTED)
                return GenerationResult.from_record(await self._persist(failed))

            if not result.output_urls:
                failed = record.fail("Engine returned no outputs", ErrorKind.BACKEND_REJECTED)
                return GenerationResult.from_record(await self._persist(failed))

            completed = await self._persist(record.complete(result))
            logger.info("generation_complete", **completed.summary(), seed=completed.seed)
            await self._log_usage(principal, completed)
            return GenerationResult.from_record(completed)
        finally:
            clear_generation_context("generation_id", "shot_id", "mode")

    async def _invoke(
        self,
        adapter: EngineAdapter,
        record: Generation,
        payload: CompiledPayload,
        references: ReferenceBundle,
        options: DispatchOptions,
        ctx: CallContext,
    ) -> EngineResult:
        call = self._call_adapter(adapter, record, payload, references, options, ctx)
        remaining = ctx.remaining()
        if remaining is None:
            return await call
        try:
            return await asyncio.wait_for(call, timeout=remaining)
        except asyncio.TimeoutError as e:
            raise GenerationCancelledError("Generation deadline exceeded") from e

    async def _call_adapter(
        self,
        adapter: EngineAdapter,
        record: Generation,
        payload: CompiledPayload,
        references: ReferenceBundle,
        options: DispatchOptions,
        ctx: CallContext,
    ) -> EngineResult:
        plan = record.plan
        if record.mode == GenerationMode.ANCHOR:
            return await adapter.generate_anchor(
                payload, references, plan.anchor_count, seed=options.seed, ctx=ctx
            )
        if record.mode == GenerationMode.ANIMATE:
            return await adapter.animate_from_anchor(
                options.anchor_url,
                payload,
                references,
                plan.duration_seconds,
                seed=options.seed,
                ctx=ctx,
            )
        return await adapter.targeted_edit(
            options.anchor_url,
            options.target_spec or TargetRegionSpec(),
            _prompt_delta(payload, options, plan.repair_target),
            seed=options.seed,
            ctx=ctx,
        )

    async def _validate_parent(
        self,
        shot_id: str,
        mode: GenerationMode,
        options: DispatchOptions,
    ) -> Generation:
        if not options.anchor_url:
            raise InvalidRequestError(f"{mode.value} requires an anchor_url")
        if not options.parent_generation_id:
            raise InvalidRequestError(f"{mode.value} requires a parent_generation_id")

        parent = await self.store.get(options.parent_generation_id)
        if parent is None:
            raise InvalidRequestError(
                f"Parent generation not found: {options.parent_generation_id}"
            )
        if parent.shot_id != shot_id:
            raise InvalidRequestError(
                f"Parent generation {parent.id} belongs to shot {parent.shot_id}"
            )
        if parent.status != GenerationStatus.COMPLETE:
            raise InvalidRequestError(
                f"Parent generation {parent.id} is {parent.status.value}, not complete"
            )
        if options.anchor_url not in parent.output_urls:
            raise InvalidRequestError(
                f"anchor_url is not an output of parent generation {parent.id}"
            )
        if mode == GenerationMode.ANIMATE and parent.mode == GenerationMode.ANIMATE:
            raise InvalidRequestError("Cannot animate from a video output")
        return parent

    def _new_record(
        self,
        payload: CompiledPayload,
        compile_hash: str,
        adapter: EngineAdapter,
        mode: GenerationMode,
        options: DispatchOptions,
        references: ReferenceBundle,
    ) -> Generation:
        caps = adapter.capabilities
        anchor_count = None
        duration = None
        repair_target = None

        if mode == GenerationMode.ANCHOR:
            requested = options.anchor_count or self.settings.default_anchor_count
            anchor_count = min(requested, caps.max_anchor_count)
            if anchor_count < requested:
                logger.info("anchor_count_clamped", requested=requested, allowed=anchor_count)
        elif mode == GenerationMode.ANIMATE:
            requested = options.duration_seconds or payload.execution.duration_seconds
            duration = min(requested, caps.max_duration_seconds)
        else:
            target = options.target_spec or TargetRegionSpec()
            repair_target = options.repair_target or target.region

        return Generation(
            shot_id=payload.shot_id,
            film_id=payload.film_id,
            mode=mode,
            engine=adapter.name,
            compile_hash=compile_hash,
            prompt_snapshot=PromptSnapshot(
                resolved_prompt=payload.resolved_prompt,
                negative_prompt=payload.negative_prompt,
                cinematography=payload.cinematography.model_dump(),
            ),
            reference_urls=references.urls,
            plan=GenerationPlan(
                engine_hint=payload.routing.preferred_engine,
                fallback=payload.routing.fallback_engine,
                mode=mode,
                anchor_count=anchor_count,
                repair_target=repair_target,
                duration_seconds=duration,
            ),
            style_contract_version=payload.style_contract_version,
            parent_generation_id=options.parent_generation_id if mode.requires_parent else None,
        )

    # ------------------------------------------------------------------
    # Persistence and accounting
    # ------------------------------------------------------------------

    async def _insert(self, record: Generation) -> Generation:
        try:
            return await self.store.insert(record)
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError("Failed to create generation record", detail=str(e)) from e

    async def _persist(self, record: Generation) -> Generation:
        try:
            return await self.store.update(record)
        except PersistenceError:
            logger.error("generation_persist_failed", status=record.status.value)
            raise
        except Exception as e:
            logger.error("generation_persist_failed", status=record.status.value, error=str(e))
            raise PersistenceError("Failed to update generation record", detail=str(e)) from e

    async def _record_failure(self, record: Generation, error: ShotforgeError) -> GenerationResult:
        failed = await self._persist(record.fail(error.describe(), error.kind))
        logger.warning(
            "generation_failed",
            error_kind=error.kind.value,
            error=error.describe(),
            recoverable=error.recoverable,
        )
        return GenerationResult.from_record(failed)

    async def _log_usage(self, principal: str, record: Generation) -> None:
        if self.usage is None:
            return
        cost = self.credits_for(record.mode)
        try:
            await self.usage.log(
                principal,
                f"generation_{record.mode.value}",
                cost,
                film_id=record.film_id,
            )
        except Exception as e:
            logger.warning("usage_log_failed", principal=principal, cost=cost, error=str(e))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_generation(self, generation_id: str) -> Generation:
        record = await self.store.get(generation_id)
        if record is None:
            raise NotFoundError(f"Generation not found: {generation_id}")
        return record

    async def list_generations(self, shot_id: str) -> list[Generation]:
        records = await self.store.list_for_shot(shot_id)
        return sorted(records, key=lambda r: r.created_at)

    async def lineage(self, generation_id: str) -> list[Generation]:
        """Chain from ``generation_id`` back to its root anchor, newest first.

        Raises:
            NotFoundError: If the starting generation does not exist
            PersistenceError: If the parent links form a cycle
        """
        chain = [await self.get_generation(generation_id)]
        seen = {generation_id}

        while chain[-1].parent_generation_id:
            parent_id = chain[-1].parent_generation_id
            if parent_id in seen:
                raise PersistenceError(f"Lineage cycle detected at generation {parent_id}")
            parent = await self.store.get(parent_id)
            if parent is None:
                logger.warning("lineage_broken", generation_id=chain[-1].id, missing=parent_id)
                break
            seen.add(parent_id)
            chain.append(parent)

        return chain


def _parse_mode(mode: GenerationMode | str) -> GenerationMode:
    try:
        return GenerationMode(mode)
    except ValueError as e:
        raise InvalidRequestError(f"Unknown generation mode: {mode}") from e


def _prompt_delta(
    payload: CompiledPayload,
    options: DispatchOptions,
    repair_target: str | None,
) -> str:
    if options.prompt_delta:
        return options.prompt_delta
    return f"{payload.resolved_prompt} {repair_hint(repair_target or 'general')}"
