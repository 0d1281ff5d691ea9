"""Payload compiler: one shot plus its upstream context in, one CompiledPayload out.

`compile_payload` is the pure core. `PayloadCompiler` gathers the inputs from
the upstream providers and degrades to defaults when an optional one is
missing or unreachable.
"""

from __future__ import annotations

import asyncio
import hashlib
from dataclasses import dataclass
from typing import Any

from shotforge.common.collaborators import (
    FilmProvider,
    IdentityRegistry,
    LockedAssetProvider,
    SceneOverrideProvider,
    ShotProvider,
    StyleContextProvider,
)
from shotforge.common.config import Settings
from shotforge.common.errors import NotFoundError, UpstreamUnavailableError
from shotforge.common.logging import get_logger
from shotforge.common.models import (
    AssetKind,
    AssetReference,
    CinematographySpec,
    CompiledPayload,
    ExecutionParams,
    Film,
    IdentityToken,
    LockedAsset,
    LockedAssetBundle,
    RoutingHints,
    SceneOverride,
    SceneSnapshot,
    Shot,
    StyleContext,
    StyleSnapshot,
    TemporalGuardrails,
)
from shotforge.compiler.cinematography import resolve_cinematography
from shotforge.compiler.guardrails import (
    DEFAULT_NEGATIVE_BASE,
    build_anachronism_blacklist,
    derive_safety_tier,
    merge_negative_terms,
    split_terms,
)
from shotforge.compiler.tokens import (
    extract_ref_codes,
    resolve_identity_tokens,
    substitute_tokens,
)

logger = get_logger(__name__)

SEED_MIN = 1_000_000
SEED_SPAN = 9_000_000

ASSET_SECTION_LABELS = [
    (AssetKind.LOCATION, "LOCATION"),
    (AssetKind.PROP, "PROPS"),
    (AssetKind.VEHICLE, "VEHICLES"),
    (AssetKind.WARDROBE, "WARDROBE"),
]


@dataclass(frozen=True)
class CompileDefaults:
    """Values used when neither the film nor the caller supplies one."""

    duration_seconds: int = 5
    fps: int = 24
    resolution: str = "4K"
    preferred_engine: str = "veo_3.1"
    fallback_engine: str | None = "kling_3"
    target_tier: str = "commercial_heavyweight"

    @classmethod
    def from_settings(cls, settings: Settings) -> "CompileDefaults":
        return cls(
            duration_seconds=settings.default_duration_seconds,
            fps=settings.default_fps,
            resolution=settings.default_resolution,
            preferred_engine=settings.preferred_engine,
            fallback_engine=settings.fallback_engine or None,
            target_tier=settings.target_tier,
        )


def derive_seed(shot_id: str) -> int:
    """Stable seven-digit seed for a shot."""
    digest = hashlib.sha256(shot_id.encode("utf-8")).hexdigest()
    return SEED_MIN + int(digest[:12], 16) % SEED_SPAN


def bundle_locked_assets(assets: list[LockedAsset]) -> LockedAssetBundle:
    groups: dict[AssetKind, list[AssetReference]] = {kind: [] for kind in AssetKind}
    for asset in assets:
        if not asset.locked:
            continue
        groups[asset.kind].append(
            AssetReference(
                name=asset.name,
                kind=asset.kind,
                description=asset.description,
                image_url=asset.image_url,
                character_id=asset.character_id,
            )
        )
    return LockedAssetBundle(
        locations=groups[AssetKind.LOCATION],
        props=groups[AssetKind.PROP],
        vehicles=groups[AssetKind.VEHICLE],
        wardrobe=groups[AssetKind.WARDROBE],
    )


def build_resolved_prompt(
    shot: Shot,
    cine: CinematographySpec,
    tokens: list[IdentityToken],
    bundle: LockedAssetBundle,
    style: StyleContext | None,
    scene: SceneOverride | None,
) -> str:
    """Assemble the prompt text, most global context first."""
    parts: list[str] = []

    if style is not None:
        if style.visual_dna:
            parts.append(f"VISUAL IDENTITY: {style.visual_dna}")
        if style.genre_palette:
            parts.append(f"COLOR: {style.genre_palette}.")

    if scene is not None:
        if scene.mood:
            parts.append(f"MOOD: {scene.mood}.")
        if scene.color_shift:
            parts.append(f"COLOR SHIFT: {scene.color_shift}.")
        if scene.environment_texture:
            parts.append(f"ENVIRONMENT: {scene.environment_texture}.")

    parts.append(f"{cine.framing.shot_size} shot, {cine.framing.angle.lower()} angle.")

    if shot.action_text:
        parts.append(substitute_tokens(shot.action_text, tokens))

    if cine.dynamics.movement != "Static":
        parts.append(f"{cine.dynamics.movement}.")

    lighting = cine.lighting_and_grade
    parts.append(f"{lighting.setup} lighting, {lighting.color_temp}.")
    parts.append(f"Cinematic, {cine.optics.sensor_profile}, {lighting.film_texture}.")

    if style is not None and style.character_directives:
        for token in tokens:
            directive = style.character_directives.get(token.display_name)
            if token.entity_type == "character" and directive:
                parts.append(f"CHARACTER {token.display_name}: {directive}.")

    groups = {
        AssetKind.LOCATION: bundle.locations,
        AssetKind.PROP: bundle.props,
        AssetKind.VEHICLE: bundle.vehicles,
        AssetKind.WARDROBE: bundle.wardrobe,
    }
    for kind, label in ASSET_SECTION_LABELS:
        assets = groups[kind]
        if assets:
            described = "; ".join(
                f"{a.name} ({a.description})" if a.description else a.name
                for a in assets
            )
            parts.append(f"{label}: {described}.")

    if shot.video_prompt_base:
        parts.append(shot.video_prompt_base)

    return " ".join(parts)


def compile_payload(
    shot: Shot,
    film: Film,
    style: StyleContext | None = None,
    scene: SceneOverride | None = None,
    locked_assets: list[LockedAsset] | None = None,
    identity_tokens: list[IdentityToken] | None = None,
    defaults: CompileDefaults | None = None,
) -> CompiledPayload:
    """Compile a shot and its context into a self-describing payload.

    Pure: the same inputs always produce an equal payload.
    """
    defaults = defaults or CompileDefaults()
    locked_assets = locked_assets or []

    tokens = resolve_identity_tokens(
        extract_ref_codes(shot.action_text),
        identity_tokens or [],
        locked_assets,
    )
    bundle = bundle_locked_assets(locked_assets)
    cine = resolve_cinematography(style, scene, shot.camera_language)

    blacklist = build_anachronism_blacklist(film.time_period)
    negative_base = (style.negative_prompt_base if style else "") or DEFAULT_NEGATIVE_BASE
    negative_terms = merge_negative_terms(
        split_terms(negative_base),
        blacklist,
        split_terms(scene.custom_negative if scene else None),
    )

    execution = ExecutionParams(
        duration_seconds=defaults.duration_seconds,
        fps=film.frame_rate or defaults.fps,
        resolution=film.resolution or defaults.resolution,
        format_type=film.format_type,
        seed=None if shot.video_url else derive_seed(shot.id),
    )

    routing = RoutingHints(
        preferred_engine=defaults.preferred_engine,
        fallback_engine=defaults.fallback_engine,
        target_tier=defaults.target_tier,
        safety_tier=derive_safety_tier(film.content_safety),
    )

    style_snapshot = None
    if style is not None:
        style_snapshot = StyleSnapshot(
            version=style.version,
            visual_dna=style.visual_dna,
            genre_palette=style.genre_palette,
            lighting_default=style.lighting_default,
            texture_default=style.texture_default,
        )

    scene_snapshot = None
    if scene is not None:
        scene_snapshot = SceneSnapshot(
            scene_number=scene.scene_number,
            mood=scene.mood,
            lighting=scene.lighting_override,
            color_shift=scene.color_shift,
            environment_texture=scene.environment_texture,
            time_of_day_grade=scene.time_of_day_grade,
            camera_feel=scene.camera_feel,
        )

    return CompiledPayload(
        shot_id=shot.id,
        film_id=shot.film_id,
        style_contract_version=style.version if style else None,
        raw_action=shot.action_text,
        resolved_prompt=build_resolved_prompt(shot, cine, tokens, bundle, style, scene),
        negative_terms=negative_terms,
        cinematography=cine,
        temporal_guardrails=TemporalGuardrails(
            anchor_period=film.time_period,
            anachronism_blacklist=blacklist,
        ),
        identity_tokens=tokens,
        locked_assets=bundle,
        execution=execution,
        routing=routing,
        style_context=style_snapshot,
        scene_context=scene_snapshot,
    )


class PayloadCompiler:
    """Fetches a shot's upstream context and compiles it."""

    def __init__(
        self,
        shots: ShotProvider,
        films: FilmProvider,
        styles: StyleContextProvider,
        scenes: SceneOverrideProvider,
        assets: LockedAssetProvider,
        identities: IdentityRegistry,
        defaults: CompileDefaults | None = None,
    ):
        self.shots = shots
        self.films = films
        self.styles = styles
        self.scenes = scenes
        self.assets = assets
        self.identities = identities
        self.defaults = defaults or CompileDefaults()

    async def get_shot(self, shot_id: str) -> Shot:
        shot = await self.shots.get(shot_id)
        if shot is None:
            raise NotFoundError(f"Shot not found: {shot_id}")
        return shot

    async def compile(self, shot_id: str) -> CompiledPayload:
        """Compile the payload for a shot by id.

        Raises:
            NotFoundError: If the shot or its film does not exist
            UpstreamUnavailableError: If the film lookup itself fails
        """
        shot = await self.get_shot(shot_id)
        return await self.compile_shot(shot)

    async def compile_shot(self, shot: Shot) -> CompiledPayload:
        try:
            film = await self.films.get(shot.film_id)
        except Exception as e:
            raise UpstreamUnavailableError(
                f"Film lookup failed for {shot.film_id}", detail=str(e)
            ) from e
        if film is None:
            raise NotFoundError(f"Film not found: {shot.film_id}")

        codes = extract_ref_codes(shot.action_text)
        style, scene, assets, tokens = await asyncio.gather(
            self._optional("style_context", self.styles.get(shot.film_id), None),
            self._optional(
                "scene_override",
                self.scenes.get(shot.film_id, shot.scene_number),
                None,
            ),
            self._optional("locked_assets", self.assets.list(shot.film_id), []),
            self._optional(
                "identity_registry",
                self.identities.resolve(shot.film_id, codes),
                [],
            )
            if codes
            else _nothing([]),
        )

        payload = compile_payload(
            shot,
            film,
            style=style,
            scene=scene,
            locked_assets=assets,
            identity_tokens=tokens,
            defaults=self.defaults,
        )

        stale = [t.code for t in payload.identity_tokens if t.is_dirty]
        if stale:
            logger.warning("stale_identity_references", shot_id=shot.id, codes=stale)

        dropped = [c for c in codes if c not in {t.code for t in payload.identity_tokens}]
        logger.info(
            "payload_compiled",
            **payload.summary(),
            unresolved_codes=dropped,
        )
        return payload

    async def _optional(self, source: str, call: Any, default: Any) -> Any:
        try:
            result = await call
        except Exception as e:
            logger.warning("upstream_degraded", source=source, error=str(e))
            return default
        return default if result is None else result


async def _nothing(value: Any) -> Any:
    return value
