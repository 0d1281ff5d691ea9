#!/usr/bin/env python3
"""
Shotforge Demo Script

Compiles a sample shot and runs it through all three generation modes:
1. Compile the shot with its style contract, scene override, locked assets
   and identity tokens
2. Dispatch an anchor (still-image candidates)
3. Dispatch a targeted edit of the first anchor
4. Animate the edited still into a clip
5. Print the lineage and the usage ledger

Without GEMINI_API_KEY every dispatch routes to the stub engine and returns
placeholder URLs. With it, Imagen and Veo are called for real; outputs are
uploaded to the blob store when BLOB_STORE_URL / BLOB_STORE_KEY are set and
kept in memory otherwise.

Usage:
    python scripts/run_demo.py
    python scripts/run_demo.py --json
    python scripts/run_demo.py --mode anchor
    python scripts/run_demo.py --deadline 120
"""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from shotforge.common.config import get_settings
from shotforge.common.errors import ShotforgeError
from shotforge.common.logging import get_logger, setup_logging
from shotforge.common.models import (
    AssetKind,
    ContentSafetyFlags,
    DispatchOptions,
    Film,
    GenerationMode,
    GenerationResult,
    IdentityToken,
    LockedAsset,
    SceneOverride,
    Shot,
    StyleContext,
    TargetRegionSpec,
)
from shotforge.orchestration import (
    CompileRequest,
    DispatchRequest,
    InMemoryFilms,
    InMemoryIdentityRegistry,
    InMemoryLockedAssets,
    InMemorySceneOverrides,
    InMemoryShots,
    InMemoryStyleContexts,
    StaticAuthGate,
    build_service,
)

settings = get_settings()
setup_logging(log_level=settings.log_level, json_logs=settings.json_logs)
logger = get_logger(__name__)

DEMO_TOKEN = "demo-token"
DEMO_PRINCIPAL = "demo_user"


def sample_catalog() -> dict:
    """Upstream collaborators holding one fully-specified shot."""
    film = Film(
        id="film_demo",
        title="The Lamplighter",
        time_period="Victorian London, 1888",
        frame_rate=24,
        frame_width=3840,
        frame_height=1600,
        content_safety=ContentSafetyFlags(violence=True),
    )
    shot = Shot(
        id="shot_demo_01",
        film_id=film.id,
        scene_number=3,
        action_text="{{CHAR_ELIAS}} climbs the ladder and lights the lamp on {{LOC_BRIDGE}}.",
        camera_language="Low angle medium shot, slow push-in, anamorphic",
    )
    style = StyleContext(
        film_id=film.id,
        version=1,
        visual_dna="Gaslit gothic realism, deep shadows, wet reflective surfaces",
        genre_palette="Desaturated teal with amber practicals",
        lighting_default="Low-key",
        texture_default="35mm grain, halation",
        negative_prompt_base="cartoon, oversaturated, morphed faces",
        character_directives={"Elias": "gaunt, soot-streaked face, threadbare wool coat"},
    )
    scene = SceneOverride(
        film_id=film.id,
        scene_number=3,
        mood="Foreboding",
        lighting_override="Practical",
        time_of_day_grade="Moonlight 4100K",
        custom_negative="sunlight",
    )
    assets = [
        LockedAsset(
            name="Blackfriars Bridge",
            kind=AssetKind.LOCATION,
            description="wet cobblestones, cast iron railings, river fog",
            ref_code="LOC_BRIDGE",
        ),
        LockedAsset(name="Brass lamp pole", kind=AssetKind.PROP),
    ]
    tokens = [
        IdentityToken(code="CHAR_ELIAS", entity_type="character", display_name="Elias"),
    ]
    return {
        "shots": InMemoryShots([shot]),
        "films": InMemoryFilms([film]),
        "styles": InMemoryStyleContexts([style]),
        "scenes": InMemorySceneOverrides([scene]),
        "assets": InMemoryLockedAssets({film.id: assets}),
        "identities": InMemoryIdentityRegistry({film.id: tokens}),
    }


def print_result(label: str, result: GenerationResult) -> None:
    icon = "✅" if result.succeeded else "❌"
    print(f"\n{icon} {label}: {result.status.value} via {result.engine}")
    print(f"   generation: {result.generation_id}")
    print(f"   seed:       {result.seed}")
    for url in result.output_urls:
        print(f"   → {url}")
    if result.error:
        print(f"   error ({result.error_kind.value}): {result.error}")


async def run_demo(
    last_mode: GenerationMode = GenerationMode.ANIMATE,
    deadline_seconds: float | None = None,
    as_json: bool = False,
) -> bool:
    """Run the demo flow. Returns True when every dispatch completed."""
    catalog = sample_catalog()
    service = build_service(StaticAuthGate({DEMO_TOKEN: DEMO_PRINCIPAL}), settings, **catalog)
    shot_id = "shot_demo_01"
    results: list[GenerationResult] = []

    print("=" * 60)
    print("SHOTFORGE DEMO")
    print("=" * 60)
    print(f"Engine credentials: {'yes' if settings.has_engine_credentials else 'no (stub)'}")

    compiled = await service.compile(CompileRequest(auth_token=DEMO_TOKEN, shot_id=shot_id))
    payload = compiled.payload
    print(f"\n📝 Compiled {shot_id} (hash {compiled.compile_hash[:12]}…)")
    print(f"   prompt:   {payload.resolved_prompt}")
    print(f"   negative: {payload.negative_prompt}")
    print(f"   safety:   {payload.routing.safety_tier.value}")

    anchor = await service.dispatch(
        DispatchRequest(
            auth_token=DEMO_TOKEN,
            shot_id=shot_id,
            mode=GenerationMode.ANCHOR,
            options=DispatchOptions(deadline_seconds=deadline_seconds),
        )
    )
    results.append(anchor)
    print_result("Anchor", anchor)

    if anchor.succeeded and last_mode != GenerationMode.ANCHOR:
        edit = await service.dispatch(
            DispatchRequest(
                auth_token=DEMO_TOKEN,
                shot_id=shot_id,
                mode=GenerationMode.TARGETED_EDIT,
                options=DispatchOptions(
                    anchor_url=anchor.output_urls[0],
                    parent_generation_id=anchor.generation_id,
                    target_spec=TargetRegionSpec(region="face", asset_type="character"),
                    repair_target="character face",
                    deadline_seconds=deadline_seconds,
                ),
            )
        )
        results.append(edit)
        print_result("Targeted edit", edit)

        if edit.succeeded and last_mode == GenerationMode.ANIMATE:
            clip = await service.dispatch(
                DispatchRequest(
                    auth_token=DEMO_TOKEN,
                    shot_id=shot_id,
                    mode=GenerationMode.ANIMATE,
                    options=DispatchOptions(
                        anchor_url=edit.output_urls[0],
                        parent_generation_id=edit.generation_id,
                        deadline_seconds=deadline_seconds,
                    ),
                )
            )
            results.append(clip)
            print_result("Animate", clip)

    lineage = await service.orchestrator.lineage(results[-1].generation_id)
    print("\n🧬 Lineage: " + " ← ".join(f"{g.mode.value}:{g.id}" for g in lineage))

    usage = service.usage
    print(f"💳 Credits used by {DEMO_PRINCIPAL}: {usage.total(DEMO_PRINCIPAL)}")

    if as_json:
        print(json.dumps([r.to_dict() for r in results], indent=2))

    return all(r.succeeded for r in results)


def main():
    """Main entry point."""
    import argparse
    parser = argparse.ArgumentParser(
        description="Shotforge - compile and dispatch a sample shot",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Modes (each includes the ones before it):
  anchor          Still-image candidates only
  targeted_edit   Anchor, then a targeted edit of the first candidate
  animate         Anchor, edit, then animate the edited still

Examples:
  python scripts/run_demo.py
  python scripts/run_demo.py --mode anchor --json
  GEMINI_API_KEY=... python scripts/run_demo.py --deadline 300
""",
    )
    parser.add_argument(
        "--mode",
        type=str,
        choices=[m.value for m in GenerationMode],
        default=GenerationMode.ANIMATE.value,
        help="Last generation mode to run (default: animate)",
    )
    parser.add_argument(
        "--deadline",
        type=float,
        default=None,
        help="Per-dispatch deadline in seconds (optional)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Also print results as JSON",
    )
    args = parser.parse_args()

    try:
        success = asyncio.run(run_demo(
            last_mode=GenerationMode(args.mode),
            deadline_seconds=args.deadline,
            as_json=args.json,
        ))
    except ShotforgeError as e:
        logger.error("demo_failed", error=e.describe(), kind=e.kind.value)
        success = False
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
