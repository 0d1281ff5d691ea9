"""Pytest configuration and fixtures."""

import pytest

from shotforge.common.config import Settings
from shotforge.common.models import (
    AssetKind,
    ConsistencyView,
    ContentSafetyFlags,
    Film,
    IdentityToken,
    LockedAsset,
    SceneOverride,
    Shot,
    StyleContext,
)
from shotforge.compiler import CompileDefaults, PayloadCompiler
from shotforge.engines.registry import EngineRegistry
from shotforge.orchestration import (
    GenerationOrchestrator,
    InMemoryFilms,
    InMemoryGenerationStore,
    InMemoryIdentityRegistry,
    InMemoryLockedAssets,
    InMemorySceneOverrides,
    InMemoryShots,
    InMemoryStyleContexts,
    InMemoryUsageLogger,
)


@pytest.fixture
def settings():
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        gemini_api_key="",
        blob_store_url="",
        blob_store_key="",
        poll_interval_seconds=0.0,
        max_poll_attempts=3,
    )


@pytest.fixture
def film():
    return Film(
        id="film_001",
        title="The Lamplighter",
        time_period="Victorian London, 1888",
        frame_rate=24,
        frame_width=3840,
        frame_height=1600,
        content_safety=ContentSafetyFlags(violence=True),
    )


@pytest.fixture
def shot(film):
    return Shot(
        id="shot_001",
        film_id=film.id,
        scene_number=3,
        action_text="{{CHAR_ELIAS}} lights the lamp beside {{LOC_BRIDGE}}.",
        camera_language="Low angle close-up, slow push-in",
    )


@pytest.fixture
def style(film):
    return StyleContext(
        film_id=film.id,
        version=2,
        visual_dna="Gaslit gothic realism",
        genre_palette="Desaturated teal and amber",
        lighting_default="Low-key",
        color_temp_default="Tungsten 3200K",
        texture_default="35mm grain, halation",
        lens_default="50mm",
        negative_prompt_base="cartoon, oversaturated",
        character_directives={"Elias": "gaunt face, soot on cheeks"},
    )


@pytest.fixture
def scene(film):
    return SceneOverride(
        film_id=film.id,
        scene_number=3,
        mood="Foreboding",
        lighting_override="Practical",
        time_of_day_grade="Moonlight 4100K",
        custom_negative="sunlight, crowds",
    )


@pytest.fixture
def locked_assets():
    return [
        LockedAsset(
            name="Blackfriars Bridge",
            kind=AssetKind.LOCATION,
            description="wet cobblestones, iron railings",
            image_url="https://assets.example/bridge.png",
            ref_code="LOC_BRIDGE",
        ),
        LockedAsset(
            name="Brass lamp pole",
            kind=AssetKind.PROP,
            image_url="https://assets.example/lamp.png",
        ),
    ]


@pytest.fixture
def identity_tokens():
    return [
        IdentityToken(
            code="CHAR_ELIAS",
            entity_type="character",
            display_name="Elias",
            image_url="https://assets.example/elias.png",
            consistency_views=[
                ConsistencyView(angle_label="profile", image_url="https://assets.example/elias_p.png"),
            ],
        ),
    ]


@pytest.fixture
def providers(film, shot, style, scene, locked_assets, identity_tokens):
    """In-memory upstream collaborators holding the full shot context."""
    return {
        "shots": InMemoryShots([shot]),
        "films": InMemoryFilms([film]),
        "styles": InMemoryStyleContexts([style]),
        "scenes": InMemorySceneOverrides([scene]),
        "assets": InMemoryLockedAssets({film.id: locked_assets}),
        "identities": InMemoryIdentityRegistry({film.id: identity_tokens}),
    }


@pytest.fixture
def compiler(providers, settings):
    return PayloadCompiler(**providers, defaults=CompileDefaults.from_settings(settings))


@pytest.fixture
def store():
    return InMemoryGenerationStore()


@pytest.fixture
def usage():
    return InMemoryUsageLogger()


@pytest.fixture
def registry():
    return EngineRegistry()


@pytest.fixture
def orchestrator(compiler, registry, store, usage, settings):
    return GenerationOrchestrator(compiler, registry, store, usage=usage, settings=settings)
