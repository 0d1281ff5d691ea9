"""Upstream context models: style contract, scene overrides, locked assets, identity tokens.

These are produced elsewhere (style compilation, entity canonicization) and
consumed read-only by the payload compiler.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class StyleContext(BaseModel):
    """Genre-blended visual rules for a film, snapshotted per version."""

    model_config = ConfigDict(frozen=True)

    film_id: str
    version: int = 1

    # Identity
    visual_dna: str = ""
    genre_palette: str | None = None

    # Cinematography defaults
    lighting_default: str | None = None
    color_temp_default: str | None = None
    texture_default: str | None = None
    lens_default: str | None = None

    # Exclusions
    negative_prompt_base: str = ""

    # Character name -> visual directive
    character_directives: dict[str, str] = Field(default_factory=dict)


class SceneOverride(BaseModel):
    """Per-scene deltas that beat the style contract for one scene."""

    model_config = ConfigDict(frozen=True)

    film_id: str
    scene_number: int

    mood: str | None = None
    lighting_override: str | None = None
    color_shift: str | None = None
    environment_texture: str | None = None
    time_of_day_grade: str | None = None
    camera_feel: str | None = None
    custom_negative: str | None = None


class AssetKind(str, Enum):
    """Kind of locked visual reference."""

    LOCATION = "location"
    PROP = "prop"
    VEHICLE = "vehicle"
    WARDROBE = "wardrobe"


class LockedAsset(BaseModel):
    """An approved visual reference scoped to a film."""

    model_config = ConfigDict(frozen=True)

    name: str
    kind: AssetKind
    description: str = ""
    image_url: str | None = None
    ref_code: str | None = None
    character_id: str | None = None
    locked: bool = True


class ConsistencyView(BaseModel):
    """One turnaround angle of a character."""

    model_config = ConfigDict(frozen=True)

    angle_label: str
    image_url: str


class IdentityToken(BaseModel):
    """A {{REF_CODE}} placeholder bound to a concrete visual reference."""

    model_config = ConfigDict(frozen=True)

    code: str
    entity_type: str
    display_name: str
    image_url: str | None = None
    is_dirty: bool = False
    weight: float | None = None
    consistency_views: list[ConsistencyView] = Field(default_factory=list)

    @property
    def token(self) -> str:
        return "{{" + self.code + "}}"
