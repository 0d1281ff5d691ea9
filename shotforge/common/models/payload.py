"""Compiled generation payload models.

A CompiledPayload is self-describing: engine adapters read everything they
need from it and never go back to the upstream providers.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from shotforge.common.models.context import AssetKind, IdentityToken


class SafetyTier(str, Enum):
    """MPAA-style content tier, least to most restrictive."""

    PG = "PG"
    PG_13 = "PG-13"
    R = "R"


# ============================================================================
# Cinematography
# ============================================================================


class Framing(BaseModel):
    model_config = ConfigDict(frozen=True)

    shot_size: str = "MS"
    angle: str = "Eye level"
    aspect_ratio: str = "2.39:1"


class Optics(BaseModel):
    model_config = ConfigDict(frozen=True)

    sensor_profile: str = "ARRI Alexa 35"
    lens_type: str = "Spherical prime"
    focal_length: str = "35mm"
    depth_of_field: str = "f/2.8"


class Dynamics(BaseModel):
    model_config = ConfigDict(frozen=True)

    rigging: str = "Tripod"
    movement: str = "Static"
    motion_blur: str = "180° standard"


class LightingAndGrade(BaseModel):
    model_config = ConfigDict(frozen=True)

    setup: str = "Natural"
    color_temp: str = "Daylight 5600K"
    film_texture: str = "Clean digital"


class CinematographySpec(BaseModel):
    """Structured camera description for one shot."""

    model_config = ConfigDict(frozen=True)

    framing: Framing = Field(default_factory=Framing)
    optics: Optics = Field(default_factory=Optics)
    dynamics: Dynamics = Field(default_factory=Dynamics)
    lighting_and_grade: LightingAndGrade = Field(default_factory=LightingAndGrade)


# ============================================================================
# Payload sections
# ============================================================================


class AssetReference(BaseModel):
    """A locked asset as injected into the payload."""

    model_config = ConfigDict(frozen=True)

    name: str
    kind: AssetKind
    description: str = ""
    image_url: str | None = None
    character_id: str | None = None


class LockedAssetBundle(BaseModel):
    model_config = ConfigDict(frozen=True)

    locations: list[AssetReference] = Field(default_factory=list)
    props: list[AssetReference] = Field(default_factory=list)
    vehicles: list[AssetReference] = Field(default_factory=list)
    wardrobe: list[AssetReference] = Field(default_factory=list)

    def all(self) -> list[AssetReference]:
        return [*self.locations, *self.props, *self.vehicles, *self.wardrobe]


class ExecutionParams(BaseModel):
    model_config = ConfigDict(frozen=True)

    duration_seconds: int = 5
    fps: int = 24
    resolution: str = "4K"
    format_type: str | None = None
    seed: int | None = None


class RoutingHints(BaseModel):
    model_config = ConfigDict(frozen=True)

    preferred_engine: str
    fallback_engine: str | None = None
    target_tier: str = "commercial_heavyweight"
    safety_tier: SafetyTier = SafetyTier.PG


class TemporalGuardrails(BaseModel):
    model_config = ConfigDict(frozen=True)

    anchor_period: str | None = None
    anachronism_blacklist: list[str] = Field(default_factory=list)


class StyleSnapshot(BaseModel):
    """The parts of the style contract the payload was compiled against."""

    model_config = ConfigDict(frozen=True)

    version: int
    visual_dna: str = ""
    genre_palette: str | None = None
    lighting_default: str | None = None
    texture_default: str | None = None


class SceneSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    scene_number: int
    mood: str | None = None
    lighting: str | None = None
    color_shift: str | None = None
    environment_texture: str | None = None
    time_of_day_grade: str | None = None
    camera_feel: str | None = None


# ============================================================================
# Compiled payload
# ============================================================================


class CompiledPayload(BaseModel):
    """The vendor-neutral generation request for one shot."""

    model_config = ConfigDict(frozen=True)

    shot_id: str
    film_id: str
    style_contract_version: int | None = None

    # Text
    raw_action: str = ""
    resolved_prompt: str
    negative_terms: list[str] = Field(default_factory=list)

    # Structure
    cinematography: CinematographySpec = Field(default_factory=CinematographySpec)
    temporal_guardrails: TemporalGuardrails = Field(default_factory=TemporalGuardrails)
    identity_tokens: list[IdentityToken] = Field(default_factory=list)
    locked_assets: LockedAssetBundle = Field(default_factory=LockedAssetBundle)
    execution: ExecutionParams = Field(default_factory=ExecutionParams)
    routing: RoutingHints

    # Provenance
    style_context: StyleSnapshot | None = None
    scene_context: SceneSnapshot | None = None

    @property
    def negative_prompt(self) -> str:
        return ", ".join(self.negative_terms)

    def summary(self) -> dict:
        """Return summary for logging."""
        return {
            "shot_id": self.shot_id,
            "film_id": self.film_id,
            "tokens": len(self.identity_tokens),
            "locked_assets": len(self.locked_assets.all()),
            "safety_tier": self.routing.safety_tier.value,
            "engine": self.routing.preferred_engine,
        }


class ReferenceImage(BaseModel):
    """One image an engine may condition on."""

    model_config = ConfigDict(frozen=True)

    label: str
    image_url: str
    weight: float | None = None
    is_dirty: bool = False


class ReferenceBundle(BaseModel):
    """Identity and locked-asset images gathered from a payload."""

    model_config = ConfigDict(frozen=True)

    images: list[ReferenceImage] = Field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: CompiledPayload) -> "ReferenceBundle":
        images: list[ReferenceImage] = []
        for token in payload.identity_tokens:
            if token.image_url:
                images.append(
                    ReferenceImage(
                        label=token.display_name,
                        image_url=token.image_url,
                        weight=token.weight,
                        is_dirty=token.is_dirty,
                    )
                )
            for view in token.consistency_views:
                images.append(
                    ReferenceImage(
                        label=f"{token.display_name} ({view.angle_label})",
                        image_url=view.image_url,
                        weight=token.weight,
                    )
                )
        for asset in payload.locked_assets.all():
            if asset.image_url:
                images.append(ReferenceImage(label=asset.name, image_url=asset.image_url))
        return cls(images=images)

    @property
    def urls(self) -> list[str]:
        return [image.image_url for image in self.images]
