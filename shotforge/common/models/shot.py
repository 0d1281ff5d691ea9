"""Film and shot models, as handed over by the screenplay pipeline."""

from pydantic import BaseModel, ConfigDict, Field

from shotforge.common.models.base import generate_id


class ContentSafetyFlags(BaseModel):
    """Content flags raised by the film's safety analysis."""

    model_config = ConfigDict(frozen=True)

    violence: bool = False
    nudity: bool = False
    language: bool = False


class Film(BaseModel):
    """The film a shot belongs to."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: generate_id("film"))
    title: str = ""

    # Period anchoring
    time_period: str | None = None

    # Delivery format
    frame_rate: int | None = None
    frame_width: int | None = None
    frame_height: int | None = None
    format_type: str | None = None

    # Safety
    content_safety: ContentSafetyFlags | None = None

    @property
    def resolution(self) -> str | None:
        if self.frame_width and self.frame_height:
            return f"{self.frame_width}x{self.frame_height}"
        return None


class Shot(BaseModel):
    """A single unit of footage to generate."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: generate_id("shot"))
    film_id: str
    scene_number: int

    # Script action, may contain {{REF_CODE}} placeholders
    action_text: str = ""

    # Optional shot-level direction
    camera_language: str | None = None
    video_prompt_base: str | None = None

    # Set once a clip exists for this shot
    video_url: str | None = None
