"""Cinematography resolution.

The camera spec is built in layers, each one only overriding the fields it
actually specifies:

    built-in defaults < style contract < scene override < shot camera hint
"""

from __future__ import annotations

import re

from shotforge.common.models import CinematographySpec, SceneOverride, StyleContext

# (section, field) -> value
CameraFields = dict[tuple[str, str], str]

SHOT_SIZE_RULES: list[tuple[str, str]] = [
    (r"extreme close|\becu\b", "ECU"),
    (r"medium close|\bmcu\b", "MCU"),
    (r"close[ -]?up|\bcu\b", "CU"),
    (r"extreme wide|\bews\b", "EWS"),
    (r"\bwide\b|\bws\b", "WS"),
    (r"medium shot|\bms\b", "MS"),
]

ANGLE_RULES: list[tuple[str, str]] = [
    (r"low angle", "Low angle"),
    (r"high angle", "High angle"),
    (r"dutch|canted", "Dutch angle"),
    (r"bird", "Bird's eye"),
    (r"worm", "Worm's eye"),
]

MOVEMENT_RULES: list[tuple[str, str]] = [
    (r"push[ -]in", "Slow push-in"),
    (r"pull[ -]out", "Pull out"),
    (r"pan left", "Pan left"),
    (r"pan right", "Pan right"),
    (r"tracking", "Tracking"),
    (r"crane", "Crane"),
    (r"handheld", "Handheld"),
]

RIGGING_RULES: list[tuple[str, str]] = [
    (r"steadicam", "Steadicam"),
    (r"handheld", "Handheld"),
    (r"crane|\bjib\b", "Crane / Jib"),
    (r"dolly", "Dolly"),
]

LIGHTING_RULES: list[tuple[str, str]] = [
    (r"low[ -]key", "Low-key"),
    (r"high[ -]key", "High-key"),
    (r"silhouette", "Silhouette"),
    (r"practical", "Practical"),
]

COLOR_TEMP_RULES: list[tuple[str, str]] = [
    (r"golden hour", "Golden hour 3200K"),
    (r"tungsten", "Tungsten 3200K"),
    (r"moonlight|day for night", "Moonlight 4100K"),
]

FOCAL_LENGTH_RULES: list[tuple[str, str]] = [
    (r"\b50mm\b", "50mm"),
    (r"\b85mm\b", "85mm"),
    (r"\b24mm\b", "24mm"),
    (r"\b100mm\b", "100mm"),
]

TEXTURE_RULES: list[tuple[str, str]] = [
    (r"35mm grain|film grain", "35mm grain, halation"),
    (r"\b16mm\b", "16mm grain, heavy halation"),
]

FIELD_RULES: list[tuple[tuple[str, str], list[tuple[str, str]]]] = [
    (("framing", "shot_size"), SHOT_SIZE_RULES),
    (("framing", "angle"), ANGLE_RULES),
    (("dynamics", "movement"), MOVEMENT_RULES),
    (("dynamics", "rigging"), RIGGING_RULES),
    (("lighting_and_grade", "setup"), LIGHTING_RULES),
    (("lighting_and_grade", "color_temp"), COLOR_TEMP_RULES),
    (("optics", "focal_length"), FOCAL_LENGTH_RULES),
    (("lighting_and_grade", "film_texture"), TEXTURE_RULES),
]


def _first_match(text: str, rules: list[tuple[str, str]]) -> str | None:
    for pattern, value in rules:
        if re.search(pattern, text):
            return value
    return None


def parse_camera_language(text: str | None) -> CameraFields:
    """Extract only the camera fields a free-text hint actually names."""
    if not text:
        return {}

    lower = text.lower()
    fields: CameraFields = {}
    for key, rules in FIELD_RULES:
        value = _first_match(lower, rules)
        if value is not None:
            fields[key] = value
    if "anamorphic" in lower:
        fields[("optics", "lens_type")] = "Anamorphic prime"
    return fields


def contract_fields(style: StyleContext | None) -> CameraFields:
    if style is None:
        return {}

    fields: CameraFields = {}
    if style.lens_default:
        fields[("optics", "focal_length")] = style.lens_default
    if style.lighting_default:
        fields[("lighting_and_grade", "setup")] = style.lighting_default
    if style.color_temp_default:
        fields[("lighting_and_grade", "color_temp")] = style.color_temp_default
    if style.texture_default:
        fields[("lighting_and_grade", "film_texture")] = style.texture_default
    return fields


def scene_fields(scene: SceneOverride | None) -> CameraFields:
    """Camera feel is read like a camera hint; explicit overrides beat it."""
    if scene is None:
        return {}

    fields = parse_camera_language(scene.camera_feel)
    if scene.lighting_override:
        fields[("lighting_and_grade", "setup")] = scene.lighting_override
    if scene.time_of_day_grade:
        fields[("lighting_and_grade", "color_temp")] = scene.time_of_day_grade
    return fields


def resolve_cinematography(
    style: StyleContext | None,
    scene: SceneOverride | None,
    camera_language: str | None,
) -> CinematographySpec:
    """Layer contract, scene and shot fields over the built-in defaults."""
    merged: dict[str, dict[str, str]] = {}
    for layer in (
        contract_fields(style),
        scene_fields(scene),
        parse_camera_language(camera_language),
    ):
        for (section, name), value in layer.items():
            merged.setdefault(section, {})[name] = value

    return CinematographySpec.model_validate(merged)
