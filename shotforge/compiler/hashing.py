"""Content fingerprint of a compiled payload, used for dedup and audit."""

from __future__ import annotations

import hashlib
import json
from typing import Any

from shotforge.common.models import CompiledPayload


def canonical_form(payload: CompiledPayload) -> dict[str, Any]:
    """JSON-ready dict with order-insensitive collections sorted.

    Prompt text keeps its order; sets of terms, tokens and assets do not
    carry meaning in their order and are normalized.
    """
    data = payload.model_dump(mode="json")

    data["negative_terms"] = sorted(data["negative_terms"])
    guardrails = data["temporal_guardrails"]
    guardrails["anachronism_blacklist"] = sorted(guardrails["anachronism_blacklist"])

    tokens = data["identity_tokens"]
    for token in tokens:
        token["consistency_views"] = sorted(
            token["consistency_views"],
            key=lambda v: (v["angle_label"], v["image_url"]),
        )
    data["identity_tokens"] = sorted(tokens, key=lambda t: t["code"])

    for group in ("locations", "props", "vehicles", "wardrobe"):
        data["locked_assets"][group] = sorted(
            data["locked_assets"][group],
            key=lambda a: (a["name"], a["description"], a["image_url"] or ""),
        )
    return data


def canonical_json(payload: CompiledPayload) -> str:
    return json.dumps(
        canonical_form(payload),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )


def hash_payload(payload: CompiledPayload) -> str:
    """SHA-256 hex digest of the canonical payload."""
    return hashlib.sha256(canonical_json(payload).encode("utf-8")).hexdigest()
