"""Identity token extraction and resolution."""

from __future__ import annotations

import re

from shotforge.common.models import IdentityToken, LockedAsset

REF_CODE_PATTERN = re.compile(r"\{\{([A-Z0-9_]+)\}\}")

CHARACTER_WEIGHT = 0.85


def extract_ref_codes(text: str | None) -> list[str]:
    """Ref codes in order of first appearance, without duplicates."""
    if not text:
        return []
    return list(dict.fromkeys(REF_CODE_PATTERN.findall(text)))


def resolve_identity_tokens(
    codes: list[str],
    registry_tokens: list[IdentityToken],
    locked_assets: list[LockedAsset],
) -> list[IdentityToken]:
    """Bind each code to a registry entry, else to a locked asset carrying it.

    Codes with no match are dropped.
    """
    by_code = {token.code: token for token in registry_tokens}
    assets_by_code = {
        asset.ref_code: asset
        for asset in locked_assets
        if asset.ref_code and asset.locked
    }

    resolved: list[IdentityToken] = []
    for code in codes:
        token = by_code.get(code)
        if token is not None:
            if token.entity_type == "character" and token.weight is None:
                token = token.model_copy(update={"weight": CHARACTER_WEIGHT})
            resolved.append(token)
            continue

        asset = assets_by_code.get(code)
        if asset is not None:
            resolved.append(
                IdentityToken(
                    code=code,
                    entity_type=asset.kind.value,
                    display_name=asset.name,
                    image_url=asset.image_url,
                )
            )
    return resolved


def substitute_tokens(text: str, tokens: list[IdentityToken]) -> str:
    """Replace resolved placeholders by display names, strip braces from the rest."""
    names = {token.code: token.display_name for token in tokens}
    return REF_CODE_PATTERN.sub(lambda m: names.get(m.group(1), m.group(1)), text)
