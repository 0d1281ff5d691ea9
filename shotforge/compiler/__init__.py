"""Payload compilation and fingerprinting."""

from shotforge.compiler.cinematography import (
    parse_camera_language,
    resolve_cinematography,
)
from shotforge.compiler.guardrails import (
    DEFAULT_NEGATIVE_BASE,
    build_anachronism_blacklist,
    derive_safety_tier,
    merge_negative_terms,
)
from shotforge.compiler.hashing import canonical_json, hash_payload
from shotforge.compiler.payload_compiler import (
    CompileDefaults,
    PayloadCompiler,
    build_resolved_prompt,
    compile_payload,
    derive_seed,
)
from shotforge.compiler.tokens import extract_ref_codes, resolve_identity_tokens

__all__ = [
    # Cinematography
    "parse_camera_language",
    "resolve_cinematography",
    # Guardrails
    "DEFAULT_NEGATIVE_BASE",
    "build_anachronism_blacklist",
    "derive_safety_tier",
    "merge_negative_terms",
    # Hashing
    "canonical_json",
    "hash_payload",
    # Compiler
    "CompileDefaults",
    "PayloadCompiler",
    "build_resolved_prompt",
    "compile_payload",
    "derive_seed",
    # Tokens
    "extract_ref_codes",
    "resolve_identity_tokens",
]
