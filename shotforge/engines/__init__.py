"""Generation backends and outbound HTTP."""

from shotforge.engines.base import CallContext, EngineAdapter, EngineCapabilities
from shotforge.engines.google import GoogleEngineAdapter, encode_base64_chunked
from shotforge.engines.http import (
    HttpRequest,
    RetryingHttpClient,
    is_retryable_status,
    parse_retry_after,
)
from shotforge.engines.registry import EngineRegistry, build_registry
from shotforge.engines.stub import StubEngineAdapter

__all__ = [
    # Adapter interface
    "CallContext",
    "EngineAdapter",
    "EngineCapabilities",
    # Adapters
    "GoogleEngineAdapter",
    "StubEngineAdapter",
    "encode_base64_chunked",
    # HTTP
    "HttpRequest",
    "RetryingHttpClient",
    "is_retryable_status",
    "parse_retry_after",
    # Registry
    "EngineRegistry",
    "build_registry",
]
