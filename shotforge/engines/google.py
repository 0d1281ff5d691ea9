"""Google Imagen + Veo engine adapter.

Anchors and targeted edits go through Imagen's synchronous predict endpoint.
Animation goes through Veo's long-running predict endpoint and is polled
until the operation is done or the poll cap is reached.
"""

from __future__ import annotations

import asyncio
import base64
import json
import random
from collections.abc import Awaitable, Callable
from typing import Any

import requests

from shotforge.common.collaborators import BlobStore, default_object_path
from shotforge.common.config import Settings
from shotforge.common.errors import (
    BackendRejectedError,
    EngineTimeoutError,
    PolicyFilteredError,
    TransientBackendError,
)
from shotforge.common.logging import get_logger
from shotforge.common.models import (
    CompiledPayload,
    EngineResult,
    ReferenceBundle,
    TargetRegionSpec,
)
from shotforge.engines.base import CallContext, EngineAdapter, EngineCapabilities
from shotforge.engines.http import HttpRequest, RetryingHttpClient, is_retryable_status

logger = get_logger(__name__)

ENCODE_CHUNK_BYTES = 3 * 8192
ERROR_DETAIL_CHARS = 500

AsyncSleep = Callable[[float], Awaitable[None]]


def encode_base64_chunked(data: bytes, chunk_size: int = ENCODE_CHUNK_BYTES) -> str:
    """Base64-encode in fixed chunks; chunk size must be a multiple of 3."""
    if chunk_size % 3:
        raise ValueError("chunk_size must be a multiple of 3")
    view = memoryview(data)
    return "".join(
        base64.b64encode(view[i : i + chunk_size]).decode("ascii")
        for i in range(0, len(view), chunk_size)
    )


def _random_seed() -> int:
    return random.randint(1_000_000, 9_999_999)


class GoogleEngineAdapter(EngineAdapter):
    """Imagen stills and Veo clips, uploaded to the blob store."""

    def __init__(
        self,
        settings: Settings,
        blob_store: BlobStore,
        http: RetryingHttpClient | None = None,
        sleep: AsyncSleep = asyncio.sleep,
    ):
        if not settings.gemini_api_key:
            raise ValueError("GoogleEngineAdapter requires gemini_api_key")
        self.settings = settings
        self.blob_store = blob_store
        self.http = http or RetryingHttpClient.from_settings(settings)
        self._sleep = sleep
        self.base_url = settings.gemini_base_url.rstrip("/")
        self.capabilities = EngineCapabilities(
            max_anchor_count=settings.max_anchor_samples,
            max_duration_seconds=settings.max_video_duration_seconds,
        )

    @property
    def name(self) -> str:
        return "google_veo"

    # ------------------------------------------------------------------
    # Capabilities
    # ------------------------------------------------------------------

    async def generate_anchor(
        self,
        payload: CompiledPayload,
        reference_bundle: ReferenceBundle,
        count: int,
        seed: int | None = None,
        ctx: CallContext | None = None,
    ) -> EngineResult:
        ctx = ctx or CallContext()
        ctx.check()
        generation_seed = _first_seed(seed, payload.execution.seed)
        sample_count = min(count, self.capabilities.max_anchor_count)

        logger.info(
            "imagen_anchor_request",
            shot_id=payload.shot_id,
            count=sample_count,
            references=len(reference_bundle.images),
        )
        data = await self._predict_images(
            _prompt_with_negative(payload), sample_count, generation_seed, "Imagen"
        )
        urls = await self._upload_predictions(data, "anchors")
        return EngineResult(output_urls=urls, seed=generation_seed, engine="imagen_4")

    async def animate_from_anchor(
        self,
        anchor_url: str,
        payload: CompiledPayload,
        reference_bundle: ReferenceBundle,
        duration_seconds: int,
        seed: int | None = None,
        ctx: CallContext | None = None,
    ) -> EngineResult:
        ctx = ctx or CallContext()
        ctx.check()
        generation_seed = _first_seed(seed, payload.execution.seed)
        duration = min(duration_seconds, self.capabilities.max_duration_seconds)

        instance: dict[str, Any] = {"prompt": _prompt_with_negative(payload)}
        image_b64 = await self._fetch_anchor(anchor_url)
        if image_b64:
            instance["image"] = {"bytesBase64Encoded": image_b64, "mimeType": "image/png"}

        body = {
            "instances": [instance],
            "parameters": {
                "aspectRatio": "16:9",
                "durationSeconds": duration,
                "enhancePrompt": False,
                "seed": generation_seed,
            },
        }

        logger.info("veo_submit", shot_id=payload.shot_id, duration_seconds=duration)
        response = await self._send(
            HttpRequest(
                "POST",
                f"{self.base_url}/models/{self.settings.veo_model}:predictLongRunning",
                json=body,
            ),
            max_retries=2,
            base_delay=3.0,
        )
        self._raise_for_status(response, "Veo")
        operation = _json(response, "Veo").get("name")
        if not operation:
            raise BackendRejectedError("Veo did not return an operation name")

        result = await self._poll_operation(operation, ctx)

        if result.get("error"):
            raise BackendRejectedError(
                "Veo generation failed", detail=json.dumps(result["error"])
            )

        video_response = (result.get("response") or {}).get("generateVideoResponse") or {}
        samples = video_response.get("generatedSamples") or []
        if not samples:
            reasons = video_response.get("raiMediaFilteredReasons") or []
            if reasons:
                raise PolicyFilteredError(reasons)
            raise BackendRejectedError("Veo returned no videos")

        urls = await self._upload_videos(samples)
        if not urls:
            raise BackendRejectedError("Failed to extract video URLs from Veo response")
        return EngineResult(output_urls=urls, seed=generation_seed, engine="veo_2")

    async def targeted_edit(
        self,
        source_url: str,
        target_spec: TargetRegionSpec,
        prompt_delta: str,
        seed: int | None = None,
        ctx: CallContext | None = None,
    ) -> EngineResult:
        """Regenerate the shot with a repair prompt aimed at one region.

        Imagen's predict endpoint takes no inpainting mask, so this is a
        text-guided regeneration. `source_url` is kept for logging and lineage
        but its pixels are not sent.
        """
        ctx = ctx or CallContext()
        ctx.check()
        generation_seed = _first_seed(seed, None)

        prompt = (
            f"{prompt_delta}. Focus on correcting the {target_spec.region} "
            f"({target_spec.asset_type})."
        )
        if target_spec.ref_url:
            prompt += " Reference image style should match the original."

        logger.info(
            "imagen_edit_request",
            source_url=source_url,
            region=target_spec.region,
            asset_type=target_spec.asset_type,
        )
        data = await self._predict_images(
            prompt, self.capabilities.max_anchor_count, generation_seed, "Imagen edit"
        )
        urls = await self._upload_predictions(data, "repairs")
        return EngineResult(output_urls=urls, seed=generation_seed, engine="imagen_4_edit")

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _send(
        self,
        request: HttpRequest,
        max_retries: int | None = None,
        base_delay: float | None = None,
    ) -> requests.Response:
        request.headers.setdefault("x-goog-api-key", self.settings.gemini_api_key)
        if request.json is not None:
            request.headers.setdefault("Content-Type", "application/json")
        try:
            return await asyncio.to_thread(self.http.send, request, max_retries, base_delay)
        except requests.RequestException as e:
            raise TransientBackendError("Generation backend unreachable", detail=str(e)) from e

    def _raise_for_status(self, response: requests.Response, label: str) -> None:
        if response.ok:
            return
        detail = response.text[:ERROR_DETAIL_CHARS]
        logger.error("engine_http_error", engine=label, status=response.status_code)
        if is_retryable_status(response.status_code):
            raise TransientBackendError(f"{label} API error {response.status_code}", detail=detail)
        raise BackendRejectedError(f"{label} API error {response.status_code}", detail=detail)

    async def _predict_images(self, prompt: str, sample_count: int, seed: int, label: str) -> dict:
        body = {
            "instances": [{"prompt": prompt}],
            "parameters": {
                "sampleCount": sample_count,
                "aspectRatio": "16:9",
                "personGeneration": "allow_all",
                "safetyFilterLevel": "block_only_high",
                # Imagen only honors a seed with watermarking off
                "addWatermark": False,
                "seed": seed,
            },
        }
        response = await self._send(
            HttpRequest(
                "POST",
                f"{self.base_url}/models/{self.settings.imagen_model}:predict",
                json=body,
            ),
            max_retries=3,
            base_delay=2.0,
        )
        self._raise_for_status(response, label)
        return _json(response, label)

    async def _poll_operation(self, operation: str, ctx: CallContext) -> dict:
        """Poll a long-running operation until done, the cap, or cancellation."""
        interval = self.settings.poll_interval_seconds
        max_polls = self.settings.max_poll_attempts

        for attempt in range(1, max_polls + 1):
            ctx.check()
            remaining = ctx.remaining()
            await self._pause(interval if remaining is None else min(interval, remaining), ctx)
            ctx.check()

            try:
                response = await self._send(
                    HttpRequest("GET", f"{self.base_url}/{operation}"),
                    max_retries=2,
                    base_delay=1.0,
                )
            except TransientBackendError as e:
                logger.warning("veo_poll_failed", attempt=attempt, error=e.describe())
                continue

            if not response.ok:
                logger.warning("veo_poll_failed", attempt=attempt, status=response.status_code)
                continue

            data = _json(response, "Veo poll")
            if data.get("done"):
                logger.info("veo_operation_done", attempt=attempt)
                return data

            logger.debug("veo_poll_pending", attempt=attempt, max_polls=max_polls)

        raise EngineTimeoutError(
            f"Veo generation timed out after {max_polls} polls "
            f"({max_polls * interval:.0f}s)"
        )

    async def _pause(self, seconds: float, ctx: CallContext) -> None:
        """Sleep between polls, waking early once the cancel event is set."""
        if ctx.cancel_event is None:
            await self._sleep(seconds)
            return

        sleeping = asyncio.ensure_future(self._sleep(seconds))
        cancelled = asyncio.ensure_future(ctx.cancel_event.wait())
        try:
            await asyncio.wait({sleeping, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (sleeping, cancelled):
                task.cancel()

    # ------------------------------------------------------------------
    # Media
    # ------------------------------------------------------------------

    async def _fetch_anchor(self, anchor_url: str) -> str | None:
        """Anchor image as base64, or None to fall back to text-only."""
        if not anchor_url.startswith("http"):
            return None
        try:
            response = await asyncio.to_thread(
                self.http.send, HttpRequest("GET", anchor_url), 1
            )
        except requests.RequestException as e:
            logger.warning("anchor_fetch_failed", anchor_url=anchor_url, error=str(e))
            return None
        if not response.ok:
            logger.warning("anchor_fetch_failed", anchor_url=anchor_url, status=response.status_code)
            return None
        return encode_base64_chunked(response.content)

    async def _upload_predictions(self, data: dict, folder: str) -> list[str]:
        predictions = data.get("predictions") or []
        images = [p for p in predictions if p.get("bytesBase64Encoded")]
        if not images:
            reasons = [p["raiFilteredReason"] for p in predictions if p.get("raiFilteredReason")]
            if reasons:
                raise PolicyFilteredError(reasons)
            raise BackendRejectedError("Imagen returned no images")

        urls = []
        for prediction in images:
            content = base64.b64decode(prediction["bytesBase64Encoded"])
            urls.append(
                await self._store(content, prediction.get("mimeType") or "image/png", folder)
            )
        return urls

    async def _upload_videos(self, samples: list[dict]) -> list[str]:
        urls = []
        for sample in samples:
            video = sample.get("video") or {}
            if video.get("bytesBase64Encoded"):
                content = base64.b64decode(video["bytesBase64Encoded"])
            elif video.get("uri"):
                response = await self._send(HttpRequest("GET", video["uri"]), max_retries=2)
                self._raise_for_status(response, "Veo download")
                content = response.content
            else:
                continue
            urls.append(await self._store(content, video.get("mimeType") or "video/mp4", "clips"))
        return urls

    async def _store(self, content: bytes, content_type: str, folder: str) -> str:
        # Content-addressed: a later generation never overwrites earlier outputs
        path = default_object_path(content, content_type, prefix=f"generations/{folder}")
        return await self.blob_store.put(content, content_type, path=path)


def _first_seed(explicit: int | None, compiled: int | None) -> int:
    if explicit is not None:
        return explicit
    if compiled is not None:
        return compiled
    return _random_seed()


def _prompt_with_negative(payload: CompiledPayload) -> str:
    if not payload.negative_terms:
        return payload.resolved_prompt
    return f"{payload.resolved_prompt} Avoid: {payload.negative_prompt}."


def _json(response: requests.Response, label: str) -> dict:
    try:
        data = response.json()
    except ValueError as e:
        raise BackendRejectedError(
            f"{label} returned invalid JSON",
            detail=response.text[:ERROR_DETAIL_CHARS],
        ) from e
    if not isinstance(data, dict):
        raise BackendRejectedError(f"{label} returned unexpected payload")
    return data
