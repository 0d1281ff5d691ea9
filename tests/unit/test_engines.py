"""Unit tests for engine adapters and the engine registry."""

import asyncio
import base64
import json

import pytest
import requests

from shotforge.common.errors import (
    BackendRejectedError,
    EngineTimeoutError,
    GenerationCancelledError,
    PolicyFilteredError,
    TransientBackendError,
)
from shotforge.common.models import ReferenceBundle, TargetRegionSpec
from shotforge.compiler import compile_payload
from shotforge.engines import (
    CallContext,
    EngineRegistry,
    GoogleEngineAdapter,
    StubEngineAdapter,
    build_registry,
    encode_base64_chunked,
)
from shotforge.engines.registry import GOOGLE_ALIASES
from shotforge.orchestration import InMemoryBlobStore


def make_response(status: int, body=None, content: bytes | None = None) -> requests.Response:
    response = requests.Response()
    response.status_code = status
    if content is not None:
        response._content = content
    else:
        response._content = json.dumps(body if body is not None else {}).encode()
    return response


class FakeHttp:
    """Stands in for RetryingHttpClient; routes by URL fragment."""

    def __init__(self, routes):
        # fragment -> list of responses, the last one repeats
        self.routes = {k: list(v) for k, v in routes.items()}
        self.requests = []

    def send(self, request, max_retries=None, base_delay=None):
        self.requests.append(request)
        for fragment, queue in self.routes.items():
            if fragment in request.url:
                outcome = queue.pop(0) if len(queue) > 1 else queue[0]
                if isinstance(outcome, Exception):
                    raise outcome
                return outcome
        raise AssertionError(f"unexpected request to {request.url}")

    def bodies(self, fragment):
        return [r.json for r in self.requests if fragment in r.url]


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode()


def stored(blob_store, url):
    return blob_store.objects[url.removeprefix(blob_store.base_url + "/")]


IMAGE_B64 = b64(b"\x89PNG fake image")
VIDEO_DONE = {
    "done": True,
    "response": {
        "generateVideoResponse": {
            "generatedSamples": [{"video": {"uri": "https://video.example/v.mp4"}}]
        }
    },
}


@pytest.fixture
def payload(shot, film, locked_assets, identity_tokens):
    return compile_payload(shot, film, locked_assets=locked_assets, identity_tokens=identity_tokens)


@pytest.fixture
def bundle(payload):
    return ReferenceBundle.from_payload(payload)


@pytest.fixture
def google_settings(settings):
    return settings.model_copy(update={"gemini_api_key": "test-key"})


@pytest.fixture
def blob_store():
    return InMemoryBlobStore()


@pytest.fixture
def sleeps():
    return []


def make_adapter(google_settings, blob_store, sleeps, routes, on_sleep=None):
    async def fake_sleep(seconds):
        sleeps.append(seconds)
        if on_sleep:
            on_sleep()

    http = FakeHttp(routes)
    adapter = GoogleEngineAdapter(google_settings, blob_store, http=http, sleep=fake_sleep)
    return adapter, http


class TestStubEngineAdapter:
    """Tests for StubEngineAdapter."""

    @pytest.mark.asyncio
    async def test_anchor_urls(self, payload, bundle):
        stub = StubEngineAdapter()
        result = await stub.generate_anchor(payload, bundle, 3)

        seed = payload.execution.seed
        assert result.engine == "stub_anchor"
        assert result.seed == seed
        assert result.output_urls == [
            f"https://placeholder.generation/anchor-{seed}-{i}.png" for i in range(3)
        ]

    @pytest.mark.asyncio
    async def test_explicit_seed_wins(self, payload, bundle):
        result = await StubEngineAdapter().generate_anchor(payload, bundle, 1, seed=42)
        assert result.seed == 42
        assert result.output_urls == ["https://placeholder.generation/anchor-42-0.png"]

    @pytest.mark.asyncio
    async def test_animate_and_edit(self, payload, bundle):
        stub = StubEngineAdapter()
        clip = await stub.animate_from_anchor("https://x/a.png", payload, bundle, 5, seed=7)
        edit = await stub.targeted_edit("https://x/a.png", TargetRegionSpec(), "fix", seed=7)

        assert clip.output_urls == ["https://placeholder.generation/clip-7.mp4"]
        assert clip.engine == "stub_animate"
        assert edit.output_urls == ["https://placeholder.generation/edit-7.png"]
        assert edit.engine == "stub_edit"

    @pytest.mark.asyncio
    async def test_deterministic_without_seed(self):
        stub = StubEngineAdapter()
        first = await stub.targeted_edit("https://x/a.png", TargetRegionSpec(region="hands"), "fix")
        second = await stub.targeted_edit("https://x/a.png", TargetRegionSpec(region="hands"), "fix")
        assert first == second

    @pytest.mark.asyncio
    async def test_honors_cancellation(self, payload, bundle):
        event = asyncio.Event()
        event.set()
        with pytest.raises(GenerationCancelledError):
            await StubEngineAdapter().generate_anchor(
                payload, bundle, 1, ctx=CallContext(cancel_event=event)
            )


class TestEngineRegistry:
    """Tests for EngineRegistry resolution order."""

    def test_empty_registry_falls_back_to_stub(self):
        registry = EngineRegistry()
        assert isinstance(registry.resolve("veo_3.1", "kling_3"), StubEngineAdapter)

    def test_preferred_then_fallback(self):
        registry = EngineRegistry()
        preferred = StubEngineAdapter(base_url="https://preferred")
        fallback = StubEngineAdapter(base_url="https://fallback")
        registry.register(preferred, aliases=("veo_3.1",))
        registry.register(fallback, aliases=("kling_3",))

        assert registry.resolve("veo_3.1", "kling_3") is preferred
        assert registry.resolve("unknown", "kling_3") is fallback
        assert registry.resolve(None, None) is registry.default

    def test_build_without_credentials(self, settings, blob_store):
        registry = build_registry(settings, blob_store)
        assert registry.names == []
        assert registry.resolve("veo_3.1") is registry.default

    def test_build_with_credentials(self, google_settings, blob_store):
        registry = build_registry(google_settings, blob_store, http=FakeHttp({}))
        adapter = registry.resolve("veo_3.1", "kling_3")
        assert isinstance(adapter, GoogleEngineAdapter)
        assert registry.get("imagen_4") is adapter


class TestGoogleAnchor:
    """Tests for Imagen anchors."""

    @pytest.mark.asyncio
    async def test_uploads_images(self, google_settings, blob_store, sleeps, payload, bundle):
        adapter, http = make_adapter(
            google_settings,
            blob_store,
            sleeps,
            {":predict": [make_response(200, {"predictions": [
                {"bytesBase64Encoded": IMAGE_B64, "mimeType": "image/png"},
                {"bytesBase64Encoded": b64(b"second image"), "mimeType": "image/jpeg"},
            ]})]},
        )

        result = await adapter.generate_anchor(payload, bundle, 6)

        assert result.engine == "imagen_4"
        assert result.seed == payload.execution.seed
        assert len(result.output_urls) == 2
        assert all(url.startswith("memory://blobs/generations/anchors/") for url in result.output_urls)
        assert result.output_urls[0].endswith(".png")
        assert len(blob_store.objects) == 2

        body = http.bodies(":predict")[0]
        assert body["parameters"]["sampleCount"] == 4
        assert body["parameters"]["seed"] == payload.execution.seed
        assert body["parameters"]["personGeneration"] == "allow_all"
        assert body["instances"][0]["prompt"].startswith(payload.resolved_prompt)
        assert http.requests[0].headers["x-goog-api-key"] == "test-key"

    @pytest.mark.asyncio
    async def test_policy_filtered(self, google_settings, blob_store, sleeps, payload, bundle):
        adapter, _ = make_adapter(
            google_settings,
            blob_store,
            sleeps,
            {":predict": [make_response(200, {"predictions": [{"raiFilteredReason": "Violence"}]})]},
        )

        with pytest.raises(PolicyFilteredError) as exc_info:
            await adapter.generate_anchor(payload, bundle, 1)

        assert exc_info.value.reasons == ["Violence"]
        assert blob_store.objects == {}

    @pytest.mark.asyncio
    async def test_empty_predictions(self, google_settings, blob_store, sleeps, payload, bundle):
        adapter, _ = make_adapter(
            google_settings, blob_store, sleeps, {":predict": [make_response(200, {})]}
        )
        with pytest.raises(BackendRejectedError):
            await adapter.generate_anchor(payload, bundle, 1)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status,error",
        [(400, BackendRejectedError), (403, BackendRejectedError), (503, TransientBackendError), (429, TransientBackendError)],
    )
    async def test_status_mapping(self, google_settings, blob_store, sleeps, payload, bundle, status, error):
        adapter, _ = make_adapter(
            google_settings, blob_store, sleeps, {":predict": [make_response(status, {"error": "x"})]}
        )
        with pytest.raises(error):
            await adapter.generate_anchor(payload, bundle, 1)

    @pytest.mark.asyncio
    async def test_connection_failure(self, google_settings, blob_store, sleeps, payload, bundle):
        adapter, _ = make_adapter(
            google_settings, blob_store, sleeps, {":predict": [requests.ConnectionError("down")]}
        )
        with pytest.raises(TransientBackendError):
            await adapter.generate_anchor(payload, bundle, 1)


class TestGoogleAnimate:
    """Tests for Veo animation and its poll loop."""

    ANCHOR = "https://cdn.example/anchor.png"

    @pytest.mark.asyncio
    async def test_polls_until_done(self, google_settings, blob_store, sleeps, payload, bundle):
        adapter, http = make_adapter(
            google_settings,
            blob_store,
            sleeps,
            {
                ":predictLongRunning": [make_response(200, {"name": "operations/op1"})],
                "operations/op1": [make_response(200, {"done": False}), make_response(200, VIDEO_DONE)],
                "anchor.png": [make_response(200, content=b"anchor-bytes")],
                "video.example": [make_response(200, content=b"mp4-bytes")],
            },
        )

        result = await adapter.animate_from_anchor(self.ANCHOR, payload, bundle, 10, seed=99)

        assert result.engine == "veo_2"
        assert result.seed == 99
        assert len(result.output_urls) == 1
        assert result.output_urls[0].startswith("memory://blobs/generations/clips/")
        assert result.output_urls[0].endswith(".mp4")
        assert stored(blob_store, result.output_urls[0]) == (b"mp4-bytes", "video/mp4")
        assert len(sleeps) == 2

        body = http.bodies(":predictLongRunning")[0]
        assert body["parameters"]["durationSeconds"] == 8
        assert body["parameters"]["seed"] == 99
        assert body["instances"][0]["image"]["bytesBase64Encoded"] == base64.b64encode(b"anchor-bytes").decode()

    @pytest.mark.asyncio
    async def test_anchor_fetch_failure_degrades_to_text(self, google_settings, blob_store, sleeps, payload, bundle):
        adapter, http = make_adapter(
            google_settings,
            blob_store,
            sleeps,
            {
                ":predictLongRunning": [make_response(200, {"name": "operations/op1"})],
                "operations/op1": [make_response(200, VIDEO_DONE)],
                "anchor.png": [make_response(404)],
                "video.example": [make_response(200, content=b"mp4-bytes")],
            },
        )

        await adapter.animate_from_anchor(self.ANCHOR, payload, bundle, 5)

        body = http.bodies(":predictLongRunning")[0]
        assert "image" not in body["instances"][0]

    @pytest.mark.asyncio
    async def test_poll_timeout(self, google_settings, blob_store, sleeps, payload, bundle):
        adapter, _ = make_adapter(
            google_settings,
            blob_store,
            sleeps,
            {
                ":predictLongRunning": [make_response(200, {"name": "operations/op1"})],
                "operations/op1": [make_response(200, {"done": False})],
                "anchor.png": [make_response(404)],
            },
        )

        with pytest.raises(EngineTimeoutError):
            await adapter.animate_from_anchor(self.ANCHOR, payload, bundle, 5)

        assert len(sleeps) == google_settings.max_poll_attempts

    @pytest.mark.asyncio
    async def test_poll_errors_are_tolerated(self, google_settings, blob_store, sleeps, payload, bundle):
        adapter, _ = make_adapter(
            google_settings,
            blob_store,
            sleeps,
            {
                ":predictLongRunning": [make_response(200, {"name": "operations/op1"})],
                "operations/op1": [make_response(500), make_response(200, VIDEO_DONE)],
                "anchor.png": [make_response(404)],
                "video.example": [make_response(200, content=b"mp4-bytes")],
            },
        )

        result = await adapter.animate_from_anchor(self.ANCHOR, payload, bundle, 5)
        assert len(result.output_urls) == 1

    @pytest.mark.asyncio
    async def test_cancelled_while_polling(self, google_settings, blob_store, sleeps, payload, bundle):
        event = asyncio.Event()
        adapter, _ = make_adapter(
            google_settings,
            blob_store,
            sleeps,
            {
                ":predictLongRunning": [make_response(200, {"name": "operations/op1"})],
                "operations/op1": [make_response(200, {"done": False})],
                "anchor.png": [make_response(404)],
            },
            on_sleep=event.set,
        )

        with pytest.raises(GenerationCancelledError):
            await adapter.animate_from_anchor(
                self.ANCHOR, payload, bundle, 5, ctx=CallContext(cancel_event=event)
            )

        assert len(sleeps) == 1

    @pytest.mark.asyncio
    async def test_cancel_wakes_poll_wait(self, google_settings, blob_store, payload, bundle):
        event = asyncio.Event()

        async def long_sleep(seconds):
            await asyncio.sleep(3600)

        http = FakeHttp({
            ":predictLongRunning": [make_response(200, {"name": "operations/op1"})],
            "operations/op1": [make_response(200, {"done": False})],
            "anchor.png": [make_response(404)],
        })
        adapter = GoogleEngineAdapter(google_settings, blob_store, http=http, sleep=long_sleep)
        asyncio.get_running_loop().call_later(0.01, event.set)

        with pytest.raises(GenerationCancelledError):
            await asyncio.wait_for(
                adapter.animate_from_anchor(
                    self.ANCHOR, payload, bundle, 5, ctx=CallContext(cancel_event=event)
                ),
                timeout=1.0,
            )

        assert not any("operations/op1" in r.url for r in http.requests)

    @pytest.mark.asyncio
    async def test_filtered_video(self, google_settings, blob_store, sleeps, payload, bundle):
        filtered = {
            "done": True,
            "response": {"generateVideoResponse": {"raiMediaFilteredReasons": ["Unsafe content"]}},
        }
        adapter, _ = make_adapter(
            google_settings,
            blob_store,
            sleeps,
            {
                ":predictLongRunning": [make_response(200, {"name": "operations/op1"})],
                "operations/op1": [make_response(200, filtered)],
                "anchor.png": [make_response(404)],
            },
        )

        with pytest.raises(PolicyFilteredError) as exc_info:
            await adapter.animate_from_anchor(self.ANCHOR, payload, bundle, 5)
        assert exc_info.value.reasons == ["Unsafe content"]

    @pytest.mark.asyncio
    async def test_operation_error(self, google_settings, blob_store, sleeps, payload, bundle):
        adapter, _ = make_adapter(
            google_settings,
            blob_store,
            sleeps,
            {
                ":predictLongRunning": [make_response(200, {"name": "operations/op1"})],
                "operations/op1": [make_response(200, {"done": True, "error": {"code": 3}})],
                "anchor.png": [make_response(404)],
            },
        )

        with pytest.raises(BackendRejectedError):
            await adapter.animate_from_anchor(self.ANCHOR, payload, bundle, 5)


class TestGoogleTargetedEdit:
    """Tests for Imagen targeted edits."""

    @pytest.mark.asyncio
    async def test_edit_prompt(self, google_settings, blob_store, sleeps):
        adapter, http = make_adapter(
            google_settings,
            blob_store,
            sleeps,
            {":predict": [make_response(200, {"predictions": [{"bytesBase64Encoded": IMAGE_B64}]})]},
        )

        result = await adapter.targeted_edit(
            "https://cdn.example/anchor.png",
            TargetRegionSpec(region="hands", asset_type="character"),
            "Six fingers on the left hand",
            seed=5,
        )

        assert result.engine == "imagen_4_edit"
        assert len(result.output_urls) == 1
        assert result.output_urls[0].startswith("memory://blobs/generations/repairs/")
        body = http.bodies(":predict")[0]
        assert body["parameters"]["seed"] == 5
        prompt = body["instances"][0]["prompt"]
        assert prompt == "Six fingers on the left hand. Focus on correcting the hands (character)."
        # Text-guided regeneration: the source image itself is not fetched
        assert all("anchor.png" not in r.url for r in http.requests)


class TestHelpers:
    def test_chunked_encoding_matches_plain(self):
        data = bytes(range(256)) * 400
        assert encode_base64_chunked(data) == base64.b64encode(data).decode()
        assert encode_base64_chunked(data, chunk_size=3) == base64.b64encode(data).decode()

    def test_requires_api_key(self, settings, blob_store):
        with pytest.raises(ValueError):
            GoogleEngineAdapter(settings, blob_store)


class TestGoogleStoredOutputs:
    """Stored outputs stay tied to the generation that produced them."""

    @pytest.mark.asyncio
    async def test_second_anchor_keeps_first_outputs(
        self, google_settings, blob_store, sleeps, registry, orchestrator
    ):
        adapter, _ = make_adapter(
            google_settings,
            blob_store,
            sleeps,
            {":predict": [
                make_response(200, {"predictions": [{"bytesBase64Encoded": b64(b"FIRST")}]}),
                make_response(200, {"predictions": [{"bytesBase64Encoded": b64(b"SECOND")}]}),
            ]},
        )
        registry.register(adapter, aliases=GOOGLE_ALIASES)

        first = await orchestrator.dispatch("shot_001", "anchor", principal="user_1")
        second = await orchestrator.dispatch("shot_001", "anchor", principal="user_1")

        assert first.succeeded and second.succeeded
        assert first.seed == second.seed
        assert first.output_urls != second.output_urls
        assert stored(blob_store, first.output_urls[0])[0] == b"FIRST"
        assert stored(blob_store, second.output_urls[0])[0] == b"SECOND"

    @pytest.mark.asyncio
    async def test_identical_bytes_share_one_object(self, google_settings, blob_store, sleeps, payload, bundle):
        adapter, _ = make_adapter(
            google_settings,
            blob_store,
            sleeps,
            {":predict": [make_response(200, {"predictions": [{"bytesBase64Encoded": IMAGE_B64}] * 2})]},
        )

        result = await adapter.generate_anchor(payload, bundle, 2)

        assert result.output_urls[0] == result.output_urls[1]
        assert len(blob_store.objects) == 1
