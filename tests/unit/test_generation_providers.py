"""Unit tests for generation providers."""

from __future__ import annotations

import json

import httpx
import pytest

from adstudio.config.settings import Settings
from adstudio.errors import ProviderError
from adstudio.generation.http_provider import MODEL_PATHS, HttpGenerationProvider
from adstudio.generation.providers import (
    DisabledGenerationProvider,
    FakeGenerationProvider,
    JobPoll,
    get_generation_provider,
)
from adstudio.resilience.circuit_breaker import CircuitBreaker, CircuitState


class TestFakeProvider:
    def test_auto_complete_after_polls(self):
        provider = FakeGenerationProvider(polls_until_done=2)
        handle = provider.submit_job("video", {"prompt": "x"})

        assert provider.poll_job(handle).status == "pending"
        done = provider.poll_job(handle)
        assert done.status == "done"
        assert done.result.endswith(".mp4")
        assert done.handle == handle

    def test_manual_outcomes(self):
        provider = FakeGenerationProvider(auto_complete=False)
        ok = provider.submit_job("image", {})
        bad = provider.submit_job("tts", {})

        provider.complete(ok, "https://cdn.example/ok.png")
        provider.fail(bad, "voice missing")

        assert provider.poll_job(ok) == JobPoll.done("https://cdn.example/ok.png", handle=ok)
        assert provider.poll_job(bad).error == "voice missing"

    def test_cancel(self):
        provider = FakeGenerationProvider(auto_complete=False)
        handle = provider.submit_job("image", {})

        assert provider.cancel_job(handle) is True
        assert provider.was_cancelled(handle)
        assert provider.poll_job(handle).status == "error"
        assert provider.cancel_job("nope") is False

    def test_unknown_handle(self):
        assert FakeGenerationProvider().poll_job("missing").status == "error"

    def test_submit_error(self):
        provider = FakeGenerationProvider()
        provider.submit_error = "quota"

        with pytest.raises(ProviderError, match="quota"):
            provider.submit_job("image", {})


def test_disabled_provider():
    provider = DisabledGenerationProvider()

    with pytest.raises(ProviderError):
        provider.submit_job("image", {})
    assert provider.poll_job("h").status == "error"
    assert provider.cancel_job("h") is False


def test_provider_selection():
    assert isinstance(get_generation_provider(), FakeGenerationProvider)
    assert get_generation_provider() is get_generation_provider()

    off = Settings(_env_file=None, generation_provider="off")
    assert isinstance(get_generation_provider(off), DisabledGenerationProvider)


def _provider(handler, *, breaker: CircuitBreaker | None = None) -> HttpGenerationProvider:
    client = httpx.Client(
        transport=httpx.MockTransport(handler),
        base_url="http://localhost",
        headers={"Authorization": "Bearer ws-key"},
    )
    return HttpGenerationProvider(api_key="ws-key", base_url="http://localhost", client=client, breaker=breaker)


class TestHttpProvider:
    def test_requires_api_key(self):
        with pytest.raises(ProviderError):
            HttpGenerationProvider(api_key="", base_url="http://localhost")

    def test_submit_job_contract(self):
        recorded: dict[str, object] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            recorded["method"] = request.method
            recorded["path"] = request.url.path
            recorded["auth"] = request.headers["authorization"]
            recorded["json"] = json.loads(request.content.decode("utf-8"))
            return httpx.Response(200, json={"data": {"id": "pred-123", "status": "created"}})

        handle = _provider(handler).submit_job("video", {"prompt": "push in", "image": "https://x/kf.png"})

        assert handle == "pred-123"
        assert recorded["method"] == "POST"
        assert recorded["path"] == MODEL_PATHS["video"]
        assert recorded["auth"] == "Bearer ws-key"
        assert recorded["json"] == {"prompt": "push in", "image": "https://x/kf.png", "enable_sync_mode": False}

    def test_submit_unknown_kind(self):
        with pytest.raises(ProviderError):
            _provider(lambda r: httpx.Response(200, json={})).submit_job("hologram", {})

    def test_submit_without_task_id(self):
        with pytest.raises(ProviderError, match="task id"):
            _provider(lambda r: httpx.Response(200, json={"data": {}})).submit_job("image", {})

    @pytest.mark.parametrize(
        "body,expected",
        [
            ({"status": "completed", "outputs": ["https://cdn/x.mp4"]}, JobPoll.done("https://cdn/x.mp4", handle="p1")),
            ({"status": "completed", "outputs": []}, JobPoll.failed("Provider completed without outputs", handle="p1")),
            ({"status": "failed", "error": "nsfw"}, JobPoll.failed("nsfw", handle="p1")),
            ({"status": "processing"}, JobPoll.pending(handle="p1")),
        ],
    )
    def test_poll_job(self, body, expected):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/v3/predictions/p1/result"
            return httpx.Response(200, json={"data": body})

        assert _provider(handler).poll_job("p1") == expected

    def test_client_error_raises_provider_error(self):
        provider = _provider(lambda r: httpx.Response(400, json={"message": "bad prompt"}))

        with pytest.raises(ProviderError, match="400"):
            provider.submit_job("image", {"prompt": ""})

    def test_cancel_is_best_effort(self):
        assert _provider(lambda r: httpx.Response(200, json={})).cancel_job("p1") is True
        assert _provider(lambda r: httpx.Response(404, json={})).cancel_job("p1") is False

    def test_breaker_opens_on_server_errors(self):
        calls = {"n": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["n"] += 1
            return httpx.Response(503, text="unavailable")

        breaker = CircuitBreaker(failure_threshold=2, recovery_timeout=60.0, name="test")
        provider = _provider(handler, breaker=breaker)

        for _ in range(3):
            with pytest.raises(ProviderError):
                provider.poll_job("p1")

        assert breaker.state == CircuitState.OPEN
        assert calls["n"] == 2
        assert provider.breaker is breaker

    def test_from_settings(self):
        cfg = Settings(_env_file=None, wavespeed_api_key="k", wavespeed_base_url="http://localhost")

        provider = HttpGenerationProvider.from_settings(cfg)
        try:
            assert provider.breaker is not None
            assert provider.breaker.failure_threshold == cfg.circuit_breaker_failure_threshold
        finally:
            provider.close()
