"""
Tests for sorter_monitor.advisor.enrichment.

HTTP is served by ``httpx.MockTransport``; no network access.
"""

from __future__ import annotations

import json

import httpx
import pytest

from sorter_monitor.advisor.enrichment import (
    DisabledTextGenerator,
    OllamaTextGenerator,
    build_text_generator,
    parse_advice_text,
)
from sorter_monitor.config import AdvisorConfig
from sorter_monitor.errors import EnrichmentError
from sorter_monitor.models.advice import AdviceAction


def _generator(handler) -> OllamaTextGenerator:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return OllamaTextGenerator("http://ollama:11434/", "sorter-advisor", http_client=client)


# ── OllamaTextGenerator ───────────────────────────────────────────────────────

class TestOllamaTextGenerator:
    def test_request_shape(self):
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"response": "fine"})

        assert _generator(handler).generate("PROMPT") == "fine"
        assert seen["url"] == "http://ollama:11434/api/generate"
        assert seen["body"] == {
            "model": "sorter-advisor",
            "prompt": "PROMPT",
            "stream": False,
            "temperature": 0.1,
            "options": {"num_predict": 200, "top_p": 0.9},
        }

    def test_non_200_raises(self):
        gen = _generator(lambda r: httpx.Response(500, text="boom"))
        with pytest.raises(EnrichmentError, match="status 500"):
            gen.generate("p")

    def test_missing_response_field_raises(self):
        gen = _generator(lambda r: httpx.Response(200, json={"done": True}))
        with pytest.raises(EnrichmentError):
            gen.generate("p")

    def test_malformed_json_raises(self):
        gen = _generator(lambda r: httpx.Response(200, text="not json"))
        with pytest.raises(EnrichmentError):
            gen.generate("p")

    def test_transport_error_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        with pytest.raises(EnrichmentError):
            _generator(handler).generate("p")

    def test_trickled_body_raises_at_deadline(self, drip_stream, stepping_clock):
        body = drip_stream(b'{"response": "hold, loads are balanced"}')
        client = httpx.Client(
            transport=httpx.MockTransport(lambda r: httpx.Response(200, stream=body))
        )
        gen = OllamaTextGenerator("http://ollama:11434", "m", timeout_s=1.0, http_client=client)
        with pytest.raises(EnrichmentError, match="within 1.0s"):
            gen.generate("p")
        assert body.sent < len(body.body)


# ── Factory ───────────────────────────────────────────────────────────────────

class TestBuildTextGenerator:
    def test_disabled_by_default(self):
        assert isinstance(build_text_generator(AdvisorConfig()), DisabledTextGenerator)

    def test_enabled_without_model_is_disabled(self):
        gen = build_text_generator(AdvisorConfig(enabled=True))
        assert not gen.enabled

    def test_enabled_with_model(self):
        gen = build_text_generator(AdvisorConfig(enabled=True, model="m", timeout_s=5.0))
        assert isinstance(gen, OllamaTextGenerator)
        assert gen.timeout_s == 5.0

    def test_disabled_generate_raises(self):
        with pytest.raises(EnrichmentError):
            DisabledTextGenerator().generate("p")


# ── parse_advice_text ─────────────────────────────────────────────────────────

class TestParseAdviceText:
    def test_english_fields(self, fixed_now):
        advice = parse_advice_text(
            '{"action": "move", "sku": "X", "from_sorter": 1, "to_sorter": 2, "reason": "r"}',
            fixed_now,
        )
        assert advice.action is AdviceAction.MOVE
        assert advice.issued_at == fixed_now

    def test_spanish_hold(self, fixed_now):
        advice = parse_advice_text('{"accion": "MANTENER", "razon": "balanceado"}', fixed_now)
        assert advice.action is AdviceAction.HOLD
        assert advice.reason == "balanceado"

    def test_embedded_in_prose(self, fixed_now):
        text = 'Analysis done.\n{"action": "hold", "reason": "ok"}\nBye.'
        assert parse_advice_text(text, fixed_now).action is AdviceAction.HOLD

    def test_move_same_sorter_rejected(self, fixed_now):
        text = '{"action": "move", "sku": "X", "from_sorter": 1, "to_sorter": 1, "reason": "r"}'
        assert parse_advice_text(text, fixed_now) is None

    def test_move_without_sku_rejected(self, fixed_now):
        text = '{"action": "move", "from_sorter": 1, "to_sorter": 2, "reason": "r"}'
        assert parse_advice_text(text, fixed_now) is None

    def test_missing_reason_rejected(self, fixed_now):
        assert parse_advice_text('{"action": "hold"}', fixed_now) is None

    def test_no_json(self, fixed_now):
        assert parse_advice_text("just move X", fixed_now) is None

    def test_broken_json(self, fixed_now):
        assert parse_advice_text('{"action": "hold", reason}', fixed_now) is None
