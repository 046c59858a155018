"""
Optional advice enrichment through a text-generation service.

Endpoint (Ollama-compatible)::

    POST {ollama_url}/api/generate
      {"model": "...", "prompt": "...", "stream": false, "temperature": 0.1,
       "options": {"num_predict": 200, "top_p": 0.9}}
    → {"response": "..."}

Two implementations of the ``TextGenerator`` capability:

  OllamaTextGenerator    real HTTP client with a bounded timeout.
  DisabledTextGenerator  enrichment not configured; never called.

Whether enrichment happens is a configuration choice (``[advisor] enabled``
and ``model``), not a runtime exception path.  When it is enabled and the
service misbehaves, ``generate()`` raises ``EnrichmentError`` and the advisor
falls back to its local advice.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from sorter_monitor.config import AdvisorConfig
from sorter_monitor.errors import EnrichmentError
from sorter_monitor.models.advice import Advice, AdviceAction, AdvisorState, Imbalance
from sorter_monitor.utils.http import request_with_deadline

logger = logging.getLogger(__name__)

TOP_IMBALANCES_IN_PROMPT = 3

# Field names a fine-tuned model may answer with → Advice field names
_FIELD_ALIASES: dict[str, str] = {
    "accion":    "action",
    "de_sorter": "from_sorter",
    "a_sorter":  "to_sorter",
    "razon":     "reason",
}
_ACTION_ALIASES: dict[str, str] = {
    "mantener": AdviceAction.HOLD.value,
    "mover":    AdviceAction.MOVE.value,
}


# ── Capability ────────────────────────────────────────────────────────────────


class TextGenerator(ABC):
    """Capability: turn a prompt into free text."""

    enabled: bool = True

    @abstractmethod
    def generate(self, prompt: str) -> str:
        """Return generated text.

        Raises:
            EnrichmentError: On transport failure, timeout, non-200 status
                or a body without a ``response`` string.
        """


class DisabledTextGenerator(TextGenerator):
    """Enrichment switched off."""

    enabled = False

    def generate(self, prompt: str) -> str:
        raise EnrichmentError("text generation is disabled")


class OllamaTextGenerator(TextGenerator):
    """Ollama ``/api/generate`` client.

    Args:
        base_url: Service root, e.g. ``"http://localhost:11434"``.
        model: Model name to run.
        timeout_s: Whole-request timeout.
        temperature / num_predict / top_p: Sampling parameters.
        http_client: Optional pre-built ``httpx.Client``.
    """

    def __init__(
        self,
        base_url: str,
        model: str,
        timeout_s: float = 15.0,
        temperature: float = 0.1,
        num_predict: int = 200,
        top_p: float = 0.9,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout_s = timeout_s
        self.temperature = temperature
        self.num_predict = num_predict
        self.top_p = top_p
        self._client = http_client or httpx.Client(timeout=timeout_s)

    def request_body(self, prompt: str) -> dict[str, Any]:
        return {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "temperature": self.temperature,
            "options": {"num_predict": self.num_predict, "top_p": self.top_p},
        }

    def generate(self, prompt: str) -> str:
        url = f"{self.base_url}/api/generate"
        try:
            resp = request_with_deadline(
                self._client, "POST", url, self.timeout_s, json=self.request_body(prompt)
            )
        except httpx.HTTPError as exc:
            raise EnrichmentError(f"POST {url} failed: {exc}") from exc

        if resp.status_code != 200:
            raise EnrichmentError(f"Text generation returned status {resp.status_code}")

        try:
            body = resp.json()
        except ValueError as exc:
            raise EnrichmentError(f"Malformed JSON from text generation: {exc}") from exc

        text = body.get("response") if isinstance(body, dict) else None
        if not isinstance(text, str):
            raise EnrichmentError("Invalid response format from text generation")
        return text


def build_text_generator(config: AdvisorConfig) -> TextGenerator:
    """Real client when enrichment is enabled and a model is named, else disabled."""
    if config.enabled and config.model:
        return OllamaTextGenerator(
            base_url=config.ollama_url,
            model=config.model,
            timeout_s=config.timeout_s,
            temperature=config.temperature,
            num_predict=config.num_predict,
            top_p=config.top_p,
        )
    return DisabledTextGenerator()


# ── Prompt / response ─────────────────────────────────────────────────────────


def _format_sorter_block(label: str, loads: dict) -> list[str]:
    lines = [f"{label}:"]
    for sku in sorted(loads):
        load = loads[sku]
        if load.percentage > 0:
            lines.append(f"  {sku}: {load.percentage:.1f}% (lines {load.lines})")
    return lines


def build_prompt(state: AdvisorState, imbalances: list[Imbalance], draft_reason: str) -> str:
    """Prompt with the full state, top imbalances and the locally drafted reason."""
    parts: list[str] = ["CURRENT SYSTEM STATE:", ""]
    parts += _format_sorter_block("Sorter 1", state.sorter_1)
    parts.append("")
    parts += _format_sorter_block("Sorter 2", state.sorter_2)
    parts += ["", "DETECTED IMBALANCES:"]
    for imb in imbalances[:TOP_IMBALANCES_IN_PROMPT]:
        parts.append(
            f"  {imb.sku}: {imb.difference:.1f}% difference "
            f"(S1:{imb.pct1:.1f}% vs S2:{imb.pct2:.1f}%)"
        )
    parts += [
        "",
        f"INITIAL SUGGESTION: {draft_reason}",
        "",
        "Please confirm or improve this suggestion following the balancing rules. "
        'Answer with JSON: {"action": "hold"|"move", "sku": ..., '
        '"from_sorter": ..., "to_sorter": ..., "reason": ...}.',
    ]
    return "\n".join(parts)


def parse_advice_text(text: str, issued_at: datetime) -> Optional[Advice]:
    """Parse generated text as an ``Advice``; ``None`` if it is not well-formed.

    Accepts a JSON object anywhere in the text.  ``move`` advice must name a
    SKU and two different sorters.
    """
    start, end = text.find("{"), text.rfind("}")
    if start < 0 or end <= start:
        return None
    try:
        raw = json.loads(text[start : end + 1])
    except ValueError:
        return None
    if not isinstance(raw, dict):
        return None

    data = {_FIELD_ALIASES.get(k, k): v for k, v in raw.items()}
    if isinstance(data.get("action"), str):
        data["action"] = _ACTION_ALIASES.get(data["action"].lower(), data["action"].lower())
    data["issued_at"] = issued_at

    try:
        advice = Advice.model_validate(data)
    except ValidationError:
        return None

    if advice.action is AdviceAction.MOVE and (
        not advice.sku
        or advice.from_sorter is None
        or advice.to_sorter is None
        or advice.from_sorter == advice.to_sorter
    ):
        return None
    return advice
