"""
llm.py – Text-generation gateway
================================
The one place CaseCoach talks to a language model.  Any OpenAI-compatible
chat-completions endpoint works (OpenAI, an AI gateway, OpenRouter): set
LLM_BASE_URL and LLM_API_KEY.

Contract::

    generate(system_instruction, user_message) -> GenerationResult
                                               |  raises GatewayError

The configuration object is injected at construction; there is no ambient
client.  One attempt per call with a bounded timeout and no retries.  The
caller decides what a failure means (the orchestrator substitutes the
rule-based responder in mock_agents.py).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import openai
from openai import OpenAI

from case_coach.config import LLMConfig, get_settings
from case_coach.errors import GatewayRequestError, GatewayUnavailableError

logger = logging.getLogger(__name__)

_OPENROUTER_HEADERS = {
    "HTTP-Referer": "https://casecoach-ai.vercel.app",
    "X-Title":      "CaseCoach AI",
}


@dataclass(frozen=True)
class GenerationResult:
    """Generated text plus pass-through telemetry (never used for control flow)."""
    text:        str
    model:       str
    tokens_used: int = 0


class TextGenerationGateway:
    """
    Thin wrapper around ``openai.OpenAI`` chat completions.

    Args:
        config:  LLM settings; defaults to ``get_settings().llm``.
        enabled: force live/offline; defaults to ``Settings.live_mode`` (or
                 ``config.is_configured`` when a config is passed explicitly).
        client:  pre-built client, mainly for tests.
    """

    def __init__(
        self,
        config: LLMConfig | None = None,
        *,
        enabled: bool | None = None,
        client: Any = None,
    ) -> None:
        if config is None:
            settings = get_settings()
            config = settings.llm
            if enabled is None:
                enabled = settings.live_mode
        elif enabled is None:
            enabled = config.is_configured

        self._cfg = config
        self._client = client
        if self._client is None and enabled:
            self._client = OpenAI(
                api_key=config.api_key,
                base_url=config.base_url,
                timeout=config.timeout_seconds,
                max_retries=0,
                default_headers=_OPENROUTER_HEADERS if config.is_openrouter else None,
            )

    @property
    def is_live(self) -> bool:
        return self._client is not None

    @property
    def model(self) -> str:
        return self._cfg.model

    def generate(self, system_instruction: str, user_message: str) -> GenerationResult:
        if self._client is None:
            raise GatewayUnavailableError("No LLM API key configured (or FORCE_MOCK_MODE is set).")

        try:
            response = self._client.chat.completions.create(
                model=self._cfg.model,
                messages=[
                    {"role": "system", "content": system_instruction},
                    {"role": "user",   "content": user_message},
                ],
                max_tokens=self._cfg.max_tokens,
                temperature=self._cfg.temperature,
            )
        except openai.APITimeoutError as exc:
            logger.warning("LLM call timed out after %.0fs", self._cfg.timeout_seconds)
            raise GatewayRequestError(str(exc), reason="timeout") from exc
        except openai.APIStatusError as exc:
            logger.warning("LLM API error (%s): %s", exc.status_code, exc.message)
            raise GatewayRequestError(exc.message, reason=str(exc.status_code)) from exc
        except openai.APIConnectionError as exc:
            logger.warning("LLM call failed: %s", exc)
            raise GatewayRequestError(str(exc), reason="network-error") from exc
        except openai.OpenAIError as exc:
            logger.warning("LLM client error: %s", exc)
            raise GatewayRequestError(str(exc)) from exc

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise GatewayRequestError("LLM returned an empty response.", reason="empty-response")

        tokens = response.usage.total_tokens if response.usage is not None else 0
        return GenerationResult(
            text=content,
            model=response.model or self._cfg.model,
            tokens_used=tokens or 0,
        )
