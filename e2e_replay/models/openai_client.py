"""OpenAI-compatible chat completions client for the e2e-replay runner."""

import logging
from typing import Any, Dict, List, Optional

import openai
from openai import AsyncOpenAI

from e2e_replay.config.settings import Settings, get_settings
from e2e_replay.error_handling.exceptions import ConfigurationError, OracleError


class OpenAIClient:
    """Wrapper for chat completion calls against an OpenAI-compatible endpoint."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            settings: Settings instance (defaults to cached settings)
            model: Model override
            api_key: API key override (defaults to env/config)
            base_url: Endpoint override
            client: Pre-built AsyncOpenAI client, mainly for tests

        Raises:
            ConfigurationError: When no API key is configured
        """
        self.settings = settings or get_settings()
        self.model = model or self.settings.llm_model
        self.temperature = self.settings.llm_temperature
        self.max_tokens = self.settings.llm_max_tokens
        self.request_timeout = float(self.settings.llm_request_timeout_seconds)
        self.logger = logging.getLogger("e2e_replay.openai_client")

        self.api_key = api_key or self.settings.openrouter_api_key
        if not self.api_key and client is None:
            raise ConfigurationError(
                "LLM API key not provided. Set OPENROUTER_API_KEY (or OPENAI_API_KEY).",
                setting="openrouter_api_key",
            )

        self.client = client or AsyncOpenAI(
            api_key=self.api_key,
            base_url=base_url or self.settings.llm_base_url,
            max_retries=self.settings.llm_max_retries,
            default_headers={
                "HTTP-Referer": self.settings.llm_app_referer,
                "X-Title": self.settings.llm_app_title,
            },
        )

    async def call(
        self,
        messages: List[Dict[str, str]],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        system_prompt: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Make a chat completion call.

        Returns:
            Dict with ``content`` (text), ``usage``, ``model`` and ``finish_reason``

        Raises:
            openai.APIError: When the endpoint rejects the call
            OracleError: When the response carries no choices
        """
        final_messages: List[Dict[str, str]] = []
        if system_prompt:
            final_messages.append({"role": "system", "content": system_prompt})
        final_messages.extend(messages)

        temperature = self.temperature if temperature is None else temperature
        self.logger.debug(
            f"LLM call: model={self.model}, "
            f"messages={len(final_messages)}, temperature={temperature}"
        )

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=final_messages,
                temperature=temperature,
                max_tokens=max_tokens or self.max_tokens,
                timeout=self.request_timeout,
            )
        except openai.APIError as e:
            self.logger.error(f"LLM API error: {e}")
            raise

        if not response.choices:
            model = getattr(response, "model", None)
            self.logger.error(f"LLM returned no choices (model={model})")
            raise OracleError("LLM response contained no choices", model=model)

        choice = response.choices[0]
        usage = response.usage
        return {
            "content": choice.message.content or "",
            "usage": {
                "prompt_tokens": getattr(usage, "prompt_tokens", 0) if usage else 0,
                "completion_tokens": getattr(usage, "completion_tokens", 0) if usage else 0,
                "total_tokens": getattr(usage, "total_tokens", 0) if usage else 0,
            },
            "model": response.model,
            "finish_reason": choice.finish_reason,
        }

    async def complete(self, prompt: str, **kwargs: Any) -> str:
        """Single user-message call returning only the text."""
        response = await self.call([{"role": "user", "content": prompt}], **kwargs)
        return response["content"]
