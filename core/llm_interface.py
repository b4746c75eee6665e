# core/llm_interface.py
"""
Handles all direct interactions with the content-generation model.

``LLMService`` talks to an OpenAI-compatible ``/chat/completions`` endpoint
over a shared ``httpx.AsyncClient``, cleans common model artifacts from the
response text and, for stages that expect structured output, extracts the
JSON object from the reply. Each call is a single attempt: retries and
deadlines belong to the stage pipeline, so transport problems are surfaced
as :class:`~core.exceptions.GenerationError` subclasses.

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at

    http://www.apache.org/licenses/LICENSE-2.0

Unless required by applicable law or agreed to in writing, software
distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
See the License for the specific language governing permissions and
limitations under the License.

Copyright 2025 Dennis Lewis
"""

# Standard library imports
import asyncio
import json
import re

# Type hints
from collections.abc import Mapping
from typing import Any

# Third-party imports
import httpx
import structlog

# Local imports
from config import settings
from core.exceptions import GenerationError, GenerationMalformed, GenerationTimeout

logger = structlog.get_logger(__name__)

_FENCE_RE = re.compile(r"```(?:[a-zA-Z0-9_-]+)?\s*(.*?)\s*```", re.DOTALL)
_THINK_TAGS = (
    "think",
    "thought",
    "thinking",
    "reasoning",
    "analysis",
    "no_think",
)


# Token parameter handling
def _completion_token_param(api_base: str) -> str:
    """Return the token count parameter expected by the provider."""
    if "api.openai.com" in api_base:
        return "max_completion_tokens"
    return "max_tokens"


def extract_json_payload(text: str) -> Any:
    """Parse the JSON value carried by ``text``.

    Code fences are tolerated, as is chatter before the first ``{`` or
    after the last ``}``. Raises GenerationMalformed when nothing parses.
    """
    if not isinstance(text, str) or not text.strip():
        raise GenerationMalformed("empty response where JSON was expected")

    candidates = [text.strip()]
    fenced = _FENCE_RE.search(text)
    if fenced:
        candidates.append(fenced.group(1).strip())
    start, end = text.find("{"), text.rfind("}")
    if 0 <= start < end:
        candidates.append(text[start : end + 1])

    last_error: json.JSONDecodeError | None = None
    for candidate in candidates:
        try:
            return json.loads(candidate)
        except json.JSONDecodeError as exc:
            last_error = exc
    raise GenerationMalformed(f"response is not valid JSON: {last_error}")


class LLMService:
    """Utility class for interacting with the chat completions endpoint."""

    def __init__(
        self,
        timeout: float = settings.HTTPX_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ):
        # Use a single async client for all requests to reuse connections
        self._client = client or httpx.AsyncClient(timeout=timeout)
        # Add a semaphore to limit concurrent requests
        self._semaphore = asyncio.Semaphore(settings.MAX_CONCURRENT_LLM_CALLS)
        self.request_count = 0
        logger.info(
            "LLMService initialized.",
            concurrency_limit=settings.MAX_CONCURRENT_LLM_CALLS,
            api_base=settings.OPENAI_API_BASE,
        )

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    def _log_llm_usage(self, model_name: str, usage_data: Any) -> None:
        """Helper to log token usage if available in the response."""
        if usage_data and isinstance(usage_data, dict):
            logger.info(
                "LLM usage.",
                model=model_name,
                prompt_tokens=usage_data.get("prompt_tokens"),
                completion_tokens=usage_data.get("completion_tokens"),
                total_tokens=usage_data.get("total_tokens"),
            )
        else:
            logger.debug("LLM response missing usage information.", model=model_name)

    async def _post_chat(
        self, payload: dict[str, Any], headers: dict[str, str]
    ) -> tuple[str, dict[str, int] | None]:
        """Send one non-streaming chat completion request."""
        response = await self._client.post(
            f"{settings.OPENAI_API_BASE}/chat/completions",
            json=payload,
            headers=headers,
        )
        response.raise_for_status()
        try:
            data = response.json()
        except ValueError as exc:
            raise GenerationMalformed(
                f"completion endpoint returned a non-JSON body: {response.text[:200]}"
            ) from exc

        choices = data.get("choices") if isinstance(data, dict) else None
        if not choices:
            raise GenerationMalformed(
                f"completion response has no choices: {str(data)[:200]}"
            )
        message = choices[0].get("message") or {}
        content = message.get("content")
        if not isinstance(content, str):
            raise GenerationMalformed("completion response has no message content")
        return content, data.get("usage")

    async def async_call_llm(
        self,
        model_name: str,
        prompt: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
        expect_json: bool = False,
        auto_clean_response: bool = True,
    ) -> tuple[str, dict[str, int] | None]:
        """Call the model once and return ``(text, usage)``.

        Raises GenerationTimeout on transport timeouts and GenerationError
        for any other HTTP failure.
        """
        if not prompt or not isinstance(prompt, str) or not prompt.strip():
            raise GenerationError("empty or invalid prompt")

        payload: dict[str, Any] = {
            "model": model_name,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": (
                temperature if temperature is not None else settings.TEMPERATURE_DRAFT
            ),
            "top_p": settings.LLM_TOP_P,
            "stream": False,
        }
        if max_tokens is not None:
            payload[_completion_token_param(settings.OPENAI_API_BASE)] = max_tokens
        if expect_json:
            payload["response_format"] = {"type": "json_object"}
        headers = {
            "Authorization": f"Bearer {settings.OPENAI_API_KEY}",
            "Content-Type": "application/json",
        }

        async with self._semaphore:
            self.request_count += 1
            logger.debug(
                "Calling LLM.",
                model=model_name,
                prompt_chars=len(prompt),
                temperature=payload["temperature"],
                expect_json=expect_json,
            )
            try:
                text, usage = await self._post_chat(payload, headers)
            except httpx.TimeoutException as exc:
                logger.warning("LLM request timed out.", model=model_name, error=str(exc))
                raise GenerationTimeout(f"request to '{model_name}' timed out") from exc
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                logger.warning(
                    "LLM request failed.",
                    model=model_name,
                    status=status,
                    body=exc.response.text[:200],
                )
                raise GenerationError(f"HTTP status {status} from '{model_name}'") from exc
            except httpx.RequestError as exc:
                logger.warning("LLM request error.", model=model_name, error=str(exc))
                raise GenerationError(f"request error: {exc}") from exc

        self._log_llm_usage(model_name, usage)
        if auto_clean_response and not expect_json:
            text = self.clean_model_response(text)
        return text, usage

    async def generate(
        self, stage_prompt: str, context: Mapping[str, Any]
    ) -> str | dict[str, Any]:
        """ContentGenerator entry point used by the stage pipeline."""
        expect_json = bool(context.get("expect_json"))
        text, _ = await self.async_call_llm(
            context.get("model") or settings.GENERATION_MODEL,
            stage_prompt,
            temperature=context.get("temperature"),
            max_tokens=context.get("max_tokens"),
            expect_json=expect_json,
        )
        if not expect_json:
            return text
        payload = extract_json_payload(self.strip_reasoning(text))
        if not isinstance(payload, dict):
            raise GenerationMalformed(
                f"expected a JSON object, got {type(payload).__name__}"
            )
        return payload

    def strip_reasoning(self, text: str) -> str:
        """Remove <think>-style blocks some models emit before the answer."""
        cleaned = text
        for tag_name in _THINK_TAGS:
            cleaned = re.sub(
                rf"<\s*{tag_name}\s*>.*?<\s*/\s*{tag_name}\s*>",
                "",
                cleaned,
                flags=re.DOTALL | re.IGNORECASE,
            )
            cleaned = re.sub(
                rf"<\s*/?\s*{tag_name}\s*/?\s*>", "", cleaned, flags=re.IGNORECASE
            )
        return cleaned

    def clean_model_response(self, text: str) -> str:
        """Cleans common artifacts from LLM text responses and normalizes newlines."""
        if not isinstance(text, str):
            logger.warning(
                "clean_model_response received non-string input.",
                input_type=type(text).__name__,
            )
            return ""

        original_length = len(text)
        cleaned_text = self.strip_reasoning(text)
        cleaned_text = _FENCE_RE.sub(r"\1", cleaned_text)

        common_phrases_patterns = [
            r"^\s*(Okay,\s*)?(Sure,\s*)?(Here's|Here is)\s+(the|your)\s+[\w\s]+?:\s*",
            r"^\s*Certainly! Here is the text:\s*",
            r"^\s*(?:Output|Result|Response|Answer)\s*:\s*",
            r"\s*Let me know if you (need|have) any(thing else| other questions| further revisions| adjustments)\b.*?\.?[^\w\n]*$",
            r"\s*I hope this (meets your expectations|helps|is what you were looking for)\b.*?\.?[^\w\n]*$",
            r"\s*Is there anything else I can help you with\b.*?(\?|.)[^\w\n]*$",
        ]
        for pattern_str in common_phrases_patterns:
            cleaned_text = re.sub(
                pattern_str,
                "",
                cleaned_text.strip(),
                count=1,
                flags=re.IGNORECASE | re.MULTILINE,
            )

        final_text = cleaned_text.strip()
        final_text = re.sub(r"\n{3,}", "\n\n", final_text)

        if original_length and len(final_text) < original_length:
            logger.debug(
                "Cleaned model response.",
                before=original_length,
                after=len(final_text),
            )
        return final_text
