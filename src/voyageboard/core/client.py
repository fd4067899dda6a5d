"""text-generation client for the ark responses api.

one http request per completion, bearer-token auth. an incomplete config
means no request at all.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Optional, Protocol, runtime_checkable

import httpx

from .config import ApiConfig, DEFAULT_TIMEOUT


class ClientError(Exception):
    """transport failure: network error or non-success status."""

    pass


@runtime_checkable
class ClientProtocol(Protocol):
    """protocol for generation clients (real or mock)."""

    async def complete(
        self,
        prompt: str,
        system_instruction: str = "",
        config: Optional[ApiConfig] = None,
    ) -> Optional[str]:
        """send prompt and return response text, or None when unconfigured."""
        ...


class MockClient:
    """mock client for testing without api calls."""

    def __init__(
        self,
        responses: Optional[dict[str, str]] = None,
        delay: float = 0.5,
        error: Optional[Exception] = None,
    ):
        """init with optional response mapping.

        responses: dict mapping prompt substrings to responses.
        if prompt contains key (case-insensitive), return value.
        delay: simulated API delay in seconds.
        error: raised from every call instead of responding.
        """
        self.responses = responses or {}
        self.calls: list[str] = []  # track all prompts sent
        self.delay = delay
        self.error = error
        # one step for fill, plus top-level fields for a single-stop reply
        self.default_response = json.dumps({
            "title": "mock stop",
            "content": "simulated response from mock mode.",
            "cost": "¥0",
            "type": "location",
            "image_keyword": "travel",
            "steps": [{
                "title": "mock stop",
                "content": "simulated response from mock mode.",
                "cost": "¥0",
                "type": "note",
                "image_keyword": "travel",
            }],
        }, ensure_ascii=False)

    async def complete(
        self,
        prompt: str,
        system_instruction: str = "",
        config: Optional[ApiConfig] = None,
    ) -> Optional[str]:
        """return mock response based on prompt."""
        self.calls.append(prompt)

        # simulate API delay
        await asyncio.sleep(self.delay)

        if self.error is not None:
            raise self.error

        # check for matching response (case-insensitive)
        prompt_lower = prompt.lower()
        for key, response in self.responses.items():
            if key.lower() in prompt_lower:
                return response

        return self.default_response


class ArkClient:
    """async client for an openai-responses-style endpoint.

    creates a fresh http client per request; config may change between calls.
    """

    def __init__(
        self,
        config: Optional[ApiConfig] = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or ApiConfig()
        self.timeout = timeout
        self._transport = transport

    async def complete(
        self,
        prompt: str,
        system_instruction: str = "",
        config: Optional[ApiConfig] = None,
    ) -> Optional[str]:
        """send a prompt and return the response text.

        args:
            prompt: user prompt (may already carry a schema hint)
            system_instruction: system role text
            config: overrides the client's config for this call

        raises ClientError on network failure or non-success status.
        """
        config = config or self.config
        if not config.is_configured:
            logging.debug("generation skipped: api config incomplete")
            return None

        payload = build_request_body(config.model, prompt, system_instruction)
        headers = {
            "Authorization": f"Bearer {config.api_key}",
            "Content-Type": "application/json",
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as http:
                response = await http.post(config.endpoint, json=payload, headers=headers)
        except (httpx.HTTPError, httpx.InvalidURL, UnicodeEncodeError) as e:
            # a non-ascii key cannot go into a header
            raise ClientError(f"ark api request failed: {e}") from e

        if not response.is_success:
            raise ClientError(f"ARK API Error: {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise ClientError(f"ark api returned non-json body: {e}") from e

        text = extract_output_text(data)
        logging.debug(f"ark response: {text[:50] if text else 'empty'}...")
        return text


def build_request_body(model: str, prompt: str, system_instruction: str = "") -> dict:
    """request payload: one system message and one user message."""
    return {
        "model": model,
        "input": [
            {
                "role": "system",
                "content": [{"type": "input_text", "text": system_instruction}],
            },
            {
                "role": "user",
                "content": [{"type": "input_text", "text": prompt}],
            },
        ],
    }


def extract_output_text(data: object) -> str:
    """pull response text from `output_text`, else the first output content block."""
    if not isinstance(data, dict):
        return ""
    text = data.get("output_text")
    if isinstance(text, str) and text:
        return text
    try:
        block_text = data["output"][0]["content"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return ""
    return block_text if isinstance(block_text, str) else ""
