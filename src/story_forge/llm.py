"""LLM client abstraction.

Supports multiple backends:
- Ollama (local)
- Hugging Face Inference API (cloud, OpenAI-compatible router)

Generation code only depends on the ``ChatCaller`` protocol, so tests and other
backends can stand in for ``LLMClient``.
"""

import json
import logging
import re
from typing import Optional, Protocol

import httpx

from .agents import AgentConfig
from .config import get_settings
from .errors import ChatTimeoutError, ChatTransportError

logger = logging.getLogger(__name__)


class ChatCaller(Protocol):
    """One prompt in, one completion out."""

    def complete(self, agent: AgentConfig, prompt: str, timeout: float) -> str:
        """Return the completion text.

        Raises:
            ChatTimeoutError: no answer within ``timeout`` seconds
            ChatTransportError: network or backend failure
        """
        ...


class LLMClient:
    """Unified LLM client supporting multiple providers.

    Usage:
        client = LLMClient()  # Uses config defaults
        text = client.complete(agent, "Write a story about a lighthouse", timeout=60)

        # Or specify provider
        client = LLMClient(provider="huggingface")
    """

    def __init__(
        self,
        provider: Optional[str] = None,
        http: Optional[httpx.Client] = None,
    ):
        """Initialize LLM client.

        Args:
            provider: "ollama" or "huggingface" (default from config)
            http: Shared httpx client (one is created when omitted)
        """
        self.settings = get_settings()
        self.provider = provider or self.settings.llm_provider
        if self.provider not in ("ollama", "huggingface"):
            raise ValueError(f"Unknown LLM provider: {self.provider}")
        self.http = http or httpx.Client()

    def complete(self, agent: AgentConfig, prompt: str, timeout: float) -> str:
        """Run one chat completion for an agent.

        Args:
            agent: Model, system prompt and sampling settings
            prompt: User message
            timeout: Request timeout in seconds

        Returns:
            Completion text (stripped)
        """
        messages = []
        if agent.system_prompt:
            messages.append({"role": "system", "content": agent.system_prompt})
        messages.append({"role": "user", "content": prompt})

        if self.provider == "huggingface":
            url = f"{self.settings.hf_base_url.rstrip('/')}/chat/completions"
            headers = {"Authorization": f"Bearer {self.settings.hf_api_key}"}
            payload = {
                "model": agent.model,
                "messages": messages,
                "temperature": agent.temperature,
                "max_tokens": agent.max_tokens,
            }
        else:
            url = f"{self.settings.ollama_base_url.rstrip('/')}/api/chat"
            headers = {}
            payload = {
                "model": agent.model,
                "messages": messages,
                "stream": False,
                "options": {
                    "temperature": agent.temperature,
                    "num_predict": agent.max_tokens,
                },
            }

        try:
            response = self.http.post(url, json=payload, headers=headers, timeout=timeout)
        except httpx.TimeoutException as e:
            raise ChatTimeoutError(f"{agent.model} did not answer within {timeout:g}s") from e
        except httpx.RequestError as e:
            raise ChatTransportError(f"{agent.model}: {e}") from e

        if response.status_code != 200:
            raise ChatTransportError(
                f"{agent.model}: HTTP {response.status_code}: {response.text[:200]}"
            )

        try:
            return self._parse_content(response.json())
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ChatTransportError(f"{agent.model}: unexpected response body") from e

    def _parse_content(self, body: dict) -> str:
        if self.provider == "huggingface":
            # OpenAI-compatible response format
            return (body["choices"][0]["message"]["content"] or "").strip()
        return (body["message"]["content"] or "").strip()

    @property
    def is_available(self) -> bool:
        """Check if the LLM backend is available."""
        if self.provider == "huggingface":
            return bool(self.settings.hf_api_key)
        else:
            # Check Ollama
            try:
                response = self.http.get(
                    f"{self.settings.ollama_base_url.rstrip('/')}/api/tags",
                    timeout=5.0,
                )
                return response.status_code == 200
            except httpx.RequestError:
                return False


def extract_json(response: str) -> list | dict | None:
    """Extract JSON from LLM response.

    Handles markdown code blocks and stray text.

    Args:
        response: Raw LLM response

    Returns:
        Parsed JSON or None
    """
    if not response:
        return None

    # Try to extract from code block
    if "```" in response:
        match = re.search(r"```(?:json)?\s*([\s\S]*?)\s*```", response)
        if match:
            response = match.group(1)

    # Try direct parse
    try:
        return json.loads(response)
    except json.JSONDecodeError:
        pass

    obj_match = re.search(r"\{[\s\S]*\}", response)
    if obj_match:
        try:
            return json.loads(obj_match.group(0))
        except json.JSONDecodeError:
            pass

    array_match = re.search(r"\[[\s\S]*\]", response)
    if array_match:
        try:
            return json.loads(array_match.group(0))
        except json.JSONDecodeError:
            pass

    return None
