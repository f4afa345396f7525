"""
LLM Client - generation gateway with optional screenshot input
Supports: OpenAI, Anthropic, Ollama
"""

import asyncio
import logging
import os
import time
from typing import Any, Dict, List, Optional, Tuple

import aiohttp

from .errors import GatewayError, GatewayErrorKind, gateway_error_for_status

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30  # seconds
TEXT_MAX_TOKENS = 150
SCREEN_MAX_TOKENS = 300
TEMPERATURE = 0.7

SYSTEM_PROMPT = (
    "You are FRIDAY, an advanced AI assistant like from Iron Man. Be helpful, intelligent, "
    "and slightly witty. Keep responses concise and conversational. You have a female "
    "personality and should respond as FRIDAY would - professional but with personality."
)

SCREEN_SYSTEM_PROMPT = (
    "You are FRIDAY, an advanced AI assistant like from Iron Man. You can see the user's "
    "screen and help them with what they're doing. Be helpful, intelligent, and slightly "
    "witty. Analyze the screen content and provide specific, actionable assistance based on "
    "what you see. Keep responses concise but informative."
)

PROVIDER_NAMES = {
    "openai": "OpenAI",
    "anthropic": "Anthropic",
    "ollama": "Ollama",
}


def split_data_url(image: str) -> Tuple[str, str]:
    """Split ``data:<mime>;base64,<payload>`` into (mime, payload)."""
    if image.startswith("data:") and "," in image:
        header, payload = image.split(",", 1)
        mime = header[len("data:"):].split(";", 1)[0] or "image/png"
        return mime, payload
    return "image/png", image


def attach_image(context: List[Dict[str, Any]], image: str, provider: str) -> List[Dict[str, Any]]:
    """
    Return a copy of ``context`` with ``image`` attached to the last user message.

    Each provider wants images in a different shape; text-only messages are
    passed through untouched.
    """
    messages = [dict(m) for m in context]
    index = next((i for i in range(len(messages) - 1, -1, -1) if messages[i]["role"] == "user"), None)
    if index is None:
        messages.append({"role": "user", "content": ""})
        index = len(messages) - 1

    text = messages[index]["content"]
    mime, payload = split_data_url(image)

    if provider == "openai":
        messages[index]["content"] = [
            {"type": "text", "text": text},
            {"type": "image_url", "image_url": {"url": f"data:{mime};base64,{payload}"}},
        ]
    elif provider == "anthropic":
        messages[index]["content"] = [
            {"type": "image", "source": {"type": "base64", "media_type": mime, "data": payload}},
            {"type": "text", "text": text},
        ]
    else:
        messages[index]["images"] = [payload]
    return messages


class LLMClient:
    """
    Generation gateway with provider abstraction
    Supports: openai, anthropic, ollama
    """

    def __init__(
        self,
        provider: str = "openai",
        model: Optional[str] = None,
        endpoint: Optional[str] = None,
        api_key: Optional[str] = None,
        temperature: float = TEMPERATURE,
        max_tokens: int = TEXT_MAX_TOKENS,
        screen_max_tokens: int = SCREEN_MAX_TOKENS,
    ):
        if provider not in PROVIDER_NAMES:
            raise ValueError(f"Unsupported provider: {provider}. Use: openai, anthropic, or ollama")

        self.provider = provider
        self.service = PROVIDER_NAMES[provider]
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.screen_max_tokens = screen_max_tokens
        self.client = None

        if provider == "openai":
            self.api_key = api_key or os.getenv("OPENAI_API_KEY")
            self.model = model or "gpt-4o-mini"
            self.endpoint = endpoint or "https://api.openai.com/v1/chat/completions"

        elif provider == "anthropic":
            self.api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
            self.model = model or "claude-sonnet-4-20250514"
            self.endpoint = None

        elif provider == "ollama":
            # Ollama runs locally, no API key needed
            self.api_key = None
            self.model = model or "llava"
            self.endpoint = endpoint or "http://localhost:11434/api/chat"

    async def generate(
        self,
        context: List[Dict[str, str]],
        image: Optional[str] = None,
        system_prompt: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """
        Send the conversation to the model and return its reply.

        Args:
            context: role/content pairs, oldest first, ending with the user turn
            image: Optional screenshot as a data URL
            system_prompt: Overrides the persona prompt
            max_tokens: Overrides the per-mode token budget

        Raises:
            GatewayError: On authentication, rate limit, network or service failure
        """
        if system_prompt is None:
            system_prompt = SCREEN_SYSTEM_PROMPT if image else SYSTEM_PROMPT
        if max_tokens is None:
            max_tokens = self.screen_max_tokens if image else self.max_tokens

        messages = attach_image(context, image, self.provider) if image else [dict(m) for m in context]

        start_time = time.time()
        if self.provider == "openai":
            reply = await self._query_openai(messages, system_prompt, max_tokens)
        elif self.provider == "anthropic":
            reply = await self._query_anthropic(messages, system_prompt, max_tokens)
        else:
            reply = await self._query_ollama(messages, system_prompt, max_tokens)

        elapsed = time.time() - start_time
        logger.info(f"[{self.service}] Response time: {elapsed:.2f}s (model: {self.model}, image: {bool(image)})")
        return reply.strip()

    async def _post_json(self, payload: Dict[str, Any], headers: Dict[str, str]) -> Dict[str, Any]:
        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    self.endpoint,
                    headers=headers,
                    json=payload,
                    timeout=aiohttp.ClientTimeout(total=REQUEST_TIMEOUT)
                ) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        logger.error(f"{self.service} API error {response.status}: {error_text[:200]}")
                        raise gateway_error_for_status(self.service, response.status)
                    return await response.json()

        except asyncio.TimeoutError:
            raise GatewayError(GatewayErrorKind.NETWORK, self.service, f"timeout ({REQUEST_TIMEOUT}s)")
        except aiohttp.ClientConnectorError as e:
            raise GatewayError(GatewayErrorKind.NETWORK, self.service, f"cannot connect to {self.endpoint}") from e
        except aiohttp.ClientError as e:
            raise GatewayError(GatewayErrorKind.NETWORK, self.service, str(e)) from e

    async def _query_openai(self, messages: List[Dict[str, Any]], system_prompt: str, max_tokens: int) -> str:
        """Query OpenAI chat completions"""
        if not self.api_key:
            raise GatewayError(GatewayErrorKind.UNAUTHENTICATED, self.service, "API key not configured")

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }
        payload = {
            "model": self.model,
            "messages": [{"role": "system", "content": system_prompt}] + messages,
            "max_tokens": max_tokens,
            "temperature": self.temperature,
        }

        data = await self._post_json(payload, headers)
        try:
            return data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError):
            raise GatewayError(GatewayErrorKind.UNAVAILABLE, self.service, "malformed response")

    async def _query_ollama(self, messages: List[Dict[str, Any]], system_prompt: str, max_tokens: int) -> str:
        """Query Ollama local API"""
        payload = {
            "model": self.model,
            "messages": [{"role": "system", "content": system_prompt}] + messages,
            "stream": False,
            "options": {"num_predict": max_tokens, "temperature": self.temperature},
        }

        data = await self._post_json(payload, {"Content-Type": "application/json"})
        try:
            return data["message"]["content"] or ""
        except (KeyError, TypeError):
            raise GatewayError(GatewayErrorKind.UNAVAILABLE, self.service, "malformed response")

    async def _query_anthropic(self, messages: List[Dict[str, Any]], system_prompt: str, max_tokens: int) -> str:
        """Query Anthropic API"""
        if not self.api_key:
            raise GatewayError(GatewayErrorKind.UNAUTHENTICATED, self.service, "API key not configured")

        import anthropic

        # Anthropic requires the conversation to open with a user turn
        while messages and messages[0]["role"] != "user":
            messages = messages[1:]

        if self.client is None:
            self.client = anthropic.AsyncAnthropic(api_key=self.api_key, timeout=REQUEST_TIMEOUT)

        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                temperature=self.temperature,
                system=system_prompt,
                messages=messages
            )
        except anthropic.AuthenticationError as e:
            raise GatewayError(GatewayErrorKind.UNAUTHENTICATED, self.service, status=401) from e
        except anthropic.RateLimitError as e:
            raise GatewayError(GatewayErrorKind.RATE_LIMITED, self.service, status=429) from e
        except anthropic.APIConnectionError as e:
            raise GatewayError(GatewayErrorKind.NETWORK, self.service, str(e)) from e
        except anthropic.APIStatusError as e:
            raise gateway_error_for_status(self.service, e.status_code) from e

        return "".join(block.text for block in response.content if getattr(block, "type", "") == "text")


def build_llm_client(llm_config: Dict[str, Any]) -> LLMClient:
    """Create an LLMClient from ``FridayConfig.get_llm_config()`` output."""
    return LLMClient(
        provider=llm_config.get("provider", "openai"),
        model=llm_config.get("model"),
        endpoint=llm_config.get("endpoint"),
        api_key=llm_config.get("api_key"),
        temperature=float(llm_config.get("temperature", TEMPERATURE)),
        max_tokens=int(llm_config.get("max_tokens", TEXT_MAX_TOKENS)),
        screen_max_tokens=int(llm_config.get("screen_max_tokens", SCREEN_MAX_TOKENS)),
    )


if __name__ == "__main__":
    async def test():
        import sys

        provider = sys.argv[1] if len(sys.argv) > 1 else "openai"
        print(f"Testing {provider} provider...\n")

        client = LLMClient(provider=provider)
        context = [{"role": "user", "content": "Hello, who are you?"}]
        print(f"Response: {await client.generate(context)}")

    asyncio.run(test())
