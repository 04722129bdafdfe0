"""
OpenAI-compatible chat completion backends (SiliconFlow, DeepSeek).
"""

from typing import Optional

import httpx

from epub2zh.config import (
    SILICONFLOW_API_KEY,
    SILICONFLOW_API_URL,
    SILICONFLOW_MODEL,
    DEEPSEEK_API_KEY,
    DEEPSEEK_API_URL,
    DEEPSEEK_MODEL,
    TRANSLATION_SYSTEM_PROMPT,
    TRANSLATION_TEMPERATURE,
    TRANSLATION_MAX_TOKENS,
)
from epub2zh.core.adapters.exceptions import BackendError, BackendErrorKind
from .base import TranslationBackend


class ChatCompletionBackend(TranslationBackend):
    """Chat completion API provider that asks the model for a Chinese translation"""

    name = "chat_completion"

    def __init__(
        self,
        api_url: str,
        api_key: Optional[str],
        model: str,
        system_prompt: str = TRANSLATION_SYSTEM_PROMPT,
        temperature: float = TRANSLATION_TEMPERATURE,
        max_tokens: int = TRANSLATION_MAX_TOKENS,
        **kwargs
    ):
        super().__init__(**kwargs)
        self.api_url = api_url
        self.api_key = api_key
        self.model = model
        self.system_prompt = system_prompt
        self.temperature = temperature
        self.max_tokens = max_tokens

    def build_payload(self, text: str) -> dict:
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": self.system_prompt},
                {"role": "user", "content": text},
            ],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "stream": False,
        }

    async def _translate_piece(self, text: str) -> str:
        if not self.api_key:
            raise BackendError(
                f"{self.name} API key is not configured",
                kind=BackendErrorKind.AUTH_MISSING,
                backend=self.name
            )

        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        response = await self._send(
            "POST",
            self.api_url,
            json=self.build_payload(text),
            headers=headers,
            timeout=httpx.Timeout(self.timeout)
        )
        return self._parse_content(self._parse_json(response))

    def _parse_content(self, data) -> str:
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise BackendError(
                f"{self.name} response has no choices[0].message.content",
                kind=BackendErrorKind.MALFORMED_RESPONSE,
                backend=self.name
            ) from e

        if not isinstance(content, str) or not content.strip():
            raise BackendError(
                f"{self.name} returned an empty translation",
                kind=BackendErrorKind.MALFORMED_RESPONSE,
                backend=self.name
            )
        return content.strip()


class SiliconFlowBackend(ChatCompletionBackend):
    """SiliconFlow hosted DeepSeek-V3"""

    name = "siliconflow"

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        model: Optional[str] = None,
        **kwargs
    ):
        super().__init__(
            api_url=api_url or SILICONFLOW_API_URL,
            api_key=SILICONFLOW_API_KEY if api_key is None else api_key,
            model=model or SILICONFLOW_MODEL,
            **kwargs
        )


class DeepSeekBackend(ChatCompletionBackend):
    """DeepSeek official API"""

    name = "deepseek"

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        model: Optional[str] = None,
        **kwargs
    ):
        super().__init__(
            api_url=api_url or DEEPSEEK_API_URL,
            api_key=DEEPSEEK_API_KEY if api_key is None else api_key,
            model=model or DEEPSEEK_MODEL,
            **kwargs
        )
