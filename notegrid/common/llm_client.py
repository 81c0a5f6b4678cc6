"""
Provider-agnostic LLM client for NoteGrid.

Supports OpenAI and Anthropic with a shared text-plus-images generation
interface.
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

logger = logging.getLogger("notegrid.common.llm_client")


@dataclass
class ImageInput:
    """An image passed to the model alongside the prompt."""
    media_type: str
    data: bytes

    @property
    def base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    @property
    def data_url(self) -> str:
        return f"data:{self.media_type};base64,{self.base64}"


class LLMClient:
    """Unified generation client across LLM providers."""

    def __init__(
        self,
        provider: str = "openai",
        model: str = "",
        openai_api_key: Optional[str] = None,
        anthropic_api_key: Optional[str] = None,
    ) -> None:
        self.provider = (provider or "openai").lower()
        self.model = model
        self._client = None

        if self.provider == "openai":
            if not openai_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            try:
                from openai import OpenAI

                self._client = OpenAI(api_key=openai_api_key)
            except ImportError:
                logger.warning("openai package not installed")
            except Exception as e:
                logger.warning("Failed to initialize OpenAI client: %s", e)
            return

        if self.provider == "anthropic":
            if not anthropic_api_key:
                logger.info("%s API key not provided, LLM client unavailable", self.provider)
                return
            try:
                import anthropic

                self._client = anthropic.Anthropic(api_key=anthropic_api_key)
            except ImportError:
                logger.warning("anthropic package not installed")
            except Exception as e:
                logger.warning("Failed to initialize Anthropic client: %s", e)
            return

        logger.warning("Unsupported LLM provider: %s", self.provider)

    @classmethod
    def from_config(cls, llm_config) -> "LLMClient":
        model = llm_config.anthropic_model if llm_config.provider == "anthropic" else llm_config.openai_model
        return cls(
            provider=llm_config.provider,
            model=model,
            openai_api_key=llm_config.openai_api_key or None,
            anthropic_api_key=llm_config.anthropic_api_key or None,
        )

    @property
    def is_available(self) -> bool:
        return self._client is not None

    def generate(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        images: Sequence[ImageInput] = (),
        max_tokens: int = 1024,
        temperature: Optional[float] = None,
        timeout: float = 60.0,
    ) -> str:
        if not self.is_available:
            raise RuntimeError("LLM client is not available")

        if self.provider == "openai":
            messages = []
            if system:
                messages.append({"role": "system", "content": system})
            messages.append({"role": "user", "content": self._openai_content(prompt, images)})
            kwargs = {}
            if temperature is not None:
                kwargs["temperature"] = temperature
            response = self._client.chat.completions.create(
                model=self.model,
                max_tokens=max_tokens,
                messages=messages,
                timeout=timeout,
                **kwargs,
            )
            return (response.choices[0].message.content or "").strip()

        if self.provider == "anthropic":
            kwargs = {}
            if system:
                kwargs["system"] = system
            if temperature is not None:
                kwargs["temperature"] = temperature
            response = self._client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                messages=[{"role": "user", "content": self._anthropic_content(prompt, images)}],
                timeout=timeout,
                **kwargs,
            )
            return response.content[0].text.strip()

        raise RuntimeError(f"Unsupported LLM provider: {self.provider}")

    @staticmethod
    def _openai_content(prompt: str, images: Sequence[ImageInput]):
        if not images:
            return prompt
        parts: List[dict] = []
        if prompt:
            parts.append({"type": "text", "text": prompt})
        for image in images:
            parts.append({"type": "image_url", "image_url": {"url": image.data_url}})
        return parts

    @staticmethod
    def _anthropic_content(prompt: str, images: Sequence[ImageInput]):
        if not images:
            return prompt
        parts: List[dict] = []
        for image in images:
            parts.append({
                "type": "image",
                "source": {"type": "base64", "media_type": image.media_type, "data": image.base64},
            })
        if prompt:
            parts.append({"type": "text", "text": prompt})
        return parts
