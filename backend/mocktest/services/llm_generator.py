import json
import logging
from abc import ABC, abstractmethod
from typing import Optional

from anthropic import AsyncAnthropic
from openai import AsyncOpenAI

from mocktest.config import settings

from .errors import GenerationFailure

logger = logging.getLogger(__name__)


def _strip_fences(content: str) -> str:
    content = content.strip()
    if content.startswith("```json"):
        content = content[7:]
    elif content.startswith("```"):
        content = content[3:]
    if content.endswith("```"):
        content = content[:-3]
    return content.strip()


# --- Provider Interface ---
class LLMProvider(ABC):
    @abstractmethod
    async def generate_text(self, system_prompt: str, user_prompt: str, temperature: float = 0.7) -> str:
        pass

    @abstractmethod
    async def generate_json(self, system_prompt: str, user_prompt: str, temperature: float = 0.7) -> dict:
        pass

    async def generate_image(self, prompt: str) -> str:
        """Return a base64-encoded JPEG/PNG for the prompt."""
        raise GenerationFailure(f"{type(self).__name__} cannot generate images")


# --- Concrete Providers ---
class OpenAIProvider(LLMProvider):
    def __init__(self, api_key: str, model: str, image_model: str):
        self.client = AsyncOpenAI(api_key=api_key)
        self.model = model
        self.image_model = image_model

    async def generate_text(self, system_prompt: str, user_prompt: str, temperature: float = 0.7) -> str:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt}
            ],
            temperature=temperature
        )
        return response.choices[0].message.content or ""

    async def generate_json(self, system_prompt: str, user_prompt: str, temperature: float = 0.7) -> dict:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt}
            ],
            response_format={"type": "json_object"},
            temperature=temperature
        )
        return json.loads(response.choices[0].message.content or "{}")

    async def generate_image(self, prompt: str) -> str:
        response = await self.client.images.generate(
            model=self.image_model,
            prompt=prompt,
            n=1,
            size="1024x1024",
        )
        image = response.data[0].b64_json if response.data else None
        if not image:
            raise GenerationFailure("Image generation returned no data")
        return image


class AnthropicProvider(LLMProvider):
    def __init__(self, api_key: str, model: str):
        self.client = AsyncAnthropic(api_key=api_key)
        self.model = model

    async def generate_text(self, system_prompt: str, user_prompt: str, temperature: float = 0.7) -> str:
        response = await self.client.messages.create(
            model=self.model,
            max_tokens=4096,
            system=system_prompt,
            messages=[{"role": "user", "content": user_prompt}],
            temperature=temperature
        )
        return response.content[0].text

    async def generate_json(self, system_prompt: str, user_prompt: str, temperature: float = 0.7) -> dict:
        updated_system = f"{system_prompt}\nYou must output pure JSON."
        response = await self.client.messages.create(
            model=self.model,
            max_tokens=8192,
            system=updated_system,
            messages=[{"role": "user", "content": user_prompt}],
            temperature=temperature
        )
        content = _strip_fences(response.content[0].text)
        start = content.find("{")
        end = content.rfind("}") + 1
        if start != -1 and end > start:
            content = content[start:end]
        return json.loads(content)


# --- Main Service ---
class LLMGenerator:
    def __init__(self, provider: Optional[LLMProvider] = None):
        self.provider = provider
        if self.provider is None:
            self._setup_provider()

    def _setup_provider(self):
        """Prioritize: OpenAI (text + images) -> Anthropic (text only)"""

        if settings.openai_api_key:
            logger.info("Using OpenAI Provider")
            self.provider = OpenAIProvider(
                settings.openai_api_key,
                model=settings.openai_text_model,
                image_model=settings.openai_image_model,
            )
            return

        if settings.anthropic_api_key:
            logger.info("Using Anthropic Provider")
            self.provider = AnthropicProvider(settings.anthropic_api_key, model=settings.anthropic_model)
            return

        logger.warning("No AI Provider configured!")

    def _require_provider(self) -> LLMProvider:
        if not self.provider:
            raise GenerationFailure("No AI provider configured")
        return self.provider

    async def generate_text(self, system: str, prompt: str, temperature: float = 0.7) -> str:
        return await self._require_provider().generate_text(system, prompt, temperature=temperature)

    async def generate_json(self, system: str, prompt: str, temperature: float = 0.7) -> dict:
        return await self._require_provider().generate_json(system, prompt, temperature=temperature)

    async def generate_image(self, prompt: str) -> str:
        return await self._require_provider().generate_image(prompt)
