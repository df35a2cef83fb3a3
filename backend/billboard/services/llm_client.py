"""
Generative collaborator shared by the deals, surprises and ad copy services.

Text goes through a LangChain chat model created with ``init_chat_model`` and
bound to OpenAI's JSON response format, so every completion is parsed into a
dict. Images go through the OpenAI SDK directly because LangChain has no image
generation interface.

Any provider or parsing failure surfaces as ``GenerationError``; the calling
services decide whether to fall back or propagate.
"""

import json
import logging
from typing import Any

from langchain.chat_models import init_chat_model
from langchain_core.messages import HumanMessage, SystemMessage
from openai import AsyncOpenAI

from billboard.config import Settings, get_settings


logger = logging.getLogger(__name__)

JSON_RESPONSE_FORMAT = {"type": "json_object"}
IMAGE_SIZE = "1024x1024"
IMAGE_QUALITY = "standard"


class GenerationError(Exception):
    """Raised when the language or image model fails to produce a result."""


class LLMClient:
    """
    Minimal JSON-in/JSON-out wrapper over a chat model and an image model.

    Example:
        ```python
        llm = LLMClient()
        result = await llm.complete_json("You write ads.", "Coffee shop", temperature=0.7)
        ```
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self.logger = logging.getLogger(__name__)
        self._image_client: AsyncOpenAI | None = None

    def _require_api_key(self) -> str:
        if not self.settings.has_openai_configured:
            raise GenerationError("OpenAI API key not configured")
        return self.settings.openai_api_key

    def _init_model(self, temperature: float | None, json_mode: bool) -> Any:
        model_kwargs: dict[str, Any] = {"api_key": self._require_api_key()}
        if temperature is not None:
            model_kwargs["temperature"] = temperature

        try:
            chat_model = init_chat_model(f"openai:{self.settings.default_ai_model}", **model_kwargs)
        except Exception as e:
            raise GenerationError(f"Failed to initialize model: {e}") from e

        if json_mode:
            return chat_model.bind(response_format=JSON_RESPONSE_FORMAT)
        return chat_model

    async def _invoke(
        self, system_prompt: str, user_prompt: str, temperature: float | None, json_mode: bool
    ) -> str:
        chat_model = self._init_model(temperature, json_mode)
        messages = [SystemMessage(content=system_prompt), HumanMessage(content=user_prompt)]
        try:
            response = await chat_model.ainvoke(messages)
        except Exception as e:
            self.logger.warning("Chat completion failed: %s", e)
            raise GenerationError(str(e)) from e
        return response.content if isinstance(response.content, str) else ""

    async def complete_json(
        self, system_prompt: str, user_prompt: str, temperature: float | None = None
    ) -> dict[str, Any]:
        """Run a JSON-mode completion and parse it; an empty reply parses as ``{}``."""
        content = await self._invoke(system_prompt, user_prompt, temperature, json_mode=True)
        try:
            result = json.loads(content or "{}")
        except json.JSONDecodeError as e:
            raise GenerationError(f"Model returned invalid JSON: {e}") from e
        if not isinstance(result, dict):
            raise GenerationError("Model returned JSON that is not an object")
        return result

    async def complete_text(self, system_prompt: str, user_prompt: str) -> str:
        return await self._invoke(system_prompt, user_prompt, None, json_mode=False)

    async def generate_image(self, prompt: str) -> str:
        """Generate one square image and return its URL (may be empty)."""
        if self._image_client is None:
            self._image_client = AsyncOpenAI(api_key=self._require_api_key())
        try:
            response = await self._image_client.images.generate(
                model=self.settings.image_model,
                prompt=prompt,
                n=1,
                size=IMAGE_SIZE,
                quality=IMAGE_QUALITY,
            )
        except Exception as e:
            self.logger.warning("Image generation failed: %s", e)
            raise GenerationError(str(e)) from e
        return response.data[0].url or ""


def get_llm_client() -> LLMClient:
    return LLMClient()
