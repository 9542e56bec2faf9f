import random
from dataclasses import dataclass
from typing import List, Optional

import httpx

from taskhub.core.exceptions import UpstreamError
from taskhub.core.settings import settings
import logging

logger = logging.getLogger("TaskHub.AI")

FALLBACK_CATEGORIES = ["Work", "Personal", "Shopping", "Health", "Finance", "Education", "Other"]
PLACEHOLDER_KEYS = {"", "your-openai-api-key"}


@dataclass
class AISuggestion:
    value: str
    source: str  # "ai" | "fallback"
    message: Optional[str] = None


class AIClient:
    """
    Минимальный клиент OpenAI-совместимого /chat/completions поверх httpx.
    Любой сбой поднимается как UpstreamError.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
        model: str = "gpt-3.5-turbo",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self._transport = transport

    async def complete(self, prompt: str, max_tokens: int) -> str:
        url = f"{self.base_url}/chat/completions"
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": max_tokens,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}
        timeout_config = httpx.Timeout(self.timeout, read=self.timeout * 3)
        try:
            async with httpx.AsyncClient(timeout=timeout_config, transport=self._transport) as client:
                logger.info(f"Sending request to AI service: {url} with model {self.model}")
                response = await client.post(url, json=payload, headers=headers)
                response.raise_for_status()
                data = response.json()
        except httpx.TimeoutException as e:
            raise UpstreamError(f"AI service timed out: {e.__class__.__name__}") from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"AI service request failed: {e}") from e
        except ValueError as e:
            raise UpstreamError("AI service returned invalid JSON") from e

        try:
            content = data["choices"][0]["message"]["content"].strip()
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            raise UpstreamError(f"Unexpected AI response format: {data!r}") from e
        if not content:
            raise UpstreamError("AI service returned an empty completion")
        return content


def fallback_category(rng: Optional[random.Random] = None) -> str:
    return (rng or random).choice(FALLBACK_CATEGORIES)


def fallback_description(summary: str) -> str:
    return (
        f"Task: {summary}\n\n"
        f"This task involves {summary.lower()}. Please ensure to complete this task efficiently and on time."
    )


class TaskAIService:
    """
    Подсказки категории и описания задачи.

    client: либо есть (делегируем ему, сбой -> fallback), либо None
    (всегда fallback). UI никогда не ждёт доступности AI.
    """

    def __init__(self, client: Optional[AIClient] = None, rng: Optional[random.Random] = None):
        self.client = client
        self.rng = rng

    @property
    def available(self) -> bool:
        return self.client is not None

    async def suggest_category(self, previous_categories: List[str]) -> AISuggestion:
        if self.client is None:
            return AISuggestion(fallback_category(self.rng), "fallback", "AI not available - using fallback category")
        prompt = (
            f"Given the following task categories used by a user: {', '.join(previous_categories)}. "
            "Predict the next likely category. Answer with the category name only."
        )
        try:
            category = await self.client.complete(prompt, max_tokens=10)
        except Exception as e:
            logger.warning(f"AI category prediction failed, using fallback: {e}", exc_info=True)
            return AISuggestion(fallback_category(self.rng), "fallback", "AI service unavailable - using fallback category")
        return AISuggestion(category, "ai")

    async def generate_description(self, summary: str) -> AISuggestion:
        if self.client is None:
            return AISuggestion(fallback_description(summary), "fallback", "AI not available - using fallback description")
        prompt = f"Expand the following summary into a detailed task description: {summary}"
        try:
            description = await self.client.complete(prompt, max_tokens=100)
        except Exception as e:
            logger.warning(f"AI description generation failed, using fallback: {e}", exc_info=True)
            return AISuggestion(fallback_description(summary), "fallback", "AI service unavailable - using fallback description")
        return AISuggestion(description, "ai")


def build_ai_client() -> Optional[AIClient]:
    """Клиент создаётся только если ключ задан и не является плейсхолдером."""
    api_key = (settings.OPENAI_API_KEY or "").strip()
    if api_key in PLACEHOLDER_KEYS:
        logger.info("OPENAI_API_KEY is not configured; AI suggestions will use local fallbacks")
        return None
    return AIClient(
        api_key=api_key,
        base_url=settings.AI_BASE_URL,
        model=settings.AI_MODEL,
        timeout=settings.AI_TIMEOUT_SECONDS,
    )


def get_ai_service() -> TaskAIService:
    """FastAPI dependency."""
    return TaskAIService(build_ai_client())
