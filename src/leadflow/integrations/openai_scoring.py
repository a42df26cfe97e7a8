"""OpenAI chat completions in JSON mode, as consumed by the lead scorer."""

import asyncio
import json
import logging
from typing import Any, Optional

from openai import OpenAI

from ..config import config

logger = logging.getLogger(__name__)


class ScoringLLMClient:
    """Sends one scoring prompt and returns the decoded JSON object.

    The SDK call blocks, so :meth:`complete_json` runs it on the default
    executor and other campaign runs keep progressing meanwhile.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        temperature: float = 0.3,
    ) -> None:
        self.api_key = api_key or config.OPENAI_API_KEY
        if not self.api_key:
            raise ValueError("OPENAI_API_KEY is not set and no api_key was given")
        self.model = model or config.OPENAI_MODEL
        self.temperature = temperature
        self._client = OpenAI(
            api_key=self.api_key,
            timeout=timeout_seconds or config.SCORING_TIMEOUT_SECONDS,
        )

    def _complete(self, messages: list[dict[str, str]]) -> Any:
        completion = self._client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=self.temperature,
            response_format={"type": "json_object"},
        )
        content = completion.choices[0].message.content if completion.choices else None
        if not content:
            raise ValueError(f"{self.model} returned no content")
        logger.debug("%s replied with %d characters", self.model, len(content))
        try:
            return json.loads(content)
        except json.JSONDecodeError as exc:
            raise ValueError(f"{self.model} returned malformed JSON: {exc}") from exc

    async def complete_json(self, messages: list[dict[str, str]]) -> Any:
        """Decoded JSON reply to ``messages``.

        Raises:
            openai.OpenAIError: the API call failed.
            ValueError: the reply was empty or not JSON.
        """
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._complete, messages)
