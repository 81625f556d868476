"""
LLM access for the match estimators.

Wraps an OpenAI-compatible async chat-completions client and returns parsed
JSON objects. The underlying client is built without retries: a failed or
timed-out call surfaces immediately as a ComputationError.
"""
from typing import Any, Dict, Optional

import openai

from jobmatch.utils.exceptions import ComputationError
from jobmatch.utils.logging_config import get_logger
from jobmatch.utils.utils import safe_json

logger = get_logger(__name__)


class LLMClient:
    def __init__(
        self,
        client,
        model: str,
        explainer_model: Optional[str] = None,
        temperature: float = 0.2
    ):
        self._client = client
        self.model = model
        self.explainer_model = explainer_model or model
        self.temperature = temperature

    async def complete_json(
        self,
        prompt: str,
        system: Optional[str] = None,
        model: Optional[str] = None,
        estimator: Optional[str] = None
    ) -> Dict[str, Any]:
        """Run one chat completion and parse the reply as a JSON object."""
        model = model or self.model
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        try:
            response = await self._client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=self.temperature,
                response_format={"type": "json_object"},
            )
        except openai.APIError as e:
            logger.error(f"LLM call failed for {estimator or 'completion'} on {model}: {e}")
            raise ComputationError(
                f"LLM call failed: {e}",
                model_name=model,
                estimator=estimator,
                cause=e
            ) from e

        raw = ""
        if response.choices:
            raw = (response.choices[0].message.content or "").strip()

        data = safe_json(raw)
        if not isinstance(data, dict):
            logger.error(f"LLM returned no JSON object for {estimator or 'completion'}: {raw[:200]!r}")
            raise ComputationError(
                "LLM returned an unparseable response",
                model_name=model,
                estimator=estimator,
                details={"response_preview": raw[:200]}
            )
        return data
