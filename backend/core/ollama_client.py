"""
Ollama API client wrapper, used as the pipeline's content generator.
"""
import httpx
import json
import logging
import re
from typing import Optional, Dict, Any

from core.config import (
    OLLAMA_BASE_URL,
    OUTLINE_MODEL,
    OUTLINE_TEMPERATURE,
    OUTLINE_MAX_TOKENS,
    PARAGRAPH_MODEL,
    PARAGRAPH_TEMPERATURE,
    PARAGRAPH_MAX_TOKENS,
    GENERATION_TIMEOUT_SEC,
)
from core.errors import GenerationFailure, ValidationFailure

logger = logging.getLogger(__name__)


class ContentGenerator:
    """
    The generative capability the pipeline consumes.

    Implementations turn a fully built prompt into either a structured
    outline (a JSON object) or the plain text of one paragraph. They raise
    ``GenerationFailure`` for transport/model errors and ``ValidationFailure``
    when the response cannot be parsed at all.
    """

    model_tag: str = "unknown"

    def generate_outline(self, prompt: str) -> Dict[str, Any]:
        raise NotImplementedError

    def generate_paragraph(self, prompt: str) -> str:
        raise NotImplementedError


class OllamaClient(ContentGenerator):
    """Client for interacting with Ollama models."""

    def __init__(
        self,
        base_url: str = OLLAMA_BASE_URL,
        outline_model: str = OUTLINE_MODEL,
        paragraph_model: str = PARAGRAPH_MODEL,
        timeout: float = GENERATION_TIMEOUT_SEC,
    ):
        self.base_url = base_url
        self.outline_model = outline_model
        self.paragraph_model = paragraph_model
        self.model_tag = outline_model
        self.client = httpx.Client(timeout=timeout)

    def _call_model(
        self,
        model: str,
        prompt: str,
        temperature: float,
        max_tokens: int,
        response_format: Optional[str] = None,
    ) -> str:
        """Generic method to call any Ollama model."""
        url = f"{self.base_url}/api/generate"
        payload = {
            "model": model,
            "prompt": prompt,
            "options": {
                "temperature": temperature,
                "num_predict": max_tokens,
            },
            "stream": False,
        }
        if response_format:
            payload["format"] = response_format

        try:
            response = self.client.post(url, json=payload)
            response.raise_for_status()
            result = response.json()
            return result.get("response", "")
        except httpx.TimeoutException as e:
            raise GenerationFailure(f"Ollama request timed out: {e}") from e
        except (httpx.HTTPError, ValueError) as e:
            raise GenerationFailure(f"Ollama API error: {e}") from e

    def generate_outline(self, prompt: str) -> Dict[str, Any]:
        """Call the outline model and return its JSON object."""
        response = self._call_model(
            self.outline_model,
            prompt,
            temperature=OUTLINE_TEMPERATURE,
            max_tokens=OUTLINE_MAX_TOKENS,
            response_format="json",
        )
        return parse_json_object(response)

    def generate_paragraph(self, prompt: str) -> str:
        """Call the paragraph model and return the raw text."""
        return self._call_model(
            self.paragraph_model,
            prompt,
            temperature=PARAGRAPH_TEMPERATURE,
            max_tokens=PARAGRAPH_MAX_TOKENS,
        )


def parse_json_object(llm_response: str) -> Dict[str, Any]:
    """Extract the JSON object from an LLM response; no fallback structure."""
    json_match = re.search(r'\{.*\}', llm_response or "", re.DOTALL)
    if not json_match:
        raise ValidationFailure("Model response contained no JSON object")
    try:
        parsed = json.loads(json_match.group(0))
    except json.JSONDecodeError as e:
        raise ValidationFailure(f"Model response was not valid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise ValidationFailure("Model response JSON was not an object")
    return parsed


# Global Ollama client instance
ollama = OllamaClient()
