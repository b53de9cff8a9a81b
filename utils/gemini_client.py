"""
Thin Google Gemini wrapper shared by the remote collaborators.

Every remote call goes through `generate_json`: bounded attempts with
linear backoff, and JSON parsing tolerant of markdown code fences. When
attempts are exhausted an ExternalServiceError is raised; the caller
decides whether to degrade.
"""

import json
import logging
import os
import time
from typing import Any, Dict, List, Optional

import google.generativeai as genai

from core.enums import Modality
from core.errors import ExternalServiceError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = 'gemini-2.5-flash'


def parse_json_response(response_text: str) -> Dict[str, Any]:
    """
    Parse a model response that should contain one JSON object.

    Raises:
        ValueError: If no JSON object can be parsed
    """
    if not response_text:
        raise ValueError("Empty response")

    # Clean response (remove markdown if present)
    clean_text = response_text.strip()
    if clean_text.startswith('```'):
        lines = clean_text.split('\n')
        clean_text = '\n'.join(lines[1:])
    if clean_text.endswith('```'):
        clean_text = clean_text[:-3]
    clean_text = clean_text.strip()

    try:
        data = json.loads(clean_text)
    except json.JSONDecodeError:
        # Fall back to the outermost braces when prose surrounds the object
        start, end = clean_text.find('{'), clean_text.rfind('}')
        if start < 0 or end <= start:
            raise ValueError(f"No JSON object in response: {response_text[:200]}")
        data = json.loads(clean_text[start:end + 1])

    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")

    return data


class GeminiClient:
    """
    Gemini model handle with bounded retries.

    Args:
        api_key: API key (defaults to GEMINI_API_KEY)
        model_name: Gemini model to use
        max_attempts: Total attempts per request
        retry_delay: Base delay in seconds (multiplied by the attempt number)
        model: Pre-built model object exposing generate_content (for tests)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_name: str = DEFAULT_MODEL,
        max_attempts: int = 3,
        retry_delay: float = 1.0,
        model: Any = None
    ):
        self.max_attempts = max(1, int(max_attempts))
        self.retry_delay = retry_delay

        if model is not None:
            self.model = model
        else:
            api_key = api_key or os.getenv('GEMINI_API_KEY')
            if not api_key:
                raise ValueError("Gemini API key required. Set GEMINI_API_KEY environment variable.")

            genai.configure(api_key=api_key)
            self.model = genai.GenerativeModel(model_name)

        logger.info(f"Gemini client initialized (model={model_name}, attempts={self.max_attempts})")

    def generate_json(self, contents: List[Any], modality: Optional[Modality] = None) -> Dict[str, Any]:
        """
        Send `contents` and parse the JSON reply.

        Raises:
            ExternalServiceError: When every attempt failed
        """
        last_error = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                response = self.model.generate_content(contents)
                return parse_json_response(response.text)
            except Exception as e:
                last_error = e
                logger.warning(f"Gemini request failed (attempt {attempt}/{self.max_attempts}): {e}")

                if attempt < self.max_attempts and self.retry_delay > 0:
                    time.sleep(self.retry_delay * attempt)

        raise ExternalServiceError(
            f"Gemini request failed after {self.max_attempts} attempts: {last_error}",
            modality=modality,
            attempts=self.max_attempts
        )
