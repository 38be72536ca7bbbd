"""Anthropic Claude backend using the Messages API."""

import logging
import time
from typing import Optional

import requests

from photostream.vision.exceptions import (
    AnalysisConnectionError,
    AnalysisInvalidResponseError,
    AnalysisTimeoutError,
)

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"


class ClaudeBackend:
    """Sends an image and prompt to Claude and returns the text reply.

    Attributes:
        model_name: Claude model identifier
        api_url: Messages API endpoint
        timeout: Request timeout in seconds
    """

    requires_api_key = True

    def __init__(
        self,
        api_key: str,
        model_name: str = "claude-3-haiku-20240307",
        api_url: str = "https://api.anthropic.com/v1/messages",
        temperature: float = 0.9,
        max_tokens: int = 400,
        timeout: float = 60,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not api_key:
            raise AnalysisConnectionError("Claude backend requires an API key")

        self.api_key = api_key
        self.model_name = model_name
        self.api_url = api_url
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.session = session or requests.Session()

    def _payload(self, prompt: str, image_b64: str) -> dict:
        return {
            "model": self.model_name,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "text",
                            "text": prompt
                        },
                        {
                            "type": "image",
                            "source": {
                                "type": "base64",
                                "media_type": "image/jpeg",
                                "data": image_b64
                            }
                        }
                    ]
                }
            ],
        }

    def describe(self, prompt: str, image_b64: str) -> str:
        """Call the Messages API with one image.

        Args:
            prompt: Text prompt
            image_b64: Base64-encoded JPEG

        Returns:
            Text of the first content block

        Raises:
            AnalysisTimeoutError: If the request times out
            AnalysisConnectionError: On network or HTTP errors
            AnalysisInvalidResponseError: If the reply has no text
        """
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json"
        }

        start_time = time.time()
        try:
            response = self.session.post(
                self.api_url,
                json=self._payload(prompt, image_b64),
                headers=headers,
                timeout=self.timeout
            )
            response.raise_for_status()
            result = response.json()
        except requests.Timeout as e:
            raise AnalysisTimeoutError(
                f"Request to {self.model_name} timed out after {self.timeout}s"
            ) from e
        except requests.HTTPError as e:
            details = e.response.text[:500] if e.response is not None else ""
            raise AnalysisConnectionError(
                f"Claude API error: {e} {details}".strip()
            ) from e
        except requests.RequestException as e:
            raise AnalysisConnectionError(f"Claude API network error: {e}") from e
        except ValueError as e:
            raise AnalysisInvalidResponseError(f"Claude API returned invalid JSON: {e}") from e

        logger.debug(f"Received response from {self.model_name} in {time.time() - start_time:.2f}s")

        try:
            blocks = result.get("content") or []
            text = next(
                (block.get("text") or "" for block in blocks if block.get("type") == "text"),
                ""
            )
        except (AttributeError, TypeError) as e:
            raise AnalysisInvalidResponseError(
                f"Unexpected response structure from Claude: {result!r}"
            ) from e

        if not text.strip():
            raise AnalysisInvalidResponseError("Empty response from Claude")

        return text
