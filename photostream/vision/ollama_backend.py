"""Local vision model backend via Ollama."""

import logging
import re
import time
from typing import Optional

import ollama

from photostream.vision.exceptions import (
    AnalysisConnectionError,
    AnalysisInvalidResponseError,
    AnalysisTimeoutError,
)

logger = logging.getLogger(__name__)


class OllamaBackend:
    """Runs analysis on a vision model served by Ollama.

    Attributes:
        model_name: Name of the Ollama model (e.g. llama3.2-vision)
        endpoint: Ollama API endpoint URL
        timeout: Request timeout in seconds
    """

    requires_api_key = False

    def __init__(
        self,
        model_name: str = "llama3.2-vision",
        endpoint: Optional[str] = None,
        temperature: float = 0.9,
        max_tokens: int = 400,
        timeout: float = 120,
        client: Optional[ollama.Client] = None,
    ) -> None:
        self.model_name = model_name
        self.endpoint = endpoint
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.client = client or ollama.Client(host=endpoint, timeout=timeout)

        if endpoint:
            logger.info(f"Using Ollama endpoint: {endpoint}")

    @staticmethod
    def _strip_thinking_tags(content: str) -> str:
        """Strip <think>...</think> reasoning blocks some models emit.

        Args:
            content: Raw content that may contain thinking tags

        Returns:
            Cleaned content with thinking blocks removed
        """
        if not content:
            return content

        cleaned = re.sub(r'<think>.*?</think>', '', content, flags=re.DOTALL | re.IGNORECASE)
        # Unclosed tag: the model was cut off mid-thought
        cleaned = re.sub(r'<think>.*$', '', cleaned, flags=re.DOTALL | re.IGNORECASE)
        return cleaned.strip()

    @staticmethod
    def _message_content(response) -> str:
        """Pull the message text from a chat response (object or dict)."""
        message = None
        if isinstance(response, dict):
            message = response.get("message")
        else:
            message = getattr(response, "message", None)

        if message is None:
            raise AnalysisInvalidResponseError(
                f"Invalid response structure from Ollama: {response!r}"
            )

        if isinstance(message, dict):
            content = message.get("content") or ""
        else:
            content = getattr(message, "content", None) or ""

        return content

    def describe(self, prompt: str, image_b64: str) -> str:
        """Call the Ollama chat API with one image.

        Args:
            prompt: Text prompt
            image_b64: Base64-encoded JPEG

        Returns:
            Model response text

        Raises:
            AnalysisTimeoutError: If the request times out
            AnalysisConnectionError: If Ollama cannot be reached
            AnalysisInvalidResponseError: If the response is empty
        """
        messages = [
            {
                "role": "user",
                "content": prompt,
                "images": [image_b64]
            }
        ]

        logger.debug(
            f"Sending request to {self.model_name} "
            f"(temperature={self.temperature}, max_tokens={self.max_tokens})"
        )

        start_time = time.time()
        try:
            response = self.client.chat(
                model=self.model_name,
                messages=messages,
                format="json",
                options={
                    "temperature": self.temperature,
                    "num_predict": self.max_tokens,
                }
            )
        except ollama.ResponseError as e:
            raise AnalysisConnectionError(
                f"Ollama error for model {self.model_name}: {e}"
            ) from e
        except Exception as e:
            if "timeout" in str(e).lower() or "timed out" in str(e).lower():
                raise AnalysisTimeoutError(
                    f"Request to {self.model_name} timed out: {e}"
                ) from e
            raise AnalysisConnectionError(
                f"Cannot reach Ollama at {self.endpoint or 'default host'}: {e}"
            ) from e

        logger.debug(f"Received response in {time.time() - start_time:.2f}s")

        content = self._strip_thinking_tags(self._message_content(response).strip())
        if not content:
            raise AnalysisInvalidResponseError("Empty response from model")

        return content
