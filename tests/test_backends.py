import copy
import unittest
from unittest.mock import MagicMock, patch

import ollama
import requests
from geopy.exc import GeocoderTimedOut

from photostream.config import ConfigManager, DEFAULT_CONFIG
from photostream.geocoding.exceptions import GeocodingError, GeocodingServiceError
from photostream.geocoding.factory import GeocoderFactory
from photostream.geocoding.nominatim import NominatimBackend
from photostream.geocoding.opencage import OpenCageBackend
from photostream.vision.claude import ClaudeBackend
from photostream.vision.exceptions import (
    AnalysisConnectionError,
    AnalysisInvalidResponseError,
    AnalysisTimeoutError,
)
from photostream.vision.factory import AnalyzerFactory
from photostream.vision.ollama_backend import OllamaBackend


def config_with(**overrides):
    config = ConfigManager(copy.deepcopy(DEFAULT_CONFIG))
    for key, value in overrides.items():
        config.set(key.replace("__", "."), value)
    return config


class TestClaudeBackend(unittest.TestCase):
    """Test cases for the Claude Messages API backend."""

    def setUp(self):
        self.session = MagicMock()
        self.backend = ClaudeBackend(api_key="sk-test", session=self.session)

    def test_requires_api_key(self):
        with self.assertRaises(AnalysisConnectionError):
            ClaudeBackend(api_key="")

    def test_describe(self):
        response = MagicMock()
        response.json.return_value = {
            "content": [{"type": "text", "text": '{"title": "Hello"}'}]
        }
        self.session.post.return_value = response

        text = self.backend.describe("prompt", "aW1n")

        self.assertEqual(text, '{"title": "Hello"}')
        _, kwargs = self.session.post.call_args
        self.assertEqual(kwargs["headers"]["x-api-key"], "sk-test")
        self.assertEqual(kwargs["headers"]["anthropic-version"], "2023-06-01")
        payload = kwargs["json"]
        self.assertEqual(payload["model"], "claude-3-haiku-20240307")
        self.assertEqual(payload["max_tokens"], 400)
        self.assertEqual(payload["temperature"], 0.9)
        image_block = payload["messages"][0]["content"][1]
        self.assertEqual(image_block["source"]["data"], "aW1n")
        self.assertEqual(image_block["source"]["media_type"], "image/jpeg")

    def test_timeout(self):
        self.session.post.side_effect = requests.Timeout("slow")
        with self.assertRaises(AnalysisTimeoutError):
            self.backend.describe("prompt", "aW1n")

    def test_http_error(self):
        response = MagicMock()
        response.raise_for_status.side_effect = requests.HTTPError("401 Unauthorized")
        self.session.post.return_value = response
        with self.assertRaises(AnalysisConnectionError):
            self.backend.describe("prompt", "aW1n")

    def test_empty_content(self):
        response = MagicMock()
        response.json.return_value = {"content": []}
        self.session.post.return_value = response
        with self.assertRaises(AnalysisInvalidResponseError):
            self.backend.describe("prompt", "aW1n")

    def test_null_text_block(self):
        response = MagicMock()
        response.json.return_value = {"content": [{"type": "text", "text": None}]}
        self.session.post.return_value = response
        with self.assertRaises(AnalysisInvalidResponseError):
            self.backend.describe("prompt", "aW1n")


class TestOllamaBackend(unittest.TestCase):
    """Test cases for the Ollama backend."""

    def setUp(self):
        self.client = MagicMock()
        self.backend = OllamaBackend(model_name="llava", client=self.client)

    def test_describe(self):
        self.client.chat.return_value = {"message": {"content": '{"title": "Hi"}'}}

        self.assertEqual(self.backend.describe("prompt", "aW1n"), '{"title": "Hi"}')

        _, kwargs = self.client.chat.call_args
        self.assertEqual(kwargs["model"], "llava")
        self.assertEqual(kwargs["messages"][0]["images"], ["aW1n"])
        self.assertEqual(kwargs["options"]["num_predict"], 400)

    def test_strips_thinking(self):
        self.client.chat.return_value = {
            "message": {"content": '<think>hmm</think>{"title": "Hi"}'}
        }
        self.assertEqual(self.backend.describe("prompt", "aW1n"), '{"title": "Hi"}')

    def test_response_error(self):
        self.client.chat.side_effect = ollama.ResponseError("model not found")
        with self.assertRaises(AnalysisConnectionError):
            self.backend.describe("prompt", "aW1n")

    def test_timeout(self):
        self.client.chat.side_effect = Exception("Read timed out")
        with self.assertRaises(AnalysisTimeoutError):
            self.backend.describe("prompt", "aW1n")

    def test_empty_reply(self):
        self.client.chat.return_value = {"message": {"content": "  "}}
        with self.assertRaises(AnalysisInvalidResponseError):
            self.backend.describe("prompt", "aW1n")


class TestAnalyzerFactory(unittest.TestCase):
    """Test cases for backend selection from configuration."""

    def test_missing_key_gives_fallback_analyzer(self):
        with self.assertLogs("photostream.vision.factory", level="WARNING"):
            analyzer = AnalyzerFactory.create(config_with(ai__provider="claude"))
        self.assertFalse(analyzer.enabled)

    def test_claude_with_key(self):
        analyzer = AnalyzerFactory.create(config_with(ai__api_key="sk-test", ai__max_retries=3))
        self.assertIsInstance(analyzer.backend, ClaudeBackend)
        self.assertEqual(analyzer.max_retries, 3)
        self.assertEqual(analyzer.backend.model_name, "claude-3-haiku-20240307")

    @patch("photostream.vision.ollama_backend.ollama.Client")
    def test_ollama_default_model(self, mock_client):
        backend = AnalyzerFactory.create_backend(config_with(ai__provider="ollama"))
        self.assertIsInstance(backend, OllamaBackend)
        self.assertEqual(backend.model_name, "llama3.2-vision")

    def test_disabled(self):
        analyzer = AnalyzerFactory.create(config_with(ai__enabled=False, ai__api_key="sk-test"))
        self.assertIsNone(analyzer.backend)

    def test_unknown_provider(self):
        with self.assertLogs("photostream.vision.factory", level="WARNING"):
            backend = AnalyzerFactory.create_backend(config_with(ai__provider="nope"))
        self.assertIsNone(backend)

    @patch("photostream.vision.ollama_backend.ollama.Client")
    def test_ollama(self, mock_client):
        backend = AnalyzerFactory.create_backend(
            config_with(ai__provider="ollama", ai__model="llava")
        )
        self.assertIsInstance(backend, OllamaBackend)
        mock_client.assert_called_once_with(host="http://localhost:11434", timeout=60)


class TestOpenCageBackend(unittest.TestCase):
    """Test cases for the OpenCage backend."""

    def setUp(self):
        self.session = MagicMock()
        self.backend = OpenCageBackend(api_key="oc-test", session=self.session)

    def test_requires_api_key(self):
        with self.assertRaises(GeocodingError):
            OpenCageBackend(api_key="")

    def test_candidates(self):
        response = MagicMock()
        response.json.return_value = {
            "results": [
                {"components": {"city": "Paris", "road": "Rue X"}, "confidence": 9},
                {"components": {"country": "France"}},
                {"nothing": True},
            ]
        }
        self.session.get.return_value = response

        candidates = self.backend.candidates(48.85, 2.29, limit=5)

        self.assertEqual(len(candidates), 2)
        self.assertEqual(candidates[0].components["city"], "Paris")
        self.assertEqual(candidates[0].confidence, 9.0)
        self.assertEqual(candidates[1].confidence, 0.0)

        _, kwargs = self.session.get.call_args
        params = kwargs["params"]
        self.assertEqual(params["q"], "48.85,2.29")
        self.assertEqual(params["language"], "en")
        self.assertEqual(params["no_dedupe"], 1)
        self.assertEqual(params["limit"], 5)

    def test_no_results(self):
        response = MagicMock()
        response.json.return_value = {"results": []}
        self.session.get.return_value = response
        self.assertEqual(self.backend.candidates(0.0, 0.0), [])

    def test_network_error(self):
        self.session.get.side_effect = requests.ConnectionError("down")
        with self.assertRaises(GeocodingServiceError):
            self.backend.candidates(48.85, 2.29)


class TestNominatimBackend(unittest.TestCase):
    """Test cases for the Nominatim backend."""

    def setUp(self):
        self.geolocator = MagicMock()
        self.backend = NominatimBackend(geolocator=self.geolocator)

    def test_candidates(self):
        location = MagicMock()
        location.raw = {"address": {"town": "Annecy", "country": "France"}}
        self.geolocator.reverse.return_value = location

        candidates = self.backend.candidates(45.9, 6.12)

        self.assertEqual(len(candidates), 1)
        self.assertEqual(candidates[0].components["town"], "Annecy")
        self.assertEqual(candidates[0].confidence, 0.0)
        _, kwargs = self.geolocator.reverse.call_args
        self.assertEqual(kwargs["language"], "en")

    def test_no_location(self):
        self.geolocator.reverse.return_value = None
        self.assertEqual(self.backend.candidates(0.0, 0.0), [])

    def test_timeout(self):
        self.geolocator.reverse.side_effect = GeocoderTimedOut("slow")
        with self.assertRaises(GeocodingServiceError):
            self.backend.candidates(45.9, 6.12)


class TestGeocoderFactory(unittest.TestCase):
    """Test cases for geocoding backend selection."""

    def test_opencage_without_key(self):
        with self.assertLogs("photostream.geocoding.factory", level="WARNING"):
            resolver = GeocoderFactory.create(config_with())
        self.assertFalse(resolver.enabled)

    def test_opencage_with_key(self):
        resolver = GeocoderFactory.create(config_with(geolocation__api_key="oc-test"))
        self.assertIsInstance(resolver.backend, OpenCageBackend)
        self.assertEqual(resolver.max_candidates, 5)

    @patch("photostream.geocoding.nominatim.Nominatim")
    def test_nominatim(self, mock_nominatim):
        resolver = GeocoderFactory.create(config_with(geolocation__provider="nominatim"))
        self.assertIsInstance(resolver.backend, NominatimBackend)
        mock_nominatim.assert_called_once_with(user_agent="photostream")

    def test_disabled(self):
        resolver = GeocoderFactory.create(config_with(geolocation__enabled=False))
        self.assertFalse(resolver.enabled)


if __name__ == "__main__":
    unittest.main()
