"""
Unit tests for application configuration.
"""

import unittest
from immich_captioner.core import config

class TestConfig(unittest.TestCase):
    """Test cases for global configuration constants."""

    def test_prompt_asks_for_keywords(self):
        """The prompt requests the configured number of keywords."""
        self.assertIn(f"{config.KEYWORD_COUNT} relevant keywords", config.DESCRIPTION_PROMPT)

    def test_benchmark_models(self):
        """Three distinct benchmark models, including the default one."""
        self.assertEqual(len(config.BENCHMARK_MODELS), 3)
        self.assertEqual(len(set(config.BENCHMARK_MODELS)), 3)
        self.assertIn(config.DEFAULT_OLLAMA_MODEL, config.BENCHMARK_MODELS)

    def test_batch_ceilings(self):
        self.assertEqual(config.DESCRIBE_BATCH_SIZE, 100)
        self.assertEqual(config.BENCHMARK_SAMPLE_SIZE, 5)

    def test_inference_options(self):
        self.assertEqual(config.INFERENCE_OPTIONS["num_predict"], 500)
        self.assertEqual(config.INFERENCE_OPTIONS["temperature"], 0.1)
        self.assertIsNone(config.INFERENCE_TIMEOUT_SECONDS)

if __name__ == "__main__":
    unittest.main()
