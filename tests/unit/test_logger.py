"""
Unit tests for credential masking and logging setup.
"""

import logging
import os
import sys
import tempfile
import unittest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..')))

from immich_captioner.utils.logger import (
    LOG_FILE_NAME,
    SensitiveDataFilter,
    mask_sensitive_data,
    setup_logging,
)


class TestMasking(unittest.TestCase):

    def test_dsn_password_is_masked(self):
        masked = mask_sensitive_data("postgres://immich:hunter2@db:5432/immich")
        self.assertEqual(masked, "postgres://immich:***@db:5432/immich")

    def test_api_key_header_keeps_last_four(self):
        masked = mask_sensitive_data({"x-api-key": "abcdef123456", "Accept": "application/octet-stream"})
        self.assertEqual(masked["x-api-key"], "***3456")
        self.assertEqual(masked["Accept"], "application/octet-stream")

    def test_nested_config(self):
        masked = mask_sensitive_data({
            "immich_api_key": "abcdef123456",
            "postgres_url": "postgres://u:pw@h:5432/immich",
            "ollama_model": "minicpm-v:latest",
        })
        self.assertEqual(masked["immich_api_key"], "***3456")
        self.assertNotIn("pw@", masked["postgres_url"])
        self.assertEqual(masked["ollama_model"], "minicpm-v:latest")

    def test_filter_masks_record_message(self):
        record = logging.LogRecord(
            "t", logging.INFO, __file__, 1,
            "Connecting to postgres://u:topsecret@h:5432/immich", None, None,
        )

        self.assertTrue(SensitiveDataFilter().filter(record))
        self.assertNotIn("topsecret", record.getMessage())


class TestSetupLogging(unittest.TestCase):

    def setUp(self):
        self.root = logging.getLogger()
        self.saved_handlers = list(self.root.handlers)
        self.saved_level = self.root.level

    def tearDown(self):
        for handler in list(self.root.handlers):
            self.root.removeHandler(handler)
            handler.close()
        for handler in self.saved_handlers:
            self.root.addHandler(handler)
        self.root.setLevel(self.saved_level)

    def test_creates_log_file_with_levels(self):
        with tempfile.TemporaryDirectory() as tmp:
            log_dir = os.path.join(tmp, "logs")

            log_file = setup_logging(verbose=False, log_dir=log_dir)

            self.assertEqual(log_file.name, LOG_FILE_NAME)
            self.assertTrue(log_file.exists())
            levels = sorted(h.level for h in self.root.handlers)
            self.assertEqual(levels, [logging.DEBUG, logging.INFO])

            for handler in list(self.root.handlers):
                self.root.removeHandler(handler)
                handler.close()

    def test_verbose_lowers_console_level(self):
        with tempfile.TemporaryDirectory() as tmp:
            setup_logging(verbose=True, log_dir=tmp)

            self.assertTrue(all(h.level == logging.DEBUG for h in self.root.handlers))

            for handler in list(self.root.handlers):
                self.root.removeHandler(handler)
                handler.close()


if __name__ == "__main__":
    unittest.main()
