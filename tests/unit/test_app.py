import os
import sys
import unittest
from unittest.mock import MagicMock, patch

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..')))

from immich_captioner import app
from immich_captioner.core.exceptions import StoreConnectError, TransportError
from immich_captioner.core.session import AppConfig, RunMode


class TestMain(unittest.TestCase):

    @patch("immich_captioner.utils.config_manager.load_dotenv")
    def test_bad_interval_exits_1(self, _load_dotenv):
        self.assertEqual(app.main(["--interval", "never"]), app.EXIT_FATAL)

    @patch("immich_captioner.app.shutdown_logging")
    @patch("immich_captioner.app.describe_config")
    @patch("immich_captioner.app.setup_logging")
    @patch("immich_captioner.app.load_config")
    @patch("immich_captioner.app.run")
    def test_fatal_error_exits_1(self, mock_run, mock_load, _setup, _describe, mock_shutdown):
        mock_load.return_value = AppConfig()
        mock_run.side_effect = StoreConnectError("connection refused")

        self.assertEqual(app.main([]), app.EXIT_FATAL)
        mock_shutdown.assert_called_once()

    @patch("immich_captioner.app.shutdown_logging")
    @patch("immich_captioner.app.describe_config")
    @patch("immich_captioner.app.setup_logging")
    @patch("immich_captioner.app.load_config")
    @patch("immich_captioner.app.run")
    def test_interrupt_exits_130(self, mock_run, mock_load, _setup, _describe, _shutdown):
        mock_load.return_value = AppConfig()
        mock_run.side_effect = KeyboardInterrupt()

        self.assertEqual(app.main([]), app.EXIT_INTERRUPTED)

    @patch("immich_captioner.app.shutdown_logging")
    @patch("immich_captioner.app.describe_config")
    @patch("immich_captioner.app.setup_logging")
    @patch("immich_captioner.app.load_config")
    @patch("immich_captioner.app.run")
    def test_success_exits_0(self, mock_run, mock_load, mock_setup, _describe, _shutdown):
        mock_load.return_value = AppConfig(verbose=True, log_dir="/tmp/captioner-logs")

        self.assertEqual(app.main([]), app.EXIT_OK)
        mock_setup.assert_called_once_with(verbose=True, log_dir="/tmp/captioner-logs")


@patch("immich_captioner.app.BenchmarkRunner")
@patch("immich_captioner.app.EnrichmentLoop")
@patch("immich_captioner.app.AssetStore")
@patch("immich_captioner.app.OllamaClient")
@patch("immich_captioner.app.ImmichClient")
class TestRun(unittest.TestCase):

    def test_benchmark_mode_runs_benchmark(self, mock_immich, mock_ollama, mock_store, mock_loop, mock_bench):
        app.run(AppConfig(mode=RunMode.BENCHMARK))

        mock_bench.return_value.run.assert_called_once()
        mock_loop.assert_not_called()

    def test_normal_mode_runs_loop(self, mock_immich, mock_ollama, mock_store, mock_loop, mock_bench):
        mock_ollama.return_value.list_models.return_value = ["minicpm-v:latest"]
        cfg = AppConfig(mode=RunMode.NORMAL, postgres_url="postgres://u:p@h:5432/immich")

        app.run(cfg)

        mock_store.assert_called_once_with("postgres://u:p@h:5432/immich")
        mock_loop.return_value.run.assert_called_once()
        mock_bench.assert_not_called()

    def test_http_session_closed_on_failure(self, mock_immich, mock_ollama, mock_store, mock_loop, mock_bench):
        mock_store.return_value.__enter__.side_effect = StoreConnectError("refused")

        with self.assertRaises(StoreConnectError):
            app.run(AppConfig())

        mock_immich.return_value.close.assert_called_once()
        # The ollama library owns its connection pool
        mock_ollama.return_value.close.assert_not_called()


class TestCheckModel(unittest.TestCase):

    def test_missing_model_warns(self):
        ollama = MagicMock()
        ollama.list_models.return_value = ["llava:7b"]

        with self.assertLogs("immich_captioner.app", level="WARNING") as logs:
            app.check_model(ollama, "minicpm-v:latest")

        self.assertTrue(any("not pulled" in line for line in logs.output))

    def test_unreachable_server_only_warns(self):
        ollama = MagicMock()
        ollama.list_models.side_effect = TransportError("connection refused")

        with self.assertLogs("immich_captioner.app", level="WARNING"):
            app.check_model(ollama, "minicpm-v:latest")


if __name__ == "__main__":
    unittest.main()
