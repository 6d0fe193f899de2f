"""
Process entry point: resolve configuration, set up logging, connect to the
database and run the selected mode.
"""

import logging
import sys
from typing import Optional, Sequence

from immich_captioner.core.asset_store import AssetStore
from immich_captioner.core.benchmark import BenchmarkRunner
from immich_captioner.core.exceptions import CaptionerError, ConfigError, TransportError, RemoteStatusError
from immich_captioner.core.immich_client import ImmichClient
from immich_captioner.core.processing import EnrichmentLoop
from immich_captioner.core.session import AppConfig, RunMode
from immich_captioner.integrations.ollama_client import OllamaClient, is_vision_model
from immich_captioner.utils.config_manager import describe_config, load_config
from immich_captioner.utils.logger import setup_logging, shutdown_logging

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_INTERRUPTED = 130


def check_model(ollama: OllamaClient, model_name: str):
    """Warn (never fail) when the configured model looks unusable."""
    if not is_vision_model(model_name):
        logger.warning(f"Model '{model_name}' is not a known vision model; captions may fail")
    try:
        available = ollama.list_models()
    except (TransportError, RemoteStatusError) as e:
        logger.warning(f"Could not list Ollama models: {e}")
        return
    if model_name not in available:
        logger.warning(f"Model '{model_name}' is not pulled on the Ollama server (available: {available})")


def run(app_config: AppConfig):
    """
    Run the configured mode to completion.

    Raises:
        StoreConnectError, StoreQueryError: Fatal database failures.
    """
    immich = ImmichClient(app_config.immich_base_url, app_config.immich_api_key)
    ollama = OllamaClient(host=app_config.ollama_host)

    try:
        logger.info("Connecting to DB...")
        with AssetStore(app_config.postgres_url) as store:
            if app_config.mode is RunMode.BENCHMARK:
                BenchmarkRunner(store, immich, ollama).run()
            else:
                check_model(ollama, app_config.ollama_model)
                EnrichmentLoop(app_config, store, immich, ollama).run()
    finally:
        immich.close()


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Console entry point.

    Returns the process exit status: 0 on success, 1 on a fatal error,
    130 when interrupted.
    """
    try:
        app_config = load_config(argv)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_FATAL

    setup_logging(verbose=app_config.verbose, log_dir=app_config.log_dir)
    describe_config(app_config)

    try:
        run(app_config)
        return EXIT_OK
    except KeyboardInterrupt:
        logger.warning("Interrupted - stopping")
        return EXIT_INTERRUPTED
    except CaptionerError as e:
        logger.critical(f"Fatal error: {e}")
        return EXIT_FATAL
    finally:
        shutdown_logging()


if __name__ == "__main__":
    sys.exit(main())
