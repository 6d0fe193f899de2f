"""
Session Management Module
==========================

This module defines the configuration and runtime-state structures shared by
the captioner's components:

- RunMode: which of the three run modes was selected
- AppConfig: the resolved, read-only configuration record
- RunStats: counters maintained by the enrichment loop

AppConfig is built once at startup by utils.config_manager and then handed to
each component that needs it. It is frozen, so nothing can change it mid-run.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict

from . import config


# ============================================================================
# RUN MODE
# ============================================================================

class RunMode(Enum):
    """Selects how the captioner drives its batches."""
    NORMAL = "normal"        # Sweep until nothing is left, then exit
    WATCH = "watch"          # Sweep, sleep, sweep again forever
    BENCHMARK = "benchmark"  # Compare models on a fixed sample, write nothing


# ============================================================================
# CONFIGURATION DATACLASS
# ============================================================================

@dataclass(frozen=True)
class AppConfig:
    """
    Resolved configuration for one process lifetime.

    Attributes:
        immich_host: Host name or IP of the Immich server
        immich_api_key: API key sent as the x-api-key header
        postgres_url: DSN of the Immich PostgreSQL database
        ollama_host: Base URL of the Ollama server
        ollama_model: Model used for captioning in normal/watch mode
        mode: Selected RunMode
        watch_interval: Seconds to sleep between polls in watch mode
        verbose: Log full descriptions to the console
        log_dir: Directory for the log file
        immich_port: Immich HTTP port
    """
    immich_host: str = config.DEFAULT_IMMICH_HOST
    immich_api_key: str = ""
    postgres_url: str = ""
    ollama_host: str = config.DEFAULT_OLLAMA_HOST
    ollama_model: str = config.DEFAULT_OLLAMA_MODEL
    mode: RunMode = RunMode.NORMAL
    watch_interval: float = 60.0
    verbose: bool = False
    log_dir: str = config.DEFAULT_LOG_DIR
    immich_port: int = config.IMMICH_PORT

    @property
    def immich_base_url(self) -> str:
        return f"http://{self.immich_host}:{self.immich_port}"

    @property
    def watch(self) -> bool:
        return self.mode is RunMode.WATCH

    def to_dict(self) -> Dict[str, object]:
        """Flatten for logging (see utils.logger.log_config)."""
        return {
            "immich_base_url": self.immich_base_url,
            "immich_api_key": self.immich_api_key,
            "postgres_url": self.postgres_url,
            "ollama_host": self.ollama_host,
            "ollama_model": self.ollama_model,
            "mode": self.mode.value,
            "watch_interval": self.watch_interval,
            "verbose": self.verbose,
            "log_dir": self.log_dir,
        }


# ============================================================================
# RUNTIME STATISTICS
# ============================================================================

@dataclass
class RunStats:
    """
    Counters kept by the enrichment loop.

    total_processed counts successful writes only. In watch mode it is reset
    after every "caught up" announcement; the failure counters and batch count
    cover the whole process lifetime. failed_ids holds the ids that failed
    during the current sweep.
    """
    total_processed: int = 0
    batches: int = 0
    download_failures: int = 0
    convert_failures: int = 0
    inference_failures: int = 0
    persist_failures: int = 0
    failed_ids: set = field(default_factory=set)

    @property
    def failed_items(self) -> int:
        return (
            self.download_failures
            + self.convert_failures
            + self.inference_failures
            + self.persist_failures
        )

    def reset(self):
        """Reset the running total after a caught-up announcement."""
        self.total_processed = 0
