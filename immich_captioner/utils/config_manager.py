"""
Application Configuration Resolution
====================================

This module builds the single AppConfig used for a process lifetime.

Resolution order (later wins):
-------------------------------
1. Built-in defaults (core.config)
2. A `.env` file in the working directory (never overrides real variables)
3. Environment variables
4. Command-line flags

The database host deliberately follows the Immich host: unless DB_HOST is set
explicitly, the DSN points at whatever host the Immich server resolves to,
including a `--host` override on the command line.
"""

import argparse
import logging
import os
import re
from typing import Mapping, Optional, Sequence

from dotenv import load_dotenv

from immich_captioner.core import config
from immich_captioner.core.exceptions import ConfigError
from immich_captioner.core.session import AppConfig, RunMode
from immich_captioner.utils.logger import log_config

# ============================================================================
# DURATION PARSING
# ============================================================================

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


def parse_duration(text: str) -> float:
    """
    Parse a Go-style duration ("90s", "1m", "1h30m", "1.5h") into seconds.

    A bare "0" is accepted; any other number needs a unit.

    Raises:
        ConfigError: If the string is not a valid duration.
    """
    value = (text or "").strip()
    if value in ("0", "+0", "-0"):
        return 0.0

    sign = 1.0
    if value and value[0] in "+-":
        sign = -1.0 if value[0] == "-" else 1.0
        value = value[1:]

    if not value:
        raise ConfigError(f"Invalid interval format: {text!r}")

    total = 0.0
    pos = 0
    while pos < len(value):
        match = _DURATION_PART.match(value, pos)
        if not match:
            raise ConfigError(f"Invalid interval format: {text!r}")
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()

    return sign * total


# ============================================================================
# ARGUMENT PARSER
# ============================================================================

def build_parser(env: Mapping[str, str]) -> argparse.ArgumentParser:
    """Build the CLI parser with defaults taken from the environment."""
    parser = argparse.ArgumentParser(
        prog=config.APP_NAME,
        description="Generate Immich image descriptions with a local Ollama vision model.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--host", default=env.get("IMMICH_HOST", config.DEFAULT_IMMICH_HOST),
                        help="Immich Host IP")
    parser.add_argument("--key", default=env.get("IMMICH_API_KEY", ""),
                        help="Immich API Key")
    parser.add_argument("--ollama", default=env.get("OLLAMA_HOST", config.DEFAULT_OLLAMA_HOST),
                        help="Ollama Server URL")
    parser.add_argument("--model", default=env.get("OLLAMA_MODEL", config.DEFAULT_OLLAMA_MODEL),
                        help="Ollama model to use")
    parser.add_argument("--interval", default=env.get("WATCH_INTERVAL", config.DEFAULT_WATCH_INTERVAL),
                        help="Watch interval (e.g. 1m, 1h)")
    parser.add_argument("--watch", action="store_true",
                        help="Run in watcher mode (poll for new images)")
    parser.add_argument("--benchmark", action="store_true",
                        help="Run benchmark mode")
    parser.add_argument("--verbose", action="store_true",
                        help="Print full description to terminal")
    parser.add_argument("--log-dir", default=env.get("LOG_DIR", config.DEFAULT_LOG_DIR),
                        help="Directory for the log file")
    return parser


def build_postgres_url(env: Mapping[str, str], immich_host: str) -> str:
    """Assemble the DSN; the DB host follows the Immich host unless DB_HOST is set."""
    db_host = env.get("DB_HOST") or immich_host
    return "postgres://{user}:{password}@{host}:{port}/{name}".format(
        user=env.get("DB_USER", config.DEFAULT_DB_USER),
        password=env.get("DB_PASS", config.DEFAULT_DB_PASS),
        host=db_host,
        port=env.get("DB_PORT", config.DEFAULT_DB_PORT),
        name=env.get("DB_NAME", config.DEFAULT_DB_NAME),
    )


# ============================================================================
# LOADING
# ============================================================================

def load_config(
    argv: Optional[Sequence[str]] = None,
    environ: Optional[Mapping[str, str]] = None,
    dotenv: bool = True
) -> AppConfig:
    """
    Resolve the configuration from defaults, .env, environment and flags.

    Args:
        argv: Command-line arguments (sys.argv[1:] when None)
        environ: Environment mapping (os.environ when None)
        dotenv: Load a .env file into os.environ first (skipped when environ
                is given explicitly)

    Returns:
        The frozen AppConfig.

    Raises:
        ConfigError: If the watch interval is malformed or not positive.
    """
    if environ is None:
        if dotenv:
            # It's fine for .env to be missing; real env vars take precedence.
            load_dotenv(override=False)
        environ = os.environ

    args = build_parser(environ).parse_args(argv)

    interval = parse_duration(args.interval)
    if interval <= 0:
        raise ConfigError(f"Watch interval must be positive, got {args.interval!r}")

    if args.benchmark:
        mode = RunMode.BENCHMARK
    elif args.watch:
        mode = RunMode.WATCH
    else:
        mode = RunMode.NORMAL

    app_config = AppConfig(
        immich_host=args.host,
        immich_api_key=args.key,
        postgres_url=build_postgres_url(environ, args.host),
        ollama_host=args.ollama,
        ollama_model=args.model,
        mode=mode,
        watch_interval=interval,
        verbose=args.verbose,
        log_dir=args.log_dir,
    )

    return app_config


def describe_config(app_config: AppConfig):
    """Log the resolved configuration with secrets masked."""
    logger = logging.getLogger(__name__)
    log_config("Resolved Configuration", app_config.to_dict(), logger)
    if not app_config.immich_api_key:
        logger.warning("IMMICH_API_KEY is empty; thumbnail downloads will be rejected")
