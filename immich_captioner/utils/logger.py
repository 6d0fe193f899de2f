"""
Logging setup and credential masking.

setup_logging() installs a DEBUG log file (overwritten on each run) and a
stdout console handler. Both carry SensitiveDataFilter, which hides the Immich
API key and the password inside the PostgreSQL DSN.
"""

import logging
import sys
import re
import json
from pathlib import Path
from typing import Any, Dict, Optional

LOG_FILE_NAME = "immich_captioner.log"

# Sensitive field patterns to mask
SENSITIVE_FIELDS = {
    'password', 'passwd', 'pwd', 'secret', 'token', 'api_key',
    'apikey', 'x-api-key', 'auth', 'authorization', 'credentials', 'db_pass'
}

# Regex patterns for sensitive data in strings
SENSITIVE_PATTERNS = [
    (re.compile(r'(postgres(?:ql)?://[^:/@\s]+):[^@\s]*@'), r'\1:***@'),  # DSN passwords
    (re.compile(r'(Bearer\s+[a-zA-Z0-9\-._~+/]+=*)'), 'Bearer ***'),  # Bearer tokens
    (re.compile(r'([a-zA-Z0-9]{32,})'), lambda m: f"***{m.group(1)[-4:]}"),  # Long alphanumeric (likely keys)
]


class SensitiveDataFilter(logging.Filter):
    """Redacts API keys, DSN passwords and Bearer tokens in log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Mask sensitive data in the log message."""
        if isinstance(record.msg, str):
            record.msg = _mask_string(record.msg)

        # Also mask in args if present
        if record.args:
            if isinstance(record.args, dict):
                record.args = mask_sensitive_data(record.args)
            elif isinstance(record.args, tuple):
                record.args = tuple(
                    mask_sensitive_data(arg) if isinstance(arg, (dict, str)) else arg
                    for arg in record.args
                )

        return True


def _mask_string(text: str) -> str:
    """Apply regex patterns to mask sensitive data in strings."""
    for pattern, replacement in SENSITIVE_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def mask_sensitive_data(data: Any, mask_value: str = "***") -> Any:
    """
    Return a copy of dicts/lists/strings with credentials masked.

    Values under key-like names keep their last 4 characters (e.g. "***4a1b");
    other sensitive keys become mask_value; strings go through the regexes.
    """
    if isinstance(data, dict):
        masked = {}
        for key, value in data.items():
            key_lower = str(key).lower()

            if any(sensitive in key_lower for sensitive in SENSITIVE_FIELDS):
                # For API keys, show last 4 characters
                if 'key' in key_lower or 'token' in key_lower:
                    if isinstance(value, str) and len(value) > 4:
                        masked[key] = f"{mask_value}{value[-4:]}"
                    else:
                        masked[key] = mask_value
                else:
                    masked[key] = mask_value
            else:
                masked[key] = mask_sensitive_data(value, mask_value)
        return masked

    elif isinstance(data, (list, tuple)):
        masked_list = [mask_sensitive_data(item, mask_value) for item in data]
        return type(data)(masked_list)

    elif isinstance(data, str):
        return _mask_string(data)

    else:
        return data


def setup_logging(
    verbose: bool = False,
    log_dir: Optional[str] = None,
    log_format: Optional[str] = None
) -> Path:
    """
    Configure the root logger for one run and return the log file path.

    Args:
        verbose: Lower the console threshold to DEBUG.
        log_dir: Directory for the log file (created if missing).
        log_format: Optional custom formatting string.
    """
    directory = Path(log_dir or "logs")
    directory.mkdir(parents=True, exist_ok=True)

    # Single log file, truncated on each run
    log_file = directory / LOG_FILE_NAME

    if log_format is None:
        log_format = (
            '%(asctime)s - %(name)s - %(levelname)s - '
            '[%(filename)s:%(lineno)d] - %(message)s'
        )

    formatter = logging.Formatter(log_format, datefmt='%Y-%m-%d %H:%M:%S')

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # Capture everything, handlers will filter

    # Remove existing handlers to avoid duplicates
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    # File handler - captures DEBUG and above
    file_handler = logging.FileHandler(log_file, mode='w', encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)
    file_handler.addFilter(SensitiveDataFilter())
    root_logger.addHandler(file_handler)

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(SensitiveDataFilter())
    root_logger.addHandler(console_handler)

    # Keep third-party request chatter out of the console
    for noisy in ("urllib3", "httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logging.info("=" * 80)
    logging.info(f"immich-captioner started - Log file: {log_file}")
    logging.info("=" * 80)

    return log_file


def shutdown_logging():
    """Flush and close all handlers. Call before process exit."""
    logging.info("Shutting down logging system...")
    logging.shutdown()


def log_config(config_name: str, config_data: Dict[str, Any], logger: Optional[logging.Logger] = None):
    """Log a one-line INFO header and the masked settings at DEBUG."""
    if logger is None:
        logger = logging.getLogger(__name__)

    masked_config = mask_sensitive_data(config_data)

    logger.info(f"Configuration: {config_name}")
    logger.debug(f"{config_name} details: {json.dumps(masked_config, indent=2, default=str)}")


def log_api_request(
    logger: logging.Logger,
    method: str,
    endpoint: str,
    headers: Optional[Dict] = None,
    params: Optional[Dict] = None
):
    """DEBUG-log an outgoing HTTP request; header values such as x-api-key are masked."""
    logger.debug(f"API Request: {method} {endpoint}")

    if headers:
        logger.debug(f"Request headers: {mask_sensitive_data(headers)}")

    if params:
        logger.debug(f"Request params: {mask_sensitive_data(params)}")
