"""
Application Configuration and Constants
=======================================

This module contains the fixed values used throughout immich-captioner. It
serves as a single source of truth for:

- Default connection settings (Immich, PostgreSQL, Ollama)
- Batch sizes for the candidate queries
- The captioning prompt and the inference tuning options
- Network timeouts
- The model list used by benchmark mode

Note:
    All constants use UPPER_SNAKE_CASE naming convention. Values that an operator
    may override at startup (hosts, model, interval) only provide the defaults
    here; see utils.config_manager for the resolution order.
"""

# ============================================================================
# APPLICATION SETTINGS
# ============================================================================

APP_NAME = "immich-captioner"

# ============================================================================
# CONNECTION DEFAULTS
# ============================================================================
# Used when neither the environment nor a command-line flag provides a value.

DEFAULT_IMMICH_HOST = "127.0.0.1"
IMMICH_PORT = 2283  # Immich server's standard HTTP port

DEFAULT_OLLAMA_HOST = "http://localhost:11434"
DEFAULT_OLLAMA_MODEL = "minicpm-v:latest"

DEFAULT_DB_USER = "postgres"
DEFAULT_DB_PASS = "postgres"
DEFAULT_DB_NAME = "immich"
DEFAULT_DB_PORT = "5432"

# Go-style duration string (see config_manager.parse_duration)
DEFAULT_WATCH_INTERVAL = "1m"

DEFAULT_LOG_DIR = "logs"

# ============================================================================
# BATCHING
# ============================================================================

# Candidates pulled per query in normal/watch mode. The loop re-queries after
# each batch, so only one batch is held in memory at a time.
DESCRIBE_BATCH_SIZE = 100

# Most recent images sampled by benchmark mode
BENCHMARK_SAMPLE_SIZE = 5

# ============================================================================
# NETWORK
# ============================================================================

# Thumbnail downloads are small; anything slower than this is a stuck server.
THUMBNAIL_TIMEOUT_SECONDS = 15

# Inference deliberately has no timeout: large vision models on modest GPUs can
# take minutes per image. None is passed straight to the HTTP layer.
INFERENCE_TIMEOUT_SECONDS = None

# ============================================================================
# CAPTIONING
# ============================================================================

KEYWORD_COUNT = 15

DESCRIPTION_PROMPT = (
    "Describe this image concisely. Then list "
    f"{KEYWORD_COUNT} relevant keywords for search "
    "(objects, activities, setting, time, colors)."
)

# Ollama generation options. num_predict caps the output length.
INFERENCE_OPTIONS = {
    "num_predict": 500,
    "temperature": 0.1,
}

# ============================================================================
# BENCHMARK
# ============================================================================

BENCHMARK_MODELS = [
    "qwen3-vl:latest",
    "moondream:latest",
    "minicpm-v:latest",
]
