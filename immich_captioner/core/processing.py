"""
Processing Pipeline Module
===========================

This module implements the enrichment loop that drives normal and watch mode:
fetch a batch of undescribed assets, caption each one, write the caption back,
and go round again.

Key Components:
- EnrichmentLoop: Orchestrates batches and owns the run-mode state machine
- ItemOutcome: Result of processing a single asset
- LoopState: POLLING / SLEEPING / DONE

State Machine:
    POLLING --(batch non-empty)--> process each item --> POLLING
    POLLING --(batch empty, normal)--> DONE
    POLLING --(batch empty, watch)--> SLEEPING --(interval)--> POLLING

Workflow Stages (per item):
1. Download the thumbnail from Immich
2. Normalize it to JPEG
3. Send it (base64) to Ollama with the captioning prompt
4. Write the caption to asset_exif.description

A failure at any stage is logged with the asset id and the stage, counted, and
the loop moves on to the next item. Failed ids are left out of the queries for
the rest of the sweep; watch mode forgets them before sleeping, so each one is
attempted again once per interval. Only database connection and batch-query
failures stop the run.

Threading Model:
- Single thread. Each item completes (or fails out) before the next begins.
- The only way to stop watch mode is to interrupt the process.
"""

import base64
import logging
import time
from enum import Enum
from typing import Callable, Protocol, List, Iterable, Optional

from . import image_processing
from .config import DESCRIBE_BATCH_SIZE
from .exceptions import (
    DecodeError,
    EncodeError,
    IncompleteResponseError,
    RemoteStatusError,
    StoreWriteError,
    TransportError,
)
from .session import AppConfig, RunMode, RunStats


# ============================================================================
# COLLABORATOR INTERFACES
# ============================================================================

class BatchSource(Protocol):
    def next_batch(self, mode: RunMode, exclude: Optional[Iterable[str]] = None) -> List[str]: ...

    def write_description(self, asset_id: str, description: str) -> None: ...


class ThumbnailSource(Protocol):
    def download_thumbnail(self, asset_id: str) -> bytes: ...


class InferenceBackend(Protocol):
    def chat_with_image(self, model_name: str, image_b64: str): ...


# ============================================================================
# STATES AND OUTCOMES
# ============================================================================

class LoopState(Enum):
    POLLING = "polling"
    SLEEPING = "sleeping"
    DONE = "done"


class ItemOutcome(Enum):
    DESCRIBED = "described"
    DOWNLOAD_FAILED = "download_failed"
    CONVERT_FAILED = "convert_failed"
    INFERENCE_FAILED = "inference_failed"
    PERSIST_FAILED = "persist_failed"


def encode_image(data: bytes) -> str:
    """Standard base64 text of the image bytes, as Ollama expects."""
    return base64.b64encode(data).decode("ascii")


def generate_description(inference: InferenceBackend, model_name: str, jpeg_bytes: bytes) -> str:
    """
    Caption one JPEG and insist on a complete reply.

    Raises:
        IncompleteResponseError: If the server did not flag the reply as done.
        TransportError, RemoteStatusError, DecodeError: From the backend.
    """
    result = inference.chat_with_image(model_name, encode_image(jpeg_bytes))
    if not result.done:
        raise IncompleteResponseError(
            f"model {model_name} returned an incomplete reply ({len(result.text)} chars)"
        )
    return result.text


# ============================================================================
# ENRICHMENT LOOP
# ============================================================================

class EnrichmentLoop:
    """
    Main orchestrator for normal and watch mode.

    Collaborators are injected so the loop only depends on their capabilities:
    the store (next_batch/write_description), the thumbnail source
    (download_thumbnail) and the inference backend (chat_with_image).

    Attributes:
        config: Resolved application configuration
        store: Candidate source and description writer
        thumbnails: Thumbnail downloader
        inference: Vision model client
        sleep: Called with the watch interval in seconds (time.sleep by default)
        stats: Running counters
        state: Current LoopState

    Example:
        >>> loop = EnrichmentLoop(config, store, immich, ollama)
        >>> stats = loop.run()  # Returns when caught up (normal mode)
    """

    def __init__(
        self,
        config: AppConfig,
        store: BatchSource,
        thumbnails: ThumbnailSource,
        inference: InferenceBackend,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self.store = store
        self.thumbnails = thumbnails
        self.inference = inference
        self.sleep = sleep
        self.stats = RunStats()
        self.state = LoopState.POLLING
        self.logger = logging.getLogger(__name__)

    def run(self) -> RunStats:
        """
        Drive the state machine until it reaches DONE.

        In watch mode DONE is never reached; the call only ends when the
        process is interrupted or a fatal error propagates.

        Raises:
            StoreQueryError: If a candidate query fails.
        """
        self.logger.info(f"Using model: {self.config.ollama_model}")
        self.state = LoopState.POLLING

        while self.state is not LoopState.DONE:
            if self.state is LoopState.POLLING:
                self.state = self._poll()
            elif self.state is LoopState.SLEEPING:
                self.logger.info(
                    f"Sleeping for {self.config.watch_interval:g}s... (Ctrl+C to stop)"
                )
                self.sleep(self.config.watch_interval)
                self.state = LoopState.POLLING

        self.logger.info(
            f"Run finished - batches: {self.stats.batches}, failed items: {self.stats.failed_items} "
            f"(download {self.stats.download_failures}, convert {self.stats.convert_failures}, "
            f"inference {self.stats.inference_failures}, save {self.stats.persist_failures})"
        )
        return self.stats

    def _poll(self) -> LoopState:
        """Fetch one batch and process it; return the next state."""
        self.logger.info(f"Scanning for images (batch of {DESCRIBE_BATCH_SIZE})...")
        batch = self.store.next_batch(RunMode.NORMAL, exclude=frozenset(self.stats.failed_ids))

        if not batch:
            return self._on_empty_batch()

        self.stats.batches += 1
        for count, asset_id in enumerate(batch, start=1):
            self.logger.info(
                f"[{count}|Total:{self.stats.total_processed}] Processing {asset_id}"
            )
            outcome = self.process_item(asset_id)
            if outcome is not ItemOutcome.DESCRIBED:
                self.stats.failed_ids.add(asset_id)

        return LoopState.POLLING

    def _on_empty_batch(self) -> LoopState:
        total = self.stats.total_processed

        if self.config.watch:
            if total > 0:
                self.logger.info(f"All caught up! Processed {total} images.")
                self.stats.reset()
            if self.stats.failed_ids:
                self.logger.info(f"{len(self.stats.failed_ids)} failed image(s) will be retried after the interval")
                self.stats.failed_ids.clear()
            return LoopState.SLEEPING

        if total == 0:
            self.logger.info("No images found to process.")
        else:
            self.logger.info(f"All done! Processed {total} images in total.")
        return LoopState.DONE

    # ------------------------------------------------------------------------
    # Single item
    # ------------------------------------------------------------------------

    def process_item(self, asset_id: str) -> ItemOutcome:
        """
        Run the download -> convert -> infer -> persist pipeline for one asset.

        Every stage contains its own failures: the error is logged with the
        stage name and the asset id, the matching failure counter is bumped,
        and the item is abandoned. total_processed only grows after a
        successful write.
        """
        try:
            raw = self.thumbnails.download_thumbnail(asset_id)
        except (TransportError, RemoteStatusError) as e:
            self.logger.warning(f"   [SKIP] {asset_id} Download error: {e}")
            self.stats.download_failures += 1
            return ItemOutcome.DOWNLOAD_FAILED

        try:
            jpeg = image_processing.ensure_jpeg(raw)
        except (DecodeError, EncodeError) as e:
            self.logger.warning(f"   [SKIP] {asset_id} Image conversion error: {e}")
            self.stats.convert_failures += 1
            return ItemOutcome.CONVERT_FAILED

        self.logger.info(f"   {asset_id} ... Sending to GPU ...")
        started = time.monotonic()
        try:
            description = generate_description(self.inference, self.config.ollama_model, jpeg)
        except (TransportError, RemoteStatusError, DecodeError, IncompleteResponseError) as e:
            self.logger.error(f"   [FAIL] {asset_id} Ollama error: {e}")
            self.stats.inference_failures += 1
            return ItemOutcome.INFERENCE_FAILED
        elapsed = time.monotonic() - started

        try:
            self.store.write_description(asset_id, description)
        except StoreWriteError as e:
            self.logger.error(f"   [ERR] {asset_id} DB Save error: {e}")
            self.stats.persist_failures += 1
            return ItemOutcome.PERSIST_FAILED

        self.stats.total_processed += 1
        if self.config.verbose:
            self.logger.info(
                f"   Done! ({len(description)} chars, {elapsed:.1f}s)\nDescription: {description}"
            )
        else:
            self.logger.info(f"   Done! ({len(description)} chars, {elapsed:.1f}s)")
            self.logger.debug(f"   Description for {asset_id}: {description}")
        return ItemOutcome.DESCRIBED
