"""
Benchmark Mode
==============

Compares several vision models on the same small sample of recent images so
an operator can pick the best speed/quality trade-off for their hardware.
Nothing is written to the database.

Each sampled asset is downloaded and normalized once; the resulting JPEG is
then sent to every model in turn. Every (asset, model) pair produces exactly
one BenchmarkEntry, successful or not, so the report always covers the whole
sample x model matrix.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from . import config
from . import image_processing
from .exceptions import (
    DecodeError,
    EncodeError,
    IncompleteResponseError,
    RemoteStatusError,
    TransportError,
)
from .processing import BatchSource, InferenceBackend, ThumbnailSource, generate_description
from .session import RunMode

logger = logging.getLogger(__name__)

COMPLETE_MARKER = "--- BENCHMARK COMPLETE ---"


@dataclass
class BenchmarkEntry:
    """Outcome of one model on one asset."""
    asset_id: str
    model: str
    duration: float = 0.0
    description: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class BenchmarkRunner:
    """
    Runs every benchmark model against the most recent images.

    Attributes:
        store: Provides the sample via next_batch(RunMode.BENCHMARK)
        thumbnails: Thumbnail downloader
        inference: Vision model client
        models: Model tags to compare
        clock: Monotonic clock used for timings
    """

    def __init__(
        self,
        store: BatchSource,
        thumbnails: ThumbnailSource,
        inference: InferenceBackend,
        models: Sequence[str] = tuple(config.BENCHMARK_MODELS),
        clock: Callable[[], float] = time.perf_counter,
    ):
        self.store = store
        self.thumbnails = thumbnails
        self.inference = inference
        self.models = list(models)
        self.clock = clock

    def run(self) -> List[BenchmarkEntry]:
        """
        Execute the benchmark and return one entry per (asset, model) pair.

        Raises:
            StoreQueryError: If the sample query fails.
        """
        logger.info("--- BENCHMARK MODE ---")
        asset_ids = self.store.next_batch(RunMode.BENCHMARK)
        entries: List[BenchmarkEntry] = []

        for index, asset_id in enumerate(asset_ids, start=1):
            logger.info(f"[{index}/{len(asset_ids)}] Image ID: {asset_id}")

            try:
                jpeg = image_processing.ensure_jpeg(self.thumbnails.download_thumbnail(asset_id))
            except (TransportError, RemoteStatusError) as e:
                logger.warning(f"  Error downloading: {e}")
                entries.extend(self._failed_for_all_models(asset_id, f"download error: {e}"))
                continue
            except (DecodeError, EncodeError) as e:
                logger.warning(f"  Error converting: {e}")
                entries.extend(self._failed_for_all_models(asset_id, f"conversion error: {e}"))
                continue

            for model in self.models:
                entries.append(self._time_model(asset_id, model, jpeg))

        self._log_summary(entries)
        logger.info(COMPLETE_MARKER)
        return entries

    def _time_model(self, asset_id: str, model: str, jpeg: bytes) -> BenchmarkEntry:
        started = self.clock()
        try:
            description = generate_description(self.inference, model, jpeg)
        except (TransportError, RemoteStatusError, DecodeError, IncompleteResponseError) as e:
            duration = self.clock() - started
            logger.info(f"  Testing {model} ... FAILED ({e})")
            return BenchmarkEntry(asset_id, model, duration=duration, error=str(e))

        duration = self.clock() - started
        logger.info(f"  Testing {model} ... DONE in {duration:.2f}s")
        logger.info(f"    -> Description: {description}")
        return BenchmarkEntry(asset_id, model, duration=duration, description=description)

    def _failed_for_all_models(self, asset_id: str, reason: str) -> List[BenchmarkEntry]:
        return [BenchmarkEntry(asset_id, model, error=reason) for model in self.models]

    def _log_summary(self, entries: List[BenchmarkEntry]):
        for model, row in summarize(entries, self.models).items():
            mean = f"{row['mean_duration']:.2f}s" if row['succeeded'] else "n/a"
            logger.info(f"  {model}: {row['succeeded']}/{row['attempted']} succeeded, mean {mean}")


def summarize(entries: List[BenchmarkEntry], models: Optional[Sequence[str]] = None) -> Dict[str, Dict[str, float]]:
    """
    Aggregate entries per model.

    Returns:
        {model: {"attempted", "succeeded", "mean_duration"}}, ordered as
        `models` when given, else by first appearance. mean_duration only
        covers successful calls and is 0.0 when there were none.
    """
    order = list(models) if models else []
    for entry in entries:
        if entry.model not in order:
            order.append(entry.model)

    summary = {}
    for model in order:
        rows = [e for e in entries if e.model == model]
        ok = [e.duration for e in rows if e.ok]
        summary[model] = {
            "attempted": len(rows),
            "succeeded": len(ok),
            "mean_duration": sum(ok) / len(ok) if ok else 0.0,
        }
    return summary
