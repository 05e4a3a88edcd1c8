"""Parallel luminance aggregation over catalog regions.

Each call fans one analysis job per requested region out to a fixed worker
pool and joins them all before returning, so callers never observe a
partially computed luminance set. A failing or hung job only flags its own
region; sibling results are kept.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

import numpy as np

from backhand.errors import AnalysisJobFailure
from backhand.luma import region_luma
from backhand.regions import Region, RegionCatalog, Third

logger = logging.getLogger("backhand.aggregator")

Analyzer = Callable[[np.ndarray, Region], float]


def forward_thirds(offset: int = 0) -> list[Third]:
    """Regions `[offset .. axis end)` in catalog order.

    Offsets 0-2 walk the horizontal bands (top to bottom), 3-5 the
    vertical bands (left to right).
    """
    if not 0 <= offset < len(Third):
        raise ValueError(f"forward offset must be in [0, 5], got {offset}")
    end = 3 if offset < 3 else 6
    return [Third(i) for i in range(offset, end)]


def backward_thirds(offset: int) -> list[Third]:
    """Regions counted down from a catalog boundary.

    Offsets 1-3 take that many vertical bands starting at RIGHT
    (3 = right to left); offsets 4-6 take `offset - 3` horizontal bands
    starting at BOTTOM (6 = bottom to top).
    """
    if not 1 <= offset <= len(Third):
        raise ValueError(f"backward offset must be in [1, 6], got {offset}")
    if offset <= 3:
        start, count = Third.RIGHT, offset
    else:
        start, count = Third.BOTTOM, offset - 3
    return [Third(start - i) for i in range(count)]


@dataclass
class LumaResult:
    """Per-region means for one tick, in evaluation order."""
    samples: dict[Third, float] = field(default_factory=dict)
    failures: dict[Third, AnalysisJobFailure] = field(default_factory=dict)
    average: Optional[float] = None

    @property
    def complete(self) -> bool:
        return not self.failures

    def __getitem__(self, third: Third) -> float:
        return self.samples[third]

    def __contains__(self, third: Third) -> bool:
        return third in self.samples

    def get(self, third: Third, default: Optional[float] = None) -> Optional[float]:
        return self.samples.get(third, default)

    def values(self) -> list[float]:
        return list(self.samples.values())


class LumaAggregator:
    """Computes region luminance concurrently on a bounded worker pool.

    Usage:
        with LumaAggregator(RegionCatalog.for_shape(120, 160)) as agg:
            down = agg.forward(frame, 0, average=True)    # TOP, CENTER_HORIZ, BOTTOM
            left = agg.backward(frame, 3)                 # RIGHT, CENTER_VERT, LEFT
            some = agg.compute(frame, Third.TOP, Third.RIGHT)
    """

    MAX_JOBS = len(Third)

    def __init__(
        self,
        catalog: RegionCatalog,
        max_workers: int = MAX_JOBS,
        job_timeout: Optional[float] = None,
        analyzer: Analyzer = region_luma,
    ):
        self.catalog = catalog
        self.job_timeout = job_timeout
        self._analyzer = analyzer
        self._pool = ThreadPoolExecutor(
            max_workers=max(1, min(max_workers, self.MAX_JOBS)),
            thread_name_prefix="backhand-luma",
        )

    def forward(self, frame: np.ndarray, offset: int = 0, average: bool = False) -> LumaResult:
        """Contiguous regions in catalog order; see `forward_thirds`."""
        return self._run(frame, forward_thirds(offset), average)

    def backward(self, frame: np.ndarray, offset: int, average: bool = False) -> LumaResult:
        """Contiguous regions in reverse catalog order; see `backward_thirds`.

        The average divides by the number of regions actually evaluated.
        """
        return self._run(frame, backward_thirds(offset), average)

    def compute(self, frame: np.ndarray, *thirds: Third) -> LumaResult:
        """Explicit set of regions, never reduced to an average."""
        if not thirds:
            raise ValueError("at least one region is required")
        return self._run(frame, [Third(t) for t in thirds], average=False)

    def _run(self, frame: np.ndarray, thirds: Iterable[Third], average: bool) -> LumaResult:
        jobs: dict[Third, Future] = {}
        for third in thirds:
            jobs[third] = self._pool.submit(self._analyzer, frame, self.catalog[third])

        _done, pending = wait(jobs.values(), timeout=self.job_timeout)

        result = LumaResult()
        for third, job in jobs.items():
            if job in pending:
                job.cancel()
                self._fail(result, third, f"timed out after {self.job_timeout}s")
                continue
            try:
                result.samples[third] = job.result()
            except Exception as e:
                self._fail(result, third, str(e) or type(e).__name__, e)

        if average and result.samples:
            result.average = sum(result.samples.values()) / len(result.samples)

        return result

    def _fail(
        self,
        result: LumaResult,
        third: Third,
        reason: str,
        cause: Optional[BaseException] = None,
    ):
        failure = AnalysisJobFailure(third.name, reason, cause)
        result.failures[third] = failure
        logger.warning("Region job failed: %s", failure)

    def close(self):
        """Shut down the worker pool."""
        self._pool.shutdown(wait=False, cancel_futures=True)

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
