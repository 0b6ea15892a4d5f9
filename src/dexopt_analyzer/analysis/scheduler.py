"""
Module: analysis.scheduler

Purpose:
    Fan label resolution out over a bounded worker pool and fan the results
    back in by package name. Every submitted package gets exactly one label,
    including packages whose task crashed.

Key Classes:
    - ParallelResolutionScheduler: Pool management and result collection

Dependencies:
    - concurrent.futures (std): Process or thread pool
    - apk.labels: LabelResolver (the per-task work)
    - utils.logging_utils: Worker log forwarding

Used By:
    - analysis.pipeline: Label resolution stage
"""

from __future__ import annotations

import logging
import multiprocessing
import threading
import time
from concurrent.futures import Executor, Future, ProcessPoolExecutor, ThreadPoolExecutor, as_completed
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from dexopt_analyzer.apk.labels import LabelResolver
from dexopt_analyzer.core.models import PackageIdentity, ResolvedLabel
from dexopt_analyzer.utils.logging_utils import configure_worker_logging, start_log_listener

from .config import EXECUTOR_KINDS, EXECUTOR_PROCESS, EXECUTOR_THREAD, default_worker_count
from .timing import TimingLog

logger = logging.getLogger(__name__)

# (completed, total, package)
ProgressCallback = Callable[[int, int, str], None]


def _resolve_timed(resolver: LabelResolver, identity: PackageIdentity) -> Tuple[ResolvedLabel, float]:
    """Worker entry point; module level so process pools can pickle it."""
    start = time.perf_counter()
    label = resolver.resolve(identity)
    return label, time.perf_counter() - start


class ParallelResolutionScheduler:
    """
    Resolves labels for many packages concurrently.

    A single package (or max_workers=1) is resolved inline. Otherwise tasks
    go to a process pool (default) or thread pool; if a process pool cannot
    be created on this host the scheduler falls back to threads.

    Attributes:
        crashed: Package -> error text for tasks that died in the last run()

    Example:
        >>> scheduler = ParallelResolutionScheduler(LabelResolver(host), max_workers=4)
        >>> labels = scheduler.run(identities)
        >>> labels["com.example.app"].text
        'Example App'
    """

    def __init__(
        self,
        resolver: LabelResolver,
        *,
        max_workers: Optional[int] = None,
        executor: str = EXECUTOR_PROCESS,
        timing: Optional[TimingLog] = None,
        progress: Optional[ProgressCallback] = None,
    ):
        if executor not in EXECUTOR_KINDS:
            raise ValueError(f"executor must be one of {', '.join(EXECUTOR_KINDS)}, got {executor!r}")
        if max_workers is not None and max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self.resolver = resolver
        self.max_workers = max_workers or default_worker_count()
        self.executor_kind = executor
        self.timing = timing
        self.progress = progress
        self.crashed: Dict[str, str] = {}

    def run(self, identities: Sequence[PackageIdentity]) -> Dict[str, ResolvedLabel]:
        """
        Resolve a label for every identity.

        Returns:
            Package name -> ResolvedLabel, with exactly one entry per
            distinct package name
        """
        self.crashed = {}
        unique: List[PackageIdentity] = []
        seen = set()
        for identity in identities:
            if identity.name not in seen:
                seen.add(identity.name)
                unique.append(identity)
        if not unique:
            return {}

        workers = min(self.max_workers, len(unique))
        if workers == 1:
            return self._run_inline(unique)
        if self.executor_kind == EXECUTOR_THREAD:
            return self._run_threads(unique, workers)
        return self._run_processes(unique, workers)

    # ─────────────────────────────────────────────────────────────────────────
    # Execution strategies
    # ─────────────────────────────────────────────────────────────────────────

    def _run_inline(self, identities: List[PackageIdentity]) -> Dict[str, ResolvedLabel]:
        logger.debug(f"Resolving {len(identities)} labels inline")
        results: Dict[str, ResolvedLabel] = {}
        for identity in identities:
            try:
                label, elapsed = _resolve_timed(self.resolver, identity)
            except Exception as e:
                label, elapsed = self._crash_label(identity.name, e), 0.0
            self._collect(results, identity.name, label, elapsed, len(identities))
        return results

    def _run_threads(self, identities: List[PackageIdentity], workers: int) -> Dict[str, ResolvedLabel]:
        logger.info(f"Resolving {len(identities)} labels with {workers} threads")
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="label") as executor:
            return self._fan_in(executor, identities)

    def _run_processes(self, identities: List[PackageIdentity], workers: int) -> Dict[str, ResolvedLabel]:
        try:
            mp_log_queue = multiprocessing.Queue()
            executor = ProcessPoolExecutor(
                max_workers=workers,
                initializer=configure_worker_logging,
                initargs=(mp_log_queue, logging.getLogger().getEffectiveLevel()),
            )
        except (OSError, ImportError, NotImplementedError) as e:
            # e.g. no POSIX semaphores on the device's Python build
            logger.warning(f"Process pool unavailable ({e}); using threads")
            return self._run_threads(identities, workers)

        logger.info(f"Resolving {len(identities)} labels with {workers} processes")
        stop_event = threading.Event()
        listener = start_log_listener(mp_log_queue, stop_event)
        try:
            with executor:
                return self._fan_in(executor, identities)
        finally:
            stop_event.set()
            listener.join()
            mp_log_queue.close()

    def _fan_in(self, executor: Executor, identities: List[PackageIdentity]) -> Dict[str, ResolvedLabel]:
        results: Dict[str, ResolvedLabel] = {}
        future_to_identity: Dict[Future, PackageIdentity] = {
            executor.submit(_resolve_timed, self.resolver, identity): identity
            for identity in identities
        }
        for future in as_completed(future_to_identity):
            identity = future_to_identity[future]
            try:
                label, elapsed = future.result()
            except Exception as e:
                label, elapsed = self._crash_label(identity.name, e), 0.0
            self._collect(results, identity.name, label, elapsed, len(identities))
        return results

    # ─────────────────────────────────────────────────────────────────────────
    # Collection
    # ─────────────────────────────────────────────────────────────────────────

    def _crash_label(self, package: str, error: BaseException) -> ResolvedLabel:
        reason = f"resolution task failed: {type(error).__name__}: {error}"
        logger.warning(f"{package}: {reason}")
        self.crashed[package] = reason
        return ResolvedLabel.fallback(package, reason)

    def _collect(
        self,
        results: Dict[str, ResolvedLabel],
        package: str,
        label: ResolvedLabel,
        elapsed: float,
        total: int,
    ) -> None:
        results[package] = label
        if self.timing is not None:
            self.timing.log_package(package, elapsed)
        if self.progress is not None:
            self.progress(len(results), total, package)
