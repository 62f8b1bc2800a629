"""
Automation run service with thread-per-run architecture.

Runs the day's orders in a background thread so the web process can answer
requests while the browser works through the restaurants.

THREAD ISOLATION:
    - Each run thread opens its OWN browser (Playwright sync objects are
      bound to the thread that created them)
    - Only one run at a time: runs share the ordering account and its cart
    - RunResultStore is the ONLY communication channel back to the caller

Flow:
    1. Caller calls service.start_run(dry_run=...)
    2. Run thread reads pending batches from the order source
    3. Run thread opens a browser and runs AutomationRunner over the batches
    4. Run thread stores the RunResult in RunResultStore
    5. Caller polls service.get_result(run_id)

Usage:
    # At app startup
    service = AutomationService(app.config, order_source, users, stats, notifier)

    # Start a run
    run_id = service.start_run(dry_run=True)

    # Polling
    result = service.get_result(run_id)
    if result is None and service.is_run_pending(run_id):
        # Still running

    # At app shutdown
    service.shutdown()
"""

from __future__ import annotations

import threading
import uuid
from collections import OrderedDict
from contextlib import AbstractContextManager
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

from config import AutomationConfig, ordering_credentials
from core.exceptions import RunInProgressError
from core.playwright_surface import open_browser_surface
from core.site_profile import get_profile
from core.surface import AutomationSurface
from logging_config import get_logger, set_thread_name
from models.batch_result import RunResult
from models.order import OrderBatch
from modules.notification import LogNotifier, SlackNotifier
from .runner import AutomationRunner, ResultAggregator
from .stores import JsonMenuCatalog, JsonOrderStore, JsonStatsRecorder, JsonUserDirectory


# Module logger
logger = get_logger(__name__)

SurfaceFactory = Callable[[], AbstractContextManager]

# Finished runs kept for polling
DEFAULT_MAX_RESULTS = 50


class RunResultStore:
    """
    Thread-safe storage for run results.

    Run threads WRITE results here, the caller READS them. Results stay
    until cleared so the run API can be polled more than once; only the
    ``max_results`` most recent runs are kept.
    """

    def __init__(self, max_results: int = DEFAULT_MAX_RESULTS):
        if max_results < 1:
            raise ValueError("max_results must be at least 1")
        self.max_results = max_results
        self._results: "OrderedDict[str, RunResult]" = OrderedDict()
        self._lock = threading.Lock()

    def put_result(self, result: RunResult) -> None:
        with self._lock:
            self._results[result.run_id] = result
            self._results.move_to_end(result.run_id)
            logger.debug(f"Stored result for run {result.run_id[:8]}")

            while len(self._results) > self.max_results:
                dropped, _ = self._results.popitem(last=False)
                logger.debug(f"Dropped result for run {dropped[:8]} (store full)")

    def get_result(self, run_id: str) -> Optional[RunResult]:
        """Return the run's result, or None if it has not finished (or was dropped)."""
        with self._lock:
            return self._results.get(run_id)

    def pop_result(self, run_id: str) -> Optional[RunResult]:
        """Get and remove a run's result."""
        with self._lock:
            return self._results.pop(run_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._results)

    def clear(self) -> int:
        """
        Remove all stored results.

        Returns:
            Number of results removed
        """
        with self._lock:
            count = len(self._results)
            self._results.clear()
            logger.info(f"Cleared {count} run results from store")
            return count


class AutomationService:
    """
    Starts automation runs in background threads and keeps their results.

    Args:
        config: Config class or Flask ``app.config`` mapping
        order_source: Provides the day's batches and stores the callee
        users: User directory
        stats: Stats recorder
        notifier: Notification sink
        surface_factory: Returns a context manager yielding an
            AutomationSurface; defaults to a Playwright browser configured
            from HEADLESS and SURFACE_TIMEOUT_MS
    """

    def __init__(
        self,
        config: Mapping[str, Any],
        order_source,
        users,
        stats=None,
        notifier=None,
        surface_factory: Optional[SurfaceFactory] = None,
    ):
        self._config = config
        self._order_source = order_source
        self._users = users
        self._stats = stats
        self._notifier = notifier
        self._surface_factory = surface_factory or self._browser_factory
        self._site = get_profile(config.get("SITE_PROFILE", "grubhub"))
        self._result_store = RunResultStore(int(config.get("MAX_STORED_RUNS", DEFAULT_MAX_RESULTS)))

        self._active_threads: Dict[str, threading.Thread] = {}
        self._threads_lock = threading.Lock()

        logger.info("AutomationService initialized")

    @property
    def result_store(self) -> RunResultStore:
        return self._result_store

    def _browser_factory(self) -> AbstractContextManager:
        return open_browser_surface(
            headless=bool(self._config.get("HEADLESS", True)),
            timeout_ms=float(self._config.get("SURFACE_TIMEOUT_MS", 30000)),
        )

    def start_run(
        self,
        order_time: Optional[int] = None,
        dry_run: Optional[bool] = None,
        run_id: Optional[str] = None,
    ) -> str:
        """
        Start a run for all pending orders in a background thread.

        Returns immediately with the run ID; poll ``get_result(run_id)``.

        Raises:
            ConfigurationError: If the ordering credentials are missing
            ValueError: If the run settings are invalid
            RunInProgressError: If another run has not finished yet
        """
        credentials = ordering_credentials(self._config)
        automation_config = AutomationConfig.from_config(self._config, order_time=order_time, dry_run=dry_run)
        run_id = run_id or str(uuid.uuid4())

        with self._threads_lock:
            for active_id, active in self._active_threads.items():
                if active.is_alive():
                    raise RunInProgressError(active_id)

            thread = threading.Thread(
                target=self._run_thread_main,
                args=(run_id, automation_config, credentials),
                name=f"Run-{run_id[:8]}",
                daemon=True,
            )
            self._active_threads[run_id] = thread

        logger.info(f"Starting run {run_id[:8]} ({'dry run' if automation_config.dry_run else 'actual'})")
        thread.start()
        return run_id

    def get_result(self, run_id: str) -> Optional[RunResult]:
        return self._result_store.get_result(run_id)

    def is_run_pending(self, run_id: str) -> bool:
        """True while the run's thread is still working."""
        with self._threads_lock:
            thread = self._active_threads.get(run_id)
            return thread is not None and thread.is_alive()

    def shutdown(self, timeout_per_thread: float = 5.0) -> None:
        """
        Wait for active run threads to complete.

        Call this during application shutdown.
        """
        with self._threads_lock:
            active = list(self._active_threads.items())

        if not active:
            logger.info("No active run threads to wait for")
            return

        logger.info(f"Waiting for {len(active)} run thread(s) to complete...")
        for run_id, thread in active:
            if thread.is_alive():
                thread.join(timeout=timeout_per_thread)
                if thread.is_alive():
                    logger.warning(f"Run thread {run_id[:8]} did not complete in time")

        logger.info("Automation service shutdown complete")

    def _run_thread_main(self, run_id: str, automation_config: AutomationConfig, credentials) -> None:
        set_thread_name(f"Run-{run_id[:8]}")
        logger.info("Run thread starting")

        batches: List[OrderBatch] = []
        result: Optional[RunResult] = None
        try:
            batches = self._order_source.get_pending_orders_grouped_by_restaurant()

            with self._surface_factory() as surface:
                result = self.run_on_surface(surface, automation_config, batches, credentials, run_id)

        except Exception as e:
            if result is not None:
                # The run finished and was published; only closing the browser failed
                logger.error(f"Run {run_id[:8]}: browser did not close cleanly: {e}", exc_info=True)
            else:
                result = self._aborted_result(run_id, automation_config, batches, e)

        # Store before untracking so a poller never sees neither
        self._result_store.put_result(result)
        with self._threads_lock:
            self._active_threads.pop(run_id, None)

        logger.info("Run thread exiting")

    def _aborted_result(
        self, run_id: str, automation_config: AutomationConfig, batches: List[OrderBatch], error: Exception
    ) -> RunResult:
        # The runner never raises; this is the browser or the order source
        logger.error(f"Run {run_id[:8]} could not complete: {error}", exc_info=error)
        result = ResultAggregator(run_id, automation_config.dry_run).finish(
            batches, getattr(error, "message", None) or str(error) or type(error).__name__
        )
        if self._notifier is not None:
            try:
                self._notifier.publish(result)
            except Exception as notify_error:
                logger.error(f"Could not publish run summary: {notify_error}")
        return result

    def run_on_surface(
        self,
        surface: AutomationSurface,
        automation_config: AutomationConfig,
        batches: List[OrderBatch],
        credentials=None,
        run_id: Optional[str] = None,
    ) -> RunResult:
        """Run ``batches`` synchronously on an already open surface."""
        runner = AutomationRunner(
            surface,
            automation_config,
            self._users,
            stats=self._stats,
            notifier=self._notifier,
            order_source=self._order_source,
            site=self._site,
            credentials=credentials,
        )
        return runner.run(batches, run_id=run_id)


def create_collaborators(config: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Build the JSON-backed stores and the notification sink from configuration.

    Returns:
        Dict with ``order_source``, ``users``, ``stats``, ``catalog`` and ``notifier``
    """
    data_dir = Path(config.get("DATA_DIR"))
    catalog = JsonMenuCatalog(data_dir / "menus.json")
    users = JsonUserDirectory(data_dir / "users.json")
    base_url = config.get("CONFIRMATION_BASE_URL", "")

    webhook_url = config.get("SLACK_WEBHOOK_URL")
    if webhook_url:
        notifier = SlackNotifier(
            webhook_url,
            channel=config.get("SLACK_CHANNEL"),
            mention=users.mention,
            base_url=base_url,
        )
    else:
        logger.info("SLACK_WEBHOOK_URL not set, run summaries go to the log")
        notifier = LogNotifier(mention=users.mention, base_url=base_url)

    return {
        "order_source": JsonOrderStore(data_dir / "orders.json", catalog),
        "users": users,
        "stats": JsonStatsRecorder(data_dir / "stats.json"),
        "catalog": catalog,
        "notifier": notifier,
    }
