"""Bounded-concurrency driver for the convergence workers."""

import queue
import threading
import time
import uuid
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import UTC, datetime

import structlog

from bggtop.config.constants import COMPONENT_ORCHESTRATOR
from bggtop.config.schemas import AppConfig
from bggtop.stabilizer.errors import StabilizationFailedError
from bggtop.stabilizer.events import (
    Fatal,
    Interrupted,
    NoteError,
    NoteGameProgress,
    NoteUserResolved,
    ProgressEvent,
    Stable,
    WorkerEvent,
)
from bggtop.stabilizer.protocols import SourceFactory, StoreFactory
from bggtop.stabilizer.worker import GameConvergenceWorker
from bggtop.store.models import Game


logger = structlog.get_logger()

ProgressCallback = Callable[[ProgressEvent], None]


@dataclass
class StabilizationResult:
    """Outcome of one balancing run."""

    run_id: str
    started_at: datetime
    finished_at: datetime
    jobs: int = 0
    terminal_count: int = 0
    stable_games: list[Game] = field(default_factory=list)
    interrupted: int = 0
    failure: StabilizationFailedError | None = None

    @property
    def success(self) -> bool:
        """Check that no worker failed."""
        return self.failure is None

    @property
    def stable_count(self) -> int:
        """Games marked stable during this run."""
        return len(self.stable_games)

    @property
    def duration_ms(self) -> float:
        """Get total duration in milliseconds."""
        return (self.finished_at - self.started_at).total_seconds() * 1000


class StabilizationOrchestrator:
    """Runs one worker per unstable game on a fixed thread pool.

    Workers report through a single queue drained on the calling thread, so
    the progress callback is never invoked concurrently. The first fatal
    error sets the shared cancellation event; the orchestrator then keeps
    draining until every submitted worker has sent its terminal event.
    """

    def __init__(  # noqa: PLR0913
        self,
        config: AppConfig,
        store_factory: StoreFactory,
        source_factory: SourceFactory,
        cancel_event: threading.Event | None = None,
        run_id: str | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            config: Run configuration.
            store_factory: Opens a new store connection.
            source_factory: Opens a new rating source.
            cancel_event: Shared cancellation flag (created if omitted).
            run_id: Run identifier (generated if omitted).
            sleep: Backoff sleep function handed to workers.
        """
        self._config = config
        self._store_factory = store_factory
        self._source_factory = source_factory
        self._cancel = cancel_event if cancel_event is not None else threading.Event()
        self._run_id = run_id or str(uuid.uuid4())
        self._sleep = sleep
        self._log = logger.bind(component=COMPONENT_ORCHESTRATOR, run_id=self._run_id)

    @property
    def cancel_event(self) -> threading.Event:
        """The shared cancellation flag."""
        return self._cancel

    def run(self, progress: ProgressCallback | None = None) -> StabilizationResult:
        """Balance every unstable game.

        Args:
            progress: Receives note events and ``Stable`` events.

        Returns:
            StabilizationResult; ``failure`` holds the first fatal error.

        Raises:
            StateStoreError: If the unstable games cannot be loaded.
        """
        started_at = datetime.now(UTC)
        with self._store_factory() as store:
            games = store.get_unstable_games()

        result = StabilizationResult(
            run_id=self._run_id,
            started_at=started_at,
            finished_at=started_at,
            jobs=len(games),
        )
        self._log.info(
            "stabilization_started",
            jobs=len(games),
            threads=self._config.threads,
        )

        if games:
            self._drain(games, result, progress)

        result.finished_at = datetime.now(UTC)
        self._log.info(
            "stabilization_finished",
            jobs=result.jobs,
            stable=result.stable_count,
            interrupted=result.interrupted,
            failed=not result.success,
            duration_ms=round(result.duration_ms, 2),
        )
        return result

    def _drain(
        self,
        games: list[Game],
        result: StabilizationResult,
        progress: ProgressCallback | None,
    ) -> None:
        events: queue.Queue[WorkerEvent] = queue.Queue()
        executor = ThreadPoolExecutor(
            max_workers=self._config.threads,
            thread_name_prefix="bggtop-worker",
        )
        try:
            for game in games:
                worker = GameConvergenceWorker(
                    game=game,
                    config=self._config,
                    cancel_event=self._cancel,
                    emit=events.put,
                    store_factory=self._store_factory,
                    source_factory=self._source_factory,
                    run_id=self._run_id,
                    sleep=self._sleep,
                )
                executor.submit(worker.run)

            while result.terminal_count < result.jobs:
                self._dispatch(events.get(), result, progress)
        except BaseException:
            self._cancel.set()
            raise
        finally:
            executor.shutdown(wait=True)

    def _dispatch(
        self,
        event: WorkerEvent,
        result: StabilizationResult,
        progress: ProgressCallback | None,
    ) -> None:
        if isinstance(event, NoteError | NoteUserResolved | NoteGameProgress):
            if progress is not None:
                progress(event)
        elif isinstance(event, Stable):
            result.terminal_count += 1
            result.stable_games.append(event.game)
            if progress is not None:
                progress(event)
        elif isinstance(event, Fatal):
            result.terminal_count += 1
            if result.failure is None:
                result.failure = StabilizationFailedError(event.game_id, event.error)
                self._cancel.set()
                self._log.error("stabilization_cancelled", **result.failure.to_dict())
            else:
                self._log.warning(
                    "additional_worker_failure",
                    game_id=event.game_id,
                    error=str(event.error),
                )
        elif isinstance(event, Interrupted):
            result.terminal_count += 1
            result.interrupted += 1
        else:
            msg = f"Unknown worker event: {event!r}"
            raise TypeError(msg)


def stabilize(  # noqa: PLR0913
    config: AppConfig,
    cancel_event: threading.Event,
    progress: ProgressCallback | None = None,
    *,
    store_factory: StoreFactory,
    source_factory: SourceFactory,
    run_id: str | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> StabilizationResult:
    """Balance every unstable game, failing on the first fatal error.

    Args:
        config: Run configuration.
        cancel_event: Shared cancellation flag; setting it stops the run
            after each worker's current iteration.
        progress: Receives note events and ``Stable`` events.
        store_factory: Opens a new store connection.
        source_factory: Opens a new rating source.
        run_id: Run identifier (generated if omitted).
        sleep: Backoff sleep function handed to workers.

    Returns:
        StabilizationResult when no worker failed (including interrupted
        runs).

    Raises:
        StabilizationFailedError: Carrying the first fatal error.
        StateStoreError: If the unstable games cannot be loaded.
    """
    orchestrator = StabilizationOrchestrator(
        config,
        store_factory,
        source_factory,
        cancel_event=cancel_event,
        run_id=run_id,
        sleep=sleep,
    )
    result = orchestrator.run(progress)
    if result.failure is not None:
        raise result.failure
    return result
