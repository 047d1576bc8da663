"""Per-game convergence loop."""

import threading
import time
from collections.abc import Callable

import structlog

from bggtop.config.constants import COMPONENT_WORKER
from bggtop.config.schemas import AppConfig
from bggtop.fetch.models import SourceFetchError
from bggtop.stabilizer.average import RunningAverage
from bggtop.stabilizer.backoff import BackoffToken
from bggtop.stabilizer.errors import BackoffExhaustedError
from bggtop.stabilizer.events import (
    Fatal,
    Interrupted,
    NoteError,
    NoteGameProgress,
    NoteUserResolved,
    Stable,
    TerminalEvent,
    WorkerEvent,
)
from bggtop.stabilizer.protocols import SourceFactory, StoreFactory
from bggtop.stabilizer.state_machine import WorkerState, WorkerStateMachine
from bggtop.stabilizer.trust import UserTrustResolver
from bggtop.store.errors import StateStoreError
from bggtop.store.models import Game


logger = structlog.get_logger()


class GameConvergenceWorker:
    """Walks one game's rater pages until none are left.

    Each iteration fetches the game's next page, resolves the trust of its
    raters, folds the trusted ratings into the stored average and persists
    the advanced page. A page is committed whole or not at all, so a run
    interrupted at any point resumes from the last persisted page.

    Remote failures harden the worker's backoff token and retry the same
    page; successes ease it. Store failures and an exhausted token stop the
    worker. Cancellation is honored between iterations only.
    """

    def __init__(  # noqa: PLR0913
        self,
        game: Game,
        config: AppConfig,
        cancel_event: threading.Event,
        emit: Callable[[WorkerEvent], None],
        store_factory: StoreFactory,
        source_factory: SourceFactory,
        run_id: str = "",
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the worker.

        Args:
            game: Snapshot of the game to balance.
            config: Run configuration.
            cancel_event: Shared cancellation flag.
            emit: Sink for worker events.
            store_factory: Opens this worker's own store connection.
            source_factory: Opens this worker's own rating source.
            run_id: Run identifier for logging.
            sleep: Backoff sleep function.
        """
        self._game = game
        self._config = config
        self._cancel = cancel_event
        self._emit = emit
        self._store_factory = store_factory
        self._source_factory = source_factory
        self._run_id = run_id
        self._sleep = sleep
        self._token = BackoffToken(config.attempts, config.delay_ms)
        self._machine = WorkerStateMachine(game.id, run_id)
        self._log = logger.bind(
            component=COMPONENT_WORKER,
            run_id=run_id,
            game_id=game.id,
        )

    @property
    def state(self) -> WorkerState:
        """Current worker state."""
        return self._machine.state

    @property
    def token(self) -> BackoffToken:
        """The worker's backoff token."""
        return self._token

    def run(self) -> TerminalEvent:
        """Balance the game and emit exactly one terminal event.

        Returns:
            The terminal event that was emitted.
        """
        try:
            terminal = self._converge()
        except StateStoreError as e:
            self._log.error("worker_fatal", error=str(e), error_type=type(e).__name__)
            terminal = self._fatal(e)
        except Exception as e:  # noqa: BLE001
            self._log.exception("worker_crashed", error=str(e))
            terminal = self._fatal(e)

        self._emit(terminal)
        return terminal

    def _fatal(self, error: BaseException) -> Fatal:
        if not self._machine.is_terminal:
            self._machine.transition_to(WorkerState.FATAL)
        return Fatal(game_id=self._game.id, error=error)

    def _absorb(self, error: SourceFetchError, game: Game) -> None:
        """Back off after a remote failure and report it."""
        self._token.harden()
        self._log.warning(
            "page_attempt_failed",
            page=game.page,
            attempt=self._token.attempt,
            **error.to_dict(),
        )
        self._emit(NoteError(game_id=game.id, error=error))

    def _on_new_rater(self, rater_id: str, trusted: bool) -> None:
        self._token.ease()
        self._emit(
            NoteUserResolved(game_id=self._game.id, rater_id=rater_id, trusted=trusted)
        )

    def _converge(self) -> TerminalEvent:
        game = self._game
        with self._store_factory() as store, self._source_factory() as source:
            resolver = UserTrustResolver(
                store,
                source,
                self._config.trust_lower_bound,
                self._config.trust_upper_bound,
                on_new_rater=self._on_new_rater,
                run_id=self._run_id,
            )

            while True:
                if self._cancel.is_set():
                    self._machine.transition_to(WorkerState.INTERRUPTED)
                    self._log.info("worker_interrupted", page=game.page)
                    return Interrupted(game_id=game.id)

                if self._token.is_stopped:
                    error = BackoffExhaustedError(game.id, self._token.attempt)
                    self._log.error("worker_fatal", page=game.page, error=str(error))
                    return self._fatal(error)

                self._machine.transition_to(WorkerState.FETCHING)
                self._sleep(self._token.delay_seconds)
                try:
                    ratings = source.fetch_rater_page(game.id, game.page)
                except SourceFetchError as e:
                    self._absorb(e, game)
                    continue
                self._token.ease()
                self._log.debug("page_fetched", page=game.page, ratings=len(ratings))

                if not ratings:
                    self._machine.transition_to(WorkerState.PERSISTING)
                    game = game.model_copy(update={"page": game.page + 1, "stable": True})
                    store.update_game(game, stable=True)
                    self._machine.transition_to(WorkerState.STABLE)
                    self._log.info(
                        "game_stable",
                        name=game.name,
                        rating=round(game.rating, 4),
                        votes=game.votes,
                    )
                    return Stable(game=game)

                self._machine.transition_to(WorkerState.RESOLVING)
                try:
                    flags = resolver.resolve_page(ratings)
                except SourceFetchError as e:
                    self._absorb(e, game)
                    continue

                self._machine.transition_to(WorkerState.FOLDING)
                average = RunningAverage(game.votes, game.rating)
                average.add_all(r.rating for r in ratings if flags[r.rater_id])

                self._machine.transition_to(WorkerState.PERSISTING)
                game = game.model_copy(
                    update={
                        "page": game.page + 1,
                        "rating": average.mean,
                        "votes": average.count,
                    }
                )
                store.update_game(game, stable=False)
                self._emit(NoteGameProgress(game=game))
