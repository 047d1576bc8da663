"""State machine for one game's convergence loop."""

from enum import Enum

import structlog

from bggtop.config.constants import COMPONENT_WORKER


logger = structlog.get_logger()


class WorkerState(str, Enum):
    """State of a game worker.

    - PENDING: Created, first iteration not started
    - FETCHING: Waiting out the backoff delay and requesting a rater page
    - RESOLVING: Looking up trust for the raters on the page
    - FOLDING: Adding trusted ratings to the running average
    - PERSISTING: Writing the new page, rating and vote count
    - STABLE: No more pages; game marked stable
    - FATAL: Stopped on a store error or exhausted backoff
    - INTERRUPTED: Stopped on cancellation
    """

    PENDING = "PENDING"
    FETCHING = "FETCHING"
    RESOLVING = "RESOLVING"
    FOLDING = "FOLDING"
    PERSISTING = "PERSISTING"
    STABLE = "STABLE"
    FATAL = "FATAL"
    INTERRUPTED = "INTERRUPTED"


TERMINAL_STATES = frozenset(
    {WorkerState.STABLE, WorkerState.FATAL, WorkerState.INTERRUPTED}
)

# Valid state transitions
_VALID_TRANSITIONS: dict[WorkerState, set[WorkerState]] = {
    WorkerState.PENDING: {
        WorkerState.FETCHING,
        WorkerState.FATAL,
        WorkerState.INTERRUPTED,
    },
    # Re-entering FETCHING retries the same page after a fetch failure
    WorkerState.FETCHING: {
        WorkerState.FETCHING,
        WorkerState.RESOLVING,
        WorkerState.PERSISTING,
        WorkerState.FATAL,
        WorkerState.INTERRUPTED,
    },
    # Back to FETCHING when a rater lookup failed; nothing was committed
    WorkerState.RESOLVING: {
        WorkerState.FETCHING,
        WorkerState.FOLDING,
        WorkerState.FATAL,
        WorkerState.INTERRUPTED,
    },
    WorkerState.FOLDING: {WorkerState.PERSISTING, WorkerState.FATAL},
    WorkerState.PERSISTING: {
        WorkerState.FETCHING,
        WorkerState.STABLE,
        WorkerState.FATAL,
        WorkerState.INTERRUPTED,
    },
    WorkerState.STABLE: set(),
    WorkerState.FATAL: set(),
    WorkerState.INTERRUPTED: set(),
}


class WorkerStateTransitionError(Exception):
    """Raised when an illegal state transition is attempted."""

    def __init__(
        self,
        game_id: int,
        from_state: WorkerState,
        to_state: WorkerState,
    ) -> None:
        """Initialize the transition error.

        Args:
            game_id: Game owned by the worker.
            from_state: Current state.
            to_state: Attempted target state.
        """
        self.game_id = game_id
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Illegal state transition for game {game_id}: "
            f"{from_state.value} -> {to_state.value}"
        )


class WorkerStateMachine:
    """Tracks and validates a worker's state.

    Transitions are logged at debug level since a worker goes through
    several per page.
    """

    def __init__(
        self,
        game_id: int,
        run_id: str = "",
        initial_state: WorkerState = WorkerState.PENDING,
    ) -> None:
        """Initialize the state machine.

        Args:
            game_id: Game owned by the worker.
            run_id: Identifier for the current run.
            initial_state: Starting state.
        """
        self._game_id = game_id
        self._state = initial_state
        self._log = logger.bind(
            component=COMPONENT_WORKER,
            run_id=run_id,
            game_id=game_id,
        )

    @property
    def state(self) -> WorkerState:
        """Get the current state."""
        return self._state

    @property
    def is_terminal(self) -> bool:
        """Check if current state is terminal."""
        return self._state in TERMINAL_STATES

    def can_transition_to(self, target: WorkerState) -> bool:
        """Check if a transition to the target state is valid."""
        return target in _VALID_TRANSITIONS.get(self._state, set())

    def transition_to(self, target: WorkerState) -> None:
        """Transition to a new state.

        Args:
            target: The target state.

        Raises:
            WorkerStateTransitionError: If the transition is invalid.
        """
        if not self.can_transition_to(target):
            self._log.error(
                "illegal_state_transition",
                from_state=self._state.value,
                to_state=target.value,
            )
            raise WorkerStateTransitionError(self._game_id, self._state, target)

        old_state = self._state
        self._state = target
        self._log.debug(
            "state_transition",
            from_state=old_state.value,
            to_state=target.value,
        )
