"""Session state machine for the panel lifecycle."""

import logging
from enum import Enum, auto
from typing import Callable

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """
    Panel session lifecycle states.

    State transitions:
        UNINITIALIZED -> INITIALIZING -> READY -> TEARING_DOWN -> CLOSED
              \\               \\                   /
               ----------------> TEARING_DOWN <-

    The host may tear the panel down before the handshake finishes, so
    TEARING_DOWN is reachable from every non-terminal state.
    """

    UNINITIALIZED = auto()
    INITIALIZING = auto()
    READY = auto()
    TEARING_DOWN = auto()
    CLOSED = auto()

    def __str__(self) -> str:
        return self.name


class InvalidStateTransition(Exception):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_state: SessionState, to_state: SessionState):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Invalid state transition: {from_state.name} -> {to_state.name}"
        )


StateTransitionCallback = Callable[[SessionState, SessionState], None]


class SessionStateMachine:
    """
    Owns the session state.

    Enforces valid transitions and notifies listeners when they occur.
    """

    VALID_TRANSITIONS: dict[SessionState, list[SessionState]] = {
        SessionState.UNINITIALIZED: [
            SessionState.INITIALIZING,
            SessionState.TEARING_DOWN,
        ],
        SessionState.INITIALIZING: [
            SessionState.READY,
            SessionState.TEARING_DOWN,
        ],
        SessionState.READY: [SessionState.TEARING_DOWN],
        SessionState.TEARING_DOWN: [SessionState.CLOSED],
        SessionState.CLOSED: [],  # Terminal state
    }

    def __init__(self, initial_state: SessionState = SessionState.UNINITIALIZED):
        self._state = initial_state
        self._listeners: list[StateTransitionCallback] = []

    @property
    def state(self) -> SessionState:
        """Current session state."""
        return self._state

    @property
    def is_ready(self) -> bool:
        """Check if the handshake has completed and tool calls are allowed."""
        return self._state == SessionState.READY

    @property
    def accepts_notifications(self) -> bool:
        """Check if host notifications should be processed."""
        return self._state in (SessionState.READY, SessionState.TEARING_DOWN)

    @property
    def is_closed(self) -> bool:
        return self._state == SessionState.CLOSED

    def can_transition_to(self, new_state: SessionState) -> bool:
        """Check if transition to new_state is valid."""
        return new_state in self.VALID_TRANSITIONS.get(self._state, [])

    def transition(self, new_state: SessionState) -> None:
        """
        Transition to a new state.

        Args:
            new_state: The target state.

        Raises:
            InvalidStateTransition: If the transition is not valid.
        """
        if not self.can_transition_to(new_state):
            raise InvalidStateTransition(self._state, new_state)

        old_state = self._state
        self._state = new_state
        logger.debug(f"Session state: {old_state} -> {new_state}")

        for listener in self._listeners:
            try:
                listener(old_state, new_state)
            except Exception:
                logger.exception("State listener error")

    def on_transition(self, callback: StateTransitionCallback) -> None:
        """
        Register a callback for state transitions.

        Args:
            callback: Function called with (old_state, new_state) on transitions.
        """
        self._listeners.append(callback)

    def remove_listener(self, callback: StateTransitionCallback) -> None:
        try:
            self._listeners.remove(callback)
        except ValueError:
            pass

    def __str__(self) -> str:
        return f"SessionStateMachine({self._state.name})"

    def __repr__(self) -> str:
        return f"SessionStateMachine(state={self._state!r})"
