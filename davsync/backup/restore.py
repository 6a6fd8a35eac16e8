"""
Restore workflow for remote backups.

A restore is a small state machine driven per backup filename:

    IDLE -> CHECKING_CONFLICTS -> NO_CONFLICTS -> RESTORING -> COMPLETED
                               -> CONFLICTS_FOUND -> AWAITING_STRATEGY_CHOICE
                                    -> RESTORING -> COMPLETED | FAILED
                                    -> CANCELLED
    (CHECKING_CONFLICTS and RESTORING may also end in FAILED)

When the gateway reports no conflicts the backup is restored at once with
the merge strategy (local wins). When it reports conflicts the workflow
suspends until the operator picks a strategy or cancels. Every state change
is published to subscribers as a RestoreEvent so presentation code never has
to be called from inside the workflow.

Only one session may be active per workflow; starting another one while a
session is not yet terminal raises RestoreInProgressError.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from davsync.api.gateway import GatewayError, RemoteBackupGateway, ReportedFailure
from davsync.backup.conflict import (
    DEFAULT_CONFLICT_FAILURE_MESSAGE,
    DEFAULT_STRATEGY,
    RestoreStrategy,
    parse_strategy,
)
from davsync.utils.validation import require_text

logger = logging.getLogger(__name__)

DEFAULT_RESTORE_FAILURE_MESSAGE = "Restore failed"


class RestoreState(Enum):
    """States of a restore session."""

    IDLE = "idle"
    CHECKING_CONFLICTS = "checking_conflicts"
    NO_CONFLICTS = "no_conflicts"
    CONFLICTS_FOUND = "conflicts_found"
    AWAITING_STRATEGY_CHOICE = "awaiting_strategy_choice"
    RESTORING = "restoring"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset(
    {RestoreState.COMPLETED, RestoreState.FAILED, RestoreState.CANCELLED}
)

# Allowed transitions; anything else is a programming error
_TRANSITIONS: dict[RestoreState, frozenset[RestoreState]] = {
    RestoreState.IDLE: frozenset({RestoreState.CHECKING_CONFLICTS}),
    RestoreState.CHECKING_CONFLICTS: frozenset(
        {RestoreState.NO_CONFLICTS, RestoreState.CONFLICTS_FOUND, RestoreState.FAILED}
    ),
    RestoreState.NO_CONFLICTS: frozenset({RestoreState.RESTORING}),
    RestoreState.CONFLICTS_FOUND: frozenset({RestoreState.AWAITING_STRATEGY_CHOICE}),
    RestoreState.AWAITING_STRATEGY_CHOICE: frozenset(
        {RestoreState.RESTORING, RestoreState.CANCELLED}
    ),
    RestoreState.RESTORING: frozenset({RestoreState.COMPLETED, RestoreState.FAILED}),
}


class FailureKind(Enum):
    """Why a session ended in FAILED."""

    GATEWAY = "gateway"  # transport failure, gateway unreachable or garbled
    REPORTED = "reported"  # gateway answered with success=false / error status
    UNEXPECTED = "unexpected"  # any other exception


class RestoreError(Exception):
    """Base exception for restore workflow misuse."""

    pass


class RestoreInProgressError(RestoreError):
    """Raised when a restore is started while another one is still active."""

    pass


class InvalidStateError(RestoreError):
    """Raised when an operation does not fit the current session state."""

    pass


@dataclass
class RestoreSession:
    """
    One restore attempt for one backup.

    Attributes:
        filename: Backup being restored
        state: Current state
        conflicts: Conflict records reported by the gateway (opaque)
        strategy: Strategy used for the restore call, once chosen
        message: Latest human-readable outcome or failure message
        failure_kind: Set when the session ended in FAILED
        history: Every state the session has been in, in order
    """

    filename: str
    state: RestoreState = RestoreState.IDLE
    conflicts: list[Any] = field(default_factory=list)
    strategy: RestoreStrategy | None = None
    message: str | None = None
    failure_kind: FailureKind | None = None
    history: list[RestoreState] = field(
        default_factory=lambda: [RestoreState.IDLE]
    )

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    @property
    def awaiting_choice(self) -> bool:
        return self.state is RestoreState.AWAITING_STRATEGY_CHOICE

    @property
    def succeeded(self) -> bool:
        return self.state is RestoreState.COMPLETED


@dataclass(frozen=True)
class RestoreEvent:
    """State-change notification published by RestoreWorkflow."""

    session: RestoreSession
    previous: RestoreState
    current: RestoreState


RestoreListener = Callable[[RestoreEvent], None]

# Decides a strategy for a suspended session; None means cancel
StrategyChooser = Callable[[RestoreSession], RestoreStrategy | str | None]


class RestoreWorkflow:
    """
    Drives restore sessions against the gateway.

    Usage:
        workflow = RestoreWorkflow(gateway)
        workflow.subscribe(lambda event: print(event.current.value))

        session = workflow.initiate_restore("backup-20250101-120000.db")
        if session.awaiting_choice:
            show(session.conflicts)
            session = workflow.choose_strategy(RestoreStrategy.PREFER_REMOTE)
            # or: workflow.cancel()
    """

    def __init__(self, gateway: RemoteBackupGateway):
        self.gateway = gateway
        self._session: RestoreSession | None = None
        self._listeners: list[RestoreListener] = []

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    def subscribe(self, listener: RestoreListener) -> RestoreListener:
        """Register a state-change listener; returns it for later unsubscribe."""
        self._listeners.append(listener)
        return listener

    def unsubscribe(self, listener: RestoreListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # -------------------------------------------------------------------------
    # Session access
    # -------------------------------------------------------------------------

    @property
    def active_session(self) -> RestoreSession | None:
        """The session that has not reached a terminal state, if any."""
        if self._session is not None and not self._session.is_terminal:
            return self._session
        return None

    @property
    def last_session(self) -> RestoreSession | None:
        """The most recent session, active or finished."""
        return self._session

    @property
    def state(self) -> RestoreState:
        """Workflow state: IDLE unless a session is in progress."""
        active = self.active_session
        return active.state if active is not None else RestoreState.IDLE

    def clear(self) -> None:
        """Forget a finished session."""
        active = self.active_session
        if active is not None:
            raise RestoreInProgressError(
                f"Restore of {active.filename} is still in progress"
            )
        self._session = None

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def initiate_restore(self, filename: str) -> RestoreSession:
        """
        Start restoring a backup.

        Checks for conflicts first. Without conflicts the restore runs
        immediately with the merge strategy; with conflicts the returned
        session is suspended in AWAITING_STRATEGY_CHOICE.

        Args:
            filename: Backup to restore

        Returns:
            The session, in AWAITING_STRATEGY_CHOICE, COMPLETED or FAILED

        Raises:
            ValidationError: If the filename is empty (no gateway call)
            RestoreInProgressError: If another session is still active
        """
        filename = require_text(filename, "filename")

        active = self.active_session
        if active is not None:
            raise RestoreInProgressError(
                f"Restore of {active.filename} is still in progress "
                f"({active.state.value}); choose a strategy or cancel it first"
            )

        session = RestoreSession(filename=filename)
        self._session = session
        logger.info(f"Starting restore of {filename}")

        self._transition(session, RestoreState.CHECKING_CONFLICTS)
        try:
            report = self.gateway.detect_conflicts(filename)
        except GatewayError as e:
            self._fail(session, FailureKind.GATEWAY, str(e))
            return session
        except ReportedFailure as e:
            self._fail(
                session,
                FailureKind.REPORTED,
                e.message or DEFAULT_CONFLICT_FAILURE_MESSAGE,
            )
            return session
        except Exception as e:
            self._fail(session, FailureKind.UNEXPECTED, f"Conflict check failed: {e}")
            raise

        if not report.success:
            self._fail(
                session,
                FailureKind.REPORTED,
                report.message or DEFAULT_CONFLICT_FAILURE_MESSAGE,
            )
            return session

        if not report.conflicts:
            self._transition(session, RestoreState.NO_CONFLICTS)
            return self._restore(session, DEFAULT_STRATEGY)

        session.conflicts = list(report.conflicts)
        session.message = f"{len(session.conflicts)} conflict(s) detected"
        logger.warning(
            f"Restore of {filename} paused: {len(session.conflicts)} conflict(s)"
        )
        self._transition(session, RestoreState.CONFLICTS_FOUND)
        self._transition(session, RestoreState.AWAITING_STRATEGY_CHOICE)
        return session

    def choose_strategy(self, strategy: RestoreStrategy | str) -> RestoreSession:
        """
        Resume a suspended session with the operator's strategy.

        Raises:
            InvalidStateError: If no session is awaiting a choice
            ValidationError: If the strategy is unknown
        """
        session = self._awaiting_session("choose a strategy")
        return self._restore(session, parse_strategy(strategy))

    def cancel(self) -> RestoreSession:
        """
        Abandon a suspended session without contacting the gateway.

        Raises:
            InvalidStateError: If no session is awaiting a choice
        """
        session = self._awaiting_session("cancel")
        session.message = "Restore cancelled"
        logger.info(f"Restore of {session.filename} cancelled")
        self._transition(session, RestoreState.CANCELLED)
        return session

    def run(self, filename: str, chooser: StrategyChooser) -> RestoreSession:
        """
        Run a complete restore, asking ``chooser`` only if conflicts exist.

        ``chooser`` receives the suspended session and returns a strategy,
        or None to cancel.
        """
        session = self.initiate_restore(filename)
        if not session.awaiting_choice:
            return session

        decision = chooser(session)
        if decision is None:
            return self.cancel()
        return self.choose_strategy(decision)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _awaiting_session(self, action: str) -> RestoreSession:
        session = self.active_session
        if session is None or not session.awaiting_choice:
            current = session.state.value if session else RestoreState.IDLE.value
            raise InvalidStateError(
                f"Cannot {action}: no restore is awaiting a strategy (state: {current})"
            )
        return session

    def _restore(
        self, session: RestoreSession, strategy: RestoreStrategy
    ) -> RestoreSession:
        session.strategy = strategy
        self._transition(session, RestoreState.RESTORING)
        logger.info(f"Restoring {session.filename} (strategy: {strategy.value})")

        try:
            message = self.gateway.restore(session.filename, strategy.value)
        except GatewayError as e:
            self._fail(session, FailureKind.GATEWAY, str(e))
            return session
        except ReportedFailure as e:
            self._fail(
                session,
                FailureKind.REPORTED,
                e.message or DEFAULT_RESTORE_FAILURE_MESSAGE,
            )
            return session
        except Exception as e:
            self._fail(session, FailureKind.UNEXPECTED, f"Restore failed: {e}")
            raise

        session.message = message
        self._transition(session, RestoreState.COMPLETED)
        logger.info(f"Restore of {session.filename} completed")
        return session

    def _fail(self, session: RestoreSession, kind: FailureKind, message: str) -> None:
        session.failure_kind = kind
        session.message = message or DEFAULT_RESTORE_FAILURE_MESSAGE
        if kind is FailureKind.REPORTED:
            logger.warning(f"Restore of {session.filename} failed: {session.message}")
        else:
            logger.error(f"Restore of {session.filename} failed: {session.message}")
        self._transition(session, RestoreState.FAILED)

    def _transition(self, session: RestoreSession, new_state: RestoreState) -> None:
        allowed = _TRANSITIONS.get(session.state, frozenset())
        if new_state not in allowed:
            raise InvalidStateError(
                f"Invalid restore transition {session.state.value} -> {new_state.value}"
            )

        previous = session.state
        session.state = new_state
        session.history.append(new_state)
        logger.debug(f"{session.filename}: {previous.value} -> {new_state.value}")

        event = RestoreEvent(session=session, previous=previous, current=new_state)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(f"Restore listener {listener!r} failed")

    def __repr__(self) -> str:
        """Return a readable string representation."""
        return f"RestoreWorkflow(state={self.state.value})"
