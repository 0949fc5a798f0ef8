"""Automation run state machine.

Tracks a single browser run through its lifecycle and enforces valid
transitions.  Every run ends in exactly one of ``DONE``, ``FAILED`` or
``INTERRUPTED``.
"""

from __future__ import annotations

from notepub.models import ActionPhase, RunState
from notepub.observability import get_logger

log = get_logger("notepub.automation.state")

_TERMINAL: frozenset[RunState] = frozenset({
    RunState.DONE,
    RunState.FAILED,
    RunState.INTERRUPTED,
})


class RunStateMachine:
    """Finite state machine for one automation run.

    Valid transitions::

        IDLE              -> NAVIGATING
        NAVIGATING        -> LOGIN_REQUIRED | FILLING_TITLE
        LOGIN_REQUIRED    -> REAUTHENTICATING
        REAUTHENTICATING  -> NAVIGATING
        FILLING_TITLE     -> EMITTING_BODY
        EMITTING_BODY     -> SAVING_DRAFT
        SAVING_DRAFT      -> DONE
        DONE              -> (terminal)
        FAILED            -> (terminal)
        INTERRUPTED       -> (terminal)

    Any non-terminal state may also move to ``FAILED`` or ``INTERRUPTED``.

    Parameters
    ----------
    run_id:
        Identifier used in log records and error messages.
    """

    VALID_TRANSITIONS: dict[RunState, set[RunState]] = {
        RunState.IDLE: {RunState.NAVIGATING},
        RunState.NAVIGATING: {RunState.LOGIN_REQUIRED, RunState.FILLING_TITLE},
        RunState.LOGIN_REQUIRED: {RunState.REAUTHENTICATING},
        RunState.REAUTHENTICATING: {RunState.NAVIGATING},
        RunState.FILLING_TITLE: {RunState.EMITTING_BODY},
        RunState.EMITTING_BODY: {RunState.SAVING_DRAFT},
        RunState.SAVING_DRAFT: {RunState.DONE},
        RunState.DONE: set(),
        RunState.FAILED: set(),
        RunState.INTERRUPTED: set(),
    }

    def __init__(self, run_id: str = "") -> None:
        self.run_id: str = run_id
        self.state: RunState = RunState.IDLE
        self.phase: ActionPhase | None = None
        self.history: list[RunState] = [RunState.IDLE]

    def transition(self, new_state: RunState) -> None:
        """Move to *new_state*.

        Raises
        ------
        ValueError
            If the transition from the current state is not valid.
        """
        allowed = set(self.VALID_TRANSITIONS.get(self.state, set()))
        if self.state not in _TERMINAL:
            allowed |= {RunState.FAILED, RunState.INTERRUPTED}

        if new_state not in allowed:
            raise ValueError(
                f"Invalid state transition: {self.state.value} -> {new_state.value} "
                f"for run {self.run_id!r}. "
                f"Allowed transitions from {self.state.value}: "
                f"{sorted(s.value for s in allowed) or 'none (terminal)'}"
            )

        log.debug(
            "Run state changed",
            extra={"extra_fields": {
                "op": "run_state",
                "run_id": self.run_id,
                "from": self.state.value,
                "to": new_state.value,
            }},
        )
        self.state = new_state
        self.history.append(new_state)
        if new_state is not RunState.EMITTING_BODY:
            self.phase = None

    def enter_phase(self, phase: ActionPhase) -> None:
        """Record the sub-state of the action being emitted.

        Raises
        ------
        ValueError
            If the run is not in ``EMITTING_BODY``.
        """
        if self.state is not RunState.EMITTING_BODY:
            raise ValueError(
                f"Action phase {phase.value} is only valid while emitting the body, "
                f"run {self.run_id!r} is {self.state.value}"
            )
        self.phase = phase

    @property
    def is_terminal(self) -> bool:
        return self.state in _TERMINAL
