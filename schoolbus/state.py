from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, FrozenSet, List

logger = logging.getLogger(__name__)


class RunStateError(Exception):
    """Raised when an invalid run transition is attempted."""
    pass


class RunState(str, Enum):
    VALIDATING_INPUT = "VALIDATING_INPUT"
    SEQUENCING = "SEQUENCING"
    ASSIGNING = "ASSIGNING"
    PROPAGATING_MORNING = "PROPAGATING_MORNING"
    PROPAGATING_RETURN = "PROPAGATING_RETURN"
    AGGREGATING = "AGGREGATING"
    DONE = "DONE"
    FAILED = "FAILED"


# FAILED is reachable from every non-terminal state and is added below.
_TRANSITIONS: Dict[RunState, FrozenSet[RunState]] = {
    RunState.VALIDATING_INPUT: frozenset({RunState.SEQUENCING}),
    RunState.SEQUENCING: frozenset({RunState.ASSIGNING}),
    RunState.ASSIGNING: frozenset({RunState.PROPAGATING_MORNING}),
    # return leg is skipped entirely when not requested
    RunState.PROPAGATING_MORNING: frozenset({RunState.PROPAGATING_RETURN, RunState.AGGREGATING}),
    RunState.PROPAGATING_RETURN: frozenset({RunState.AGGREGATING}),
    RunState.AGGREGATING: frozenset({RunState.DONE}),
    RunState.DONE: frozenset(),
    RunState.FAILED: frozenset(),
}

TERMINAL_STATES = frozenset({RunState.DONE, RunState.FAILED})


class RunStateMachine:
    """
    Tracks where one optimization run is. Keeps the visited states for diagnostics.
    """

    def __init__(self, run_id: str = "run"):
        self.run_id = run_id
        self.state = RunState.VALIDATING_INPUT
        self.history: List[RunState] = [self.state]

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def advance(self, target: RunState) -> RunState:
        allowed = _TRANSITIONS[self.state]
        if target == RunState.FAILED and not self.is_terminal:
            allowed = allowed | {RunState.FAILED}

        if target not in allowed:
            raise RunStateError(f"Cannot move run {self.run_id} from {self.state.value} to {target.value}")

        logger.debug("Run %s: %s -> %s", self.run_id, self.state.value, target.value)
        self.state = target
        self.history.append(target)
        return target

    def fail(self) -> None:
        if not self.is_terminal:
            self.advance(RunState.FAILED)
