"""Generic State Machine for status transitions.

This module provides a reusable state machine pattern for managing
status transitions of upload jobs.

Example:
    # Define transitions
    transitions: TransitionMap[str] = {
        "queued": ["uploading", "failed"],
        "uploading": ["completed", "failed"],
        "completed": [],
        "failed": [],
    }

    # Create state machine
    sm = StateMachine("queued", transitions)

    # Check and perform transitions
    if sm.can_transition("uploading"):
        sm.transition("uploading")

    # Or use transition_to for simpler API
    sm.transition_to("completed")
"""

from enum import Enum
from typing import Generic, TypeVar

from clipvault.core.exceptions import ClipVaultError

T = TypeVar("T", bound=str | Enum)

# Type alias for transition maps
TransitionMap = dict[T, list[T]]


class InvalidTransitionError(ClipVaultError):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, current: T, target: T, allowed: list[T] | None = None):
        self.current = current
        self.target = target
        self.allowed = allowed or []
        allowed_str = ", ".join(str(s) for s in self.allowed) if self.allowed else "none"
        super().__init__(
            message=f"Invalid transition from '{current}' to '{target}'. "
            f"Allowed transitions: {allowed_str}",
            context={
                "current": str(current),
                "target": str(target),
                "allowed": [str(s) for s in self.allowed],
            },
        )


class StateMachine(Generic[T]):
    """Generic state machine for status transitions.

    Provides a type-safe way to manage status transitions with
    explicit allowed transitions defined upfront. States without
    outgoing transitions are terminal.

    Attributes:
        current: Current state
        transitions: Map of allowed transitions from each state
    """

    def __init__(self, initial: T, transitions: TransitionMap[T]):
        """Initialize state machine.

        Args:
            initial: Initial state
            transitions: Map of state -> list of allowed target states
        """
        self._current = initial
        self._transitions = transitions

    @property
    def current(self) -> T:
        """Get current state."""
        return self._current

    @property
    def allowed_transitions(self) -> list[T]:
        """Get list of states we can transition to from current state."""
        return self._transitions.get(self._current, [])

    @property
    def is_terminal(self) -> bool:
        """Whether the current state has no outgoing transitions."""
        return not self.allowed_transitions

    def can_transition(self, target: T) -> bool:
        """Check if transition to target state is allowed.

        Args:
            target: Target state to check

        Returns:
            True if transition is allowed, False otherwise
        """
        return target in self.allowed_transitions

    def transition(self, target: T) -> None:
        """Perform transition to target state.

        Args:
            target: Target state

        Raises:
            InvalidTransitionError: If transition is not allowed
        """
        if not self.can_transition(target):
            raise InvalidTransitionError(
                current=self._current,
                target=target,
                allowed=self.allowed_transitions,
            )
        self._current = target

    def transition_to(self, target: T) -> T:
        """Perform transition and return new state.

        Args:
            target: Target state

        Returns:
            The new current state (same as target)

        Raises:
            InvalidTransitionError: If transition is not allowed
        """
        self.transition(target)
        return self._current

    def __str__(self) -> str:
        return f"StateMachine(current={self._current})"

    def __repr__(self) -> str:
        return f"StateMachine(current={self._current!r}, allowed={self.allowed_transitions!r})"


# ============================================
# Predefined Transition Maps
# ============================================


def get_upload_job_transitions() -> TransitionMap:
    """Get transition map for JobStatus.

    Any non-terminal state may fail; completed and failed are terminal.
    """
    from clipvault.services.uploader.models import JobStatus

    return {
        JobStatus.QUEUED: [
            JobStatus.GENERATING_THUMBNAIL,
            JobStatus.COMPRESSING,
            JobStatus.AWAITING_AUTHORIZATION,
            JobStatus.FAILED,
        ],
        JobStatus.GENERATING_THUMBNAIL: [
            JobStatus.COMPRESSING,
            JobStatus.AWAITING_AUTHORIZATION,
            JobStatus.FAILED,
        ],
        JobStatus.COMPRESSING: [JobStatus.AWAITING_AUTHORIZATION, JobStatus.FAILED],
        JobStatus.AWAITING_AUTHORIZATION: [JobStatus.UPLOADING, JobStatus.FAILED],
        JobStatus.UPLOADING: [JobStatus.FINALIZING, JobStatus.FAILED],
        JobStatus.FINALIZING: [JobStatus.COMPLETED, JobStatus.FAILED],
        JobStatus.COMPLETED: [],  # Terminal state
        JobStatus.FAILED: [],  # Terminal state
    }


def create_upload_job_state_machine(initial_status: str | None = None) -> StateMachine:
    """Create a state machine for upload job status.

    Args:
        initial_status: Initial status (default: QUEUED)

    Returns:
        Configured StateMachine for an upload job
    """
    from clipvault.services.uploader.models import JobStatus

    initial = JobStatus(initial_status) if initial_status else JobStatus.QUEUED
    return StateMachine(initial, get_upload_job_transitions())
