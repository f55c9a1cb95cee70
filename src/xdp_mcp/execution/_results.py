"""
Result types for governed execution.

`SubmissionResult` is what a job submission gateway returns. `ExecutionResult` is what the
governor returns for every call, including policy refusals, so that nothing but genuine
infrastructure failures crosses the tool boundary as an exception.
"""

import enum
from dataclasses import dataclass
from typing import Any


class Outcome(str, enum.Enum):
    """The kind of an `ExecutionResult`."""

    MANUAL_REQUIRED = "manual_required"
    LIMIT_REACHED = "limit_reached"
    COOLDOWN = "cooldown"
    EXECUTION_FAILED = "execution_failed"
    EXECUTION_SUCCEEDED = "execution_succeeded"
    MANUAL_REGISTERED = "manual_registered"


_SUCCESS_OUTCOMES = frozenset({Outcome.EXECUTION_SUCCEEDED, Outcome.MANUAL_REGISTERED})


@dataclass(frozen=True)
class SubmissionResult:
    """
    Normalized outcome of a job submission.

    Attributes:
        success (bool): True if the remote platform accepted the run.
        run_id (str | None): Remote run identifier, when one was obtained.
        status (str | None): Remote status string, when reported.
        error (str | None): Failure message when `success` is False.
    """

    success: bool
    run_id: str | None = None
    status: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class ExecutionResult:
    """
    Structured result of an `ExecutionGovernor` operation.

    Attributes:
        outcome (Outcome): What happened.
        message (str): User-readable summary including the context needed to decide the next action.
        session_key (str): The session the result belongs to.
        attempt_count (int): Session attempt count after the operation.
        max_attempts (int): Configured attempt cap.
        is_manual_trigger (bool): Whether the call was a manual trigger.
        run_id (str | None): Remote run identifier, if any.
        status (str | None): Remote status, for successful executions.
        logs (str | None): Collected logs or a placeholder, for successful executions.
        logs_degraded (bool | None): True if log collection failed and `logs` is a placeholder.
        error (str | None): Failure message, for failed executions.
        last_error (str | None): Last recorded session error, for limit refusals.
        remaining_seconds (int | None): Time left before the next attempt, for cooldown refusals.
    """

    outcome: Outcome
    message: str
    session_key: str
    attempt_count: int
    max_attempts: int
    is_manual_trigger: bool = False
    run_id: str | None = None
    status: str | None = None
    logs: str | None = None
    logs_degraded: bool | None = None
    error: str | None = None
    last_error: str | None = None
    remaining_seconds: int | None = None

    @property
    def success(self) -> bool:
        return self.outcome in _SUCCESS_OUTCOMES

    @property
    def is_error(self) -> bool:
        # Only the hard limit is flagged as an error; other refusals are recoverable
        return self.outcome is Outcome.LIMIT_REACHED

    @property
    def remaining_attempts(self) -> int:
        return max(0, self.max_attempts - self.attempt_count)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert to the tool response dict.

        Optional fields are only present when set. `isError` is only present (and True) for
        the limit-reached refusal.
        """
        result: dict[str, Any] = {
            "success": self.success,
            "outcome": self.outcome.value,
            "message": self.message,
            "session_id": self.session_key,
            "attempt_count": self.attempt_count,
            "max_attempts": self.max_attempts,
            "remaining_attempts": self.remaining_attempts,
            "is_manual_trigger": self.is_manual_trigger,
        }
        optional = {
            "run_id": self.run_id,
            "status": self.status,
            "logs": self.logs,
            "logs_degraded": self.logs_degraded,
            "error": self.error,
            "last_error": self.last_error,
            "remaining_seconds": self.remaining_seconds,
        }
        result.update({k: v for k, v in optional.items() if v is not None})
        if self.is_error:
            result["isError"] = True
        return result
