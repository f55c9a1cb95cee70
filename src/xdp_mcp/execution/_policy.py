"""
Execution policy: the manual-first, retry-cap and cooldown rules.

The policy check is a pure function of the session state, the trigger flag and the current
clock value. It performs no I/O and never mutates the session, which keeps it trivially
testable and lets the governor call it while holding the session lock.
"""

import math
from dataclasses import dataclass

from ._results import Outcome
from ._session import ExecutionSession

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_MIN_COOLDOWN_SECONDS = 30.0
DEFAULT_SETTLE_DELAY_SECONDS = 3.0
DEFAULT_LOG_COLLECTION_TIMEOUT_SECONDS = 60.0
DEFAULT_MAX_LOG_CHARS = 80_000


@dataclass(frozen=True)
class ExecutionPolicy:
    """
    Limits applied by the execution governor.

    Attributes:
        max_attempts (int): Maximum number of governed attempts per session.
        min_cooldown_seconds (float): Minimum time between two accepted attempts.
        settle_delay_seconds (float): Delay between a successful submission and log collection.
        log_collection_timeout_seconds (float): Upper bound on log collection time.
        max_log_chars (int): Collected log text beyond this length is truncated.
    """

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    min_cooldown_seconds: float = DEFAULT_MIN_COOLDOWN_SECONDS
    settle_delay_seconds: float = DEFAULT_SETTLE_DELAY_SECONDS
    log_collection_timeout_seconds: float = DEFAULT_LOG_COLLECTION_TIMEOUT_SECONDS
    max_log_chars: int = DEFAULT_MAX_LOG_CHARS


@dataclass(frozen=True)
class PolicyDecision:
    """
    Result of `evaluate_attempt`.

    `outcome` is None when the attempt is allowed; otherwise it names the refusal.
    `remaining_seconds` is only set for a cooldown refusal.
    """

    outcome: Outcome | None = None
    remaining_seconds: int | None = None

    @property
    def allowed(self) -> bool:
        return self.outcome is None


def evaluate_attempt(
    session: ExecutionSession,
    is_manual_trigger: bool,
    now: float,
    policy: ExecutionPolicy,
) -> PolicyDecision:
    """
    Decide whether an execution attempt may proceed.

    Rules are evaluated in order and the first match wins:
        1. No manual execution yet and this is not a manual trigger: MANUAL_REQUIRED.
        2. The attempt cap has been reached (regardless of trigger): LIMIT_REACHED.
        3. A previous attempt happened less than the cooldown ago: COOLDOWN, with the
           remaining wait rounded up to whole seconds.

    Args:
        session (ExecutionSession): Current session state. Not modified.
        is_manual_trigger (bool): Whether the human user triggered this attempt.
        now (float): Current clock value, on the same clock as `session.last_attempt_at`.
        policy (ExecutionPolicy): Limits to apply.

    Returns:
        PolicyDecision: An allowed decision, or the refusal that applies.
    """
    if not session.has_manual_execution and not is_manual_trigger:
        return PolicyDecision(Outcome.MANUAL_REQUIRED)

    if session.attempt_count >= policy.max_attempts:
        return PolicyDecision(Outcome.LIMIT_REACHED)

    if session.attempt_count > 0 and session.last_attempt_at is not None:
        elapsed = now - session.last_attempt_at
        if elapsed < policy.min_cooldown_seconds:
            remaining = max(1, math.ceil(policy.min_cooldown_seconds - elapsed))
            return PolicyDecision(Outcome.COOLDOWN, remaining_seconds=remaining)

    return PolicyDecision()
