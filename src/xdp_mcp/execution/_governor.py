"""
Execution governor: gatekeeper for remote job execution.

The governor stops an AI agent from entering an uncontrolled execution loop against a real
compute cluster. For every session it enforces:

    - the first execution of a session must be triggered manually by the user,
    - automatic retries are capped at `ExecutionPolicy.max_attempts`,
    - accepted attempts are separated by at least `ExecutionPolicy.min_cooldown_seconds`.

It keeps the last error and last run id of each session, submits allowed attempts through a
job submission gateway and collects the run's logs. Policy refusals and downstream failures are
returned as `ExecutionResult` objects; only session store failures are raised.

Locking:
    The check-then-increment step runs under the session's lock, so concurrent calls for the
    same session can never exceed the attempt cap or break the cooldown. The lock is released
    before any network I/O and re-taken briefly to record the submission outcome.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Protocol

from ._job_spec import JobSpec
from ._logs import DEGRADED_LOGS_PLACEHOLDER, LogCollection
from ._policy import ExecutionPolicy, PolicyDecision, evaluate_attempt
from ._results import ExecutionResult, Outcome, SubmissionResult
from ._session import ExecutionSession
from ._store import ExecutionSessionStore

_LOGGER = logging.getLogger(__name__)


class JobSubmissionGateway(Protocol):
    """Submits a job and reports the normalized outcome."""

    async def submit_job(self, job_spec: JobSpec) -> SubmissionResult: ...


class LogCollector(Protocol):
    """Collects the logs of a run."""

    async def collect(
        self,
        run_id: str,
        dataplane_id: str | None = None,
        timeout_seconds: float | None = None,
    ) -> LogCollection: ...


class ExecutionGovernor:
    """
    Enforces the execution policy and orchestrates job submission and log collection.

    Example:
        >>> governor = ExecutionGovernor(runner_client, log_collector, ExecutionSessionStore())
        >>> result = await governor.execute_and_monitor("chat-1", JobSpec("42"), is_manual_trigger=True)
        >>> result.outcome
        <Outcome.EXECUTION_SUCCEEDED: 'execution_succeeded'>
    """

    def __init__(
        self,
        gateway: JobSubmissionGateway,
        log_collector: LogCollector,
        store: ExecutionSessionStore,
        policy: ExecutionPolicy | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        """
        Args:
            gateway (JobSubmissionGateway): Submits jobs.
            log_collector (LogCollector): Collects run logs.
            store (ExecutionSessionStore): Owner of per-session state.
            policy (ExecutionPolicy | None): Limits to enforce. Defaults to `ExecutionPolicy()`.
            clock (Callable[[], float]): Monotonic clock in seconds.
            sleep (Callable[[float], Awaitable]): Used for the settle delay.
        """
        self._gateway = gateway
        self._log_collector = log_collector
        self._store = store
        self._policy = policy or ExecutionPolicy()
        self._clock = clock
        self._sleep = sleep

    @property
    def policy(self) -> ExecutionPolicy:
        return self._policy

    @property
    def store(self) -> ExecutionSessionStore:
        return self._store

    def _attempt_label(self, attempt: int, is_manual_trigger: bool) -> str:
        if is_manual_trigger:
            return "Manual execution"
        return f"Auto-retry {attempt}/{self._policy.max_attempts}"

    def _refusal(
        self,
        session: ExecutionSession,
        decision: PolicyDecision,
        is_manual_trigger: bool,
    ) -> ExecutionResult:
        max_attempts = self._policy.max_attempts
        outcome = decision.outcome
        last_error = None

        if outcome is Outcome.MANUAL_REQUIRED:
            message = (
                "Manual execution required. For the first run of your code, use the Run button "
                "in the workbench to execute it manually. After the first manual execution, "
                "automatic retries are available for error recovery "
                f"(up to {max_attempts} attempts per session)."
            )
        elif outcome is Outcome.LIMIT_REACHED:
            last_error = session.last_error
            message = (
                f"Auto-execution limit reached ({session.attempt_count}/{max_attempts}). "
                "The maximum number of executions for this session has been used; this "
                "prevents infinite loops. To continue, review and fix the remaining issues "
                "manually, or start a new chat session to reset the counter. "
                f"Last error: {last_error or 'None recorded'}"
            )
        else:
            message = (
                f"Execution cooldown active. Please wait {decision.remaining_seconds} more "
                "seconds before the next automatic execution. Current execution count: "
                f"{session.attempt_count}/{max_attempts}."
            )

        _LOGGER.info(
            f"[ExecutionGovernor:execute_and_monitor] Session '{session.session_key}' refused: "
            f"{outcome.value if outcome else None} (attempts={session.attempt_count}/{max_attempts})"
        )
        return ExecutionResult(
            outcome=outcome,  # type: ignore[arg-type]
            message=message,
            session_key=session.session_key,
            attempt_count=session.attempt_count,
            max_attempts=max_attempts,
            is_manual_trigger=is_manual_trigger,
            last_error=last_error,
            remaining_seconds=decision.remaining_seconds,
        )

    async def _submit(self, job_spec: JobSpec) -> SubmissionResult:
        try:
            return await self._gateway.submit_job(job_spec)
        except Exception as e:
            _LOGGER.error(
                f"[ExecutionGovernor:_submit] Job submission raised {type(e).__name__}: {e}",
                exc_info=True,
            )
            return SubmissionResult(success=False, error=str(e) or type(e).__name__)

    async def _collect_logs(self, run_id: str | None, dataplane_id: str) -> LogCollection:
        if not run_id:
            return LogCollection(text=DEGRADED_LOGS_PLACEHOLDER, degraded=True)
        try:
            return await self._log_collector.collect(
                run_id,
                dataplane_id,
                timeout_seconds=self._policy.log_collection_timeout_seconds,
            )
        except Exception as e:
            _LOGGER.warning(
                f"[ExecutionGovernor:_collect_logs] Log collection for run '{run_id}' failed: "
                f"{type(e).__name__}: {e}"
            )
            return LogCollection(text=DEGRADED_LOGS_PLACEHOLDER, degraded=True)

    async def execute_and_monitor(
        self,
        session_key: str,
        job_spec: JobSpec,
        is_manual_trigger: bool = False,
    ) -> ExecutionResult:
        """
        Run one governed execution attempt.

        Args:
            session_key (str): Session the attempt is counted against.
            job_spec (JobSpec): What to run. Passed to the gateway unchanged.
            is_manual_trigger (bool): True if the user triggered the run.

        Returns:
            ExecutionResult: One of MANUAL_REQUIRED, LIMIT_REACHED, COOLDOWN (no side effects),
                EXECUTION_FAILED or EXECUTION_SUCCEEDED.

        Raises:
            ValueError: If `session_key` is empty.
            SessionStoreError: If the session store is unavailable.
        """
        if not session_key or not session_key.strip():
            raise ValueError("session_key must be a non-empty string")

        max_attempts = self._policy.max_attempts

        async with self._store.session(session_key) as session:
            now = self._clock()
            decision = evaluate_attempt(session, is_manual_trigger, now, self._policy)
            if not decision.allowed:
                return self._refusal(session, decision, is_manual_trigger)

            session.attempt_count += 1
            session.last_attempt_at = now
            if is_manual_trigger:
                session.has_manual_execution = True
            attempt = session.attempt_count

        label = self._attempt_label(attempt, is_manual_trigger)
        remaining = max(0, max_attempts - attempt)
        _LOGGER.info(
            f"[ExecutionGovernor:execute_and_monitor] {label} for session '{session_key}' "
            f"on dataplane '{job_spec.dataplane_id}'"
        )

        submission = await self._submit(job_spec)

        if not submission.success:
            error = submission.error or "Execution failed"
            async with self._store.session(session_key) as session:
                session.last_error = error
                if submission.run_id:
                    session.last_run_id = submission.run_id

            if is_manual_trigger:
                next_steps = (
                    "Next steps: automatic retries are now available for error recovery "
                    f"({remaining} attempts remaining)."
                )
            else:
                next_steps = (
                    "Next steps: review the error above. The code can be fixed and retried "
                    f"automatically ({remaining} attempts remaining), or reviewed and fixed manually."
                )
            _LOGGER.warning(
                f"[ExecutionGovernor:execute_and_monitor] {label} failed for session "
                f"'{session_key}': {error}"
            )
            return ExecutionResult(
                outcome=Outcome.EXECUTION_FAILED,
                message=(
                    f"{label} failed.\n\nError: {error}\n"
                    f"Run ID: {submission.run_id or 'N/A'}\n\n{next_steps}"
                ),
                session_key=session_key,
                attempt_count=attempt,
                max_attempts=max_attempts,
                is_manual_trigger=is_manual_trigger,
                run_id=submission.run_id,
                error=error,
            )

        run_id = submission.run_id
        if run_id:
            async with self._store.session(session_key) as session:
                session.last_run_id = run_id

        await self._sleep(self._policy.settle_delay_seconds)
        logs = await self._collect_logs(run_id, job_spec.dataplane_id)

        status = submission.status or "STARTED"
        if is_manual_trigger:
            remaining_info = (
                "Auto-retry is now enabled for error recovery "
                f"({remaining} attempts available)."
            )
        else:
            remaining_info = f"Remaining auto-executions: {remaining}."
        _LOGGER.info(
            f"[ExecutionGovernor:execute_and_monitor] {label} succeeded for session "
            f"'{session_key}': run_id={run_id}, logs_degraded={logs.degraded}"
        )
        return ExecutionResult(
            outcome=Outcome.EXECUTION_SUCCEEDED,
            message=(
                f"{label} succeeded.\n\nRun ID: {run_id or 'N/A'}\nStatus: {status}\n\n"
                f"Logs:\n{logs.text}\n\n{remaining_info}"
            ),
            session_key=session_key,
            attempt_count=attempt,
            max_attempts=max_attempts,
            is_manual_trigger=is_manual_trigger,
            run_id=run_id,
            status=status,
            logs=logs.text,
            logs_degraded=logs.degraded,
        )

    async def register_manual_execution(
        self,
        session_key: str,
        run_id: str | None = None,
        *,
        success: bool,
    ) -> ExecutionResult:
        """
        Record that the user executed the code manually, enabling automatic retries.

        Never touches the attempt counter or the cooldown. Registration does not depend on
        `success`; only the confirmation text does.

        Raises:
            ValueError: If `session_key` is empty.
            SessionStoreError: If the session store is unavailable.
        """
        if not session_key or not session_key.strip():
            raise ValueError("session_key must be a non-empty string")

        async with self._store.session(session_key) as session:
            session.has_manual_execution = True
            if run_id:
                session.last_run_id = run_id
            attempt_count = session.attempt_count

        max_attempts = self._policy.max_attempts
        if success:
            message = (
                "Manual execution successful. Auto-retry is now enabled for this session. "
                "If errors occur in future runs, execution can be retried automatically "
                f"up to {max_attempts} times."
            )
        else:
            message = (
                "Manual execution failed. Auto-retry is now enabled for this session. "
                "The issues can be fixed and the run retried automatically "
                f"up to {max_attempts} times."
            )
        _LOGGER.info(
            f"[ExecutionGovernor:register_manual_execution] Manual execution registered for "
            f"session '{session_key}': {'SUCCESS' if success else 'FAILED'}"
        )
        return ExecutionResult(
            outcome=Outcome.MANUAL_REGISTERED,
            message=message,
            session_key=session_key,
            attempt_count=attempt_count,
            max_attempts=max_attempts,
            is_manual_trigger=True,
            run_id=run_id,
        )
