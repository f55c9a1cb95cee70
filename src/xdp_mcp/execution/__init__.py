"""
Governed execution of ad-hoc jobs.

This package contains the execution-tracking and retry-governance logic behind the
`execute_and_monitor` and `register_manual_execution` tools:

    - `ExecutionGovernor`: enforces the policy and orchestrates submission and log collection.
    - `ExecutionPolicy` / `evaluate_attempt`: the manual-first, retry-cap and cooldown rules.
    - `ExecutionSessionStore` / `ExecutionSession`: per-session state with per-key locking.
    - `LogStreamCollector`: bounded collection of streamed run logs.
    - `JobSpec`: parameters of an ad-hoc run.
    - `ExecutionResult` / `SubmissionResult` / `Outcome`: structured results.
"""

from ._governor import ExecutionGovernor, JobSubmissionGateway, LogCollector
from ._job_spec import JobSpec
from ._logs import (
    DEFAULT_COMPLETION_MARKERS,
    DEGRADED_LOGS_PLACEHOLDER,
    LogCollection,
    LogStreamCollector,
    marker_predicate,
    truncate_logs,
)
from ._policy import ExecutionPolicy, PolicyDecision, evaluate_attempt
from ._results import ExecutionResult, Outcome, SubmissionResult
from ._session import ExecutionSession
from ._store import ExecutionSessionStore

__all__ = [
    "DEFAULT_COMPLETION_MARKERS",
    "DEGRADED_LOGS_PLACEHOLDER",
    "ExecutionGovernor",
    "ExecutionPolicy",
    "ExecutionResult",
    "ExecutionSession",
    "ExecutionSessionStore",
    "JobSpec",
    "JobSubmissionGateway",
    "LogCollection",
    "LogCollector",
    "LogStreamCollector",
    "Outcome",
    "PolicyDecision",
    "SubmissionResult",
    "evaluate_attempt",
    "marker_predicate",
    "truncate_logs",
]
