"""
Tests for xdp_mcp.execution._governor.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from xdp_mcp._exceptions import SessionStoreError
from xdp_mcp.execution import (
    DEGRADED_LOGS_PLACEHOLDER,
    ExecutionGovernor,
    ExecutionPolicy,
    ExecutionSessionStore,
    JobSpec,
    LogCollection,
    Outcome,
    SubmissionResult,
)

SPEC = JobSpec("42")


@pytest.fixture
def log_collector():
    collector = MagicMock()
    collector.collect = AsyncMock(
        return_value=LogCollection(text="Stage main COMPLETED", completed=True)
    )
    return collector


@pytest.fixture
def store(fake_clock):
    return ExecutionSessionStore(clock=fake_clock)


@pytest.fixture
def governor(gateway, log_collector, store, fake_clock, fake_sleep):
    return ExecutionGovernor(
        gateway,
        log_collector,
        store,
        ExecutionPolicy(),
        clock=fake_clock,
        sleep=fake_sleep,
    )


def _failing(error="boom", run_id=None):
    return SubmissionResult(success=False, run_id=run_id, error=error)


@pytest.mark.asyncio
async def test_policy_walkthrough(governor, gateway, store, fake_clock):
    # Fresh session, not manual: refused, nothing counted
    result = await governor.execute_and_monitor("s1", SPEC, False)
    assert result.outcome is Outcome.MANUAL_REQUIRED
    assert result.attempt_count == 0
    assert result.success is False
    assert result.is_error is False
    gateway.submit_job.assert_not_called()

    # Manual trigger succeeds
    result = await governor.execute_and_monitor("s1", SPEC, True)
    assert result.outcome is Outcome.EXECUTION_SUCCEEDED
    assert result.attempt_count == 1
    assert result.run_id == "r1"
    assert store.get("s1").has_manual_execution is True
    assert store.get("s1").last_run_id == "r1"

    # Immediately again: cooldown, count unchanged
    result = await governor.execute_and_monitor("s1", SPEC, False)
    assert result.outcome is Outcome.COOLDOWN
    assert result.remaining_seconds > 0
    assert result.attempt_count == 1
    assert gateway.submit_job.await_count == 1

    # After the cooldown, a failing auto-retry is counted and its error kept
    fake_clock.advance(31)
    gateway.submit_job.return_value = _failing("boom")
    result = await governor.execute_and_monitor("s1", SPEC, False)
    assert result.outcome is Outcome.EXECUTION_FAILED
    assert result.attempt_count == 2
    assert result.error == "boom"
    assert store.get("s1").last_error == "boom"

    fake_clock.advance(31)
    result = await governor.execute_and_monitor("s1", SPEC, False)
    assert result.outcome is Outcome.EXECUTION_FAILED
    assert result.attempt_count == 3
    assert result.remaining_attempts == 0

    # Limit reached for any trigger
    fake_clock.advance(31)
    for manual in (False, True):
        result = await governor.execute_and_monitor("s1", SPEC, manual)
        assert result.outcome is Outcome.LIMIT_REACHED
        assert result.is_error is True
        assert result.attempt_count == 3
        assert "boom" in result.message
        assert result.last_error == "boom"
    assert gateway.submit_job.await_count == 3


@pytest.mark.asyncio
async def test_registered_manual_execution_enables_auto_retry(governor, gateway, store):
    result = await governor.register_manual_execution("s2", "r9", success=False)
    assert result.outcome is Outcome.MANUAL_REGISTERED
    assert result.success is True
    assert result.is_manual_trigger is True
    assert result.attempt_count == 0
    assert "failed" in result.message

    result = await governor.execute_and_monitor("s2", SPEC, False)
    assert result.outcome is Outcome.EXECUTION_SUCCEEDED
    assert result.attempt_count == 1
    assert "Auto-retry 1/3" in result.message


@pytest.mark.asyncio
async def test_registration_does_not_count_or_start_cooldown(governor, store):
    await governor.execute_and_monitor("s1", SPEC, True)
    await governor.register_manual_execution("s1", "r5", success=True)
    session = store.get("s1")
    assert session.attempt_count == 1
    assert session.last_run_id == "r5"


@pytest.mark.parametrize("success", [True, False])
@pytest.mark.asyncio
async def test_repeated_registration_is_idempotent(governor, gateway, store, fake_clock, success):
    gateway.submit_job.return_value = _failing("driver OOM", run_id="r0")
    await governor.execute_and_monitor("s1", SPEC, True)
    fake_clock.advance(40)

    first = await governor.register_manual_execution("s1", "r1", success=success)
    session = store.get("s1")
    state = (
        session.has_manual_execution,
        session.attempt_count,
        session.last_attempt_at,
        session.last_error,
    )

    fake_clock.advance(5)
    second = await governor.register_manual_execution("s1", "r2", success=success)
    session = store.get("s1")
    assert (
        session.has_manual_execution,
        session.attempt_count,
        session.last_attempt_at,
        session.last_error,
    ) == state
    assert state == (True, 1, 1000.0, "driver OOM")
    assert session.last_run_id == "r2"
    assert first.message == second.message
    assert second.attempt_count == first.attempt_count == 1


@pytest.mark.asyncio
async def test_refusals_do_not_touch_state(governor, store, fake_clock):
    await governor.execute_and_monitor("s1", SPEC, True)
    before = store.get("s1")
    snapshot = (before.attempt_count, before.last_attempt_at, before.last_error)
    fake_clock.advance(5)
    await governor.execute_and_monitor("s1", SPEC, False)
    after = store.get("s1")
    assert (after.attempt_count, after.last_attempt_at, after.last_error) == snapshot


@pytest.mark.asyncio
async def test_success_waits_settle_delay_then_collects_logs(
    governor, log_collector, fake_sleep
):
    result = await governor.execute_and_monitor("s1", SPEC, True)
    fake_sleep.assert_awaited_once_with(3.0)
    log_collector.collect.assert_awaited_once_with("r1", "42", timeout_seconds=60.0)
    assert result.logs == "Stage main COMPLETED"
    assert result.logs_degraded is False
    assert result.status == "STARTED"
    assert "Manual execution succeeded." in result.message
    assert "Stage main COMPLETED" in result.message


@pytest.mark.asyncio
async def test_log_collector_failure_degrades(governor, log_collector):
    log_collector.collect.side_effect = RuntimeError("stream closed")
    result = await governor.execute_and_monitor("s1", SPEC, True)
    assert result.outcome is Outcome.EXECUTION_SUCCEEDED
    assert result.logs == DEGRADED_LOGS_PLACEHOLDER
    assert result.logs_degraded is True


@pytest.mark.asyncio
async def test_success_without_run_id_skips_log_collection(governor, gateway, log_collector):
    gateway.submit_job.return_value = SubmissionResult(success=True)
    result = await governor.execute_and_monitor("s1", SPEC, True)
    assert result.outcome is Outcome.EXECUTION_SUCCEEDED
    assert result.logs_degraded is True
    log_collector.collect.assert_not_called()


@pytest.mark.asyncio
async def test_gateway_exception_becomes_failure(governor, gateway, store):
    gateway.submit_job.side_effect = ConnectionError("runner down")
    result = await governor.execute_and_monitor("s1", SPEC, True)
    assert result.outcome is Outcome.EXECUTION_FAILED
    assert result.error == "runner down"
    assert result.attempt_count == 1
    assert store.get("s1").last_error == "runner down"
    assert "automatic retries are now available" in result.message


@pytest.mark.asyncio
async def test_failure_records_run_id(governor, gateway, store):
    gateway.submit_job.return_value = _failing("OOM", run_id="r7")
    result = await governor.execute_and_monitor("s1", SPEC, True)
    assert result.run_id == "r7"
    assert "Run ID: r7" in result.message
    assert store.get("s1").last_run_id == "r7"


@pytest.mark.asyncio
async def test_last_error_survives_later_success(governor, gateway, store, fake_clock):
    gateway.submit_job.return_value = _failing("boom")
    await governor.execute_and_monitor("s1", SPEC, True)
    fake_clock.advance(31)
    gateway.submit_job.return_value = SubmissionResult(success=True, run_id="r2")
    await governor.execute_and_monitor("s1", SPEC, False)
    assert store.get("s1").last_error == "boom"


@pytest.mark.asyncio
async def test_concurrent_calls_never_exceed_limit(log_collector, fake_clock, fake_sleep):
    gateway = MagicMock()

    async def slow_submit(job_spec):
        await asyncio.sleep(0)
        return SubmissionResult(success=True, run_id="r1")

    gateway.submit_job = AsyncMock(side_effect=slow_submit)
    store = ExecutionSessionStore(clock=fake_clock)
    governor = ExecutionGovernor(
        gateway,
        log_collector,
        store,
        ExecutionPolicy(max_attempts=3, min_cooldown_seconds=0),
        clock=fake_clock,
        sleep=fake_sleep,
    )

    results = await asyncio.gather(
        *(governor.execute_and_monitor("s1", SPEC, True) for _ in range(10))
    )
    outcomes = [r.outcome for r in results]
    assert outcomes.count(Outcome.EXECUTION_SUCCEEDED) == 3
    assert outcomes.count(Outcome.LIMIT_REACHED) == 7
    assert store.get("s1").attempt_count == 3
    assert gateway.submit_job.await_count == 3


@pytest.mark.asyncio
async def test_concurrent_calls_respect_cooldown(governor, gateway, store):
    results = await asyncio.gather(
        *(governor.execute_and_monitor("s1", SPEC, True) for _ in range(5))
    )
    outcomes = [r.outcome for r in results]
    assert outcomes.count(Outcome.EXECUTION_SUCCEEDED) == 1
    assert outcomes.count(Outcome.COOLDOWN) == 4
    assert gateway.submit_job.await_count == 1


@pytest.mark.asyncio
async def test_sessions_are_isolated(governor, fake_clock):
    await governor.execute_and_monitor("a", SPEC, True)
    result = await governor.execute_and_monitor("b", SPEC, False)
    assert result.outcome is Outcome.MANUAL_REQUIRED


@pytest.mark.asyncio
async def test_custom_limits(gateway, log_collector, fake_clock, fake_sleep):
    governor = ExecutionGovernor(
        gateway,
        log_collector,
        ExecutionSessionStore(clock=fake_clock),
        ExecutionPolicy(max_attempts=1, min_cooldown_seconds=5),
        clock=fake_clock,
        sleep=fake_sleep,
    )
    await governor.execute_and_monitor("s1", SPEC, True)
    fake_clock.advance(6)
    result = await governor.execute_and_monitor("s1", SPEC, False)
    assert result.outcome is Outcome.LIMIT_REACHED
    assert "(1/1)" in result.message
    assert "None recorded" in result.message


@pytest.mark.asyncio
async def test_empty_session_key_rejected(governor):
    with pytest.raises(ValueError):
        await governor.execute_and_monitor("  ", SPEC, True)
    with pytest.raises(ValueError):
        await governor.register_manual_execution("", success=True)


@pytest.mark.asyncio
async def test_closed_store_raises(governor, store):
    await store.close()
    with pytest.raises(SessionStoreError):
        await governor.execute_and_monitor("s1", SPEC, True)
    with pytest.raises(SessionStoreError):
        await governor.register_manual_execution("s1", success=True)


@pytest.mark.asyncio
async def test_to_dict_shapes(governor, fake_clock):
    refused = (await governor.execute_and_monitor("s1", SPEC, False)).to_dict()
    assert refused["success"] is False
    assert refused["outcome"] == "manual_required"
    assert refused["session_id"] == "s1"
    assert refused["remaining_attempts"] == 3
    assert "isError" not in refused
    assert "run_id" not in refused

    done = (await governor.execute_and_monitor("s1", SPEC, True)).to_dict()
    assert done["success"] is True
    assert done["run_id"] == "r1"
    assert done["is_manual_trigger"] is True
    assert done["logs_degraded"] is False

    cooling = (await governor.execute_and_monitor("s1", SPEC, False)).to_dict()
    assert cooling["outcome"] == "cooldown"
    assert cooling["remaining_seconds"] == 30
