"""
Execution MCP Tools - Governed Job Execution.

Provides MCP tools for running code on an XDP dataplane under the execution policy:
- execute_and_monitor: Submit an ad-hoc run and collect its logs
- register_manual_execution: Record a run the user started manually, enabling auto-retry

Execution Policy (per session):
- The first execution must be triggered manually by the user
- At most 3 executions per session (configurable)
- At least 30 seconds between executions (configurable)

Refusals are returned as structured results, not errors. Only the retry limit refusal carries
'isError': True.
"""

import logging

from mcp.server.fastmcp import Context

from xdp_mcp.mcp_server._tools.mcp_server import mcp_server
from xdp_mcp.mcp_server._tools.shared import _drop_none, _get_dispatcher

_LOGGER = logging.getLogger(__name__)


@mcp_server.tool()
async def execute_and_monitor(
    context: Context,
    session_id: str,
    dataplane_id: str,
    is_manual_trigger: bool = False,
    job_type: str | None = None,
    name: str | None = None,
    description: str | None = None,
    image: str | None = None,
    image_pull_secrets: list[str] | None = None,
    image_pull_policy: str | None = None,
    code_source_url: str | None = None,
    stages: list[str] | None = None,
    execution_type: str | None = None,
    execution_mode: str | None = None,
    driver_cores: int | None = None,
    driver_memory: str | None = None,
    driver_memory_overhead: str | None = None,
    executor_instances: int | None = None,
    executor_cores: int | None = None,
    executor_memory: str | None = None,
    executor_memory_overhead: str | None = None,
    dynamic_allocation_enabled: bool | None = None,
    dynamic_allocation_initial: int | None = None,
    dynamic_allocation_min: int | None = None,
    dynamic_allocation_max: int | None = None,
    data_store_ids: list[int] | None = None,
    spark_conf: dict[str, str] | None = None,
    time_to_live_seconds: int | None = None,
    project_id: str | None = None,
    is_edit_and_run: bool | None = None,
    selected_template: str | None = None,
) -> dict:
    """
    MCP Tool: Execute code on a dataplane and monitor its logs.

    The first execution in a session MUST be manual: set 'is_manual_trigger' to True only when the
    user explicitly asked to run the code (or pressed Run). After that, the assistant may retry
    automatically to recover from errors, up to the per-session limit and never faster than the
    cooldown allows.

    AI Agent Usage:
    - Never set 'is_manual_trigger' on your own initiative; it represents a human action
    - On 'manual_required', ask the user to run the code manually (or call
      register_manual_execution after they did)
    - On 'cooldown', wait 'remaining_seconds' before retrying
    - On 'limit_reached' ('isError': True), stop retrying and ask the user to fix the issue
      manually or start a new session
    - On 'execution_failed', read 'error', fix the code, and retry if attempts remain
    - Read 'logs' on 'execution_succeeded'; 'logs_degraded' means logs were unavailable

    Args:
        context (Context): The MCP context object.
        session_id (str): Conversation or workbench session id; limits are counted per session.
        dataplane_id (str): Dataplane to run on.
        is_manual_trigger (bool, optional): True only for user-initiated runs. Defaults to False.
        job_type (str, optional): 'SPARK' (default), 'Python' or 'Java'.
        name (str, optional): Name of the ad-hoc run.
        description (str, optional): Description of the ad-hoc run.
        image (str, optional): Container image. Defaults to 'spark:3.3.0'.
        image_pull_secrets (list[str], optional): Pull secrets for private registries.
        image_pull_policy (str, optional): 'Always', 'IfNotPresent' (default) or 'Never'.
        code_source_url (str, optional): Location of the code to run.
        stages (list[str], optional): Stages to run. Defaults to ['main'].
        execution_type (str, optional): 'Python' (default) or 'Java'.
        execution_mode (str, optional): 'cluster' (default) or 'client'.
        driver_cores (int, optional): Driver cores. Defaults to 1.
        driver_memory (str, optional): Driver memory. Defaults to '1g'.
        driver_memory_overhead (str, optional): Driver memory overhead. Defaults to '512m'.
        executor_instances (int, optional): Executor count. Defaults to 2.
        executor_cores (int, optional): Cores per executor. Defaults to 1.
        executor_memory (str, optional): Memory per executor. Defaults to '1g'.
        executor_memory_overhead (str, optional): Executor memory overhead. Defaults to '512m'.
        dynamic_allocation_enabled (bool, optional): Enable dynamic allocation. Defaults to False.
        dynamic_allocation_initial (int, optional): Initial executors. Defaults to 2.
        dynamic_allocation_min (int, optional): Minimum executors. Defaults to 1.
        dynamic_allocation_max (int, optional): Maximum executors. Defaults to 10.
        data_store_ids (list[int], optional): Data stores the job may access.
        spark_conf (dict[str, str], optional): Extra Spark configuration.
        time_to_live_seconds (int, optional): Run time-to-live. Defaults to 3600.
        project_id (str, optional): Project the run belongs to.
        is_edit_and_run (bool, optional): Whether this run follows an edit. Defaults to False.
        selected_template (str, optional): Template used to create the run.

    Returns:
        dict: Structured result object with keys:
            - 'success' (bool): True for 'execution_succeeded'.
            - 'outcome' (str): 'manual_required', 'limit_reached', 'cooldown', 'execution_failed'
              or 'execution_succeeded'.
            - 'message' (str): Human-readable summary to show the user.
            - 'attempt_count', 'max_attempts', 'remaining_attempts' (int)
            - 'run_id', 'status', 'logs', 'logs_degraded', 'error', 'last_error',
              'remaining_seconds' (optional, depending on the outcome)
            - 'isError' (bool, optional): Present and True only for 'limit_reached'.

    Example Cooldown Response:
        {'success': False, 'outcome': 'cooldown', 'remaining_seconds': 12, 'attempt_count': 1,
         'max_attempts': 3, 'remaining_attempts': 2, 'message': 'Execution cooldown active. ...'}
    """
    dispatcher = _get_dispatcher("execute_and_monitor", context)
    job_fields = _drop_none(
        job_type=job_type,
        name=name,
        description=description,
        image=image,
        image_pull_secrets=image_pull_secrets,
        image_pull_policy=image_pull_policy,
        code_source_url=code_source_url,
        stages=stages,
        execution_type=execution_type,
        execution_mode=execution_mode,
        driver_cores=driver_cores,
        driver_memory=driver_memory,
        driver_memory_overhead=driver_memory_overhead,
        executor_instances=executor_instances,
        executor_cores=executor_cores,
        executor_memory=executor_memory,
        executor_memory_overhead=executor_memory_overhead,
        dynamic_allocation_enabled=dynamic_allocation_enabled,
        dynamic_allocation_initial=dynamic_allocation_initial,
        dynamic_allocation_min=dynamic_allocation_min,
        dynamic_allocation_max=dynamic_allocation_max,
        data_store_ids=data_store_ids,
        spark_conf=spark_conf,
        time_to_live_seconds=time_to_live_seconds,
        project_id=project_id,
        is_edit_and_run=is_edit_and_run,
        selected_template=selected_template,
    )
    return await dispatcher.execute_and_monitor(
        session_id=session_id,
        dataplane_id=dataplane_id,
        is_manual_trigger=is_manual_trigger,
        **job_fields,
    )


@mcp_server.tool()
async def register_manual_execution(
    context: Context,
    session_id: str,
    success: bool,
    run_id: str | None = None,
) -> dict:
    """
    MCP Tool: Register that the user ran the code manually, enabling auto-retry for the session.

    Call this after the user executed the code themselves (for example with the Run button in the
    workbench). Registration enables automatic retries regardless of whether the manual run
    succeeded. It does not count as an attempt and does not start a cooldown.

    Args:
        context (Context): The MCP context object.
        session_id (str): Session to enable auto-retry for.
        success (bool): Whether the manual run succeeded.
        run_id (str, optional): Run id of the manual execution.

    Returns:
        dict: {'success': True, 'outcome': 'manual_registered', 'message': str, ...}
    """
    dispatcher = _get_dispatcher("register_manual_execution", context)
    return await dispatcher.register_manual_execution(
        session_id=session_id, success=success, run_id=run_id
    )
