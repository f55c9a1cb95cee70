"""Per-session execution tracking state."""

import asyncio
from dataclasses import dataclass, field


@dataclass
class ExecutionSession:
    """
    Execution tracking state for one logical session (one assistant conversation or workbench).

    Instances are owned by an `ExecutionSessionStore` and mutated only by the
    `ExecutionGovernor` while holding `lock`.

    Attributes:
        session_key (str): Caller-supplied session key.
        attempt_count (int): Number of executions governed so far in this session.
        last_attempt_at (float | None): Clock value of the most recent accepted attempt,
            or None if no attempt has been accepted yet.
        has_manual_execution (bool): True once any attempt was manually triggered or a manual
            execution was registered. Never reverts to False.
        last_error (str | None): Most recent failure message. Only replaced by a newer failure.
        last_run_id (str | None): Identifier of the most recent remote run.
        last_touched_at (float): Clock value of the last access, used for idle eviction only.
        lock (asyncio.Lock): Guards every read-modify-write of this session.
    """

    session_key: str
    attempt_count: int = 0
    last_attempt_at: float | None = None
    has_manual_execution: bool = False
    last_error: str | None = None
    last_run_id: str | None = None
    last_touched_at: float = 0.0
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)
