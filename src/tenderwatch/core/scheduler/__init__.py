"""Scheduling and run-guard components."""

from .locks import LockManager, heartbeat, make_holder_id
from .service import PipelineScheduler, SchedulerState, create_scheduler

__all__ = [
    "LockManager",
    "heartbeat",
    "make_holder_id",
    "PipelineScheduler",
    "SchedulerState",
    "create_scheduler",
]
