"""Execution: persisted state, integrity checks and the run state machine."""

from dripfeed.execution.engine import ExecutionEngine, RunOutcome, apply_edit, plan_table
from dripfeed.execution.git import GitRepository, git_available
from dripfeed.execution.integrity import IntegrityVerifier, compute_file_hash
from dripfeed.execution.operator import (
    ConsoleOperator,
    OperatorDecisions,
    ReviewEdit,
    ScriptedOperator,
)
from dripfeed.execution.store import PlanStore, StateStore, open_stores
from dripfeed.execution.types import (
    CompletedCommit,
    Cursor,
    ExecutionState,
    Phase,
    SkippedCommit,
)

__all__ = [
    "CompletedCommit",
    "ConsoleOperator",
    "Cursor",
    "ExecutionEngine",
    "ExecutionState",
    "GitRepository",
    "IntegrityVerifier",
    "OperatorDecisions",
    "Phase",
    "PlanStore",
    "ReviewEdit",
    "RunOutcome",
    "ScriptedOperator",
    "SkippedCommit",
    "StateStore",
    "apply_edit",
    "compute_file_hash",
    "git_available",
    "open_stores",
    "plan_table",
]
