"""Execution engine: the five-phase state machine.

    Setup -> Planning -> Review -> Execution -> Finish
                     (any) -> Halted

One ``run()`` call is one invocation of the tool. It plans when no plan
exists, reviews while the plan is unapproved, then executes the commits of
the cursor's current day until the day is done or a budget runs out. State
is persisted after every commit, so the next invocation resumes exactly at
``state.next``.

Halts are DripfeedErrors tagged with the step that raised them; the engine
logs the HALT line and re-raises without touching state again.
"""

from __future__ import annotations

import logging
import os
import shutil
import sys
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from rich.table import Table
from rich.text import Text

from dripfeed.execution.git import GitRepository, git_available
from dripfeed.execution.integrity import IntegrityVerifier
from dripfeed.execution.operator import ConsoleOperator, OperatorDecisions, ReviewEdit
from dripfeed.execution.store import LOG_FILENAME, PlanStore, StateStore, storage_dir
from dripfeed.execution.types import (
    CompletedCommit,
    ExecutionState,
    Phase,
    SkippedCommit,
    utc_now,
)
from dripfeed.foundation.config import DripfeedConfig
from dripfeed.foundation.errors import DripfeedError, ErrorCode, plan_error, precondition_error
from dripfeed.foundation.logging import StepLog
from dripfeed.planning.classifier import CATEGORY_ORDER, categorize
from dripfeed.planning.planner import build_plan, build_settings, render_preview
from dripfeed.planning.scanner import (
    SECURITY_PATTERNS,
    IgnoreRules,
    cluster_by_feature,
    load_ignore_rules,
    scan_directory,
)
from dripfeed.planning.types import Plan, PlannedCommit

logger = logging.getLogger(__name__)

MIN_PYTHON = (3, 11)


def copy_source_file(source: Path, destination: Path) -> None:
    """Copy one file into the target, creating parent directories."""
    destination.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(source, destination)


def apply_edit(plan: Plan, edit: ReviewEdit) -> PlannedCommit:
    """Validate and apply a reword edit to ``plan`` in memory.

    Raises:
        DripfeedError: PLAN_LOCKED once the plan is approved, COMMIT_NOT_FOUND
            for an unknown id, PLAN_INVALID for an empty message.
    """
    if plan.approved:
        raise DripfeedError(
            code=ErrorCode.PLAN_LOCKED,
            context={"commit_id": edit.commit_id, "detail": "the plan is already approved"},
            step="S2.3",
        )
    message = edit.message.strip()
    if not message:
        raise plan_error(f"empty message for {edit.commit_id}", step="S2.3")
    commit = plan.reword(edit.commit_id, message)
    if commit is None:
        raise DripfeedError(
            code=ErrorCode.COMMIT_NOT_FOUND,
            context={"commit_id": edit.commit_id},
            step="S2.3",
        )
    return commit


@dataclass(frozen=True, slots=True)
class RunOutcome:
    """Where one invocation stopped and how far the plan has come."""

    phase: Phase
    """Last phase reached: PLANNING (dry run), REVIEW, EXECUTION or FINISH."""

    committed: int = 0
    """Commits created by this invocation."""

    skipped: int = 0
    """Commits abandoned by this invocation."""

    accounted: int = 0
    """Completed plus skipped, across all invocations."""

    total: int = 0
    stop_step: str | None = None
    """S3.B1 / S3.B2 when a budget ended the run early."""

    @property
    def finished(self) -> bool:
        return self.phase is Phase.FINISH


class ExecutionEngine:
    """Drives planning, review and execution against one target repository.

    Args:
        config: The invocation's configuration
        operator: Source of review and commit-gate decisions
        step_log: Step reporter (console + diagnostic file)
        verifier: Integrity checker
        clock: Monotonic seconds, used for the daily time budget
    """

    def __init__(
        self,
        config: DripfeedConfig,
        operator: OperatorDecisions | None = None,
        step_log: StepLog | None = None,
        verifier: IntegrityVerifier | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.step_log = step_log or StepLog()
        self.operator = operator or ConsoleOperator(self.step_log.console)
        self.verifier = verifier or IntegrityVerifier()
        self.clock = clock
        self.repo = GitRepository(config.target_dir)
        self.phase = Phase.SETUP
        self.rules = IgnoreRules()
        self.plan_store: PlanStore | None = None
        self.state_store: StateStore | None = None
        self._step = "MAIN"
        self._planned_this_run = False

    # =========================================================================
    # Entry point
    # =========================================================================

    def run(self) -> RunOutcome:
        """Run one invocation of the state machine."""
        try:
            self.setup()

            if self.config.dry_run:
                return self._dry_run()

            assert self.plan_store is not None
            if self.plan_store.exists():
                plan = self.plan_store.load()
            else:
                plan = self.planning()

            if not plan.approved:
                self.review(plan)
                if not plan.approved:
                    return self._outcome(Phase.REVIEW, plan)

            state = self._load_state(plan)
            if state.is_finished(plan):
                self.finish(plan, state)
                return self._outcome(Phase.FINISH, plan, state)

            return self.execute(plan, state)

        except DripfeedError as e:
            if e.step == "MAIN":
                e.at_step(self._step)
            self.phase = Phase.HALTED
            self.step_log.halt(e.step, e.message)
            raise
        except KeyboardInterrupt:
            self.phase = Phase.HALTED
            self.step_log.halt(self._step, "Interrupted by operator")
            raise
        finally:
            self.step_log.detach_file()

    def _at(self, step: str) -> None:
        self._step = step

    def _outcome(
        self,
        phase: Phase,
        plan: Plan,
        state: ExecutionState | None = None,
        *,
        committed: int = 0,
        skipped: int = 0,
        stop_step: str | None = None,
    ) -> RunOutcome:
        self.phase = phase
        return RunOutcome(
            phase=phase,
            committed=committed,
            skipped=skipped,
            accounted=state.accounted if state else 0,
            total=plan.total_commits,
            stop_step=stop_step,
        )

    # =========================================================================
    # Phase 0: Setup
    # =========================================================================

    def setup(self) -> None:
        """Check preconditions and compute ignore rules."""
        self.phase = Phase.SETUP
        self.step_log.phase("Setup")
        config = self.config

        self._at("S0.1")
        found = ".".join(str(part) for part in sys.version_info[:3])
        required = ".".join(str(part) for part in MIN_PYTHON)
        if sys.version_info[:2] < MIN_PYTHON:
            raise precondition_error(ErrorCode.RUNTIME_TOO_OLD, "S0.1", required=required, found=found)
        if not git_available():
            raise precondition_error(ErrorCode.GIT_UNAVAILABLE, "S0.1")
        self.step_log.done("S0.1", f"Python {found} OK (>={required}), git found")

        self._at("S0.2")
        source = config.source_dir
        if not source.is_dir() or not os.access(source, os.R_OK):
            raise precondition_error(ErrorCode.SOURCE_MISSING, "S0.2", path=str(source))
        self.step_log.done("S0.2", "Source directory verified")

        self._at("S0.3")
        self._check_target()

        self._at("S0.4")
        self.rules = load_ignore_rules(source, config.skip_patterns)
        self.step_log.done(
            "S0.4", f"Loaded {len(self.rules.gitignore_patterns)} rules from .gitignore files"
        )

        self._at("S0.5")
        self.step_log.done(
            "S0.5",
            f"Applied {len(self.rules.skip_patterns)} skip patterns "
            f"and {len(SECURITY_PATTERNS)} security patterns",
        )

        self._at("S0.6")
        for key, value in config.summary().items():
            self.step_log.info(f"  {key}: {value}")
        self.step_log.done("S0.6", "Config summarized")

    def _check_target(self) -> None:
        target = self.config.target_dir
        fresh = not target.exists() or (target.is_dir() and not any(target.iterdir()))

        if fresh and self.config.dry_run:
            self.step_log.done("S0.3", "Target not initialized (dry run)")
            return

        if fresh and not self.repo.is_repository():
            self.repo.init()
            self._open_storage()
            self.step_log.done("S0.3", f"Initialized empty repository at {target}")
            return

        if not self.repo.is_repository():
            raise precondition_error(ErrorCode.TARGET_NOT_REPOSITORY, "S0.3", path=str(target))
        if not self.repo.is_clean():
            raise precondition_error(ErrorCode.TARGET_DIRTY, "S0.3", path=str(target))
        self._open_storage()
        self.step_log.done("S0.3", "Target clean")

    def _open_storage(self) -> None:
        root = storage_dir(self.repo.git_dir())
        self.plan_store = PlanStore(root)
        self.state_store = StateStore(root)
        if not self.config.dry_run:
            self.step_log.attach_file(root / LOG_FILENAME)

    # =========================================================================
    # Phase 1: Planning
    # =========================================================================

    def build(self) -> Plan:
        """Scan, classify and bin-pack the source tree (S1.1 - S1.5)."""
        self.phase = Phase.PLANNING
        self.step_log.phase("Planning")
        config = self.config
        source = config.source_dir

        self._at("S1.1")
        try:
            files = [str(path) for path in scan_directory(source, self.rules)]
        except OSError as e:
            raise DripfeedError(
                code=ErrorCode.FILE_READ_FAILED,
                context={"path": e.filename or source, "detail": e.strerror or str(e)},
                cause=e,
                step="S1.1",
            ) from e
        if not files:
            raise plan_error(f"no files to replay under {source}", step="S1.1")
        self.step_log.done("S1.1", f"Scanned {len(files)} files after ignores")

        self._at("S1.2")
        relative = [Path(f).relative_to(source).as_posix() for f in files]
        clusters = cluster_by_feature(relative)
        self.step_log.done("S1.2", f"Identified {len(clusters)} feature clusters")

        self._at("S1.3")
        by_relative = categorize(relative)
        categorized = {f: by_relative[rel] for f, rel in zip(files, relative, strict=True)}
        counts = {c: 0 for c in CATEGORY_ORDER}
        for category in categorized.values():
            counts[category] += 1
        self.step_log.done(
            "S1.3",
            "Ordering computed: " + ", ".join(f"{c.value}={n}" for c, n in counts.items() if n),
        )

        self._at("S1.4")
        plan = build_plan(
            files,
            categorized,
            config.total_days,
            config.commits_per_day,
            config.max_files_per_commit,
            project_id=config.project_id,
            timezone=config.timezone,
            runtime_version=".".join(str(part) for part in sys.version_info[:3]),
            settings=build_settings(
                commits_per_day=config.commits_per_day,
                total_days=config.total_days,
                max_files_per_commit=config.max_files_per_commit,
                skip_patterns=config.skip_patterns,
                push_mode=config.push_mode,
                commit_mode=config.commit_mode,
                author_name=config.author_name,
                author_email=config.author_email,
            ),
        )
        self.step_log.done(
            "S1.4", f"Packed {plan.total_commits} commits over {len(plan.days)} days"
        )

        self._at("S1.5")
        self.step_log.done("S1.5", "Messages composed")
        return plan

    def planning(self) -> Plan:
        """Build the plan and persist it with a fresh state (S1.1 - S1.7)."""
        plan = self.build()
        assert self.plan_store is not None and self.state_store is not None

        self._at("S1.6")
        self.plan_store.save(plan)
        if self.state_store.exists():
            self.step_log.info("Existing execution state kept")
        else:
            self.state_store.save(ExecutionState.fresh(plan.project_id))
        self._planned_this_run = True
        self.step_log.done("S1.6", "Artifacts written")

        self._at("S1.7")
        self.step_log.info(f"Preview: {self.plan_store.preview_path}")
        self.step_log.done("S1.7", "Review invitation shown")
        return plan

    def _dry_run(self) -> RunOutcome:
        if self.plan_store is not None and self.plan_store.exists():
            plan = self.plan_store.load()
        else:
            plan = self.build()
        self.step_log.console.print(render_preview(plan), markup=False, highlight=False)
        self.step_log.done("S1.6", "Dry run: nothing written")
        return self._outcome(Phase.PLANNING, plan)

    # =========================================================================
    # Phase 2: Review
    # =========================================================================

    def review(self, plan: Plan) -> None:
        """Show the plan, take reword edits, then ask for approval."""
        self.phase = Phase.REVIEW
        self.step_log.phase("Review")
        assert self.plan_store is not None

        if self._planned_this_run and self.config.review_mode == "skip":
            self._at("S2.1")
            self.step_log.done("S2.1", "Review deferred; re-run to review and approve")
            return

        self._at("S2.1")
        self.step_log.console.print(plan_table(plan))
        self.step_log.done("S2.1", "Summary displayed")

        self._at("S2.2")
        edits = 0
        while (edit := self.operator.choose_edit(plan)) is not None:
            try:
                commit = apply_edit(plan, edit)
            except DripfeedError as e:
                self.step_log.info(f"Edit rejected: {e.message}")
                continue
            self.plan_store.save(plan)
            self.step_log.info(f"{commit.id} reworded: {commit.message}")
            edits += 1
        self.step_log.done("S2.2", f"{edits} edits captured")
        self.step_log.done("S2.3", "Edits validated")
        self.step_log.done("S2.4", "Patch applied" if edits else "No changes to apply")

        self._at("S2.5")
        if self.operator.confirm("Approve this plan and start executing?", default=False):
            plan.approved = True
            self.plan_store.save(plan)
            self.step_log.done("S2.5", "Plan approved")
        else:
            self.step_log.done("S2.5", "Plan left unapproved")

    # =========================================================================
    # Phase 3: Execution
    # =========================================================================

    def _load_state(self, plan: Plan) -> ExecutionState:
        assert self.state_store is not None
        state = self.state_store.load()
        if state is None:
            state = ExecutionState.fresh(plan.project_id)
            self.state_store.save(state)
        if state.project_id != plan.project_id:
            raise DripfeedError(
                code=ErrorCode.STATE_INVALID,
                context={"detail": f"state belongs to {state.project_id}, plan to {plan.project_id}"},
                step="S3.1",
            )
        return state.check_against(plan)

    def execute(self, plan: Plan, state: ExecutionState) -> RunOutcome:
        """Run the cursor's current day, within the time and quota budgets."""
        self.phase = Phase.EXECUTION
        self.step_log.phase("Execution")
        config = self.config

        self._at("S3.0")
        if not plan.approved:
            raise DripfeedError(code=ErrorCode.PLAN_NOT_APPROVED, step="S3.0")
        self.step_log.done("S3.0", "Plan loaded (approved)")

        self._at("S3.1")
        if not self.repo.is_clean():
            raise precondition_error(ErrorCode.TARGET_DIRTY, "S3.1", path=str(config.target_dir))
        self.step_log.done("S3.1", "Runtime checks passed")

        self._at("S3.2")
        started = self.clock()
        budget = config.daily_run_hours * 3600
        run_day = state.next.day
        self.step_log.done(
            "S3.2",
            f"Timer started for day {run_day} "
            f"(budget {config.daily_run_hours:g}h, quota {config.commits_per_day} commits)",
        )

        committed = skipped = 0
        stop_step: str | None = None

        while (commit := state.pending(plan)) is not None and commit.day == run_day:
            if committed + skipped >= config.commits_per_day:
                stop_step = "S3.B2"
                self.step_log.stop(stop_step, f"Daily quota of {config.commits_per_day} commits reached")
                break
            if self.clock() - started >= budget:
                stop_step = "S3.B1"
                self.step_log.stop(stop_step, f"Time budget of {config.daily_run_hours:g}h used up")
                break

            if self._run_commit(plan, state, commit):
                committed += 1
            else:
                skipped += 1

        if committed and config.push_mode == "auto":
            self._push()
        elif committed:
            self.step_log.done("S3.ED1", "Push skipped (manual)")

        if stop_step is None:
            self.step_log.done("S3.ED2", f"Day {run_day} complete")

        self.step_log.info(f"Progress: {state.accounted}/{plan.total_commits} commits")

        if state.is_finished(plan):
            self.finish(plan, state)
            return self._outcome(
                Phase.FINISH, plan, state, committed=committed, skipped=skipped
            )
        return self._outcome(
            Phase.EXECUTION, plan, state, committed=committed, skipped=skipped, stop_step=stop_step
        )

    def _run_commit(self, plan: Plan, state: ExecutionState, commit: PlannedCommit) -> bool:
        """Copy, verify, stage, gate, commit, record. False when skipped."""
        assert self.state_store is not None
        config = self.config
        target = config.target_dir

        self._at("S3.C1")
        pairs: list[tuple[Path, str]] = []
        for path in commit.files:
            source = Path(path)
            try:
                relative = source.relative_to(config.source_dir).as_posix()
            except ValueError as e:
                raise plan_error(
                    f"{path} is outside the source directory {config.source_dir}", step="S3.C1"
                ) from e
            pairs.append((source, relative))
        relatives = [relative for _, relative in pairs]
        self.step_log.done("S3.C1", f"{commit.id}: file list prepared ({len(pairs)} files)")

        self._at("S3.C2")
        for source, relative in pairs:
            try:
                copy_source_file(source, target / relative)
            except OSError as e:
                raise DripfeedError(
                    code=ErrorCode.FILE_COPY_FAILED,
                    context={"path": relative, "detail": str(e)},
                    cause=e,
                    step="S3.C2",
                ) from e
        self.step_log.done("S3.C2", "Files copied")

        self._at("S3.C3")
        checksums: dict[str, str] = {}
        for source, relative in pairs:
            try:
                result = self.verifier.compare(source, target / relative)
            except OSError as e:
                raise DripfeedError(
                    code=ErrorCode.FILE_READ_FAILED,
                    context={"path": relative, "detail": str(e)},
                    cause=e,
                    step="S3.C3",
                ) from e
            if not result.matches:
                raise DripfeedError(
                    code=ErrorCode.CHECKSUM_MISMATCH,
                    context={"path": relative, "expected": result.expected, "actual": result.actual},
                    step="S3.C3",
                )
            checksums[relative] = result.expected
        self.step_log.done("S3.C3", "Integrity verified")

        self._at("S3.C4")
        self.repo.add(relatives)
        self.step_log.done("S3.C4", "Files staged")

        recovered = self._unrecorded_head(state, commit)
        if recovered is None and config.commit_mode == "manual":
            self._at("S3.C4a")
            if not self.operator.confirm_commit(commit, relatives):
                self._abandon(relatives)
                state.skipped.append(SkippedCommit(id=commit.id, day=commit.day, skipped_at=utc_now()))
                state.next = state.next.advance(plan)
                self.state_store.save(state)
                self.step_log.done("S3.C4a", f"Skipped {commit.id}")
                return False

        self._at("S3.C5")
        if recovered is not None:
            sha = recovered
            self.step_log.done("S3.C5", f"Commit already in history ({commit.id} {sha[:7]})")
        else:
            sha = self.repo.commit(commit.message, config.author)
            self.step_log.done("S3.C5", f"Commit created ({commit.id} {sha[:7]})")

        self._at("S3.C6")
        state.completed.append(CompletedCommit(
            id=commit.id,
            day=commit.day,
            finished_at=utc_now(),
            commit_sha=sha,
            file_checksums=checksums,
        ))
        state.source_checksums.update(checksums)
        state.next = state.next.advance(plan)
        self.state_store.save(state)
        self.step_log.done("S3.C6", f"State updated ({state.accounted}/{plan.total_commits})")
        return True

    def _unrecorded_head(self, state: ExecutionState, commit: PlannedCommit) -> str | None:
        """HEAD's sha when HEAD is ``commit`` but the state save after it was lost.

        Copying the same bytes again then stages nothing, HEAD carries the
        commit's message and no recorded commit points at it.
        """
        if self.repo.has_staged_changes() or not self.repo.has_head():
            return None
        sha = self.repo.head_sha()
        if sha in {c.commit_sha for c in state.completed}:
            return None
        if self.repo.head_message() != commit.message.strip():
            return None
        logger.info("HEAD %s is %s, recorded after an interrupted run", sha[:7], commit.id)
        return sha

    def _abandon(self, relatives: list[str]) -> None:
        """Return the working tree to its committed state after a skip."""
        self.repo.unstage(relatives)
        tracked = [rel for rel in relatives if self.repo.is_tracked(rel)]
        self.repo.restore(tracked)
        target = self.config.target_dir
        for rel in relatives:
            if rel in tracked:
                continue
            try:
                (target / rel).unlink(missing_ok=True)
                _prune_empty_parents(target / rel, target)
            except OSError as e:
                raise DripfeedError(
                    code=ErrorCode.FILE_WRITE_FAILED,
                    context={"path": rel, "detail": str(e)},
                    cause=e,
                    step="S3.C4a",
                ) from e

    def _push(self) -> None:
        self._at("S3.ED1")
        if not self.repo.has_remote():
            self.step_log.done("S3.ED1", "Push skipped (no remote)")
            return
        self.repo.push()
        self.step_log.done("S3.ED1", "Pushed")

    # =========================================================================
    # Phase 4: Finish
    # =========================================================================

    def finish(self, plan: Plan, state: ExecutionState) -> None:
        self.phase = Phase.FINISH
        self.step_log.phase("Finish")

        self._at("S4.1")
        if not state.is_finished(plan):
            raise DripfeedError(
                code=ErrorCode.STATE_INVALID,
                context={"detail": f"{state.accounted}/{plan.total_commits} commits accounted for"},
                step="S4.1",
            )
        self.step_log.done(
            "S4.1",
            f"All commits executed ({len(state.completed)} committed, {len(state.skipped)} skipped)",
        )

        self._at("S4.2")
        if self.config.push_mode == "manual" and self.repo.has_remote():
            self.step_log.info(f"Push when ready: git -C {self.config.target_dir} push")
            self.step_log.done("S4.2", "Operator push reminder shown")
        else:
            self.step_log.done("S4.2", "No operator push needed")

        self._at("S4.3")
        self.step_log.done("S4.3", "Closeout announced")


def plan_table(plan: Plan) -> Table:
    """Per-commit overview used by review and ``status``."""
    table = Table(title=f"Commit plan {plan.project_id}", show_lines=False)
    table.add_column("Day", justify="right")
    table.add_column("Id")
    table.add_column("Type")
    table.add_column("Files", justify="right")
    table.add_column("Message")
    for commit in plan.commits():
        table.add_row(
            str(commit.day), commit.id, commit.type, str(len(commit.files)), Text(commit.message)
        )
    return table


def _prune_empty_parents(path: Path, stop: Path) -> None:
    parent = path.parent
    while parent != stop and parent.is_dir() and not any(parent.iterdir()):
        parent.rmdir()
        parent = parent.parent
