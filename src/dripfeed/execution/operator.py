"""Operator decisions.

Every interactive prompt the engine needs goes through one injected
``OperatorDecisions`` object, so the state machine runs headlessly with a
``ScriptedOperator`` in tests and in automation.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from rich.console import Console
from rich.prompt import Confirm, Prompt
from rich.text import Text

from dripfeed.planning.types import Plan, PlannedCommit


@dataclass(frozen=True, slots=True)
class ReviewEdit:
    """Reword one commit's message by id."""

    commit_id: str
    message: str


@runtime_checkable
class OperatorDecisions(Protocol):
    """Source of operator answers for review and the commit gate."""

    def confirm(self, question: str, default: bool = False) -> bool:
        """Answer a yes/no question."""
        ...

    def choose_edit(self, plan: Plan) -> ReviewEdit | None:
        """Offer one review edit; None when the operator is done editing."""
        ...

    def confirm_commit(self, commit: PlannedCommit, files: Sequence[str]) -> bool:
        """Manual commit gate. True proceeds, False skips the commit."""
        ...


class ConsoleOperator:
    """Interactive operator backed by rich prompts."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console()

    def confirm(self, question: str, default: bool = False) -> bool:
        return Confirm.ask(question, default=default, console=self.console)

    def choose_edit(self, plan: Plan) -> ReviewEdit | None:
        if not Confirm.ask("Reword a commit message?", default=False, console=self.console):
            return None
        commit_id = Prompt.ask("Commit id (e.g. d1-c2)", console=self.console).strip()
        current = plan.get_commit(commit_id)
        message = Prompt.ask(
            "New message",
            default=current.message if current else None,
            console=self.console,
        )
        return ReviewEdit(commit_id=commit_id, message=(message or "").strip())

    def confirm_commit(self, commit: PlannedCommit, files: Sequence[str]) -> bool:
        self.console.print(Text.assemble("\n", (commit.id, "bold"), " ", commit.message))
        for path in files:
            self.console.print(Text.assemble("  ", ("+", "dim"), " ", path))
        choice = Prompt.ask(
            "Proceed with this commit?",
            choices=["proceed", "skip"],
            default="proceed",
            console=self.console,
        )
        return choice == "proceed"


class ScriptedOperator:
    """Replays pre-recorded answers; raises when the script runs out.

    Args:
        confirms: Answers for ``confirm`` in call order
        edits: Edits for ``choose_edit``; once exhausted, editing ends
        commit_answers: Answers for the commit gate; ``default_commit`` after that
        default_commit: Gate answer once ``commit_answers`` is exhausted
    """

    def __init__(
        self,
        confirms: Iterable[bool] = (),
        edits: Iterable[ReviewEdit] = (),
        commit_answers: Iterable[bool] = (),
        default_commit: bool = True,
    ):
        self._confirms = deque(confirms)
        self._edits = deque(edits)
        self._commit_answers = deque(commit_answers)
        self.default_commit = default_commit
        self.questions: list[str] = []
        self.gated: list[str] = []

    def confirm(self, question: str, default: bool = False) -> bool:
        self.questions.append(question)
        if not self._confirms:
            raise LookupError(f"No scripted answer for: {question}")
        return self._confirms.popleft()

    def choose_edit(self, plan: Plan) -> ReviewEdit | None:
        return self._edits.popleft() if self._edits else None

    def confirm_commit(self, commit: PlannedCommit, files: Sequence[str]) -> bool:
        self.gated.append(commit.id)
        if self._commit_answers:
            return self._commit_answers.popleft()
        return self.default_commit
