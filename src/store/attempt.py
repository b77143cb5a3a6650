"""
Attempt Manager: the in-progress attempt and its draft answers.

Invariant: while an attempt is held, the answer map has exactly one entry per
question of that attempt, seeded empty by ``start_attempt``.

Attempt status is whatever the server reported. The client never derives
``expired`` from elapsed time; it only shows what it holds and refreshes
through remote calls.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from loguru import logger

from src.core.models import AnswerInput, AttemptBundle
from src.store.section import CommitCallback, StateSection


def _empty_answers() -> Mapping[int, AnswerInput]:
    return MappingProxyType({})


@dataclass(frozen=True)
class AttemptState:
    current: AttemptBundle | None = None
    answers_by_question_id: Mapping[int, AnswerInput] = field(default_factory=_empty_answers)
    submit_in_flight: bool = False
    error: str | None = None

    @property
    def answers(self) -> list[AnswerInput]:
        return list(self.answers_by_question_id.values())


class AttemptManager(StateSection[AttemptState]):
    name = "attempt"

    def __init__(self, initial: AttemptState | None = None, on_commit: CommitCallback | None = None):
        super().__init__(initial or AttemptState(), on_commit)

    def start_attempt(self, bundle: AttemptBundle) -> None:
        """
        Replace the held attempt and reseed every draft.

        Answers from any previous attempt are discarded, even when the bundle
        resumes the same attempt id.
        """
        seeded = {question_id: AnswerInput.empty(question_id) for question_id in bundle.question_ids}
        self._update(
            current=bundle,
            error=None,
            answers_by_question_id=MappingProxyType(seeded),
        )
        logger.info(
            f"Attempt {bundle.attempt.id} started for test {bundle.test.id} "
            f"({len(seeded)} questions)"
        )

    def set_answer(self, answer: AnswerInput) -> None:
        """Shallow-merge a partial answer over the existing draft for its question."""
        answers = dict(self._state.answers_by_question_id)
        existing = answers.get(answer.question_id)
        if existing is None:
            logger.warning(f"No seeded draft for question {answer.question_id}; creating one")
            existing = AnswerInput(question_id=answer.question_id)
        answers[answer.question_id] = existing.merged_with(answer)
        self._update(answers_by_question_id=MappingProxyType(answers))

    def set_submit_in_flight(self, in_flight: bool) -> None:
        self._update(submit_in_flight=in_flight)

    def set_error(self, message: str | None) -> None:
        self._update(error=message)

    def clear(self) -> None:
        """Reset to the empty initial shape."""
        self._set(AttemptState())
