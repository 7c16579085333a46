"""
Scoring Engine: grades a submitted online test against its answer key.
Questions are joined to answers by position; there is no per-question id.
"""
import logging
import sys
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Sequence, Union

_root = Path(__file__).resolve().parent.parent
if str(_root) not in sys.path:
    sys.path.insert(0, str(_root))

from engine import UNANSWERED_INDEX
from src.questions import Question

logger = logging.getLogger(__name__)

Number = Union[int, float]


@dataclass(frozen=True)
class AnswerRecord:
    """One graded question, as persisted on the attempt."""
    question_index: int
    selected_index: int
    correct_index: int
    is_correct: bool
    points: Number

    def as_dict(self) -> Dict:
        return asdict(self)


@dataclass(frozen=True)
class ExamResult:
    score: Number = 0
    total: Number = 0
    answers: List[AnswerRecord] = field(default_factory=list)

    @property
    def percentage(self) -> float:
        return float(self.score) / float(self.total) * 100 if self.total else 0.0

    def as_dict(self) -> Dict:
        return {
            "score": self.score,
            "total": self.total,
            "answers": [a.as_dict() for a in self.answers],
        }


def score_attempt(questions: Sequence[Question], answers: Mapping[int, int]) -> ExamResult:
    """
    Grade `answers` ({question position: selected option index}) against `questions`.

    Every question counts towards the total. A position missing from `answers`
    is recorded with selected index -1 and is always incorrect.

    Args:
        questions: Normalized, displayable questions in stored order
        answers: Submitted selections keyed by zero-based position

    Returns:
        ExamResult with score, total and one AnswerRecord per question
    """
    score = 0
    total = 0
    records = []
    for idx, q in enumerate(questions):
        total += q.points
        selected = answers.get(idx, UNANSWERED_INDEX)
        is_correct = selected == q.correct_index
        if is_correct:
            score += q.points
        records.append(AnswerRecord(
            question_index=idx,
            selected_index=selected,
            correct_index=q.correct_index,
            is_correct=is_correct,
            points=q.points,
        ))
    logger.debug("Scored %d questions: %s/%s", len(records), score, total)
    return ExamResult(score=score, total=total, answers=records)
