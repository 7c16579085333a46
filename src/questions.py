"""
Question normalization and question bank validation.

Stored exam records are loosely typed: older records spell the correct answer
index three different ways and carry points as strings, zeros or nothing at
all. `normalize_question` is the only place that tolerates this; everything
downstream works on `Question`.
"""
import logging
import math
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional, Union

_root = Path(__file__).resolve().parent.parent
if str(_root) not in sys.path:
    sys.path.insert(0, str(_root))

from engine import CORRECT_INDEX_KEYS, DEFAULT_POINTS, MIN_OPTIONS

logger = logging.getLogger(__name__)

Number = Union[int, float]


@dataclass(frozen=True)
class Question:
    """Canonical question. Passing normalization does not make it displayable."""
    text: str
    options: List[str] = field(default_factory=list)
    correct_index: Optional[Number] = None
    points: Number = DEFAULT_POINTS


# ============= Normalizer =============

def _coerce_number(value: Any) -> Optional[Number]:
    """int/float/numeric string -> number (int when integral). Anything else -> None."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        n = value
    elif isinstance(value, str):
        s = value.strip()
        if not s:
            return None
        try:
            n = float(s)
        except ValueError:
            return None
    else:
        return None
    if isinstance(n, float):
        if not math.isfinite(n):
            return n
        if n.is_integer():
            return int(n)
    return n


def _legacy_correct_index(raw: Mapping) -> Any:
    for key in CORRECT_INDEX_KEYS:
        value = raw.get(key)
        if value is not None:
            return value
    return None


def _clean_options(options: Any) -> List[str]:
    if not isinstance(options, (list, tuple)):
        return []
    cleaned = []
    for opt in options:
        # null entries are dropped, never rendered as "None"
        if opt is None:
            continue
        s = str(opt).strip()
        if s:
            cleaned.append(s)
    return cleaned


def _display_points(value: Any) -> Number:
    # 0 counts as absent
    n = _coerce_number(value)
    if n is None or not math.isfinite(n) or n <= 0:
        return DEFAULT_POINTS
    return n


def normalize_question(raw: Any) -> Question:
    """Convert a stored question record into a `Question`. Never raises."""
    if not isinstance(raw, Mapping):
        raw = {}
    text = raw.get("text")
    return Question(
        text=str(text if text is not None else "").strip(),
        options=_clean_options(raw.get("options")),
        correct_index=_coerce_number(_legacy_correct_index(raw)),
        points=_display_points(raw.get("points")),
    )


def _is_integer(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def is_displayable(question: Question) -> bool:
    """True when a candidate can see and answer the question."""
    return (
        bool(question.text)
        and len(question.options) >= MIN_OPTIONS
        and _is_integer(question.correct_index)
        and 0 <= question.correct_index < len(question.options)
    )


def _raw_questions(exam: Mapping) -> list:
    questions = exam.get("questions") if isinstance(exam, Mapping) else None
    return questions if isinstance(questions, list) else []


def display_questions(exam: Mapping) -> List[Question]:
    """Normalized, displayable questions of an exam in stored order."""
    raw = _raw_questions(exam)
    questions = [normalize_question(q) for q in raw]
    shown = [q for q in questions if is_displayable(q)]
    if len(shown) < len(raw):
        logger.debug("Exam %s: %d of %d stored questions hidden as malformed",
                     exam.get("id"), len(raw) - len(shown), len(raw))
    return shown


def has_online_exam(exam: Mapping) -> bool:
    return len(_raw_questions(exam)) > 0


# ============= Validator (authoring path) =============

class QuestionBankError(ValueError):
    """First defect found in an authored question bank. `index` is zero-based."""

    reason = "is invalid"

    def __init__(self, index: int):
        self.index = index
        super().__init__(f"Question {index + 1}: {self.reason}.")


class MissingText(QuestionBankError):
    reason = "question text is required"


class TooFewOptions(QuestionBankError):
    reason = f"at least {MIN_OPTIONS} options are required"


class InvalidCorrectIndex(QuestionBankError):
    reason = "correct answer must point to one of the options"


class InvalidPoints(QuestionBankError):
    reason = "points must be a number greater than 0"


def _authored_integer(value: Any) -> bool:
    if _is_integer(value):
        return True
    return isinstance(value, float) and value.is_integer()


def _authored_correct_index(question: Mapping) -> Any:
    value = question.get("correctIndex")
    return value if value is not None else question.get("correct_index")


def is_blank_question_bank(questions: Iterable[Mapping]) -> bool:
    """True when no question has text or options (an empty bank is blank)."""
    for q in questions:
        if str(q.get("text") or "").strip():
            return False
        if q.get("options"):
            return False
    return True


def validate_question_bank(questions: Iterable[Mapping]) -> None:
    """Raise the first `QuestionBankError` found, checking questions in order."""
    for i, q in enumerate(questions):
        if not str(q.get("text") or "").strip():
            raise MissingText(i)
        options = q.get("options")
        if not isinstance(options, (list, tuple)) or len(options) < MIN_OPTIONS:
            raise TooFewOptions(i)
        correct = _authored_correct_index(q)
        if not _authored_integer(correct) or not (0 <= correct < len(options)):
            raise InvalidCorrectIndex(i)
        points = q.get("points")
        if (isinstance(points, bool) or not isinstance(points, (int, float))
                or not math.isfinite(points) or points <= 0):
            raise InvalidPoints(i)


def parse_options(text: str) -> List[str]:
    """One option per line; blank lines dropped."""
    return [line.strip() for line in (text or "").splitlines() if line.strip()]


def build_question_bank(questions: List[Mapping]) -> List[dict]:
    """
    Validate authored questions and return them in the stored shape.

    A blank bank saves as no questions at all, so an exam can exist without
    an online test.
    """
    questions = list(questions)
    if is_blank_question_bank(questions):
        return []
    validate_question_bank(questions)
    return [
        {
            "text": str(q.get("text")).strip(),
            "options": [str(o).strip() for o in q.get("options")],
            "correctIndex": int(_authored_correct_index(q)),
            "points": q.get("points"),
        }
        for q in questions
    ]
