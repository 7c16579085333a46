"""Exam constants shared by the UI and the scoring core. No UI."""
# Scoring: correct +points, incorrect 0, unanswered 0 (recorded as -1)
# Correct index lookup order for stored questions: correctIndex, correctindex, correct_answer_index

UNANSWERED_INDEX = -1
DEFAULT_POINTS = 1
MIN_OPTIONS = 2
CORRECT_INDEX_KEYS = ("correctIndex", "correctindex", "correct_answer_index")
POLL_INTERVAL_SECONDS = 5.0
NO_QUESTIONS_MESSAGE = "This exam has no online questions yet."
