from __future__ import annotations
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .types import Question, Scores
from . import config

_BUCKET = {"MCQ": "mcq", "SUBJECTIVE": "subjective", "CODING": "coding"}


def _is_blank(value: Any) -> bool:
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return False
    return not value


def _score_mcq(q: Question, value: Any) -> Tuple[float, Optional[str]]:
    # exact token match, no case folding
    if q.correct_answer is not None and value == q.correct_answer:
        return float(q.marks), None
    return 0.0, None


def _score_subjective(q: Question, value: Any) -> Tuple[float, Optional[str]]:
    if _is_blank(value):
        return 0.0, None
    return float(q.marks) * config.SUBJECTIVE_FALLBACK_FRACTION, config.SUBJECTIVE_REVIEW_NOTE


def _score_coding(q: Question, value: Any) -> Tuple[float, Optional[str]]:
    if _is_blank(value):
        return 0.0, None
    return float(q.marks) * config.CODING_FALLBACK_FRACTION, config.CODING_REVIEW_NOTE


def score_question(q: Question, value: Any) -> Tuple[float, Optional[str]]:
    """
    Returns (points, note). A note is set only when the points are a
    fallback rather than an authoritative grade.
    """
    t = str(q.type).upper()
    if t == "MCQ":
        return _score_mcq(q, value)
    if t == "SUBJECTIVE":
        return _score_subjective(q, value)
    if t == "CODING":
        return _score_coding(q, value)
    return 0.0, None


def score_local(questions: List[Question], answers: Mapping[str, Any]) -> Tuple[Scores, Dict[str, str]]:
    """Local scoring of a finished answer record: per-type scores plus evaluation notes."""
    buckets = {"mcq": 0.0, "subjective": 0.0, "coding": 0.0}
    notes: Dict[str, str] = {}
    for q in questions:
        if q.id not in answers:
            continue
        points, note = score_question(q, answers[q.id])
        bucket = _BUCKET.get(str(q.type).upper())
        if bucket is None:
            continue
        buckets[bucket] += points
        if note:
            notes[q.id] = note
    return Scores.itemize(buckets["mcq"], buckets["subjective"], buckets["coding"]), notes


def answered_count(questions: List[Question], answers: Mapping[str, Any]) -> int:
    """Questions with an entry in the answer record, empty entries included."""
    return sum(1 for q in questions if q.id in answers)
