from __future__ import annotations
from datetime import date, datetime, time, timezone
from typing import List, Optional
from .types import Job, Question, QUESTION_TYPES, AssessmentDataError


def question_problems(q: Question) -> List[str]:
    out: List[str] = []
    t = str(q.type).upper()
    if t not in QUESTION_TYPES:
        out.append(f"{q.id}: unknown type {q.type!r}")
        return out
    try:
        if float(q.marks) <= 0: out.append(f"{q.id}: marks must be positive")
    except (TypeError, ValueError):
        out.append(f"{q.id}: marks must be a number")
    if t == "MCQ":
        if not q.options: out.append(f"{q.id}: MCQ needs options")
        if q.correct_answer is None: out.append(f"{q.id}: MCQ needs a correct answer")
    elif q.correct_answer is not None or q.options:
        out.append(f"{q.id}: options/correct answer only allowed on MCQ")
    if q.rubric is not None and t != "SUBJECTIVE":
        out.append(f"{q.id}: rubric only allowed on SUBJECTIVE")
    if q.test_cases is not None and t != "CODING":
        out.append(f"{q.id}: test cases only allowed on CODING")
    return out


def require_assessable(job: Optional[Job]) -> Job:
    """Refuse to score an undefined assessment: missing job, no questions, or malformed questions."""
    if job is None:
        raise AssessmentDataError("job not found")
    if not job.questions:
        raise AssessmentDataError(f"job {job.id} has no questions")
    seen: set[str] = set()
    problems: List[str] = []
    for q in job.questions:
        if q.id in seen:
            problems.append(f"{q.id}: duplicate question id")
        seen.add(q.id)
        problems.extend(question_problems(q))
    if problems:
        raise AssessmentDataError("; ".join(problems))
    return job


def is_open(job: Job, now: Optional[datetime] = None) -> bool:
    """Jobs accept candidates until 23:59:59 of the deadline day (UTC)."""
    if not job.deadline:
        return True
    try:
        day = date.fromisoformat(str(job.deadline)[:10])
    except ValueError:
        return True
    closes = datetime.combine(day, time(23, 59, 59, 999999), tzinfo=timezone.utc)
    return (now or datetime.now(timezone.utc)) <= closes
