from __future__ import annotations

import json

import httpx
import pytest

from assess_core.evaluator_client import EvaluatorClient
from assess_core.types import Application, Job, Question, TestCase


def mcq(qid: str, correct: str = "B", marks: float = 1) -> Question:
    return Question(
        id=qid,
        type="MCQ",
        text=f"MCQ {qid}",
        marks=marks,
        options={"A": "alpha", "B": "beta", "C": "gamma", "D": "delta"},
        correct_answer=correct,
    )


def subjective(qid: str, marks: float = 3) -> Question:
    return Question(id=qid, type="SUBJECTIVE", text=f"Explain {qid}", marks=marks, rubric="Accuracy and relevance.")


def coding(qid: str, marks: float = 5) -> Question:
    return Question(
        id=qid,
        type="CODING",
        text=f"Implement {qid}",
        marks=marks,
        test_cases=[TestCase(input="1", expected_output="2")],
    )


def build_job(
    questions: list[Question] | None = None,
    *,
    job_id: str = "job-1",
    threshold: float = 1,
    duration_minutes: int = 30,
) -> Job:
    """Deterministic job for tests; defaults to two 1-mark MCQs keyed 'B'."""

    return Job(
        id=job_id,
        title="Backend Engineer",
        duration_minutes=duration_minutes,
        threshold=threshold,
        questions=questions if questions is not None else [mcq("q1"), mcq("q2")],
    )


def mock_evaluator(handler, *, base_url: str = "http://evaluator.test") -> EvaluatorClient:
    return EvaluatorClient(base_url, timeout=1.0, transport=httpx.MockTransport(handler))


def json_response(payload: object, status: int = 200) -> httpx.Response:
    return httpx.Response(status, content=json.dumps(payload).encode(), headers={"Content-Type": "application/json"})


class FakeClock:
    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def job() -> Job:
    return build_job()


@pytest.fixture
def application() -> Application:
    return Application(id="app-1", job_id="job-1", student_id="stu-1")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
