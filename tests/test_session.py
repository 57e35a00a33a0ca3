from __future__ import annotations

import json
import threading

import httpx
import pytest

from assess_core.engine import (
    AWAITING_SUBMISSION,
    EVALUATING,
    FINALIZED,
    AssessmentSession,
)
from assess_core.types import Application, AssessmentDataError, SessionClosedError

from tests.conftest import build_job, json_response, mcq, mock_evaluator


def _session(job, application, clock, evaluator=None, candidate_id=None):
    return AssessmentSession(job, application, evaluator=evaluator, candidate_id=candidate_id, clock=clock)


def test_starts_awaiting_and_counts_down(job, application, clock):
    sess = _session(job, application, clock)
    assert sess.state == AWAITING_SUBMISSION
    assert sess.seconds_remaining() == 30 * 60
    clock.advance(61)
    assert sess.seconds_remaining() == 30 * 60 - 61


def test_finish_without_evaluator_uses_local_scoring(job, application, clock):
    sess = _session(job, application, clock)
    sess.answer("q1", "B")
    sess.answer("q2", "A")
    clock.advance(5 * 60)
    res = sess.submit("finish")
    assert sess.state == FINALIZED
    assert res.scores.total == 1
    assert res.status == "QUALIFIED"
    assert res.time_taken_minutes == 5
    assert application.status == "COMPLETED"
    assert application.result is res


def test_second_finish_is_a_noop(job, application, clock):
    sess = _session(job, application, clock)
    sess.answer("q1", "B")
    first = sess.submit("finish")
    second = sess.submit("timeout")
    assert second is first
    assert application.result is first


def test_answers_rejected_once_submitted(job, application, clock):
    sess = _session(job, application, clock)
    sess.submit()
    with pytest.raises(SessionClosedError):
        sess.answer("q1", "B")
    with pytest.raises(SessionClosedError):
        sess.view("q1")


def test_unknown_question_is_rejected(job, application, clock):
    sess = _session(job, application, clock)
    with pytest.raises(AssessmentDataError):
        sess.answer("nope", "B")


def test_timer_expiry_submits(job, application, clock):
    sess = _session(job, application, clock)
    sess.answer("q1", "B")
    clock.advance(29 * 60)
    assert sess.expire_if_due() is None
    clock.advance(61)
    res = sess.expire_if_due()
    assert res is not None
    assert res.time_taken_minutes == 30
    assert sess.state == FINALIZED


def test_remote_success_is_authoritative(job, application, clock):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        return json_response({
            "totalScore": 0,
            "qualified": False,
            "timeTakenMinutes": 7,
            "fraudAnalysis": {"riskLevel": "low", "recommendation": "ok"},
        })

    sess = _session(job, application, clock, evaluator=mock_evaluator(handler), candidate_id="cand-9")
    sess.view("q1")
    clock.advance(12)
    sess.answer("q1", "B")
    res = sess.submit()
    assert res.source == "remote"
    assert res.scores.total == 0
    assert res.status == "DISQUALIFIED"
    assert res.time_taken_minutes == 7
    assert seen["body"]["candidateId"] == "cand-9"
    assert seen["body"]["answers"] == [{"questionId": "q1", "answerText": "B", "timeTakenSeconds": 12}]


@pytest.mark.parametrize(
    "handler",
    [
        lambda req: httpx.Response(503),
        lambda req: json_response({"unexpected": True}),
        lambda req: httpx.Response(200, content=b"<html>"),
        lambda req: httpx.Response(200, content=b'{"totalScore": NaN, "qualified": true}'),
        lambda req: httpx.Response(200, content=b'{"totalScore": Infinity, "qualified": true}'),
        lambda req: httpx.Response(200, content=b'{"totalScore": 3, "qualified": true, "timeTakenMinutes": NaN}'),
    ],
)
def test_remote_failure_falls_back_to_local(job, application, clock, handler):
    sess = _session(job, application, clock, evaluator=mock_evaluator(handler), candidate_id="cand-1")
    sess.answer("q1", "B")
    sess.answer("q2", "A")
    res = sess.submit()
    assert sess.state == FINALIZED
    assert res.source == "local"
    assert res.scores.to_dict() == {"mcq": 1, "subjective": 0, "coding": 0, "total": 1}


def test_network_error_falls_back_to_local(job, application, clock):
    def handler(request):
        raise httpx.ConnectError("unreachable", request=request)

    sess = _session(job, application, clock, evaluator=mock_evaluator(handler), candidate_id="cand-1")
    sess.answer("q1", "B")
    assert sess.submit().source == "local"


def test_no_candidate_id_skips_remote(job, application, clock):
    calls = []

    def handler(request):
        calls.append(request)
        return json_response({"totalScore": 99, "qualified": True})

    sess = _session(job, application, clock, evaluator=mock_evaluator(handler))
    assert sess.submit().source == "local"
    assert calls == []


def test_start_registers_and_tolerates_registration_failure(job, application, clock):
    ok = AssessmentSession.start(
        job, application,
        evaluator=mock_evaluator(lambda req: json_response({"candidateId": "c-42"})),
        name="Ada", email="ada@example.com", clock=clock,
    )
    assert ok.candidate_id == "c-42"

    other = Application(id="app-2", job_id="job-1", student_id="stu-2")
    failed = AssessmentSession.start(
        job, other, evaluator=mock_evaluator(lambda req: httpx.Response(500)), clock=clock,
    )
    assert failed.candidate_id is None
    assert failed.state == AWAITING_SUBMISSION


def test_start_fetches_questions_when_job_has_none(application, clock):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/questions"):
            return json_response([{"id": "g1", "type": "mcq", "question_text": "2+2?",
                                   "options": {"A": "3", "B": "4"}, "correct_answer": "b"}])
        return json_response({"candidateId": "c-1"})

    sess = AssessmentSession.start(build_job([]), application, evaluator=mock_evaluator(handler), clock=clock)
    assert [q.id for q in sess.job.questions] == ["g1"]
    assert sess.job.questions[0].correct_answer == "B"


def test_start_refuses_job_without_questions(application, clock):
    with pytest.raises(AssessmentDataError):
        AssessmentSession.start(build_job([]), application, clock=clock)
    with pytest.raises(AssessmentDataError):
        AssessmentSession.start(None, application, clock=clock)


def test_concurrent_triggers_produce_one_result(application, clock):
    gate = threading.Event()
    calls = []

    def handler(request):
        calls.append(request)
        gate.wait(timeout=2)
        return json_response({"totalScore": 1, "qualified": True})

    job = build_job([mcq("q1")])
    sess = _session(job, application, clock, evaluator=mock_evaluator(handler), candidate_id="c-1")
    sess.answer("q1", "B")

    results = []
    first = threading.Thread(target=lambda: results.append(sess.submit("finish")))
    first.start()
    while sess.state == AWAITING_SUBMISSION:
        pass
    assert sess.state == EVALUATING
    assert sess.submit("timeout") is None, "losing trigger is dropped while evaluating"
    gate.set()
    first.join(timeout=5)

    assert len(calls) == 1
    assert results[0] is application.result
    assert application.status == "COMPLETED"
