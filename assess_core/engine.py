# assess_core/engine.py
from __future__ import annotations
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional
import logging, threading, time

from .types import (
    AnswerSnapshot,
    Application,
    AssessmentDataError,
    AssessmentResult,
    EvaluationSource,
    Job,
    LocalSource,
    RemoteSource,
    Scores,
    SessionClosedError,
)
from .scoring import score_local, answered_count
from .integrity import detect_guesswork, from_fraud_analysis
from .evaluator_client import EvaluatorClient, EvaluatorError
from .validators import require_assessable


log = logging.getLogger(__name__)

AWAITING_SUBMISSION = "AWAITING_SUBMISSION"
EVALUATING = "EVALUATING"
FINALIZED = "FINALIZED"

SUBMIT_TRIGGERS = ("finish", "last_question", "timeout")


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _local_time_taken(job: Job, seconds_remaining: int) -> int:
    remaining = max(0, int(seconds_remaining))
    return max(0, int(job.duration_minutes) - remaining // 60)


class AnswerCollector:
    """One response per question plus when the candidate first engaged it."""

    def __init__(self, question_ids: List[str], clock: Callable[[], float] = time.time):
        self._ids = set(question_ids)
        self._clock = clock
        self.answers: Dict[str, Any] = {}
        self.first_engaged: Dict[str, float] = {}
        self.last_answered: Dict[str, float] = {}

    def _check(self, question_id: str) -> None:
        if question_id not in self._ids:
            raise AssessmentDataError(f"unknown question {question_id}")

    def engage(self, question_id: str) -> None:
        self._check(question_id)
        self.first_engaged.setdefault(question_id, self._clock())

    def record(self, question_id: str, value: Any) -> None:
        self.engage(question_id)
        self.answers[question_id] = value
        self.last_answered[question_id] = self._clock()

    def snapshot(self, seconds_remaining: int) -> AnswerSnapshot:
        elapsed = {
            qid: max(0, int(self.last_answered[qid] - self.first_engaged[qid]))
            for qid in self.answers
        }
        return AnswerSnapshot(answers=dict(self.answers), elapsed_seconds=elapsed,
                              seconds_remaining=int(seconds_remaining))


def evaluate(
    job: Job,
    snapshot: AnswerSnapshot,
    source: EvaluationSource,
    *,
    application_id: str,
    student_id: str,
    submitted_at: Optional[str] = None,
) -> AssessmentResult:
    """
    Reconcile one finished answer set into an AssessmentResult.

    LocalSource: local scores, guesswork heuristic, timer-derived time taken.
    RemoteSource: authoritative remote total, remote fraud verdict, remote
    time taken when reported. The two paths are never mixed.
    """
    if not job.questions:
        raise AssessmentDataError(f"job {job.id} has no questions")

    local_time = _local_time_taken(job, snapshot.seconds_remaining)

    if isinstance(source, RemoteSource):
        remote = source.payload
        scores = Scores.authoritative(remote.total_score)
        notes: Dict[str, str] = {}
        flag, reason = from_fraud_analysis(remote.fraud_analysis)
        taken = local_time if remote.time_taken_minutes is None else max(0, int(remote.time_taken_minutes))
        origin = "remote"
        if remote.qualified != (scores.total >= job.threshold):
            log.info("remote qualified=%s disagrees with threshold %s for total %s; using threshold",
                     remote.qualified, job.threshold, scores.total)
    else:
        scores, notes = score_local(job.questions, snapshot.answers)
        flag, reason = detect_guesswork(
            answered_count(job.questions, snapshot.answers), len(job.questions), scores.total
        )
        taken = local_time
        origin = "local"

    return AssessmentResult(
        application_id=application_id,
        job_id=job.id,
        student_id=student_id,
        scores=scores,
        answers=dict(snapshot.answers),
        evaluation_notes=notes,
        suspicious_flag=flag,
        suspicious_reason=reason,
        time_taken_minutes=taken,
        status="QUALIFIED" if scores.total >= job.threshold else "DISQUALIFIED",
        submitted_at=submitted_at or _utcnow_iso(),
        source=origin,
    )


RANKED_STATUSES = ("COMPLETED", "QUALIFIED")


def rank_applications(job: Job, applications: Iterable[Application]) -> List[Application]:
    """Finished applications for `job` at or above its threshold, best total first."""
    eligible = [
        a for a in applications
        if a.job_id == job.id
        and a.status in RANKED_STATUSES
        and a.result is not None
        and a.result.scores.total >= job.threshold
    ]
    # stable: equal totals keep their input order
    return sorted(eligible, key=lambda a: a.result.scores.total, reverse=True)


class AssessmentSession:
    """
    One candidate taking one job's test.
    AWAITING_SUBMISSION -> EVALUATING -> FINALIZED; the first submit trigger
    wins, later ones are no-ops.
    """

    def __init__(
        self,
        job: Job,
        application: Application,
        *,
        evaluator: Optional[EvaluatorClient] = None,
        candidate_id: Optional[str] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.job = require_assessable(job)
        self.application = application
        self.evaluator = evaluator
        self.candidate_id = candidate_id
        self._clock = clock
        self.started_at = clock()
        self.collector = AnswerCollector([q.id for q in job.questions], clock=clock)
        self.state = AWAITING_SUBMISSION
        self.result: Optional[AssessmentResult] = None
        self._lock = threading.Lock()

    @classmethod
    def start(
        cls,
        job: Optional[Job],
        application: Application,
        *,
        evaluator: Optional[EvaluatorClient] = None,
        name: str = "",
        email: str = "",
        register: bool = True,
        clock: Callable[[], float] = time.time,
    ) -> "AssessmentSession":
        """Load questions (once) and register the candidate, then open the session."""
        if job is None:
            raise AssessmentDataError("job not found")
        if not job.questions and evaluator is not None:
            try:
                job = replace(job, questions=evaluator.fetch_questions(job.id))
            except EvaluatorError as exc:
                raise AssessmentDataError(f"questions unavailable for job {job.id}: {exc}") from exc
        candidate_id = None
        if evaluator is not None and register:
            try:
                candidate_id = evaluator.register_candidate(job.id, name, email)
            except EvaluatorError as exc:
                log.warning("candidate registration failed for job %s, local scoring only: %s", job.id, exc)
        return cls(job, application, evaluator=evaluator, candidate_id=candidate_id, clock=clock)

    # ---- live session ----
    def seconds_remaining(self) -> int:
        elapsed = int(self._clock() - self.started_at)
        return max(0, int(self.job.duration_minutes) * 60 - elapsed)

    def _require_open(self) -> None:
        if self.state != AWAITING_SUBMISSION:
            raise SessionClosedError(f"session is {self.state}")

    def view(self, question_id: str) -> None:
        self._require_open()
        self.collector.engage(question_id)

    def answer(self, question_id: str, value: Any) -> None:
        self._require_open()
        self.collector.record(question_id, value)

    def expire_if_due(self) -> Optional[AssessmentResult]:
        if self.state == AWAITING_SUBMISSION and self.seconds_remaining() <= 0:
            return self.submit("timeout")
        return self.result

    # ---- submission ----
    def submit(self, trigger: str = "finish") -> Optional[AssessmentResult]:
        """
        Run the single evaluation attempt. Returns the finalized result, or
        None when another trigger is still evaluating.
        """
        with self._lock:
            if self.state != AWAITING_SUBMISSION:
                log.debug("submit(%s) ignored, session already %s", trigger, self.state)
                return self.result
            self.state = EVALUATING
            snapshot = self.collector.snapshot(self.seconds_remaining())
        log.info("application %s submitted via %s", self.application.id, trigger)

        source = self._evaluate_remote(snapshot)
        result = evaluate(
            self.job,
            snapshot,
            source,
            application_id=self.application.id,
            student_id=self.application.student_id,
        )
        with self._lock:
            self.result = result
            self.state = FINALIZED
            self.application.attach_result(result)
        log.info("application %s finalized: %s total=%s source=%s suspicious=%s",
                 self.application.id, result.status, result.scores.total, result.source, result.suspicious_flag)
        return result

    def _evaluate_remote(self, snapshot: AnswerSnapshot) -> EvaluationSource:
        if self.evaluator is None or not self.candidate_id:
            return LocalSource()
        payload = [
            {
                "questionId": qid,
                "answerText": "" if value is None else str(value),
                "timeTakenSeconds": snapshot.elapsed_seconds.get(qid, 0),
            }
            for qid, value in snapshot.answers.items()
        ]
        try:
            return RemoteSource(self.evaluator.submit_answers(self.candidate_id, payload))
        except EvaluatorError as exc:
            log.warning("remote evaluation failed for application %s, using local scoring: %s",
                        self.application.id, exc)
        except Exception:
            log.exception("remote evaluation crashed for application %s, using local scoring",
                          self.application.id)
        return LocalSource()

    def status(self) -> Dict[str, Any]:
        return {
            "state": self.state,
            "secondsRemaining": self.seconds_remaining(),
            "answered": answered_count(self.job.questions, self.collector.answers),
            "total": len(self.job.questions),
            "applicationId": self.application.id,
        }
