from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Union

QuestionType = Literal["MCQ", "SUBJECTIVE", "CODING"]
ResultStatus = Literal["PENDING", "QUALIFIED", "DISQUALIFIED"]
ApplicationStatus = Literal["APPLIED", "COMPLETED", "QUALIFIED", "DISQUALIFIED"]
RiskLevel = Literal["low", "medium", "high"]
QUESTION_TYPES: tuple[str, ...] = ("MCQ", "SUBJECTIVE", "CODING")


class AssessmentError(Exception):
    """Base class for engine errors."""


class AssessmentDataError(AssessmentError):
    """The job or its questions cannot be scored."""


class SessionClosedError(AssessmentError):
    """The session no longer accepts answers."""


@dataclass(frozen=True)
class TestCase:
    input: str
    expected_output: str


@dataclass(frozen=True)
class Question:
    id: str; type: QuestionType; text: str
    marks: float = 1.0
    difficulty: str = "Medium"
    options: Optional[Union[List[str], Dict[str, str]]] = None
    correct_answer: Optional[str] = None
    rubric: Optional[str] = None
    test_cases: Optional[List[TestCase]] = None

    def to_dict(self, include_key: bool = True) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "id": self.id,
            "type": self.type,
            "text": self.text,
            "marks": self.marks,
            "difficulty": self.difficulty,
        }
        if self.options is not None:
            out["options"] = self.options
        if include_key and self.correct_answer is not None:
            out["correctAnswer"] = self.correct_answer
        if self.rubric is not None:
            out["rubric"] = self.rubric
        if self.test_cases is not None:
            out["testCases"] = [
                {"input": tc.input, "expectedOutput": tc.expected_output} for tc in self.test_cases
            ]
        return out

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Question":
        cases = d.get("testCases", d.get("test_cases"))
        return cls(
            id=str(d["id"]),
            type=str(d["type"]).upper(),  # type: ignore[arg-type]
            text=str(d.get("text", "")),
            marks=float(d.get("marks", 1)),
            difficulty=str(d.get("difficulty", "Medium")),
            options=d.get("options"),
            correct_answer=d.get("correctAnswer", d.get("correct_answer")),
            rubric=d.get("rubric"),
            test_cases=(
                [TestCase(input=str(c.get("input", "")),
                          expected_output=str(c.get("expectedOutput", c.get("expected_output", ""))))
                 for c in cases]
                if cases is not None else None
            ),
        )


@dataclass(frozen=True)
class Job:
    id: str
    title: str
    duration_minutes: int
    threshold: float
    questions: List[Question] = field(default_factory=list)
    deadline: Optional[str] = None  # ISO date; job closes at 23:59:59 of that day

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "durationMinutes": self.duration_minutes,
            "threshold": self.threshold,
            "deadline": self.deadline,
            "questions": [q.to_dict() for q in self.questions],
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any], *, default_duration: int = 60, default_threshold: float = 30) -> "Job":
        return cls(
            id=str(d["id"]),
            title=str(d.get("title", "")),
            duration_minutes=int(d.get("durationMinutes") or default_duration),
            threshold=float(d["threshold"]) if d.get("threshold") is not None else float(default_threshold),
            questions=[Question.from_dict(q) for q in d.get("questions") or []],
            deadline=d.get("deadline"),
        )


@dataclass(frozen=True)
class AnswerSnapshot:
    """Finished answers handed from the session layer to the scorer."""
    answers: Dict[str, Any]
    elapsed_seconds: Dict[str, int] = field(default_factory=dict)
    seconds_remaining: int = 0


@dataclass(frozen=True)
class Scores:
    mcq: float = 0.0
    subjective: float = 0.0
    coding: float = 0.0
    total: float = 0.0
    itemized: bool = True  # False when only an authoritative remote total exists

    def __post_init__(self) -> None:
        if self.itemized and abs(self.total - (self.mcq + self.subjective + self.coding)) > 1e-9:
            raise ValueError("total must equal mcq + subjective + coding")

    @classmethod
    def itemize(cls, mcq: float, subjective: float, coding: float) -> "Scores":
        return cls(mcq=mcq, subjective=subjective, coding=coding, total=mcq + subjective + coding)

    @classmethod
    def authoritative(cls, total: float) -> "Scores":
        return cls(total=float(total), itemized=False)

    def to_dict(self) -> Dict[str, float]:
        return {"mcq": self.mcq, "subjective": self.subjective, "coding": self.coding, "total": self.total}


@dataclass(frozen=True)
class FraudAnalysis:
    risk_level: RiskLevel
    recommendation: str = ""


@dataclass(frozen=True)
class RemoteEvaluation:
    total_score: float
    qualified: bool
    time_taken_minutes: Optional[int] = None
    fraud_analysis: Optional[FraudAnalysis] = None


@dataclass(frozen=True)
class LocalSource:
    kind: Literal["local"] = "local"


@dataclass(frozen=True)
class RemoteSource:
    payload: RemoteEvaluation
    kind: Literal["remote"] = "remote"


EvaluationSource = Union[LocalSource, RemoteSource]


@dataclass(frozen=True)
class AssessmentResult:
    application_id: str
    job_id: str
    student_id: str
    scores: Scores
    answers: Dict[str, Any]
    evaluation_notes: Dict[str, str]
    suspicious_flag: bool
    suspicious_reason: str
    time_taken_minutes: int
    status: ResultStatus
    submitted_at: str
    source: Literal["local", "remote"] = "local"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "applicationId": self.application_id,
            "jobId": self.job_id,
            "studentId": self.student_id,
            "scores": self.scores.to_dict(),
            "answers": dict(self.answers),
            "evaluationNotes": dict(self.evaluation_notes),
            "suspiciousFlag": self.suspicious_flag,
            "suspiciousReason": self.suspicious_reason,
            "timeTakenMinutes": self.time_taken_minutes,
            "status": self.status,
            "submittedAt": self.submitted_at,
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "AssessmentResult":
        source = d.get("source", "local")
        s = d.get("scores") or {}
        if source == "remote":
            scores = Scores.authoritative(s.get("total", 0.0))
        else:
            scores = Scores.itemize(float(s.get("mcq", 0)), float(s.get("subjective", 0)), float(s.get("coding", 0)))
        return cls(
            application_id=str(d.get("applicationId", "")),
            job_id=str(d.get("jobId", "")),
            student_id=str(d.get("studentId", "")),
            scores=scores,
            answers=dict(d.get("answers") or {}),
            evaluation_notes=dict(d.get("evaluationNotes") or {}),
            suspicious_flag=bool(d.get("suspiciousFlag", False)),
            suspicious_reason=str(d.get("suspiciousReason") or ""),
            time_taken_minutes=int(d.get("timeTakenMinutes", 0)),
            status=d.get("status", "PENDING"),
            submitted_at=str(d.get("submittedAt", "")),
            source=source,
        )


@dataclass
class Application:
    id: str; job_id: str; student_id: str
    status: ApplicationStatus = "APPLIED"
    result: Optional[AssessmentResult] = None

    def attach_result(self, result: AssessmentResult) -> bool:
        """APPLIED -> COMPLETED. Returns False if a result is already attached."""
        if self.result is not None or self.status != "APPLIED":
            return False
        self.result = result
        self.status = "COMPLETED"
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "jobId": self.job_id,
            "studentId": self.student_id,
            "status": self.status,
            "result": self.result.to_dict() if self.result else None,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Application":
        res = d.get("result")
        return cls(
            id=str(d["id"]),
            job_id=str(d["jobId"]),
            student_id=str(d["studentId"]),
            status=d.get("status", "APPLIED"),
            result=AssessmentResult.from_dict(res) if res else None,
        )
